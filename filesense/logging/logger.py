import logging
import sys

_CONTEXT_ATTR = "filesense_context"


class _ContextFormatter(logging.Formatter):
    """Appends key=value context (session, file, stage) to the message."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context: dict[str, object] = getattr(record, _CONTEXT_ATTR, {})
        if not context:
            return line
        pairs = " ".join(f"{key}={value}" for key, value in sorted(context.items()))
        return f"{line} | {pairs}"


class Log:
    """Centralized logging with structured format."""

    _logger: logging.Logger = logging.getLogger("filesense")

    @classmethod
    def configure(cls, log_level: str) -> None:
        """Configure the logger with the specified level and stdout handler."""
        cls._logger.setLevel(log_level.upper())
        if not cls._logger.handlers:
            handler = logging.StreamHandler(sys.stdout)
            handler.setFormatter(
                _ContextFormatter("%(asctime)s [%(levelname)s] %(message)s")
            )
            cls._logger.addHandler(handler)

    @classmethod
    def info(cls, message: str, **context: object) -> None:
        """Log an info message."""
        cls._logger.info(message, extra={_CONTEXT_ATTR: context})

    @classmethod
    def error(cls, message: str, **context: object) -> None:
        """Log an error message."""
        cls._logger.error(message, extra={_CONTEXT_ATTR: context})

    @classmethod
    def warning(cls, message: str, **context: object) -> None:
        """Log a warning message."""
        cls._logger.warning(message, extra={_CONTEXT_ATTR: context})

    @classmethod
    def debug(cls, message: str, **context: object) -> None:
        """Log a debug message."""
        cls._logger.debug(message, extra={_CONTEXT_ATTR: context})
