class PipelineError(Exception):
    """Base exception for all pipeline-related errors."""


class BatchValidationError(PipelineError):
    """Raised when a registration or processing request is malformed."""


class UnknownUserError(PipelineError):
    """Raised when a registered owner cannot be found."""


class QuotaExceededError(PipelineError):
    """Raised when a batch would take the owner over its quota."""

    def __init__(self, message: str, *, remaining: int, requested: int) -> None:
        super().__init__(message)
        self.remaining = remaining
        self.requested = requested


class InvalidSessionTransitionError(PipelineError):
    """Raised when a processing session is moved out of order."""


class SessionFatalError(PipelineError):
    """Raised when session bookkeeping itself cannot continue."""
