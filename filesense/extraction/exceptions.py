class ExtractionError(Exception):
    """Raised when text cannot be extracted from a file."""


class UnsupportedFileTypeError(ExtractionError):
    """Raised when no extractor is configured for a file type."""


class SourceUnreadableError(ExtractionError):
    """Raised when the file behind a locator cannot be read."""
