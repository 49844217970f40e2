class StoreError(Exception):
    """Base exception for session store failures."""


class SessionNotFoundError(StoreError):
    """Raised when a processing session does not exist."""


class FileRecordNotFoundError(StoreError):
    """Raised when a file record does not exist."""
