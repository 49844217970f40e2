class RenameError(Exception):
    """Raised when a file cannot be renamed in storage."""
