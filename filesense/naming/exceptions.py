class SuggestionError(Exception):
    """Raised when a filename cannot be suggested."""


class SuggestionNetworkError(SuggestionError):
    """Raised when the AI provider is unreachable or rejects the call."""
