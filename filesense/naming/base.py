from abc import ABC, abstractmethod


class BaseFilenameSuggester(ABC):
    """Contract for filename suggestion providers."""

    @abstractmethod
    def suggest(
        self,
        extracted_text: str,
        original_filename: str,
        file_type: str | None = None,
    ) -> str:
        """Propose a new base filename (no extension) for a document.

        Args:
            extracted_text: Text extracted from the document.
            original_filename: Name the file currently has.
            file_type: Optional declared type (image, pdf, document).

        Returns:
            A non-empty filename without extension.

        Raises:
            SuggestionError: on any failure, SuggestionNetworkError when the
                provider is unavailable.
        """
