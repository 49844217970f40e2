from abc import ABC, abstractmethod

from filesense.pipeline.models import FileType


class BaseTextExtractor(ABC):
    """Contract for the text extraction provider used by the extract stage."""

    @abstractmethod
    def extract(self, locator: str, file_type: FileType) -> str:
        """Extract plain text from the file at `locator`.

        Args:
            locator: Storage path of the file.
            file_type: Declared type of the file.

        Returns:
            Extracted text, possibly empty if the file contains none.

        Raises:
            ExtractionError: if the source is unreadable or unsupported.
        """


class BaseContentExtractor(ABC):
    """Contract for engine adapters that turn raw file bytes into text."""

    @abstractmethod
    def extract(self, content: bytes) -> str:
        """Extract plain text from raw file content.

        Raises:
            ExtractionError: if extraction fails for any reason.
        """
