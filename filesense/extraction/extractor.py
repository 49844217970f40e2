from filesense.extraction.base import BaseContentExtractor, BaseTextExtractor
from filesense.extraction.exceptions import UnsupportedFileTypeError
from filesense.extraction.file_loader import FileLoader
from filesense.logging.logger import Log
from filesense.pipeline.models import FileType


def normalize_text(text: str) -> str:
    text = text.replace("\x00", "")
    while "\n\n\n" in text:
        text = text.replace("\n\n\n", "\n\n")
    return text.strip()


class TextExtractor(BaseTextExtractor):
    """Loads a file and routes its bytes to the engine for its type."""

    def __init__(
        self,
        file_loader: FileLoader,
        engines: dict[FileType, BaseContentExtractor],
    ) -> None:
        self._file_loader = file_loader
        self._engines = engines

    def extract(self, locator: str, file_type: FileType) -> str:
        engine = self._engines.get(file_type)
        if engine is None:
            raise UnsupportedFileTypeError(
                f"No text extractor configured for file type '{file_type.value}'"
            )
        content = self._file_loader.load(locator)
        text = normalize_text(engine.extract(content))
        Log.debug(f"Extracted {len(text)} chars from {locator}")
        return text
