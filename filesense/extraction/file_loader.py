from pathlib import Path

from filesense.extraction.exceptions import SourceUnreadableError


class FileLoader:
    """Resolves a file locator on the local disk and reads its bytes."""

    FILES_ROOT = Path("/app/files")

    def __init__(self, files_root: Path | None = None) -> None:
        self._files_root = files_root if files_root is not None else self.FILES_ROOT

    def load(self, locator: str) -> bytes:
        """Read file bytes from disk.

        Raises:
            SourceUnreadableError: if the file is missing or cannot be read.
        """
        path = self.resolve(locator)
        if not path.is_file():
            raise SourceUnreadableError(f"File not found: {path}")
        try:
            return path.read_bytes()
        except OSError as exc:
            raise SourceUnreadableError(f"Cannot read {path}: {exc}") from exc

    def resolve(self, locator: str) -> Path:
        path = Path(locator)
        return path if path.is_absolute() else self._files_root / path
