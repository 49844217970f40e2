from pathlib import Path

from filesense.renaming.base import BaseRenamer
from filesense.renaming.exceptions import RenameError

MAX_COLLISION_SUFFIX = 1000


class LocalFileRenamer(BaseRenamer):
    """Renames files in place on the local disk."""

    def __init__(self, files_root: Path | None = None) -> None:
        self._files_root = files_root

    def rename(self, locator: str, new_base_name: str) -> str:
        if not new_base_name or "/" in new_base_name or "\\" in new_base_name:
            raise RenameError(f"Invalid target name {new_base_name!r}")

        source = self._resolve(locator)
        if not source.is_file():
            raise RenameError(f"File not found: {source}")

        target = self._free_target(source, new_base_name)
        if target == source:
            return locator
        try:
            source.rename(target)
        except OSError as exc:
            raise RenameError(f"Cannot rename {source} to {target.name}: {exc}") from exc
        return str(Path(locator).with_name(target.name))

    def _resolve(self, locator: str) -> Path:
        path = Path(locator)
        if path.is_absolute() or self._files_root is None:
            return path
        return self._files_root / path

    @staticmethod
    def _free_target(source: Path, base_name: str) -> Path:
        """Pick `<base><ext>`, or `<base>_<n><ext>` if that name is taken."""
        target = source.with_name(f"{base_name}{source.suffix}")
        if target == source or not target.exists():
            return target
        for n in range(1, MAX_COLLISION_SUFFIX):
            candidate = source.with_name(f"{base_name}_{n}{source.suffix}")
            if not candidate.exists():
                return candidate
        raise RenameError(f"No free name for {base_name}{source.suffix} in {source.parent}")
