from abc import ABC, abstractmethod


class BaseRenamer(ABC):
    """Contract for storage renaming providers."""

    @abstractmethod
    def rename(self, locator: str, new_base_name: str) -> str:
        """Give the file at `locator` a new base name, keeping its extension.

        Returns:
            The locator of the renamed file.

        Raises:
            RenameError: if the file cannot be renamed.
        """
