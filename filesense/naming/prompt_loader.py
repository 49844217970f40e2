from pathlib import Path

from filesense.naming.exceptions import SuggestionError

_DEFAULT_PROMPT_DIR = Path(__file__).parent / "prompts"


def load_prompt_template(path: Path | None = None) -> str:
    """Load the filename prompt template from a file.

    Args:
        path: Path to the prompt template file.
              Defaults to the bundled filename_prompt.txt.

    Returns:
        The raw template string with {original_filename}, {file_type}
        and {document_text} placeholders.

    Raises:
        SuggestionError: if the file cannot be read.
    """
    if path is None:
        path = _DEFAULT_PROMPT_DIR / "filename_prompt.txt"
    try:
        return path.read_text(encoding="utf-8")
    except OSError as exc:
        raise SuggestionError(f"Failed to load prompt template: {exc}") from exc
