"""AI-powered filename suggester."""

import re
from pathlib import Path

from filesense.logging.logger import Log
from filesense.naming.base import BaseFilenameSuggester
from filesense.naming.client_base import BaseNamingClient
from filesense.naming.exceptions import SuggestionError
from filesense.naming.prompt_loader import load_prompt_template

MAX_PROMPT_TEXT_CHARS = 2000
MAX_FILENAME_CHARS = 50

_KNOWN_EXTENSIONS = re.compile(r"\.(pdf|jpe?g|png|docx?|txt)$", re.IGNORECASE)
_DISALLOWED_CHARS = re.compile(r"[^A-Za-z0-9_-]+")
_REPEATED_UNDERSCORES = re.compile(r"_{2,}")


def sanitize_filename(raw: str) -> str:
    """Reduce an AI answer to a safe base filename.

    Keeps the first line, drops quotes and any extension, joins words with
    underscores, strips characters outside [A-Za-z0-9_-] and truncates to
    50 characters. Returns "" if nothing usable remains.
    """
    lines = raw.strip().splitlines()
    name = lines[0] if lines else ""
    if ":" in name:
        name = name.rsplit(":", 1)[1]
    name = name.strip().strip("\"'`").strip()
    name = _KNOWN_EXTENSIONS.sub("", name)
    name = re.sub(r"\s+", "_", name)
    name = _DISALLOWED_CHARS.sub("", name)
    name = _REPEATED_UNDERSCORES.sub("_", name)
    return name[:MAX_FILENAME_CHARS].strip("_-")


class FilenameSuggester(BaseFilenameSuggester):
    """Suggests filenames for extracted document text using an AI provider."""

    def __init__(
        self,
        *,
        client: BaseNamingClient,
        model: str,
        temperature: float = 0.1,
        max_tokens: int = 50,
        prompt_template_path: Path | None = None,
    ) -> None:
        self._client = client
        self._model = model
        self._temperature = max(0.0, min(1.0, temperature))
        self._max_tokens = max_tokens
        self._prompt_template = load_prompt_template(prompt_template_path)

    def suggest(
        self,
        extracted_text: str,
        original_filename: str,
        file_type: str | None = None,
    ) -> str:
        prompt = self.build_prompt(extracted_text, original_filename, file_type)
        Log.debug(f"Filename prompt:\n{prompt}")

        raw_response = self._client.create_chat_completion(
            model=self._model,
            temperature=self._temperature,
            max_tokens=self._max_tokens,
            user_prompt=prompt,
        )
        Log.debug(f"AI raw response: {raw_response!r}")

        name = sanitize_filename(raw_response)
        if not name:
            raise SuggestionError(f"AI returned no usable filename: {raw_response!r}")
        return name

    def build_prompt(
        self,
        extracted_text: str,
        original_filename: str,
        file_type: str | None = None,
    ) -> str:
        return self._prompt_template.format(
            original_filename=original_filename,
            file_type=file_type or "unknown",
            document_text=extracted_text[:MAX_PROMPT_TEXT_CHARS],
        )
