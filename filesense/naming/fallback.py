"""Deterministic, non-AI filename generation."""

import re
from datetime import date

FALLBACK_KEYWORDS: tuple[str, ...] = (
    "invoice",
    "receipt",
    "contract",
    "report",
    "document",
    "letter",
)

_WORD_RE = re.compile(r"[a-z]+")


def fallback_filename(extracted_text: str, today: date | None = None) -> str:
    """Name a document after the first known keyword it mentions and the date.

    Returns e.g. "Invoice_20231205", or "Document_20231205" when no keyword
    is present. The same text on the same day always gives the same name.
    """
    stamp = (today or date.today()).strftime("%Y%m%d")
    words = set(_WORD_RE.findall(extracted_text.lower()))
    for keyword in FALLBACK_KEYWORDS:
        if keyword in words:
            return f"{keyword.capitalize()}_{stamp}"
    return f"Document_{stamp}"
