import io

import pdfplumber

from filesense.extraction.base import BaseContentExtractor
from filesense.extraction.exceptions import ExtractionError


class PdfPlumberAdapter(BaseContentExtractor):
    """Extracts the text layer of a PDF using pdfplumber."""

    def extract(self, content: bytes) -> str:
        try:
            with pdfplumber.open(io.BytesIO(content)) as pdf:
                pages = [page.extract_text() or "" for page in pdf.pages]
        except Exception as exc:
            raise ExtractionError(f"pdfplumber extraction failed: {exc}") from exc
        return "\n".join(pages).strip()
