import pymupdf

from filesense.extraction.base import BaseContentExtractor
from filesense.extraction.exceptions import ExtractionError


class PyMuPdfAdapter(BaseContentExtractor):
    """Extracts the text layer of a PDF using PyMuPDF."""

    def extract(self, content: bytes) -> str:
        try:
            with pymupdf.open(stream=content, filetype="pdf") as doc:  # type: ignore[no-untyped-call]
                pages = [page.get_text() for page in doc]
        except Exception as exc:
            raise ExtractionError(f"pymupdf extraction failed: {exc}") from exc
        return "\n".join(pages).strip()
