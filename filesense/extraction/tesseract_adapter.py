import io

import pytesseract
from PIL import Image

from filesense.extraction.base import BaseContentExtractor
from filesense.extraction.exceptions import ExtractionError

# Larger scans are downsized before OCR to bound memory use.
MAX_IMAGE_DIMENSION = 10000


class TesseractAdapter(BaseContentExtractor):
    """OCRs photos and scans with Tesseract."""

    def __init__(self, lang: str = "eng") -> None:
        self._lang = lang

    def extract(self, content: bytes) -> str:
        try:
            with Image.open(io.BytesIO(content)) as img:
                img = self._limit_size(img)
                text = pytesseract.image_to_string(img, lang=self._lang)
        except Exception as exc:
            raise ExtractionError(f"tesseract OCR failed: {exc}") from exc
        return text.strip()

    @staticmethod
    def _limit_size(img: Image.Image) -> Image.Image:
        if max(img.size) <= MAX_IMAGE_DIMENSION:
            return img
        ratio = MAX_IMAGE_DIMENSION / max(img.size)
        new_size = (int(img.size[0] * ratio), int(img.size[1] * ratio))
        return img.resize(new_size, Image.Resampling.LANCZOS)
