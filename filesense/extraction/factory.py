from pathlib import Path

from filesense.config.settings import Settings
from filesense.extraction.base import BaseContentExtractor
from filesense.extraction.extractor import TextExtractor
from filesense.extraction.file_loader import FileLoader
from filesense.extraction.pdfplumber_adapter import PdfPlumberAdapter
from filesense.extraction.pymupdf_adapter import PyMuPdfAdapter
from filesense.extraction.tesseract_adapter import TesseractAdapter
from filesense.pipeline.models import FileType


class TextExtractorFactory:
    """Creates the text extractor with the PDF and OCR engines chosen in settings."""

    PDF_ENGINES: dict[str, type[BaseContentExtractor]] = {
        "pdfplumber": PdfPlumberAdapter,
        "pymupdf": PyMuPdfAdapter,
    }

    OCR_ENGINES: tuple[str, ...] = ("tesseract",)

    @classmethod
    def create(cls, settings: Settings) -> TextExtractor:
        return TextExtractor(
            file_loader=FileLoader(files_root=Path(settings.files_root)),
            engines={
                FileType.PDF: cls._create_pdf_engine(settings),
                FileType.IMAGE: cls._create_ocr_engine(settings),
            },
        )

    @classmethod
    def _create_pdf_engine(cls, settings: Settings) -> BaseContentExtractor:
        engine = settings.pdf_engine.lower()
        adapter_cls = cls.PDF_ENGINES.get(engine)
        if adapter_cls is None:
            raise ValueError(
                f"Unknown PDF engine '{engine}'. Choose from: {list(cls.PDF_ENGINES)}"
            )
        return adapter_cls()

    @classmethod
    def _create_ocr_engine(cls, settings: Settings) -> BaseContentExtractor:
        engine = settings.ocr_engine.lower()
        if engine not in cls.OCR_ENGINES:
            raise ValueError(
                f"Unknown OCR engine '{engine}'. Choose from: {list(cls.OCR_ENGINES)}"
            )
        return TesseractAdapter(lang=settings.tesseract_lang)
