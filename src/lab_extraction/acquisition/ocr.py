# ============================================================================
# src/lab_extraction/acquisition/ocr.py
# ============================================================================
"""
OCR Fallback

Rasterises PDF pages with PyMuPDF and runs Tesseract on each one.
Used when the text layer is missing or too thin to parse.

A missing Tesseract binary or language pack aborts the whole run with
OCRUnavailableError. A single page that fails is logged and skipped;
the result then reports the pages that did not make it.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Union

import fitz  # PyMuPDF
import pytesseract
from PIL import Image

from ..config import ocr_settings
from ...utils.exceptions import OCRUnavailableError, TextAcquisitionError
from ...utils.logging import log_performance

logger = logging.getLogger(__name__)


@dataclass
class OCRResult:
    """OCR text for the first OCR_MAX_PAGES pages."""
    text: str = ""
    pages_processed: int = 0
    failed_pages: List[int] = field(default_factory=list)

    @property
    def partial(self) -> bool:
        return bool(self.failed_pages)


def render_page(page: "fitz.Page", scale: float) -> Image.Image:
    pixmap = page.get_pixmap(matrix=fitz.Matrix(scale, scale), alpha=False)
    return Image.frombytes("RGB", (pixmap.width, pixmap.height), pixmap.samples)


def ocr_image(image: Image.Image) -> str:
    """
    Tesseract on one page image.

    Raises:
        OCRUnavailableError: tesseract binary or language data missing
    """
    try:
        return pytesseract.image_to_string(
            image,
            lang=ocr_settings.OCR_LANGUAGES,
            config=ocr_settings.OCR_TESSERACT_CONFIG,
        )
    except pytesseract.TesseractNotFoundError as e:
        raise OCRUnavailableError(f"Tesseract not available: {e}") from e


@log_performance(logger, "pdf_ocr")
def extract_pdf_text_via_ocr(pdf_path: Union[str, Path], max_pages: Optional[int] = None) -> OCRResult:
    """
    OCR the first pages of a PDF, page by page.

    Raises:
        OCRUnavailableError: Tesseract cannot run at all
        TextAcquisitionError: the PDF cannot be opened for rendering
    """
    pdf_path = Path(pdf_path)
    limit = max_pages or ocr_settings.OCR_MAX_PAGES

    try:
        doc = fitz.open(pdf_path)
    except Exception as e:
        raise TextAcquisitionError(f"Could not open {pdf_path.name} for OCR: {e}") from e

    result = OCRResult()
    page_texts: List[str] = []
    try:
        for page_index in range(min(len(doc), limit)):
            try:
                image = render_page(doc[page_index], ocr_settings.OCR_RENDER_SCALE)
                page_text = ocr_image(image)
            except OCRUnavailableError:
                raise
            except Exception as e:
                logger.warning(f"OCR failed on page {page_index + 1} of {pdf_path.name}: {e}")
                result.failed_pages.append(page_index + 1)
                continue

            result.pages_processed += 1
            if page_text.strip():
                page_texts.append(page_text.strip())
    finally:
        doc.close()

    result.text = "\n".join(page_texts)
    logger.info(
        f"OCR of {pdf_path.name}: {result.pages_processed} pages, "
        f"{len(result.failed_pages)} failed, {len(result.text)} chars"
    )
    return result
