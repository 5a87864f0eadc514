# ============================================================================
# src/lab_extraction/acquisition/__init__.py
# ============================================================================
"""
Getting text out of PDFs: the embedded text layer first, OCR when that
is missing or too thin.
"""

from .pdf_text import extract_pdf_text, layout_from_words
from .ocr import OCRResult, extract_pdf_text_via_ocr
