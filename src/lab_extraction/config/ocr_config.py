# ============================================================================
# src/lab_extraction/config/ocr_config.py
# ============================================================================
"""
OCR Settings
- Tesseract languages and page segmentation
- Render scale
- Page cap
"""

from pydantic import Field
from pydantic_settings import BaseSettings


class OCRSettings(BaseSettings):
    OCR_LANGUAGES: str = Field(
        default="eng+nld",
        description="Tesseract language packs"
    )
    OCR_MAX_PAGES: int = Field(
        default=12,
        ge=1,
        description="Hard cap on pages sent through OCR"
    )
    OCR_RENDER_SCALE: float = Field(
        default=2.0,
        gt=0.0,
        description="Zoom factor used when rasterising a page"
    )
    OCR_TESSERACT_CONFIG: str = Field(
        default="--psm 6 -c preserve_interword_spaces=1",
        description="Extra tesseract CLI flags"
    )


ocr_settings = OCRSettings()
