# ============================================================================
# src/lab_extraction/config/thresholds_config.py
# ============================================================================
"""
Quality Thresholds
- Draft confidence and review escalation
- OCR fallback gate
- AI rescue gate
- Local draft acceptance
"""

from pydantic import Field
from pydantic_settings import BaseSettings


class ThresholdSettings(BaseSettings):
    FALLBACK_REVIEW_CONFIDENCE: float = Field(
        default=0.70,
        ge=0.0, le=1.0,
        description="Local drafts below this confidence are flagged for review"
    )
    UNIT_COVERAGE_REVIEW: float = Field(
        default=0.70,
        ge=0.0, le=1.0,
        description="Local drafts with a lower share of markers carrying a unit are flagged for review"
    )
    FALLBACK_MAX_CONFIDENCE: float = Field(
        default=0.90,
        ge=0.0, le=1.0,
        description="Ceiling for heuristic draft confidence"
    )
    IMPORTANT_MARKER_CONFIDENCE_BOOST: float = Field(
        default=0.12,
        ge=0.0, le=1.0,
        description="Confidence added to rows resolving to an important marker"
    )
    OCR_SKIP_MIN_MARKERS: int = Field(
        default=6,
        description="Dense drafts with at least this many markers skip OCR"
    )
    OCR_SKIP_MIN_CONFIDENCE: float = Field(
        default=0.72,
        ge=0.0, le=1.0,
        description="Dense drafts with at least this confidence skip OCR"
    )
    QUALITY_MIN_MARKERS: int = Field(
        default=5,
        description="Minimum markers for a local draft to skip AI"
    )
    QUALITY_MIN_CONFIDENCE: float = Field(
        default=0.65,
        ge=0.0, le=1.0,
        description="Minimum confidence for a local draft to skip AI"
    )
    QUALITY_MIN_PRIMARY_MARKERS: int = Field(
        default=2,
        description="Minimum distinct primary markers for a local draft to skip AI"
    )
    AI_REVIEW_CONFIDENCE: float = Field(
        default=0.65,
        ge=0.0, le=1.0,
        description="AI-merged drafts below this confidence are flagged for review"
    )
    AUTO_RESCUE_MAX_MARKERS: int = Field(
        default=4,
        description="Local drafts with at most this many markers are rescue candidates"
    )
    AUTO_RESCUE_MIN_UNIT_COVERAGE: float = Field(
        default=0.70,
        ge=0.0, le=1.0,
        description="Unit coverage below this is considered weak"
    )
    AUTO_RESCUE_WEAK_OCR_CHARS: int = Field(
        default=400,
        description="OCR text with fewer non-whitespace characters is weak context"
    )
    AUTO_RESCUE_WEAK_OCR_LINES: int = Field(
        default=12,
        description="OCR text with fewer non-empty lines is weak context"
    )


threshold_settings = ThresholdSettings()
