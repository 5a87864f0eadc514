# ============================================================================
# src/lab_extraction/constants/warning_codes.py
# ============================================================================
"""
Extraction warning codes (closed set consumed by review UIs).
"""

from enum import Enum


class WarningCode(str, Enum):
    TEXT_LAYER_EMPTY = "PDF_TEXT_LAYER_EMPTY"
    TEXT_EXTRACTION_FAILED = "PDF_TEXT_EXTRACTION_FAILED"
    OCR_INIT_FAILED = "PDF_OCR_INIT_FAILED"
    OCR_PARTIAL = "PDF_OCR_PARTIAL"
    LOW_CONFIDENCE_LOCAL = "PDF_LOW_CONFIDENCE_LOCAL"
    UNKNOWN_LAYOUT = "PDF_UNKNOWN_LAYOUT"
    AI_TEXT_ONLY_INSUFFICIENT = "PDF_AI_TEXT_ONLY_INSUFFICIENT"
    AI_PDF_RESCUE_SKIPPED_COST_MODE = "PDF_AI_PDF_RESCUE_SKIPPED_COST_MODE"
    AI_PDF_RESCUE_SKIPPED_SIZE = "PDF_AI_PDF_RESCUE_SKIPPED_SIZE"
    AI_PDF_RESCUE_FAILED = "PDF_AI_PDF_RESCUE_FAILED"
    AI_SKIPPED_COST_MODE = "PDF_AI_SKIPPED_COST_MODE"
    AI_SKIPPED_BUDGET = "PDF_AI_SKIPPED_BUDGET"
    AI_SKIPPED_RATE_LIMIT = "PDF_AI_SKIPPED_RATE_LIMIT"
    AI_LIMITS_UNAVAILABLE = "PDF_AI_LIMITS_UNAVAILABLE"
    AI_CONSENT_REQUIRED = "PDF_AI_CONSENT_REQUIRED"
    AI_DISABLED_BY_PARSER_MODE = "PDF_AI_DISABLED_BY_PARSER_MODE"


KNOWN_WARNING_CODES = frozenset(code.value for code in WarningCode)


def is_known_warning_code(value: str) -> bool:
    return value in KNOWN_WARNING_CODES
