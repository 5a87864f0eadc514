# ============================================================================
# src/lab_extraction/utils/__init__.py
# ============================================================================
"""
Text and value helpers used across the extraction package.
"""

from .text_normalizer import (
    clean_whitespace,
    normalize_unit,
    is_likely_unit,
    normalize_lookup_key,
    to_title_case,
)
from .values import create_id, safe_number, clamp
from .privacy import sanitize_parser_text_for_ai, sanitize_file_name, SanitizedAIPayload
