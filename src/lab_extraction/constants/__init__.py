# ============================================================================
# src/lab_extraction/constants/__init__.py
# ============================================================================
"""
Convenient imports for all constants
"""

from .markers import (
    UNKNOWN_MARKER,
    IMPORTANT_MARKERS,
    PRIMARY_MARKERS,
    MARKER_ALIASES,
    CATEGORY_HINTS,
    UNIT_HINTS,
    STOPWORD_SINGLE,
    SHORT_MARKER_ALLOWLIST,
)
from .plausibility_ranges import PLAUSIBILITY_RANGES, UNIT_GUARDED_MARKERS
from .unit_conversions import CANONICAL_UNIT_RULES, SYSTEM_CONVERSION_RULES
from .warning_codes import WarningCode, KNOWN_WARNING_CODES, is_known_warning_code
