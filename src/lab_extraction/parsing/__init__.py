# ============================================================================
# src/lab_extraction/parsing/__init__.py
# ============================================================================
"""
Local row parsing: profile detection, the text and positional row
strategies, and the cascade that turns their rows into a fallback draft.
"""

from .profile import detect_parser_profile
from .strategies import ParseContext, RowStrategy
from .spatial import HistoryCurrentColumnStrategy, SpatialRowStrategy
from .cascade import (
    ParserCascade,
    count_important_coverage,
    dedupe_rows,
    default_strategies,
    fallback_extract,
    filter_marker_values_for_quality,
    marker_identity_key,
    merge_marker_sets,
)
