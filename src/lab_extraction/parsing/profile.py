# ============================================================================
# src/lab_extraction/parsing/profile.py
# ============================================================================
"""
Parser profile detection.

A profile is chosen once per document from the file name and the first
part of the text, and never changes while the strategies run.
"""

import logging

from ..config import parser_settings
from ..constants.patterns import (
    DEFAULT_LINE_NOISE_PATTERN,
    KEYWORD_RANGE_LABEL_PATTERN,
    KEYWORD_VALUE_PATTERN,
    PROFILE_LINE_NOISE_PATTERN,
)
from ..core.models import ParserProfile

logger = logging.getLogger(__name__)

DEFAULT_PROFILE = ParserProfile(
    id="adaptive",
    require_unit=True,
    enable_keyword_range_parser=False,
    line_noise_pattern=DEFAULT_LINE_NOISE_PATTERN,
)


def detect_parser_profile(text: str, file_name: str) -> ParserProfile:
    """
    Pick the parsing toggles for a document.

    Reports written as "Uw waarde: 5,2 ... Normale waarde: ..." carry no
    units, so the keyword-range layout turns the unit requirement off
    and enables the dedicated strategy.
    """
    haystack = f"{file_name}\n{text[:parser_settings.PROFILE_SCAN_CHARS]}"
    keyword_hits = len(KEYWORD_VALUE_PATTERN.findall(haystack))
    range_hits = len(KEYWORD_RANGE_LABEL_PATTERN.findall(haystack))
    keyword_range_style = keyword_hits > 0 and range_hits > 0

    if keyword_range_style:
        logger.debug(f"Keyword-range layout detected ({keyword_hits} value / {range_hits} range labels)")

    return ParserProfile(
        id="adaptive",
        require_unit=not keyword_range_style,
        enable_keyword_range_parser=keyword_range_style,
        line_noise_pattern=PROFILE_LINE_NOISE_PATTERN,
    )
