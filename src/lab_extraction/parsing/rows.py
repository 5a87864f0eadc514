# ============================================================================
# src/lab_extraction/parsing/rows.py
# ============================================================================
"""
Row-level parsing primitives shared by every strategy.

A "row" is one flattened line of a result table:

    Testosterone, Total, LC/MS/MS 300 250 - 1100 ng/dL
    <label ...................> <value> <range...> <unit>

The right-anchored parser looks for the unit from the right and takes
the first number after the label that does not open an "N - M" range.
The generic parser is a plain label/value/rest regex.
"""

import re
from typing import Optional

from ..constants.markers import IMPORTANT_MARKERS
from ..constants.patterns import (
    COMMENTARY_FRAGMENT_PATTERN,
    DASH_TOKEN_PATTERN,
    GUIDANCE_RESULT_PATTERN,
    HISTORY_CALCULATOR_NOISE_PATTERN,
    MARKER_ANCHOR_PATTERN,
    STATUS_TOKEN_PATTERN,
)
from ..core.models import CandidateSource, ParsedRow, ParserProfile, ReferenceAndUnit
from ..normalization.catalog import canonicalize_marker
from ..normalization.sanitizer import (
    is_acceptable_marker_candidate,
    looks_like_noise_marker,
    sanitize_marker_name,
)
from ..utils.text_normalizer import clean_whitespace, is_likely_unit, normalize_unit
from ..utils.values import safe_number
from .profile import DEFAULT_PROFILE

I = re.IGNORECASE

_NUMBER = r"-?\d+(?:[.,]\d+)?"
_RANGE_PATTERN = re.compile(rf"(?:<|>|≤|≥)?\s*({_NUMBER})\s*[-–]\s*({_NUMBER})")
_UPPER_BOUND_PATTERN = re.compile(rf"(?:^|\s)(?:<|≤)\s*({_NUMBER})(?:\s|$)")
_LOWER_BOUND_PATTERN = re.compile(rf"(?:^|\s)(?:>|≥)\s*({_NUMBER})(?:\s|$)")
_TOKEN_TRAILING_PUNCTUATION = re.compile(r"[),;]+$")

_GENERIC_ROW_PATTERN = re.compile(rf"^(.+?)\s+([<>≤≥]?\s*{_NUMBER})(?:\s+|$)(.*)$")

# ----------------------------------------------------------------------------
# Reference range and unit
# ----------------------------------------------------------------------------

def extract_reference_and_unit(raw_value: str) -> ReferenceAndUnit:
    """
    Read a reference range and unit from the text following a value.

    The last "N - M" pair wins; otherwise "< N" gives an upper bound and
    "> N" a lower bound. The unit is the right-most unit-like token.

    Example:
        >>> extract_reference_and_unit("250 - 1100 ng/dL")
        ReferenceAndUnit(reference_min=250.0, reference_max=1100.0, unit='ng/dL')
    """
    cleaned = clean_whitespace(raw_value)
    result = ReferenceAndUnit()

    ranges = list(_RANGE_PATTERN.finditer(cleaned))
    if ranges:
        last = ranges[-1]
        result.reference_min = safe_number(last.group(1))
        result.reference_max = safe_number(last.group(2))

    if result.reference_min is None and result.reference_max is None:
        upper = _UPPER_BOUND_PATTERN.search(cleaned)
        if upper:
            result.reference_max = safe_number(upper.group(1))

    if result.reference_min is None and result.reference_max is None:
        lower = _LOWER_BOUND_PATTERN.search(cleaned)
        if lower:
            result.reference_min = safe_number(lower.group(1))

    tokens = [_TOKEN_TRAILING_PUNCTUATION.sub("", token.strip()) for token in cleaned.split(" ")]
    for token in reversed([token for token in tokens if token]):
        if is_likely_unit(token):
            result.unit = normalize_unit(token)
            break

    return result


def is_numeric_token(token: str) -> bool:
    return safe_number(token) is not None


# ----------------------------------------------------------------------------
# Single-row parsers
# ----------------------------------------------------------------------------

def parse_row_by_right_anchored_unit(
    raw_row: str,
    confidence: float,
    profile: ParserProfile = DEFAULT_PROFILE
) -> Optional[ParsedRow]:
    """
    Parse a row by anchoring on its right-most unit token.

    Returns None for guidance text, rows shorter than three tokens,
    unitless rows when the profile requires a unit, and noisy labels.
    """
    cleaned_row = clean_whitespace(raw_row)
    if not cleaned_row or GUIDANCE_RESULT_PATTERN.search(cleaned_row):
        return None

    tokens = [token for token in cleaned_row.split(" ") if token]
    if len(tokens) < 3:
        return None

    unit_index = -1
    for index in range(len(tokens) - 1, 0, -1):
        if is_likely_unit(tokens[index]):
            unit_index = index
            break

    if unit_index < 0 and profile.require_unit:
        return None

    value_search_end = unit_index - 1 if unit_index > 0 else len(tokens) - 1
    value_index = -1
    for index in range(1, value_search_end + 1):
        if not is_numeric_token(tokens[index]):
            continue
        # left bound of an "N - M" reference range
        if (
            index + 2 <= value_search_end
            and DASH_TOKEN_PATTERN.match(tokens[index + 1])
            and is_numeric_token(tokens[index + 2])
        ):
            continue
        value_index = index
        break

    if value_index < 1:
        return None

    marker_name = sanitize_marker_name(" ".join(tokens[:value_index]))
    if looks_like_noise_marker(marker_name):
        return None

    value = safe_number(tokens[value_index])
    if value is None:
        return None

    explicit_unit = normalize_unit(tokens[unit_index]) if unit_index >= 0 else ""
    middle_tokens = tokens[value_index + 1:unit_index if unit_index >= 0 else len(tokens)]
    trailing_tokens = tokens[unit_index + 1:] if unit_index >= 0 else []
    reference = extract_reference_and_unit(" ".join(middle_tokens + trailing_tokens))

    return ParsedRow(
        marker_name=marker_name,
        value=value,
        unit=explicit_unit or reference.unit,
        reference_min=reference.reference_min,
        reference_max=reference.reference_max,
        confidence=confidence,
    )


def parse_single_row(
    raw_row: str,
    confidence: float,
    profile: ParserProfile = DEFAULT_PROFILE
) -> Optional[ParsedRow]:
    """Right-anchored parse first (+0.04 confidence), then a generic label/value regex."""
    cleaned_row = clean_whitespace(raw_row)
    if GUIDANCE_RESULT_PATTERN.search(cleaned_row):
        return None

    right_anchored = parse_row_by_right_anchored_unit(raw_row, confidence + 0.04, profile)
    if right_anchored:
        return right_anchored

    if not cleaned_row:
        return None

    match = _GENERIC_ROW_PATTERN.match(cleaned_row)
    if not match:
        return None

    marker_name = sanitize_marker_name(match.group(1))
    if looks_like_noise_marker(marker_name):
        return None

    value = safe_number(re.sub(r"\s+", "", match.group(2)))
    if value is None:
        return None

    reference = extract_reference_and_unit(clean_whitespace(match.group(3) or ""))
    return ParsedRow(
        marker_name=marker_name,
        value=value,
        unit=reference.unit,
        reference_min=reference.reference_min,
        reference_max=reference.reference_max,
        confidence=confidence,
    )


# ----------------------------------------------------------------------------
# Two-line rows
# ----------------------------------------------------------------------------

_MARKER_AND_VALUE_PATTERN = re.compile(rf"^(.+?)\s+([<>≤≥]?\s*{_NUMBER})$")
_RANGE_TAIL_PATTERN = re.compile(r"\d+\s*[-–]\s*$")
_RESULT_PREFIX_PATTERN = re.compile(
    r"^(?:result(?:\s+(?:normal|high|low))?|normal|abnormal|in\s+range|out\s+of\s+range|value)\s+", I
)
_VALUE_STATUS_PATTERN = re.compile(
    rf"^([<>≤≥]?\s*{_NUMBER})(?:\s+(H|L|HIGH|LOW|Within(?:\s+range)?|Above(?:\s+range)?|Below(?:\s+range)?))?\s*(.*)$",
    I,
)


def _has_reference_or_unit(reference: ReferenceAndUnit) -> bool:
    return reference.reference_min is not None or reference.reference_max is not None or bool(reference.unit)


def parse_two_line_row(line: str, next_line: str, profile: ParserProfile = DEFAULT_PROFILE) -> Optional[ParsedRow]:
    """
    Parse a result split over two lines.

    Either "Label 12.3" followed by a range/unit line, or a bare label
    followed by "12.3 H 10 - 20 nmol/L". A first line that ends like the
    tail of a reference range is not treated as label + value.
    """
    marker_and_value = _MARKER_AND_VALUE_PATTERN.match(line)
    if marker_and_value:
        left_tokens = [token for token in clean_whitespace(marker_and_value.group(1)).split(" ") if token]
        left_numeric_count = sum(1 for token in left_tokens if is_numeric_token(token))
        probably_range_tail = (
            left_numeric_count >= 2
            or (len(left_tokens) >= 2 and DASH_TOKEN_PATTERN.match(left_tokens[-1]))
            or _RANGE_TAIL_PATTERN.search(marker_and_value.group(1))
        )

        if not probably_range_tail:
            marker_name = sanitize_marker_name(marker_and_value.group(1))
            value = safe_number(marker_and_value.group(2))
            if value is not None and not looks_like_noise_marker(marker_name):
                reference = extract_reference_and_unit(next_line)
                if _has_reference_or_unit(reference):
                    return ParsedRow(
                        marker_name=marker_name,
                        value=value,
                        unit=reference.unit,
                        reference_min=reference.reference_min,
                        reference_max=reference.reference_max,
                        confidence=0.64,
                    )

    if re.search(r"\d", line):
        return None

    marker_name = sanitize_marker_name(line)
    if looks_like_noise_marker(marker_name):
        return None

    normalized_next = _RESULT_PREFIX_PATTERN.sub("", clean_whitespace(next_line), count=1)
    direct = parse_single_row(f"{marker_name} {normalized_next}", 0.64, profile)
    if direct:
        return direct

    next_match = _VALUE_STATUS_PATTERN.match(normalized_next)
    if not next_match:
        return None

    value = safe_number(next_match.group(1))
    if value is None:
        return None

    status, rest = next_match.group(2) or "", next_match.group(3) or ""
    trailing = clean_whitespace(rest) if STATUS_TOKEN_PATTERN.match(status) else clean_whitespace(f"{status} {rest}")
    reference = extract_reference_and_unit(trailing)
    if not _has_reference_or_unit(reference):
        return None

    return ParsedRow(
        marker_name=marker_name,
        value=value,
        unit=reference.unit,
        reference_min=reference.reference_min,
        reference_max=reference.reference_max,
        confidence=0.62,
    )


# ----------------------------------------------------------------------------
# Line and row filters
# ----------------------------------------------------------------------------

_PAGE_HEADER_PATTERN = re.compile(r"^(?:page|pagina)\s+\d+\b", I)
_HEADER_WORD_PATTERN = re.compile(
    r"\b(?:reference range|units?|resultaat|report|laboratory|specimen|sample type|patient|address|telephone|fax)\b",
    I,
)
_DATE_LABEL_PATTERN = re.compile(
    r"\b(?:collected|received|report date|sample date|collection times?|date of birth|dob)\b", I
)
_DATE_LIKE_PATTERN = re.compile(r"\d{1,2}\s*[./-]\s*\d{1,2}\s*[./-]\s*\d{2,4}")


def looks_like_non_result_line(line: str) -> bool:
    """Page headers, table headers, patient/date lines and calculator chrome."""
    if not line or len(line) < 3:
        return True
    if HISTORY_CALCULATOR_NOISE_PATTERN.search(line):
        return True
    if _PAGE_HEADER_PATTERN.search(line) or _HEADER_WORD_PATTERN.search(line):
        return True
    return bool(_DATE_LABEL_PATTERN.search(line) and _DATE_LIKE_PATTERN.search(line))


_GUIDELINE_WORDS = re.compile(r"\b(?:individuals?|guideline|guidelines?)\b", I)
_NARRATIVE_START = re.compile(r"^(?:for|if|this|that|please|interpret|new|changes)\b", I)
_METHOD_PROSE = re.compile(
    r"\b(?:in patients|in men with|according to|values obtained|comparison of serial|"
    r"cannot be used interchangeably|performed using|developed and validated|educational purposes|"
    r"methodology|reference interval is based on|psa below|psa above)\b",
    I,
)
_REPORT_WORDS = re.compile(
    r"\b(?:report|sample|date|patient|doctor|laboratory|result|normal|range|collection|precision analytical|"
    r"daily free cortisol pattern|described|section|comment|defines|followed by|levels below)\b",
    I,
)
_NOT_AVAILABLE = re.compile(r"\bN\/A\b|\bwww\.", I)
_TRAILING_VALUE_WORD = re.compile(r"\bvalue\b$", I)


def should_keep_parsed_row(row: ParsedRow, profile: ParserProfile = DEFAULT_PROFILE) -> bool:
    """
    Final gate for a parsed row before it enters the candidate pool.

    Unitless rows without a range survive only for important markers.
    """
    name = row.marker_name
    if not is_acceptable_marker_candidate(
        name, row.unit, row.reference_min, row.reference_max, CandidateSource.FALLBACK
    ):
        return False

    has_anchor = bool(MARKER_ANCHOR_PATTERN.search(name))
    if GUIDANCE_RESULT_PATTERN.search(name):
        return False
    if not has_anchor and (
        _GUIDELINE_WORDS.search(name) or COMMENTARY_FRAGMENT_PATTERN.search(name) or _NARRATIVE_START.search(name)
    ):
        return False
    if _METHOD_PROSE.search(name) or _REPORT_WORDS.search(name):
        return False
    if _NOT_AVAILABLE.search(name) or _TRAILING_VALUE_WORD.search(name):
        return False

    if profile.require_unit and not row.unit:
        return False

    if row.unit or row.reference_min is not None or row.reference_max is not None:
        return True
    return canonicalize_marker(name) in IMPORTANT_MARKERS
