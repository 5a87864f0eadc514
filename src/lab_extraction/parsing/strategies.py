# ============================================================================
# src/lab_extraction/parsing/strategies.py
# ============================================================================
"""
Row Strategies

Each strategy turns a document into candidate ParsedRows on its own;
outputs of all strategies that apply are pooled and deduplicated by the
cascade. A strategy decides for itself whether it applies to a document
(profile toggles, layout signatures, yield of earlier strategies).

Text strategies live here; positional ones in parsing.spatial.
"""

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Tuple

from ..config import parser_settings
from ..constants.patterns import (
    LIFELABS_CONTINUATION_PATTERN,
    LIFELABS_END_PATTERN,
    LIFELABS_HEADER_PATTERN,
    URL_PATTERN,
)
from ..core.models import CandidateSource, ParsedRow, ParserProfile, SpatialRow
from ..normalization.sanitizer import (
    is_acceptable_marker_candidate,
    looks_like_noise_marker,
    sanitize_marker_name,
)
from ..utils.text_normalizer import clean_whitespace, normalize_unit
from ..utils.values import safe_number
from .rows import (
    extract_reference_and_unit,
    looks_like_non_result_line,
    parse_single_row,
    parse_two_line_row,
    should_keep_parsed_row,
)

I = re.IGNORECASE


@dataclass(frozen=True)
class ParseContext:
    """Everything a strategy may look at. Shared read-only by all strategies."""
    text: str
    profile: ParserProfile
    spatial_rows: Tuple[SpatialRow, ...] = ()


class RowStrategy(ABC):
    """
    Base class for row strategies.

    positional strategies work on spatial rows; their output is kept out
    of the yield checks that gate the spatial rescue.
    """

    name: str = "base"
    positional: bool = False

    def __init__(self):
        self.logger = logging.getLogger(self.__class__.__name__)

    def applies(self, context: ParseContext, earlier: Dict[str, List[ParsedRow]]) -> bool:
        """Whether to run on this document, given rows of the strategies run before."""
        return True

    @abstractmethod
    def parse(self, context: ParseContext) -> List[ParsedRow]:
        """Return candidate rows for the document."""


def _clean_lines(text: str) -> List[str]:
    return [line for line in (clean_whitespace(raw) for raw in text.split("\n")) if line]


# ============================================================================
# LIFELABS TABLE
# ============================================================================

_LIFELABS_STRICT_ROW = re.compile(
    r"^([A-Za-zÀ-ž][A-Za-zÀ-ž0-9(),.%+\-/ ]{1,90}?)\s+(?:(?:A|H|L)\s+)?([<>≤≥]?\s*-?\d+(?:[.,]\d+)?)\s+"
    r"((?:[<>≤≥]\s*-?\d+(?:[.,]\d+)?|-?\d+(?:[.,]\d+)?\s*[-–]\s*-?\d+(?:[.,]\d+)?))\s+([A-Za-z%µμ0-9*^/.\-]+)$",
    I,
)


class LifeLabsTableStrategy(RowStrategy):
    """Rows between a "Test Flag Result Reference Range - Units" header and the table end."""

    name = "lifelabs"

    def applies(self, context: ParseContext, earlier: Dict[str, List[ParsedRow]]) -> bool:
        return bool(LIFELABS_HEADER_PATTERN.search(context.text))

    def parse(self, context: ParseContext) -> List[ParsedRow]:
        rows: List[ParsedRow] = []
        in_table = False

        for line in _clean_lines(context.text):
            if LIFELABS_HEADER_PATTERN.search(line):
                in_table = True
                continue
            if not in_table:
                continue
            if LIFELABS_END_PATTERN.search(line):
                in_table = False
                continue
            if not re.search(r"\d", line):
                continue
            if LIFELABS_CONTINUATION_PATTERN.search(line) or URL_PATTERN.search(line):
                continue

            strict = self._parse_strict(line)
            if strict:
                rows.append(strict)
                continue

            parsed = parse_single_row(line, 0.77, context.profile)
            if parsed and should_keep_parsed_row(parsed, context.profile):
                rows.append(parsed)

        return rows

    def _parse_strict(self, line: str):
        match = _LIFELABS_STRICT_ROW.match(line)
        if not match:
            return None

        marker_name = sanitize_marker_name(match.group(1))
        value = safe_number(match.group(2))
        unit = normalize_unit(match.group(4))
        reference = extract_reference_and_unit(f"{match.group(3)} {match.group(4)}")
        if value is None or not is_acceptable_marker_candidate(
            marker_name, unit, reference.reference_min, reference.reference_max, CandidateSource.FALLBACK
        ):
            return None

        return ParsedRow(
            marker_name=marker_name,
            value=value,
            unit=unit,
            reference_min=reference.reference_min,
            reference_max=reference.reference_max,
            confidence=0.8,
        )


# ============================================================================
# COLUMN SPLIT
# ============================================================================

class ColumnSplitStrategy(RowStrategy):
    """Lines whose cells are separated by runs of 2+ spaces."""

    name = "column"

    def parse(self, context: ParseContext) -> List[ParsedRow]:
        rows: List[ParsedRow] = []
        for raw_line in context.text.split("\n"):
            line = raw_line.replace("\u00a0", " ").strip()
            if not line:
                continue

            columns = [column for column in (clean_whitespace(part) for part in re.split(r"\s{2,}", line)) if column]
            if len(columns) < 2:
                continue

            merged = clean_whitespace(f"{columns[0]} {' '.join(columns[1:])}")
            parsed = parse_single_row(merged, 0.74, context.profile)
            if parsed and should_keep_parsed_row(parsed, context.profile):
                rows.append(parsed)
        return rows


# ============================================================================
# LINE BY LINE
# ============================================================================

class LineStrategy(RowStrategy):
    """
    One row per line, with lookahead for labels wrapped over two lines
    ("Sex Hormone" / "Binding Globulin" / "35 nmol/L 18 - 54") and results
    printed on the line after their label.
    """

    name = "line"

    def parse(self, context: ParseContext) -> List[ParsedRow]:
        profile = context.profile
        lines = _clean_lines(context.text)
        rows: List[ParsedRow] = []
        consumed = set()

        for index, line in enumerate(lines):
            if index in consumed:
                continue
            if looks_like_non_result_line(line):
                continue
            if profile.line_noise_pattern is not None and profile.line_noise_pattern.search(line):
                continue

            direct = parse_single_row(line, 0.68, profile)
            if direct and should_keep_parsed_row(direct, profile):
                rows.append(direct)
                continue

            next_line = lines[index + 1] if index + 1 < len(lines) else ""
            if not next_line:
                continue

            third_line = lines[index + 2] if index + 2 < len(lines) else ""
            if third_line and not _has_digit(line) and not _has_digit(next_line) and _has_digit(third_line):
                combined_marker = sanitize_marker_name(f"{line} {next_line}")
                if not looks_like_noise_marker(combined_marker):
                    three_line = parse_single_row(f"{combined_marker} {third_line}", 0.63, profile)
                    if three_line and should_keep_parsed_row(three_line, profile):
                        rows.append(three_line)
                        consumed.update((index + 1, index + 2))
                        continue

            two_line = parse_two_line_row(line, next_line, profile)
            if two_line and should_keep_parsed_row(two_line, profile):
                rows.append(two_line)
                consumed.add(index + 1)

        return rows


def _has_digit(value: str) -> bool:
    return bool(re.search(r"\d", value))


# ============================================================================
# INDEXED ROWS
# ============================================================================

_INDEXED_ROW_PATTERN = re.compile(
    r"\b\d{1,3}\/\d{2,3}\s+A?\s+([\s\S]*?)(?=\b\d{1,3}\/\d{2,3}\s+A?\s+|$)"
)


class IndexedRowStrategy(RowStrategy):
    """Flattened reports that number their rows "8/58 A <row>"."""

    name = "indexed"

    def parse(self, context: ParseContext) -> List[ParsedRow]:
        normalized = clean_whitespace(context.text)
        rows: List[ParsedRow] = []
        for match in _INDEXED_ROW_PATTERN.finditer(normalized):
            row = parse_single_row(match.group(1), 0.72, context.profile)
            if row:
                rows.append(row)
        return rows


# ============================================================================
# LOOSE ROWS
# ============================================================================

_LOOSE_ROW_PATTERN = re.compile(
    r"([A-Za-zÀ-ž][A-Za-zÀ-ž0-9(),.%+\-/ ]{2,120}?)\s+(?:[A-Z]{2,8}\s+)?(?:[ñò↑↓]\s+)?([<>]?\d+(?:[.,]\d+)?)\s+"
    r"([A-Za-z%µμ/][A-Za-z%µμ/0-9.\-²]*)\s+(?:-\s*(\d+(?:[.,]\d+)?)\s+(\d+(?:[.,]\d+)?)|([<>≤≥])\s*(\d+(?:[.,]\d+)?))"
)


class LooseRowStrategy(RowStrategy):
    """
    Low-precision scan over the whole text as one line. Only runs when
    the line and column strategies found too little.
    """

    name = "loose"

    def applies(self, context: ParseContext, earlier: Dict[str, List[ParsedRow]]) -> bool:
        strict_yield = len(earlier.get(LineStrategy.name, [])) + len(earlier.get(ColumnSplitStrategy.name, []))
        return strict_yield < parser_settings.LOOSE_STRATEGY_MAX_ROWS

    def parse(self, context: ParseContext) -> List[ParsedRow]:
        normalized = clean_whitespace(context.text)
        rows: List[ParsedRow] = []

        for match in _LOOSE_ROW_PATTERN.finditer(normalized):
            marker_name = sanitize_marker_name(match.group(1))
            if looks_like_noise_marker(marker_name):
                continue

            value = safe_number(match.group(2))
            if value is None:
                continue

            reference_min = reference_max = None
            if match.group(4) and match.group(5):
                reference_min = safe_number(match.group(4))
                reference_max = safe_number(match.group(5))

            if match.group(6) and match.group(7):
                bound = safe_number(match.group(7))
                if bound is not None:
                    if match.group(6) in ("<", "≤"):
                        reference_max = bound
                    else:
                        reference_min = bound

            row = ParsedRow(
                marker_name=marker_name,
                value=value,
                unit=normalize_unit(match.group(3)),
                reference_min=reference_min,
                reference_max=reference_max,
                confidence=0.58,
            )
            if should_keep_parsed_row(row, context.profile):
                rows.append(row)

        return rows


# ============================================================================
# KEYWORD RANGE ("Uw waarde / Normale waarde")
# ============================================================================

_SECTION_START = re.compile(r"\bUw metingen\b", I)
_SECTION_END = re.compile(r"\b(?:Uitslagen uit het verleden|Toelichting|Print|Disclaimer)\b", I)
_GLUED_LABEL = re.compile(r"([0-9])(?=(?:Uw waarde:|Normale waarde:|Datum:))")
_KEYWORD_ROW = re.compile(
    r"([A-Za-zÀ-ž][A-Za-zÀ-ž0-9(),.%+\-/ ]{2,140}?)\s+Uw waarde:\s*([<>]?\d+(?:[.,]\d+)?)\s+Normale waarde:\s*"
    r"((?:Hoger dan|Lager dan)\s*-?\d+(?:[.,]\d+)?(?:\s*-\s*(?:Hoger dan|Lager dan)\s*-?\d+(?:[.,]\d+)?)?)",
    I,
)
_BETWEEN_RANGE = re.compile(r"hoger dan\s*(-?\d+(?:[.,]\d+)?)\s*-\s*lager dan\s*(-?\d+(?:[.,]\d+)?)", I)
_REVERSE_RANGE = re.compile(r"lager dan\s*(-?\d+(?:[.,]\d+)?)\s*-\s*hoger dan\s*(-?\d+(?:[.,]\d+)?)", I)
_LOWER_ONLY = re.compile(r"hoger dan\s*(-?\d+(?:[.,]\d+)?)", I)
_UPPER_ONLY = re.compile(r"lager dan\s*(-?\d+(?:[.,]\d+)?)", I)


class KeywordRangeStrategy(RowStrategy):
    """
    Patient-portal layout without units:

        Hemoglobine Uw waarde: 9,1 Normale waarde: Hoger dan 8,5 - Lager dan 11,0

    Enabled by the keyword-range profile only.
    """

    name = "keyword_range"

    def applies(self, context: ParseContext, earlier: Dict[str, List[ParsedRow]]) -> bool:
        return context.profile.enable_keyword_range_parser

    def parse(self, context: ParseContext) -> List[ParsedRow]:
        normalized = clean_whitespace(context.text)
        start = _SECTION_START.search(normalized)
        if not start:
            return []

        section = normalized[start.start():]
        end = _SECTION_END.search(section)
        if end and end.start() > 0:
            section = section[:end.start()]
        section = _GLUED_LABEL.sub(r"\1 ", section)

        rows: List[ParsedRow] = []
        for match in _KEYWORD_ROW.finditer(section):
            marker_name = sanitize_marker_name(match.group(1))
            if looks_like_noise_marker(marker_name):
                continue

            value = safe_number(match.group(2))
            if value is None:
                continue

            reference_min, reference_max = self._parse_reference(clean_whitespace(match.group(3) or ""))
            rows.append(ParsedRow(
                marker_name=marker_name,
                value=value,
                unit="",
                reference_min=reference_min,
                reference_max=reference_max,
                confidence=0.62,
            ))

        return rows

    @staticmethod
    def _parse_reference(reference_text: str):
        reference_min = reference_max = None

        between = _BETWEEN_RANGE.search(reference_text)
        if between:
            reference_min, reference_max = safe_number(between.group(1)), safe_number(between.group(2))
        else:
            reverse = _REVERSE_RANGE.search(reference_text)
            if reverse:
                reference_max, reference_min = safe_number(reverse.group(1)), safe_number(reverse.group(2))

        if reference_min is None:
            lower = _LOWER_ONLY.search(reference_text)
            if lower:
                reference_min = safe_number(lower.group(1))

        if reference_max is None:
            upper = _UPPER_ONLY.search(reference_text)
            if upper:
                reference_max = safe_number(upper.group(1))

        return reference_min, reference_max
