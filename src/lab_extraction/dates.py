# ============================================================================
# src/lab_extraction/dates.py
# ============================================================================
"""
Test Date Extraction

Finds the sample collection date of a report, not its print date.

Every date on a line is scored by what the line says about it:
    collected / sample draw label    +8
    arrival / received label         +4
    later of two dates on "Datum:"   +6
    collection hint on the line      +5
    receipt hint on the line         +2
    report / print date line         -3

Fallbacks when nothing scores: labelled priority patterns on the
flattened text, the most frequent date, a bare ISO date, today.
"""

import logging
import re
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Dict, Iterator, List, Optional

from .constants.patterns import (
    ARRIVAL_LABEL_PATTERN,
    COLLECTED_LABEL_PATTERN,
    DATE_CONTEXT_HINT_PATTERN,
    DATUM_LABEL_PATTERN,
    DMY_DATE_PATTERN,
    ISO_DATE_PATTERN,
    PRIORITY_ARRIVAL_DATE_PATTERN,
    PRIORITY_COLLECTION_DATE_PATTERN,
    RECEIPT_CONTEXT_PATTERN,
    REPORT_CONTEXT_PATTERN,
    YMD_DATE_PATTERN,
)
from .utils.text_normalizer import clean_whitespace

logger = logging.getLogger(__name__)

EARLIEST_LAB_DATE = date(1990, 1, 1)
_ISO_SHAPE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def _build_date(year: int, month: int, day: int) -> Optional[str]:
    if year < 1900 or year > 2100:
        return None
    try:
        return date(year, month, day).isoformat()
    except ValueError:
        return None


def to_iso_date(day: str, month: str, year: str) -> Optional[str]:
    """
    Day-first date parts to ISO. Two-digit years: 70-99 -> 19xx, else 20xx.

    Returns None for impossible dates (31-02-2024) and years outside 1900-2100.
    """
    try:
        d, m, y = int(day), int(month), int(year)
    except (TypeError, ValueError):
        return None

    if len(year) == 2:
        y += 1900 if y >= 70 else 2000
    return _build_date(y, m, d)


def to_iso_ymd(year: str, month: str, day: str) -> Optional[str]:
    try:
        return _build_date(int(year), int(month), int(day))
    except (TypeError, ValueError):
        return None


def is_plausible_lab_date(iso: str, today: Optional[date] = None) -> bool:
    """ISO date between 1990-01-01 and tomorrow."""
    if not _ISO_SHAPE.match(iso or ""):
        return False
    latest = (today or date.today()) + timedelta(days=1)
    return EARLIEST_LAB_DATE.isoformat() <= iso <= latest.isoformat()


def _iter_dates(text: str, today: Optional[date] = None) -> Iterator[str]:
    for match in YMD_DATE_PATTERN.finditer(text):
        iso = to_iso_ymd(*match.groups())
        if iso and is_plausible_lab_date(iso, today):
            yield iso

    for match in DMY_DATE_PATTERN.finditer(text):
        iso = to_iso_date(*match.groups())
        if iso and is_plausible_lab_date(iso, today):
            yield iso


def collect_all_dates(text: str, today: Optional[date] = None) -> List[str]:
    """Plausible dates in order of appearance (year-first forms first), without duplicates."""
    return list(dict.fromkeys(_iter_dates(text, today)))


# ============================================================================
# CONTEXT SCORING
# ============================================================================

@dataclass
class DateScore:
    score: int
    count: int
    first_index: int


class _DateScoreboard:
    def __init__(self, today: Optional[date]):
        self.today = today
        self.scores: Dict[str, DateScore] = {}

    def add(self, iso: str, weight: int, line_index: int) -> None:
        if not is_plausible_lab_date(iso, self.today):
            return
        existing = self.scores.get(iso)
        if existing is None:
            self.scores[iso] = DateScore(weight, 1, line_index)
            return
        existing.score += weight
        existing.count += 1
        existing.first_index = min(existing.first_index, line_index)

    def winner(self) -> Optional[str]:
        if not self.scores:
            return None
        # score desc, count desc, earliest line, then the later date
        ranked = sorted(self.scores.items(), key=lambda item: item[0], reverse=True)
        ranked.sort(key=lambda item: (-item[1].score, -item[1].count, item[1].first_index))
        return ranked[0][0]


def _extract_date_by_context(text: str, today: Optional[date]) -> Optional[str]:
    lines = [line for line in (clean_whitespace(raw) for raw in text.split("\n")) if line]
    board = _DateScoreboard(today)

    for index, line in enumerate(lines):
        for pattern, weight in ((COLLECTED_LABEL_PATTERN, 8), (ARRIVAL_LABEL_PATTERN, 4)):
            for match in pattern.finditer(line):
                chunk_dates = collect_all_dates(match.group(1), today)
                if chunk_dates:
                    board.add(chunk_dates[0], weight, index)

        line_dates = collect_all_dates(line, today)
        if not line_dates:
            continue

        if DATUM_LABEL_PATTERN.search(line) and len(line_dates) >= 2:
            board.add(max(line_dates), 6, index)
            continue

        if DATE_CONTEXT_HINT_PATTERN.search(line):
            weight = 5
        elif RECEIPT_CONTEXT_PATTERN.search(line):
            weight = 2
        elif REPORT_CONTEXT_PATTERN.search(line):
            weight = -3
        else:
            continue
        for iso in line_dates:
            board.add(iso, weight, index)

    return board.winner()


def _most_frequent_date(text: str, today: Optional[date]) -> Optional[str]:
    counts: Dict[str, int] = {}
    for iso in _iter_dates(text, today):
        counts[iso] = counts.get(iso, 0) + 1
    if not counts:
        return None
    return max(counts.items(), key=lambda item: (item[1], item[0]))[0]


def extract_date_candidate(text: str, today: Optional[date] = None) -> str:
    """
    Best guess of the sample collection date, as YYYY-MM-DD.

    Args:
        text: Report text
        today: Reference day for the "not in the future" check and the last fallback

    Returns:
        ISO date; today's date when the text holds no usable date
    """
    from_context = _extract_date_by_context(text, today)
    if from_context:
        return from_context

    normalized = clean_whitespace(text)
    for pattern in (PRIORITY_COLLECTION_DATE_PATTERN, PRIORITY_ARRIVAL_DATE_PATTERN):
        match = pattern.search(normalized)
        if match:
            found = to_iso_date(*match.groups())
            if found:
                return found

    frequent = _most_frequent_date(text, today)
    if frequent:
        return frequent

    iso = ISO_DATE_PATTERN.search(normalized)
    if iso:
        return re.sub(r"[/.]", "-", re.sub(r"\s+", "", iso.group(0)))

    logger.debug("No test date found, falling back to today")
    return (today or date.today()).isoformat()
