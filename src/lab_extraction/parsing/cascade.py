# ============================================================================
# src/lab_extraction/parsing/cascade.py
# ============================================================================
"""
Parser Cascade

Runs the row strategies over one document, pools their rows and turns
them into a fallback ExtractionDraft:

    profile -> text + history strategies -> (spatial rescue) -> dedupe
            -> confidence / needs_review -> test date

No strategy can fail the extraction: one that raises is logged and
contributes no rows.
"""

import logging
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from ..config import parser_settings, threshold_settings
from ..constants.markers import IMPORTANT_MARKERS
from ..constants.patterns import HORMONE_SIGNAL_PATTERN
from ..core.models import (
    CandidateSource,
    ExtractionDraft,
    ExtractionMeta,
    ExtractionProvider,
    MarkerValue,
    ParsedRow,
    SpatialRow,
)
from ..dates import extract_date_candidate
from ..normalization.catalog import canonicalize_marker
from ..normalization.resolver import normalize_marker_alias_overrides
from ..normalization.sanitizer import is_acceptable_marker_candidate
from ..normalization.units import Measurement, normalize_marker_measurement, raw_measurement_fields
from ..utils.text_normalizer import normalize_lookup_key
from ..utils.values import create_id
from ..validators import check_plausibility
from .profile import detect_parser_profile
from .spatial import HistoryCurrentColumnStrategy, SpatialRowStrategy
from .strategies import (
    ColumnSplitStrategy,
    IndexedRowStrategy,
    KeywordRangeStrategy,
    LifeLabsTableStrategy,
    LineStrategy,
    LooseRowStrategy,
    ParseContext,
    RowStrategy,
)
from ...utils.logging import log_performance

logger = logging.getLogger(__name__)


# ============================================================================
# MARKER IDENTITY / DEDUPE
# ============================================================================

def _key_number(value: Optional[float]) -> str:
    if value is None:
        return ""
    return str(int(value)) if float(value).is_integer() else repr(float(value))


def marker_identity_key(marker: MarkerValue) -> str:
    """canonical|value|unit|min|max. Two markers with the same key are the same result."""
    return "|".join((
        marker.canonical_marker,
        _key_number(marker.value),
        marker.unit,
        _key_number(marker.reference_min),
        _key_number(marker.reference_max),
    ))


def _upsert(by_key: Dict[str, MarkerValue], marker: MarkerValue) -> None:
    key = marker_identity_key(marker)
    existing = by_key.get(key)
    if existing is None or marker.confidence > existing.confidence:
        by_key[key] = marker


def dedupe_rows(rows: Iterable[ParsedRow], overrides: Optional[Mapping[str, str]] = None) -> List[MarkerValue]:
    """
    Canonicalise, unit-normalise and filter parsed rows, one MarkerValue per identity key.

    Rows failing acceptability (on the normalised unit and bounds) or
    draft-wide plausibility are dropped. Important markers get +0.12
    confidence, capped at 1. Alias overrides, when given, take precedence
    over the built-in canonicalisation.
    """
    alias_overrides = normalize_marker_alias_overrides(overrides) if overrides else {}
    by_key: Dict[str, MarkerValue] = {}

    for row in rows:
        canonical = alias_overrides.get(normalize_lookup_key(row.marker_name)) or canonicalize_marker(row.marker_name)
        original = Measurement(row.value, row.unit, row.reference_min, row.reference_max)
        normalized = normalize_marker_measurement(
            canonical, row.value, row.unit, row.reference_min, row.reference_max
        )
        if not is_acceptable_marker_candidate(
            row.marker_name, normalized.unit, normalized.reference_min, normalized.reference_max,
            CandidateSource.FALLBACK
        ):
            continue
        if not check_plausibility(canonical, normalized.unit, normalized.value):
            continue

        confidence = row.confidence
        if canonical in IMPORTANT_MARKERS:
            confidence = min(1.0, confidence + threshold_settings.IMPORTANT_MARKER_CONFIDENCE_BOOST)

        _upsert(by_key, MarkerValue(
            id=create_id(),
            marker=row.marker_name,
            canonical_marker=canonical,
            value=normalized.value,
            unit=normalized.unit,
            reference_min=normalized.reference_min,
            reference_max=normalized.reference_max,
            confidence=confidence,
            **raw_measurement_fields(original, normalized),
        ))

    return list(by_key.values())


def merge_marker_sets(primary: Sequence[MarkerValue], secondary: Sequence[MarkerValue]) -> List[MarkerValue]:
    """Union by identity key; on a tie in key the higher confidence wins, first seen on equal confidence."""
    by_key: Dict[str, MarkerValue] = {}
    for marker in primary:
        _upsert(by_key, marker)
    for marker in secondary:
        _upsert(by_key, marker)
    return list(by_key.values())


def filter_marker_values_for_quality(markers: Iterable[MarkerValue]) -> List[MarkerValue]:
    return [
        marker for marker in markers
        if is_acceptable_marker_candidate(
            marker.marker, marker.unit, marker.reference_min, marker.reference_max, CandidateSource.FALLBACK
        )
        and check_plausibility(marker.canonical_marker, marker.unit, marker.value)
    ]


def count_important_coverage(markers: Iterable[MarkerValue]) -> int:
    """Number of distinct important canonical markers present."""
    return len({marker.canonical_marker for marker in markers if marker.canonical_marker in IMPORTANT_MARKERS})


# ============================================================================
# CASCADE
# ============================================================================

def default_strategies() -> List[RowStrategy]:
    return [
        HistoryCurrentColumnStrategy(),
        LifeLabsTableStrategy(),
        ColumnSplitStrategy(),
        LineStrategy(),
        IndexedRowStrategy(),
        LooseRowStrategy(),
        KeywordRangeStrategy(),
    ]


class ParserCascade:
    """
    Ordered list of row strategies plus a spatial rescue stage.

    The rescue strategy only runs when the pooled non-positional rows
    look thin: too few important markers, too few markers, or too few
    markers per text line.
    """

    def __init__(
        self,
        strategies: Optional[Sequence[RowStrategy]] = None,
        rescue_strategy: Optional[RowStrategy] = None
    ):
        self.strategies = list(strategies) if strategies is not None else default_strategies()
        self.rescue_strategy = rescue_strategy if rescue_strategy is not None else SpatialRowStrategy()
        self.logger = logging.getLogger(self.__class__.__name__)

    def _run(self, strategy: RowStrategy, context: ParseContext) -> List[ParsedRow]:
        try:
            rows = strategy.parse(context)
        except Exception as e:
            self.logger.warning(f"Strategy {strategy.name} failed: {e}", exc_info=True)
            return []
        self.logger.debug(f"Strategy {strategy.name}: {len(rows)} rows")
        return rows

    def should_rescue(self, context: ParseContext, text_markers: Sequence[MarkerValue]) -> bool:
        if not context.spatial_rows:
            return False
        line_count = max(len(context.text.split("\n")), 1)
        return (
            count_important_coverage(text_markers) < 2
            or len(text_markers) < parser_settings.SPATIAL_BOOST_MIN_MARKERS
            or len(text_markers) / line_count < parser_settings.SPATIAL_BOOST_MIN_DENSITY
        )

    def run(self, context: ParseContext, overrides: Optional[Mapping[str, str]] = None) -> List[ParsedRow]:
        """
        Return all candidate rows: positional strategy rows first, then
        text strategy rows in strategy order, then rescue rows.
        """
        results: Dict[str, List[ParsedRow]] = {}
        for strategy in self.strategies:
            if strategy.applies(context, results):
                results[strategy.name] = self._run(strategy, context)

        positional_rows = [row for s in self.strategies if s.positional for row in results.get(s.name, [])]
        text_rows = [row for s in self.strategies if not s.positional for row in results.get(s.name, [])]

        rescue_rows: List[ParsedRow] = []
        if self.should_rescue(context, dedupe_rows(text_rows, overrides)):
            if self.rescue_strategy.applies(context, results):
                rescue_rows = self._run(self.rescue_strategy, context)

        return positional_rows + text_rows + rescue_rows


@log_performance(logger, "fallback_extract")
def fallback_extract(
    text: str,
    file_name: str,
    spatial_rows: Sequence[SpatialRow] = (),
    overrides: Optional[Mapping[str, str]] = None,
    cascade: Optional[ParserCascade] = None
) -> ExtractionDraft:
    """
    Local, heuristic-only extraction of one document.

    Args:
        text: Document text (text layer or OCR)
        file_name: Used for profile detection and the draft
        spatial_rows: Positioned text rows, if the text came from a PDF text layer
        overrides: User alias overrides for canonicalisation
        cascade: Strategy cascade (default: all strategies)

    Returns:
        ExtractionDraft with provider "fallback"
    """
    profile = detect_parser_profile(text, file_name)
    context = ParseContext(text=text, profile=profile, spatial_rows=tuple(spatial_rows))
    rows = (cascade or ParserCascade()).run(context, overrides)
    markers = dedupe_rows(rows, overrides)

    if markers:
        average_confidence = sum(marker.confidence for marker in markers) / len(markers)
        unit_coverage = sum(1 for marker in markers if marker.unit) / len(markers)
        confidence = min(threshold_settings.FALLBACK_MAX_CONFIDENCE, average_confidence * 0.8 + unit_coverage * 0.2)
    else:
        unit_coverage = 0.0
        confidence = 0.1

    important_coverage = count_important_coverage(markers)
    hormone_signal = bool(HORMONE_SIGNAL_PATTERN.search(text))
    needs_review = (
        confidence < threshold_settings.FALLBACK_REVIEW_CONFIDENCE
        or not markers
        or unit_coverage < threshold_settings.UNIT_COVERAGE_REVIEW
        or (hormone_signal and important_coverage < 2)
    )

    logger.info(
        f"Fallback extraction of {file_name}: {len(markers)} markers from {len(rows)} rows, "
        f"confidence {confidence:.2f}, profile {profile.id}"
    )

    return ExtractionDraft(
        source_file_name=file_name,
        test_date=extract_date_candidate(text),
        markers=tuple(markers),
        extraction=ExtractionMeta(
            provider=ExtractionProvider.FALLBACK,
            model=f"fallback-layered:{profile.id}",
            confidence=confidence,
            needs_review=needs_review,
        ),
    )
