# ============================================================================
# src/lab_extraction/parsing/spatial.py
# ============================================================================
"""
Positional Row Strategies

Work on SpatialRows from the PDF text layer instead of flattened text:
- SpatialRowStrategy pairs result clusters with nearby label clusters
  (left of the value, same column band, or stacked above it)
- HistoryCurrentColumnStrategy reads the current value under a marker
  heading in multi-column history sheets

Both only ever emit rows for important or spatial-priority markers, and
only with values that survive the strict spatial plausibility check.
"""

import functools
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Pattern, Sequence, Tuple

from ..config import parser_settings
from ..constants.markers import IMPORTANT_MARKERS
from ..constants.patterns import (
    HISTORY_BASELINE_PATTERN,
    HISTORY_FREE_CALC_PATTERN,
    HISTORY_PER_WEEK_PATTERN,
    SPATIAL_PRIORITY_PATTERN,
)
from ..core.models import ParsedRow, SpatialItem, SpatialRow
from ..normalization.catalog import canonicalize_marker
from ..normalization.sanitizer import looks_like_noise_marker, sanitize_marker_name
from ..utils.text_normalizer import clean_whitespace, normalize_unit
from ..utils.values import safe_number
from ..validators import check_spatial_plausibility
from .rows import is_numeric_token, looks_like_non_result_line, parse_single_row, should_keep_parsed_row
from .strategies import ParseContext, RowStrategy

I = re.IGNORECASE


# ============================================================================
# CLUSTERING
# ============================================================================

@dataclass
class SpatialCluster:
    """Adjacent items of one row. x_end is the left edge of the last item."""
    x_start: float
    x_end: float
    text: str

    @property
    def center(self) -> float:
        return (self.x_start + self.x_end) / 2


@dataclass
class _RowBundle:
    row: SpatialRow
    clusters: List[SpatialCluster] = field(default_factory=list)


def spatial_band(x: float) -> int:
    return max(0, int(x // parser_settings.SPATIAL_BAND_WIDTH))


def cluster_spatial_row_items(items: Sequence[SpatialItem]) -> List[SpatialCluster]:
    """Merge items left to right; a gap above SPATIAL_CLUSTER_GAP starts a new cluster."""
    clusters: List[SpatialCluster] = []
    for item in sorted(items, key=lambda candidate: candidate.x):
        text = clean_whitespace(item.text)
        if not text:
            continue

        current = clusters[-1] if clusters else None
        if current is None or item.x - current.x_end > parser_settings.SPATIAL_CLUSTER_GAP:
            clusters.append(SpatialCluster(x_start=item.x, x_end=item.x, text=text))
            continue

        current.text = clean_whitespace(f"{current.text} {text}")
        current.x_end = item.x

    return clusters


_VALUE_WITH_UNIT = re.compile(r"^(?:=|<|>|≤|≥)?\s*-?\d+(?:[.,]\d+)?(?:\s+[A-Za-z%µμ/][A-Za-z0-9%µμ/.\-²]*)?$", I)
_BARE_DATE = re.compile(r"^\d{1,2}\s*[-/]\s*\d{1,2}\s*[-/]\s*\d{2,4}$")
_LETTER = re.compile(r"[A-Za-zÀ-ž]")


def looks_like_marker_label_segment(raw_text: str) -> bool:
    text = clean_whitespace(raw_text)
    if not text or looks_like_noise_marker(text) or looks_like_non_result_line(text):
        return False
    if not _LETTER.search(text):
        return False
    if _VALUE_WITH_UNIT.match(text):
        return False

    parts = text.split(" ")
    if len(parts) > 9:
        return False
    return sum(1 for part in parts if part and is_numeric_token(part)) <= 1


def looks_like_result_segment(raw_text: str) -> bool:
    text = clean_whitespace(raw_text)
    if not text or looks_like_non_result_line(text):
        return False
    if not re.search(r"\d", text):
        return False
    return not _BARE_DATE.match(text)


def _compare_rows(a: SpatialRow, b: SpatialRow) -> float:
    if a.page != b.page:
        return a.page - b.page
    if abs(a.y - b.y) > parser_settings.SPATIAL_Y_GROUP_TOLERANCE:
        return b.y - a.y
    a_x = a.items[0].x if a.items else 0
    b_x = b.items[0].x if b.items else 0
    return a_x - b_x


def order_spatial_rows(rows: Sequence[SpatialRow]) -> List[SpatialRow]:
    """Page ascending, then top to bottom; rows within the y tolerance keep left to right order."""
    return sorted(rows, key=functools.cmp_to_key(_compare_rows))


def _bundle_rows(rows: Sequence[SpatialRow]) -> List[_RowBundle]:
    bundles = [_RowBundle(row, cluster_spatial_row_items(row.items)) for row in order_spatial_rows(rows)]
    return [bundle for bundle in bundles if bundle.clusters]


# ============================================================================
# LABEL / VALUE PAIRING
# ============================================================================

@dataclass(frozen=True)
class _LabelAnchor:
    page: int
    y: float
    x: float
    band: int
    marker: str


class SpatialRowStrategy(RowStrategy):
    """
    Rescue strategy for layouts where labels and values are separate
    text runs. Only invoked when the text strategies came up short.
    """

    name = "spatial"
    positional = True

    def applies(self, context: ParseContext, earlier: Dict[str, List[ParsedRow]]) -> bool:
        return bool(context.spatial_rows)

    def parse(self, context: ParseContext) -> List[ParsedRow]:
        profile = context.profile
        bundles = _bundle_rows(context.spatial_rows)
        anchors = self._label_anchors(bundles)
        active_marker_by_band: Dict[int, str] = {}
        rows: List[ParsedRow] = []

        def push_if_valid(candidate: Optional[ParsedRow]) -> None:
            if candidate is not None and self._is_valid(candidate, profile):
                rows.append(candidate)

        for bundle in bundles:
            row, clusters = bundle.row, bundle.clusters

            for cluster in clusters:
                if not looks_like_marker_label_segment(cluster.text):
                    continue
                marker = sanitize_marker_name(cluster.text)
                if not looks_like_noise_marker(marker):
                    active_marker_by_band[spatial_band(cluster.center)] = marker

            for index, cluster in enumerate(clusters):
                push_if_valid(parse_single_row(cluster.text, 0.7, profile))
                if not looks_like_result_segment(cluster.text):
                    continue

                center_x = cluster.center
                result_band = spatial_band(center_x)
                candidates: Dict[str, None] = {}

                left_label = next(
                    (
                        candidate for candidate in reversed(clusters[:index])
                        if looks_like_marker_label_segment(candidate.text)
                        and center_x - candidate.center <= parser_settings.SPATIAL_LABEL_MAX_DISTANCE
                    ),
                    None,
                )
                if left_label is not None:
                    candidates[sanitize_marker_name(left_label.text)] = None

                for band in (result_band, result_band - 1, result_band + 1):
                    marker = active_marker_by_band.get(band)
                    if marker:
                        candidates[marker] = None

                for anchor in self._band_neighbours(anchors, row, result_band):
                    candidates[anchor.marker] = None
                for anchor in self._stacked_neighbours(anchors, row, center_x):
                    candidates[anchor.marker] = None

                trailing = clusters[index + 1] if index + 1 < len(clusters) else None
                for marker in candidates:
                    if looks_like_noise_marker(marker):
                        continue
                    push_if_valid(parse_single_row(f"{marker} {cluster.text}", 0.78, profile))

                    if (
                        trailing is not None
                        and trailing.x_start - cluster.x_end <= parser_settings.SPATIAL_TRAILING_MAX_GAP
                        and looks_like_result_segment(trailing.text)
                    ):
                        push_if_valid(parse_single_row(f"{marker} {cluster.text} {trailing.text}", 0.79, profile))

        self.logger.debug(f"Spatial pairing produced {len(rows)} candidate rows")
        return rows

    @staticmethod
    def _label_anchors(bundles: List[_RowBundle]) -> List[_LabelAnchor]:
        anchors = []
        for bundle in bundles:
            for cluster in bundle.clusters:
                if not looks_like_marker_label_segment(cluster.text):
                    continue
                marker = sanitize_marker_name(cluster.text)
                if looks_like_noise_marker(marker):
                    continue
                anchors.append(_LabelAnchor(
                    page=bundle.row.page,
                    y=bundle.row.y,
                    x=cluster.center,
                    band=spatial_band(cluster.center),
                    marker=marker,
                ))
        return anchors

    @staticmethod
    def _band_neighbours(anchors: List[_LabelAnchor], row: SpatialRow, result_band: int) -> List[_LabelAnchor]:
        nearby = [
            anchor for anchor in anchors
            if anchor.page == row.page
            and abs(anchor.band - result_band) <= 1
            and abs(anchor.y - row.y) <= parser_settings.SPATIAL_ANCHOR_MAX_DY
        ]
        nearby.sort(key=lambda anchor: abs(anchor.y - row.y) + abs(anchor.band - result_band) * 50)
        return nearby[:3]

    @staticmethod
    def _stacked_neighbours(anchors: List[_LabelAnchor], row: SpatialRow, center_x: float) -> List[_LabelAnchor]:
        nearby = [
            anchor for anchor in anchors
            if anchor.page == row.page and abs(anchor.x - center_x) <= parser_settings.SPATIAL_ANCHOR_MAX_DX
        ]
        nearby.sort(key=lambda anchor: abs(anchor.x - center_x) + abs(anchor.y - row.y) * 0.15)
        return nearby[:2]

    @staticmethod
    def _is_valid(candidate: ParsedRow, profile) -> bool:
        if not should_keep_parsed_row(candidate, profile):
            return False

        canonical = canonicalize_marker(candidate.marker_name)
        if canonical not in IMPORTANT_MARKERS and not SPATIAL_PRIORITY_PATTERN.search(candidate.marker_name):
            return False

        tokens = [token for token in candidate.marker_name.lower().split() if token]
        if len(tokens) >= 4 and len(set(tokens)) <= 2:
            return False

        if not check_spatial_plausibility(canonical, candidate.unit, candidate.value):
            return False
        return 0 < candidate.value <= 10000


# ============================================================================
# HISTORY SHEETS
# ============================================================================

@dataclass(frozen=True)
class HistoryMarkerConfig:
    canonical_marker: str
    marker_name: str
    heading_pattern: Pattern
    value_reject_pattern: Pattern
    allowed_units: Tuple[str, ...]
    x_tolerance: float
    reject_heading_pattern: Optional[Pattern] = None


HISTORY_MARKER_CONFIGS: Tuple[HistoryMarkerConfig, ...] = (
    HistoryMarkerConfig(
        canonical_marker="Testosterone",
        marker_name="Testosterone (Total)",
        heading_pattern=re.compile(r"\btestosterone\b", I),
        reject_heading_pattern=re.compile(r"\b(?:free|calculated|bioavailable)\b", I),
        value_reject_pattern=re.compile(
            r"\b(?:range|ref|baseline|per\s+week|assay|calculator|bioavailable|balance|https?:\/\/|www\.)\b", I
        ),
        allowed_units=("nmol/L", "ng/dL", "ng/mL"),
        x_tolerance=95,
    ),
    HistoryMarkerConfig(
        canonical_marker="Free Testosterone",
        marker_name="Free Testosterone",
        heading_pattern=re.compile(r"\b(?:free\s+testosterone|testosterone\s*,?\s*free)\b", I),
        reject_heading_pattern=re.compile(r"\b(?:calculated|bioavailable)\b", I),
        value_reject_pattern=re.compile(
            r"\b(?:range|ref|baseline|per\s+week|calculator|bioavailable|balance|https?:\/\/|www\.)\b", I
        ),
        allowed_units=("pmol/L", "ng/dL", "pg/mL", "nmol/L"),
        x_tolerance=95,
    ),
    HistoryMarkerConfig(
        canonical_marker="SHBG",
        marker_name="SHBG",
        heading_pattern=re.compile(r"\bshbg\b", I),
        value_reject_pattern=re.compile(r"\b(?:range|ref|baseline|per\s+week|calculator|https?:\/\/|www\.)\b", I),
        allowed_units=("nmol/L",),
        x_tolerance=82,
    ),
)

# "38.1 = 1098 ng/dL": nmol/L value followed by its ng/dL conversion
_TESTOSTERONE_EQUATION = re.compile(r"(-?\d+(?:[.,]\d+)?)\s*=\s*(-?\d+(?:[.,]\d+)?)\s*(ng\/dL)", I)
_VALUE_UNIT_PAIR = re.compile(
    r"([<>≤≥]?\s*-?\d+(?:[.,]\d+)?)\s*(nmol\/L|pmol\/L|ng\/dL|pg\/mL|ng\/mL|mIU\/mL|IU\/L|%|L\/L)", I
)
_TESTOSTERONE_NG_DL_PER_NMOL_L = 28.84


def looks_like_history_sheet(text: str) -> bool:
    return bool(
        HISTORY_BASELINE_PATTERN.search(text)
        and HISTORY_PER_WEEK_PATTERN.search(text)
        and HISTORY_FREE_CALC_PATTERN.search(text)
    )


def unit_priority_score(unit: str, allowed_units: Sequence[str]) -> int:
    normalized = normalize_unit(unit)
    for rank, allowed in enumerate(allowed_units):
        if normalize_unit(allowed) == normalized:
            return max(0, (len(allowed_units) - rank) * 14)
    return -40


class HistoryCurrentColumnStrategy(RowStrategy):
    """
    Tracking sheets list every draw in columns under one heading per
    marker ("Testosterone", "Free Testosterone", "SHBG"). The value
    closest to the top of the page under each heading is the current one.
    """

    name = "history"
    positional = True

    def applies(self, context: ParseContext, earlier: Dict[str, List[ParsedRow]]) -> bool:
        return bool(context.spatial_rows) and looks_like_history_sheet(context.text)

    def parse(self, context: ParseContext) -> List[ParsedRow]:
        bundles = _bundle_rows(context.spatial_rows)
        rows = []
        for config in HISTORY_MARKER_CONFIGS:
            best = self._best_for(config, bundles, context)
            if best is not None:
                rows.append(best)
        return rows

    @staticmethod
    def _heading_x(config: HistoryMarkerConfig, bundles: List[_RowBundle]) -> Optional[float]:
        heading_xs = []
        for bundle in bundles:
            for cluster in bundle.clusters:
                heading = clean_whitespace(cluster.text)
                if not heading or re.search(r"\d", heading):
                    continue
                if not config.heading_pattern.search(heading):
                    continue
                if config.reject_heading_pattern is not None and config.reject_heading_pattern.search(heading):
                    continue
                if looks_like_noise_marker(heading):
                    continue
                heading_xs.append(cluster.center)

        if not heading_xs:
            return None
        heading_xs.sort()
        return heading_xs[len(heading_xs) // 2]

    def _best_for(
        self,
        config: HistoryMarkerConfig,
        bundles: List[_RowBundle],
        context: ParseContext
    ) -> Optional[ParsedRow]:
        heading_x = self._heading_x(config, bundles)
        if heading_x is None:
            return None

        best: Optional[ParsedRow] = None
        best_score = float("-inf")

        for bundle in bundles:
            for cluster in bundle.clusters:
                text = clean_whitespace(cluster.text)
                if not text or not re.search(r"\d", text):
                    continue
                if config.value_reject_pattern.search(text):
                    continue
                if abs(cluster.center - heading_x) > config.x_tolerance:
                    continue

                if config.canonical_marker == "Testosterone":
                    inferred = self._from_equation(config, text)
                    if inferred is not None and bundle.row.y + 45 > best_score:
                        best, best_score = inferred, bundle.row.y + 45

                for match in _VALUE_UNIT_PAIR.finditer(text):
                    value = safe_number(re.sub(r"\s+", "", match.group(1)))
                    unit = normalize_unit(match.group(2))
                    if value is None:
                        continue
                    if not any(normalize_unit(allowed) == unit for allowed in config.allowed_units):
                        continue
                    if not check_spatial_plausibility(config.canonical_marker, unit, value):
                        continue

                    candidate = ParsedRow(
                        marker_name=config.marker_name,
                        value=value,
                        unit=unit,
                        reference_min=None,
                        reference_max=None,
                        confidence=0.89,
                    )
                    if not should_keep_parsed_row(candidate, context.profile):
                        continue

                    score = bundle.row.y + unit_priority_score(unit, config.allowed_units)
                    if score > best_score:
                        best, best_score = candidate, score

        if best is not None:
            self.logger.debug(f"History column {config.marker_name}: {best.value} {best.unit}")
        return best

    @staticmethod
    def _from_equation(config: HistoryMarkerConfig, text: str) -> Optional[ParsedRow]:
        match = _TESTOSTERONE_EQUATION.search(text)
        if not match:
            return None

        left = safe_number(match.group(1))
        right = safe_number(match.group(2))
        if left is None or right is None or right == 0:
            return None
        if abs(left * _TESTOSTERONE_NG_DL_PER_NMOL_L - right) / right >= 0.08:
            return None

        return ParsedRow(
            marker_name=config.marker_name,
            value=left,
            unit="nmol/L",
            reference_min=None,
            reference_max=None,
            confidence=0.9,
        )
