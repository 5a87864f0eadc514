# ============================================================================
# src/lab_extraction/diff.py
# ============================================================================
"""
Extraction Diff

Side-by-side comparison of a local draft and an AI draft for review.
Markers are matched by canonical marker; within one draft the row with
the higher confidence represents the marker. Values are compared as the
report printed them (raw_* fields) when available, so a unit
normalisation on one side does not show up as a change.
"""

from typing import Dict, List, Optional

from .constants.markers import UNKNOWN_MARKER
from .constants.warning_codes import is_known_warning_code
from .core.models import (
    ChangedMarker,
    DiffSnapshot,
    DraftSummary,
    ExtractionDiffSummary,
    ExtractionDraft,
    MarkerValue,
)

NUMBER_EPSILON = 1e-7


def _snapshot(marker: MarkerValue) -> DiffSnapshot:
    return DiffSnapshot(
        marker=marker.marker,
        canonical_marker=marker.canonical_marker,
        value=marker.raw_value if marker.raw_value is not None else marker.value,
        unit=marker.raw_unit if marker.raw_unit is not None else marker.unit,
        reference_min=marker.raw_reference_min if marker.raw_reference_min is not None else marker.reference_min,
        reference_max=marker.raw_reference_max if marker.raw_reference_max is not None else marker.reference_max,
        confidence=marker.confidence,
    )


def _marker_map(draft: ExtractionDraft) -> Dict[str, DiffSnapshot]:
    snapshots: Dict[str, DiffSnapshot] = {}
    for marker in draft.markers:
        key = marker.canonical_marker or marker.marker or UNKNOWN_MARKER
        snapshot = _snapshot(marker)
        existing = snapshots.get(key)
        if existing is None or snapshot.confidence > existing.confidence:
            snapshots[key] = snapshot
    return snapshots


def _same_number(left: Optional[float], right: Optional[float]) -> bool:
    if left is None or right is None:
        return left is right
    return abs(left - right) < NUMBER_EPSILON


def changed_fields(local: DiffSnapshot, ai: DiffSnapshot) -> List[str]:
    """Names (camelCase, as serialised) of the fields that differ."""
    fields = []
    if local.marker != ai.marker:
        fields.append("marker")
    if not _same_number(local.value, ai.value):
        fields.append("value")
    if local.unit != ai.unit:
        fields.append("unit")
    if not _same_number(local.reference_min, ai.reference_min):
        fields.append("referenceMin")
    if not _same_number(local.reference_max, ai.reference_max):
        fields.append("referenceMax")
    if not _same_number(local.confidence, ai.confidence):
        fields.append("confidence")
    return fields


def _warning_codes(draft: ExtractionDraft) -> tuple:
    codes = list(draft.extraction.warnings)
    if draft.extraction.warning_code:
        codes.append(draft.extraction.warning_code)
    return tuple(code for code in dict.fromkeys(codes) if is_known_warning_code(code))


def _summary(draft: ExtractionDraft) -> DraftSummary:
    return DraftSummary(
        marker_count=len(draft.markers),
        confidence=draft.extraction.confidence,
        warnings=_warning_codes(draft),
    )


def build_extraction_diff_summary(local_draft: ExtractionDraft, ai_draft: ExtractionDraft) -> ExtractionDiffSummary:
    """
    Compare two drafts of the same document.

    Swapping the arguments swaps added/removed and local/ai in every
    changed entry; the set of changed markers stays the same.
    """
    local_map = _marker_map(local_draft)
    ai_map = _marker_map(ai_draft)

    added: List[DiffSnapshot] = []
    removed: List[DiffSnapshot] = []
    changed: List[ChangedMarker] = []

    for key in sorted(set(local_map) | set(ai_map), key=lambda value: (value.lower(), value)):
        local = local_map.get(key)
        ai = ai_map.get(key)

        if local is None:
            added.append(ai)
        elif ai is None:
            removed.append(local)
        else:
            fields = changed_fields(local, ai)
            if fields:
                changed.append(ChangedMarker(key=key, local=local, ai=ai, changed_fields=tuple(fields)))

    test_date_changed = local_draft.test_date != ai_draft.test_date
    return ExtractionDiffSummary(
        local=_summary(local_draft),
        ai=_summary(ai_draft),
        local_test_date=local_draft.test_date,
        ai_test_date=ai_draft.test_date,
        test_date_changed=test_date_changed,
        added=tuple(added),
        removed=tuple(removed),
        changed=tuple(changed),
        has_changes=test_date_changed or bool(added or removed or changed),
    )
