# ============================================================================
# src/lab_extraction/quality_gate.py
# ============================================================================
"""
Quality Gate & Escalation Policy

Decides per document how far extraction escalates:
- should_use_ocr_fallback: is the text layer too thin to trust?
- choose_better_fallback_draft: text-layer draft vs OCR draft
- meets_quality_threshold: may the local draft skip the AI pass?
- is_local_draft_good_enough / should_auto_pdf_rescue: advisory signals
  for callers that offer a more expensive rescue

All functions are pure; thresholds come from threshold_settings.
"""

import re
from datetime import date
from typing import Optional

from .config import threshold_settings
from .constants.markers import PRIMARY_MARKERS
from .core.models import ExtractionDraft, RawTextLayout
from .parsing.cascade import count_important_coverage

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

ULTRA_LOW_COST = "ultra_low_cost"


def should_use_ocr_fallback(layout: RawTextLayout, draft: ExtractionDraft) -> bool:
    """
    Whether to run OCR on top of the text layer.

    A dense draft (enough markers, confident, with important markers
    among them) never triggers OCR. Otherwise OCR runs when the text
    layer has few items, or few characters and few lines, for its page
    count.
    """
    marker_count = len(draft.markers)
    important = count_important_coverage(draft.markers)
    broad_but_low_coverage = marker_count >= 5 and important < 2
    if (
        marker_count >= threshold_settings.OCR_SKIP_MIN_MARKERS
        and draft.extraction.confidence >= threshold_settings.OCR_SKIP_MIN_CONFIDENCE
        and not broad_but_low_coverage
    ):
        return False

    pages = layout.page_count
    sparse_items = layout.text_item_count < max(40, pages * 18)
    sparse_chars = layout.non_whitespace_chars < max(260, pages * 120)
    sparse_lines = layout.line_count < max(16, pages * 8)
    return sparse_items or (sparse_chars and sparse_lines)


def score_fallback_draft(draft: ExtractionDraft) -> float:
    marker_count = len(draft.markers)
    unit_count = sum(1 for marker in draft.markers if marker.unit)
    important = count_important_coverage(draft.markers)
    noisy_penalty = 6 if marker_count >= 5 and important == 0 else 0
    return marker_count * 2.5 + unit_count * 1.5 + important * 4 + draft.extraction.confidence - noisy_penalty


def choose_better_fallback_draft(base: ExtractionDraft, candidate: ExtractionDraft) -> ExtractionDraft:
    """The candidate replaces the base only when it scores strictly higher."""
    return candidate if score_fallback_draft(candidate) > score_fallback_draft(base) else base


def meets_quality_threshold(draft: ExtractionDraft, today: Optional[date] = None) -> bool:
    """
    Local draft is good enough to skip the AI pass.

    Needs enough markers, enough confidence, at least two distinct
    primary markers and a real test date (ISO and not today, since today
    is the "no date found" fallback).
    """
    primary = {marker.canonical_marker for marker in draft.markers if marker.canonical_marker in PRIMARY_MARKERS}
    today_iso = (today or date.today()).isoformat()
    has_valid_date = bool(_ISO_DATE.match(draft.test_date or "")) and draft.test_date != today_iso

    return (
        len(draft.markers) >= threshold_settings.QUALITY_MIN_MARKERS
        and draft.extraction.confidence >= threshold_settings.QUALITY_MIN_CONFIDENCE
        and len(primary) >= threshold_settings.QUALITY_MIN_PRIMARY_MARKERS
        and has_valid_date
    )


def is_local_draft_good_enough(draft: ExtractionDraft) -> bool:
    marker_count = len(draft.markers)
    confidence = draft.extraction.confidence
    important = count_important_coverage(draft.markers)

    if marker_count >= 8 and confidence >= 0.65:
        return True
    if marker_count >= 6 and confidence >= 0.72 and important >= 2:
        return True
    return marker_count >= 4 and confidence >= 0.80 and important >= 2


def _is_weak_ocr_text(ocr_text: str) -> bool:
    non_whitespace = sum(1 for char in ocr_text if not char.isspace())
    lines = sum(1 for line in ocr_text.split("\n") if line.strip())
    return (
        non_whitespace < threshold_settings.AUTO_RESCUE_WEAK_OCR_CHARS
        or lines < threshold_settings.AUTO_RESCUE_WEAK_OCR_LINES
    )


def should_auto_pdf_rescue(
    draft: ExtractionDraft,
    layout: Optional[RawTextLayout] = None,
    ocr_text: str = "",
    cost_mode: str = "balanced"
) -> bool:
    """
    Advisory: the draft is poor and the OCR text gives little to work
    with, so a whole-PDF AI rescue is worth offering. Never in
    ultra_low_cost mode.

    The draft counts as poor when any one of these holds: few markers,
    low unit coverage, fewer than two important markers. A poor draft
    is only advised for rescue when the OCR text is also weak (few
    characters or few lines).

    The text layer is used as context when no OCR text was produced.
    """
    if cost_mode == ULTRA_LOW_COST:
        return False

    markers = draft.markers
    unit_coverage = sum(1 for marker in markers if marker.unit) / len(markers) if markers else 0.0
    poor_draft = (
        len(markers) <= threshold_settings.AUTO_RESCUE_MAX_MARKERS
        or unit_coverage < threshold_settings.AUTO_RESCUE_MIN_UNIT_COVERAGE
        or count_important_coverage(markers) < 2
    )
    if not poor_draft:
        return False

    context_text = ocr_text or (layout.text if layout is not None else "")
    return _is_weak_ocr_text(context_text)
