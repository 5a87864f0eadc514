# ============================================================================
# tests/unit/test_quality_gate.py
# ============================================================================
"""
Unit tests for the OCR trigger, draft comparison and AI escalation gates
"""

from datetime import date

import pytest

from src.lab_extraction.core.models import RawTextLayout
from src.lab_extraction.quality_gate import (
    choose_better_fallback_draft,
    is_local_draft_good_enough,
    meets_quality_threshold,
    score_fallback_draft,
    should_auto_pdf_rescue,
    should_use_ocr_fallback,
)

TODAY = date(2024, 6, 1)
JUNK = ["Foo", "Bar", "Baz", "Qux", "Quux", "Corge", "Grault", "Garply"]


@pytest.fixture
def hormone_markers(make_marker):
    """Markers with two primary markers among them"""
    def _build(count: int, confidence: float):
        markers = [
            make_marker("Testosterone", confidence=confidence),
            make_marker("SHBG", value=35.0, reference_min=18.0, reference_max=54.0, confidence=confidence),
        ]
        for name in JUNK[:max(0, count - 2)]:
            markers.append(make_marker(name, value=5.0, unit="mg/L", confidence=confidence))
        return markers[:count]

    return _build


class TestQualityThreshold:
    """Test the skip-AI quality floor"""

    def test_three_confident_markers_not_enough(self, make_draft, hormone_markers):
        draft = make_draft(hormone_markers(3, 0.95), confidence=0.95)
        assert not meets_quality_threshold(draft, today=TODAY)

    def test_eight_markers_accepted(self, make_draft, hormone_markers):
        draft = make_draft(hormone_markers(8, 0.75), confidence=0.75)
        assert meets_quality_threshold(draft, today=TODAY)

    def test_today_date_is_not_a_real_date(self, make_draft, hormone_markers):
        """Test today's date counts as the no-date fallback"""
        draft = make_draft(hormone_markers(8, 0.75), confidence=0.75, test_date=TODAY.isoformat())
        assert not meets_quality_threshold(draft, today=TODAY)

    def test_needs_two_primary_markers(self, make_draft, make_marker):
        markers = [make_marker(name, value=5.0, unit="mg/L") for name in JUNK]
        assert not meets_quality_threshold(make_draft(markers, confidence=0.85), today=TODAY)


class TestOCRTrigger:
    """Test when OCR runs on top of the text layer"""

    def test_sparse_text_layer(self, make_draft):
        layout = RawTextLayout(
            text="Lab report page", page_count=2, text_item_count=8, line_count=2, non_whitespace_chars=18
        )
        assert should_use_ocr_fallback(layout, make_draft(confidence=0.1))

    def test_dense_text_layer_with_junk_markers(self, make_draft, make_marker):
        """Test a dense layer does not trigger OCR even with a poor draft"""
        layout = RawTextLayout(
            text="x", page_count=1, text_item_count=500, line_count=60, non_whitespace_chars=3000
        )
        markers = [make_marker(name, value=5.0, unit="mg/L", confidence=0.78) for name in JUNK[:5]]
        assert not should_use_ocr_fallback(layout, make_draft(markers, confidence=0.78))

    def test_good_draft_skips_ocr(self, make_draft, hormone_markers):
        layout = RawTextLayout(text="", page_count=1)
        draft = make_draft(hormone_markers(6, 0.8), confidence=0.8)
        assert not should_use_ocr_fallback(layout, draft)

    def test_broad_draft_without_important_markers_still_checks_layout(self, make_draft, make_marker):
        layout = RawTextLayout(text="", page_count=1)
        markers = [make_marker(name, value=5.0, unit="mg/L") for name in JUNK[:6]]
        assert should_use_ocr_fallback(layout, make_draft(markers, confidence=0.8))


class TestChooseBetter:
    """Test text-layer vs OCR draft comparison"""

    def test_candidate_with_more_markers_wins(self, make_draft, hormone_markers):
        base = make_draft(hormone_markers(2, 0.7), confidence=0.7)
        candidate = make_draft(hormone_markers(5, 0.7), confidence=0.7)
        assert choose_better_fallback_draft(base, candidate) is candidate

    def test_tie_keeps_base(self, make_draft, hormone_markers):
        base = make_draft(hormone_markers(3, 0.7), confidence=0.7)
        candidate = make_draft(hormone_markers(3, 0.7), confidence=0.7)
        assert choose_better_fallback_draft(base, candidate) is base

    def test_noisy_penalty(self, make_draft, make_marker):
        """Test five markers without any important one lose six points"""
        markers = [make_marker(name, value=5.0, unit="mg/L") for name in JUNK[:5]]
        draft = make_draft(markers, confidence=0.5)
        assert score_fallback_draft(draft) == pytest.approx(5 * 2.5 + 5 * 1.5 + 0.5 - 6)


class TestEscalationAdvice:
    """Test the cost-mode and rescue advisories"""

    def test_good_enough_tiers(self, make_draft, make_marker, hormone_markers):
        junk = [make_marker(name, value=5.0, unit="mg/L") for name in JUNK]
        assert is_local_draft_good_enough(make_draft(junk, confidence=0.65))
        assert is_local_draft_good_enough(make_draft(hormone_markers(6, 0.72), confidence=0.72))
        assert is_local_draft_good_enough(make_draft(hormone_markers(4, 0.8), confidence=0.8))
        assert not is_local_draft_good_enough(make_draft(hormone_markers(4, 0.79), confidence=0.79))

    def test_rescue_for_empty_draft_and_thin_text(self, make_draft):
        layout = RawTextLayout.from_text("Page 1")
        assert should_auto_pdf_rescue(make_draft(confidence=0.1), layout)

    def test_any_single_weakness_with_thin_text_rescues(self, make_draft, make_marker):
        """Test enough markers with units still rescue when important markers are missing"""
        markers = [make_marker(name, value=5.0, unit="mg/L") for name in JUNK[:6]]
        layout = RawTextLayout.from_text("Page 1")
        assert should_auto_pdf_rescue(make_draft(markers, confidence=0.8), layout)

    def test_no_rescue_in_ultra_low_cost(self, make_draft):
        assert not should_auto_pdf_rescue(make_draft(confidence=0.1), cost_mode="ultra_low_cost")

    def test_no_rescue_with_rich_ocr_text(self, make_draft):
        ocr_text = "\n".join(f"Line {index} with enough characters to count as real text" for index in range(15))
        assert not should_auto_pdf_rescue(make_draft(confidence=0.1), ocr_text=ocr_text)

    def test_no_rescue_for_good_draft(self, make_draft, hormone_markers):
        draft = make_draft(hormone_markers(6, 0.8), confidence=0.8)
        assert not should_auto_pdf_rescue(draft)
