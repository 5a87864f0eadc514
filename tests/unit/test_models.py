# ============================================================================
# tests/unit/test_models.py
# ============================================================================
"""
Unit tests for the extraction data model
"""

import dataclasses

import pytest

from src.lab_extraction.core.models import (
    AbnormalFlag,
    EscalationState,
    ExtractionProvider,
    RawTextLayout,
)


class TestMarkerValue:
    """Test derived and serialised marker fields"""

    @pytest.mark.parametrize("value,expected", [
        (5.0, AbnormalFlag.LOW),
        (31.0, AbnormalFlag.HIGH),
        (18.2, AbnormalFlag.NORMAL),
        (8.0, AbnormalFlag.NORMAL),
    ])
    def test_abnormal_from_range(self, make_marker, value, expected):
        assert make_marker(value=value).abnormal == expected

    def test_abnormal_without_range(self, make_marker):
        assert make_marker(reference_min=None, reference_max=None).abnormal == AbnormalFlag.UNKNOWN

    def test_one_sided_range(self, make_marker):
        assert make_marker(value=3.0, reference_min=None, reference_max=5.0).abnormal == AbnormalFlag.NORMAL
        assert make_marker(value=6.0, reference_min=None, reference_max=5.0).abnormal == AbnormalFlag.HIGH

    def test_abnormal_follows_value_changes(self, make_marker):
        """Test the flag is recomputed, never stored"""
        marker = make_marker(value=18.2)
        marker.value = 40.0
        assert marker.abnormal == AbnormalFlag.HIGH

    def test_to_dict_camel_case(self, make_marker):
        data = make_marker(raw_value=524.0, raw_unit="ng/dL").to_dict()

        assert data["canonicalMarker"] == "Testosterone"
        assert data["referenceMin"] == 8.0
        assert data["abnormal"] == "normal"
        assert data["rawValue"] == 524.0
        assert data["rawUnit"] == "ng/dL"
        assert "rawReferenceMin" not in data
        assert "isCalculated" not in data

    def test_calculated_flag_serialised(self, make_marker):
        assert make_marker("Free Testosterone", value=0.42, is_calculated=True).to_dict()["isCalculated"] is True


class TestExtractionDraft:
    """Test immutable draft updates"""

    def test_with_extraction_returns_copy(self, make_draft):
        draft = make_draft(confidence=0.5)
        updated = draft.with_extraction(needs_review=True, escalation=EscalationState.OCR_BOOSTED)

        assert updated is not draft
        assert draft.extraction.needs_review is False
        assert updated.extraction.needs_review is True
        assert updated.extraction.escalation == EscalationState.OCR_BOOSTED

    def test_draft_is_frozen(self, make_draft):
        with pytest.raises(dataclasses.FrozenInstanceError):
            make_draft().test_date = "2020-01-01"

    def test_with_warning_keeps_first_code(self, make_draft):
        draft = make_draft().with_warning("PDF_OCR_PARTIAL").with_warning("PDF_UNKNOWN_LAYOUT")

        assert draft.extraction.warnings == ("PDF_OCR_PARTIAL", "PDF_UNKNOWN_LAYOUT")
        assert draft.extraction.warning_code == "PDF_OCR_PARTIAL"

    def test_with_warning_dedupes(self, make_draft):
        draft = make_draft().with_warning("PDF_OCR_PARTIAL")
        assert draft.with_warning("PDF_OCR_PARTIAL") is draft

    def test_to_dict_shape(self, make_draft, make_marker):
        data = make_draft([make_marker()], confidence=0.72, provider=ExtractionProvider.AI).to_dict()

        assert set(data) == {"sourceFileName", "testDate", "markers", "extraction"}
        assert data["extraction"] == {
            "provider": "ai",
            "model": "fallback-layered:adaptive",
            "confidence": 0.72,
            "needsReview": False,
        }
        assert len(data["markers"]) == 1

    def test_warnings_serialised_when_present(self, make_draft):
        data = make_draft().with_warning("PDF_LOW_CONFIDENCE_LOCAL").to_dict()["extraction"]

        assert data["warnings"] == ["PDF_LOW_CONFIDENCE_LOCAL"]
        assert data["warningCode"] == "PDF_LOW_CONFIDENCE_LOCAL"


def test_layout_from_text_counts():
    layout = RawTextLayout.from_text("Hemoglobin 9.1 mmol/L\n\nFerritin 85 ug/L\n", page_count=2)

    assert layout.page_count == 2
    assert layout.line_count == 2
    assert layout.text_item_count == 6
    assert layout.non_whitespace_chars == len("Hemoglobin9.1mmol/LFerritin85ug/L")
    assert layout.spatial_rows == ()
