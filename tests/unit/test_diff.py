# ============================================================================
# tests/unit/test_diff.py
# ============================================================================
"""
Unit tests for the local vs AI extraction diff
"""

from src.lab_extraction.constants.warning_codes import WarningCode
from src.lab_extraction.core.models import ExtractionProvider
from src.lab_extraction.diff import _snapshot, build_extraction_diff_summary, changed_fields


def _local_and_ai(make_draft, make_marker):
    local = make_draft(
        [
            make_marker("Testosterone", value=18, reference_min=8, reference_max=30, confidence=0.7),
            make_marker("Ferritin", value=120, unit="ug/L", reference_min=20, reference_max=300, confidence=0.66),
        ],
        confidence=0.6,
        test_date="2026-02-19",
    )
    ai = make_draft(
        [
            make_marker("Testosterone", value=21, reference_min=8, reference_max=29, confidence=0.91),
            make_marker("SHBG", value=33, reference_min=10, reference_max=70, confidence=0.88),
        ],
        confidence=0.78,
        test_date="2026-02-20",
        provider=ExtractionProvider.AI,
    )
    return local, ai


def test_added_removed_and_changed(make_draft, make_marker):
    """Test a marker only in AI is added, only local is removed, both differing is changed"""
    local, ai = _local_and_ai(make_draft, make_marker)

    diff = build_extraction_diff_summary(local, ai)

    assert diff.test_date_changed is True
    assert [item.canonical_marker for item in diff.added] == ["SHBG"]
    assert [item.canonical_marker for item in diff.removed] == ["Ferritin"]
    assert [item.key for item in diff.changed] == ["Testosterone"]
    assert set(diff.changed[0].changed_fields) == {"value", "referenceMax", "confidence"}
    assert diff.has_changes is True
    assert diff.local.marker_count == 2
    assert diff.ai.confidence == 0.78


def test_swapping_sides_mirrors_the_diff(make_draft, make_marker):
    local, ai = _local_and_ai(make_draft, make_marker)

    forward = build_extraction_diff_summary(local, ai)
    backward = build_extraction_diff_summary(ai, local)

    assert [item.canonical_marker for item in backward.added] == [item.canonical_marker for item in forward.removed]
    assert [item.canonical_marker for item in backward.removed] == [item.canonical_marker for item in forward.added]
    assert [item.key for item in backward.changed] == [item.key for item in forward.changed]
    assert backward.changed[0].local == forward.changed[0].ai


def test_identical_drafts_have_no_changes(make_draft, make_marker):
    draft = make_draft([make_marker("Testosterone")])
    diff = build_extraction_diff_summary(draft, draft)

    assert diff.has_changes is False
    assert diff.added == diff.removed == diff.changed == ()


def test_raw_values_compared_when_present(make_draft, make_marker):
    """Test a unit conversion on one side does not count as a change"""
    local = make_draft([make_marker("Testosterone", value=288.4, unit="ng/dL", reference_min=None,
                                    reference_max=None)])
    ai = make_draft([make_marker("Testosterone", value=10.0, unit="nmol/L", reference_min=None,
                                 reference_max=None, raw_value=288.4, raw_unit="ng/dL")])

    assert build_extraction_diff_summary(local, ai).changed == ()


def test_highest_confidence_row_represents_marker(make_draft, make_marker):
    local = make_draft([
        make_marker("Testosterone", value=15, confidence=0.5),
        make_marker("Testosterone", value=18.2, confidence=0.9),
    ])
    ai = make_draft([make_marker("Testosterone", value=18.2, confidence=0.9)])

    assert build_extraction_diff_summary(local, ai).changed == ()


def test_small_float_noise_ignored(make_draft, make_marker):
    local = make_draft([make_marker("Testosterone", value=18.2)])
    ai = make_draft([make_marker("Testosterone", value=18.2 + 1e-9)])

    assert changed_fields(_snapshot(local.markers[0]), _snapshot(ai.markers[0])) == []


def test_only_known_warning_codes_reported(make_draft):
    draft = make_draft(
        warnings=(WarningCode.OCR_PARTIAL.value, "SOMETHING_ELSE"),
        warning_code=WarningCode.OCR_PARTIAL.value,
    )
    diff = build_extraction_diff_summary(draft, draft)

    assert diff.local.warnings == (WarningCode.OCR_PARTIAL.value,)


def test_serialised_shape(make_draft, make_marker):
    local, ai = _local_and_ai(make_draft, make_marker)
    data = build_extraction_diff_summary(local, ai).to_dict()

    assert data["testDateChanged"] is True
    assert data["localTestDate"] == "2026-02-19"
    assert data["changed"][0]["changedFields"]
    assert data["added"][0]["canonicalMarker"] == "SHBG"
