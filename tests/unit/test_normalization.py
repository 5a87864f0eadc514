# ============================================================================
# tests/unit/test_normalization.py
# ============================================================================
"""
Unit tests for label sanitizing, catalog canonicalisation and the
canonical marker resolver
"""

import pytest

from src.lab_extraction.core.models import CandidateSource, ResolutionMethod
from src.lab_extraction.normalization.catalog import (
    CANONICAL_MARKERS,
    GLOBAL_ALIAS_LOOKUP,
    canonicalize_marker,
    get_catalog_entry,
)
from src.lab_extraction.normalization.resolver import (
    AliasOverrideStore,
    normalize_marker_alias_overrides,
    resolve_canonical_marker,
)
from src.lab_extraction.normalization.sanitizer import (
    clean_marker_name,
    is_acceptable_marker_candidate,
    looks_like_noise_marker,
    noise_reasons,
    sanitize_marker_name,
    score_marker_candidate,
)
from src.lab_extraction.normalization.specimen import (
    Specimen,
    can_merge_markers_by_specimen,
    infer_specimen,
)


@pytest.fixture
def empty_store():
    """Override store isolated from the process-wide one"""
    return AliasOverrideStore()


# ============================================================================
# SANITIZER
# ============================================================================

class TestSanitizer:
    """Test label cleanup"""

    def test_shbg_label_variants(self):
        """Test every SHBG spelling collapses to SHBG"""
        assert sanitize_marker_name("Sex Hormone Binding Globulin") == "SHBG"
        assert sanitize_marker_name("Sex Horm Binding Glob, Serum") == "SHBG"
        assert sanitize_marker_name("Ratio: T/SHBG (calc)") == "SHBG"

    def test_result_prefix_removed(self):
        assert sanitize_marker_name("Result Testosterone") == "Testosterone"

    def test_section_prefix_removed(self):
        """Test section headers glued to the label are stripped"""
        assert clean_marker_name("Hematology Hemoglobin") == "Hemoglobin"

    def test_method_suffix_and_comparator_removed(self):
        assert clean_marker_name("Hemoglobin ECLIA") == "Hemoglobin"
        assert clean_marker_name("Testosterone <") == "Testosterone"

    def test_mch_note_becomes_mch(self):
        """Test the MCH transport note maps to MCH"""
        assert clean_marker_name("Longer time between blood collection and analysis") == "MCH"


class TestNoise:
    """Test noise vetoes"""

    def test_real_marker_is_not_noise(self):
        assert not looks_like_noise_marker("Hemoglobin")
        assert noise_reasons("Hemoglobin") == []

    def test_guidance_row_is_noise(self):
        assert looks_like_noise_marker("for intermediate and high risk individuals")
        assert "guideline" in noise_reasons("for intermediate and high risk individuals")

    def test_single_risk_group_guidance_row(self):
        assert "guidance" in noise_reasons("for high risk individuals")

    def test_units_and_chrome_are_noise(self):
        assert looks_like_noise_marker("mmol/L")
        assert looks_like_noise_marker("is")
        assert looks_like_noise_marker("Patient name")
        assert looks_like_noise_marker("12 Jan 2024")
        assert looks_like_noise_marker("")


class TestScoring:
    """Test label scoring and acceptance thresholds"""

    def test_score_known_marker_with_structure(self):
        assert score_marker_candidate("Hemoglobin", "mmol/L", 8.5, 11.0) == 100

    def test_score_unknown_label_without_structure(self):
        assert score_marker_candidate("Foo", "", None, None) == 30

    def test_known_marker_accepted(self):
        assert is_acceptable_marker_candidate("Hemoglobin", "mmol/L", 8.5, 11.0, CandidateSource.FALLBACK)
        assert is_acceptable_marker_candidate("Hemoglobin", "", None, None, CandidateSource.AI)

    def test_ai_threshold_stricter_than_fallback(self):
        """Test an unknown label with unit and range passes locally but not from AI"""
        assert is_acceptable_marker_candidate("Foo Bar", "mg/L", 1.0, 5.0, CandidateSource.FALLBACK)
        assert not is_acceptable_marker_candidate("Foo Bar", "mg/L", 1.0, 5.0, CandidateSource.AI)

    def test_unknown_label_without_structure_rejected(self):
        assert not is_acceptable_marker_candidate("Foo Bar", "", None, None, CandidateSource.FALLBACK)

    @pytest.mark.parametrize("source", [CandidateSource.FALLBACK, CandidateSource.AI])
    def test_risk_individuals_row_never_kept(self, source):
        """Test guideline prose never becomes a marker"""
        assert not is_acceptable_marker_candidate(
            "intermediate and high risk individuals", "mmol/L", None, 2.5, source
        )
        assert not is_acceptable_marker_candidate(
            "for intermediate and high risk individuals", "mmol/L", None, 2.5, source
        )


# ============================================================================
# CATALOG
# ============================================================================

class TestCatalog:
    """Test catalog construction and fast canonicalisation"""

    def test_catalog_sorted_and_unique(self):
        keys = [entry.canonical_key for entry in CANONICAL_MARKERS]
        assert len(keys) == len(set(keys))
        assert keys == sorted(keys, key=lambda item: (item.lower(), item))
        assert "Unknown Marker" not in keys

    def test_catalog_entry_carries_hints(self):
        entry = get_catalog_entry("Hemoglobin")
        assert entry is not None
        assert entry.category == "hematology"
        assert entry.preferred_unit_by_system["eu"] == "mmol/L"
        assert "haemoglobin" in entry.aliases

    def test_alias_lookup_includes_canonical_keys(self):
        assert GLOBAL_ALIAS_LOOKUP["hemoglobin"] == "Hemoglobin"
        assert GLOBAL_ALIAS_LOOKUP["shbg"] == "SHBG"

    def test_canonicalize_free_and_bioavailable(self):
        assert canonicalize_marker("Testosteron, vrij") == "Free Testosterone"
        assert canonicalize_marker("Bioavailable testosterone") == "Bioavailable Testosterone"

    def test_canonicalize_exact_and_contained_alias(self):
        assert canonicalize_marker("Hemoglobine") == "Hemoglobin"
        assert canonicalize_marker("serum ferritin level") == "Ferritine"

    def test_canonicalize_unknown_label_title_cased(self):
        assert canonicalize_marker("foobarase") == "Foobarase"
        assert canonicalize_marker("") == "Unknown Marker"


# ============================================================================
# RESOLVER
# ============================================================================

class TestResolver:
    """Test canonical resolution"""

    def test_exact_alias(self, empty_store):
        resolution = resolve_canonical_marker("Haemoglobin", store=empty_store)
        assert resolution.canonical_marker == "Hemoglobin"
        assert resolution.method == ResolutionMethod.EXACT_ALIAS
        assert resolution.confidence == 0.99

    def test_override_wins_over_alias(self, empty_store):
        """Test a user override beats the built-in alias"""
        resolution = resolve_canonical_marker("Hb", overrides={"hb": "Hematocrit"}, store=empty_store)
        assert resolution.canonical_marker == "Hematocrit"
        assert resolution.method == ResolutionMethod.OVERRIDE
        assert resolution.confidence == 1.0

    def test_per_call_override_wins_over_store(self, empty_store):
        empty_store.set({"hb": "Hemoglobin"})
        resolution = resolve_canonical_marker("Hb", overrides={"hb": "Hematocrit"}, store=empty_store)
        assert resolution.canonical_marker == "Hematocrit"

    def test_store_override_applies(self, empty_store):
        empty_store.set({"my hb": "haemoglobin"})
        assert resolve_canonical_marker("My HB", store=empty_store).canonical_marker == "Hemoglobin"

    def test_pattern_rules(self, empty_store):
        free_total = resolve_canonical_marker("Testosterone Free Total", store=empty_store)
        assert free_total.canonical_marker == "Testosterone"
        assert free_total.method == ResolutionMethod.PATTERN

        shbg = resolve_canonical_marker("Sex Hormone Bind Globulin", store=empty_store)
        assert shbg.canonical_marker == "SHBG"

    def test_narrative_resolves_unknown(self, empty_store):
        resolution = resolve_canonical_marker("for intermediate and high risk individuals", store=empty_store)
        assert resolution.canonical_marker == "Unknown Marker"
        assert resolution.method == ResolutionMethod.UNKNOWN

    def test_empty_label_unknown(self, empty_store):
        assert resolve_canonical_marker("   ", store=empty_store).canonical_marker == "Unknown Marker"

    @pytest.mark.parametrize("label", [
        "Hemoglobine",
        "Sex Horm Binding Glob",
        "Testosterone, free",
        "Vitamin B12",
        "Ferritin",
        "Urine creatinine",
    ])
    def test_resolution_is_idempotent(self, empty_store, label):
        """Test resolving a canonical name gives the same canonical name"""
        first = resolve_canonical_marker(label, store=empty_store)
        second = resolve_canonical_marker(first.canonical_marker, store=empty_store)
        assert second.canonical_marker == first.canonical_marker

    def test_specimen_guard_on_override(self, empty_store):
        """Test a label that is a urine alias is never overridden onto a blood marker"""
        resolution = resolve_canonical_marker(
            "Urine creatinine", overrides={"urine creatinine": "Creatinine"}, store=empty_store
        )
        assert resolution.canonical_marker == "Creatinine Urine"

    @pytest.mark.parametrize("label,overrides,expected", [
        ("UACR", {"uacr": "Urine ACR"}, "Urine ACR"),
        ("Microalbumin", {"microalbumin": "Albumine Urine"}, "Albumine Urine"),
    ])
    def test_override_onto_urine_marker_wins(self, empty_store, label, overrides, expected):
        """Test an override wins for labels that do not name their specimen"""
        resolution = resolve_canonical_marker(label, overrides=overrides, store=empty_store)

        assert resolution.canonical_marker == expected
        assert resolution.method == ResolutionMethod.OVERRIDE
        assert resolution.confidence == 1.0

    def test_urine_label_token_scores_against_urine_entries(self, empty_store):
        resolution = resolve_canonical_marker("Urine creatinine portie spot", store=empty_store)
        assert resolution.canonical_marker == "Creatinine Urine"


class TestOverrides:
    """Test override map cleanup"""

    def test_keys_and_values_normalised(self):
        assert normalize_marker_alias_overrides({"My Hb": "haemoglobin"}) == {"my hb": "Hemoglobin"}

    def test_malformed_input_dropped(self):
        assert normalize_marker_alias_overrides("abc") == {}
        assert normalize_marker_alias_overrides(None) == {}
        assert normalize_marker_alias_overrides({"x": ""}) == {}
        assert normalize_marker_alias_overrides({"": "Hemoglobin"}) == {}
        assert normalize_marker_alias_overrides({"foo": "unknown marker"}) == {}

    def test_override_keys_not_checked_for_specimen(self):
        """Test the specimen guard does not look at override keys"""
        assert normalize_marker_alias_overrides({"uacr": "Urine ACR"}) == {"uacr": "Urine ACR"}
        assert normalize_marker_alias_overrides({"urine creatinine": "Creatinine"}) == {"urine creatinine": "Creatinine"}

    def test_store_returns_copy(self):
        store = AliasOverrideStore()
        store.set({"hb": "Hemoglobin"})
        snapshot = store.get()
        snapshot["hb"] = "Other"
        assert store.get() == {"hb": "Hemoglobin"}
        store.clear()
        assert store.get() == {}


# ============================================================================
# SPECIMEN
# ============================================================================

def test_infer_specimen():
    """Test urine detection from canonical names"""
    assert infer_specimen("Creatinine Urine") == Specimen.URINE
    assert infer_specimen("Creatinine") == Specimen.BLOOD
    assert infer_specimen("") == Specimen.BLOOD


def test_blood_and_urine_never_merge():
    assert not can_merge_markers_by_specimen("Creatinine Urine", "Creatinine")
    assert can_merge_markers_by_specimen("Urine ACR", "Albumine Urine")
    assert can_merge_markers_by_specimen("Hemoglobin", "Hematocrit")
