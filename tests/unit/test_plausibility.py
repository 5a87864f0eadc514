# ============================================================================
# FILE: tests/unit/test_plausibility.py
# ============================================================================
"""
Unit tests for plausibility checker
"""

from src.lab_extraction.validators.plausibility import (
    PlausibilityChecker,
    check_plausibility,
    check_spatial_plausibility,
)


def test_plausibility_checker_init():
    """Test plausibility checker initialization"""
    checker = PlausibilityChecker()
    assert checker.ranges is not None
    assert "Testosterone" in checker.ranges


def test_check_valid_testosterone():
    """Test valid testosterone value"""
    checker = PlausibilityChecker()
    is_plausible, reason = checker.check("Testosterone", "nmol/L", 8.2)

    assert is_plausible is True
    assert reason is None


def test_check_implausible_high_testosterone():
    """Test ng/dL-sized value labelled nmol/L"""
    checker = PlausibilityChecker()
    is_plausible, reason = checker.check("Testosterone", "nmol/L", 300.0)

    assert is_plausible is False
    assert "above plausible maximum" in reason


def test_check_non_positive_value():
    checker = PlausibilityChecker()
    is_plausible, reason = checker.check("Hemoglobin", "mmol/L", -1.0)

    assert is_plausible is False
    assert "below plausible minimum" in reason


def test_check_general_ceiling():
    """Test values above the global ceiling are rejected"""
    is_plausible, _ = PlausibilityChecker().check("Ferritine", "ug/L", 25000.0)
    assert is_plausible is False


def test_unranged_marker_accepted():
    assert check_plausibility("Ferritine", "ug/L", 85.0)


def test_unitless_value_accepted():
    assert check_plausibility("Testosterone", "", 8.0)


def test_unit_guard():
    """Test guarded markers need an expected unit"""
    assert check_plausibility("FSH", "IU/L", 5.0)
    assert not check_plausibility("FSH", "nmol/L", 5.0)
    assert not check_plausibility("FSH", "IU/L", 450.0)


def test_hematocrit_percent_range():
    assert check_plausibility("Hematocrit", "%", 45.0)
    assert not check_plausibility("Hematocrit", "%", 0.45)


def test_spatial_requires_unit():
    """Test positional values without a unit are rejected"""
    checker = PlausibilityChecker()
    is_plausible, reason = checker.check_spatial("Testosterone", "", 8.0)

    assert is_plausible is False
    assert reason == "Missing unit"


def test_spatial_default_bounds():
    assert check_spatial_plausibility("Ferritine", "ug/L", 85.0)
    assert not check_spatial_plausibility("Ferritine", "ug/L", 6000.0)
    assert not check_spatial_plausibility("SHBG", "mg/L", 40.0)
