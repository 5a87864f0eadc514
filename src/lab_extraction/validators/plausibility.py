# ============================================================================
# FILE: src/lab_extraction/validators/plausibility.py
# ============================================================================
"""
Plausibility Checks

Catches extreme errors (misplaced decimals, unit mix-ups, values read
from the wrong column). These are "physically possible" boundaries,
much wider than reference ranges.

Example:
- Testosterone 300 nmol/L -> FAIL (likely a ng/dL value)
- Testosterone 8.2 nmol/L -> PASS
"""

import logging
import math
from typing import Optional, Tuple

from ..constants.plausibility_ranges import (
    GENERAL_VALUE_CEILING,
    PLAUSIBILITY_RANGES,
    SPATIAL_DEFAULT_MAX,
    UNIT_GUARDED_MARKERS,
)
from ..utils.text_normalizer import normalize_unit

logger = logging.getLogger(__name__)

PlausibilityResult = Tuple[bool, Optional[str]]


class PlausibilityChecker:
    """
    Check if extracted values are physically possible.

    check_spatial() is the strict variant used for values recovered from
    x/y reconstruction, where a neighbouring column is easily picked up.
    check() is the draft-wide filter.
    """

    def __init__(self):
        self.ranges = PLAUSIBILITY_RANGES
        self.unit_guards = UNIT_GUARDED_MARKERS

    def _check_range(self, canonical_marker: str, unit: str, value: float) -> PlausibilityResult:
        bounds = self.ranges[canonical_marker].get(unit)
        if bounds is None:
            return False, f"Unit {unit} not expected for {canonical_marker}"

        min_val, max_val = bounds
        if value < min_val:
            return False, f"Value {value} below plausible minimum {min_val} {unit}"
        if value > max_val:
            return False, f"Value {value} above plausible maximum {max_val} {unit}"
        return True, None

    def check_spatial(self, canonical_marker: str, unit: str, value: float) -> PlausibilityResult:
        """
        Check a value recovered from positional layout.

        Returns:
            (is_plausible, reason_if_not)
        """
        normalized_unit = normalize_unit(unit)
        if not normalized_unit:
            return False, "Missing unit"

        if canonical_marker in self.ranges:
            return self._check_range(canonical_marker, normalized_unit, value)

        if value <= 0:
            return False, f"Value {value} below plausible minimum 0"
        if value > SPATIAL_DEFAULT_MAX:
            return False, f"Value {value} above plausible maximum {SPATIAL_DEFAULT_MAX}"
        return True, None

    def check(self, canonical_marker: str, unit: str, value: float) -> PlausibilityResult:
        """
        Draft-wide plausibility filter.

        Unitless values of markers without a unit guard are accepted;
        the hormone panel uses the spatial ranges.

        Returns:
            (is_plausible, reason_if_not)
        """
        if not math.isfinite(value) or value <= 0:
            return False, f"Value {value} below plausible minimum 0"
        if value > GENERAL_VALUE_CEILING:
            return False, f"Value {value} above plausible maximum {GENERAL_VALUE_CEILING}"

        normalized_unit = normalize_unit(unit)
        if not normalized_unit:
            return True, None

        if canonical_marker.lower() in {key.lower() for key in self.ranges}:
            return self.check_spatial(canonical_marker, normalized_unit, value)

        guard = self.unit_guards.get(canonical_marker.lower())
        if guard is None:
            return True, None

        allowed_units, max_val = guard
        if normalized_unit not in allowed_units:
            return False, f"Unit {normalized_unit} not expected for {canonical_marker}"
        if value > max_val:
            return False, f"Value {value} above plausible maximum {max_val} {normalized_unit}"
        return True, None

    def is_plausible(self, canonical_marker: str, unit: str, value: float) -> bool:
        is_plausible, reason = self.check(canonical_marker, unit, value)
        if not is_plausible:
            logger.debug(f"{canonical_marker}: {reason}")
        return is_plausible


# ============================================================================
# CONVENIENCE FUNCTIONS
# ============================================================================

_default_checker = PlausibilityChecker()


def check_plausibility(canonical_marker: str, unit: str, value: float) -> bool:
    """Quick draft-wide plausibility check."""
    return _default_checker.is_plausible(canonical_marker, unit, value)


def check_spatial_plausibility(canonical_marker: str, unit: str, value: float) -> bool:
    is_plausible, _ = _default_checker.check_spatial(canonical_marker, unit, value)
    return is_plausible
