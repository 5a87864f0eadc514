# ============================================================================
# src/lab_extraction/normalization/units.py
# ============================================================================
"""
Unit Normalizer / Converter

normalize_marker_measurement() brings a value and its reference bounds
into the one canonical unit stored per marker. Unknown marker/unit
combinations pass through untouched; the plausibility filter decides
what to do with them later.

convert_by_system() is display-only EU <-> US conversion on top of the
canonical form.
"""

import re
from dataclasses import dataclass
from typing import Any, Dict, Optional

from ..constants.unit_conversions import (
    CANONICAL_UNIT_RULES,
    HEMATOCRIT_RATIO_CEILING,
    HEMATOCRIT_RATIO_UNITS,
    SYSTEM_CONVERSION_RULES,
)


@dataclass(frozen=True)
class Measurement:
    value: float
    unit: str
    reference_min: Optional[float] = None
    reference_max: Optional[float] = None


@dataclass(frozen=True)
class SystemValue:
    value: float
    unit: str


def _unit_token(unit: str) -> str:
    return re.sub(r"\s+", "", (unit or "").lower())


def _unit_key(unit: str) -> str:
    """Slash-free unit token so "nmol/l" and "nmoll" compare equal."""
    return _unit_token(unit).replace("/", "")


def _scale(value: Optional[float], factor: float) -> Optional[float]:
    return None if value is None else value * factor


def _to_percent_if_ratio(value: Optional[float]) -> Optional[float]:
    if value is None:
        return None
    return value * 100 if value <= HEMATOCRIT_RATIO_CEILING else value


def _normalize_hematocrit(measurement: Measurement, unit_token: str) -> Measurement:
    ratio_hint = (
        unit_token in HEMATOCRIT_RATIO_UNITS
        or measurement.value <= HEMATOCRIT_RATIO_CEILING
        or (measurement.reference_min is not None and measurement.reference_min <= HEMATOCRIT_RATIO_CEILING)
        or (measurement.reference_max is not None and measurement.reference_max <= HEMATOCRIT_RATIO_CEILING)
    )
    if not ratio_hint:
        return Measurement(measurement.value, "%", measurement.reference_min, measurement.reference_max)

    return Measurement(
        value=_to_percent_if_ratio(measurement.value),
        unit="%",
        reference_min=_to_percent_if_ratio(measurement.reference_min),
        reference_max=_to_percent_if_ratio(measurement.reference_max),
    )


def normalize_marker_measurement(
    canonical_marker: str,
    value: float,
    unit: str,
    reference_min: Optional[float] = None,
    reference_max: Optional[float] = None
) -> Measurement:
    """
    Convert value and reference bounds into the marker's canonical unit.

    Bounds are scaled with the same factor as the value. Hematocrit given
    as a fraction (L/L, or any of value/bounds <= 1.5) becomes a
    percentage.

    Example:
        >>> normalize_marker_measurement("Testosterone", 300, "ng/dL", 250, 1100).unit
        'nmol/L'
    """
    measurement = Measurement(value, unit, reference_min, reference_max)
    rule = CANONICAL_UNIT_RULES.get(canonical_marker)
    if rule is not None:
        unit_key = _unit_key(unit)
        for raw_unit, factor in rule.factors.items():
            if unit_key == _unit_key(raw_unit):
                return Measurement(
                    value=value * factor,
                    unit=rule.canonical_unit,
                    reference_min=_scale(reference_min, factor),
                    reference_max=_scale(reference_max, factor),
                )
        return measurement

    if canonical_marker == "Hematocrit":
        return _normalize_hematocrit(measurement, _unit_token(unit))

    return measurement


def convert_by_system(canonical_marker: str, value: float, current_unit: str, target_system: str) -> SystemValue:
    """
    Express a value in the EU or US unit of its marker.

    The value is first normalised into the canonical unit. Markers
    without a system rule, and units matching neither side of the rule,
    come back in that normalised form.
    """
    normalized = normalize_marker_measurement(canonical_marker, value, current_unit)
    source_unit = normalized.unit or current_unit

    rule = SYSTEM_CONVERSION_RULES.get(canonical_marker)
    if rule is None:
        return SystemValue(normalized.value, source_unit)

    unit_token = _unit_token(source_unit)
    is_eu = unit_token == _unit_token(rule.eu_unit)
    is_us = unit_token == _unit_token(rule.us_unit)

    if target_system == "eu":
        if is_eu:
            return SystemValue(normalized.value, rule.eu_unit)
        if is_us:
            return SystemValue(normalized.value / rule.eu_to_us, rule.eu_unit)
        return SystemValue(normalized.value, source_unit)

    if is_us:
        return SystemValue(normalized.value, rule.us_unit)
    if is_eu:
        return SystemValue(normalized.value * rule.eu_to_us, rule.us_unit)
    return SystemValue(normalized.value, source_unit)


def raw_measurement_fields(original: Measurement, normalized: Measurement) -> Dict[str, Any]:
    """
    raw_* MarkerValue fields for a measurement that normalisation changed.

    Empty when value, unit and bounds came through untouched.
    """
    if original == normalized:
        return {}
    return {
        "raw_value": original.value,
        "raw_unit": original.unit,
        "raw_reference_min": original.reference_min,
        "raw_reference_max": original.reference_max,
    }
