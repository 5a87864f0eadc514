# ============================================================================
# src/lab_extraction/constants/unit_conversions.py
# ============================================================================
"""
Unit Conversion Tables
- Factors into one canonical unit per marker (storage form)
- EU <-> US display rules layered on top of the canonical form
"""

from typing import Dict, NamedTuple, Tuple

TESTOSTERONE_NMOL_TO_NGDL = 28.84
TESTOSTERONE_NGML_TO_NMOL = 100 / TESTOSTERONE_NMOL_TO_NGDL
FREE_TESTOSTERONE_NMOL_TO_PGML = 288.4
ESTRADIOL_PGML_TO_PMOL = 3.671
HEMOGLOBIN_GPL_TO_MMOLL = 0.06206
HEMOGLOBIN_GPDL_TO_MMOLL = 0.6206
MCH_PG_TO_FMOL = 0.06206


class CanonicalUnitRule(NamedTuple):
    """Accepted raw units (compact lowercase) and their factor into canonical_unit."""
    canonical_unit: str
    factors: Dict[str, float]


_HEMOGLOBIN_RULE = CanonicalUnitRule(
    canonical_unit="mmol/L",
    factors={
        "mmol/l": 1.0,
        "g/l": HEMOGLOBIN_GPL_TO_MMOLL,
        "g/dl": HEMOGLOBIN_GPDL_TO_MMOLL,
    },
)

CANONICAL_UNIT_RULES: Dict[str, CanonicalUnitRule] = {
    "Testosterone": CanonicalUnitRule(
        canonical_unit="nmol/L",
        factors={
            "nmol/l": 1.0,
            "ng/ml": TESTOSTERONE_NGML_TO_NMOL,
            "ng/dl": 1 / TESTOSTERONE_NMOL_TO_NGDL,
        },
    ),
    "Free Testosterone": CanonicalUnitRule(
        canonical_unit="nmol/L",
        factors={
            "nmol/l": 1.0,
            "pmol/l": 1 / 1000,
            "pg/ml": 1 / FREE_TESTOSTERONE_NMOL_TO_PGML,
        },
    ),
    "Estradiol": CanonicalUnitRule(
        canonical_unit="pmol/L",
        factors={
            "pmol/l": 1.0,
            "pg/ml": ESTRADIOL_PGML_TO_PMOL,
        },
    ),
    "SHBG": CanonicalUnitRule(
        canonical_unit="nmol/L",
        factors={"nmol/l": 1.0},
    ),
    "Hemoglobin": _HEMOGLOBIN_RULE,
    "MCHC": _HEMOGLOBIN_RULE,
    "MCH": CanonicalUnitRule(
        canonical_unit="fmol",
        factors={
            "fmol": 1.0,
            "pg": MCH_PG_TO_FMOL,
        },
    ),
}

# Hematocrit units that denote a fraction rather than a percentage
HEMATOCRIT_RATIO_UNITS: Tuple[str, ...] = ("l/l", "ll", "ratio", "fraction")
HEMATOCRIT_RATIO_CEILING = 1.5


class SystemConversionRule(NamedTuple):
    """EU <-> US display conversion; us = eu * eu_to_us."""
    eu_unit: str
    us_unit: str
    eu_to_us: float


SYSTEM_CONVERSION_RULES: Dict[str, SystemConversionRule] = {
    "Testosterone": SystemConversionRule("nmol/L", "ng/dL", TESTOSTERONE_NMOL_TO_NGDL),
    "Free Testosterone": SystemConversionRule("nmol/L", "pg/mL", FREE_TESTOSTERONE_NMOL_TO_PGML),
    "Estradiol": SystemConversionRule("pmol/L", "pg/mL", 1 / ESTRADIOL_PGML_TO_PMOL),
}
