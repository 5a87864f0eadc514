# ============================================================================
# src/lab_extraction/constants/plausibility_ranges.py
# ============================================================================
"""
Plausibility Ranges

"Physically possible" bounds per canonical marker and normalised unit.
Much wider than reference ranges: they only catch misplaced decimals,
unit mix-ups and values picked from the wrong column.

Bounds are empirical and tuned on real reports; revisit them against a
larger fixture corpus before tightening.
"""

from typing import Dict, Tuple

# canonical marker -> {unit: (min, max)}, inclusive
PLAUSIBILITY_RANGES: Dict[str, Dict[str, Tuple[float, float]]] = {
    "Testosterone": {
        "nmol/L": (0.5, 120.0),
        "ng/dL": (20.0, 3500.0),
        "ng/mL": (0.2, 35.0),
    },
    "Free Testosterone": {
        "pmol/L": (10.0, 2000.0),
        "pg/mL": (1.0, 600.0),
        "ng/dL": (0.1, 60.0),
        "nmol/L": (0.01, 5.0),
    },
    "Estradiol": {
        "pmol/L": (5.0, 10000.0),
        "pg/mL": (1.0, 3000.0),
    },
    "SHBG": {
        "nmol/L": (1.0, 300.0),
    },
    "Hematocrit": {
        "%": (10.0, 70.0),
        "L/L": (0.1, 0.7),
    },
}

# Markers outside the table above: any positive value up to this bound
SPATIAL_DEFAULT_MAX = 5000.0
SPATIAL_VALUE_CEILING = 10000.0

# Non-spatial (whole-draft) filter: ceiling for every value
GENERAL_VALUE_CEILING = 20000.0

# lowercase canonical marker -> (allowed units, max value)
UNIT_GUARDED_MARKERS: Dict[str, Tuple[Tuple[str, ...], float]] = {
    "fsh": (("mIU/mL", "IU/L", "U/L", "mU/L"), 300.0),
    "lh": (("mIU/mL", "IU/L", "U/L", "mU/L"), 300.0),
    "prolactin": (("ng/mL", "mIU/L", "µg/L"), 4000.0),
    "dhea sulfate": (("mcg/dL", "µg/dL", "ng/mL", "µmol/L"), 5000.0),
    "dhea-sulfate": (("mcg/dL", "µg/dL", "ng/mL", "µmol/L"), 5000.0),
    "psa": (("ng/mL", "µg/L", "%"), 100.0),
    "bioavailable testosterone": (("ng/dL", "nmol/L", "pg/mL", "%"), 2000.0),
}
