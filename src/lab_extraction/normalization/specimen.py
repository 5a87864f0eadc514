# ============================================================================
# src/lab_extraction/normalization/specimen.py
# ============================================================================
"""
Specimen inference. A canonical name mentioning urine is a urine
measurement; everything else is treated as blood.
"""

import re
from enum import Enum


class Specimen(str, Enum):
    BLOOD = "blood"
    URINE = "urine"


_URINE_PATTERN = re.compile(r"\burine\b", re.IGNORECASE)


def infer_specimen(canonical_marker: str) -> Specimen:
    if _URINE_PATTERN.search(canonical_marker or ""):
        return Specimen.URINE
    return Specimen.BLOOD


def can_merge_markers_by_specimen(source_canonical: str, target_canonical: str) -> bool:
    """Blood and urine measurements are never merged or aliased into each other."""
    return infer_specimen(source_canonical) == infer_specimen(target_canonical)
