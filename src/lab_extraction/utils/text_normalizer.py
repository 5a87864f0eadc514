# ============================================================================
# src/lab_extraction/utils/text_normalizer.py
# ============================================================================
"""
Text Normalization Utilities

Cleans up text coming out of a PDF text layer or OCR:
- Collapses whitespace and strips arrow/flag glyphs
- Repairs unit spellings split by layout ("μ g/l", "10 x 9 / l")
- Canonical unit spelling and a light unit grammar check
"""

import re
from typing import List, Pattern, Tuple

from ..constants.patterns import (
    BARE_UNIT_WORD_PATTERN,
    COMPACT_CELL_COUNT_UNIT_PATTERN,
    NOISE_SYMBOL_PATTERN,
    UNIT_TOKEN_PATTERN,
)

_I = re.IGNORECASE

# Dutch portals glue the value to the next label ("5.1Uw waarde:")
_GLUED_KEYWORD_PATTERN = re.compile(r"([0-9])(?=(?:Uw waarde:|Normale waarde:|Datum:))")
_UMOL_PATTERN = re.compile(r"u?mol\s*/\s*l", _I)

_UNIT_SPELLING_REPAIRS: List[Tuple[Pattern, str]] = [
    (re.compile(r"([µμ])\s+g\s*/\s*l", _I), "µg/L"),
    (re.compile(r"([µμ])\s+mol\s*/\s*l", _I), "µmol/L"),
]

_UNIT_SLASH_REPAIRS: List[Tuple[Pattern, str]] = [
    (re.compile(r"ug\s*/\s*l", _I), "ug/L"),
    (re.compile(r"ug\s*/\s*dl", _I), "ug/dL"),
    (re.compile(r"mcg\s*/\s*dl", _I), "mcg/dL"),
    (re.compile(r"mcg\s*/\s*ml", _I), "mcg/mL"),
    (re.compile(r"ng\s*/\s*ml", _I), "ng/mL"),
    (re.compile(r"ng\s*/\s*dl", _I), "ng/dL"),
    (re.compile(r"ng\s*/\s*mg", _I), "ng/mg"),
    (re.compile(r"pg\s*/\s*ml", _I), "pg/mL"),
    (re.compile(r"pg\s*/\s*mg", _I), "pg/mg"),
    (re.compile(r"10\s*[x×*]\s*9\s*/\s*l", _I), "10^9/L"),
    (re.compile(r"10\s*[x×*]\s*12\s*/\s*l", _I), "10^12/L"),
]

# Compact unit (case-insensitive) -> canonical spelling
_CANONICAL_UNITS: List[Tuple[Pattern, str]] = [
    (re.compile(pattern, _I), canonical)
    for pattern, canonical in [
        (r"^mmol/l$", "mmol/L"),
        (r"^nmol/l$", "nmol/L"),
        (r"^pmol/l$", "pmol/L"),
        (r"^pg/ml$", "pg/mL"),
        (r"^pg/mg$", "pg/mg"),
        (r"^ng/ml$", "ng/mL"),
        (r"^ng/mg$", "ng/mg"),
        (r"^ng/dl$", "ng/dL"),
        (r"^mcg/dl$", "mcg/dL"),
        (r"^mcg/ml$", "mcg/mL"),
        (r"^µmol/l$", "µmol/L"),
        (r"^umol/l$", "µmol/L"),
        (r"^µg/l$", "µg/L"),
        (r"^ug/l$", "µg/L"),
        (r"^ug/dl$", "µg/dL"),
        (r"^g/l$", "g/L"),
        (r"^g/dl$", "g/dL"),
        (r"^iu/l$", "IU/L"),
        (r"^iu/ml$", "IU/mL"),
        (r"^u/ml$", "U/mL"),
        (r"^10(?:\^|\*|x|×)?9/l$", "10^9/L"),
        (r"^10(?:\^|\*|x|×)?12/l$", "10^12/L"),
        (r"^u/l$", "U/L"),
        (r"^mu/l$", "mU/L"),
        (r"^miu/l$", "mIU/L"),
        (r"^fl$", "fL"),
        (r"^pg$", "pg"),
        (r"^mm/hr$", "mm/hr"),
        (r"^l/l$", "L/L"),
    ]
]

_LOOKUP_KEY_STRIP = re.compile(r"[^a-z0-9]+")


def _repair_umol(match: re.Match) -> str:
    value = match.group(0)
    return "umol/L" if re.sub(r"\s+", "", value).lower().startswith("umol") else value


def clean_whitespace(value: str) -> str:
    """
    Collapse whitespace, drop flag glyphs and repair split unit spellings.

    >>> clean_whitespace("Ferritine  85 μ g / l")
    'Ferritine 85 µg/L'
    """
    compact = value.replace("\u00a0", " ")
    compact = NOISE_SYMBOL_PATTERN.sub(" ", compact)
    compact = re.sub(r"\s+", " ", compact).strip()

    compact = _GLUED_KEYWORD_PATTERN.sub(r"\1 ", compact)
    for pattern, replacement in _UNIT_SPELLING_REPAIRS:
        compact = pattern.sub(replacement, compact)
    compact = _UMOL_PATTERN.sub(_repair_umol, compact)
    for pattern, replacement in _UNIT_SLASH_REPAIRS:
        compact = pattern.sub(replacement, compact)
    return compact


def normalize_unit(unit: str) -> str:
    """Canonical spelling of a unit; unknown units come back compacted."""
    compact = re.sub(r"\s+", "", unit).replace("μ", "µ")
    for pattern, canonical in _CANONICAL_UNITS:
        if pattern.match(compact):
            return canonical
    return compact


def is_likely_unit(token: str) -> bool:
    """True when a whitespace-free token reads like a lab unit."""
    compact = re.sub(r"\s+", "", token).replace("μ", "µ")
    if COMPACT_CELL_COUNT_UNIT_PATTERN.match(compact):
        return True

    if not UNIT_TOKEN_PATTERN.match(token):
        return False

    if "/" in token or "%" in token:
        return True

    return bool(BARE_UNIT_WORD_PATTERN.match(token))


def normalize_lookup_key(value: str) -> str:
    """Lowercase, non-alphanumerics to single spaces."""
    return _LOOKUP_KEY_STRIP.sub(" ", value.strip().lower()).strip()


def to_title_case(value: str) -> str:
    return " ".join(token[0].upper() + token[1:].lower() for token in value.split())
