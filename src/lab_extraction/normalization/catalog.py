# ============================================================================
# src/lab_extraction/normalization/catalog.py
# ============================================================================
"""
Canonical Marker Catalog

Builds the read-only catalog (one entry per canonical marker) from the
alias table and the category/unit/must-contain hints, plus the two
lookups derived from it:
- GLOBAL_ALIAS_LOOKUP: normalised alias -> canonical key (exact match)
- alias entries sorted longest first, for whole-word containment
"""

import re
from typing import Dict, List, Optional, Tuple

from ..constants.markers import (
    CATEGORY_HINTS,
    EXTRA_CATALOG_KEYS,
    MARKER_ALIASES,
    MUST_CONTAIN_HINTS,
    MUST_NOT_CONTAIN_HINTS,
    UNIT_HINTS,
    UNKNOWN_MARKER,
)
from ..core.models import CanonicalMarkerCatalogEntry
from ..utils.text_normalizer import normalize_lookup_key

_TESTOSTERONE = re.compile(r"\b(?:testosterone|testosteron)\b")
_FREE = re.compile(r"\b(?:free|vrij|vrije)\b")
_BIOAVAILABLE = re.compile(r"\bbioavailable\b")


def _build_marker_alias_lookup() -> Dict[str, str]:
    lookup: Dict[str, str] = {}
    for canonical, aliases in MARKER_ALIASES.items():
        for alias in aliases:
            lookup[alias] = canonical
    return lookup


# raw alias -> canonical; later canonicals win on a repeated alias
MARKER_ALIAS_LOOKUP: Dict[str, str] = _build_marker_alias_lookup()


def _build_catalog() -> List[CanonicalMarkerCatalogEntry]:
    aliases_by_canonical: Dict[str, List[str]] = {}
    for alias, canonical in MARKER_ALIAS_LOOKUP.items():
        aliases_by_canonical.setdefault(canonical, []).append(alias)

    keys = set(MARKER_ALIAS_LOOKUP.values()) | set(CATEGORY_HINTS) | set(UNIT_HINTS) | set(EXTRA_CATALOG_KEYS)
    keys.discard(UNKNOWN_MARKER)

    entries = []
    for key in sorted(keys, key=lambda item: (item.lower(), item)):
        aliases = tuple(dict.fromkeys(alias for alias in [key, *aliases_by_canonical.get(key, [])] if alias))
        entries.append(CanonicalMarkerCatalogEntry(
            canonical_key=key,
            aliases=aliases,
            preferred_unit_by_system=dict(UNIT_HINTS.get(key, {})),
            category=CATEGORY_HINTS.get(key, "other"),
            must_contain=tuple(MUST_CONTAIN_HINTS.get(key, ())),
            must_not_contain=tuple(MUST_NOT_CONTAIN_HINTS.get(key, ())),
        ))
    return entries


CANONICAL_MARKERS: List[CanonicalMarkerCatalogEntry] = _build_catalog()


def build_alias_lookup() -> Dict[str, str]:
    """Normalised alias (canonical key included) -> canonical key."""
    lookup: Dict[str, str] = {}
    for entry in CANONICAL_MARKERS:
        for alias in entry.aliases:
            normalized = normalize_lookup_key(alias)
            if normalized:
                lookup[normalized] = entry.canonical_key
    return lookup


GLOBAL_ALIAS_LOOKUP: Dict[str, str] = build_alias_lookup()


def get_canonical_keys() -> List[str]:
    return [entry.canonical_key for entry in CANONICAL_MARKERS]


def get_catalog_entry(canonical_key: str) -> Optional[CanonicalMarkerCatalogEntry]:
    for entry in CANONICAL_MARKERS:
        if entry.canonical_key == canonical_key:
            return entry
    return None


# (normalised alias, canonical), longest alias first
_SORTED_ALIAS_ENTRIES: List[Tuple[str, str]] = sorted(
    (
        (normalize_lookup_key(alias), canonical)
        for alias, canonical in MARKER_ALIAS_LOOKUP.items()
        if normalize_lookup_key(alias)
    ),
    key=lambda item: len(item[0]),
    reverse=True,
)
_ALIAS_WORD_PATTERNS = {alias: re.compile(rf"\b{re.escape(alias)}\b") for alias, _ in _SORTED_ALIAS_ENTRIES}


def canonicalize_marker(label: str) -> str:
    """
    Fast alias-table canonicalisation used for parsed rows.

    Free/bioavailable testosterone patterns come first, then an exact
    alias, then the longest alias contained as whole words. Anything
    else is title-cased verbatim.
    """
    normalized = normalize_lookup_key(label)
    if not normalized:
        return UNKNOWN_MARKER

    if _BIOAVAILABLE.search(normalized) and _TESTOSTERONE.search(normalized):
        return "Bioavailable Testosterone"

    if _TESTOSTERONE.search(normalized) and _FREE.search(normalized):
        return "Free Testosterone"

    for alias, canonical in _SORTED_ALIAS_ENTRIES:
        if alias == normalized:
            return canonical

    for alias, canonical in _SORTED_ALIAS_ENTRIES:
        if _ALIAS_WORD_PATTERNS[alias].search(normalized):
            return canonical

    return " ".join(word[0].upper() + word[1:].lower() for word in label.strip().split(" ") if word)
