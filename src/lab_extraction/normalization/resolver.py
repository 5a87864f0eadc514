# ============================================================================
# src/lab_extraction/normalization/resolver.py
# ============================================================================
"""
Canonical Marker Resolver

Maps a raw marker label to a canonical marker. Steps, first hit wins:
1. Alias override (user supplied)            -> confidence 1.0
2. Exact alias from the catalog               -> 0.99
3. Compound patterns for ambiguous labels     -> 0.92 - 0.96
4. Token-overlap scoring against the catalog  -> score / 100, floor 0.52
5. Unknown Marker for narrative noise, else the title-cased label at 0.35

The specimen guard compares canonical names: an override is ignored when
the label itself is a catalog alias or pattern of the other specimen
(blood vs urine), and a label naming urine only token-scores against
urine entries.

Overrides are passed per call. AliasOverrideStore is an optional
process-wide slot for callers that hold one user's overrides; it is
read once per resolution and never mutated during one.
"""

import logging
import re
import threading
from typing import Dict, Mapping, NamedTuple, Optional, Set, Tuple

from ..config import parser_settings
from ..constants.markers import STOPWORD_SINGLE, UNKNOWN_MARKER
from ..constants.patterns import NARRATIVE_NOISE_PATTERN, RESOLVER_ANCHOR_PATTERN
from ..core.models import CanonicalMarkerCatalogEntry, CanonicalResolution, ResolutionMethod
from ..utils.text_normalizer import normalize_lookup_key, to_title_case
from .catalog import CANONICAL_MARKERS, GLOBAL_ALIAS_LOOKUP
from .specimen import Specimen, can_merge_markers_by_specimen, infer_specimen

logger = logging.getLogger(__name__)

MODE_THRESHOLDS: Dict[str, int] = {
    "conservative": 78,
    "balanced": 64,
    "aggressive": 56,
}


def _clean_marker_text(value: str) -> str:
    return re.sub(r"\s+", " ", value.replace("\u00a0", " ")).strip()


def _token_set(value: str) -> Set[str]:
    return {token for token in normalize_lookup_key(value).split(" ") if token}


def _unit_token(value: Optional[str]) -> str:
    return re.sub(r"\s+", "", (value or "").strip().lower())


# ============================================================================
# PATTERN RESOLUTION
# ============================================================================

class _PatternRule(NamedTuple):
    required: tuple
    canonical: str
    confidence: float
    matched_alias: str


_TESTOSTERONE = re.compile(r"\b(?:testosterone|testosteron)\b")
_FREE = re.compile(r"\b(?:free|vrij|vrije)\b")
_TOTAL = re.compile(r"\b(?:total|totaal|totale)\b")

PATTERN_RULES = [
    _PatternRule((_TESTOSTERONE, _FREE, _TOTAL), "Testosterone", 0.95, "testosterone free total"),
    _PatternRule((_TESTOSTERONE, _FREE), "Free Testosterone", 0.95, "free testosterone"),
    _PatternRule((re.compile(r"\bbioavailable\b"), _TESTOSTERONE), "Bioavailable Testosterone", 0.96,
                 "bioavailable testosterone"),
    _PatternRule((re.compile(r"\bcortisol\b"), re.compile(r"\bam\b")), "Cortisol", 0.92, "cortisol am"),
    _PatternRule(
        (
            re.compile(r"\bsex\b"),
            re.compile(r"\bhorm(?:one|)\b"),
            re.compile(r"\bbind(?:ing)?\b"),
            re.compile(r"\bglob(?:ulin)?\b"),
        ),
        "SHBG",
        0.94,
        "sex hormone binding globulin",
    ),
]


def _pattern_resolution(normalized: str) -> Optional[CanonicalResolution]:
    for rule in PATTERN_RULES:
        if all(pattern.search(normalized) for pattern in rule.required):
            return CanonicalResolution(
                canonical_marker=rule.canonical,
                confidence=rule.confidence,
                method=ResolutionMethod.PATTERN,
                matched_alias=rule.matched_alias,
            )
    return None


# ============================================================================
# OVERRIDES
# ============================================================================

def normalize_marker_alias_overrides(raw: object) -> Dict[str, str]:
    """
    Clean a user-supplied override map.

    Keys become lookup keys. Values are resolved to a canonical name via
    the alias table, then the compound patterns, else title-cased. Empty
    keys or values, non-mappings and anything resolving to Unknown
    Marker are dropped silently.
    """
    if not isinstance(raw, Mapping):
        return {}

    normalized: Dict[str, str] = {}
    for raw_key, raw_value in raw.items():
        key = normalize_lookup_key(str(raw_key if raw_key is not None else ""))
        value = _clean_marker_text(str(raw_value if raw_value is not None else ""))
        if not key or not value:
            continue

        value_key = normalize_lookup_key(value)
        canonical = GLOBAL_ALIAS_LOOKUP.get(value_key)
        if canonical is None:
            pattern = _pattern_resolution(value_key)
            canonical = pattern.canonical_marker if pattern else to_title_case(value)
        if not canonical or canonical == UNKNOWN_MARKER:
            continue
        normalized[key] = canonical
    return normalized


class AliasOverrideStore:
    """Process-wide override slot with explicit set/get. get() returns a copy."""

    def __init__(self):
        self._overrides: Dict[str, str] = {}
        self._lock = threading.RLock()

    def set(self, overrides: Optional[Mapping[str, str]]) -> None:
        cleaned = normalize_marker_alias_overrides(overrides or {})
        with self._lock:
            self._overrides = cleaned

    def get(self) -> Dict[str, str]:
        with self._lock:
            return dict(self._overrides)

    def clear(self) -> None:
        with self._lock:
            self._overrides = {}


alias_override_store = AliasOverrideStore()


# ============================================================================
# TOKEN SCORING
# ============================================================================

def _unit_looks_compatible(entry: CanonicalMarkerCatalogEntry, raw_unit: str) -> bool:
    if not raw_unit:
        return True
    expected = [_unit_token(unit) for unit in entry.preferred_unit_by_system.values() if _unit_token(unit)]
    if not expected:
        return True
    return _unit_token(raw_unit) in expected


def score_entry(
    entry: CanonicalMarkerCatalogEntry,
    normalized_raw: str,
    raw_tokens: Set[str],
    raw_unit: str
) -> Tuple[float, Optional[str]]:
    """
    Best alias score of one catalog entry for a label.

    Returns:
        (score clamped to [0, 100], matched alias or None)
    """
    best_score = 0.0
    matched_alias = ""

    for alias in entry.aliases:
        normalized_alias = normalize_lookup_key(alias)
        alias_tokens = _token_set(normalized_alias)
        if not normalized_alias or not alias_tokens:
            continue

        shared = sum(1 for token in alias_tokens if token in raw_tokens)
        score = shared / len(alias_tokens) * 65
        if normalized_raw == normalized_alias:
            score += 30
        elif normalized_alias in normalized_raw:
            score += 15

        if not _unit_looks_compatible(entry, raw_unit):
            score -= 10
        elif raw_unit:
            score += 6

        if entry.must_contain:
            if all(normalize_lookup_key(item) in normalized_raw for item in entry.must_contain):
                score += 8
            else:
                score -= 18

        if entry.must_not_contain and any(
            normalize_lookup_key(item) in normalized_raw for item in entry.must_not_contain
        ):
            score -= 35

        if score > best_score:
            best_score = score
            matched_alias = alias

    if NARRATIVE_NOISE_PATTERN.search(normalized_raw):
        best_score -= 40

    return max(0.0, min(100.0, best_score)), matched_alias or None


def _looks_narrative_or_noise(normalized: str) -> bool:
    if not normalized:
        return True
    if NARRATIVE_NOISE_PATTERN.search(normalized):
        return True
    tokens = [token for token in normalized.split(" ") if token]
    if len(tokens) == 1 and tokens[0] in STOPWORD_SINGLE:
        return True
    return len(tokens) >= 9 and not RESOLVER_ANCHOR_PATTERN.search(normalized)


# ============================================================================
# RESOLUTION
# ============================================================================

def _unknown() -> CanonicalResolution:
    return CanonicalResolution(canonical_marker=UNKNOWN_MARKER, confidence=0.0, method=ResolutionMethod.UNKNOWN)


def resolve_canonical_marker(
    raw_name: str,
    unit: Optional[str] = None,
    mode: Optional[str] = None,
    overrides: Optional[Mapping[str, str]] = None,
    store: Optional[AliasOverrideStore] = None
) -> CanonicalResolution:
    """
    Resolve a raw label to a canonical marker.

    Args:
        raw_name: Label as printed on the report
        unit: Raw unit, used as a tie-breaker during token scoring
        mode: conservative / balanced / aggressive token-score threshold
        overrides: Per-call alias overrides; they win over the store
        store: Override slot to merge under `overrides` (default: module store)

    Returns:
        CanonicalResolution
    """
    mode = mode or parser_settings.NORMALIZATION_MODE
    cleaned_raw = _clean_marker_text(raw_name or "")
    normalized = normalize_lookup_key(cleaned_raw)
    if not normalized:
        return _unknown()

    exact = GLOBAL_ALIAS_LOOKUP.get(normalized)
    pattern = None if exact else _pattern_resolution(normalized)
    label_canonical = exact or (pattern.canonical_marker if pattern else None)

    merged_overrides = (store or alias_override_store).get()
    merged_overrides.update(normalize_marker_alias_overrides(overrides or {}))
    override_hit = merged_overrides.get(normalized)
    if override_hit and label_canonical and not can_merge_markers_by_specimen(label_canonical, override_hit):
        logger.debug(f"Ignoring cross-specimen override '{normalized}' -> '{override_hit}' (label is {label_canonical})")
        override_hit = None
    if override_hit:
        return CanonicalResolution(
            canonical_marker=override_hit,
            confidence=1.0,
            method=ResolutionMethod.OVERRIDE,
            matched_alias=cleaned_raw,
        )

    if exact:
        return CanonicalResolution(
            canonical_marker=exact,
            confidence=0.99,
            method=ResolutionMethod.EXACT_ALIAS,
            matched_alias=cleaned_raw,
        )

    if pattern:
        return pattern

    label_urine = infer_specimen(cleaned_raw) == Specimen.URINE
    tokens = _token_set(normalized)
    best_canonical = None
    best_score = -1.0
    best_alias = None
    for entry in CANONICAL_MARKERS:
        if label_urine and infer_specimen(entry.canonical_key) != Specimen.URINE:
            continue
        score, alias = score_entry(entry, normalized, tokens, unit or "")
        if score > best_score:
            best_canonical, best_score, best_alias = entry.canonical_key, score, alias

    threshold = MODE_THRESHOLDS.get(mode, MODE_THRESHOLDS["balanced"])
    if best_canonical is not None and best_score >= threshold:
        return CanonicalResolution(
            canonical_marker=best_canonical,
            confidence=min(0.96, max(0.52, best_score / 100)),
            method=ResolutionMethod.TOKEN_SCORE,
            matched_alias=best_alias,
        )

    if _looks_narrative_or_noise(normalized):
        return _unknown()

    return CanonicalResolution(
        canonical_marker=to_title_case(cleaned_raw),
        confidence=0.35,
        method=ResolutionMethod.UNKNOWN,
    )
