# ============================================================================
# src/lab_extraction/normalization/__init__.py
# ============================================================================
"""
Marker label cleanup, canonical resolution and unit normalisation.
"""

from .sanitizer import (
    sanitize_marker_name,
    clean_marker_name,
    apply_profile_marker_fixes,
    looks_like_noise_marker,
    score_marker_candidate,
    is_acceptable_marker_candidate,
)
from .catalog import CANONICAL_MARKERS, GLOBAL_ALIAS_LOOKUP, build_alias_lookup, canonicalize_marker
from .specimen import Specimen, infer_specimen, can_merge_markers_by_specimen
from .resolver import (
    AliasOverrideStore,
    alias_override_store,
    normalize_marker_alias_overrides,
    resolve_canonical_marker,
)
from .units import (
    Measurement,
    SystemValue,
    normalize_marker_measurement,
    raw_measurement_fields,
    convert_by_system,
)
