# ============================================================================
# src/lab_extraction/core/__init__.py
# ============================================================================
"""
Core data model. The pipeline lives in core.pipeline and is imported
explicitly to keep this package free of import cycles.
"""

from .models import (
    AbnormalFlag,
    CandidateSource,
    CanonicalMarkerCatalogEntry,
    CanonicalResolution,
    ChangedMarker,
    DiffSnapshot,
    DraftSummary,
    EscalationState,
    ExtractionDiffSummary,
    ExtractionDraft,
    ExtractionMeta,
    ExtractionProvider,
    MarkerValue,
    ParsedRow,
    ParserProfile,
    RawTextLayout,
    ReferenceAndUnit,
    ResolutionMethod,
    SpatialItem,
    SpatialRow,
    derive_abnormal_flag,
)
