# ============================================================================
# src/lab_extraction/core/models.py
# ============================================================================
"""
Data model for lab report extraction.

Positional text (SpatialRow / SpatialItem) and the text-layer summary
(RawTextLayout) come from acquisition. Strategies produce ParsedRow
candidates which are resolved into MarkerValue entries of an
ExtractionDraft. Drafts are immutable; every stage returns a new one.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional, Pattern, Tuple


class AbnormalFlag(str, Enum):
    LOW = "low"
    HIGH = "high"
    NORMAL = "normal"
    UNKNOWN = "unknown"


class ExtractionProvider(str, Enum):
    FALLBACK = "fallback"
    AI = "ai"


class ResolutionMethod(str, Enum):
    OVERRIDE = "override"
    EXACT_ALIAS = "exact_alias"
    PATTERN = "pattern"
    TOKEN_SCORE = "token_score"
    UNKNOWN = "unknown"


class EscalationState(str, Enum):
    """How far a document travelled through the rescue ladder."""
    LOCAL = "local"
    OCR_BOOSTED = "ocr_boosted"
    AI_MERGED = "ai_merged"


class CandidateSource(str, Enum):
    FALLBACK = "fallback"
    AI = "ai"


def derive_abnormal_flag(
    value: float,
    reference_min: Optional[float],
    reference_max: Optional[float]
) -> AbnormalFlag:
    """Classify a value against its reference range."""
    if reference_min is not None and value < reference_min:
        return AbnormalFlag.LOW
    if reference_max is not None and value > reference_max:
        return AbnormalFlag.HIGH
    if reference_min is None and reference_max is None:
        return AbnormalFlag.UNKNOWN
    return AbnormalFlag.NORMAL


# ============================================================================
# Acquisition
# ============================================================================

@dataclass(frozen=True)
class SpatialItem:
    """A positioned text fragment (x is the left edge in PDF points)."""
    x: float
    text: str


@dataclass(frozen=True)
class SpatialRow:
    """Text fragments sharing a baseline. y grows upwards (bottom origin)."""
    page: int
    y: float
    items: Tuple[SpatialItem, ...] = ()


@dataclass(frozen=True)
class RawTextLayout:
    """Read-only summary of a PDF text layer."""
    text: str
    page_count: int = 1
    text_item_count: int = 0
    line_count: int = 0
    non_whitespace_chars: int = 0
    spatial_rows: Tuple[SpatialRow, ...] = ()

    @classmethod
    def from_text(cls, text: str, page_count: int = 1) -> "RawTextLayout":
        """Layout summary for plain text without positional information."""
        lines = [line for line in text.split("\n") if line.strip()]
        return cls(
            text=text,
            page_count=page_count,
            text_item_count=len(text.split()),
            line_count=len(lines),
            non_whitespace_chars=sum(1 for char in text if not char.isspace()),
        )


# ============================================================================
# Parsing
# ============================================================================

@dataclass(frozen=True)
class ParserProfile:
    """Per-document parsing toggles chosen once from text/filename signals."""
    id: str
    require_unit: bool
    enable_keyword_range_parser: bool
    line_noise_pattern: Pattern


@dataclass
class ParsedRow:
    """Candidate row emitted by a parsing strategy."""
    marker_name: str
    value: float
    unit: str
    reference_min: Optional[float]
    reference_max: Optional[float]
    confidence: float


@dataclass
class ReferenceAndUnit:
    reference_min: Optional[float] = None
    reference_max: Optional[float] = None
    unit: str = ""


# ============================================================================
# Markers and drafts
# ============================================================================

@dataclass
class MarkerValue:
    """
    One extracted measurement.

    value/unit/reference_* hold the canonical-unit form; raw_* keep what
    the report said before unit normalisation. The abnormal flag is always
    derived from value and range, never stored.
    """
    id: str
    marker: str
    canonical_marker: str
    value: float
    unit: str
    reference_min: Optional[float]
    reference_max: Optional[float]
    confidence: float
    is_calculated: bool = False
    source: CandidateSource = CandidateSource.FALLBACK
    raw_value: Optional[float] = None
    raw_unit: Optional[str] = None
    raw_reference_min: Optional[float] = None
    raw_reference_max: Optional[float] = None

    @property
    def abnormal(self) -> AbnormalFlag:
        return derive_abnormal_flag(self.value, self.reference_min, self.reference_max)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "marker": self.marker,
            "canonicalMarker": self.canonical_marker,
            "value": self.value,
            "unit": self.unit,
            "referenceMin": self.reference_min,
            "referenceMax": self.reference_max,
            "abnormal": self.abnormal.value,
            "confidence": self.confidence,
        }
        if self.is_calculated:
            data["isCalculated"] = True
        if self.raw_value is not None:
            data["rawValue"] = self.raw_value
        if self.raw_unit is not None:
            data["rawUnit"] = self.raw_unit
        if self.raw_reference_min is not None:
            data["rawReferenceMin"] = self.raw_reference_min
        if self.raw_reference_max is not None:
            data["rawReferenceMax"] = self.raw_reference_max
        return data


@dataclass(frozen=True)
class ExtractionMeta:
    provider: ExtractionProvider
    model: str
    confidence: float
    needs_review: bool
    warnings: Tuple[str, ...] = ()
    warning_code: Optional[str] = None
    escalation: EscalationState = EscalationState.LOCAL

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "provider": self.provider.value,
            "model": self.model,
            "confidence": self.confidence,
            "needsReview": self.needs_review,
        }
        if self.warnings:
            data["warnings"] = list(self.warnings)
        if self.warning_code:
            data["warningCode"] = self.warning_code
        return data


@dataclass(frozen=True)
class ExtractionDraft:
    """One complete extraction attempt for a single document."""
    source_file_name: str
    test_date: str
    markers: Tuple[MarkerValue, ...]
    extraction: ExtractionMeta

    def with_extraction(self, **changes) -> "ExtractionDraft":
        """Copy of this draft with some ExtractionMeta fields replaced."""
        return replace(self, extraction=replace(self.extraction, **changes))

    def with_warning(self, code: str) -> "ExtractionDraft":
        warnings = self.extraction.warnings
        if code in warnings:
            return self
        return self.with_extraction(warnings=warnings + (code,), warning_code=self.extraction.warning_code or code)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sourceFileName": self.source_file_name,
            "testDate": self.test_date,
            "markers": [marker.to_dict() for marker in self.markers],
            "extraction": self.extraction.to_dict(),
        }


# ============================================================================
# Canonical marker catalog
# ============================================================================

@dataclass(frozen=True)
class CanonicalMarkerCatalogEntry:
    canonical_key: str
    aliases: Tuple[str, ...]
    preferred_unit_by_system: Dict[str, str] = field(default_factory=dict)
    category: str = "other"
    must_contain: Tuple[str, ...] = ()
    must_not_contain: Tuple[str, ...] = ()


@dataclass(frozen=True)
class CanonicalResolution:
    canonical_marker: str
    confidence: float
    method: ResolutionMethod
    matched_alias: Optional[str] = None


# ============================================================================
# Local vs AI diff
# ============================================================================

@dataclass(frozen=True)
class DiffSnapshot:
    """Comparable view of one marker (raw values preferred)."""
    marker: str
    canonical_marker: str
    value: float
    unit: str
    reference_min: Optional[float]
    reference_max: Optional[float]
    confidence: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "marker": self.marker,
            "canonicalMarker": self.canonical_marker,
            "value": self.value,
            "unit": self.unit,
            "referenceMin": self.reference_min,
            "referenceMax": self.reference_max,
            "confidence": self.confidence,
        }


@dataclass(frozen=True)
class ChangedMarker:
    key: str
    local: DiffSnapshot
    ai: DiffSnapshot
    changed_fields: Tuple[str, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "local": self.local.to_dict(),
            "ai": self.ai.to_dict(),
            "changedFields": list(self.changed_fields),
        }


@dataclass(frozen=True)
class DraftSummary:
    marker_count: int
    confidence: float
    warnings: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "markerCount": self.marker_count,
            "confidence": self.confidence,
            "warnings": list(self.warnings),
        }


@dataclass(frozen=True)
class ExtractionDiffSummary:
    local: DraftSummary
    ai: DraftSummary
    local_test_date: str
    ai_test_date: str
    test_date_changed: bool
    added: Tuple[DiffSnapshot, ...]
    removed: Tuple[DiffSnapshot, ...]
    changed: Tuple[ChangedMarker, ...]
    has_changes: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "local": self.local.to_dict(),
            "ai": self.ai.to_dict(),
            "localTestDate": self.local_test_date,
            "aiTestDate": self.ai_test_date,
            "testDateChanged": self.test_date_changed,
            "added": [item.to_dict() for item in self.added],
            "removed": [item.to_dict() for item in self.removed],
            "changed": [item.to_dict() for item in self.changed],
            "hasChanges": self.has_changes,
        }
