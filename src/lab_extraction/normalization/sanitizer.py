# ============================================================================
# src/lab_extraction/normalization/sanitizer.py
# ============================================================================
"""
Marker Label Sanitizer & Noise Scorer

Cleans candidate labels coming out of the row strategies and decides
whether they look like a real lab measurement or like report chrome,
commentary and guideline prose.

Noise detection and scoring are rule tables (pattern/predicate -> veto or
score delta) so each rule can be tested on its own and the tables can
be tuned without touching control flow.
"""

import re
from dataclasses import dataclass
from typing import Callable, List, NamedTuple, Optional, Tuple

from ..constants.markers import SHORT_MARKER_ALLOWLIST, STOPWORD_SINGLE
from ..constants.patterns import (
    COMMENTARY_FRAGMENT_PATTERN,
    COMMENTARY_GUARD_PATTERN,
    GUIDANCE_RESULT_PATTERN,
    HISTORY_CALCULATOR_NOISE_PATTERN,
    LEADING_UNIT_FRAGMENT_PATTERN,
    MARKER_ANCHOR_PATTERN,
    METHOD_SUFFIX_PATTERN,
    SECTION_PREFIX_PATTERN,
)
from ..core.models import CandidateSource
from ..utils.text_normalizer import clean_whitespace, is_likely_unit

I = re.IGNORECASE

# ============================================================================
# LABEL CLEANUP
# ============================================================================

_LEADING_NON_LETTERS = re.compile(r"^[^A-Za-zÀ-ž]+")
_DOCTOR_SUFFIX = re.compile(r"\s*\([^)]*dr\.[^)]*\)$", I)
_RANGE_PHRASE = re.compile(r"\b(?:within|above|below)\s+(?:luteal|follicular|optimal|reference)?\s*range\b", I)

# Flattened row prefixes like "15.5 % 8/58 A " or "Nmol/l 53/58 A "
_ROW_PREFIXES = [
    re.compile(r"^\d+(?:[.,]\d+)?\s*%?\s+\d{1,3}\/\d{2,3}\s+A?\s+", I),
    re.compile(r"^[A-Za-zµμ%]+\/[A-Za-z0-9µμ%]+\s+\d{1,3}\/\d{2,3}\s+A?\s+", I),
    re.compile(r"^\d{1,3}\/\d{2,3}\s+A?\s+", I),
    re.compile(r"^[A-Za-zµμ%]+\/[A-Za-z0-9µμ%]+\s*[-–]\s*-?\d+(?:[.,]\d+)?\s+-?\d+(?:[.,]\d+)?\s+", I),
    re.compile(r"^[A-Za-zµμ%]+\/[A-Za-z0-9µμ%]+\s*(?:<|>|≤|≥)\s*-?\d+(?:[.,]\d+)?\s+", I),
    re.compile(r"^uw metingen\s+", I),
    re.compile(r"^zie\s*opm\.?\s*", I),
]

_TRAILING_COMPARATORS = re.compile(r"\s*[=<>]+\s*$")
_MCH_NOTE = re.compile(
    r"\b(langere tijd tussen (?:bloed)?afname en analyse|longer time between blood collection and analysis)\b", I
)
_ANCHOR_PREFIX_NOISE = re.compile(
    r"\b(?:risk|risico|report|resultaat|patient|uitslag|diagnostiek|caution|interpret|method|given|"
    r"individuals|effective|assessment|presence)\b",
    I,
)
_TRAILING_PUNCTUATION = re.compile(r"[.,;:]+$")

_PROFILE_FIXES: List[Tuple[re.Pattern, str]] = [
    (re.compile(r"^Result\s+", I), ""),
    (re.compile(r"\bT otal\b"), "Total"),
    (re.compile(r"^.*\bSex Hormone Binding Globulin\b", I), "SHBG"),
    (re.compile(r"^Sex Horm Binding Glob(?:,?\s*Serum)?$", I), "SHBG"),
    (re.compile(r"^Sex Hormone Binding Globulin$", I), "SHBG"),
    (re.compile(r"^Ratio:\s*T\/SHBG.*$", I), "SHBG"),
]


def clean_marker_name(raw_marker: str) -> str:
    """
    Strip layout debris from a candidate label.

    Removes leading non-letters, range phrases, flattened row-index
    prefixes, unit fragments, section headers (repeatedly), method
    suffixes and trailing comparators. When a known marker term appears
    after a long or narrative prefix, the label is cut at that term.
    """
    marker = clean_whitespace(raw_marker)
    marker = _LEADING_NON_LETTERS.sub("", marker)
    marker = _DOCTOR_SUFFIX.sub("", marker)
    marker = _RANGE_PHRASE.sub("", marker).strip()

    for pattern in _ROW_PREFIXES:
        marker = pattern.sub("", marker, count=1)
    marker = marker.strip()

    if LEADING_UNIT_FRAGMENT_PATTERN.match(marker):
        marker = LEADING_UNIT_FRAGMENT_PATTERN.sub("", marker, count=1).strip()

    while SECTION_PREFIX_PATTERN.match(marker):
        marker = SECTION_PREFIX_PATTERN.sub("", marker, count=1).strip()

    marker = METHOD_SUFFIX_PATTERN.sub("", marker).strip()
    marker = _TRAILING_COMPARATORS.sub("", marker).strip()

    if _MCH_NOTE.search(marker):
        return "MCH"

    anchor = MARKER_ANCHOR_PATTERN.search(marker)
    if anchor and anchor.start() > 0:
        prefix = marker[:anchor.start()]
        if len(prefix) > 20 or _ANCHOR_PREFIX_NOISE.search(prefix):
            marker = marker[anchor.start():].strip()

    words = marker.split(" ")
    if len(words) > 10:
        marker = " ".join(words[-6:])

    return _TRAILING_PUNCTUATION.sub("", marker).strip()


def apply_profile_marker_fixes(marker_name: str) -> str:
    """Lab-specific label spellings (SHBG variants, "T otal")."""
    marker = marker_name
    for pattern, replacement in _PROFILE_FIXES:
        marker = pattern.sub(replacement, marker)
    return re.sub(r"\s{2,}", " ", marker).strip()


def sanitize_marker_name(raw_marker: str) -> str:
    return apply_profile_marker_fixes(clean_marker_name(raw_marker))


def has_marker_anchor(text: str) -> bool:
    return bool(MARKER_ANCHOR_PATTERN.search(text))


# ============================================================================
# NOISE RULES
# ============================================================================

class LabelView(NamedTuple):
    """Pre-computed facts about a label, shared by all rules."""
    marker: str
    tokens: List[str]
    has_anchor: bool

    @classmethod
    def of(cls, marker: str) -> "LabelView":
        return cls(marker=marker, tokens=[t for t in marker.split(" ") if t], has_anchor=has_marker_anchor(marker))


@dataclass(frozen=True)
class NoiseRule:
    """
    Veto rule. Either a regex (searched in the label) or a predicate.
    With requires_no_anchor the veto only applies to labels without a
    known marker term.
    """
    name: str
    pattern: Optional[re.Pattern] = None
    predicate: Optional[Callable[[LabelView], bool]] = None
    requires_no_anchor: bool = False

    def matches(self, view: LabelView) -> bool:
        if self.requires_no_anchor and view.has_anchor:
            return False
        if self.pattern is not None:
            return bool(self.pattern.search(view.marker))
        return bool(self.predicate and self.predicate(view))


def _is_stopword_token(view: LabelView) -> bool:
    return len(view.tokens) == 1 and view.tokens[0].lower() in STOPWORD_SINGLE


def _is_short_unknown_token(view: LabelView) -> bool:
    if len(view.tokens) != 1:
        return False
    token = view.tokens[0]
    return len(token) <= 2 and token.upper() not in SHORT_MARKER_ALLOWLIST


def _looks_like_unit(view: LabelView) -> bool:
    marker = view.marker
    if is_likely_unit(marker):
        return True
    return bool(re.match(r"^[A-Za-z%µμ/().-]+$", marker)) and "/" in marker


_MONTH_PATTERN = re.compile(r"\b(?:jan|feb|mar|apr|may|jun|jul|aug|sep|sept|oct|nov|dec)\b", I)

_REPORT_CHROME_PATTERN = re.compile(
    r"^(?:testing report|first name|arrival date|request complete|resultaat nummer|rapport|pagina|receiver|email|"
    r"phone|fax|validated|end of report|sample date|collection times?|patient|doctor|laboratory|specimen|"
    r"requesting physician|units?|result normal|age reference range|daily free cortisol pattern|"
    r"precision analytical|report date|date of birth|dob|sample material|requested test|request within|"
    r"low limit high limit|that values below|this is a laboratory calculation|lower ground|muster|to|over|"
    r"years?|www\.)\b",
    I,
)

NOISE_RULES: List[NoiseRule] = [
    NoiseRule("too_short", predicate=lambda v: len(v.marker) < 2),
    NoiseRule("stopword", predicate=_is_stopword_token),
    NoiseRule("short_token", predicate=_is_short_unknown_token),
    NoiseRule("no_letters", predicate=lambda v: not re.search(r"[A-Za-zÀ-ž]{2}", v.marker)),
    NoiseRule("leading_digit", pattern=re.compile(r"^\d")),
    NoiseRule("comparator", pattern=re.compile(r"[=<>]")),
    NoiseRule("unit_only", predicate=_looks_like_unit),
    NoiseRule("calculator", pattern=HISTORY_CALCULATOR_NOISE_PATTERN),
    NoiseRule("commentary", pattern=COMMENTARY_FRAGMENT_PATTERN, requires_no_anchor=True),
    NoiseRule("guidance", pattern=GUIDANCE_RESULT_PATTERN),
    NoiseRule("commentary_guard", pattern=COMMENTARY_GUARD_PATTERN, requires_no_anchor=True),
    NoiseRule("guideline", pattern=re.compile(r"\b(?:individuals?|guideline|guidelines?)\b", I)),
    NoiseRule(
        "protocol_history",
        pattern=re.compile(r"\b(?:per\s+week|baseline|various\s+protocols?|roche\s*(?:cobas\s*)?assay)\b", I),
    ),
    NoiseRule(
        "dated_text",
        predicate=lambda v: bool(_MONTH_PATTERN.search(v.marker)) and bool(re.search(r"\d", v.marker)),
    ),
    NoiseRule("unit_run", pattern=re.compile(r"^(?:[A-Za-zµμ%]+\/[A-Za-z0-9µμ%]+\s+){2,}")),
    NoiseRule("unit_comparator", pattern=re.compile(r"^[A-Za-zµμ%]+\/[A-Za-z0-9µμ%]+\s*[<>]?$")),
    NoiseRule("long_sentence", predicate=lambda v: len(v.tokens) >= 8, requires_no_anchor=True),
    NoiseRule(
        "sentence_start",
        predicate=lambda v: len(v.tokens) > 3 and bool(
            re.match(r"^(?:for|if|this|that|please|interpret|new|changes|when|in)\b", v.marker, I)
        ),
        requires_no_anchor=True,
    ),
    NoiseRule("report_chrome", pattern=_REPORT_CHROME_PATTERN),
]


def noise_reasons(marker: str) -> List[str]:
    """Names of every noise rule the label trips (empty label -> too_short)."""
    if not marker:
        return ["too_short"]
    view = LabelView.of(marker)
    return [rule.name for rule in NOISE_RULES if rule.matches(view)]


def looks_like_noise_marker(marker: str) -> bool:
    if not marker:
        return True
    view = LabelView.of(marker)
    return any(rule.matches(view) for rule in NOISE_RULES)


# ============================================================================
# SCORING
# ============================================================================

class ScoreInput(NamedTuple):
    view: LabelView
    unit: str
    has_range: bool


@dataclass(frozen=True)
class ScoreRule:
    name: str
    delta: int
    predicate: Callable[[ScoreInput], bool]


BASE_SCORE = 45

_NARRATIVE_START = re.compile(r"^(?:for|if|this|that|please|interpret|new)\b", I)
_SENSITIVITY_PHRASE = re.compile(
    r"\b(?:individuals?|guidelines?|sensitive\s+to|further\s+information|target\s+reduction)\b", I
)

SCORE_RULES: List[ScoreRule] = [
    ScoreRule("anchor", +30, lambda s: s.view.has_anchor),
    ScoreRule("no_anchor", -15, lambda s: not s.view.has_anchor),
    ScoreRule("unit", +15, lambda s: bool(s.unit)),
    ScoreRule("reference_range", +10, lambda s: s.has_range),
    ScoreRule(
        "commentary_guard",
        -70,
        lambda s: bool(COMMENTARY_GUARD_PATTERN.search(s.view.marker) or GUIDANCE_RESULT_PATTERN.search(s.view.marker)),
    ),
    ScoreRule("stopword", -80, lambda s: _is_stopword_token(s.view)),
    ScoreRule("short_token", -40, lambda s: _is_short_unknown_token(s.view)),
    ScoreRule("narrative_start", -35, lambda s: bool(_NARRATIVE_START.match(s.view.marker))),
    ScoreRule("long_sentence", -35, lambda s: len(s.view.tokens) >= 8 and not s.view.has_anchor),
    ScoreRule("sensitivity_phrase", -40, lambda s: bool(_SENSITIVITY_PHRASE.search(s.view.marker))),
]


def score_marker_candidate(
    marker_name: str,
    unit: str,
    reference_min: Optional[float],
    reference_max: Optional[float]
) -> int:
    """Label plausibility score in [0, 100]."""
    marker = clean_whitespace(marker_name)
    if not marker:
        return 0

    scored = ScoreInput(
        view=LabelView.of(marker),
        unit=unit,
        has_range=reference_min is not None or reference_max is not None,
    )
    score = BASE_SCORE + sum(rule.delta for rule in SCORE_RULES if rule.predicate(scored))
    return max(0, min(100, score))


# (known marker, unknown marker) acceptance thresholds
ACCEPTANCE_THRESHOLDS = {
    CandidateSource.AI: (50, 72),
    CandidateSource.FALLBACK: (36, 54),
}


def is_acceptable_marker_candidate(
    marker_name: str,
    unit: str,
    reference_min: Optional[float],
    reference_max: Optional[float],
    source: CandidateSource = CandidateSource.FALLBACK
) -> bool:
    """
    Gate a candidate label. AI-sourced labels need a known marker term or
    a unit plus reference range, and a higher score.
    """
    marker = sanitize_marker_name(marker_name)
    if not marker or looks_like_noise_marker(marker):
        return False

    view = LabelView.of(marker)
    if _is_stopword_token(view) or _is_short_unknown_token(view):
        return False

    score = score_marker_candidate(marker, unit, reference_min, reference_max)
    known_marker = view.has_anchor or marker.upper() in SHORT_MARKER_ALLOWLIST
    strong_structure = bool(unit) and (reference_min is not None or reference_max is not None)

    if source == CandidateSource.AI and not known_marker and not strong_structure:
        return False

    known_threshold, unknown_threshold = ACCEPTANCE_THRESHOLDS[source]
    return score >= (known_threshold if known_marker else unknown_threshold)
