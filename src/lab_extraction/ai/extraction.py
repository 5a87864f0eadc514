# ============================================================================
# src/lab_extraction/ai/extraction.py
# ============================================================================
"""
AI Extraction Service

Escalation path for documents the local parser could not handle well:

1. Redact the parser text and file name
2. Build the strict-JSON prompt (cache lookup by model list + prompt)
3. Run the model retry state machine
4. Parse and normalise the AI markers through the same gates as the
   local rows, with the stricter AI acceptance thresholds
5. Merge with the local fallback markers and re-filter

A response that cannot be parsed is not fatal: the merge then carries
only the local markers. Transport and provider failures propagate as
AIExtractionError subclasses for the pipeline to map onto warnings.
"""

import logging
import re
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence

from ..config import ai_settings, threshold_settings
from ..constants.patterns import GUIDANCE_RESULT_PATTERN
from ..core.models import (
    CandidateSource,
    EscalationState,
    ExtractionDraft,
    ExtractionMeta,
    ExtractionProvider,
    MarkerValue,
)
from ..normalization.catalog import canonicalize_marker
from ..normalization.resolver import normalize_marker_alias_overrides
from ..normalization.sanitizer import is_acceptable_marker_candidate, sanitize_marker_name
from ..normalization.units import Measurement, normalize_marker_measurement, raw_measurement_fields
from ..parsing.cascade import filter_marker_values_for_quality, merge_marker_sets
from ..utils.privacy import sanitize_parser_text_for_ai
from ..utils.text_normalizer import normalize_lookup_key
from ..utils.values import clamp, create_id, safe_number
from ...utils.exceptions import AIConsentRequiredError
from ...utils.logging import log_performance
from .cache import ResponseCache
from .client import BaseAIClient, ProxyAIClient
from .prompts import build_extraction_prompt
from .response import parse_extraction_response, raw_markers
from .retry import CompletionResult, ModelRetryStateMachine, RetryPolicy

logger = logging.getLogger(__name__)

DEFAULT_AI_CONFIDENCE = 0.7
_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def normalize_ai_marker(
    raw: Dict[str, Any],
    overrides: Optional[Mapping[str, str]] = None
) -> Optional[MarkerValue]:
    """
    Turn one AI marker object into a MarkerValue, or None when it fails
    the AI acceptance gate.

    Example:
        >>> normalize_ai_marker({"marker": "Hemoglobin", "value": 9.1, "unit": "mmol/L"}).canonical_marker
        'Hemoglobin'
    """
    value = safe_number(raw.get("value"))
    marker_text = str(raw.get("marker") or "").strip()
    if value is None or not marker_text:
        return None

    marker_name = sanitize_marker_name(marker_text)
    unit = str(raw.get("unit") or "").strip()
    reference_min = safe_number(raw.get("referenceMin"))
    reference_max = safe_number(raw.get("referenceMax"))

    if not is_acceptable_marker_candidate(marker_name, unit, reference_min, reference_max, CandidateSource.AI):
        return None
    if GUIDANCE_RESULT_PATTERN.search(marker_name):
        return None

    canonical = (overrides or {}).get(normalize_lookup_key(marker_name)) or canonicalize_marker(marker_name)
    original = Measurement(value, unit, reference_min, reference_max)
    normalized = normalize_marker_measurement(canonical, value, unit, reference_min, reference_max)

    confidence = safe_number(raw.get("confidence"))
    return MarkerValue(
        id=create_id(),
        marker=marker_name,
        canonical_marker=canonical,
        value=normalized.value,
        unit=normalized.unit,
        reference_min=normalized.reference_min,
        reference_max=normalized.reference_max,
        confidence=clamp(confidence if confidence is not None else DEFAULT_AI_CONFIDENCE, 0.0, 1.0),
        source=CandidateSource.AI,
        **raw_measurement_fields(original, normalized),
    )


class AIExtractionService:
    """
    Sends redacted report text to the AI proxy and merges the answer with
    the local draft.

    Example:
        service = AIExtractionService()
        draft = await service.extract(text, "report.pdf", fallback_draft)
    """

    def __init__(
        self,
        client: Optional[BaseAIClient] = None,
        models: Optional[Sequence[str]] = None,
        policy: Optional[RetryPolicy] = None,
        cache: Optional[ResponseCache] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
        rng: Optional[Callable[[], float]] = None
    ):
        self.client = client or ProxyAIClient()
        self.models = list(models) if models is not None else list(ai_settings.AI_EXTRACTION_MODELS)
        self.policy = policy or RetryPolicy()
        self.cache = cache if cache is not None else ResponseCache()
        self.sleep = sleep
        self.rng = rng
        self.logger = logging.getLogger(self.__class__.__name__)

    def _state_machine(self) -> ModelRetryStateMachine:
        kwargs: Dict[str, Any] = {}
        if self.sleep is not None:
            kwargs["sleep"] = self.sleep
        if self.rng is not None:
            kwargs["rng"] = self.rng
        return ModelRetryStateMachine(self.client, models=self.models, policy=self.policy, **kwargs)

    async def _complete(self, prompt: str) -> CompletionResult:
        cache_model = "|".join(self.models)
        cached = self.cache.get(cache_model, prompt)
        if cached is not None:
            self.logger.info(f"AI cache hit for model set {cache_model}")
            return cached

        result = await self._state_machine().run(prompt)
        self.cache.set(cache_model, prompt, result)
        return result

    @log_performance(logger, "ai_extract")
    async def extract(
        self,
        text: str,
        file_name: str,
        fallback_draft: ExtractionDraft,
        overrides: Optional[Mapping[str, str]] = None,
        consent: Optional[bool] = None
    ) -> ExtractionDraft:
        """
        Run the AI pass and merge its markers with fallback_draft.

        Raises:
            AIConsentRequiredError: the user has not consented to external AI
            AIExtractionError: transport or provider failure after retries
        """
        if not (ai_settings.AI_EXTERNAL_CONSENT if consent is None else consent):
            raise AIConsentRequiredError()

        sanitized = sanitize_parser_text_for_ai(text, file_name)
        if sanitized.redaction_count:
            self.logger.info(f"Redacted {sanitized.redaction_count} identifier(s) before AI request")

        result = await self._complete(build_extraction_prompt(sanitized.text, sanitized.file_name))

        parsed = parse_extraction_response(result.text)
        alias_overrides = normalize_marker_alias_overrides(overrides) if overrides else {}
        ai_markers: List[MarkerValue] = []
        for raw in raw_markers(parsed):
            marker = normalize_ai_marker(raw, alias_overrides)
            if marker is not None:
                ai_markers.append(marker)

        markers = filter_marker_values_for_quality(merge_marker_sets(ai_markers, fallback_draft.markers))
        confidence = sum(marker.confidence for marker in markers) / len(markers) if markers else 0.0

        ai_date = str((parsed or {}).get("testDate") or "")
        test_date = ai_date if _ISO_DATE.match(ai_date) else fallback_draft.test_date

        self.logger.info(
            f"AI extraction of {file_name} via {result.model}: {len(ai_markers)} AI markers, "
            f"{len(markers)} after merge, confidence {confidence:.2f}"
        )

        return ExtractionDraft(
            source_file_name=file_name,
            test_date=test_date,
            markers=tuple(markers),
            extraction=ExtractionMeta(
                provider=ExtractionProvider.AI,
                model=f"{result.model}+fallback-merge",
                confidence=confidence,
                needs_review=confidence < threshold_settings.AI_REVIEW_CONFIDENCE or not markers,
                escalation=EscalationState.AI_MERGED,
            ),
        )

    async def close(self) -> None:
        await self.client.close()
