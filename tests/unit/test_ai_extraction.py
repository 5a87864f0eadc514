# ============================================================================
# tests/unit/test_ai_extraction.py
# ============================================================================
"""
Tests for AI marker normalisation and the AI extraction service
"""

import pytest

from src.lab_extraction.ai import AIExtractionService, ResponseCache, RetryPolicy, normalize_ai_marker
from src.lab_extraction.core.models import CandidateSource, EscalationState, ExtractionProvider
from src.lab_extraction.parsing import filter_marker_values_for_quality
from src.utils.exceptions import AIConsentRequiredError, AIRateLimitedError

AI_ANSWER = {
    "testDate": "2024-02-14",
    "markers": [
        {"marker": "Testosterone", "value": 18.2, "unit": "nmol/L", "referenceMin": 8, "referenceMax": 29,
         "confidence": 0.9},
        {"marker": "Sex Hormone Binding Globulin", "value": 35, "unit": "nmol/L", "referenceMin": 18,
         "referenceMax": 54, "confidence": 0.85},
    ],
}


class TestNormalizeAIMarker:
    """Test the AI acceptance gate"""

    def test_noise_and_narrative_dropped(self):
        """Test stray words and guideline prose never become markers"""
        raw = [
            {"marker": "is", "value": 5, "unit": "mmol/L"},
            {"marker": "for intermediate and high risk individuals", "value": 2.5, "unit": "mmol/L",
             "referenceMax": 2.5},
            AI_ANSWER["markers"][0],
            AI_ANSWER["markers"][1],
        ]

        markers = filter_marker_values_for_quality(
            marker for marker in (normalize_ai_marker(item) for item in raw) if marker is not None
        )

        assert [marker.canonical_marker for marker in markers] == ["Testosterone", "SHBG"]
        assert all(marker.source == CandidateSource.AI for marker in markers)

    def test_missing_value_or_name(self):
        assert normalize_ai_marker({"marker": "Testosterone", "value": "n/a"}) is None
        assert normalize_ai_marker({"value": 12}) is None

    def test_confidence_default_and_clamp(self):
        assert normalize_ai_marker({"marker": "Testosterone", "value": 12, "unit": "nmol/L"}).confidence == 0.7
        assert normalize_ai_marker(
            {"marker": "Testosterone", "value": 12, "unit": "nmol/L", "confidence": 1.4}
        ).confidence == 1.0

    def test_unit_normalised_with_raw_kept(self):
        marker = normalize_ai_marker({"marker": "Testosterone", "value": 288.4, "unit": "ng/dL"})

        assert marker.unit == "nmol/L"
        assert marker.value == pytest.approx(10.0)
        assert marker.raw_value == 288.4
        assert marker.raw_unit == "ng/dL"

    def test_unchanged_unit_has_no_raw_fields(self):
        marker = normalize_ai_marker(AI_ANSWER["markers"][0])
        assert marker.raw_value is None


@pytest.fixture
def fallback_draft(make_draft, make_marker):
    return make_draft(
        [make_marker("Hemoglobin", value=9.1, unit="mmol/L", reference_min=8.5, reference_max=11.0, confidence=0.7)],
        confidence=0.5,
        test_date="2024-02-10",
        needs_review=True,
    )


@pytest.fixture
def service(scripted_client, recorded_sleep):
    def _build(responses):
        client = scripted_client(responses)
        ai_service = AIExtractionService(
            client=client,
            models=["model-a", "model-b"],
            policy=RetryPolicy(max_transient_retries=1, base_delay=0.1, max_delay=1.0, jitter=0.0),
            cache=ResponseCache(max_size=10, default_ttl=60),
            sleep=recorded_sleep,
            rng=lambda: 0.0,
        )
        return ai_service, client

    return _build


class TestAIExtractionService:
    """Test the AI pass end to end with a scripted proxy"""

    async def test_consent_required(self, service, fallback_draft):
        ai_service, client = service([])

        with pytest.raises(AIConsentRequiredError):
            await ai_service.extract("text", "report.pdf", fallback_draft, consent=False)
        assert client.requests == []

    async def test_merges_with_fallback(self, service, ok, fallback_draft):
        ai_service, _ = service([ok(AI_ANSWER)])

        draft = await ai_service.extract("Testosterone 18.2 nmol/L", "report.pdf", fallback_draft, consent=True)

        assert {marker.canonical_marker for marker in draft.markers} == {"Testosterone", "SHBG", "Hemoglobin"}
        assert draft.test_date == "2024-02-14"
        assert draft.extraction.provider == ExtractionProvider.AI
        assert draft.extraction.model == "model-a+fallback-merge"
        assert draft.extraction.escalation == EscalationState.AI_MERGED
        assert draft.extraction.confidence == pytest.approx((0.9 + 0.85 + 0.7) / 3)
        assert draft.extraction.needs_review is False

    async def test_invalid_ai_date_keeps_fallback_date(self, service, ok, fallback_draft):
        ai_service, _ = service([ok({**AI_ANSWER, "testDate": "14-02-2024"})])

        draft = await ai_service.extract("text", "report.pdf", fallback_draft, consent=True)

        assert draft.test_date == "2024-02-10"

    async def test_unparseable_answer_keeps_local_markers(self, service, ok, fallback_draft):
        """Test a non-JSON answer is not fatal"""
        ai_service, _ = service([ok("Sorry, I cannot read this report.")])

        draft = await ai_service.extract("text", "report.pdf", fallback_draft, consent=True)

        assert [marker.canonical_marker for marker in draft.markers] == ["Hemoglobin"]
        assert all(marker.source == CandidateSource.FALLBACK for marker in draft.markers)

    async def test_identifiers_redacted_before_sending(self, service, ok, fallback_draft):
        ai_service, client = service([ok(AI_ANSWER)])

        await ai_service.extract("Mail: jan@example.com\nTestosterone 18.2 nmol/L", "report.pdf",
                                 fallback_draft, consent=True)

        prompt = client.requests[0][1]
        assert "jan@example.com" not in prompt
        assert "Testosterone 18.2 nmol/L" in prompt

    async def test_cached_answer_reused(self, service, ok, fallback_draft):
        """Test the same report does not pay for a second request"""
        ai_service, client = service([ok(AI_ANSWER)])

        await ai_service.extract("text", "report.pdf", fallback_draft, consent=True)
        await ai_service.extract("text", "report.pdf", fallback_draft, consent=True)

        assert len(client.requests) == 1

    async def test_provider_errors_propagate(self, service, error, fallback_draft):
        ai_service, _ = service([error(429, retryAfter=5)])

        with pytest.raises(AIRateLimitedError):
            await ai_service.extract("text", "report.pdf", fallback_draft, consent=True)

    async def test_close_closes_client(self, service):
        ai_service, client = service([])
        await ai_service.close()
        assert client.closed
