# ============================================================================
# FILE: tests/conftest.py
# ============================================================================
"""
Pytest configuration and shared fixtures for testing.
"""

import json
from typing import List

import pytest

from src.lab_extraction.ai.client import BaseAIClient, ProviderResponse
from src.lab_extraction.core.models import (
    CandidateSource,
    ExtractionDraft,
    ExtractionMeta,
    ExtractionProvider,
    MarkerValue,
)


@pytest.fixture
def sample_lab_text():
    """Sample flattened lab report text"""
    return "\n".join([
        "Laboratory Report",
        "Sample date: 14-02-2024",
        "Report date: 20-02-2024",
        "Testosterone 18.2 nmol/L 8.0 - 29.0",
        "Free Testosterone 0.42 nmol/L 0.20 - 0.62",
        "SHBG 35 nmol/L 18 - 54",
        "Estradiol 96 pmol/L 40 - 160",
        "Hematocrit 0.45 L/L 0.40 - 0.50",
        "Hemoglobin 9.1 mmol/L 8.5 - 11.0",
        "Ferritin 85 ug/L 30 - 400",
    ])


@pytest.fixture
def make_marker():
    """Factory for MarkerValue entries with sensible defaults"""
    counter = {"n": 0}

    def _make(
        canonical: str = "Testosterone",
        value: float = 18.2,
        unit: str = "nmol/L",
        reference_min=8.0,
        reference_max=29.0,
        confidence: float = 0.8,
        **kwargs
    ) -> MarkerValue:
        counter["n"] += 1
        fields = dict(
            id=f"marker-{counter['n']}",
            marker=canonical,
            canonical_marker=canonical,
            value=value,
            unit=unit,
            reference_min=reference_min,
            reference_max=reference_max,
            confidence=confidence,
            source=CandidateSource.FALLBACK,
        )
        fields.update(kwargs)
        return MarkerValue(**fields)

    return _make


@pytest.fixture
def make_draft():
    """Factory for fallback drafts"""
    def _make(
        markers=(),
        confidence: float = 0.8,
        test_date: str = "2024-02-14",
        file_name: str = "report.pdf",
        provider: ExtractionProvider = ExtractionProvider.FALLBACK,
        **meta
    ) -> ExtractionDraft:
        return ExtractionDraft(
            source_file_name=file_name,
            test_date=test_date,
            markers=tuple(markers),
            extraction=ExtractionMeta(
                provider=provider,
                model=meta.pop("model", "fallback-layered:adaptive"),
                confidence=confidence,
                needs_review=meta.pop("needs_review", False),
                **meta,
            ),
        )

    return _make


def ok_response(payload, stop_reason: str = "end_turn") -> ProviderResponse:
    """200 response whose text block holds payload (dict payloads are JSON-encoded)."""
    text = payload if isinstance(payload, str) else json.dumps(payload)
    return ProviderResponse(
        status=200,
        body={"content": [{"type": "text", "text": text}], "stop_reason": stop_reason},
    )


def error_response(status: int, message: str = "", code: str = "", retry_after=None, **body) -> ProviderResponse:
    error = {"message": message}
    if code:
        error["code"] = code
    return ProviderResponse(status=status, body={"error": error, **body}, retry_after=retry_after)


class ScriptedAIClient(BaseAIClient):
    """Returns queued responses in order and records every request."""

    def __init__(self, responses: List[ProviderResponse]):
        super().__init__()
        self.responses = list(responses)
        self.requests = []
        self.closed = False

    async def send(self, model: str, prompt: str, max_tokens: int) -> ProviderResponse:
        self.requests.append((model, prompt, max_tokens))
        if not self.responses:
            raise AssertionError(f"Unexpected request to {model}")
        return self.responses.pop(0)

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def scripted_client():
    """Factory for a ScriptedAIClient"""
    return ScriptedAIClient


@pytest.fixture
def recorded_sleep():
    """Async sleep replacement that records the requested delays"""
    delays = []

    async def _sleep(seconds: float) -> None:
        delays.append(seconds)

    _sleep.delays = delays
    return _sleep


@pytest.fixture
def ok():
    """Builder for 200 proxy responses"""
    return ok_response


@pytest.fixture
def error():
    """Builder for failed proxy responses"""
    return error_response
