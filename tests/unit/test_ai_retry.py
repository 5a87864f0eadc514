# ============================================================================
# tests/unit/test_ai_retry.py
# ============================================================================
"""
Tests for the model fallback / retry state machine
"""

import pytest

from src.lab_extraction.ai.prompts import TRUNCATION_NOTICE
from src.lab_extraction.ai.retry import (
    ANALYSIS_ERROR_CODES,
    EXTRACTION_ERROR_CODES,
    ModelRetryStateMachine,
    RetryPolicy,
    body_retry_after,
)
from src.utils.exceptions import (
    AIEmptyResponseError,
    AILimitsUnavailableError,
    AIOverloadedError,
    AIProxyUnreachableError,
    AIRateLimitedError,
    AIRequestFailedError,
)

MODELS = ["model-a", "model-b"]
POLICY = RetryPolicy(max_transient_retries=2, base_delay=0.7, max_delay=4.2, jitter=0.26)


@pytest.fixture
def machine(scripted_client, recorded_sleep):
    """Factory for a state machine over scripted responses"""
    def _build(responses, codes=EXTRACTION_ERROR_CODES, rng=lambda: 0.0):
        client = scripted_client(responses)
        state_machine = ModelRetryStateMachine(
            client, models=MODELS, policy=POLICY, codes=codes, sleep=recorded_sleep, rng=rng, max_tokens=100
        )
        return state_machine, client

    return _build


class TestRetryPolicy:
    """Test delay computation"""

    def test_transient_statuses(self):
        assert RetryPolicy.is_transient(529)
        assert RetryPolicy.is_transient(500)
        assert RetryPolicy.is_transient(503)
        assert not RetryPolicy.is_transient(503, "AI_LIMITS_UNAVAILABLE")
        assert not RetryPolicy.is_transient(400)
        assert not RetryPolicy.is_transient(429)

    def test_exponential_backoff_with_jitter(self):
        assert POLICY.next_delay(0, None, lambda: 0.5) == pytest.approx(0.83)
        assert POLICY.next_delay(1, None, lambda: 0.0) == pytest.approx(1.4)

    def test_backoff_capped(self):
        assert POLICY.next_delay(5, None, lambda: 0.0) == pytest.approx(4.2)

    def test_retry_after_wins(self):
        assert POLICY.next_delay(0, 3, lambda: 0.9) == 3.0
        assert POLICY.next_delay(0, 30, lambda: 0.9) == 4.2

    def test_body_retry_after(self, error):
        assert body_retry_after(error(429, retryAfter=12.4)) == 12
        assert body_retry_after(error(429, retryAfter=12.5)) == 13
        assert body_retry_after(error(429, retryAfter=0.2)) == 1
        assert body_retry_after(error(429)) == 0
        assert body_retry_after(error(429, retryAfter=True)) == 0


class TestStateMachine:
    """Test status-driven transitions"""

    async def test_first_model_succeeds(self, machine, ok, recorded_sleep):
        state_machine, client = machine([ok('{"markers": []}')])

        result = await state_machine.run("prompt")

        assert result.text == '{"markers": []}'
        assert result.model == "model-a"
        assert result.truncated is False
        assert client.requests == [("model-a", "prompt", 100)]
        assert recorded_sleep.delays == []

    async def test_rate_limit_not_retried(self, machine, error):
        """Test 429 surfaces immediately with the body retry hint"""
        state_machine, client = machine([error(429, retryAfter=12.4)])

        with pytest.raises(AIRateLimitedError) as exc_info:
            await state_machine.run("prompt")

        assert exc_info.value.code == "PDF_RATE_LIMITED:12"
        assert exc_info.value.retry_after == 12
        assert len(client.requests) == 1

    async def test_rate_limit_analysis_codes(self, machine, error):
        state_machine, _ = machine([error(429, retryAfter=0.2)], codes=ANALYSIS_ERROR_CODES)

        with pytest.raises(AIRateLimitedError) as exc_info:
            await state_machine.run("prompt")
        assert str(exc_info.value) == "AI_RATE_LIMITED:1"

    async def test_overload_retried_then_succeeds(self, machine, ok, error, recorded_sleep):
        state_machine, client = machine([error(529, "overloaded"), ok("done")], rng=lambda: 0.5)

        result = await state_machine.run("prompt")

        assert result.text == "done"
        assert result.model == "model-a"
        assert recorded_sleep.delays == [pytest.approx(0.83)]
        assert len(client.requests) == 2

    async def test_missing_model_falls_through(self, machine, ok, error, recorded_sleep):
        """Test 404 moves to the next model without waiting"""
        state_machine, client = machine([error(404, "not found"), ok("done")])

        result = await state_machine.run("prompt")

        assert result.model == "model-b"
        assert [request[0] for request in client.requests] == ["model-a", "model-b"]
        assert recorded_sleep.delays == []

    async def test_bad_request_about_model_falls_through(self, machine, ok, error):
        state_machine, _ = machine([error(400, "Invalid model name"), ok("done")])
        assert (await state_machine.run("prompt")).model == "model-b"

    async def test_overload_exhausts_all_models(self, machine, error, recorded_sleep):
        """Test three attempts per model, then AI_OVERLOADED"""
        state_machine, client = machine([error(529, "overloaded")] * 6)

        with pytest.raises(AIOverloadedError) as exc_info:
            await state_machine.run("prompt")

        assert exc_info.value.code == "AI_OVERLOADED"
        assert len(client.requests) == 6
        assert recorded_sleep.delays == [pytest.approx(d) for d in (0.7, 1.4, 0.7, 1.4)]

    async def test_server_error_uses_retry_after_header(self, machine, ok, error, recorded_sleep):
        state_machine, _ = machine([error(503, "busy", retry_after=3), ok("done")])

        await state_machine.run("prompt")

        assert recorded_sleep.delays == [3.0]

    async def test_exhausted_server_errors_fail(self, machine, error):
        state_machine, _ = machine([error(500, "boom")] * 6)

        with pytest.raises(AIRequestFailedError) as exc_info:
            await state_machine.run("prompt")
        assert exc_info.value.code == "PDF_EXTRACTION_FAILED:500:boom"

    async def test_limits_unavailable_is_permanent(self, machine, error):
        state_machine, client = machine([error(503, "no limits", code="AI_LIMITS_UNAVAILABLE")])

        with pytest.raises(AILimitsUnavailableError):
            await state_machine.run("prompt")
        assert len(client.requests) == 1

    async def test_other_status_stops(self, machine, error):
        """Test a non-transient error does not retry or fall through"""
        state_machine, client = machine([error(401, "unauthorized")])

        with pytest.raises(AIRequestFailedError) as exc_info:
            await state_machine.run("prompt")

        assert exc_info.value.status == 401
        assert exc_info.value.code == "PDF_EXTRACTION_FAILED:401:unauthorized"
        assert len(client.requests) == 1

    async def test_empty_text_is_an_error(self, machine, ok):
        state_machine, _ = machine([ok("   ")])

        with pytest.raises(AIEmptyResponseError) as exc_info:
            await state_machine.run("prompt")
        assert exc_info.value.code == "PDF_EMPTY_RESPONSE"

    async def test_truncated_output_continued(self, machine, ok):
        """Test one continuation request is appended after a max_tokens stop"""
        state_machine, client = machine([ok("part one", stop_reason="max_tokens"), ok("part two")])

        result = await state_machine.run("prompt")

        assert result.text == "part one\n\npart two"
        assert result.truncated is False
        assert "PARTIAL ANSWER START" in client.requests[1][1]

    async def test_still_truncated_gets_notice(self, machine, ok):
        state_machine, _ = machine([
            ok("part one", stop_reason="max_tokens"),
            ok("part two", stop_reason="max_tokens"),
        ])

        result = await state_machine.run("prompt")

        assert result.truncated is True
        assert result.text.endswith(TRUNCATION_NOTICE)

    async def test_unreachable_proxy_propagates(self, scripted_client, recorded_sleep):
        class UnreachableClient(scripted_client):
            async def send(self, model, prompt, max_tokens):
                raise AIProxyUnreachableError("PDF_PROXY_UNREACHABLE", detail="connection refused")

        state_machine = ModelRetryStateMachine(UnreachableClient([]), models=MODELS, sleep=recorded_sleep)

        with pytest.raises(AIProxyUnreachableError):
            await state_machine.run("prompt")
