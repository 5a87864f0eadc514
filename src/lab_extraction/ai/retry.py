# ============================================================================
# src/lab_extraction/ai/retry.py
# ============================================================================
"""
Model Fallback & Retry

ModelRetryStateMachine walks the candidate models in order; each model
gets up to 1 + max_transient_retries attempts:

    2xx                          -> done (one continuation if cut off)
    429                          -> AIRateLimitedError, no local retry
    503 + AI_LIMITS_UNAVAILABLE  -> AILimitsUnavailableError
    404, 400 mentioning "model"  -> next model
    529 / other 5xx              -> back off and retry, then next model
    anything else                -> stop

When nothing succeeds: AIOverloadedError if the last status was 529,
else AIRequestFailedError. Sleep and randomness are injectable so tests
never wait on real timers.
"""

import asyncio
import logging
import math
import random
import re
from dataclasses import dataclass
from typing import Awaitable, Callable, NamedTuple, Optional, Sequence

from ..config import ai_settings
from ...utils.exceptions import (
    AIEmptyResponseError,
    AIExtractionError,
    AILimitsUnavailableError,
    AIOverloadedError,
    AIRateLimitedError,
    AIRequestFailedError,
)
from .client import BaseAIClient, ProviderResponse
from .prompts import TRUNCATION_NOTICE, build_continuation_prompt

logger = logging.getLogger(__name__)

LIMITS_UNAVAILABLE_CODE = "AI_LIMITS_UNAVAILABLE"
_MODEL_WORD = re.compile(r"model", re.IGNORECASE)


class ErrorCodes(NamedTuple):
    """Code strings for one request family (PDF extraction vs analysis)."""
    rate_limited: str
    request_failed: str
    empty_response: str


EXTRACTION_ERROR_CODES = ErrorCodes("PDF_RATE_LIMITED", "PDF_EXTRACTION_FAILED", "PDF_EMPTY_RESPONSE")
ANALYSIS_ERROR_CODES = ErrorCodes("AI_RATE_LIMITED", "AI_REQUEST_FAILED", "AI_EMPTY_RESPONSE")


@dataclass(frozen=True)
class RetryPolicy:
    max_transient_retries: int = ai_settings.AI_MAX_TRANSIENT_RETRIES
    base_delay: float = ai_settings.AI_RETRY_BASE_DELAY
    max_delay: float = ai_settings.AI_RETRY_MAX_DELAY
    jitter: float = ai_settings.AI_RETRY_JITTER

    @staticmethod
    def is_transient(status: int, error_code: str = "") -> bool:
        if status == 529:
            return True
        if 500 <= status <= 599:
            return not (status == 503 and error_code == LIMITS_UNAVAILABLE_CODE)
        return False

    def next_delay(self, attempt_index: int, retry_after: Optional[float], rng: Callable[[], float]) -> float:
        """
        Seconds to wait before the next attempt on the same model.

        A positive Retry-After wins (capped at max_delay); otherwise
        exponential backoff from base_delay plus jitter in whole milliseconds.
        """
        if retry_after is not None and retry_after > 0:
            return min(self.max_delay, float(retry_after))
        exponential = min(self.max_delay, self.base_delay * (2 ** max(0, attempt_index)))
        jitter_ms = math.floor(rng() * self.jitter * 1000)
        return exponential + jitter_ms / 1000


@dataclass(frozen=True)
class CompletionResult:
    text: str
    model: str
    truncated: bool = False


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def body_retry_after(response: ProviderResponse) -> int:
    """retryAfter from a 429 body in whole seconds (at least 1), or 0 when absent."""
    raw = response.body.get("retryAfter")
    if isinstance(raw, bool) or not isinstance(raw, (int, float)) or not math.isfinite(raw):
        return 0
    return max(1, _round_half_up(raw))


class ModelRetryStateMachine:
    """
    Runs one prompt against the candidate models with bounded retries.

    State is (model_index, attempt_index); every transition is driven by
    the HTTP status of the last response.
    """

    def __init__(
        self,
        client: BaseAIClient,
        models: Optional[Sequence[str]] = None,
        policy: Optional[RetryPolicy] = None,
        codes: ErrorCodes = EXTRACTION_ERROR_CODES,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: Callable[[], float] = random.random,
        max_tokens: Optional[int] = None
    ):
        self.client = client
        self.models = list(models) if models is not None else list(ai_settings.AI_EXTRACTION_MODELS)
        self.policy = policy or RetryPolicy()
        self.codes = codes
        self.sleep = sleep
        self.rng = rng
        self.max_tokens = max_tokens or ai_settings.AI_MAX_TOKENS
        self.model_index = 0
        self.attempt_index = 0

    async def run(self, prompt: str) -> CompletionResult:
        last_status = 0
        last_error_message = ""
        self.model_index = 0

        while self.model_index < len(self.models):
            model = self.models[self.model_index]
            self.attempt_index = 0

            while self.attempt_index <= self.policy.max_transient_retries:
                response = await self.client.send(model, prompt, self.max_tokens)
                last_status = response.status

                if response.ok:
                    return await self._complete(model, prompt, response)

                if response.status == 429:
                    retry_after = body_retry_after(response)
                    logger.warning(f"AI rate limited on {model}, retry after {retry_after}s")
                    raise AIRateLimitedError(retry_after, prefix=self.codes.rate_limited)

                if response.status == 503 and response.error_code == LIMITS_UNAVAILABLE_CODE:
                    raise AILimitsUnavailableError(detail=response.error_message)

                if response.status == 404 or (response.status == 400 and _MODEL_WORD.search(response.error_message)):
                    logger.info(f"Model {model} unavailable ({response.status}), trying next model")
                    break

                last_error_message = response.error_message
                if not self.policy.is_transient(response.status, response.error_code):
                    raise self._failure(last_status, last_error_message)

                if self.attempt_index >= self.policy.max_transient_retries:
                    logger.warning(f"Model {model} still failing with {response.status}, trying next model")
                    break

                delay = self.policy.next_delay(self.attempt_index, response.retry_after, self.rng)
                logger.info(
                    f"Transient {response.status} from {model}, retry {self.attempt_index + 1} in {delay:.2f}s"
                )
                await self.sleep(delay)
                self.attempt_index += 1

            self.model_index += 1

        raise self._failure(last_status, last_error_message)

    def _failure(self, last_status: int, last_error_message: str) -> AIExtractionError:
        if last_status == 529:
            return AIOverloadedError(detail=last_error_message)
        return AIRequestFailedError(last_status or None, last_error_message, prefix=self.codes.request_failed)

    async def _complete(self, model: str, prompt: str, response: ProviderResponse) -> CompletionResult:
        text = response.text
        if not text:
            raise AIEmptyResponseError(self.codes.empty_response, status=response.status)

        truncated = response.stop_reason == "max_tokens"
        if truncated:
            continuation = await self.client.send(model, build_continuation_prompt(prompt, text), self.max_tokens)
            if continuation.ok:
                if continuation.text:
                    text = f"{text}\n\n{continuation.text}"
                truncated = continuation.stop_reason == "max_tokens"

        if truncated:
            text = f"{text}\n\n{TRUNCATION_NOTICE}"
            logger.warning(f"AI output from {model} hit the token limit")

        return CompletionResult(text=text, model=model, truncated=truncated)
