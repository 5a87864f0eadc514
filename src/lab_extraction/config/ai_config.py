# ============================================================================
# src/lab_extraction/config/ai_config.py
# ============================================================================
"""
External AI Configuration
- Proxy endpoint and candidate models
- Retry/backoff policy
- Cost and parser modes
- Response cache
"""

from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings


class AISettings(BaseSettings):
    AI_PROXY_URL: str = Field(
        default="http://localhost:3000/api/claude/messages",
        description="Server-side proxy that forwards requests to the AI provider"
    )
    AI_EXTRACTION_MODELS: List[str] = Field(
        default=[
            "claude-sonnet-4-20250514",
            "claude-3-7-sonnet-20250219",
            "claude-3-7-sonnet-latest",
            "claude-3-5-sonnet-latest",
        ],
        description="Candidate models in preference order"
    )
    AI_MAX_TOKENS: int = Field(
        default=1800,
        description="Output token limit for extraction requests"
    )
    AI_TIMEOUT: int = Field(
        default=90,
        description="Total request timeout (seconds)"
    )
    AI_MAX_TRANSIENT_RETRIES: int = Field(
        default=2,
        ge=0,
        description="Retries per model for transient 5xx/529 responses"
    )
    AI_RETRY_BASE_DELAY: float = Field(
        default=0.7,
        description="Base backoff delay in seconds, doubled per attempt"
    )
    AI_RETRY_MAX_DELAY: float = Field(
        default=4.2,
        description="Backoff ceiling in seconds (also caps Retry-After)"
    )
    AI_RETRY_JITTER: float = Field(
        default=0.26,
        description="Upper bound (exclusive) of random jitter added to backoff, seconds"
    )
    AI_COST_MODE: str = Field(
        default="balanced",
        pattern="^(balanced|ultra_low_cost|max_accuracy)$",
        description="Cost policy for AI rescue"
    )
    AI_PARSER_MODE: str = Field(
        default="text_ocr_ai",
        pattern="^(text_only|text_ocr|text_ocr_ai)$",
        description="Which acquisition stages may run"
    )
    AI_EXTERNAL_CONSENT: bool = Field(
        default=False,
        description="User consented to sending redacted report text to the AI provider"
    )
    AI_CACHE_TTL: int = Field(
        default=24 * 60 * 60,
        description="Lifetime of cached AI extraction responses (seconds)"
    )
    AI_CACHE_MAX_SIZE: int = Field(
        default=200,
        description="Maximum cached AI extraction responses"
    )


ai_settings = AISettings()
