# ============================================================================
# src/lab_extraction/ai/__init__.py
# ============================================================================
"""
External AI escalation: proxy client, retry state machine, response
parsing and the merge with local results.
"""

from .client import BaseAIClient, ProxyAIClient, ProviderResponse
from .retry import (
    ANALYSIS_ERROR_CODES,
    EXTRACTION_ERROR_CODES,
    CompletionResult,
    ModelRetryStateMachine,
    RetryPolicy,
)
from .cache import ResponseCache
from .response import parse_extraction_response
from .extraction import AIExtractionService, normalize_ai_marker
