# ============================================================================
# src/utils/exceptions.py
# ============================================================================
"""
Custom exceptions for the lab extraction engine.

Parsing never raises for low quality. Exceptions are reserved for hard
I/O and protocol failures (text acquisition, OCR, the external AI proxy).
AI errors carry an enumerable code string; str(error) is that code so
callers can map it straight to user-facing text.
"""

from typing import Optional


class LabExtractionError(Exception):
    """Base exception for all lab extraction errors."""
    pass


class TextAcquisitionError(LabExtractionError):
    """Error reading the PDF text layer."""
    pass


class OCRUnavailableError(TextAcquisitionError):
    """OCR engine could not be initialised (missing binary or language data)."""
    pass


class ConfigurationError(LabExtractionError):
    """Invalid configuration."""
    pass


class AIExtractionError(LabExtractionError):
    """
    Failure talking to the external AI proxy.

    Attributes:
        code: Enumerable error code, e.g. "AI_RATE_LIMITED:30"
        status: HTTP status of the last response (None for network errors)
        detail: Provider error message, if any
    """
    def __init__(self, code: str, status: Optional[int] = None, detail: str = ""):
        super().__init__(code)
        self.code = code
        self.status = status
        self.detail = detail


class AIProxyUnreachableError(AIExtractionError):
    """Network failure before any HTTP response arrived."""
    def __init__(self, code: str = "AI_PROXY_UNREACHABLE", detail: str = ""):
        super().__init__(code, status=None, detail=detail)


class AIRateLimitedError(AIExtractionError):
    """HTTP 429. Not retried locally; retry_after is surfaced to the caller."""
    def __init__(self, retry_after: int, prefix: str = "AI_RATE_LIMITED", detail: str = ""):
        super().__init__(f"{prefix}:{retry_after}", status=429, detail=detail)
        self.retry_after = retry_after


class AILimitsUnavailableError(AIExtractionError):
    """HTTP 503 with AI_LIMITS_UNAVAILABLE. Treated as permanent."""
    def __init__(self, detail: str = ""):
        super().__init__("AI_LIMITS_UNAVAILABLE", status=503, detail=detail)


class AIEmptyResponseError(AIExtractionError):
    """Successful response without any text block."""
    def __init__(self, code: str = "AI_EMPTY_RESPONSE", status: Optional[int] = None):
        super().__init__(code, status=status)


class AIOverloadedError(AIExtractionError):
    """All models exhausted while the provider reported overload (529)."""
    def __init__(self, detail: str = ""):
        super().__init__("AI_OVERLOADED", status=529, detail=detail)


class AIRequestFailedError(AIExtractionError):
    """Non-retryable or exhausted request failure."""
    def __init__(self, status: Optional[int], detail: str = "", prefix: str = "AI_REQUEST_FAILED"):
        super().__init__(f"{prefix}:{status if status is not None else 0}:{detail}", status=status, detail=detail)


class AIConsentRequiredError(AIExtractionError):
    """External AI was requested without the user's consent."""
    def __init__(self):
        super().__init__("AI_CONSENT_REQUIRED")
