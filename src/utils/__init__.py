# ============================================================================
# src/utils/__init__.py
# ============================================================================
"""
Shared utility modules: exception hierarchy and logging helpers.
"""

from .exceptions import (
    LabExtractionError,
    TextAcquisitionError,
    OCRUnavailableError,
    ConfigurationError,
    AIExtractionError,
    AIProxyUnreachableError,
    AIRateLimitedError,
    AILimitsUnavailableError,
    AIEmptyResponseError,
    AIOverloadedError,
    AIRequestFailedError,
    AIConsentRequiredError,
)

from .logging import (
    setup_logging,
    get_logger,
    JsonFormatter,
    LogContext,
    DocumentContextFilter,
    log_performance,
)

__all__ = [
    # Exceptions
    'LabExtractionError',
    'TextAcquisitionError',
    'OCRUnavailableError',
    'ConfigurationError',
    'AIExtractionError',
    'AIProxyUnreachableError',
    'AIRateLimitedError',
    'AILimitsUnavailableError',
    'AIEmptyResponseError',
    'AIOverloadedError',
    'AIRequestFailedError',
    'AIConsentRequiredError',
    # Logging
    'setup_logging',
    'get_logger',
    'JsonFormatter',
    'LogContext',
    'DocumentContextFilter',
    'log_performance',
]
