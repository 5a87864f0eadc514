# ============================================================================
# src/lab_extraction/config/__init__.py
# ============================================================================
"""
Convenient imports for all settings
"""

from .parser_config import parser_settings
from .thresholds_config import threshold_settings
from .ai_config import ai_settings
from .ocr_config import ocr_settings
from .logging_config import logging_settings
