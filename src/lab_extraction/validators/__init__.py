# ============================================================================
# src/lab_extraction/validators/__init__.py
# ============================================================================

from .plausibility import PlausibilityChecker, check_plausibility, check_spatial_plausibility
