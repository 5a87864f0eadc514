# ============================================================================
# src/lab_extraction/utils/values.py
# ============================================================================
"""
Small value helpers shared by parsers and the AI merge step.
"""

import math
import re
import uuid
from typing import Optional, Union

_NON_NUMERIC = re.compile(r"[^0-9.+-]")


def create_id() -> str:
    return str(uuid.uuid4())


def safe_number(value: Union[str, int, float, None]) -> Optional[float]:
    """
    Lenient number parsing used on raw report tokens.

    Commas become decimal points and every character that cannot be part
    of a number is dropped, so "<15,0" reads as 15.0. Anything that is
    still not a single number (e.g. "4.0-10.0") yields None.
    """
    if isinstance(value, bool):
        return None

    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else None

    if not isinstance(value, str):
        return None

    cleaned = _NON_NUMERIC.sub("", value.strip().replace(",", "."))
    if not cleaned:
        return None

    try:
        parsed = float(cleaned)
    except ValueError:
        return None
    return parsed if math.isfinite(parsed) else None


def clamp(value: float, lower: float = 0.0, upper: float = 1.0) -> float:
    return max(lower, min(upper, value))
