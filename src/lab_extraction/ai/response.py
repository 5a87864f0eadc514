# ============================================================================
# src/lab_extraction/ai/response.py
# ============================================================================
"""
AI Response Parsing

Models wrap JSON in prose or code fences and occasionally emit broken
JSON (trailing commas, single quotes, cut-off output). Parsing order:

1. ```json fenced block, else first "{" to last "}"
2. json.loads
3. json_repair on the same block

A response that still does not parse yields None; the caller then
continues without AI markers.
"""

import json
import logging
import re
from typing import Any, Dict, List, Optional

from json_repair import repair_json

logger = logging.getLogger(__name__)

_FENCED_JSON = re.compile(r"```json\s*([\s\S]*?)```", re.IGNORECASE)


def extract_json_block(text: str) -> Optional[str]:
    fenced = _FENCED_JSON.search(text or "")
    if fenced and fenced.group(1):
        return fenced.group(1).strip()

    start = text.find("{") if text else -1
    end = text.rfind("}") if text else -1
    if start == -1 or end == -1 or end <= start:
        return None
    return text[start:end + 1]


def parse_extraction_response(text: str) -> Optional[Dict[str, Any]]:
    """
    Parse the model's answer into a dict with "testDate" and "markers".

    Returns:
        Parsed object, or None when no JSON object can be recovered
    """
    block = extract_json_block(text)
    if block is None:
        logger.warning("No JSON block in AI response")
        return None

    try:
        parsed = json.loads(block)
    except json.JSONDecodeError:
        try:
            parsed = repair_json(block, return_objects=True)
            logger.debug("json_repair fixed AI response block")
        except Exception as e:
            logger.warning(f"json_repair failed on AI response: {e}")
            return None

    if not isinstance(parsed, dict):
        logger.warning(f"AI response JSON is not an object: {type(parsed).__name__}")
        return None
    return parsed


def raw_markers(parsed: Optional[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """The "markers" list of a parsed response, keeping only object entries."""
    if not parsed:
        return []
    markers = parsed.get("markers")
    if not isinstance(markers, list):
        return []
    return [marker for marker in markers if isinstance(marker, dict)]
