# ============================================================================
# src/lab_extraction/utils/privacy.py
# ============================================================================
"""
PII redaction applied to report text before it leaves the process.

Only the external AI request uses this. Local parsing must see the
unredacted text because the phone-number pattern also matches long runs
of lab values.
"""

import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Pattern, Tuple

logger = logging.getLogger(__name__)

_REDACTION_RULES: List[Tuple[str, Pattern, str]] = [
    ("email", re.compile(r"\b[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,}\b", re.IGNORECASE), "[REDACTED_EMAIL]"),
    (
        "dob",
        re.compile(
            r"\b(?:dob|date\s*of\s*birth|birth\s*date|geboortedatum)\b\s*[:#-]?\s*\d{1,4}[\/\-.]\d{1,2}[\/\-.]\d{1,4}\b",
            re.IGNORECASE,
        ),
        "[REDACTED_DOB]",
    ),
    ("ssn", re.compile(r"\b\d{3}[-\s]?\d{2}[-\s]?\d{4}\b"), "[REDACTED_ID]"),
    (
        "id_label",
        re.compile(
            r"\b(?:patient\s*id|patient\s*number|mrn|member\s*id|account\s*(?:no|number)|client\s*id|bsn)\b"
            r"\s*[:#-]?\s*[A-Z0-9\-]{3,}",
            re.IGNORECASE,
        ),
        "[REDACTED_ID]",
    ),
    ("phone", re.compile(r"\b(?:\+?\d[\d().\-\s]{7,}\d)\b"), "[REDACTED_PHONE]"),
    (
        "address",
        re.compile(
            r"^(?=.*\d)(?=.*\b(?:street|st\.?|avenue|ave\.?|road|rd\.?|boulevard|blvd\.?|lane|ln\.?|drive|dr\.?|"
            r"way|court|ct\.?|zip|postal)\b).+$",
            re.IGNORECASE | re.MULTILINE,
        ),
        "[REDACTED_ADDRESS]",
    ),
]

_FILE_NAME_UNSAFE = re.compile(r"[^a-zA-Z0-9._-]+")
MAX_FILE_NAME_LENGTH = 120


@dataclass(frozen=True)
class SanitizedAIPayload:
    text: str
    file_name: str
    redaction_count: int


def _redact(text: str) -> Tuple[str, int]:
    redacted = text
    total = 0
    for name, pattern, placeholder in _REDACTION_RULES:
        redacted, count = pattern.subn(placeholder, redacted)
        if count:
            logger.debug(f"Redacted {count} {name} match(es) before AI request")
        total += count
    return re.sub(r"[ \t]{2,}", " ", redacted).strip(), total


def sanitize_file_name(file_name: Optional[str]) -> str:
    """Strip anything identifying-looking from a file name, keeping the extension."""
    trimmed = (file_name or "").strip()
    if not trimmed:
        return "document.pdf"

    dot_index = trimmed.rfind(".")
    has_extension = 0 < dot_index < len(trimmed) - 1
    base = trimmed[:dot_index] if has_extension else trimmed
    extension = trimmed[dot_index:] if has_extension else ".pdf"

    safe_base, _ = _redact(base)
    safe_base = _FILE_NAME_UNSAFE.sub("-", safe_base)
    safe_base = re.sub(r"-+", "-", safe_base).strip("-") or "document"
    return f"{safe_base}{extension}"[:MAX_FILE_NAME_LENGTH]


def sanitize_parser_text_for_ai(text: str, file_name: Optional[str] = None) -> SanitizedAIPayload:
    """
    Redact emails, birth dates, identifiers, phone numbers and street
    address lines.

    Returns:
        SanitizedAIPayload with the redacted text, safe file name and the
        number of replacements made.
    """
    redacted, total = _redact(text or "")
    return SanitizedAIPayload(text=redacted, file_name=sanitize_file_name(file_name), redaction_count=total)
