# ============================================================================
# src/lab_extraction/ai/prompts.py
# ============================================================================
"""
Prompt templates for the external AI extraction pass.
"""

EXTRACTION_RESPONSE_SHAPE = (
    '{"testDate":"YYYY-MM-DD","markers":[{"marker":"string","value":0,"unit":"string",'
    '"referenceMin":null,"referenceMax":null,"confidence":0.0}]}'
)

EXTRACTION_RULES = (
    "- Include one marker object per result line.",
    "- Keep values numeric only.",
    "- If reference range missing, use null.",
    "- confidence is 0.0 to 1.0 per row.",
    "- Detect sample collection date, not report print date.",
    "- Do not include explanations.",
)

TRUNCATION_NOTICE = "_Note: output may be incomplete due to output token limit._"


def build_extraction_prompt(text: str, file_name: str) -> str:
    """
    Strict-JSON extraction prompt. `text` must already be redacted.
    """
    return "\n".join([
        "Extract blood lab data from the text below.",
        "Return ONLY valid JSON in this exact shape:",
        EXTRACTION_RESPONSE_SHAPE,
        "Rules:",
        *EXTRACTION_RULES,
        f"Source filename: {file_name}",
        "LAB TEXT START",
        text,
        "LAB TEXT END",
    ])


def build_continuation_prompt(prompt: str, partial: str) -> str:
    """Ask the model to continue an answer that hit the output token limit."""
    return "\n".join([
        prompt,
        "",
        "The previous answer was cut off by token limit.",
        "Continue from where you stopped, do not repeat earlier text.",
        "",
        "PARTIAL ANSWER START",
        partial,
        "PARTIAL ANSWER END",
    ])
