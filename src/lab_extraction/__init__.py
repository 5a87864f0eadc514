# ============================================================================
# src/lab_extraction/__init__.py
# ============================================================================
"""
Lab Report Extraction Engine

Turns lab report PDFs into structured marker drafts: local heuristic
parsing first, OCR and an external AI pass only when the local result
is too weak, and a diff between the local and AI drafts for review.

Main entry points:
- core.pipeline.LabExtractionPipeline: full escalation ladder
- parsing.fallback_extract: local parsing of plain text
- diff.build_extraction_diff_summary: local vs AI reconciliation
"""

__version__ = "0.1.0"
