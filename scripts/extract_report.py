#!/usr/bin/env python3
"""
Lab Report Extraction Script

Runs the extraction ladder on one or more lab report PDFs and prints the
resulting drafts as JSON.

Usage:
    python -m scripts.extract_report report.pdf
    python -m scripts.extract_report report.pdf --parser-mode text_ocr_ai --consent
    python -m scripts.extract_report report.pdf --diff  # Local vs AI diff as well
    python -m scripts.extract_report *.pdf --overrides overrides.json
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from src.lab_extraction.config import logging_settings
from src.lab_extraction.core.models import ExtractionProvider
from src.lab_extraction.core.pipeline import LabExtractionPipeline
from src.lab_extraction.diff import build_extraction_diff_summary
from src.lab_extraction.normalization.resolver import normalize_marker_alias_overrides
from src.utils.logging import LogContext, get_logger, setup_logging

logger = get_logger("extract_report")


def load_overrides(path: Optional[Path]) -> Dict[str, str]:
    """Read a JSON alias override file; malformed files give no overrides."""
    if path is None:
        return {}
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        logger.warning(f"Ignoring override file {path}: {e}")
        return {}
    return normalize_marker_alias_overrides(payload)


async def extract_one(
    pdf_path: Path,
    pipeline: LabExtractionPipeline,
    overrides: Dict[str, str],
    with_diff: bool
) -> Dict[str, Any]:
    with LogContext(logger, source_file=pdf_path.name):
        draft = await pipeline.extract(pdf_path, overrides=overrides)
        result: Dict[str, Any] = {"draft": draft.to_dict()}

        if with_diff and draft.extraction.provider == ExtractionProvider.AI:
            local = await LabExtractionPipeline(parser_mode="text_ocr").extract(pdf_path, overrides=overrides)
            result["diff"] = build_extraction_diff_summary(local, draft).to_dict()

        return result


async def run(args: argparse.Namespace) -> List[Dict[str, Any]]:
    pipeline = LabExtractionPipeline(
        parser_mode=args.parser_mode,
        cost_mode=args.cost_mode,
        consent=True if args.consent else None,
    )
    overrides = load_overrides(args.overrides)
    results = []
    try:
        for pdf_path in args.files:
            if not pdf_path.exists():
                logger.error(f"File not found: {pdf_path}")
                continue
            results.append(await extract_one(pdf_path, pipeline, overrides, args.diff))
    finally:
        await pipeline.close()
    return results


def main():
    parser = argparse.ArgumentParser(description="Extract lab markers from PDF reports")
    parser.add_argument("files", nargs="+", type=Path, help="PDF files to extract")
    parser.add_argument("--parser-mode", choices=["text_only", "text_ocr", "text_ocr_ai"],
                        help="Escalation ceiling (default from AI_PARSER_MODE)")
    parser.add_argument("--cost-mode", choices=["balanced", "ultra_low_cost", "max_accuracy"],
                        help="AI cost mode (default from AI_COST_MODE)")
    parser.add_argument("--consent", action="store_true", help="Allow sending redacted text to the AI proxy")
    parser.add_argument("--overrides", type=Path, help="JSON file mapping marker labels to canonical names")
    parser.add_argument("--diff", action="store_true", help="Include the local vs AI diff for AI results")
    parser.add_argument("--log-file", type=Path, help="Also write logs to this file")
    args = parser.parse_args()

    # stdout carries the JSON output
    setup_logging(
        logging_settings.LOG_LEVEL,
        log_file=args.log_file,
        format_json=logging_settings.LOG_JSON,
        stream=sys.stderr,
    )

    results = asyncio.run(run(args))
    print(json.dumps(results if len(results) != 1 else results[0], indent=2, ensure_ascii=False))
    return 0 if results else 1


if __name__ == "__main__":
    sys.exit(main())
