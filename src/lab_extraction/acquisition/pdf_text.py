# ============================================================================
# src/lab_extraction/acquisition/pdf_text.py
# ============================================================================
"""
PDF Text Layer Reader

Reads the embedded text layer with pdfplumber and rebuilds report lines
from word positions:

- y is measured from the page bottom (PDF convention), so rows sort by
  descending y
- words whose baselines differ by at most 2 points share a row
- a horizontal gap wider than 18 points becomes a double space, which
  the column splitter later treats as a column break

Besides the flattened text, every row is kept as a SpatialRow for the
positional strategies.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Sequence, Tuple, Union

import pdfplumber

from ..config import parser_settings
from ..core.models import RawTextLayout, SpatialItem, SpatialRow
from ...utils.exceptions import TextAcquisitionError
from ...utils.logging import log_performance

logger = logging.getLogger(__name__)

class _Word:
    __slots__ = ("x0", "x1", "y", "text")

    def __init__(self, x0: float, x1: float, y: float, text: str):
        self.x0 = x0
        self.x1 = x1
        self.y = y
        self.text = text


def _group_rows(words: Sequence[_Word]) -> List[Tuple[float, List[_Word]]]:
    rows: List[Tuple[float, List[_Word]]] = []
    for word in sorted(words, key=lambda w: (-w.y, w.x0)):
        if rows and abs(rows[-1][0] - word.y) <= parser_settings.SPATIAL_Y_GROUP_TOLERANCE:
            rows[-1][1].append(word)
        else:
            rows.append((word.y, [word]))
    return rows


def _row_text(words: Sequence[_Word]) -> str:
    parts: List[str] = []
    previous = None
    for word in words:
        if previous is not None:
            parts.append("  " if word.x0 - previous.x1 > parser_settings.TEXT_ITEM_GAP_DOUBLE_SPACE else " ")
        parts.append(word.text)
        previous = word
    return "".join(parts).strip()


def layout_from_words(pages: Iterable[Tuple[float, Sequence[Dict[str, Any]]]]) -> RawTextLayout:
    """
    Build a RawTextLayout from pdfplumber-style word dicts.

    Args:
        pages: (page_height, words) per page; each word has x0, x1, bottom, text

    Returns:
        RawTextLayout with one text line and one SpatialRow per visual row
    """
    lines: List[str] = []
    spatial_rows: List[SpatialRow] = []
    item_count = 0
    page_count = 0

    for page_number, (height, raw_words) in enumerate(pages, start=1):
        page_count += 1
        words = [
            _Word(float(w["x0"]), float(w["x1"]), float(height) - float(w["bottom"]), str(w["text"]))
            for w in raw_words
            if str(w.get("text", "")).strip()
        ]
        item_count += len(words)

        for y, row_words in _group_rows(words):
            row_words.sort(key=lambda w: w.x0)
            text = _row_text(row_words)
            if not text:
                continue
            lines.append(text)
            spatial_rows.append(SpatialRow(
                page=page_number,
                y=y,
                items=tuple(SpatialItem(x=w.x0, text=w.text) for w in row_words),
            ))

    text = "\n".join(lines)
    return RawTextLayout(
        text=text,
        page_count=page_count,
        text_item_count=item_count,
        line_count=len(lines),
        non_whitespace_chars=sum(1 for char in text if not char.isspace()),
        spatial_rows=tuple(spatial_rows),
    )


@log_performance(logger, "pdf_text_layer")
def extract_pdf_text(pdf_path: Union[str, Path]) -> RawTextLayout:
    """
    Read the text layer of a PDF.

    Raises:
        TextAcquisitionError: the file cannot be opened or parsed
    """
    pdf_path = Path(pdf_path)
    try:
        with pdfplumber.open(pdf_path) as pdf:
            pages = [
                (page.height, page.extract_words(keep_blank_chars=False, use_text_flow=False))
                for page in pdf.pages
            ]
    except Exception as e:
        logger.error(f"Text layer extraction failed for {pdf_path.name}: {e}")
        raise TextAcquisitionError(f"Could not read text layer of {pdf_path.name}: {e}") from e

    layout = layout_from_words(pages)
    logger.info(
        f"Text layer of {pdf_path.name}: {layout.page_count} pages, "
        f"{layout.line_count} lines, {layout.non_whitespace_chars} chars"
    )
    return layout
