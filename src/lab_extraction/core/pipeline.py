# ============================================================================
# src/lab_extraction/core/pipeline.py
# ============================================================================
"""
Lab Extraction Pipeline

Escalation ladder for one report:

    text layer -> fallback parse
               -> OCR boost      (thin text layer, parser mode allows OCR)
               -> quality gate   (good enough: done, flagged for review)
               -> AI merge       (consent, parser mode, cost mode permitting)
               -> local draft    (AI skipped or failed)

The pipeline always returns a draft. Every step that is skipped or fails
leaves a warning code on the result instead of raising.
"""

import asyncio
import logging
from pathlib import Path
from typing import Callable, List, Mapping, Optional, Union

from ..acquisition import OCRResult, extract_pdf_text, extract_pdf_text_via_ocr
from ..ai import AIExtractionService
from ..config import ai_settings
from ..constants.warning_codes import WarningCode
from ..parsing.cascade import fallback_extract
from ..quality_gate import (
    ULTRA_LOW_COST,
    choose_better_fallback_draft,
    is_local_draft_good_enough,
    meets_quality_threshold,
    should_auto_pdf_rescue,
    should_use_ocr_fallback,
)
from ...utils.exceptions import (
    AIConsentRequiredError,
    AIExtractionError,
    AILimitsUnavailableError,
    AIRateLimitedError,
    OCRUnavailableError,
    TextAcquisitionError,
)
from ...utils.logging import log_performance
from .models import CandidateSource, EscalationState, ExtractionDraft, RawTextLayout

logger = logging.getLogger(__name__)

TEXT_ONLY = "text_only"
TEXT_OCR_AI = "text_ocr_ai"


class LabExtractionPipeline:
    """
    Orchestrates text acquisition, local parsing, OCR and the AI pass.

    Readers and the AI service are injectable so the ladder can be
    driven from pre-extracted layouts and fake clients.

    Example:
        pipeline = LabExtractionPipeline(consent=True)
        draft = await pipeline.extract("report.pdf")
    """

    def __init__(
        self,
        ai_service: Optional[AIExtractionService] = None,
        parser_mode: Optional[str] = None,
        cost_mode: Optional[str] = None,
        consent: Optional[bool] = None,
        text_reader: Callable[[Path], RawTextLayout] = extract_pdf_text,
        ocr_reader: Callable[[Path], OCRResult] = extract_pdf_text_via_ocr
    ):
        self.ai_service = ai_service
        self.parser_mode = parser_mode or ai_settings.AI_PARSER_MODE
        self.cost_mode = cost_mode or ai_settings.AI_COST_MODE
        self.consent = ai_settings.AI_EXTERNAL_CONSENT if consent is None else consent
        self.text_reader = text_reader
        self.ocr_reader = ocr_reader
        self.logger = logging.getLogger(self.__class__.__name__)

    def _ai(self) -> AIExtractionService:
        if self.ai_service is None:
            self.ai_service = AIExtractionService()
        return self.ai_service

    async def _read_text_layer(self, pdf_path: Path, warnings: List[WarningCode]) -> RawTextLayout:
        try:
            layout = await asyncio.to_thread(self.text_reader, pdf_path)
        except TextAcquisitionError as e:
            self.logger.warning(f"No text layer for {pdf_path.name}: {e}")
            warnings.append(WarningCode.TEXT_EXTRACTION_FAILED)
            return RawTextLayout.from_text("", page_count=0)

        if layout.non_whitespace_chars == 0:
            warnings.append(WarningCode.TEXT_LAYER_EMPTY)
        return layout

    async def _run_ocr(self, pdf_path: Path, warnings: List[WarningCode]) -> str:
        try:
            result = await asyncio.to_thread(self.ocr_reader, pdf_path)
        except OCRUnavailableError as e:
            self.logger.warning(f"OCR unavailable: {e}")
            warnings.append(WarningCode.OCR_INIT_FAILED)
            return ""
        except TextAcquisitionError as e:
            self.logger.warning(f"OCR could not open {pdf_path.name}: {e}")
            warnings.append(WarningCode.OCR_INIT_FAILED)
            return ""

        if result.partial:
            warnings.append(WarningCode.OCR_PARTIAL)
        return result.text

    @log_performance(logger, "lab_extraction_pipeline")
    async def extract(
        self,
        source: Union[str, Path, RawTextLayout],
        file_name: Optional[str] = None,
        overrides: Optional[Mapping[str, str]] = None
    ) -> ExtractionDraft:
        """
        Extract one report.

        Args:
            source: PDF path, or an already extracted text layout (no OCR then)
            file_name: Name recorded on the draft (default: the path's name)
            overrides: User alias overrides for canonicalisation

        Returns:
            Best available ExtractionDraft with its warning codes
        """
        warnings: List[WarningCode] = []
        pdf_path: Optional[Path] = None

        if isinstance(source, RawTextLayout):
            layout = source
        else:
            pdf_path = Path(source)
            layout = await self._read_text_layer(pdf_path, warnings)
        file_name = file_name or (pdf_path.name if pdf_path else "document.pdf")

        draft = fallback_extract(layout.text, file_name, layout.spatial_rows, overrides)
        ai_text = layout.text
        ocr_text = ""

        # OCR boost
        if pdf_path is not None and self.parser_mode != TEXT_ONLY and should_use_ocr_fallback(layout, draft):
            ocr_text = await self._run_ocr(pdf_path, warnings)
            if ocr_text.strip():
                combined = "\n".join(part for part in (layout.text, ocr_text) if part.strip())
                candidate = fallback_extract(combined, file_name, layout.spatial_rows, overrides)
                if choose_better_fallback_draft(draft, candidate) is candidate:
                    self.logger.info(f"OCR improved {file_name}: {len(draft.markers)} -> {len(candidate.markers)} markers")
                    draft = candidate.with_extraction(
                        model=f"{candidate.extraction.model}+ocr",
                        escalation=EscalationState.OCR_BOOSTED,
                    )
                    ai_text = combined

        if meets_quality_threshold(draft):
            self.logger.info(f"Local extraction of {file_name} passed the quality gate")
            return self._with_warnings(draft.with_extraction(needs_review=True), warnings)

        # AI escalation
        if self.parser_mode != TEXT_OCR_AI:
            warnings.append(WarningCode.AI_DISABLED_BY_PARSER_MODE)
        elif self.cost_mode == ULTRA_LOW_COST and is_local_draft_good_enough(draft):
            warnings.append(WarningCode.AI_SKIPPED_COST_MODE)
        else:
            try:
                ai_draft = await self._ai().extract(ai_text, file_name, draft, overrides, consent=self.consent)
            except AIConsentRequiredError:
                warnings.append(WarningCode.AI_CONSENT_REQUIRED)
            except AIRateLimitedError as e:
                self.logger.warning(f"AI rate limited for {file_name}: {e.code}")
                warnings.append(WarningCode.AI_SKIPPED_RATE_LIMIT)
            except AILimitsUnavailableError as e:
                self.logger.warning(f"AI limits unavailable for {file_name}: {e.code}")
                warnings.append(WarningCode.AI_LIMITS_UNAVAILABLE)
            except AIExtractionError as e:
                self.logger.error(f"AI extraction failed for {file_name}: {e.code}")
                warnings.append(WarningCode.LOW_CONFIDENCE_LOCAL)
            else:
                if not any(marker.source == CandidateSource.AI for marker in ai_draft.markers):
                    warnings.append(WarningCode.AI_TEXT_ONLY_INSUFFICIENT)
                return self._with_warnings(ai_draft, warnings)

        return self._local_result(draft, layout, ocr_text, warnings)

    def _local_result(
        self,
        draft: ExtractionDraft,
        layout: RawTextLayout,
        ocr_text: str,
        warnings: List[WarningCode]
    ) -> ExtractionDraft:
        if not draft.markers:
            warnings.append(WarningCode.UNKNOWN_LAYOUT)
        else:
            warnings.append(WarningCode.LOW_CONFIDENCE_LOCAL)

        if self.cost_mode == ULTRA_LOW_COST and should_auto_pdf_rescue(draft, layout, ocr_text):
            warnings.append(WarningCode.AI_PDF_RESCUE_SKIPPED_COST_MODE)

        return self._with_warnings(draft.with_extraction(needs_review=True), warnings)

    @staticmethod
    def _with_warnings(draft: ExtractionDraft, warnings: List[WarningCode]) -> ExtractionDraft:
        for code in warnings:
            draft = draft.with_warning(code.value)
        return draft

    async def close(self) -> None:
        if self.ai_service is not None:
            await self.ai_service.close()
