# ============================================================================
# tests/unit/test_configuration.py
# ============================================================================
"""
Unit tests for settings, warning codes and logging helpers
"""

import asyncio
import io
import json
import logging
import sys

import pytest
from pydantic import ValidationError

from src.lab_extraction.config import ai_settings, ocr_settings, parser_settings, threshold_settings
from src.lab_extraction.config.ai_config import AISettings
from src.lab_extraction.config.logging_config import LoggingSettings
from src.lab_extraction.constants.warning_codes import KNOWN_WARNING_CODES, WarningCode, is_known_warning_code
from src.utils.logging import JsonFormatter, LogContext, log_performance, setup_logging


def test_default_settings():
    assert ai_settings.AI_MAX_TOKENS == 1800
    assert ai_settings.AI_MAX_TRANSIENT_RETRIES == 2
    assert ai_settings.AI_RETRY_BASE_DELAY == 0.7
    assert ai_settings.AI_RETRY_MAX_DELAY == 4.2
    assert ocr_settings.OCR_LANGUAGES == "eng+nld"
    assert ocr_settings.OCR_MAX_PAGES == 12
    assert parser_settings.LOOSE_STRATEGY_MAX_ROWS == 6
    assert threshold_settings.FALLBACK_MAX_CONFIDENCE == 0.9


def test_review_thresholds_are_consistent():
    """Test the fallback cap stays above the review threshold"""
    assert threshold_settings.FALLBACK_MAX_CONFIDENCE > threshold_settings.FALLBACK_REVIEW_CONFIDENCE


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("AI_COST_MODE", "ultra_low_cost")
    monkeypatch.setenv("AI_EXTERNAL_CONSENT", "true")
    monkeypatch.setenv("LOG_JSON", "1")

    settings = AISettings()

    assert settings.AI_COST_MODE == "ultra_low_cost"
    assert settings.AI_EXTERNAL_CONSENT is True
    assert LoggingSettings().LOG_JSON is True


def test_invalid_parser_mode_rejected(monkeypatch):
    monkeypatch.setenv("AI_PARSER_MODE", "everything")
    with pytest.raises(ValidationError):
        AISettings()


def test_warning_codes_are_pdf_prefixed():
    assert all(code.startswith("PDF_") for code in KNOWN_WARNING_CODES)
    assert is_known_warning_code(WarningCode.OCR_PARTIAL.value)
    assert not is_known_warning_code("OCR_PARTIAL")


class TestLoggingHelpers:
    """Test the logging setup used by the command line script"""

    @pytest.fixture(autouse=True)
    def restore_root_logger(self):
        root = logging.getLogger()
        handlers, level = list(root.handlers), root.level
        yield
        for handler in root.handlers:
            if handler not in handlers:
                handler.close()
        root.handlers[:] = handlers
        root.setLevel(level)

    def test_setup_logging_stream_and_level(self):
        stream = io.StringIO()
        setup_logging("warning", stream=stream)

        logging.getLogger("lab_test").info("hidden")
        logging.getLogger("lab_test").warning("shown")

        output = stream.getvalue()
        assert "shown" in output
        assert "hidden" not in output

    def test_json_formatter_includes_source_file(self):
        stream = io.StringIO()
        setup_logging("INFO", format_json=True, stream=stream)
        logger = logging.getLogger("lab_test")

        with LogContext(logger, source_file="report.pdf"):
            logger.info("parsed")
        logger.info("outside")

        lines = [json.loads(line) for line in stream.getvalue().splitlines()]
        assert lines[0]["message"] == "parsed"
        assert lines[0]["source_file"] == "report.pdf"
        assert "source_file" not in lines[1]

    async def test_context_isolated_between_tasks(self):
        """Test concurrent extractions each log their own source file"""
        stream = io.StringIO()
        setup_logging("INFO", format_json=True, stream=stream)
        logger = logging.getLogger("lab_test")

        async def extract(name):
            with LogContext(logger, source_file=name):
                await asyncio.sleep(0)
                logger.info(f"done {name}")

        await asyncio.gather(extract("a.pdf"), extract("b.pdf"))

        lines = [json.loads(line) for line in stream.getvalue().splitlines()]
        assert {line["message"]: line["source_file"] for line in lines} == {"done a.pdf": "a.pdf", "done b.pdf": "b.pdf"}

    def test_setup_logging_file_handler(self, tmp_path):
        log_file = tmp_path / "logs" / "extract.log"
        setup_logging("INFO", log_file=log_file, stream=io.StringIO())

        logging.getLogger("lab_test").info("to file")
        for handler in logging.getLogger().handlers:
            handler.flush()

        assert "to file" in log_file.read_text()

    def test_json_formatter_exception(self):
        record = logging.LogRecord("lab_test", logging.ERROR, __file__, 1, "boom", None, None)
        try:
            raise ValueError("bad")
        except ValueError:
            record.exc_info = sys.exc_info()

        data = json.loads(JsonFormatter().format(record))
        assert data["level"] == "ERROR"
        assert "ValueError" in data["exception"]

    async def test_log_performance_async(self, caplog):
        logger = logging.getLogger("lab_test")

        @log_performance(logger, "work")
        async def work():
            return 42

        with caplog.at_level(logging.INFO, logger="lab_test"):
            assert await work() == 42
        assert "work completed" in caplog.text

    def test_log_performance_reraises(self, caplog):
        logger = logging.getLogger("lab_test")

        @log_performance(logger, "broken")
        def broken():
            raise RuntimeError("nope")

        with caplog.at_level(logging.ERROR, logger="lab_test"):
            with pytest.raises(RuntimeError):
                broken()
        assert "broken failed" in caplog.text
