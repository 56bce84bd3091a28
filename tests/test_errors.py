"""Tests for error types and payloads."""

import logging

from weibo_saver.errors import (
    ConfigurationError,
    ExtractionSchemaError,
    MediaDownloadError,
    NoContentURLError,
    PageFetchError,
    SaverError,
    StorageError,
    TemplateRenderingError,
    error_response,
    handle_saver_error,
)


class TestErrorCodes:
    """Test each error carries its code."""

    def test_codes(self):
        """Test the error code of every subclass."""
        assert NoContentURLError().error_code == "NO_CONTENT_URL"
        assert PageFetchError("x").error_code == "PAGE_FETCH_ERROR"
        assert ExtractionSchemaError("x").error_code == "EXTRACTION_SCHEMA_ERROR"
        assert ExtractionSchemaError("x", error_code="SCHEMA_MISSING").error_code == "SCHEMA_MISSING"
        assert MediaDownloadError("x").error_code == "MEDIA_DOWNLOAD_ERROR"
        assert ConfigurationError("x").error_code == "CONFIGURATION_ERROR"
        assert StorageError("x").error_code == "FILE_SYSTEM_ERROR"
        assert TemplateRenderingError("x").error_code == "TEMPLATE_RENDERING_ERROR"

    def test_base_class(self):
        """Test every error is a SaverError with a message and details."""
        error = PageFetchError("HTTP 503", {"status_code": 503})

        assert isinstance(error, SaverError)
        assert str(error) == "HTTP 503"
        assert error.details == {"status_code": 503}
        assert StorageError("x").details == {}


class TestErrorResponse:
    """Test payload construction."""

    def test_known_code(self):
        """Test a known code maps to its entry."""
        payload = error_response("PAGE_FETCH_ERROR", {"url": "https://example.com"})

        assert payload["code"] == "PAGE_FETCH_ERROR"
        assert payload["category"] == "network"
        assert payload["details"] == {"url": "https://example.com"}

    def test_unknown_code(self):
        """Test an unknown code maps to UNEXPECTED_ERROR without details."""
        payload = error_response("NOPE")

        assert payload["code"] == "UNEXPECTED_ERROR"
        assert "details" not in payload

    def test_handle_saver_error(self, caplog):
        """Test handling logs the error and returns its payload."""
        error = ExtractionSchemaError("no status", error_code="SCHEMA_MISSING")

        with caplog.at_level(logging.ERROR, logger="weibo_saver.errors"):
            payload = handle_saver_error(error)

        assert payload["code"] == "SCHEMA_MISSING"
        assert payload["error"] == "no status"
        assert "SCHEMA_MISSING: no status" in caplog.text
