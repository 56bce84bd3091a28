from typing import Dict, Any, Optional
import logging

logger = logging.getLogger(__name__)


class SaverError(Exception):
    """Base exception class for Weibo Saver errors."""

    def __init__(self, message: str, error_code: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


class NoContentURLError(SaverError):
    """Raised when no post URL can be located in an inbound mail body."""

    def __init__(self, message: str = "No post URL found in mail body", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "NO_CONTENT_URL", details)


class PageFetchError(SaverError):
    """Raised when the source page cannot be fetched or rendered."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "PAGE_FETCH_ERROR", details)


class ExtractionSchemaError(SaverError):
    """Raised when the embedded data object is missing or lacks a required field."""

    def __init__(self, message: str, error_code: str = "EXTRACTION_SCHEMA_ERROR",
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message, error_code, details)


class MediaDownloadError(SaverError):
    """Raised for a single failed media item. Never escapes a download batch."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "MEDIA_DOWNLOAD_ERROR", details)


class ConfigurationError(SaverError):
    """Raised when required settings are missing."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "CONFIGURATION_ERROR", details)


class StorageError(SaverError):
    """Raised when storage operations fail."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "FILE_SYSTEM_ERROR", details)


class TemplateRenderingError(SaverError):
    """Raised when a Markdown template cannot be loaded or rendered."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "TEMPLATE_RENDERING_ERROR", details)


# Error code definitions
ERROR_CODES = {
    "NO_CONTENT_URL": {
        "code": "NO_CONTENT_URL",
        "message": "No post URL could be located in the mail body; the mail is skipped.",
        "category": "input",
    },
    "PAGE_FETCH_ERROR": {
        "code": "PAGE_FETCH_ERROR",
        "message": "The source page could not be fetched; a fallback record is saved.",
        "category": "network",
    },
    "SCHEMA_MISSING": {
        "code": "SCHEMA_MISSING",
        "message": "The page did not expose an embedded data object; a fallback record is saved.",
        "category": "extraction",
    },
    "EXTRACTION_SCHEMA_ERROR": {
        "code": "EXTRACTION_SCHEMA_ERROR",
        "message": "A required field was missing from the embedded data object; a fallback record is saved.",
        "category": "extraction",
    },
    "MEDIA_DOWNLOAD_ERROR": {
        "code": "MEDIA_DOWNLOAD_ERROR",
        "message": "A media item could not be downloaded and was left out of the record.",
        "category": "network",
    },
    "CONFIGURATION_ERROR": {
        "code": "CONFIGURATION_ERROR",
        "message": "Required configuration is missing.",
        "category": "configuration",
    },
    "FILE_SYSTEM_ERROR": {
        "code": "FILE_SYSTEM_ERROR",
        "message": "The record could not be written to disk.",
        "category": "storage",
    },
    "TEMPLATE_RENDERING_ERROR": {
        "code": "TEMPLATE_RENDERING_ERROR",
        "message": "The Markdown template could not be rendered.",
        "category": "rendering",
    },
    "UNEXPECTED_ERROR": {
        "code": "UNEXPECTED_ERROR",
        "message": "An unexpected error occurred.",
        "category": "internal",
    },
}


def error_response(error_code: str, details: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Build a loggable error payload for a known error code."""
    error_info = ERROR_CODES.get(error_code, ERROR_CODES["UNEXPECTED_ERROR"])
    payload = {
        "code": error_info["code"],
        "message": error_info["message"],
        "category": error_info["category"],
    }
    if details:
        payload["details"] = details
    return payload


def handle_saver_error(error: SaverError) -> Dict[str, Any]:
    """Log a SaverError and return its payload."""
    payload = error_response(error.error_code, error.details)
    payload["error"] = error.message
    logger.error(f"{error.error_code}: {error.message}", extra={"error_code": error.error_code})
    return payload
