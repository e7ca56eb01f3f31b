"""
Error Taxonomy

Typed errors shared by the browser layer, the county scrapers and the
ingestion pipeline. Callers branch on ``ErrorCode`` rather than on the
exception class.
"""
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    """Machine-readable failure codes for scraping operations."""

    BROWSER_LAUNCH_FAILED = "BROWSER_LAUNCH_FAILED"
    NAVIGATION_FAILED = "NAVIGATION_FAILED"
    TIMEOUT = "TIMEOUT"
    BLOCKED = "BLOCKED"
    PARSE_ERROR = "PARSE_ERROR"
    CONFIG_MISSING = "CONFIG_MISSING"


# Lowercased message fragments that identify a dropped browser connection.
CONNECTION_ERROR_MARKERS = (
    "browser has been closed",
    "target closed",
    "connection refused",
    "websocket error",
    "disconnected",
)


class ParcelPlatformError(Exception):
    """Base class for all errors raised by the parcel platform."""


class ScrapeError(ParcelPlatformError):
    """
    Failure while driving a county website.

    Attributes:
        code: Failure classification
        cause: Underlying exception, if any
        debug: Diagnostic context (selectors tried, rows found, ...)
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode,
        cause: Optional[BaseException] = None,
        debug: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.code = ErrorCode(code)
        self.cause = cause
        self.debug = debug or {}

    @property
    def retryable(self) -> bool:
        return is_retryable(self.code)

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code.value, "message": str(self), **self.debug}

    def __repr__(self) -> str:
        return f"ScrapeError(code={self.code.value}, message={str(self)!r})"


class UnknownSourceError(ParcelPlatformError, KeyError):
    """Raised when no adapter is registered for a source key."""

    def __init__(self, source_key: str, known: Optional[list] = None):
        self.source_key = source_key
        self.known = known or []
        known_text = ", ".join(self.known) if self.known else "none"
        super().__init__(f"No adapter registered for source key: {source_key} (registered: {known_text})")

    def __str__(self) -> str:
        return self.args[0]


def is_retryable(code: ErrorCode) -> bool:
    """Only navigation failures are worth retrying at the operation level."""
    return code == ErrorCode.NAVIGATION_FAILED


def is_connection_error(error: BaseException) -> bool:
    """True when the error message looks like a lost browser connection."""
    message = str(error).lower()
    return any(marker in message for marker in CONNECTION_ERROR_MARKERS)
