"""
Tests for the error taxonomy.
"""
import pytest

from src.parcels.errors import (
    ErrorCode,
    ScrapeError,
    UnknownSourceError,
    is_connection_error,
    is_retryable,
)


class TestScrapeError:
    """Tests for ScrapeError."""

    def test_carries_code_and_cause(self):
        """Test that code, cause and message are preserved."""
        cause = RuntimeError("boom")
        error = ScrapeError("Failed to load page", ErrorCode.NAVIGATION_FAILED, cause=cause)

        assert error.code == ErrorCode.NAVIGATION_FAILED
        assert error.cause is cause
        assert str(error) == "Failed to load page"

    def test_accepts_code_string(self):
        """Test that a plain string code is coerced to the enum."""
        error = ScrapeError("blocked", "BLOCKED")
        assert error.code is ErrorCode.BLOCKED

    def test_to_dict_merges_debug(self):
        """Test that debug context is flattened into the dict form."""
        error = ScrapeError("blocked", ErrorCode.BLOCKED, debug={"reason": "Rate limited"})

        assert error.to_dict() == {"code": "BLOCKED", "message": "blocked", "reason": "Rate limited"}

    def test_only_navigation_failures_are_retryable(self):
        """Test the retryable classification of each code."""
        assert ScrapeError("x", ErrorCode.NAVIGATION_FAILED).retryable
        for code in ErrorCode:
            if code != ErrorCode.NAVIGATION_FAILED:
                assert not is_retryable(code)


class TestConnectionErrors:
    """Tests for connection error detection."""

    @pytest.mark.parametrize("message", [
        "Target closed",
        "Browser has been closed",
        "connect ECONNREFUSED: Connection refused",
        "WebSocket error: 1006",
        "Browser disconnected unexpectedly",
    ])
    def test_connection_messages(self, message):
        """Test that dropped-connection messages are recognized."""
        assert is_connection_error(Exception(message))

    def test_other_errors(self):
        """Test that ordinary errors are not connection errors."""
        assert not is_connection_error(ValueError("invalid selector"))


class TestUnknownSourceError:
    """Tests for UnknownSourceError."""

    def test_message_lists_registered_sources(self):
        """Test that the message names the key and the registered keys."""
        error = UnknownSourceError("fl-dade-pa", ["fl-manatee-pa", "fl-sarasota-pa"])

        assert error.source_key == "fl-dade-pa"
        assert "fl-dade-pa" in str(error)
        assert "fl-manatee-pa, fl-sarasota-pa" in str(error)

    def test_is_a_key_error(self):
        """Test that callers catching KeyError also catch it."""
        with pytest.raises(KeyError):
            raise UnknownSourceError("missing")
