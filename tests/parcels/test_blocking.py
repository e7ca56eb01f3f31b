"""
Tests for anti-automation page detection.
"""
import pytest

from src.parcels.browser.blocking import detect_blocking, ensure_not_blocked
from src.parcels.errors import ErrorCode, ScrapeError


class TestDetectBlocking:
    """Tests for detect_blocking."""

    @pytest.mark.parametrize("content,reason", [
        ("<div class='g-recaptcha'></div>", "reCAPTCHA detected"),
        ("Please verify you are human to continue", "Human verification required"),
        ("Checking your browser before accessing manateepao.gov", "Cloudflare protection detected"),
        ("<h1>Access to this page has been denied</h1>", "Access denied"),
        ("429 Too Many Requests", "Too many requests"),
        ("We have detected unusual traffic from your network", "Bot detected"),
    ])
    def test_blocked_pages(self, content, reason):
        """Test that interstitial pages are classified with a reason."""
        check = detect_blocking(content)

        assert check.blocked
        assert check.reason == reason

    def test_ordinary_detail_page(self):
        """Test that a property page is not classified as blocked."""
        html = """
        <html><body>
          <h2>Parcel Information</h2>
          <table><tr><th>Owner</th><td>SMITH JOHN</td></tr>
          <tr><th>Situs Address</th><td>123 MAIN ST</td></tr></table>
        </body></html>
        """
        assert not detect_blocking(html).blocked

    def test_empty_content(self):
        """Test that missing content is not blocked."""
        assert not detect_blocking(None).blocked
        assert not detect_blocking("").blocked


class TestEnsureNotBlocked:
    """Tests for ensure_not_blocked."""

    def test_raises_blocked_error(self):
        """Test that a blocked page raises ScrapeError(BLOCKED) with context."""
        with pytest.raises(ScrapeError) as exc_info:
            ensure_not_blocked("Rate limit exceeded", "Manatee search results")

        assert exc_info.value.code == ErrorCode.BLOCKED
        assert exc_info.value.debug["context"] == "Manatee search results"
        assert "Manatee search results" in str(exc_info.value)

    def test_passes_normal_content(self):
        """Test that normal content does not raise."""
        ensure_not_blocked("<html>Parcel 123</html>", "detail page")
