"""
Tests for opening the county search forms: challenge pages and missing forms.
"""
import asyncio

import pytest

from src.parcels.errors import ErrorCode, ScrapeError
from src.parcels.scrapers.manatee_pao import PAO_SEARCH_URL as MANATEE_SEARCH_URL
from src.parcels.scrapers.manatee_pao import ManateePaoScraper
from src.parcels.scrapers.sarasota_pao import SarasotaPaoScraper
from src.parcels.transformers.address_parser import parse_address
from tests.parcels.fakes import FakeSearchPage, make_session_manager

ADDRESS = "123 Main St, Bradenton, FL 34205"

CHALLENGE_PAGE = "<html><body><h1>Checking your browser before accessing</h1><p>Ray ID: 8a1b</p></body></html>"
BLANK_PAGE = "<html><body><div id='app'></div></body></html>"

SCRAPERS = [
    pytest.param(ManateePaoScraper, "#Address", id="manatee"),
    pytest.param(SarasotaPaoScraper, "#AddressKeywords", id="sarasota"),
]


def search(scraper_class, page):
    manager, _, _ = make_session_manager()
    scraper = scraper_class(manager)
    return asyncio.run(scraper.find_detail_url(page, ADDRESS, parse_address(ADDRESS), {}))


class TestOpenSearchForm:
    """Tests for the search page checks run before the form is filled."""

    @pytest.mark.parametrize("scraper_class,form_selector", SCRAPERS)
    def test_challenge_page_blocked(self, scraper_class, form_selector):
        """Test that a challenge page is reported as BLOCKED without waiting for the form."""
        page = FakeSearchPage([CHALLENGE_PAGE], has_form=False)

        with pytest.raises(ScrapeError) as exc_info:
            search(scraper_class, page)

        assert exc_info.value.code == ErrorCode.BLOCKED
        assert page.waited_for == []

    @pytest.mark.parametrize("scraper_class,form_selector", SCRAPERS)
    def test_challenge_rendered_late_blocked(self, scraper_class, form_selector):
        """Test that a challenge replacing the page while waiting is still BLOCKED, not a timeout."""
        page = FakeSearchPage([BLANK_PAGE, CHALLENGE_PAGE], has_form=False)

        with pytest.raises(ScrapeError) as exc_info:
            search(scraper_class, page)

        assert exc_info.value.code == ErrorCode.BLOCKED
        assert page.waited_for == [form_selector]

    @pytest.mark.parametrize("scraper_class,form_selector", SCRAPERS)
    def test_missing_form_is_parse_error(self, scraper_class, form_selector):
        """Test that a search page without its form is a PARSE_ERROR naming the selector."""
        page = FakeSearchPage([BLANK_PAGE], has_form=False)

        with pytest.raises(ScrapeError) as exc_info:
            search(scraper_class, page)

        error = exc_info.value
        assert error.code == ErrorCode.PARSE_ERROR
        assert str(error) == "Search form not found"
        assert error.debug["selector"] == form_selector
        assert error.retryable is False

    def test_search_url_visited(self):
        """Test that the Manatee search page is the one loaded."""
        page = FakeSearchPage([BLANK_PAGE], has_form=False)

        with pytest.raises(ScrapeError):
            search(ManateePaoScraper, page)

        assert page.visited == [MANATEE_SEARCH_URL]
