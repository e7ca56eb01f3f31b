"""
Tests for the workflow-safe PAO enrichment service.
"""
import asyncio

from src.parcels.enrichment.pao import (
    BLOCKED_MESSAGE,
    EnrichmentStatus,
    enrich_pao_by_address,
    extract_property_summary,
)
from src.parcels.errors import ErrorCode, ScrapeError
from src.parcels.models.property_details import PropertyBasicInfo, PropertyBuilding, PropertyDetails, SaleRecord
from src.parcels.scrapers.base import ScrapeResult
from tests.parcels.fakes import FakeScraper, found_result, make_session_manager, sample_property

ADDRESS = "123 Main St, Bradenton, FL 34205"


def enrich(scraper, address=ADDRESS, production=False):
    return asyncio.run(enrich_pao_by_address(address, scraper, production=production))


class TestEnrichPaoByAddress:
    """Tests for enrich_pao_by_address."""

    def test_success(self, fake_scraper):
        """Test that a found property is returned with provenance."""
        result = enrich(fake_scraper)

        assert result.status == EnrichmentStatus.SUCCESS
        assert result.property.parcel_id == "1234567890"
        assert result.provenance.source == "fl-manatee-pa"
        assert result.provenance.source_url == "https://www.manateepao.gov/parcel/?parid=1234567890"
        assert result.provenance.confidence == 0.95
        assert result.error is None

    def test_address_trimmed(self, fake_scraper):
        """Test that surrounding whitespace is dropped before searching."""
        enrich(fake_scraper, address=f"  {ADDRESS}  ")

        assert fake_scraper.address_calls == [ADDRESS]

    def test_blank_address_skipped(self, fake_scraper):
        """Test that blank input is skipped without scraping."""
        result = enrich(fake_scraper, address="   ")

        assert result.status == EnrichmentStatus.SKIPPED
        assert fake_scraper.address_calls == []

    def test_production_without_endpoint_skipped(self, fake_scraper):
        """Test that production without a remote browser is a skip, not a failure."""
        result = enrich(fake_scraper, production=True)

        assert result.status == EnrichmentStatus.SKIPPED
        assert "PLAYWRIGHT_WS_ENDPOINT" in result.error
        assert fake_scraper.address_calls == []

    def test_not_found(self):
        """Test that an unmatched address fails with a readable reason."""
        result = enrich(FakeScraper(result=ScrapeResult(debug={"rows_found": 0})))

        assert result.status == EnrichmentStatus.FAILED
        assert result.error == f'No property found in fl-manatee-pa for address: "{ADDRESS}"'
        assert result.debug == {"rows_found": 0}

    def test_empty_record_is_not_found(self):
        """Test that a found page with nothing extracted counts as not found."""
        result = enrich(FakeScraper(result=found_result(details=PropertyDetails())))

        assert result.status == EnrichmentStatus.FAILED

    def test_blocked(self):
        """Test that blocking maps to the manual review message."""
        result = enrich(FakeScraper(error=ScrapeError("captcha", ErrorCode.BLOCKED, debug={"url": "u"})))

        assert result.status == EnrichmentStatus.FAILED
        assert result.error == BLOCKED_MESSAGE
        assert result.debug == {"error_code": "BLOCKED", "url": "u"}

    def test_launch_failure_in_development_skipped(self):
        """Test that no local browser during development is a skip."""
        scraper = FakeScraper(error=ScrapeError("no chromium", ErrorCode.BROWSER_LAUNCH_FAILED))

        result = enrich(scraper)

        assert result.status == EnrichmentStatus.SKIPPED

    def test_launch_failure_in_production_fails(self):
        """Test that a launch failure with a remote endpoint configured is a failure."""
        manager, _, _ = make_session_manager(ws_endpoint="ws://browser:3000")
        scraper = FakeScraper(
            error=ScrapeError("connect failed", ErrorCode.BROWSER_LAUNCH_FAILED),
            session_manager=manager,
        )

        result = enrich(scraper, production=True)

        assert result.status == EnrichmentStatus.FAILED
        assert result.error == "PAO scraping error (BROWSER_LAUNCH_FAILED): connect failed"

    def test_unexpected_error_fails(self):
        """Test that any other exception becomes a failure result."""
        result = enrich(FakeScraper(error=RuntimeError("socket closed")))

        assert result.status == EnrichmentStatus.FAILED
        assert result.error == "PAO enrichment failed: socket closed"


class TestPropertySummary:
    """Tests for extract_property_summary."""

    def test_summary(self):
        """Test the report fields for a complete record."""
        details = sample_property(
            property_type="Single Family",
            building=PropertyBuilding(year_built=1985, bedrooms=3, bathrooms=2.5, living_area_sqft=1850),
            basic_info=PropertyBasicInfo(homestead_exemption=True),
        )

        summary = extract_property_summary(details)

        assert summary.owner == "SMITH JOHN"
        assert summary.year_built == 1985
        assert summary.beds_baths == "3 bed / 2.5 bath"
        assert summary.sqft == 1850
        assert summary.assessed_value == 250000
        assert summary.market_value == 300000
        assert summary.last_sale_date == "03/15/2019"
        assert summary.last_sale_price == 245000
        assert summary.homestead_exemption is True

    def test_nominal_sales_skipped(self):
        """Test that the last sale ignores zero-consideration transfers."""
        details = sample_property(sales_history=[
            SaleRecord(date="01/05/2023", price=0, deed_type="QC"),
            SaleRecord(date="03/15/2019", price=245000),
        ])

        summary = extract_property_summary(details)

        assert summary.last_sale_date == "03/15/2019"

    def test_sparse_record(self):
        """Test that missing groups leave the summary fields empty."""
        summary = extract_property_summary(sample_property(building=None, valuations=[], sales_history=[]))

        assert summary.beds_baths is None
        assert summary.assessed_value is None
        assert summary.last_sale_price is None
        assert summary.homestead_exemption is None
