"""
Tests for the Sarasota PAO extractors, run against saved pages.
"""
from pathlib import Path

from bs4 import BeautifulSoup

from src.parcels.scrapers.base import select_best_result
from src.parcels.scrapers.sarasota_pao import (
    dl_lookup,
    parse_detail_page,
    parse_search_results,
)

FIXTURES = Path(__file__).resolve().parents[1] / "fixtures" / "sarasota"
DETAIL_URL = "https://www.sc-pa.com/propertysearch/parcel/details/2043131013"


def load(name: str) -> str:
    return (FIXTURES / name).read_text(encoding="utf-8")


class TestSearchResults:
    """Tests for search result parsing and unit matching."""

    def test_rows(self):
        """Test that rows carry the address, owner and parcel id from the link."""
        rows = parse_search_results(load("search_results.html"))

        assert len(rows) == 2
        assert rows[0].text == "5701 LONG COMMON CIR #12"
        assert rows[0].owner == "OTHER OWNER"
        assert rows[1].parcel_id == "2043131013"

    def test_unit_row_selected(self):
        """Test that the requested unit's row is selected among same-building rows."""
        rows = parse_search_results(load("search_results.html"))

        match = select_best_result(rows, "5701 Long Common Cir #13, Sarasota, FL 34235")

        assert match.address_found
        assert match.row.parcel_id == "2043131013"
        assert match.confidence == 0.95

    def test_rows_without_parcel_link_skipped(self):
        """Test that rows without a parcel link are ignored."""
        html = "<table><tbody><tr><td>x</td><td>123 MAIN ST</td></tr></tbody></table>"
        assert parse_search_results(html) == []


class TestDetailPage:
    """Tests for parse_detail_page."""

    def test_owner_and_situs(self):
        """Test the identification block."""
        details = parse_detail_page(load("detail.html"), DETAIL_URL)

        assert details.parcel_id == "2043131013"
        assert details.owner == "TEST OWNER NAME"
        assert details.address == "5701 LONG COMMON CIR #13"
        assert details.city == "SARASOTA"
        assert details.state == "FL"
        assert details.zip_code == "34235"
        assert details.basic_info.use_code == "0400"
        assert details.basic_info.use_description == "Condominium"
        assert details.basic_info.legal_description == "UNIT 13 LONG COMMON CONDO"
        assert details.basic_info.homestead_exemption is True
        assert details.legal == "UNIT 13 LONG COMMON CONDO"

    def test_land_area(self):
        """Test that acreage converts to square feet."""
        details = parse_detail_page(load("detail.html"), DETAIL_URL)

        assert details.land.lot_size_acres == 0.25
        assert details.land.lot_size_sqft == 10890

    def test_building(self):
        """Test that building cells are classified by header."""
        details = parse_detail_page(load("detail.html"), DETAIL_URL)

        assert details.building.bedrooms == 2
        assert details.building.bathrooms == 2
        assert details.building.year_built == 1984
        assert details.building.living_area_sqft == 1090
        assert details.building.total_area_sqft == 1250
        assert details.sqft == 1090

    def test_valuations(self):
        """Test value rows, newest first."""
        details = parse_detail_page(load("detail.html"), DETAIL_URL)

        assert [v.year for v in details.valuations] == [2024, 2023]
        assert details.valuations[0].just.total == 215400
        assert details.valuations[1].assessed.total == 201000
        assert details.assessed_value == 215400

    def test_sales(self):
        """Test transfer rows, newest first."""
        details = parse_detail_page(load("detail.html"), DETAIL_URL)

        assert [s.date for s in details.sales_history] == ["08/12/2021", "05/01/2010"]
        latest = details.sales_history[0]
        assert latest.price == 199000
        assert latest.instrument_number == "2021132456"
        assert latest.deed_type == "WD"
        assert latest.grantor == "PRIOR OWNER"
        assert details.last_sale_price == 199000

    def test_empty_page(self):
        """Test that an empty page yields an empty record."""
        details = parse_detail_page("<html></html>")

        assert details.owner is None
        assert details.valuations == []
        assert details.building is None


class TestDlLookup:
    """Tests for definition list lookup."""

    def test_labels_tried_in_order(self):
        """Test that the first label with a match wins."""
        soup = BeautifulSoup("<dl><dt>Use</dt><dd>A</dd><dt>Property Use</dt><dd>B</dd></dl>", "html.parser")

        assert dl_lookup(soup, "property use", "use") == "B"
        assert dl_lookup(soup, "missing") is None
