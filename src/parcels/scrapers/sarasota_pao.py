"""
Sarasota County PAO Scraper

Searches sc-pa.com by street and reads the detail page, which renders its
facts as ``dl`` term/definition pairs plus header-labelled tables.
"""
import re
from typing import Any, Dict, List, Optional, Tuple

from bs4 import BeautifulSoup
from playwright.async_api import Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from src.parcels.browser.blocking import ensure_not_blocked
from src.parcels.errors import ErrorCode, ScrapeError, is_connection_error
from src.parcels.models.property_details import (
    PropertyBasicInfo,
    PropertyBuilding,
    PropertyDetails,
    PropertyLand,
    SaleRecord,
    ValuationRecord,
    ValueBreakdown,
)
from src.parcels.scrapers.base import (
    PaoScraper,
    SearchOutcome,
    SearchRow,
    apply_summary_fields,
    detect_no_results,
    parse_int,
    parse_money,
    parse_number,
    select_best_result,
)
from src.parcels.transformers.address_parser import ParsedAddress
from src.parcels.utils.dates import sort_by_date_desc
from src.parcels.utils.logger import get_logger
from src.parcels.utils.parcel_id import extract_parcel_id_from_sarasota_url

logger = get_logger(__name__)

SOURCE_KEY = "fl-sarasota-pa"
PARSER_VERSION = "sarasota-pao-v1.0.0"
PAO_SEARCH_URL = "https://www.sc-pa.com/propertysearch"
PAO_BASE_URL = "https://www.sc-pa.com"

ADDRESS_INPUT = "#AddressKeywords"

SUBMIT_SELECTORS = (
    'input[type="submit"]',
    'button[type="submit"]',
    "button.btn-primary",
    "button.btn-search",
    ".search-form button",
    "form button",
    "#search-button",
    ".btn-submit",
)

NO_RESULTS_PHRASES = (
    "no results",
    "no records found",
    "no properties found",
    "0 results",
)

SQFT_PER_ACRE = 43560

_DETAIL_PATH = re.compile(r"/parcel(?:/details)?/(\d+)")
_LAND_ACRES = re.compile(r"([\d.]+)\s*(?:ac|acres?)", re.IGNORECASE)


def _soup(html: Optional[str]) -> BeautifulSoup:
    return BeautifulSoup(html or "", "html.parser")


def _text(node) -> str:
    return node.get_text(" ", strip=True) if node is not None else ""


def parse_search_results(html: str) -> List[SearchRow]:
    """Rows with at least two cells and a ``/parcel`` link: parcel id, address, owner."""
    rows: List[SearchRow] = []

    for tr in _soup(html).select("table tbody tr"):
        cells = tr.find_all("td")
        if len(cells) < 2:
            continue

        link = tr.select_one("a[href*='/parcel']")
        href = link.get("href") if link is not None else None
        if not href:
            continue

        match = _DETAIL_PATH.search(href)
        parcel_id = match.group(1) if match else re.sub(r"\D", "", _text(cells[0]))
        address = _text(cells[1]) or _text(link)
        owner = _text(cells[2]) if len(cells) >= 3 else None

        if parcel_id or address:
            rows.append(SearchRow(text=address, href=href, parcel_id=parcel_id or None, owner=owner))

    return rows


def dl_lookup(soup: BeautifulSoup, *labels: str) -> Optional[str]:
    """Definition for the first ``dt`` whose text contains one of ``labels``, tried in order."""
    terms = soup.select("dl dt")
    for label in labels:
        key = label.lower()
        for dt in terms:
            if key in _text(dt).lower():
                dd = dt.find_next_sibling("dd")
                if dd is not None:
                    return _text(dd)
    return None


def _table_headers(table) -> List[str]:
    return [_text(th).lower() for th in table.find_all("th")]


def parse_building_table(soup: BeautifulSoup) -> List[PropertyBuilding]:
    """Building rows, with cells classified by their column header."""
    buildings: List[PropertyBuilding] = []

    for table in soup.find_all("table"):
        headers = _table_headers(table)
        if not any("beds" in h or "bath" in h or "living" in h for h in headers):
            continue

        for tr in table.select("tbody tr"):
            cells = tr.find_all("td")
            if len(cells) < 4:
                continue

            values: Dict[str, Any] = {}
            for index, cell in enumerate(cells):
                text = _text(cell)
                header = headers[index] if index < len(headers) else ""

                if "bed" in header:
                    values["bedrooms"] = parse_int(text)
                elif "bath" in header and "half" not in header:
                    values["bathrooms"] = parse_number(text)
                elif "half" in header:
                    values["half_bathrooms"] = parse_int(text)
                elif "year" in header and "built" in header:
                    values["year_built"] = parse_int(text)
                elif "effective" in header:
                    values["effective_year_built"] = parse_int(text)
                elif "living" in header or "sqft" in header or "area" in header:
                    values["living_area_sqft"] = parse_number(text)
                elif "gross" in header:
                    values["total_area_sqft"] = parse_number(text)
                elif "stor" in header:
                    values["stories"] = parse_number(text)

            values = {key: value for key, value in values.items() if value}
            if values:
                buildings.append(PropertyBuilding(**values))

    return buildings


def parse_valuations_table(soup: BeautifulSoup) -> List[ValuationRecord]:
    """Rows of the first table(s) headed just/assessed/taxable; most recent year first."""
    valuations: List[ValuationRecord] = []

    for table in soup.find_all("table"):
        headers = _table_headers(table)
        if not any("just" in h or "assessed" in h or "taxable" in h for h in headers):
            continue

        for tr in table.select("tbody tr"):
            cells = tr.find_all("td")
            if len(cells) < 3:
                continue

            valuation = ValuationRecord()
            just = ValueBreakdown()
            for index, cell in enumerate(cells):
                text = _text(cell)
                header = headers[index] if index < len(headers) else ""
                amount = parse_money(text)

                if "year" in header:
                    valuation.year = parse_int(text)
                elif "land" in header:
                    just.land = amount
                elif "building" in header or "impr" in header:
                    just.building = amount
                elif "just" in header or "market" in header:
                    just.total = amount
                elif "assessed" in header:
                    valuation.assessed = ValueBreakdown(total=amount)
                elif "taxable" in header:
                    valuation.taxable = ValueBreakdown(total=amount)

            if just.model_dump(exclude_none=True):
                valuation.just = just
            if valuation.year:
                valuations.append(valuation)

    valuations.sort(key=lambda v: v.year or 0, reverse=True)
    return valuations


def parse_sales_table(soup: BeautifulSoup) -> List[SaleRecord]:
    """Transfer rows classified by header; undated rows sort last."""
    sales: List[SaleRecord] = []

    for table in soup.find_all("table"):
        headers = _table_headers(table)
        if not any("transfer" in h or "sale" in h or "recorded" in h for h in headers):
            continue

        for tr in table.select("tbody tr"):
            cells = tr.find_all("td")
            if len(cells) < 2:
                continue

            sale = SaleRecord()
            for index, cell in enumerate(cells):
                text = _text(cell)
                header = headers[index] if index < len(headers) else ""

                if "date" in header or "transfer" in header:
                    sale.date = text or None
                elif "price" in header or "consideration" in header:
                    sale.price = parse_money(text)
                elif "instrument" in header and "number" in header:
                    sale.instrument_number = text or None
                elif "instrument" in header and "type" in header:
                    sale.deed_type = text or None
                elif "qual" in header:
                    lowered = text.lower()
                    sale.qualified = "q" in lowered or "yes" in lowered
                elif "grantor" in header or "seller" in header:
                    sale.grantor = text or None
                elif "grantee" in header or "buyer" in header:
                    sale.grantee = text or None

            if sale.date or sale.price is not None:
                sales.append(sale)

    return sort_by_date_desc(sales, lambda s: s.date)


def parse_detail_page(html: str, detail_url: Optional[str] = None) -> PropertyDetails:
    """Full property record from a Sarasota detail page."""
    soup = _soup(html)
    details = PropertyDetails(parcel_id=extract_parcel_id_from_sarasota_url(detail_url))

    owner = dl_lookup(soup, "owner")
    if not owner:
        heading = soup.find("h5", string=re.compile("Owner"))
        owner = _text(heading.find_next_sibling()) if heading is not None else None
        if not owner:
            owner = _text(soup.select_one(".owner-name")) or None
    details.owner = owner

    situs = dl_lookup(soup, "situs")
    if situs:
        parts = [p.strip() for p in situs.split(",")]
        details.address = parts[0] or None
        if len(parts) >= 2:
            details.city = parts[1] or None
        zip_match = re.search(r"\b(\d{5})\b", situs)
        if zip_match:
            details.zip_code = zip_match.group(1)
        details.state = "FL"

    basic = PropertyBasicInfo(
        use_code=dl_lookup(soup, "use code", "property use"),
        use_description=dl_lookup(soup, "property use", "use"),
        legal_description=dl_lookup(soup, "legal", "description"),
        subdivision=dl_lookup(soup, "subdivision"),
        municipality=dl_lookup(soup, "municipality"),
        situs_address=situs,
    )
    exemptions = dl_lookup(soup, "exemptions") or ""
    basic.homestead_exemption = "homestead" in exemptions.lower()
    details.basic_info = basic
    details.property_type = basic.use_description

    land_area = dl_lookup(soup, "land area", "acres")
    if land_area:
        acres_match = _LAND_ACRES.search(land_area)
        if acres_match:
            acres = float(acres_match.group(1))
            details.land = PropertyLand(
                lot_size_acres=acres,
                lot_size_sqft=round(acres * SQFT_PER_ACRE),
                land_use=basic.use_description,
                land_use_code=basic.use_code,
            )

    buildings = parse_building_table(soup)
    if buildings:
        details.building = buildings[0]

    details.valuations = parse_valuations_table(soup)
    details.sales_history = parse_sales_table(soup)

    apply_summary_fields(details)
    details.raw_data = {"parser_version": PARSER_VERSION, "buildings": len(buildings)}
    return details


class SarasotaPaoScraper(PaoScraper):
    """
    Sarasota County Property Appraiser (street search + results table).

    The unit is left out of the search query; the matching unit is picked
    from the returned rows instead.
    """

    source_key = SOURCE_KEY
    search_url = PAO_SEARCH_URL
    base_url = PAO_BASE_URL
    parser_version = PARSER_VERSION

    async def _submit(self, page: Page, debug: Dict[str, Any]) -> None:
        for selector in SUBMIT_SELECTORS:
            button = await page.query_selector(selector)
            if button is not None and await button.is_visible():
                debug["submit_selector"] = selector
                await button.click()
                return

        logger.debug("sarasota_submit_button_missing")
        debug["submitted_via_enter"] = True
        await page.press(ADDRESS_INPUT, "Enter")

    async def find_detail_url(
        self, page: Page, address: str, parsed: ParsedAddress, debug: Dict[str, Any]
    ) -> SearchOutcome:
        try:
            return await self._search(page, address, parsed, debug)
        except (ScrapeError, PlaywrightTimeoutError):
            raise
        except Exception as e:
            if is_connection_error(e):
                raise
            debug["error"] = str(e)
            raise ScrapeError(
                f"Failed to search Sarasota PAO: {e}",
                ErrorCode.NAVIGATION_FAILED,
                cause=e,
                debug={"address": address},
            ) from e

    async def _search(
        self, page: Page, address: str, parsed: ParsedAddress, debug: Dict[str, Any]
    ) -> SearchOutcome:
        await self.open_search_form(page, ADDRESS_INPUT, "Sarasota PAO search page")

        debug["search_query"] = parsed.street
        debug["target_unit"] = parsed.unit
        await page.fill(ADDRESS_INPUT, parsed.street)
        await page.wait_for_timeout(800)
        # Dismiss the autocomplete dropdown
        await page.keyboard.press("Escape")
        await page.wait_for_timeout(200)

        await self._submit(page, debug)

        await page.wait_for_load_state("domcontentloaded", timeout=self.nav_timeout_ms)
        await page.wait_for_timeout(1500)

        content = await page.content()
        ensure_not_blocked(content, "Sarasota PAO search results")

        current_url = page.url
        parcel_id = extract_parcel_id_from_sarasota_url(current_url)
        if parcel_id:
            logger.info("sarasota_direct_detail_hit", parcel_id=parcel_id)
            debug["direct_hit"] = True
            return SearchOutcome(
                detail_url=current_url,
                address_found=True,
                on_detail_page=True,
                parcel_id=parcel_id,
                confidence=0.9,
            )

        rows = parse_search_results(content)
        debug["rows_found"] = len(rows)
        if not rows:
            debug["no_results_detected"] = detect_no_results(content, NO_RESULTS_PHRASES)
            return SearchOutcome()

        match = select_best_result(rows, address)
        debug["match"] = match.to_dict()
        if not match.address_found:
            logger.warning("sarasota_results_rejected", rows=len(rows), reason=match.reason)
            return SearchOutcome(candidates=rows)

        return SearchOutcome(
            detail_url=self.absolute_url(match.row.href),
            address_found=True,
            parcel_id=match.row.parcel_id,
            confidence=match.confidence,
            candidates=rows,
        )

    async def extract_on_page(
        self, page: Page, detail_url: str, debug: Dict[str, Any]
    ) -> Tuple[PropertyDetails, str]:
        await page.wait_for_load_state("domcontentloaded")
        html = await page.content()
        ensure_not_blocked(html, "Sarasota PAO detail page")

        try:
            scraped = parse_detail_page(html, detail_url)
        except Exception as e:
            raise ScrapeError(
                f"Failed to extract Sarasota PAO property: {e}",
                ErrorCode.PARSE_ERROR,
                cause=e,
                debug={"detail_url": detail_url},
            ) from e

        debug["fields_extracted"] = len(scraped.model_dump(exclude_none=True, exclude_defaults=True))
        return scraped, html
