"""
Manatee County PAO Scraper

Drives the search form at manateepao.gov and reads the tabbed detail page.
The page-level functions below only move the browser around and hand HTML
fragments to the pure ``parse_*`` extractors, one per field group, which
are unit tested against fixtures.
"""
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from bs4 import BeautifulSoup
from playwright.async_api import Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from src.parcels.browser.blocking import ensure_not_blocked
from src.parcels.errors import ErrorCode, ScrapeError, is_connection_error
from src.parcels.models.property_details import (
    ExtraFeatureRecord,
    InspectionRecord,
    PropertyBasicInfo,
    PropertyBuilding,
    PropertyDetails,
    PropertyExtras,
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
from src.parcels.utils.parcel_id import extract_parcel_id_from_manatee_url

logger = get_logger(__name__)

SOURCE_KEY = "fl-manatee-pa"
PARSER_VERSION = "manatee-pao-v1.0.0"
PAO_SEARCH_URL = "https://www.manateepao.gov/search/"
PAO_BASE_URL = "https://www.manateepao.gov"

SELECTORS = {
    "owner_last": "#OwnLast",
    "owner_first": "#OwnFirst",
    "parcel_id": "#ParcelId",
    "address": "#Address",
    "zip_code": "#Zip",
    "submit": 'input[type="submit"].btn-success, input.btn.btn-success',
    "results_table": "table.table, .search-results table, #searchResults table",
    "no_results": ".no-results, .alert-info, .alert-warning",
    "owner_content": ".owner-content, #ownerContent",
}

# (section, tab selector, table selector); tabs are read in this order
TABS = (
    ("sales", "#sales-nav", "#tableSales"),
    ("inspections", "#inspections-nav", "#tableInspections"),
    ("values", "#valueHistory-nav", "#tableValue"),
    ("buildings", "#buildings-nav", "#tableBuildings"),
    ("features", "#features-nav", "#tableFeatures"),
)

TABLE_WAIT_MS = 3000

RESULT_ROW_SELECTORS = (
    "table.table tbody tr",
    ".search-results table tbody tr",
    "#searchResults tbody tr",
    "table tbody tr",
)

NO_RESULTS_PHRASES = (
    "no results",
    "no records found",
    "no properties found",
    "no matching",
    "0 results",
    "zero results",
    "search returned no",
)

DIRECT_HIT_PATTERN = re.compile(r"[?&]parid=(\d{9,10})", re.IGNORECASE)
_LINK_PARCEL_PATTERN = re.compile(r"(?:parid|parcel|parcelid)=(\d{9,10})", re.IGNORECASE)
_TEXT_PARCEL_PATTERN = re.compile(r"\b(\d{9,10})\b")

_SITUS_CITY_IN_STREET = re.compile(r"^(.+?),\s*([A-Z]+)\s+(\d{5}(?:-\d{4})?)", re.IGNORECASE)
_SITUS_WITH_CITY = re.compile(r"^(.+?),\s*([^,]+),?\s*([A-Z]{2})\s+(\d{5}(?:-\d{4})?)", re.IGNORECASE)
_ACRES = re.compile(r"([\d.]+)\s*Acres?", re.IGNORECASE)
_SQFT = re.compile(r"([\d,]+)\s*(?:Square\s*Feet|Sq\s*Ft|SF)", re.IGNORECASE)
_UNDER_ROOF = re.compile(r"([\d,]+)\s*(?:SqFt|Sq\s*Ft|SF)?\s*Under\s*Roof", re.IGNORECASE)
_LIVING = re.compile(r"([\d,]+)\s*(?:SqFt|Sq\s*Ft|SF)?\s*Living", re.IGNORECASE)
_SALE_DATE = re.compile(r"\d{1,2}/\d{1,2}/\d{4}")
_INSPECTION_DATE = re.compile(r"\d{1,2}/\d{1,2}/\d{2,4}")
_INSPECTION_RESULT = re.compile(r"pass|fail|complete|pending|approved", re.IGNORECASE)
_INSPECTOR_NAME = re.compile(r"^[A-Z][a-z]+ [A-Z]")


@dataclass
class ManateeSections:
    """HTML fragments collected from the detail page."""

    owner_html: Optional[str] = None
    sales_html: Optional[str] = None
    values_html: Optional[str] = None
    buildings_html: Optional[str] = None
    features_html: Optional[str] = None
    inspections_html: Optional[str] = None

    def sizes(self) -> Dict[str, Optional[int]]:
        return {name: len(html) if html else None for name, html in vars(self).items()}


# ============================================================================
# Pure extractors
# ============================================================================

def _soup(html: Optional[str]) -> BeautifulSoup:
    return BeautifulSoup(html or "", "html.parser")


def _text(node, separator: str = " ") -> str:
    return node.get_text(separator, strip=True) if node is not None else ""


def parse_search_results(html: str) -> List[SearchRow]:
    """Result rows that link to (or name) a parcel, from the first selector that yields any."""
    soup = _soup(html)
    rows: List[SearchRow] = []

    for selector in RESULT_ROW_SELECTORS:
        for tr in soup.select(selector):
            if tr.find("th") is not None:
                continue
            text = _text(tr)
            href = None
            parcel_id = None

            for link in tr.find_all("a"):
                link_href = link.get("href") or ""
                if "parcel" in link_href or "parid" in link_href or "detail" in link_href:
                    href = link_href
                    match = _LINK_PARCEL_PATTERN.search(link_href)
                    if match:
                        parcel_id = match.group(1)

            if not parcel_id:
                match = _TEXT_PARCEL_PATTERN.search(text)
                if match:
                    parcel_id = match.group(1)

            if not href and parcel_id:
                href = f"/parcel/?parid={parcel_id}"

            if text and href:
                rows.append(SearchRow(text=text, href=href, parcel_id=parcel_id))

        if rows:
            break

    return rows


def clean_value(value: Optional[str]) -> Optional[str]:
    """Drop "Go to ..." link text, bracketed annotations and extra whitespace."""
    if not value:
        return None
    value = re.sub(r"Go to.*$", "", value, flags=re.IGNORECASE | re.DOTALL)
    value = re.sub(r"\[.*?\]", "", value)
    value = re.sub(r"\s+", " ", value).strip()
    return value or None


def build_field_map(soup: BeautifulSoup) -> Dict[str, str]:
    """Lowercased label -> value from Bootstrap ``.row`` / ``col-*`` pairs."""
    field_map: Dict[str, str] = {}
    for row in soup.select(".row"):
        cols = row.select("[class*='col']")
        if len(cols) < 2:
            continue
        label = re.sub(r"\s+", " ", _text(cols[0])).rstrip(":").strip()
        value = _text(cols[1], "\n")
        if label and value and len(label) < 50 and len(value) < 500:
            field_map[label.lower()] = value
    return field_map


def lookup_field(field_map: Dict[str, str], soup: BeautifulSoup, labels: List[str]) -> Optional[str]:
    """
    Exact label match, then partial match, then ``dt``/``dd`` and table
    cell pairs for labels rendered outside the row grid.
    """
    for label in labels:
        key = label.lower()
        if field_map.get(key):
            return field_map[key]
        for existing, value in field_map.items():
            if key in existing or existing in key:
                return value

    for label in labels:
        key = label.lower()
        for dt in soup.find_all("dt"):
            if key in _text(dt).lower():
                dd = dt.find_next_sibling("dd")
                if dd is not None and _text(dd):
                    return _text(dd, "\n")
        for tr in soup.find_all("tr"):
            cells = tr.find_all(["td", "th"])
            for index, cell in enumerate(cells[:-1]):
                if key in _text(cell).lower():
                    value = _text(cells[index + 1])
                    if value and value not in ("-", "N/A"):
                        return value
    return None


def parse_situs(situs: str) -> Dict[str, Optional[str]]:
    """
    Split "123 MAIN ST, BRADENTON, FL 34208" or "123 MAIN ST, BRADENTON FL 34208"
    into street/city/state/zip.
    """
    parts: Dict[str, Optional[str]] = {"street": situs, "city": None, "state": None, "zip_code": None}

    match = _SITUS_CITY_IN_STREET.match(situs)
    if match:
        street_city = match.group(1)
        if "," in street_city:
            street, city = street_city.rsplit(",", 1)
            parts.update(street=street.strip(), city=city.strip())
        else:
            parts["street"] = street_city.strip()
        parts.update(state=match.group(2).upper(), zip_code=match.group(3))
        return parts

    match = _SITUS_WITH_CITY.match(situs)
    if match:
        parts.update(
            street=match.group(1).strip(),
            city=match.group(2).strip(),
            state=match.group(3).upper(),
            zip_code=match.group(4),
        )
    return parts


def parse_owner_block(html: str) -> PropertyDetails:
    """Owner, situs, jurisdiction, land and building-area fields from the owner panel."""
    soup = _soup(html)
    field_map = build_field_map(soup)
    logger.debug("manatee_owner_fields_parsed", fields=len(field_map))

    def field(*labels: str) -> Optional[str]:
        return lookup_field(field_map, soup, list(labels))

    details = PropertyDetails()
    basic = PropertyBasicInfo()
    land = PropertyLand()
    building = PropertyBuilding()

    ownership = field("Ownership", "Owner")
    if ownership:
        first_owner = re.split(r"[;\n]", ownership)[0].strip()
        details.owner = re.sub(r"\s+\d{1,2}/\d{1,2}/\d{4}.*$", "", first_owner).strip() or None

    basic.owner_type = clean_value(field("Owner Type"))
    details.owner_type = basic.owner_type

    situs = clean_value(field("Situs Address", "Property Address", "Site Address"))
    if situs:
        parts = parse_situs(situs)
        details.address = parts["street"]
        details.city = parts["city"]
        details.state = parts["state"]
        details.zip_code = parts["zip_code"]
        basic.situs_address = situs

    basic.jurisdiction = clean_value(field("Jurisdiction"))
    basic.tax_district = clean_value(field("Tax District"))
    basic.neighborhood = clean_value(field("Neighborhood"))
    basic.subdivision = clean_value(field("Subdivision"))
    basic.short_description = clean_value(field("Short Description"))

    land_use = clean_value(field("Land Use"))
    if land_use:
        land.land_use = land_use
        code = re.match(r"^(\d{2,4})\b", land_use)
        if code:
            land.land_use_code = code.group(1)
        basic.use_description = land_use
        details.property_type = land_use

    land_size = field("Land Size")
    if land_size:
        acres = _ACRES.search(land_size)
        if acres:
            land.lot_size_acres = parse_number(acres.group(1))
        sqft = _SQFT.search(land_size)
        if sqft:
            land.lot_size_sqft = parse_number(sqft.group(1))

    building_area = field("Building Area")
    if building_area:
        under_roof = _UNDER_ROOF.search(building_area)
        if under_roof:
            building.total_area_sqft = parse_number(under_roof.group(1))
        living = _LIVING.search(building_area)
        if living:
            building.living_area_sqft = parse_number(living.group(1))

    living_units = field("Living Units")
    if living_units:
        basic.living_units = parse_int(living_units)

    details.basic_info = basic
    details.land = land
    details.building = building
    return details


def parse_buildings_table(html: str) -> Optional[PropertyBuilding]:
    """
    First data row of the buildings table. Cells 3..11 hold year built,
    effective year, stories, under-roof area, living area, rooms
    ("bed/bath/half"), construction/exterior, roof cover and roof structure.
    """
    row = _soup(html).select_one("table tbody tr")
    if row is None:
        return None
    cells = [_text(td) for td in row.find_all("td")]

    def cell(index: int) -> str:
        return cells[index] if index < len(cells) else ""

    building = PropertyBuilding()

    if re.fullmatch(r"\d{4}", cell(3)):
        building.year_built = int(cell(3))
    if re.fullmatch(r"\d{4}", cell(4)):
        building.effective_year_built = int(cell(4))

    building.stories = parse_number(cell(5))
    building.total_area_sqft = parse_number(cell(6)) or None
    building.living_area_sqft = parse_number(cell(7)) or None

    rooms = cell(8).split("/")
    if len(rooms) >= 2:
        bedrooms = parse_int(rooms[0])
        full_baths = parse_int(rooms[1])
        half_baths = parse_int(rooms[2]) if len(rooms) > 2 else 0
        half_baths = half_baths or 0
        if bedrooms is not None:
            building.bedrooms = bedrooms
        if full_baths is not None:
            building.bathrooms = full_baths + half_baths * 0.5
            building.full_bathrooms = full_baths
            building.half_bathrooms = half_baths

    if cell(9):
        construction = cell(9).split("/")
        building.construction_type = construction[0].strip() or None
        if len(construction) > 1 and construction[1].strip():
            building.exterior_walls = construction[1].strip()

    building.roof_cover = cell(10) or None
    building.roof_structure = cell(11) or None
    return building


def _header_text(table) -> str:
    return " ".join(_text(node) for node in table.find_all(["th", "thead"])).lower()


def parse_valuations_table(html: str) -> List[ValuationRecord]:
    """
    Value-history rows: year (2000..2100) in cell 0, land 2, building 3,
    just 4, assessed 5, taxable 7; tables wider than nine cells end with
    ad valorem and non-ad valorem taxes. Most recent year first.
    """
    valuations: List[ValuationRecord] = []

    for table in _soup(html).find_all("table"):
        header = _header_text(table)
        if not any(word in header for word in ("year", "land", "market", "value")):
            continue

        for tr in table.select("tbody tr"):
            cells = [_text(td) for td in tr.find_all("td")]
            if len(cells) < 4:
                continue
            year = parse_int(cells[0])
            if year is None or year < 2000 or year > 2100:
                continue

            valuation = ValuationRecord(
                year=year,
                just=ValueBreakdown(
                    land=parse_money(cells[2]),
                    building=parse_money(cells[3]),
                    total=parse_money(cells[4]) if len(cells) > 4 else None,
                ),
            )
            if len(cells) > 5:
                valuation.assessed = ValueBreakdown(total=parse_money(cells[5]))
            if len(cells) > 7:
                valuation.taxable = ValueBreakdown(total=parse_money(cells[7]))
            if len(cells) > 9:
                valuation.ad_valorem_taxes = parse_money(cells[-2])
                valuation.non_ad_valorem_taxes = parse_money(cells[-1])
            valuations.append(valuation)

    valuations.sort(key=lambda v: v.year or 0, reverse=True)
    return valuations


def parse_sales_table(html: str) -> List[SaleRecord]:
    """
    Sales rows: date 0, book/page 1, instrument type 2, vacant/improved 3,
    qualification code 4, price 5, grantee 6. Rows with neither a date nor
    a price are dropped. Most recent first.
    """
    sales: List[SaleRecord] = []

    for table in _soup(html).find_all("table"):
        header = _header_text(table)
        if not any(word in header for word in ("sale", "grantee", "price")):
            continue

        for tr in table.select("tbody tr"):
            cells = [_text(td) for td in tr.find_all("td")]
            if len(cells) < 5:
                continue

            date_match = _SALE_DATE.search(cells[0])
            sale_date = date_match.group(0) if date_match else cells[0]
            price = parse_money(cells[5]) if len(cells) > 5 else None
            if not sale_date and price is None:
                continue

            sales.append(SaleRecord(
                date=sale_date or None,
                price=price,
                book_page=cells[1] or None,
                deed_type=cells[2] or None,
                vacant_or_improved=cells[3] or None,
                qualification_code=cells[4] or None,
                grantee=cells[6] or None if len(cells) > 6 else None,
            ))

    return sort_by_date_desc(sales, lambda s: s.date)


def parse_extra_features(html: str) -> List[ExtraFeatureRecord]:
    """Description in the first cell; year, area and value picked out of the rest."""
    features: List[ExtraFeatureRecord] = []

    for tr in _soup(html).find_all("tr"):
        if tr.find("th") is not None:
            continue
        cells = [_text(td) for td in tr.find_all("td")]
        if not cells or not cells[0]:
            continue

        feature = ExtraFeatureRecord(description=cells[0])
        for text in cells[1:]:
            year = re.search(r"\b(?:19|20)\d{2}\b", text)
            if year and feature.year is None:
                feature.year = int(year.group(0))
            area = re.search(r"([\d,]+)\s*(?:sq\s*ft|SF)", text, re.IGNORECASE)
            if area and feature.area_sqft is None:
                feature.area_sqft = parse_number(area.group(1))
            value = re.search(r"\$[\d,]+", text)
            if value and feature.value is None:
                feature.value = parse_money(value.group(0))
        features.append(feature)

    return features


def parse_inspections(html: str) -> List[InspectionRecord]:
    """Cells are classified by shape: date, short type label, result keyword, inspector name, notes."""
    inspections: List[InspectionRecord] = []

    for tr in _soup(html).find_all("tr"):
        if tr.find("th") is not None:
            continue
        cells = [_text(td) for td in tr.find_all("td")]
        if len(cells) < 2:
            continue

        inspection = InspectionRecord()
        for index, text in enumerate(cells):
            if not text:
                continue
            date_match = _INSPECTION_DATE.search(text)
            if inspection.date is None and date_match:
                inspection.date = date_match.group(0)
            elif index <= 1 and inspection.type is None and 2 < len(text) < 50:
                inspection.type = text
            elif inspection.result is None and _INSPECTION_RESULT.search(text):
                inspection.result = text
            elif inspection.inspector is None and _INSPECTOR_NAME.match(text):
                inspection.inspector = text
            elif inspection.notes is None and len(text) > 20:
                inspection.notes = text

        if inspection.date or inspection.type:
            inspections.append(inspection)

    return inspections


def count_body_rows(html: Optional[str]) -> int:
    return len(_soup(html).select("tbody tr"))


def build_property_details(sections: ManateeSections, detail_url: Optional[str] = None) -> PropertyDetails:
    """Assemble the full record from the collected detail-page fragments."""
    details = parse_owner_block(sections.owner_html) if sections.owner_html else PropertyDetails()
    details.parcel_id = extract_parcel_id_from_manatee_url(detail_url)

    if sections.values_html:
        details.valuations = parse_valuations_table(sections.values_html)
    if sections.sales_html:
        details.sales_history = parse_sales_table(sections.sales_html)

    if sections.buildings_html:
        from_table = parse_buildings_table(sections.buildings_html)
        if from_table is not None:
            merged = (details.building or PropertyBuilding()).model_dump(exclude_none=True)
            merged.update(from_table.model_dump(exclude_none=True))
            details.building = PropertyBuilding(**merged)

    features = parse_extra_features(sections.features_html) if sections.features_html else []
    inspections = parse_inspections(sections.inspections_html) if sections.inspections_html else []
    if features or inspections:
        details.extras = PropertyExtras(pao_extra_features=features, inspections=inspections)

    apply_summary_fields(details)
    details.raw_data = {"sections": sections.sizes(), "parser_version": PARSER_VERSION}
    return details


# ============================================================================
# Browser flow
# ============================================================================

class ManateePaoScraper(PaoScraper):
    """
    Manatee County Property Appraiser (form search + tabbed detail page).
    """

    source_key = SOURCE_KEY
    search_url = PAO_SEARCH_URL
    base_url = PAO_BASE_URL
    parser_version = PARSER_VERSION

    async def _clear_and_fill(self, page: Page, selector: str, value: str) -> None:
        try:
            await page.click(selector)
            await page.keyboard.press("Control+a")
            await page.fill(selector, value)
            await page.wait_for_timeout(100)
        except Exception as e:
            if is_connection_error(e):
                raise
            logger.warning("manatee_form_fill_failed", selector=selector, error=str(e).split("\n")[0])

    async def _fill_search_form(self, page: Page, parsed: ParsedAddress, debug: Dict[str, Any]) -> None:
        await self._clear_and_fill(page, SELECTORS["owner_last"], "*")
        await self._clear_and_fill(page, SELECTORS["owner_first"], "*")
        await self._clear_and_fill(page, SELECTORS["parcel_id"], "*")

        street = parsed.normalized_street
        if street:
            if street != parsed.street.upper():
                logger.debug("manatee_street_normalized", original=parsed.street, normalized=street)
            debug["search_street"] = street
            await self._clear_and_fill(page, SELECTORS["address"], street)
            await page.wait_for_timeout(500)
            # Dismiss the autocomplete dropdown
            await page.keyboard.press("Escape")
            await page.wait_for_timeout(200)

        if parsed.zip_code:
            await self._clear_and_fill(page, SELECTORS["zip_code"], parsed.zip_code)

    async def find_detail_url(
        self, page: Page, address: str, parsed: ParsedAddress, debug: Dict[str, Any]
    ) -> SearchOutcome:
        await self.open_search_form(page, SELECTORS["address"], "Manatee PAO search page")

        await self._fill_search_form(page, parsed, debug)

        submit = await page.query_selector(SELECTORS["submit"])
        if submit is None:
            raise ScrapeError(
                "Submit button not found",
                ErrorCode.PARSE_ERROR,
                debug={"selector": SELECTORS["submit"]},
            )

        async with page.expect_navigation(wait_until="domcontentloaded", timeout=self.nav_timeout_ms) as navigation:
            await submit.click()
        response = await navigation.value

        indicators = ", ".join((
            SELECTORS["owner_content"],
            SELECTORS["results_table"],
            SELECTORS["no_results"],
            "table.table",
        ))
        try:
            await page.wait_for_selector(indicators, timeout=self.nav_timeout_ms)
        except PlaywrightTimeoutError:
            logger.debug("manatee_result_indicator_missing")
        await page.wait_for_timeout(1000)

        results_html = await page.content()
        current_url = page.url
        debug["results_url"] = current_url
        debug["results_page_length"] = len(results_html)

        direct = DIRECT_HIT_PATTERN.search(current_url)
        if direct:
            logger.info("manatee_direct_detail_hit", parcel_id=direct.group(1))
            debug["direct_hit"] = True
            return SearchOutcome(
                detail_url=current_url,
                address_found=True,
                on_detail_page=True,
                parcel_id=direct.group(1),
                confidence=0.9,
                response_status=response.status if response is not None else None,
            )

        ensure_not_blocked(results_html, "Manatee PAO search results")

        rows = parse_search_results(results_html)
        debug["rows_found"] = len(rows)
        if not rows:
            debug["no_results_detected"] = detect_no_results(results_html, NO_RESULTS_PHRASES)
            return SearchOutcome()

        match = select_best_result(rows, address)
        debug["match"] = match.to_dict()
        if not match.address_found:
            logger.warning("manatee_results_rejected", rows=len(rows), reason=match.reason)
            return SearchOutcome(candidates=rows)

        return SearchOutcome(
            detail_url=self.absolute_url(match.row.href),
            address_found=True,
            parcel_id=match.row.parcel_id,
            confidence=match.confidence,
            candidates=rows,
        )

    async def _read_tab_table(self, page: Page, section: str, tab_selector: str, table_selector: str) -> Optional[str]:
        """Outer HTML of a tab's table, clicking the tab when the table is not already populated."""
        try:
            table = await page.query_selector(table_selector)
            if table is not None:
                html = await table.evaluate("el => el.outerHTML")
                if count_body_rows(html) > 0:
                    return html

            tab = await page.query_selector(tab_selector)
            if tab is None:
                logger.debug("manatee_tab_missing", section=section, selector=tab_selector)
                return None

            classes = (await tab.get_attribute("class") or "").split()
            disabled = await tab.get_attribute("disabled") is not None or "disabled" in classes
            if not disabled:
                await tab.click()
                await page.wait_for_timeout(800)

            try:
                await page.wait_for_selector(table_selector, timeout=TABLE_WAIT_MS)
            except PlaywrightTimeoutError:
                logger.debug("manatee_tab_table_missing", section=section, selector=table_selector)
                return None

            table = await page.query_selector(table_selector)
            return await table.evaluate("el => el.outerHTML") if table is not None else None
        except Exception as e:
            if is_connection_error(e):
                raise
            logger.warning("manatee_tab_read_failed", section=section, error=str(e).split("\n")[0])
            return None

    async def collect_sections(self, page: Page) -> ManateeSections:
        sections = ManateeSections()

        owner = await page.query_selector(SELECTORS["owner_content"])
        if owner is not None:
            sections.owner_html = await owner.inner_html()

        for section, tab_selector, table_selector in TABS:
            html = await self._read_tab_table(page, section, tab_selector, table_selector)
            setattr(sections, f"{section}_html", html)

        logger.info("manatee_sections_collected", **sections.sizes())
        return sections

    async def extract_on_page(
        self, page: Page, detail_url: str, debug: Dict[str, Any]
    ) -> Tuple[PropertyDetails, str]:
        ensure_not_blocked(await page.content(), "Manatee PAO detail page")

        sections = await self.collect_sections(page)
        try:
            scraped = build_property_details(sections, detail_url)
        except Exception as e:
            raise ScrapeError(
                f"Failed to parse Manatee PAO detail page: {e}",
                ErrorCode.PARSE_ERROR,
                cause=e,
                debug={"detail_url": detail_url},
            ) from e

        debug.update(
            valuations=len(scraped.valuations),
            sales_history=len(scraped.sales_history),
            extra_features=len(scraped.extras.pao_extra_features) if scraped.extras else 0,
            inspections=len(scraped.extras.inspections) if scraped.extras else 0,
            has_owner=bool(scraped.owner),
        )
        return scraped, await page.content()
