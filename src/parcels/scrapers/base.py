"""
PAO Scraper Base

Shared plumbing for the county Property Appraiser scrapers: value parsing,
search-result matching, navigation error mapping, and the search-then-extract
orchestration that runs inside a single browser page.
"""
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from playwright.async_api import Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from src.parcels.browser.blocking import ensure_not_blocked
from src.parcels.browser.session import BrowserConfig, BrowserSessionManager
from src.parcels.errors import ErrorCode, ScrapeError, is_connection_error
from src.parcels.models.property_details import PropertyDetails
from src.parcels.transformers.address_parser import ParsedAddress, normalize_street_for_usps, parse_address
from src.parcels.utils.logger import get_logger
from src.parcels.utils.retry import RetryPolicy, run_async_with_retry

logger = get_logger(__name__)

FORM_WAIT_MS = 10000


def parse_money(text: Optional[str]) -> Optional[float]:
    """
    Parse "$1,234.50" style amounts. Returns None for blanks and non-numbers.

    >>> parse_money(" $250,000 ")
    250000.0
    """
    if not text:
        return None
    cleaned = re.sub(r"[$,\s]", "", text)
    match = re.match(r"-?\d+(?:\.\d+)?", cleaned)
    return float(match.group(0)) if match else None


def parse_number(text: Optional[str]) -> Optional[float]:
    if not text:
        return None
    cleaned = re.sub(r"[,\s]", "", text)
    match = re.match(r"-?\d+(?:\.\d+)?", cleaned)
    return float(match.group(0)) if match else None


def parse_int(text: Optional[str]) -> Optional[int]:
    """Leading integer of a cell ("3 BR" -> 3)."""
    if not text:
        return None
    match = re.match(r"\s*(-?\d+)", text)
    return int(match.group(1)) if match else None


def detect_no_results(html: Optional[str], phrases: Tuple[str, ...]) -> bool:
    lowered = (html or "").lower()
    return any(phrase in lowered for phrase in phrases)


@dataclass
class SearchRow:
    """One row of a county search-results table."""

    text: str
    href: Optional[str] = None
    parcel_id: Optional[str] = None
    owner: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"text": self.text[:100], "href": self.href, "parcel_id": self.parcel_id}


@dataclass
class MatchResult:
    row: Optional[SearchRow] = None
    address_found: bool = False
    confidence: float = 0.0
    reason: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address_found": self.address_found,
            "confidence": self.confidence,
            "reason": self.reason,
            "matched_text": self.row.text[:100] if self.row else None,
        }


def _row_tokens(text: str) -> List[str]:
    return re.findall(r"[a-z0-9]+", normalize_street_for_usps(text).lower())


def _compact(text: str) -> str:
    return re.sub(r"[^A-Z0-9]", "", text.upper())


def select_best_result(rows: List[SearchRow], address: str) -> MatchResult:
    """
    Pick the search row that matches the target address, or reject.

    The street number must appear as a token of the row. Among those rows, a
    unit address prefers a row containing the unit (0.95), then one ending in
    the unit's last hyphen part (0.8). Otherwise a significant street-name
    token must match (0.9). A single row only needs the street number: 0.9
    when its street name also matches, 0.5 when only the number does.
    No satisfying row means no match; the first row is never a fallback.
    """
    if not rows:
        return MatchResult(reason="no_rows")

    parsed = parse_address(address)
    number = (parsed.street_number or "").lower()

    if number:
        candidates = [row for row in rows if number in _row_tokens(row.text)]
    else:
        candidates = list(rows)

    if not candidates:
        return MatchResult(reason="street_number_not_found")

    significant = parsed.significant_street_tokens()

    if len(rows) == 1 and number:
        row = candidates[0]
        tokens = _row_tokens(row.text)
        if not significant or any(token in tokens for token in significant):
            return MatchResult(row=row, address_found=True, confidence=0.9, reason="single_row")
        # Accepted on the street number alone; low confidence flags it for review
        return MatchResult(row=row, address_found=True, confidence=0.5, reason="single_row_street_mismatch")

    if parsed.unit:
        unit = _compact(parsed.unit)
        for row in candidates:
            # Street number removed so short units cannot match inside it
            rest = row.text
            if number:
                rest = re.sub(rf"\b{re.escape(number)}\b", "", rest, count=1)
            if unit and unit in _compact(rest):
                return MatchResult(row=row, address_found=True, confidence=0.95, reason="unit_match")

        unit_parts = parsed.unit.split("-")
        if len(unit_parts) > 1:
            last = unit_parts[-1].upper()
            for row in candidates:
                upper = row.text.upper().strip()
                if f"#{last}" in upper or f"UNIT {last}" in upper or upper.endswith(last):
                    return MatchResult(row=row, address_found=True, confidence=0.8, reason="partial_unit_match")

    if not significant:
        return MatchResult(row=candidates[0], address_found=True, confidence=0.7, reason="street_number_only")

    for row in candidates:
        tokens = _row_tokens(row.text)
        if any(token in tokens for token in significant):
            return MatchResult(row=row, address_found=True, confidence=0.9, reason="street_match")

    return MatchResult(reason="street_name_not_found")


@dataclass
class SearchOutcome:
    detail_url: Optional[str] = None
    address_found: bool = False
    on_detail_page: bool = False
    parcel_id: Optional[str] = None
    confidence: float = 0.0
    candidates: List[SearchRow] = field(default_factory=list)
    response_status: Optional[int] = None


@dataclass
class ScrapeResult:
    """
    Combined search + extraction output of one scrape.

    ``detail_url`` is None when the property was not found.
    """

    detail_url: Optional[str] = None
    scraped: PropertyDetails = field(default_factory=PropertyDetails)
    html: Optional[str] = None
    response_status: Optional[int] = None
    address_found: bool = False
    confidence: float = 0.0
    candidates: List[Dict[str, Any]] = field(default_factory=list)
    debug: Dict[str, Any] = field(default_factory=dict)

    @property
    def found(self) -> bool:
        return bool(self.detail_url) and self.address_found


def _is_retryable_scrape_error(error: BaseException) -> bool:
    return isinstance(error, ScrapeError) and error.retryable


class PaoScraper(ABC):
    """
    Base class for county PAO scrapers.

    Subclasses implement the site-specific search and detail extraction;
    the base class runs both inside one page so a direct detail-page hit
    from the search form does not cost a second navigation.
    """

    source_key: str = ""
    search_url: str = ""
    base_url: str = ""
    parser_version: str = ""

    def __init__(
        self,
        session_manager: BrowserSessionManager,
        nav_timeout_ms: Optional[int] = None,
        op_timeout_ms: Optional[int] = None,
        retry_policy: Optional[RetryPolicy] = None,
        sleep=None,
    ):
        self.session_manager = session_manager
        self.nav_timeout_ms = nav_timeout_ms or session_manager.config.nav_timeout_ms
        self.op_timeout_ms = op_timeout_ms or session_manager.config.op_timeout_ms
        # Navigation failures get one more attempt
        self.retry_policy = retry_policy or RetryPolicy(max_attempts=2, initial_delay=1.0)
        self._sleep = sleep

    def browser_config(self) -> BrowserConfig:
        return replace(
            self.session_manager.config,
            nav_timeout_ms=self.nav_timeout_ms,
            op_timeout_ms=self.op_timeout_ms,
        )

    def absolute_url(self, href: str) -> str:
        if href.startswith("http"):
            return href
        return f"{self.base_url}{'' if href.startswith('/') else '/'}{href}"

    async def goto(self, page: Page, url: str, wait_until: str = "domcontentloaded") -> Optional[int]:
        """Navigate, mapping load failures to NAVIGATION_FAILED. Returns the HTTP status."""
        try:
            response = await page.goto(url, wait_until=wait_until, timeout=self.nav_timeout_ms)
        except PlaywrightTimeoutError:
            raise
        except Exception as e:
            if is_connection_error(e):
                raise
            raise ScrapeError(
                f"Failed to load {url}: {e}",
                ErrorCode.NAVIGATION_FAILED,
                cause=e,
                debug={"url": url},
            ) from e
        return response.status if response is not None else None

    async def open_search_form(self, page: Page, form_selector: str, context: str) -> Optional[int]:
        """
        Load the search page and wait for its form.

        Raises:
            ScrapeError: BLOCKED for an anti-automation page, PARSE_ERROR when
                the form never renders
        """
        status = await self.goto(page, self.search_url)
        ensure_not_blocked(await page.content(), context)
        try:
            await page.wait_for_selector(form_selector, timeout=FORM_WAIT_MS)
        except PlaywrightTimeoutError as e:
            # Challenge pages can replace the form after the first snapshot
            ensure_not_blocked(await page.content(), context)
            raise ScrapeError(
                "Search form not found",
                ErrorCode.PARSE_ERROR,
                cause=e,
                debug={"selector": form_selector, "url": page.url},
            ) from e
        return status

    @abstractmethod
    async def find_detail_url(
        self, page: Page, address: str, parsed: ParsedAddress, debug: Dict[str, Any]
    ) -> SearchOutcome:
        """Run the site search and locate the detail page for ``address``."""

    @abstractmethod
    async def extract_on_page(
        self, page: Page, detail_url: str, debug: Dict[str, Any]
    ) -> Tuple[PropertyDetails, str]:
        """Extract the property record from the loaded detail page; returns (record, html)."""

    async def scrape_by_address(self, address: str) -> ScrapeResult:
        """
        Search for ``address`` and extract the matching property.

        Raises:
            ScrapeError: on blocking, missing form elements, navigation or
                browser failures. "Not found" is a normal result, not an error.
        """
        parsed = parse_address(address)
        debug: Dict[str, Any] = {
            "address": address,
            "source": self.source_key,
            "parser_version": self.parser_version,
            "started_at": datetime.now(timezone.utc).isoformat(),
        }
        logger.info("pao_scrape_started", source=self.source_key, address=address)

        async def attempt() -> ScrapeResult:
            return await self.session_manager.with_page(
                lambda page, context: self._scrape_on_page(page, address, parsed, debug),
                config=self.browser_config(),
            )

        result = await run_async_with_retry(
            attempt,
            self.retry_policy,
            classifier=_is_retryable_scrape_error,
            operation=f"{self.source_key}_scrape",
            sleep=self._sleep,
        )
        logger.info(
            "pao_scrape_finished",
            source=self.source_key,
            found=result.found,
            detail_url=result.detail_url,
            confidence=result.confidence,
        )
        return result

    async def _scrape_on_page(
        self, page: Page, address: str, parsed: ParsedAddress, debug: Dict[str, Any]
    ) -> ScrapeResult:
        outcome = await self.find_detail_url(page, address, parsed, debug)
        candidates = [row.to_dict() for row in outcome.candidates]

        if not outcome.detail_url or not outcome.address_found:
            logger.info(
                "pao_property_not_found",
                source=self.source_key,
                rows=len(outcome.candidates),
                rejected=bool(outcome.detail_url),
            )
            return ScrapeResult(
                address_found=outcome.address_found,
                candidates=candidates,
                debug=debug,
            )

        status = outcome.response_status
        if not outcome.on_detail_page:
            status = await self.goto(page, outcome.detail_url)

        scraped, html = await self.extract_on_page(page, outcome.detail_url, debug)
        return ScrapeResult(
            detail_url=outcome.detail_url,
            scraped=scraped,
            html=html,
            response_status=status or 200,
            address_found=True,
            confidence=outcome.confidence,
            candidates=candidates,
            debug=debug,
        )

    async def extract_from_url(self, detail_url: str) -> ScrapeResult:
        """Extract a property from a known detail URL in a fresh session."""
        debug: Dict[str, Any] = {"detail_url": detail_url, "source": self.source_key}

        async def run(page: Page, context) -> ScrapeResult:
            status = await self.goto(page, detail_url)
            scraped, html = await self.extract_on_page(page, detail_url, debug)
            return ScrapeResult(
                detail_url=detail_url,
                scraped=scraped,
                html=html,
                response_status=status or 200,
                address_found=True,
                confidence=1.0,
                debug=debug,
            )

        return await self.session_manager.with_page(run, config=self.browser_config())


def apply_summary_fields(details: PropertyDetails) -> None:
    """Mirror building, latest valuation and last-sale values onto the top-level summary fields."""
    building = details.building
    if building is not None:
        details.year_built = building.year_built
        details.bedrooms = building.bedrooms
        details.bathrooms = building.bathrooms
        details.sqft = building.living_area_sqft

    if details.valuations:
        latest = details.valuations[0]
        details.assessed_value = latest.assessed.total if latest.assessed else None
        details.market_value = latest.just.total if latest.just else None

    if details.sales_history:
        last = details.sales_history[0]
        details.last_sale_date = last.date
        details.last_sale_price = last.price

    if details.basic_info is not None and details.basic_info.legal_description:
        details.legal = details.basic_info.legal_description
