"""
PAO Enrichment Service

Workflow-safe wrapper over a county scraper for lead enrichment. It never
raises: a missing integration is SKIPPED, scrape failures are FAILED with
a readable reason, and the caller decides whether to continue.
"""
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from config.settings import settings
from src.parcels.browser.session import can_use_playwright_in_this_env
from src.parcels.errors import ErrorCode, ScrapeError
from src.parcels.models.property_details import PropertyDetails
from src.parcels.normalizers.pao_normalizer import calculate_confidence
from src.parcels.scrapers.base import PaoScraper
from src.parcels.utils.dates import utc_now_iso
from src.parcels.utils.logger import get_logger

logger = get_logger(__name__)

BLOCKED_MESSAGE = "PAO site detected automated access - manual review recommended"


class EnrichmentStatus(str, Enum):
    SUCCESS = "SUCCESS"
    SKIPPED = "SKIPPED"
    FAILED = "FAILED"


class EnrichmentProvenance(BaseModel):
    source: str
    method: str = "playwright"
    confidence: float = Field(0.0, ge=0, le=1)
    source_url: Optional[str] = None
    timestamp: str


class PaoEnrichmentResult(BaseModel):
    status: EnrichmentStatus
    property: Optional[PropertyDetails] = None
    error: Optional[str] = None
    debug: Optional[Dict[str, Any]] = None
    provenance: EnrichmentProvenance


class PropertySummary(BaseModel):
    """Key facts shown on the lead report."""

    owner: Optional[str] = None
    address: Optional[str] = None
    property_type: Optional[str] = None
    year_built: Optional[int] = None
    beds_baths: Optional[str] = None
    sqft: Optional[float] = None
    assessed_value: Optional[float] = None
    market_value: Optional[float] = None
    last_sale_date: Optional[str] = None
    last_sale_price: Optional[float] = None
    homestead_exemption: Optional[bool] = None


async def enrich_pao_by_address(
    address: Optional[str],
    scraper: PaoScraper,
    production: Optional[bool] = None,
) -> PaoEnrichmentResult:
    """
    Look ``address`` up on the scraper's PAO site.

    Args:
        address: Situs address; blank input is SKIPPED
        scraper: County scraper to use
        production: Overrides ``settings.is_production``
    """
    is_production = settings.is_production if production is None else production

    def result(status: EnrichmentStatus, confidence: float = 0.0, source_url: Optional[str] = None, **kwargs):
        return PaoEnrichmentResult(
            status=status,
            provenance=EnrichmentProvenance(
                source=scraper.source_key,
                confidence=confidence,
                source_url=source_url,
                timestamp=utc_now_iso(),
            ),
            **kwargs,
        )

    if not address or not address.strip():
        return result(EnrichmentStatus.SKIPPED, error="No address provided for PAO enrichment")

    check = can_use_playwright_in_this_env(
        ws_endpoint=scraper.session_manager.config.ws_endpoint,
        production=is_production,
    )
    if not check.ok:
        logger.info("pao_enrichment_skipped", reason=check.reason)
        return result(EnrichmentStatus.SKIPPED, error=check.reason)

    address = address.strip()
    logger.info("pao_enrichment_started", source=scraper.source_key, address=address)

    try:
        scraped = await scraper.scrape_by_address(address)
    except ScrapeError as e:
        if e.code == ErrorCode.BROWSER_LAUNCH_FAILED and not is_production:
            return result(
                EnrichmentStatus.SKIPPED,
                error="Playwright browser not available in development (no PLAYWRIGHT_WS_ENDPOINT)",
            )
        error = BLOCKED_MESSAGE if e.code == ErrorCode.BLOCKED else f"PAO scraping error ({e.code.value}): {e}"
        logger.warning("pao_enrichment_scrape_failed", code=e.code.value, error=str(e))
        return result(EnrichmentStatus.FAILED, error=error, debug={"error_code": e.code.value, **e.debug})
    except Exception as e:
        logger.error("pao_enrichment_failed", error=str(e), error_type=type(e).__name__)
        return result(EnrichmentStatus.FAILED, error=f"PAO enrichment failed: {e}")

    if not scraped.found or scraped.scraped.is_empty():
        logger.info("pao_enrichment_not_found", source=scraper.source_key, address=address)
        return result(
            EnrichmentStatus.FAILED,
            error=f'No property found in {scraper.source_key} for address: "{address}"',
            debug=scraped.debug,
        )

    confidence = calculate_confidence(scraped.scraped)
    logger.info("pao_enrichment_succeeded", source=scraper.source_key, confidence=confidence)
    return result(
        EnrichmentStatus.SUCCESS,
        confidence=confidence,
        source_url=scraped.detail_url,
        property=scraped.scraped,
        debug=scraped.debug,
    )


def extract_property_summary(details: PropertyDetails) -> PropertySummary:
    summary = PropertySummary(
        owner=details.owner,
        address=details.address,
        property_type=details.property_type,
    )

    building = details.building
    if building is not None:
        summary.year_built = building.year_built
        if building.bedrooms is not None or building.bathrooms is not None:
            beds = building.bedrooms or 0
            baths = building.bathrooms or 0
            summary.beds_baths = f"{beds:g} bed / {baths:g} bath"
        summary.sqft = building.living_area_sqft

    dated = [v for v in details.valuations if v.year is not None]
    if dated:
        latest = max(dated, key=lambda v: v.year)
        summary.assessed_value = latest.assessed.total if latest.assessed else None
        summary.market_value = latest.just.total if latest.just else None

    # Most recent sale with a consideration; nominal transfers are skipped
    for sale in details.sales_history:
        if sale.price and sale.price > 0:
            summary.last_sale_date = sale.date
            summary.last_sale_price = sale.price
            break

    if details.basic_info is not None and details.basic_info.homestead_exemption is not None:
        summary.homestead_exemption = details.basic_info.homestead_exemption

    return summary
