"""
Sarasota County PAO Adapter
"""
from typing import Optional

from src.parcels.adapters.base import PaoSourceAdapter
from src.parcels.browser.session import BrowserSessionManager
from src.parcels.models.parcel import COUNTY_FIPS, FLORIDA_STATE_FIPS
from src.parcels.models.source import RateLimitConfig, RetryConfig, SourceCapabilities, SourceConfig
from src.parcels.scrapers.sarasota_pao import PAO_BASE_URL, PARSER_VERSION, SOURCE_KEY, SarasotaPaoScraper
from src.parcels.utils.parcel_id import extract_parcel_id_from_sarasota_url

SARASOTA_PAO_CONFIG = SourceConfig(
    source_key=SOURCE_KEY,
    name="Sarasota County Property Appraiser",
    state_fips=FLORIDA_STATE_FIPS,
    county_fips=COUNTY_FIPS["sarasota"]["fips"],
    source_type="county_pa",
    platform_family="playwright",
    base_url=PAO_BASE_URL,
    capabilities=SourceCapabilities(
        address_search=True,
        parcel_search=True,
        assessment_history=True,
        sales_history=True,
        owner=True,
        improvements=True,
        land=True,
    ),
    rate_limit=RateLimitConfig(rps=0.2, burst=2),
    retry=RetryConfig(max_attempts=3, backoff_seconds=[2, 5, 15]),
)


class SarasotaPaoAdapter(PaoSourceAdapter):
    key = SOURCE_KEY
    display_name = "Sarasota County Property Appraiser"
    config = SARASOTA_PAO_CONFIG
    parser_version = PARSER_VERSION

    def __init__(self, session_manager: BrowserSessionManager, scraper: Optional[SarasotaPaoScraper] = None):
        super().__init__(
            scraper or SarasotaPaoScraper(session_manager),
            url_parcel_id=extract_parcel_id_from_sarasota_url,
        )


def create_sarasota_pao_adapter(session_manager: BrowserSessionManager) -> SarasotaPaoAdapter:
    return SarasotaPaoAdapter(session_manager)
