"""
Manatee County PAO Adapter
"""
from typing import Optional

from src.parcels.adapters.base import PaoSourceAdapter
from src.parcels.browser.session import BrowserSessionManager
from src.parcels.models.parcel import COUNTY_FIPS, FLORIDA_STATE_FIPS
from src.parcels.models.source import RateLimitConfig, RetryConfig, SourceCapabilities, SourceConfig
from src.parcels.scrapers.manatee_pao import PAO_BASE_URL, PARSER_VERSION, SOURCE_KEY, ManateePaoScraper
from src.parcels.utils.parcel_id import extract_parcel_id_from_manatee_url

MANATEE_PAO_CONFIG = SourceConfig(
    source_key=SOURCE_KEY,
    name="Manatee County Property Appraiser",
    state_fips=FLORIDA_STATE_FIPS,
    county_fips=COUNTY_FIPS["manatee"]["fips"],
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


class ManateePaoAdapter(PaoSourceAdapter):
    key = SOURCE_KEY
    display_name = "Manatee County Property Appraiser"
    config = MANATEE_PAO_CONFIG
    parser_version = PARSER_VERSION

    def __init__(self, session_manager: BrowserSessionManager, scraper: Optional[ManateePaoScraper] = None):
        super().__init__(
            scraper or ManateePaoScraper(session_manager),
            url_parcel_id=extract_parcel_id_from_manatee_url,
        )


def create_manatee_pao_adapter(session_manager: BrowserSessionManager) -> ManateePaoAdapter:
    return ManateePaoAdapter(session_manager)
