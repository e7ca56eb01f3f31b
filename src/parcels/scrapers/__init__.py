"""
Scrapers Package

Playwright-driven scrapers for county Property Appraiser websites.
"""
from src.parcels.scrapers.base import PaoScraper, ScrapeResult, SearchRow, select_best_result
from src.parcels.scrapers.manatee_pao import ManateePaoScraper
from src.parcels.scrapers.sarasota_pao import SarasotaPaoScraper

__all__ = [
    "PaoScraper",
    "ScrapeResult",
    "SearchRow",
    "select_best_result",
    "ManateePaoScraper",
    "SarasotaPaoScraper",
]
