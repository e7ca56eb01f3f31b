"""
Enrichment Package

Lead enrichment from county Property Appraiser sites.
"""
from src.parcels.enrichment.pao import (
    EnrichmentStatus,
    PaoEnrichmentResult,
    PropertySummary,
    enrich_pao_by_address,
    extract_property_summary,
)

__all__ = [
    "EnrichmentStatus",
    "PaoEnrichmentResult",
    "PropertySummary",
    "enrich_pao_by_address",
    "extract_property_summary",
]
