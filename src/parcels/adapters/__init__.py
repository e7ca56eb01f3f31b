"""
Adapters Package

Source adapters implementing resolve -> fetch -> extract -> normalize.
"""
from src.parcels.adapters.base import (
    IngestionContext,
    JobState,
    PaoSourceAdapter,
    ParcelExtractInput,
    ParcelExtractResult,
    ParcelFetchInput,
    ParcelFetchResult,
    ParcelNormalizeInput,
    ParcelNormalizeResult,
    ParcelResolveInput,
    ParcelResolveResult,
    ParcelSourceAdapter,
)
from src.parcels.adapters.manatee import MANATEE_PAO_CONFIG, ManateePaoAdapter
from src.parcels.adapters.sarasota import SARASOTA_PAO_CONFIG, SarasotaPaoAdapter

__all__ = [
    "IngestionContext",
    "JobState",
    "PaoSourceAdapter",
    "ParcelExtractInput",
    "ParcelExtractResult",
    "ParcelFetchInput",
    "ParcelFetchResult",
    "ParcelNormalizeInput",
    "ParcelNormalizeResult",
    "ParcelResolveInput",
    "ParcelResolveResult",
    "ParcelSourceAdapter",
    "MANATEE_PAO_CONFIG",
    "ManateePaoAdapter",
    "SARASOTA_PAO_CONFIG",
    "SarasotaPaoAdapter",
]
