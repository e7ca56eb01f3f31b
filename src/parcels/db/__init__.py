"""
Database Package

Parcel schema, connection management, and the ingestion repository.
"""
from src.parcels.db.base import Base
from src.parcels.db.models import (
    IngestionJob,
    IngestionRun,
    Parcel,
    ParcelAssessment,
    ParcelSale,
    ParseArtifact,
    RawFetch,
    Source,
)
from src.parcels.db.repository import BaseRepository, ParcelRepository, StoreNormalizedResult

__all__ = [
    # Base
    "Base",
    # Models
    "IngestionJob",
    "IngestionRun",
    "Parcel",
    "ParcelAssessment",
    "ParcelSale",
    "ParseArtifact",
    "RawFetch",
    "Source",
    # Repositories
    "BaseRepository",
    "ParcelRepository",
    "StoreNormalizedResult",
]
