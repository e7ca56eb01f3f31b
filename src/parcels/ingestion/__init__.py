"""
Ingestion Package

Parcel ingestion orchestration.
"""
from src.parcels.ingestion.pipeline import IngestParcelRequest, ParcelIngestionPipeline

__all__ = ["IngestParcelRequest", "ParcelIngestionPipeline"]
