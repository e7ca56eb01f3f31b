"""
Observability Package

Run and step lifecycle hooks for parcel ingestion.
"""
from src.parcels.observability.observer import (
    IngestionObserver,
    LoggingObserver,
    ObserverMetrics,
    create_logging_observer,
)

__all__ = [
    "IngestionObserver",
    "LoggingObserver",
    "ObserverMetrics",
    "create_logging_observer",
]
