"""
FastAPI Dependencies

Provides dependency injection for database sessions, the adapter registry
and the ingestion pipeline.
"""
from functools import lru_cache
from typing import Generator

from fastapi import Depends
from sqlalchemy.orm import Session

from config.settings import settings
from src.parcels.browser.session import BrowserSessionManager
from src.parcels.db.repository import ParcelRepository
from src.parcels.db.session import SessionLocal
from src.parcels.ingestion.pipeline import ParcelIngestionPipeline
from src.parcels.registry import AdapterRegistry, build_default_registry


def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency.

    Yields:
        SQLAlchemy database session
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_repository(db: Session = Depends(get_db)) -> ParcelRepository:
    return ParcelRepository(db)


@lru_cache()
def get_session_manager() -> BrowserSessionManager:
    """Browser shared by every request of the process."""
    return BrowserSessionManager()


@lru_cache()
def get_registry() -> AdapterRegistry:
    return build_default_registry(get_session_manager())


def get_pipeline(registry: AdapterRegistry = Depends(get_registry)) -> ParcelIngestionPipeline:
    return ParcelIngestionPipeline(registry)


def get_settings():
    """
    Settings dependency.

    Returns:
        Application settings
    """
    return settings
