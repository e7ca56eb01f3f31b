"""
FastAPI Main Application

Parcel ingestion REST API.
"""
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.orm import Session

from config.settings import settings
from src.parcels import __version__
from src.parcels.api.dependencies import get_db, get_registry, get_session_manager
from src.parcels.api.routers import parcels, runs, sources
from src.parcels.api.schemas import HealthCheck
from src.parcels.registry import AdapterRegistry
from src.parcels.utils.logger import get_logger, setup_logging

setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("parcel_api_started", environment=settings.environment)
    yield
    # Only close a browser that was actually created
    if get_session_manager.cache_info().currsize:
        await get_session_manager().close()
    logger.info("parcel_api_stopped")


# Create FastAPI app
app = FastAPI(
    title="Parcel Ingestion API",
    description="Ingests county Property Appraiser records into normalized parcels",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.api_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(parcels.router)
app.include_router(runs.router)
app.include_router(sources.router)


@app.get("/health", response_model=HealthCheck, tags=["health"])
def health_check(
    db: Session = Depends(get_db),
    registry: AdapterRegistry = Depends(get_registry),
):
    """
    Health check endpoint.

    Returns:
        Health status with database connectivity check
    """
    try:
        db.execute(text("SELECT 1"))
        database_status = "connected"
    except Exception as e:
        database_status = f"error: {str(e)}"

    return HealthCheck(
        status="healthy" if database_status == "connected" else "degraded",
        version=__version__,
        database=database_status,
        sources=registry.list_registered(),
        timestamp=datetime.now(timezone.utc),
    )


@app.get("/", tags=["root"])
def root():
    """API information."""
    return {
        "name": "Parcel Ingestion API",
        "version": __version__,
        "docs": "/docs",
        "health": "/health",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "src.parcels.api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )
