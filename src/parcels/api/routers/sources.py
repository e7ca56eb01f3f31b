"""
Sources Router

Discovery of the registered data sources.
"""
from typing import List

from fastapi import APIRouter, Depends

from src.parcels.api.dependencies import get_registry
from src.parcels.api.schemas import SourceResponse
from src.parcels.registry import AdapterRegistry

router = APIRouter(prefix="/api/v1/sources", tags=["sources"])


@router.get("", response_model=List[SourceResponse])
def list_sources(registry: AdapterRegistry = Depends(get_registry)):
    """Registered sources with their capabilities and rate limits."""
    return [
        SourceResponse(key=source.key, display_name=source.display_name, config=source.config)
        for source in registry.list_sources()
    ]
