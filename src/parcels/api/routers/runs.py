"""
Runs Router

Endpoints for ingestion run status.
"""
from fastapi import APIRouter, Depends, HTTPException

from src.parcels.api.dependencies import get_repository
from src.parcels.api.schemas import IngestionRunResponse
from src.parcels.db.repository import ParcelRepository

router = APIRouter(prefix="/api/v1/runs", tags=["runs"])


@router.get("/{run_id}", response_model=IngestionRunResponse)
def get_run(run_id: str, repo: ParcelRepository = Depends(get_repository)):
    """
    Get an ingestion run with its jobs.

    Raises:
        HTTPException: 404 if run not found
    """
    run = repo.get_ingestion_run(run_id)
    if run is None:
        raise HTTPException(status_code=404, detail=f"Run not found: {run_id}")
    return run
