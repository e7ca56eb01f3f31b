"""
Parcels Router

Endpoints for triggering ingestion and reading stored parcels.
"""
from fastapi import APIRouter, Depends, HTTPException, Query, Response

from src.parcels.api.dependencies import get_pipeline, get_registry, get_repository
from src.parcels.api.schemas import (
    AssessmentResponse,
    IngestRequest,
    ParcelDetailResponse,
    ParcelResponse,
    SaleResponse,
)
from src.parcels.db.models import Parcel
from src.parcels.db.repository import ParcelRepository
from src.parcels.ingestion.pipeline import IngestParcelRequest, ParcelIngestionPipeline
from src.parcels.models.parcel import IngestionStatus, ParcelIngestionResult
from src.parcels.registry import AdapterRegistry
from src.parcels.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/api/v1/parcels", tags=["parcels"])

STATUS_CODES = {
    IngestionStatus.SUCCESS: 200,
    IngestionStatus.SKIPPED: 404,
}


@router.post("/ingest", response_model=ParcelIngestionResult, response_model_exclude_none=True)
async def ingest_parcel(
    body: IngestRequest,
    response: Response,
    pipeline: ParcelIngestionPipeline = Depends(get_pipeline),
    registry: AdapterRegistry = Depends(get_registry),
):
    """
    Ingest one parcel from a county source.

    Returns:
        Ingestion result. 200 on success, 404 when the source has no
        matching property, 500 on failure.

    Raises:
        HTTPException: 400 for an unregistered source key
    """
    if body.source_key and not registry.has(body.source_key):
        raise HTTPException(
            status_code=400,
            detail=f"Unknown source: {body.source_key}. Known: {', '.join(registry.list_registered())}",
        )

    result = await pipeline.ingest(IngestParcelRequest(
        source_key=body.source_key,
        address=body.address,
        parcel_id=body.parcel_id,
        force=body.force,
        triggered_by="api",
    ))
    response.status_code = STATUS_CODES.get(result.status, 500)
    logger.info("parcel_ingest_request_finished", run_id=result.run_id, status=result.status.value)
    return result


def _parcel_detail(
    repo: ParcelRepository,
    parcel: Parcel,
    include_assessments: bool,
    include_sales: bool,
) -> ParcelDetailResponse:
    detail = ParcelDetailResponse(**ParcelResponse.model_validate(parcel).model_dump())
    if include_assessments:
        detail.assessments = [
            AssessmentResponse.model_validate(a) for a in repo.get_parcel_assessments(parcel.id)
        ]
    if include_sales:
        detail.sales = [SaleResponse.model_validate(s) for s in repo.get_parcel_sales(parcel.id)]
    return detail


@router.get("/by-key", response_model=ParcelDetailResponse)
def get_parcel_by_key(
    state_fips: str = Query(..., min_length=2, max_length=2, description="2-digit state FIPS"),
    county_fips: str = Query(..., min_length=3, max_length=3, description="3-digit county FIPS"),
    parcel_id_norm: str = Query(..., min_length=1, description="Normalized parcel id"),
    include_assessments: bool = True,
    include_sales: bool = True,
    repo: ParcelRepository = Depends(get_repository),
):
    """
    Look up a parcel by its natural key.

    Raises:
        HTTPException: 404 if no parcel has this key
    """
    parcel = repo.find_parcel_by_key(state_fips, county_fips, parcel_id_norm)
    if parcel is None:
        raise HTTPException(
            status_code=404,
            detail=f"Parcel not found: {state_fips}{county_fips}:{parcel_id_norm}",
        )
    return _parcel_detail(repo, parcel, include_assessments, include_sales)


@router.get("/{parcel_id}", response_model=ParcelDetailResponse)
def get_parcel(
    parcel_id: str,
    include_assessments: bool = True,
    include_sales: bool = True,
    repo: ParcelRepository = Depends(get_repository),
):
    """
    Get a stored parcel by its id.

    Args:
        parcel_id: Parcel row id returned by ingestion
        include_assessments: Include the per-year assessments
        include_sales: Include the sales history

    Raises:
        HTTPException: 404 if parcel not found
    """
    parcel = repo.find_parcel_by_id(parcel_id)
    if parcel is None:
        raise HTTPException(status_code=404, detail=f"Parcel not found: {parcel_id}")
    return _parcel_detail(repo, parcel, include_assessments, include_sales)
