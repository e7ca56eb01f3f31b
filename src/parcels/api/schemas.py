"""
Pydantic Schemas for API Request/Response Models

These schemas define the JSON structure for API endpoints.
"""
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, model_validator

from src.parcels.models.source import SourceConfig


class IngestRequest(BaseModel):
    """Ingestion request; an address or a parcel id is required."""
    address: Optional[str] = Field(None, description="Situs address to search for")
    parcel_id: Optional[str] = Field(None, description="Parcel id as printed by the county")
    source_key: Optional[str] = Field(None, description="Registered source key (default source when omitted)")
    force: bool = False

    @model_validator(mode="after")
    def require_address_or_parcel_id(self):
        if not (self.address and self.address.strip()) and not (self.parcel_id and self.parcel_id.strip()):
            raise ValueError("Either address or parcel_id is required")
        return self


class AssessmentResponse(BaseModel):
    tax_year: int
    just_value: Optional[float] = None
    assessed_value: Optional[float] = None
    taxable_value: Optional[float] = None
    land_value: Optional[float] = None
    improvement_value: Optional[float] = None
    exemptions: List[str] = Field(default_factory=list)
    extra: Dict[str, Any] = Field(default_factory=dict)

    class Config:
        from_attributes = True


class SaleResponse(BaseModel):
    sale_date: Optional[date] = None
    sale_price: Optional[float] = None
    qualified: Optional[bool] = None
    instrument: Optional[str] = None
    book_page: Optional[str] = None
    deed_type: Optional[str] = None
    grantor: Optional[str] = None
    grantee: Optional[str] = None
    sale_key_sha256: str
    extra: Dict[str, Any] = Field(default_factory=dict)

    class Config:
        from_attributes = True


class ParcelResponse(BaseModel):
    """Stored parcel without its history tables."""
    id: str
    state_fips: str
    county_fips: str
    parcel_id_raw: Optional[str] = None
    parcel_id_norm: str
    alternate_ids: List[str] = Field(default_factory=list)
    situs_address_raw: Optional[str] = None
    situs_address_norm: Optional[Dict[str, Any]] = None
    lat: Optional[float] = None
    lon: Optional[float] = None
    owner_name: Optional[str] = None
    mailing_address: Optional[Dict[str, Any]] = None
    land: Dict[str, Any] = Field(default_factory=dict)
    improvements: Dict[str, Any] = Field(default_factory=dict)
    canonical_source_id: Optional[str] = None
    canonical_fetch_id: Optional[str] = None
    last_seen_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ParcelDetailResponse(ParcelResponse):
    """Parcel with the requested history tables; omitted tables are null."""
    assessments: Optional[List[AssessmentResponse]] = None
    sales: Optional[List[SaleResponse]] = None


class IngestionJobResponse(BaseModel):
    id: str
    source_id: Optional[str] = None
    input: Dict[str, Any]
    status: str
    attempts: int
    last_error: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class IngestionRunResponse(BaseModel):
    id: str
    triggered_by: str
    purpose: Optional[str] = None
    status: str
    started_at: datetime
    finished_at: Optional[datetime] = None
    stats: Dict[str, Any] = Field(default_factory=dict)
    error: Optional[str] = None
    jobs: List[IngestionJobResponse] = Field(default_factory=list)

    class Config:
        from_attributes = True


class SourceResponse(BaseModel):
    key: str
    display_name: str
    config: SourceConfig


class HealthCheck(BaseModel):
    """Health check response."""
    status: str
    version: str
    database: str
    sources: List[str] = Field(default_factory=list)
    timestamp: datetime
