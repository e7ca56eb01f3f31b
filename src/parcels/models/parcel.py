"""
Normalized Parcel Data Models

Canonical, source-independent parcel shape handed from the adapters to the
repository and to downstream consumers (lead scoring, report rendering).
Field names and the provenance/confidence shape are stable across sources.
"""
from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


FLORIDA_STATE_FIPS = "12"

COUNTY_FIPS = {
    "manatee": {"fips": "081", "name": "Manatee County"},
    "sarasota": {"fips": "115", "name": "Sarasota County"},
}


class ParcelProvenance(BaseModel):
    """Where one field group came from and how much to trust it."""

    source: str = Field(..., description="Source key")
    method: str = Field(..., description="Acquisition method (playwright, api, ...)")
    source_url: Optional[str] = Field(None, description="Page the value was read from")
    timestamp: str = Field(..., description="ISO-8601 acquisition time")
    confidence: float = Field(..., ge=0, le=1)


class NormalizedAddress(BaseModel):
    raw: Optional[str] = None
    line1: Optional[str] = None
    line2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    normalized_full: str = ""


class Coordinates(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lon: float = Field(..., ge=-180, le=180)


class NormalizedLand(BaseModel):
    use_code: Optional[str] = None
    use_description: Optional[str] = None
    legal_description: Optional[str] = None
    acreage: Optional[float] = None
    lot_size_sqft: Optional[float] = None
    zoning: Optional[str] = None


class NormalizedImprovements(BaseModel):
    year_built: Optional[int] = None
    effective_year_built: Optional[int] = None
    living_area_sqft: Optional[float] = None
    total_area_sqft: Optional[float] = None
    bedrooms: Optional[int] = None
    bathrooms: Optional[float] = None
    stories: Optional[float] = None
    construction_type: Optional[str] = None
    pool: Optional[bool] = None
    garage: Optional[bool] = None


class NormalizedAssessment(BaseModel):
    """Valuation snapshot for one tax year."""

    tax_year: int
    just_value: Optional[float] = None
    assessed_value: Optional[float] = None
    taxable_value: Optional[float] = None
    land_value: Optional[float] = None
    improvement_value: Optional[float] = None
    exemptions: List[str] = Field(default_factory=list)
    ad_valorem_taxes: Optional[float] = None
    non_ad_valorem_taxes: Optional[float] = None


class NormalizedSale(BaseModel):
    """Transfer event; ``sale_key_sha256`` is the dedup key within a parcel."""

    sale_date: Optional[str] = None
    sale_price: Optional[float] = None
    qualified: Optional[bool] = None
    deed_type: Optional[str] = None
    instrument: Optional[str] = None
    book_page: Optional[str] = None
    grantor: Optional[str] = None
    grantee: Optional[str] = None
    sale_key_sha256: str


class ParcelKey(BaseModel):
    """Natural key of a parcel."""

    state_fips: str = Field(..., min_length=2, max_length=2)
    county_fips: str = Field(..., min_length=3, max_length=3)
    parcel_id_norm: str = Field(..., min_length=1)


class NormalizedParcel(BaseModel):
    state_fips: str
    county_fips: str
    parcel_id_raw: Optional[str] = None
    parcel_id_norm: str = ""
    alternate_ids: List[str] = Field(default_factory=list)

    situs_address: NormalizedAddress
    mailing_address: Optional[NormalizedAddress] = None
    coordinates: Optional[Coordinates] = None

    owner_name: Optional[str] = None
    land: Optional[NormalizedLand] = None
    improvements: Optional[NormalizedImprovements] = None
    assessments: List[NormalizedAssessment] = Field(default_factory=list)
    sales: List[NormalizedSale] = Field(default_factory=list)

    provenance: Dict[str, ParcelProvenance] = Field(default_factory=dict)
    confidence: float = Field(0.0, ge=0, le=1)

    @property
    def key(self) -> ParcelKey:
        return ParcelKey(
            state_fips=self.state_fips,
            county_fips=self.county_fips,
            parcel_id_norm=self.parcel_id_norm,
        )


class IngestionStatus(str, Enum):
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"
    PARTIAL = "PARTIAL"


class ParcelIngestionResult(BaseModel):
    """Outcome of one pipeline invocation."""

    run_id: str
    status: IngestionStatus
    parcel_id: Optional[str] = Field(None, description="Persisted parcel id, when storage ran")
    parcel_key: Optional[ParcelKey] = None
    normalized: Optional[NormalizedParcel] = None
    error: Optional[str] = None
    debug: Optional[Dict[str, Any]] = None
