"""
Property Details Data Models

Pydantic models for the raw, source-specific property record produced by
the county PAO scrapers before normalization.
"""
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, field_validator


class ValueBreakdown(BaseModel):
    """Land / building / extra-feature split of a valuation."""

    land: Optional[float] = Field(None, description="Land value")
    building: Optional[float] = Field(None, description="Building value")
    extra_features: Optional[float] = Field(None, description="Extra features value")
    total: Optional[float] = Field(None, description="Total value")


class ValuationRecord(BaseModel):
    """Valuation row for one tax year."""

    year: Optional[int] = Field(None, description="Tax year")
    just: Optional[ValueBreakdown] = Field(None, description="Just (market) value")
    assessed: Optional[ValueBreakdown] = Field(None, description="Assessed value")
    taxable: Optional[ValueBreakdown] = Field(None, description="Taxable value")
    ad_valorem_taxes: Optional[float] = Field(None, description="Ad valorem taxes")
    non_ad_valorem_taxes: Optional[float] = Field(None, description="Non-ad valorem assessments")


class SaleRecord(BaseModel):
    """Transfer row from the PAO sales table."""

    date: Optional[str] = Field(None, description="Sale date as printed by the PAO")
    price: Optional[float] = Field(None, description="Sale price")
    deed_type: Optional[str] = Field(None, description="Instrument type (WD, QC, ...)")
    instrument_number: Optional[str] = Field(None, description="Recording instrument number")
    book_page: Optional[str] = Field(None, description="Official records book/page")
    grantor: Optional[str] = Field(None, description="Seller")
    grantee: Optional[str] = Field(None, description="Buyer")
    qualified: Optional[bool] = Field(None, description="Qualified (arms-length) sale")
    vacant_or_improved: Optional[str] = Field(None, description="V or I")
    qualification_code: Optional[str] = Field(None, description="PAO qualification code")


class ExtraFeatureRecord(BaseModel):
    description: str = Field(..., description="Feature description")
    year: Optional[int] = Field(None, description="Year added")
    area_sqft: Optional[float] = Field(None, description="Area in square feet")
    value: Optional[float] = Field(None, description="Feature value")


class InspectionRecord(BaseModel):
    date: Optional[str] = None
    inspector: Optional[str] = None
    type: Optional[str] = None
    result: Optional[str] = None
    notes: Optional[str] = None


class PropertyBasicInfo(BaseModel):
    """Identification and jurisdiction block of the detail page."""

    account_number: Optional[str] = None
    use_code: Optional[str] = None
    use_description: Optional[str] = None
    situs_address: Optional[str] = None
    mailing_address: Optional[str] = None
    subdivision: Optional[str] = None
    neighborhood: Optional[str] = None
    municipality: Optional[str] = None
    jurisdiction: Optional[str] = None
    tax_district: Optional[str] = None
    section_township_range: Optional[str] = None
    legal_description: Optional[str] = None
    short_description: Optional[str] = None
    homestead_exemption: Optional[bool] = None
    owner_type: Optional[str] = None
    living_units: Optional[int] = None


class GarageInfo(BaseModel):
    type: Optional[str] = None
    spaces: Optional[int] = None
    area_sqft: Optional[float] = None


class PoolInfo(BaseModel):
    has_pool: Optional[bool] = None
    type: Optional[str] = None
    area_sqft: Optional[float] = None


class PropertyBuilding(BaseModel):
    """Primary building / structure details."""

    year_built: Optional[int] = Field(None, description="Actual year built")
    effective_year_built: Optional[int] = Field(None, description="Effective year built")
    living_area_sqft: Optional[float] = Field(None, description="Living/business area", ge=0)
    total_area_sqft: Optional[float] = Field(None, description="Area under roof", ge=0)
    bedrooms: Optional[int] = Field(None, ge=0)
    bathrooms: Optional[float] = Field(None, ge=0)
    full_bathrooms: Optional[int] = Field(None, ge=0)
    half_bathrooms: Optional[int] = Field(None, ge=0)
    stories: Optional[float] = Field(None, ge=0)
    units: Optional[int] = None
    construction_type: Optional[str] = None
    exterior_walls: Optional[str] = None
    roof_cover: Optional[str] = None
    roof_structure: Optional[str] = None
    garage: Optional[GarageInfo] = None
    pool: Optional[PoolInfo] = None

    @field_validator("year_built", "effective_year_built", mode="before")
    @classmethod
    def validate_year(cls, v):
        """Convert 0 to None for year fields."""
        if v == 0:
            return None
        return v

    def has_details(self) -> bool:
        return bool(self.bedrooms or self.bathrooms or self.living_area_sqft)


class PropertyLand(BaseModel):
    lot_size_sqft: Optional[float] = Field(None, ge=0)
    lot_size_acres: Optional[float] = Field(None, ge=0)
    land_use: Optional[str] = None
    land_use_code: Optional[str] = None
    frontage_ft: Optional[float] = None
    depth_ft: Optional[float] = None


class PropertyExtras(BaseModel):
    pao_extra_features: List[ExtraFeatureRecord] = Field(default_factory=list)
    inspections: List[InspectionRecord] = Field(default_factory=list)


class PropertyDetails(BaseModel):
    """
    Raw property record scraped from a county PAO detail page.

    Every field is optional: county pages omit sections freely, and the
    normalizer treats absence as "not reported" rather than as an error.
    """

    parcel_id: Optional[str] = Field(None, description="Parcel id as printed")
    address: Optional[str] = Field(None, description="Situs street line")
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    owner: Optional[str] = Field(None, description="Primary owner name")
    owner_type: Optional[str] = None
    property_type: Optional[str] = None

    # Summary fields mirrored from the nested groups
    year_built: Optional[int] = None
    bedrooms: Optional[int] = None
    bathrooms: Optional[float] = None
    sqft: Optional[float] = None
    assessed_value: Optional[float] = None
    market_value: Optional[float] = None
    last_sale_price: Optional[float] = None
    last_sale_date: Optional[str] = None
    zoning: Optional[str] = None
    legal: Optional[str] = None

    basic_info: Optional[PropertyBasicInfo] = None
    valuations: List[ValuationRecord] = Field(default_factory=list)
    building: Optional[PropertyBuilding] = None
    land: Optional[PropertyLand] = None
    sales_history: List[SaleRecord] = Field(default_factory=list)
    extras: Optional[PropertyExtras] = None

    raw_data: Dict[str, Any] = Field(default_factory=dict, description="Debug payload")

    def is_empty(self) -> bool:
        """True when nothing beyond defaults was extracted."""
        return not self.model_dump(exclude_defaults=True, exclude={"raw_data"})

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)
