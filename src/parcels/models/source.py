"""
Source Configuration Models

Static description of a registered data provider: jurisdiction, declared
capabilities, and the rate-limit/retry policy callers must respect.
"""
from typing import List, Literal, Optional
from pydantic import BaseModel, Field

SourceType = Literal["statewide", "county_pa", "tax_collector", "recorder"]
PlatformFamily = Literal["arcgis", "qpublic", "custom_html", "custom_json", "playwright"]


class SourceCapabilities(BaseModel):
    address_search: bool = False
    parcel_search: bool = False
    owner_search: bool = False
    assessment_history: bool = False
    sales_history: bool = False
    owner: bool = False
    improvements: bool = False
    land: bool = False


class RateLimitConfig(BaseModel):
    rps: Optional[float] = Field(None, gt=0, description="Requests per second")
    burst: Optional[int] = Field(None, ge=1)


class RetryConfig(BaseModel):
    max_attempts: int = Field(3, ge=1)
    backoff_seconds: List[float] = Field(default_factory=lambda: [2, 5, 15])


class SourceConfig(BaseModel):
    """Immutable once registered."""

    model_config = {"frozen": True}

    source_key: str
    name: str
    state_fips: str = Field(..., min_length=2, max_length=2)
    county_fips: Optional[str] = Field(None, min_length=3, max_length=3)
    source_type: SourceType
    platform_family: PlatformFamily
    base_url: str
    capabilities: SourceCapabilities = Field(default_factory=SourceCapabilities)
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    config_version: int = 1
