"""
SQLAlchemy ORM Models

Parcel ingestion schema: registered sources, ingestion runs and jobs, the
append-only raw fetch and parse artifact audit trail, and the canonical
parcel with its year-indexed assessments and deduplicated sales.
"""
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    Boolean, Date, DateTime, ForeignKey, Index, Integer, Numeric, String, Text,
    UniqueConstraint, func
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.parcels.db.base import Base, JSONType, TimestampMixin, UUIDPrimaryKeyMixin


class Source(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """
    Registered data provider.

    One row per adapter source key, created on first ingestion.
    """
    __tablename__ = "sources"

    source_key: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        unique=True,
        comment="Adapter source key (fl-manatee-pa)"
    )
    state_fips: Mapped[str] = mapped_column(
        String(2),
        nullable=False,
        comment="2-digit state FIPS code"
    )
    county_fips: Mapped[Optional[str]] = mapped_column(
        String(3),
        nullable=True,
        comment="3-digit county FIPS code (null for statewide sources)"
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False, comment="Display name")
    source_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        comment="statewide, county_pa, tax_collector, recorder"
    )
    platform_family: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        comment="arcgis, qpublic, custom_html, custom_json, playwright"
    )
    base_url: Mapped[str] = mapped_column(Text, nullable=False, comment="Source root URL")
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
        comment="Disabled sources are kept for provenance"
    )
    capabilities: Mapped[Dict[str, Any]] = mapped_column(
        JSONType,
        default=dict,
        nullable=False,
        comment="Declared capability flags"
    )
    rate_limit: Mapped[Dict[str, Any]] = mapped_column(
        JSONType,
        default=dict,
        nullable=False,
        comment="Requests per second and burst"
    )
    config_version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("idx_sources_state_county", "state_fips", "county_fips"),
    )

    def __repr__(self) -> str:
        return f"<Source(source_key='{self.source_key}')>"


class IngestionRun(Base, UUIDPrimaryKeyMixin):
    """
    One pipeline invocation.

    Status: running, succeeded, failed, partial, skipped.
    """
    __tablename__ = "ingestion_runs"

    triggered_by: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        comment="api, cli, workflow, manual"
    )
    purpose: Mapped[Optional[str]] = mapped_column(
        String(100),
        nullable=True,
        comment="lead_enrichment, backfill, ..."
    )
    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )
    finished_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    status: Mapped[str] = mapped_column(String(20), default="running", nullable=False)
    stats: Mapped[Dict[str, Any]] = mapped_column(
        JSONType,
        default=dict,
        nullable=False,
        comment="Upsert counts (parcel_created, sales_upserted, ...)"
    )
    error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    jobs: Mapped[List["IngestionJob"]] = relationship(
        "IngestionJob",
        back_populates="run",
        cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("idx_ingestion_runs_status", "status"),
        Index("idx_ingestion_runs_started_at", "started_at"),
    )

    def __repr__(self) -> str:
        return f"<IngestionRun(id='{self.id}', status='{self.status}')>"


class IngestionJob(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """
    One parcel request inside a run.

    Status: queued, fetching, parsed, normalized, failed.
    """
    __tablename__ = "ingestion_jobs"

    run_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("ingestion_runs.id", ondelete="CASCADE"),
        nullable=False
    )
    source_id: Mapped[Optional[str]] = mapped_column(
        String(36),
        ForeignKey("sources.id"),
        nullable=True
    )
    input: Mapped[Dict[str, Any]] = mapped_column(
        JSONType,
        nullable=False,
        comment="Request payload (address, parcel_id, force)"
    )
    status: Mapped[str] = mapped_column(String(20), default="queued", nullable=False)
    attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    run: Mapped["IngestionRun"] = relationship("IngestionRun", back_populates="jobs")

    __table_args__ = (
        Index("idx_ingestion_jobs_run", "run_id"),
        Index("idx_ingestion_jobs_status", "status"),
    )


class RawFetch(Base, UUIDPrimaryKeyMixin):
    """
    Captured HTTP response. Append-only provenance backbone: every parcel
    traces back to the fetch that produced it.
    """
    __tablename__ = "raw_fetches"

    run_id: Mapped[Optional[str]] = mapped_column(
        String(36),
        ForeignKey("ingestion_runs.id", ondelete="SET NULL"),
        nullable=True
    )
    job_id: Mapped[Optional[str]] = mapped_column(
        String(36),
        ForeignKey("ingestion_jobs.id", ondelete="SET NULL"),
        nullable=True
    )
    source_id: Mapped[str] = mapped_column(String(36), ForeignKey("sources.id"), nullable=False)
    request_url: Mapped[str] = mapped_column(Text, nullable=False)
    request_method: Mapped[str] = mapped_column(String(10), default="GET", nullable=False)
    response_status: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    response_body: Mapped[Optional[str]] = mapped_column(Text, nullable=True, comment="HTML or JSON body")
    content_type: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    fetched_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )
    body_sha256: Mapped[Optional[str]] = mapped_column(
        String(64),
        nullable=True,
        comment="Body hash for change detection"
    )
    meta: Mapped[Dict[str, Any]] = mapped_column(JSONType, default=dict, nullable=False)

    __table_args__ = (
        Index("idx_raw_fetches_source_fetched", "source_id", "fetched_at"),
        Index("idx_raw_fetches_job", "job_id"),
        Index("idx_raw_fetches_sha", "body_sha256"),
    )


class ParseArtifact(Base, UUIDPrimaryKeyMixin):
    """Structured extraction of one fetch, tagged with the parser version."""
    __tablename__ = "parse_artifacts"

    job_id: Mapped[Optional[str]] = mapped_column(
        String(36),
        ForeignKey("ingestion_jobs.id", ondelete="SET NULL"),
        nullable=True
    )
    source_id: Mapped[str] = mapped_column(String(36), ForeignKey("sources.id"), nullable=False)
    fetch_id: Mapped[Optional[str]] = mapped_column(
        String(36),
        ForeignKey("raw_fetches.id", ondelete="SET NULL"),
        nullable=True
    )
    parser_version: Mapped[str] = mapped_column(String(50), nullable=False)
    dom_signature: Mapped[Optional[str]] = mapped_column(
        String(64),
        nullable=True,
        comment="Hash of key page markers for layout change detection"
    )
    extracted: Mapped[Dict[str, Any]] = mapped_column(JSONType, nullable=False)
    warnings: Mapped[List[str]] = mapped_column(JSONType, default=list, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )

    __table_args__ = (
        Index("idx_parse_artifacts_source", "source_id", "created_at"),
        Index("idx_parse_artifacts_fetch", "fetch_id"),
    )


class Parcel(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """
    Canonical parcel entity.

    Natural key (state_fips, county_fips, parcel_id_norm) is unique.
    """
    __tablename__ = "parcels"

    state_fips: Mapped[str] = mapped_column(String(2), nullable=False)
    county_fips: Mapped[str] = mapped_column(String(3), nullable=False)
    parcel_id_raw: Mapped[Optional[str]] = mapped_column(String(50), nullable=True, comment="Parcel id as printed")
    parcel_id_norm: Mapped[str] = mapped_column(String(50), nullable=False, comment="Normalized parcel id")
    alternate_ids: Mapped[List[str]] = mapped_column(JSONType, default=list, nullable=False)

    situs_address_raw: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    situs_address_norm: Mapped[Optional[Dict[str, Any]]] = mapped_column(
        JSONType,
        nullable=True,
        comment="line1, city, state, zip, normalized_full"
    )
    lat: Mapped[Optional[float]] = mapped_column(Numeric(10, 7), nullable=True, comment="Latitude")
    lon: Mapped[Optional[float]] = mapped_column(Numeric(10, 7), nullable=True, comment="Longitude")

    owner_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    mailing_address: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSONType, nullable=True)

    land: Mapped[Dict[str, Any]] = mapped_column(
        JSONType,
        default=dict,
        nullable=False,
        comment="use code, legal description, acreage, zoning"
    )
    improvements: Mapped[Dict[str, Any]] = mapped_column(
        JSONType,
        default=dict,
        nullable=False,
        comment="beds, baths, living area, year built, ..."
    )

    last_seen_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
        comment="Last time an ingestion observed this parcel"
    )
    canonical_source_id: Mapped[Optional[str]] = mapped_column(
        String(36),
        ForeignKey("sources.id"),
        nullable=True
    )
    canonical_fetch_id: Mapped[Optional[str]] = mapped_column(
        String(36),
        ForeignKey("raw_fetches.id"),
        nullable=True
    )

    assessments: Mapped[List["ParcelAssessment"]] = relationship(
        "ParcelAssessment",
        back_populates="parcel",
        cascade="all, delete-orphan",
        order_by="desc(ParcelAssessment.tax_year)"
    )
    sales: Mapped[List["ParcelSale"]] = relationship(
        "ParcelSale",
        back_populates="parcel",
        cascade="all, delete-orphan"
    )

    __table_args__ = (
        UniqueConstraint("state_fips", "county_fips", "parcel_id_norm", name="uq_parcels_natural_key"),
    )

    def __repr__(self) -> str:
        return f"<Parcel(key='{self.state_fips}{self.county_fips}:{self.parcel_id_norm}')>"


class ParcelAssessment(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """Valuation for one tax year; re-ingestion overwrites in place."""
    __tablename__ = "parcel_assessments"

    parcel_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("parcels.id", ondelete="CASCADE"),
        nullable=False
    )
    tax_year: Mapped[int] = mapped_column(Integer, nullable=False)
    just_value: Mapped[Optional[float]] = mapped_column(Numeric(14, 2), nullable=True)
    assessed_value: Mapped[Optional[float]] = mapped_column(Numeric(14, 2), nullable=True)
    taxable_value: Mapped[Optional[float]] = mapped_column(Numeric(14, 2), nullable=True)
    land_value: Mapped[Optional[float]] = mapped_column(Numeric(14, 2), nullable=True)
    improvement_value: Mapped[Optional[float]] = mapped_column(Numeric(14, 2), nullable=True)
    exemptions: Mapped[List[str]] = mapped_column(JSONType, default=list, nullable=False)
    extra: Mapped[Dict[str, Any]] = mapped_column(
        JSONType,
        default=dict,
        nullable=False,
        comment="Ad valorem and non-ad valorem taxes"
    )
    source_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("sources.id"), nullable=True)
    fetch_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("raw_fetches.id"), nullable=True)

    parcel: Mapped["Parcel"] = relationship("Parcel", back_populates="assessments")

    __table_args__ = (
        UniqueConstraint("parcel_id", "tax_year", name="uq_parcel_assessments_year"),
        Index("idx_parcel_assessments_year", "tax_year"),
    )


class ParcelSale(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """Transfer event, deduplicated by ``sale_key_sha256`` within a parcel."""
    __tablename__ = "parcel_sales"

    parcel_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("parcels.id", ondelete="CASCADE"),
        nullable=False
    )
    sale_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    sale_price: Mapped[Optional[float]] = mapped_column(Numeric(14, 2), nullable=True)
    qualified: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    instrument: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    book_page: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    deed_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    grantor: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    grantee: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    sale_key_sha256: Mapped[str] = mapped_column(String(64), nullable=False, comment="Dedup key")
    extra: Mapped[Dict[str, Any]] = mapped_column(JSONType, default=dict, nullable=False)
    source_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("sources.id"), nullable=True)
    fetch_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("raw_fetches.id"), nullable=True)

    parcel: Mapped["Parcel"] = relationship("Parcel", back_populates="sales")

    __table_args__ = (
        UniqueConstraint("parcel_id", "sale_key_sha256", name="uq_parcel_sales_key"),
        Index("idx_parcel_sales_parcel", "parcel_id"),
        Index("idx_parcel_sales_date", "sale_date"),
    )
