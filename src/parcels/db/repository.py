"""
Repository Pattern for Data Access

Generic CRUD plus the parcel ingestion repository: run/job bookkeeping,
the raw fetch and parse artifact audit trail, and idempotent parcel,
assessment and sale upserts keyed by natural keys and hashes.
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple, Type, TypeVar

from sqlalchemy import desc, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from src.parcels.db.models import (
    IngestionJob,
    IngestionRun,
    Parcel,
    ParcelAssessment,
    ParcelSale,
    ParseArtifact,
    RawFetch,
    Source,
)
from src.parcels.models.parcel import NormalizedAssessment, NormalizedParcel, NormalizedSale
from src.parcels.models.source import SourceConfig
from src.parcels.utils.dates import parse_date
from src.parcels.utils.logger import get_logger

logger = get_logger(__name__)

T = TypeVar('T')


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BaseRepository:
    """
    Base repository with common CRUD operations.

    Generic repository that can be extended for specific models.
    """

    def __init__(self, model: Type[T]):
        """
        Initialize repository with model class.

        Args:
            model: SQLAlchemy model class
        """
        self.model = model

    def get_by_id(self, session: Session, id_value: Any) -> Optional[T]:
        """
        Get single record by primary key.

        Args:
            session: Database session
            id_value: Primary key value

        Returns:
            Model instance or None
        """
        result = session.get(self.model, id_value)
        logger.debug(
            "repository_get_by_id",
            model=self.model.__name__,
            id=id_value,
            found=result is not None
        )
        return result

    def create(self, session: Session, **kwargs) -> T:
        """
        Create new record.

        Args:
            session: Database session
            **kwargs: Model field values

        Returns:
            Created model instance
        """
        instance = self.model(**kwargs)
        session.add(instance)
        session.flush()
        logger.info("repository_created", model=self.model.__name__, id=getattr(instance, 'id', None))
        return instance

    def update(self, session: Session, id_value: Any, **kwargs) -> Optional[T]:
        """
        Update existing record.

        Args:
            session: Database session
            id_value: Primary key value
            **kwargs: Fields to update

        Returns:
            Updated model instance or None
        """
        instance = self.get_by_id(session, id_value)
        if not instance:
            logger.warning("repository_update_not_found", model=self.model.__name__, id=id_value)
            return None

        for key, value in kwargs.items():
            setattr(instance, key, value)

        session.flush()
        logger.debug("repository_updated", model=self.model.__name__, id=id_value)
        return instance


@dataclass
class StoreNormalizedResult:
    """Aggregate counts of one ``store_normalized_parcel`` call."""

    parcel_id: str
    parcel_created: bool
    assessments_upserted: int
    sales_upserted: int
    sales_skipped: int

    def to_stats(self) -> Dict[str, Any]:
        return {
            "parcel_created": self.parcel_created,
            "assessments_upserted": self.assessments_upserted,
            "sales_upserted": self.sales_upserted,
            "sales_skipped": self.sales_skipped,
        }


def _parcel_values(
    normalized: NormalizedParcel,
    source_id: Optional[str],
    fetch_id: Optional[str],
    seen_at: datetime,
) -> Dict[str, Any]:
    situs = normalized.situs_address
    return {
        "state_fips": normalized.state_fips,
        "county_fips": normalized.county_fips,
        "parcel_id_raw": normalized.parcel_id_raw,
        "parcel_id_norm": normalized.parcel_id_norm,
        "alternate_ids": list(normalized.alternate_ids),
        "situs_address_raw": situs.raw,
        "situs_address_norm": {
            "line1": situs.line1,
            "city": situs.city,
            "state": situs.state,
            "zip": situs.zip_code,
            "normalized_full": situs.normalized_full,
        },
        "lat": normalized.coordinates.lat if normalized.coordinates else None,
        "lon": normalized.coordinates.lon if normalized.coordinates else None,
        "owner_name": normalized.owner_name,
        "mailing_address": normalized.mailing_address.model_dump(exclude_none=True) if normalized.mailing_address else None,
        "land": normalized.land.model_dump(exclude_none=True) if normalized.land else {},
        "improvements": normalized.improvements.model_dump(exclude_none=True) if normalized.improvements else {},
        "canonical_source_id": source_id,
        "canonical_fetch_id": fetch_id,
        "last_seen_at": seen_at,
    }


def _assessment_values(assessment: NormalizedAssessment) -> Dict[str, Any]:
    return {
        "just_value": assessment.just_value,
        "assessed_value": assessment.assessed_value,
        "taxable_value": assessment.taxable_value,
        "land_value": assessment.land_value,
        "improvement_value": assessment.improvement_value,
        "exemptions": list(assessment.exemptions),
        "extra": {
            "ad_valorem_taxes": assessment.ad_valorem_taxes,
            "non_ad_valorem_taxes": assessment.non_ad_valorem_taxes,
        },
    }


def _sale_values(sale: NormalizedSale) -> Dict[str, Any]:
    extra = {}
    if sale.sale_date and parse_date(sale.sale_date) is None:
        extra["sale_date_raw"] = sale.sale_date
    return {
        "sale_date": parse_date(sale.sale_date),
        "sale_price": sale.sale_price,
        "qualified": sale.qualified,
        "instrument": sale.instrument,
        "book_page": sale.book_page,
        "deed_type": sale.deed_type,
        "grantor": sale.grantor,
        "grantee": sale.grantee,
        "sale_key_sha256": sale.sale_key_sha256,
        "extra": extra,
    }


class ParcelRepository:
    """
    Session-scoped persistence for parcel ingestion.

    Writes flush but never commit; the caller's ``get_db_session`` block
    owns the transaction. ``clock`` supplies the ``last_seen_at`` and
    ``finished_at`` stamps.
    """

    def __init__(self, session: Session, clock: Optional[Callable[[], datetime]] = None):
        self.session = session
        self.clock = clock or _utcnow
        self.sources = BaseRepository(Source)
        self.runs = BaseRepository(IngestionRun)
        self.jobs = BaseRepository(IngestionJob)
        self.fetches = BaseRepository(RawFetch)
        self.artifacts = BaseRepository(ParseArtifact)
        self.parcels = BaseRepository(Parcel)
        self.assessments = BaseRepository(ParcelAssessment)
        self.sales = BaseRepository(ParcelSale)

    # ------------------------------------------------------------------
    # Runs and jobs
    # ------------------------------------------------------------------

    def create_ingestion_run(
        self,
        triggered_by: str,
        purpose: Optional[str] = None,
        run_id: Optional[str] = None,
    ) -> str:
        values = dict(triggered_by=triggered_by, purpose=purpose, status="running", stats={})
        if run_id:
            values["id"] = run_id
        run = self.runs.create(self.session, **values)
        return run.id

    def update_ingestion_run(
        self,
        run_id: str,
        status: Optional[str] = None,
        stats: Optional[Dict[str, Any]] = None,
        error: Optional[str] = None,
    ) -> Optional[IngestionRun]:
        """Record the run outcome; always stamps ``finished_at``."""
        values: Dict[str, Any] = {"finished_at": self.clock()}
        if status:
            values["status"] = status
        if stats is not None:
            values["stats"] = stats
        if error:
            values["error"] = error
        return self.runs.update(self.session, run_id, **values)

    def create_ingestion_job(self, run_id: str, input: Dict[str, Any], source_id: Optional[str] = None) -> str:
        job = self.jobs.create(self.session, run_id=run_id, source_id=source_id, input=input, status="queued")
        return job.id

    def update_ingestion_job(
        self,
        job_id: str,
        status: Optional[str] = None,
        last_error: Optional[str] = None,
        attempts: Optional[int] = None,
    ) -> Optional[IngestionJob]:
        values: Dict[str, Any] = {}
        if status:
            values["status"] = status
        if last_error:
            values["last_error"] = last_error
        if attempts is not None:
            values["attempts"] = attempts
        return self.jobs.update(self.session, job_id, **values)

    # ------------------------------------------------------------------
    # Sources
    # ------------------------------------------------------------------

    def find_or_create_source(self, config: SourceConfig) -> str:
        """Id of the ``sources`` row for ``config.source_key``, inserting it on first use."""
        existing = self.session.execute(
            select(Source).where(Source.source_key == config.source_key)
        ).scalar_one_or_none()
        if existing is not None:
            return existing.id

        source = self.sources.create(
            self.session,
            source_key=config.source_key,
            name=config.name,
            state_fips=config.state_fips,
            county_fips=config.county_fips,
            source_type=config.source_type,
            platform_family=config.platform_family,
            base_url=config.base_url,
            capabilities=config.capabilities.model_dump(),
            rate_limit=config.rate_limit.model_dump(exclude_none=True),
            config_version=config.config_version,
        )
        return source.id

    def list_sources(self, active_only: bool = True) -> List[Source]:
        query = select(Source).order_by(Source.source_key)
        if active_only:
            query = query.where(Source.is_active.is_(True))
        return list(self.session.execute(query).scalars().all())

    # ------------------------------------------------------------------
    # Audit trail
    # ------------------------------------------------------------------

    def store_raw_fetch(
        self,
        source_id: str,
        request_url: str,
        run_id: Optional[str] = None,
        job_id: Optional[str] = None,
        request_method: str = "GET",
        response_status: Optional[int] = None,
        response_body: Optional[str] = None,
        content_type: Optional[str] = None,
        body_sha256: Optional[str] = None,
        meta: Optional[Dict[str, Any]] = None,
    ) -> str:
        fetch = self.fetches.create(
            self.session,
            run_id=run_id,
            job_id=job_id,
            source_id=source_id,
            request_url=request_url,
            request_method=request_method,
            response_status=response_status,
            response_body=response_body,
            content_type=content_type,
            body_sha256=body_sha256,
            meta=meta or {},
        )
        return fetch.id

    def store_parse_artifact(
        self,
        source_id: str,
        parser_version: str,
        extracted: Dict[str, Any],
        job_id: Optional[str] = None,
        fetch_id: Optional[str] = None,
        dom_signature: Optional[str] = None,
        warnings: Optional[List[str]] = None,
    ) -> str:
        artifact = self.artifacts.create(
            self.session,
            job_id=job_id,
            source_id=source_id,
            fetch_id=fetch_id,
            parser_version=parser_version,
            dom_signature=dom_signature,
            extracted=extracted,
            warnings=warnings or [],
        )
        return artifact.id

    # ------------------------------------------------------------------
    # Parcels
    # ------------------------------------------------------------------

    def find_parcel_by_key(self, state_fips: str, county_fips: str, parcel_id_norm: str) -> Optional[Parcel]:
        return self.session.execute(
            select(Parcel).where(
                Parcel.state_fips == state_fips,
                Parcel.county_fips == county_fips,
                Parcel.parcel_id_norm == parcel_id_norm,
            )
        ).scalar_one_or_none()

    def find_parcel_by_id(self, parcel_id: str) -> Optional[Parcel]:
        return self.parcels.get_by_id(self.session, parcel_id)

    def upsert_parcel(
        self,
        normalized: NormalizedParcel,
        source_id: Optional[str] = None,
        fetch_id: Optional[str] = None,
    ) -> Tuple[str, bool]:
        """
        Find-or-create by natural key. Returns ``(parcel_id, created)``.

        Raises:
            ValueError: The parcel has no normalized id
        """
        if not normalized.parcel_id_norm:
            raise ValueError("Cannot store a parcel without a normalized parcel id")

        values = _parcel_values(normalized, source_id, fetch_id, self.clock())
        existing = self.find_parcel_by_key(normalized.state_fips, normalized.county_fips, normalized.parcel_id_norm)
        if existing is not None:
            self.parcels.update(self.session, existing.id, **values)
            return existing.id, False

        try:
            with self.session.begin_nested():
                parcel = self.parcels.create(self.session, **values)
        except IntegrityError:
            # Inserted concurrently by another job; fall back to update
            existing = self.find_parcel_by_key(
                normalized.state_fips, normalized.county_fips, normalized.parcel_id_norm
            )
            if existing is None:
                raise
            logger.info("parcel_upsert_race_resolved", parcel_id=existing.id)
            self.parcels.update(self.session, existing.id, **values)
            return existing.id, False

        return parcel.id, True

    def upsert_assessments(
        self,
        parcel_id: str,
        assessments: List[NormalizedAssessment],
        source_id: Optional[str] = None,
        fetch_id: Optional[str] = None,
    ) -> int:
        """One row per (parcel, tax year): updated on match, inserted on miss."""
        upserted = 0
        for assessment in assessments:
            values = _assessment_values(assessment)
            values.update(source_id=source_id, fetch_id=fetch_id)
            existing = self.find_assessment(parcel_id, assessment.tax_year)

            if existing is not None:
                self.assessments.update(self.session, existing.id, **values)
            else:
                try:
                    with self.session.begin_nested():
                        self.assessments.create(
                            self.session, parcel_id=parcel_id, tax_year=assessment.tax_year, **values
                        )
                except IntegrityError:
                    # Same tax year inserted concurrently; overwrite it
                    existing = self.find_assessment(parcel_id, assessment.tax_year)
                    if existing is None:
                        raise
                    logger.info("assessment_upsert_race_resolved", parcel_id=parcel_id, tax_year=assessment.tax_year)
                    self.assessments.update(self.session, existing.id, **values)
            upserted += 1
        return upserted

    def find_assessment(self, parcel_id: str, tax_year: int) -> Optional[ParcelAssessment]:
        return self.session.execute(
            select(ParcelAssessment).where(
                ParcelAssessment.parcel_id == parcel_id,
                ParcelAssessment.tax_year == tax_year,
            )
        ).scalar_one_or_none()

    def upsert_sales(
        self,
        parcel_id: str,
        sales: List[NormalizedSale],
        source_id: Optional[str] = None,
        fetch_id: Optional[str] = None,
    ) -> Tuple[int, int]:
        """
        Insert sales not yet recorded for the parcel. Returns
        ``(inserted, skipped)``; a sale whose key already exists is skipped.
        """
        existing_keys = set(
            self.session.execute(
                select(ParcelSale.sale_key_sha256).where(ParcelSale.parcel_id == parcel_id)
            ).scalars().all()
        )

        inserted = 0
        skipped = 0
        for sale in sales:
            if sale.sale_key_sha256 in existing_keys:
                skipped += 1
                continue
            try:
                with self.session.begin_nested():
                    self.sales.create(
                        self.session,
                        parcel_id=parcel_id,
                        source_id=source_id,
                        fetch_id=fetch_id,
                        **_sale_values(sale),
                    )
            except IntegrityError:
                skipped += 1
                continue
            existing_keys.add(sale.sale_key_sha256)
            inserted += 1
        return inserted, skipped

    def store_normalized_parcel(
        self,
        normalized: NormalizedParcel,
        source_id: Optional[str] = None,
        fetch_id: Optional[str] = None,
    ) -> StoreNormalizedResult:
        parcel_id, created = self.upsert_parcel(normalized, source_id, fetch_id)
        assessments_upserted = self.upsert_assessments(parcel_id, normalized.assessments, source_id, fetch_id)
        sales_upserted, sales_skipped = self.upsert_sales(parcel_id, normalized.sales, source_id, fetch_id)

        result = StoreNormalizedResult(
            parcel_id=parcel_id,
            parcel_created=created,
            assessments_upserted=assessments_upserted,
            sales_upserted=sales_upserted,
            sales_skipped=sales_skipped,
        )
        logger.info("parcel_stored", **result.to_stats(), parcel_id=parcel_id)
        return result

    def get_parcel_assessments(self, parcel_id: str) -> List[ParcelAssessment]:
        return list(self.session.execute(
            select(ParcelAssessment)
            .where(ParcelAssessment.parcel_id == parcel_id)
            .order_by(desc(ParcelAssessment.tax_year))
        ).scalars().all())

    def get_parcel_sales(self, parcel_id: str) -> List[ParcelSale]:
        """Most recent first; undated sales last."""
        return list(self.session.execute(
            select(ParcelSale)
            .where(ParcelSale.parcel_id == parcel_id)
            .order_by(ParcelSale.sale_date.is_(None), desc(ParcelSale.sale_date))
        ).scalars().all())

    def get_ingestion_run(self, run_id: str) -> Optional[IngestionRun]:
        return self.runs.get_by_id(self.session, run_id)
