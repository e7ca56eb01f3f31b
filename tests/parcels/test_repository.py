"""
Tests for the parcel repository against an in-memory database.
"""
from datetime import datetime, timezone
from unittest.mock import patch

import pytest
from sqlalchemy.orm import sessionmaker

from src.parcels.adapters.manatee import MANATEE_PAO_CONFIG
from src.parcels.db.models import IngestionJob, Parcel, ParcelAssessment, ParcelSale, RawFetch, Source
from src.parcels.db.repository import ParcelRepository
from src.parcels.models.property_details import SaleRecord, ValuationRecord, ValueBreakdown
from src.parcels.normalizers.pao_normalizer import NormalizeMeta, PaoNormalizer
from tests.parcels.fakes import memory_engine, sample_property

META = NormalizeMeta(timestamp="2024-06-01T12:00:00+00:00")


@pytest.fixture
def test_db():
    """Create an in-memory SQLite database for testing."""
    engine = memory_engine()
    Session = sessionmaker(bind=engine)
    session = Session()

    yield session

    session.close()
    engine.dispose()


@pytest.fixture
def repo(test_db):
    return ParcelRepository(test_db)


def normalized(**overrides):
    normalizer = PaoNormalizer(source_key="fl-manatee-pa", state_fips="12", county_fips="081")
    return normalizer.normalize(sample_property(**overrides), META)


class TestRunsAndJobs:
    """Tests for run and job bookkeeping."""

    def test_run_with_given_id(self, repo):
        """Test that a run can reuse the pipeline's run id."""
        run_id = repo.create_ingestion_run(triggered_by="api", purpose="lead_enrichment", run_id="run-123")

        run = repo.get_ingestion_run(run_id)
        assert run_id == "run-123"
        assert run.status == "running"
        assert run.finished_at is None

    def test_update_run(self, repo):
        """Test that updating a run stamps finished_at and keeps the outcome."""
        run_id = repo.create_ingestion_run(triggered_by="cli")

        repo.update_ingestion_run(run_id, status="succeeded", stats={"sales_upserted": 2})

        run = repo.get_ingestion_run(run_id)
        assert run.status == "succeeded"
        assert run.stats == {"sales_upserted": 2}
        assert run.finished_at is not None

    def test_update_missing_run(self, repo):
        """Test that updating an unknown run returns None."""
        assert repo.update_ingestion_run("missing", status="failed") is None

    def test_jobs(self, repo, test_db):
        """Test job creation and status updates."""
        run_id = repo.create_ingestion_run(triggered_by="api")
        job_id = repo.create_ingestion_job(run_id, {"address": "123 Main St"})

        repo.update_ingestion_job(job_id, status="failed", last_error="boom", attempts=1)

        job = test_db.get(IngestionJob, job_id)
        assert job.run_id == run_id
        assert job.input == {"address": "123 Main St"}
        assert job.status == "failed"
        assert job.last_error == "boom"
        assert job.attempts == 1


class TestSources:
    """Tests for source rows."""

    def test_find_or_create(self, repo, test_db):
        """Test that a source is inserted once and found afterwards."""
        first = repo.find_or_create_source(MANATEE_PAO_CONFIG)
        second = repo.find_or_create_source(MANATEE_PAO_CONFIG)

        assert first == second
        source = test_db.get(Source, first)
        assert source.source_key == "fl-manatee-pa"
        assert source.county_fips == "081"
        assert source.capabilities["address_search"] is True
        assert [s.id for s in repo.list_sources()] == [first]


class TestAuditTrail:
    """Tests for raw fetch and parse artifact storage."""

    def test_raw_fetch_and_artifact(self, repo, test_db):
        """Test that the fetched body and its parse are linked."""
        source_id = repo.find_or_create_source(MANATEE_PAO_CONFIG)
        fetch_id = repo.store_raw_fetch(
            source_id=source_id,
            request_url="https://www.manateepao.gov/parcel/?parid=1234567890",
            response_status=200,
            response_body="<html></html>",
            content_type="text/html",
            body_sha256="a" * 64,
        )
        artifact_id = repo.store_parse_artifact(
            source_id=source_id,
            parser_version="manatee-pao-v1.0.0",
            extracted={"parcel_id": "1234567890"},
            fetch_id=fetch_id,
            warnings=["missing_owner"],
        )

        fetch = test_db.get(RawFetch, fetch_id)
        assert fetch.request_method == "GET"
        assert fetch.body_sha256 == "a" * 64
        assert fetch.meta == {}
        assert fetch.fetched_at is not None
        assert artifact_id


class TestStoreNormalizedParcel:
    """Tests for idempotent parcel upserts."""

    def test_first_store(self, repo, test_db):
        """Test that a new parcel is created with its assessments and sales."""
        result = repo.store_normalized_parcel(normalized())

        assert result.parcel_created is True
        assert result.assessments_upserted == 2
        assert result.sales_upserted == 2
        assert result.sales_skipped == 0

        parcel = repo.find_parcel_by_id(result.parcel_id)
        assert parcel.parcel_id_norm == "1234567890"
        assert parcel.owner_name == "SMITH JOHN"
        assert parcel.situs_address_norm["normalized_full"] == "123 MAIN ST, BRADENTON, FL, 34205"
        assert parcel.improvements["year_built"] == 1985

    def test_idempotent(self, test_db):
        """Test that storing the same parcel twice leaves one parcel and advances last_seen_at."""
        ticks = iter([datetime(2024, 6, 1, 12, tzinfo=timezone.utc), datetime(2024, 6, 2, 12, tzinfo=timezone.utc)])
        repo = ParcelRepository(test_db, clock=lambda: next(ticks))

        first = repo.store_normalized_parcel(normalized())
        test_db.expire_all()
        first_seen = repo.find_parcel_by_id(first.parcel_id).last_seen_at
        second = repo.store_normalized_parcel(normalized())
        test_db.expire_all()
        second_seen = repo.find_parcel_by_id(first.parcel_id).last_seen_at

        assert second.parcel_id == first.parcel_id
        assert second.parcel_created is False
        assert second.sales_upserted == 0
        assert second.sales_skipped == 2
        assert second_seen > first_seen
        assert test_db.query(Parcel).count() == 1
        assert test_db.query(ParcelSale).count() == 2
        assert test_db.query(ParcelAssessment).count() == 2

    def test_assessment_overwritten(self, repo):
        """Test that a tax year is updated in place with the latest values."""
        first = repo.store_normalized_parcel(normalized())
        updated = normalized(valuations=[
            ValuationRecord(year=2024, just=ValueBreakdown(total=310000), assessed=ValueBreakdown(total=255000)),
        ])

        repo.store_normalized_parcel(updated)

        assessments = repo.get_parcel_assessments(first.parcel_id)
        assert [a.tax_year for a in assessments] == [2024, 2023]
        assert float(assessments[0].just_value) == 310000
        assert float(assessments[0].assessed_value) == 255000

    def test_new_sale_appended(self, repo):
        """Test that only the unseen sale is inserted on a later run."""
        first = repo.store_normalized_parcel(normalized())
        sales = sample_property().sales_history + [SaleRecord(date="01/10/2024", price=400000, deed_type="WD")]

        second = repo.store_normalized_parcel(normalized(sales_history=sales))

        assert second.sales_upserted == 1
        assert second.sales_skipped == 2
        dates = [s.sale_date.isoformat() for s in repo.get_parcel_sales(first.parcel_id)]
        assert dates == ["2024-01-10", "2019-03-15", "2005-06-01"]

    def test_unparseable_sale_date_kept_raw(self, repo):
        """Test that a sale date that cannot be parsed is stored in extra."""
        result = repo.store_normalized_parcel(normalized(sales_history=[SaleRecord(date="sometime", price=5)]))

        sale = repo.get_parcel_sales(result.parcel_id)[0]
        assert sale.sale_date is None
        assert sale.extra == {"sale_date_raw": "sometime"}

    def test_natural_key_scoped_by_county(self, repo, test_db):
        """Test that the same parcel id in another county is a different parcel."""
        repo.store_normalized_parcel(normalized())
        other = normalized().model_copy(update={"county_fips": "115"})

        result = repo.store_normalized_parcel(other)

        assert result.parcel_created is True
        assert test_db.query(Parcel).count() == 2

    def test_missing_parcel_id_rejected(self, repo):
        """Test that a parcel without a normalized id is not stored."""
        with pytest.raises(ValueError):
            repo.upsert_parcel(normalized().model_copy(update={"parcel_id_norm": ""}))

    def test_find_by_key(self, repo):
        """Test lookup by the natural key."""
        result = repo.store_normalized_parcel(normalized())

        assert repo.find_parcel_by_key("12", "081", "1234567890").id == result.parcel_id
        assert repo.find_parcel_by_key("12", "115", "1234567890") is None


class TestConcurrentInserts:
    """Tests for rows inserted by another job between lookup and insert."""

    def test_assessment_inserted_concurrently(self, repo, test_db):
        """Test that a tax year inserted after the lookup is updated instead of failing."""
        first = repo.store_normalized_parcel(normalized())
        updated = normalized(valuations=[
            ValuationRecord(year=2024, just=ValueBreakdown(total=310000), assessed=ValueBreakdown(total=255000)),
        ])
        find_assessment = repo.find_assessment
        lookups = []

        def stale_first_lookup(parcel_id, tax_year):
            lookups.append(tax_year)
            if len(lookups) == 1:
                return None
            return find_assessment(parcel_id, tax_year)

        with patch.object(repo, "find_assessment", side_effect=stale_first_lookup):
            upserted = repo.upsert_assessments(first.parcel_id, updated.assessments)

        assert upserted == 1
        assert lookups == [2024, 2024]
        assert test_db.query(ParcelAssessment).count() == 2
        assessments = repo.get_parcel_assessments(first.parcel_id)
        assert float(assessments[0].just_value) == 310000

    def test_parcel_inserted_concurrently(self, repo, test_db):
        """Test that a parcel inserted after the lookup is updated instead of failing."""
        first = repo.store_normalized_parcel(normalized())
        find_parcel_by_key = repo.find_parcel_by_key
        lookups = []

        def stale_first_lookup(*key):
            lookups.append(key)
            if len(lookups) == 1:
                return None
            return find_parcel_by_key(*key)

        with patch.object(repo, "find_parcel_by_key", side_effect=stale_first_lookup):
            parcel_id, created = repo.upsert_parcel(normalized(owner="NEW OWNER LLC"))

        assert parcel_id == first.parcel_id
        assert created is False
        assert test_db.query(Parcel).count() == 1
        assert repo.find_parcel_by_id(parcel_id).owner_name == "NEW OWNER LLC"
