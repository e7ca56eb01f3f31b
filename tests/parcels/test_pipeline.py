"""
Tests for the parcel ingestion pipeline.
"""
import asyncio
import json

import pytest
from sqlalchemy.orm import sessionmaker

from src.parcels.adapters.manatee import ManateePaoAdapter
from src.parcels.db.models import IngestionJob, IngestionRun, ParseArtifact, Parcel, RawFetch
from src.parcels.errors import ErrorCode, ScrapeError
from src.parcels.ingestion.pipeline import (
    NOT_FOUND_MESSAGE,
    IngestParcelRequest,
    ParcelIngestionPipeline,
    parse_args,
)
from src.parcels.models.parcel import IngestionStatus
from src.parcels.observability.observer import LoggingObserver
from src.parcels.registry import AdapterRegistry
from src.parcels.scrapers.base import ScrapeResult
from tests.parcels.fakes import FakeScraper, found_result, memory_engine, repository_factory

ADDRESS = "123 Main St, Bradenton, FL 34205"


def make_registry(scraper):
    registry = AdapterRegistry()
    adapter = ManateePaoAdapter(scraper.session_manager, scraper=scraper)
    registry.register(ManateePaoAdapter.key, lambda: adapter)
    return registry


@pytest.fixture
def engine():
    engine = memory_engine()
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine)()
    yield session
    session.close()


def run(pipeline, **request):
    return asyncio.run(pipeline.ingest(IngestParcelRequest(**request)))


class TestWithoutDatabase:
    """Tests for ingestion without storage."""

    def test_success(self, fake_scraper):
        """Test that every phase runs and the normalized parcel is returned."""
        pipeline = ParcelIngestionPipeline(make_registry(fake_scraper), repository_factory=None,
                                           database_check=lambda: False)

        result = run(pipeline, address=ADDRESS)

        assert result.status == IngestionStatus.SUCCESS
        assert result.parcel_id is None
        assert result.normalized.parcel_id_norm == "1234567890"
        assert result.parcel_key.county_fips == "081"
        assert fake_scraper.address_calls == [ADDRESS]
        assert fake_scraper.url_calls == []

    def test_use_database_false(self, fake_scraper, engine):
        """Test that a request can opt out of storage."""
        pipeline = ParcelIngestionPipeline(make_registry(fake_scraper), repository_factory=repository_factory(engine))

        result = run(pipeline, address=ADDRESS, use_database=False)

        assert result.status == IngestionStatus.SUCCESS
        assert result.parcel_id is None

    def test_database_check_error_disables_storage(self, fake_scraper, engine):
        """Test that a failing connectivity check degrades to no storage."""
        def broken():
            raise RuntimeError("no route to host")

        pipeline = ParcelIngestionPipeline(
            make_registry(fake_scraper),
            repository_factory=repository_factory(engine),
            database_check=broken,
        )

        result = run(pipeline, address=ADDRESS)

        assert result.status == IngestionStatus.SUCCESS
        assert result.parcel_id is None

    def test_observer_sees_every_step(self, fake_scraper):
        """Test that the run reports each phase in order."""
        observer = LoggingObserver()
        pipeline = ParcelIngestionPipeline(make_registry(fake_scraper), database_check=lambda: False)

        asyncio.run(pipeline.ingest(IngestParcelRequest(address=ADDRESS), observer=observer))

        steps = [s.step for s in observer.metrics.steps]
        assert steps == ["resolve", "fetch", "extract", "normalize"]
        assert observer.metrics.counters == {"parcel_ingestion_runs:ok=true": 1}


class TestWithDatabase:
    """Tests for ingestion with storage."""

    def test_success_persists_everything(self, fake_scraper, engine, db):
        """Test that run, job, fetch, artifact and parcel rows are written."""
        pipeline = ParcelIngestionPipeline(make_registry(fake_scraper), repository_factory=repository_factory(engine))

        result = run(pipeline, address=ADDRESS, triggered_by="cli")

        assert result.status == IngestionStatus.SUCCESS
        parcel = db.get(Parcel, result.parcel_id)
        assert parcel.parcel_id_norm == "1234567890"

        ingestion_run = db.get(IngestionRun, result.run_id)
        assert ingestion_run.status == "succeeded"
        assert ingestion_run.triggered_by == "cli"
        assert ingestion_run.stats["sales_upserted"] == 2

        job = db.query(IngestionJob).one()
        assert job.status == "normalized"
        assert job.attempts == 1
        assert job.input["source_key"] == "fl-manatee-pa"

        fetch = db.query(RawFetch).one()
        assert fetch.response_body == found_result().html
        assert fetch.content_type == "text/html"
        assert parcel.canonical_fetch_id == fetch.id

        artifact = db.query(ParseArtifact).one()
        assert artifact.fetch_id == fetch.id
        assert artifact.parser_version == "manatee-pao-v1.0.0"
        assert artifact.extracted["parcel_id"] == "1234567890"

    def test_rerun_is_idempotent(self, engine, db):
        """Test that ingesting the same parcel twice keeps one parcel and skips known sales."""
        factory = repository_factory(engine)

        first = run(ParcelIngestionPipeline(make_registry(FakeScraper(result=found_result())), factory), address=ADDRESS)
        second = run(ParcelIngestionPipeline(make_registry(FakeScraper(result=found_result())), factory), address=ADDRESS)

        assert first.parcel_id == second.parcel_id
        assert db.query(Parcel).count() == 1
        assert db.get(IngestionRun, second.run_id).stats == {
            "parcel_created": False,
            "assessments_upserted": 2,
            "sales_upserted": 0,
            "sales_skipped": 2,
        }

    def test_not_found_skipped(self, engine, db):
        """Test that an unmatched address is SKIPPED and the run marked skipped."""
        scraper = FakeScraper(result=ScrapeResult())
        pipeline = ParcelIngestionPipeline(make_registry(scraper), repository_factory=repository_factory(engine))

        result = run(pipeline, address=ADDRESS)

        assert result.status == IngestionStatus.SKIPPED
        assert result.error == NOT_FOUND_MESSAGE
        ingestion_run = db.get(IngestionRun, result.run_id)
        assert ingestion_run.status == "skipped"
        assert ingestion_run.finished_at is not None
        job = db.query(IngestionJob).one()
        assert job.status == "failed"
        assert job.last_error == NOT_FOUND_MESSAGE
        assert db.query(Parcel).count() == 0

    @pytest.mark.parametrize(
        "code",
        [ErrorCode.PARSE_ERROR, ErrorCode.TIMEOUT, ErrorCode.BROWSER_LAUNCH_FAILED, ErrorCode.NAVIGATION_FAILED],
    )
    def test_scrape_error_fails_not_skipped(self, code, engine, db):
        """Test that a scrape error is a FAILED run, never a not-found skip."""
        scraper = FakeScraper(error=ScrapeError("Submit button not found", code))
        pipeline = ParcelIngestionPipeline(make_registry(scraper), repository_factory=repository_factory(engine))

        result = run(pipeline, address=ADDRESS)

        assert result.status == IngestionStatus.FAILED
        assert result.error == "Submit button not found"
        assert result.debug["code"] == code.value
        assert db.get(IngestionRun, result.run_id).status == "failed"
        job = db.query(IngestionJob).one()
        assert job.status == "failed"
        assert job.last_error == "Submit button not found"

    def test_blocked_fails(self, engine, db):
        """Test that a blocked scrape fails the run and the job."""
        scraper = FakeScraper(error=ScrapeError("Access denied", ErrorCode.BLOCKED))
        pipeline = ParcelIngestionPipeline(make_registry(scraper), repository_factory=repository_factory(engine))

        result = run(pipeline, address=ADDRESS)

        assert result.status == IngestionStatus.FAILED
        assert result.error == "Access denied"
        assert result.debug["code"] == "BLOCKED"
        assert db.get(IngestionRun, result.run_id).status == "failed"
        job = db.query(IngestionJob).one()
        assert job.status == "failed"
        assert job.last_error == "Access denied"

    def test_missing_parcel_id_fails(self, engine, db):
        """Test that a record with no parcel id anywhere is not stored."""
        details = found_result().scraped.model_copy(update={"parcel_id": None})
        scraper = FakeScraper(result=found_result(details=details, detail_url="https://www.manateepao.gov/parcel/"))
        pipeline = ParcelIngestionPipeline(make_registry(scraper), repository_factory=repository_factory(engine))

        result = run(pipeline, address=ADDRESS)

        assert result.status == IngestionStatus.FAILED
        assert "no parcel id" in result.error
        assert db.query(Parcel).count() == 0


class TestSourceSelection:
    """Tests for source key handling."""

    def test_unknown_source_fails(self, fake_scraper):
        """Test that an unregistered source key is a FAILED result."""
        pipeline = ParcelIngestionPipeline(make_registry(fake_scraper), database_check=lambda: False)

        result = run(pipeline, address=ADDRESS, source_key="fl-nowhere-pa")

        assert result.status == IngestionStatus.FAILED
        assert "fl-nowhere-pa" in result.error
        assert fake_scraper.address_calls == []

    def test_default_source(self, fake_scraper):
        """Test that no source key uses the default source."""
        pipeline = ParcelIngestionPipeline(make_registry(fake_scraper), database_check=lambda: False)

        result = run(pipeline, address=ADDRESS)

        assert result.normalized.provenance["parcel_id"].source == "fl-manatee-pa"


class TestCli:
    """Tests for command line parsing."""

    def test_parse_args(self):
        """Test CLI flags."""
        args = parse_args(["--address", ADDRESS, "--source", "fl-sarasota-pa", "--no-db"])

        assert args.address == ADDRESS
        assert args.source_key == "fl-sarasota-pa"
        assert args.no_db is True
        assert args.parcel_id is None

    def test_result_serializes(self, fake_scraper):
        """Test that the result renders as JSON the way the CLI prints it."""
        pipeline = ParcelIngestionPipeline(make_registry(fake_scraper), database_check=lambda: False)

        payload = run(pipeline, address=ADDRESS).model_dump(mode="json", exclude_none=True)

        assert json.loads(json.dumps(payload))["status"] == "SUCCESS"
