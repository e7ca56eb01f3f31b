"""
Parcel Ingestion Pipeline

Orchestrates one parcel request through a source adapter:

    resolve -> fetch -> extract -> normalize -> store

Storage is optional. Without a database the pipeline still runs every
adapter phase and returns the normalized parcel; with one it records the
run, job, raw fetch, parse artifact and the upserted parcel.

Usage:
    python -m src.parcels.ingestion.pipeline --address "123 Main St, Bradenton, FL 34205"
"""
import argparse
import asyncio
import json
import sys
import time
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, ContextManager, Dict, Iterator, Optional

from pydantic import BaseModel

from src.parcels.adapters.base import (
    IngestionContext,
    ParcelExtractInput,
    ParcelFetchInput,
    ParcelNormalizeInput,
    ParcelResolveInput,
)
from src.parcels.browser.session import BrowserSessionManager
from src.parcels.db.repository import ParcelRepository
from src.parcels.errors import ScrapeError
from src.parcels.models.parcel import IngestionStatus, ParcelIngestionResult
from src.parcels.observability.observer import IngestionObserver, create_logging_observer
from src.parcels.registry import AdapterRegistry, build_default_registry
from src.parcels.utils.logger import bind_run_context, clear_run_context, get_logger, setup_logging

logger = get_logger(__name__)

NOT_FOUND_MESSAGE = "No parcel found for the given address"

RepositoryFactory = Callable[[], ContextManager[ParcelRepository]]


class IngestParcelRequest(BaseModel):
    source_key: Optional[str] = None
    address: Optional[str] = None
    parcel_id: Optional[str] = None
    force: bool = False
    triggered_by: str = "api"
    purpose: Optional[str] = "lead_enrichment"
    use_database: bool = True


@contextmanager
def session_repository() -> Iterator[ParcelRepository]:
    """One committed transaction per block."""
    # db.session builds the engine on import; only touch it when storage is used
    from src.parcels.db.session import get_db_session

    with get_db_session() as session:
        yield ParcelRepository(session)


def default_database_check() -> bool:
    from src.parcels.db.session import is_database_available

    return is_database_available()


class _RunRecord:
    """Storage ids of the run in flight, when storage is used."""

    def __init__(self):
        self.run_id: Optional[str] = None
        self.job_id: Optional[str] = None
        self.source_id: Optional[str] = None
        self.fetch_id: Optional[str] = None


class ParcelIngestionPipeline:
    """
    Runs ingestion requests against the adapters of a registry.

    Args:
        registry: Source adapters
        repository_factory: Returns a context manager yielding a
            ``ParcelRepository`` bound to a fresh transaction. Defaults to
            the application database.
        observer_factory: Builds the observer for a run without one
        database_check: Decides per run whether storage is used. Defaults
            to a connectivity check when the application database is used.
    """

    def __init__(
        self,
        registry: AdapterRegistry,
        repository_factory: Optional[RepositoryFactory] = None,
        observer_factory: Callable[[], IngestionObserver] = create_logging_observer,
        database_check: Optional[Callable[[], bool]] = None,
    ):
        self.registry = registry
        self.observer_factory = observer_factory
        if repository_factory is None:
            self.repository_factory: RepositoryFactory = session_repository
            self.database_check = database_check or default_database_check
        else:
            self.repository_factory = repository_factory
            self.database_check = database_check or (lambda: True)

    def _database_enabled(self, request: IngestParcelRequest) -> bool:
        if not request.use_database:
            return False
        try:
            return bool(self.database_check())
        except Exception as e:
            logger.warning("parcel_ingestion_database_unavailable", error=str(e))
            return False

    def _update_job(self, record: _RunRecord, **values) -> None:
        if record.job_id is None:
            return
        with self.repository_factory() as repo:
            repo.update_ingestion_job(record.job_id, **values)

    def _mark_failed(self, record: _RunRecord, error: str) -> None:
        if record.run_id is None:
            return
        try:
            with self.repository_factory() as repo:
                repo.update_ingestion_run(record.run_id, status="failed", error=error)
                if record.job_id is not None:
                    repo.update_ingestion_job(record.job_id, status="failed", last_error=error)
        except Exception as e:
            logger.error("parcel_ingestion_failure_not_recorded", run_id=record.run_id, error=str(e))

    async def ingest(
        self,
        request: IngestParcelRequest,
        observer: Optional[IngestionObserver] = None,
    ) -> ParcelIngestionResult:
        """
        Ingest one parcel. Never raises: errors come back as a FAILED result
        and a missing property as SKIPPED.
        """
        run_id = str(uuid.uuid4())
        observer = observer or self.observer_factory()
        started = time.monotonic()
        record = _RunRecord()
        run_started = False

        def elapsed_ms() -> float:
            return (time.monotonic() - started) * 1000

        try:
            source_key = self.registry.resolve_source_key(request.source_key)
            bind_run_context(run_id, source_key)
            adapter = self.registry.get(source_key)

            job_input: Dict[str, Any] = {
                "address": request.address,
                "parcel_id": request.parcel_id,
                "source_key": source_key,
                "force": request.force,
            }
            observer.on_run_start(run_id, source_key, job_input)
            run_started = True

            use_db = self._database_enabled(request)
            if use_db:
                with self.repository_factory() as repo:
                    record.run_id = repo.create_ingestion_run(
                        triggered_by=request.triggered_by,
                        purpose=request.purpose,
                        run_id=run_id,
                    )
                    record.source_id = repo.find_or_create_source(adapter.config)
                    record.job_id = repo.create_ingestion_job(record.run_id, job_input, record.source_id)

            ctx = IngestionContext(
                run_id=run_id,
                job_id=record.job_id,
                source_id=record.source_id,
                observer=observer,
            )

            # Resolve
            self._update_job(record, status="fetching", attempts=1)
            resolved = await adapter.resolve(
                ParcelResolveInput(address=request.address, parcel_id=request.parcel_id),
                ctx,
            )
            if not resolved.found or not resolved.detail_url:
                if record.run_id is not None:
                    # The run is skipped; the job has no "skipped" state and closes as failed
                    with self.repository_factory() as repo:
                        repo.update_ingestion_run(record.run_id, status="skipped", error=NOT_FOUND_MESSAGE)
                        if record.job_id is not None:
                            repo.update_ingestion_job(record.job_id, status="failed", last_error=NOT_FOUND_MESSAGE)
                observer.on_run_end(run_id, False, elapsed_ms(), NOT_FOUND_MESSAGE)
                logger.info("parcel_ingestion_skipped", run_id=run_id, source_key=source_key)
                return ParcelIngestionResult(
                    run_id=run_id,
                    status=IngestionStatus.SKIPPED,
                    error=NOT_FOUND_MESSAGE,
                    debug=resolved.debug,
                )

            # Fetch
            fetched = await adapter.fetch(
                ParcelFetchInput(detail_url=resolved.detail_url, parcel_id_raw=resolved.parcel_id_raw),
                ctx,
            )
            if use_db:
                with self.repository_factory() as repo:
                    record.fetch_id = repo.store_raw_fetch(
                        source_id=record.source_id,
                        request_url=resolved.detail_url,
                        run_id=record.run_id,
                        job_id=record.job_id,
                        response_status=fetched.response_status,
                        response_body=fetched.html or json.dumps(fetched.json_body, default=str),
                        content_type="text/html" if fetched.html else "application/json",
                        body_sha256=fetched.body_sha256,
                        meta=json.loads(json.dumps(fetched.debug, default=str)),
                    )

            # Extract
            self._update_job(record, status="parsed")
            extracted = await adapter.extract(
                ParcelExtractInput(
                    detail_url=resolved.detail_url,
                    html=fetched.html,
                    json_body=fetched.json_body,
                ),
                ctx,
            )
            if use_db:
                with self.repository_factory() as repo:
                    repo.store_parse_artifact(
                        source_id=record.source_id,
                        parser_version=extracted.parser_version,
                        extracted=extracted.raw.model_dump(mode="json", exclude_none=True),
                        job_id=record.job_id,
                        fetch_id=record.fetch_id,
                        dom_signature=extracted.dom_signature,
                        warnings=extracted.warnings,
                    )

            # Normalize
            self._update_job(record, status="normalized")
            normalized = (await adapter.normalize(
                ParcelNormalizeInput(
                    raw=extracted.raw,
                    fetched_at=fetched.fetched_at,
                    detail_url=resolved.detail_url,
                ),
                ctx,
            )).normalized
            if not normalized.parcel_id_norm:
                raise ValueError("Normalized parcel has no parcel id")
            parcel_key = normalized.key

            # Store
            parcel_id = None
            if use_db:
                with self.repository_factory() as repo:
                    stored = repo.store_normalized_parcel(normalized, record.source_id, record.fetch_id)
                    repo.update_ingestion_run(record.run_id, status="succeeded", stats=stored.to_stats())
                parcel_id = stored.parcel_id
                observer.increment("parcel_sales_inserted", stored.sales_upserted, tags={"source": source_key})

            observer.on_run_end(run_id, True, elapsed_ms())
            logger.info(
                "parcel_ingestion_succeeded",
                run_id=run_id,
                parcel_id=parcel_id,
                parcel_id_norm=normalized.parcel_id_norm,
                confidence=normalized.confidence,
            )
            return ParcelIngestionResult(
                run_id=run_id,
                status=IngestionStatus.SUCCESS,
                parcel_id=parcel_id,
                parcel_key=parcel_key,
                normalized=normalized,
            )

        except Exception as e:
            error = str(e) or type(e).__name__
            logger.error(
                "parcel_ingestion_failed",
                run_id=run_id,
                error=error,
                error_type=type(e).__name__,
            )
            self._mark_failed(record, error)
            if run_started:
                observer.on_run_end(run_id, False, elapsed_ms(), error)
            return ParcelIngestionResult(
                run_id=run_id,
                status=IngestionStatus.FAILED,
                error=error,
                debug=e.to_dict() if isinstance(e, ScrapeError) else None,
            )
        finally:
            clear_run_context()


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Ingest a parcel from a county Property Appraiser site")
    parser.add_argument("--address", help="Situs address to search for")
    parser.add_argument("--parcel-id", dest="parcel_id", help="Parcel id (sources without id search skip)")
    parser.add_argument("--source", dest="source_key", default=None, help="Source key (default from settings)")
    parser.add_argument("--no-db", action="store_true", help="Do not persist; print the normalized parcel only")
    parser.add_argument("--force", action="store_true", help="Re-ingest even if recently seen")
    parser.add_argument("--output", type=Path, default=None, help="Write the result JSON to this file")
    parser.add_argument("--list-sources", action="store_true", help="List registered sources and exit")
    return parser.parse_args(argv)


async def run_cli(args: argparse.Namespace) -> ParcelIngestionResult:
    session_manager = BrowserSessionManager()
    try:
        pipeline = ParcelIngestionPipeline(build_default_registry(session_manager))
        request = IngestParcelRequest(
            source_key=args.source_key,
            address=args.address,
            parcel_id=args.parcel_id,
            force=args.force,
            triggered_by="cli",
            purpose="manual",
            use_database=not args.no_db,
        )
        return await pipeline.ingest(request)
    finally:
        await session_manager.close()


def main(argv=None) -> int:
    setup_logging()
    args = parse_args(argv)

    if args.list_sources:
        registry = build_default_registry()
        for source in registry.list_sources():
            print(f"{source.key}\t{source.display_name}\t{source.config.base_url}")
        return 0

    if not args.address and not args.parcel_id:
        logger.error("parcel_ingestion_cli_missing_input")
        print("Either --address or --parcel-id is required", file=sys.stderr)
        return 2

    result = asyncio.run(run_cli(args))
    payload = result.model_dump(mode="json", exclude_none=True)

    if args.output:
        args.output.parent.mkdir(parents=True, exist_ok=True)
        with args.output.open("w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2)
        logger.info("parcel_ingestion_result_written", path=str(args.output))
    else:
        print(json.dumps(payload, indent=2))

    return 0 if result.status in (IngestionStatus.SUCCESS, IngestionStatus.SKIPPED) else 1


if __name__ == "__main__":
    sys.exit(main())
