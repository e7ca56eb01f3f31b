"""
Parcel Source Adapter Contract

Every source implements the resolve -> fetch -> extract -> normalize
phases. The scraper-backed county adapters share ``PaoSourceAdapter``: one
scrape performs search and extraction together, so its result is parked on
the per-job ``IngestionContext.job_state`` during resolve and consumed by
the later phases. Nothing job-specific is stored on the adapter, which is
shared across jobs by the registry.
"""
import time
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional

from pydantic import BaseModel, Field

from config.settings import settings
from src.parcels.browser.session import can_use_playwright_in_this_env
from src.parcels.errors import ScrapeError
from src.parcels.models.parcel import NormalizedParcel
from src.parcels.models.property_details import PropertyDetails
from src.parcels.models.source import SourceConfig
from src.parcels.normalizers.pao_normalizer import NormalizeMeta, PaoNormalizer
from src.parcels.observability.observer import IngestionObserver
from src.parcels.scrapers.base import PaoScraper, ScrapeResult
from src.parcels.utils.dates import utc_now_iso
from src.parcels.utils.hashing import compute_dom_signature, sha256, sha256_json
from src.parcels.utils.logger import get_logger

logger = get_logger(__name__)

class ParcelResolveInput(BaseModel):
    address: Optional[str] = None
    parcel_id: Optional[str] = None
    owner_name: Optional[str] = None


class ParcelResolveResult(BaseModel):
    found: bool
    parcel_id_raw: Optional[str] = None
    detail_url: Optional[str] = None
    confidence: float = 0.0
    candidates: List[Dict[str, Any]] = Field(default_factory=list)
    debug: Dict[str, Any] = Field(default_factory=dict)


class ParcelFetchInput(BaseModel):
    detail_url: str
    parcel_id_raw: Optional[str] = None


class ParcelFetchResult(BaseModel):
    html: Optional[str] = None
    json_body: Optional[Dict[str, Any]] = None
    fetched_at: str
    response_status: Optional[int] = None
    body_sha256: str
    debug: Dict[str, Any] = Field(default_factory=dict)


class ParcelExtractInput(BaseModel):
    detail_url: str
    html: Optional[str] = None
    json_body: Optional[Dict[str, Any]] = None


class ParcelExtractResult(BaseModel):
    raw: PropertyDetails
    parser_version: str
    dom_signature: Optional[str] = None
    warnings: List[str] = Field(default_factory=list)
    debug: Dict[str, Any] = Field(default_factory=dict)


class ParcelNormalizeInput(BaseModel):
    raw: PropertyDetails
    fetched_at: str
    detail_url: Optional[str] = None


class ParcelNormalizeResult(BaseModel):
    normalized: NormalizedParcel


@dataclass
class JobState:
    """Scratch space owned by one ingestion job."""

    scrape: Optional[ScrapeResult] = None

    def clear(self) -> None:
        self.scrape = None


@dataclass
class IngestionContext:
    run_id: str
    job_id: Optional[str] = None
    source_id: Optional[str] = None
    observer: Optional[IngestionObserver] = None
    job_state: JobState = field(default_factory=JobState)

    def now(self) -> float:
        """Monotonic clock in milliseconds, for step durations."""
        return time.monotonic() * 1000

    def timestamp(self) -> str:
        return utc_now_iso()


@contextmanager
def observe_step(ctx: IngestionContext, step: str) -> Iterator[Dict[str, Any]]:
    """
    Report ``step`` to the context observer. The caller fills the yielded
    dict with step data; an ``ok`` key overrides the success flag. A raised
    exception is reported as a failed step and re-raised.
    """
    observer = ctx.observer
    started = ctx.now()
    if observer is not None:
        observer.on_step_start(ctx.run_id, step)

    data: Dict[str, Any] = {}
    try:
        yield data
    except Exception as e:
        if observer is not None:
            observer.on_step_end(ctx.run_id, step, False, ctx.now() - started, {**data, "error": str(e)})
        raise

    ok = bool(data.pop("ok", True))
    if observer is not None:
        observer.on_step_end(ctx.run_id, step, ok, ctx.now() - started, data or None)


class ParcelSourceAdapter(ABC):
    """Contract consumed by the ingestion pipeline, one implementation per source."""

    key: str
    display_name: str
    config: SourceConfig

    @abstractmethod
    async def resolve(self, input: ParcelResolveInput, ctx: IngestionContext) -> ParcelResolveResult:
        """Locate the parcel detail page for the input."""

    @abstractmethod
    async def fetch(self, input: ParcelFetchInput, ctx: IngestionContext) -> ParcelFetchResult:
        """Obtain the authoritative page content and its hash."""

    @abstractmethod
    async def extract(self, input: ParcelExtractInput, ctx: IngestionContext) -> ParcelExtractResult:
        """Parse the fetched content into the source-specific record."""

    @abstractmethod
    async def normalize(self, input: ParcelNormalizeInput, ctx: IngestionContext) -> ParcelNormalizeResult:
        """Map the source record onto ``NormalizedParcel``."""


def extraction_warnings(raw: PropertyDetails) -> List[str]:
    warnings = []
    if raw.is_empty():
        warnings.append("empty_record")
        return warnings
    if not raw.parcel_id:
        warnings.append("missing_parcel_id")
    if not raw.owner:
        warnings.append("missing_owner")
    if not raw.valuations:
        warnings.append("missing_valuations")
    if not raw.sales_history:
        warnings.append("missing_sales_history")
    return warnings


class PaoSourceAdapter(ParcelSourceAdapter):
    """
    Adapter over a Playwright PAO scraper.

    Args:
        scraper: County scraper sharing the process browser session
        url_parcel_id: Parcel id extractor for the county's detail URLs
    """

    parser_version: str = ""

    def __init__(
        self,
        scraper: PaoScraper,
        url_parcel_id: Optional[Callable[[Optional[str]], Optional[str]]] = None,
    ):
        self.scraper = scraper
        self.normalizer = PaoNormalizer(
            source_key=self.key,
            state_fips=self.config.state_fips,
            county_fips=self.config.county_fips,
            url_parcel_id=url_parcel_id,
        )

    def playwright_available(self):
        return can_use_playwright_in_this_env(
            ws_endpoint=self.scraper.session_manager.config.ws_endpoint,
            production=settings.is_production,
        )

    async def resolve(self, input: ParcelResolveInput, ctx: IngestionContext) -> ParcelResolveResult:
        with observe_step(ctx, "resolve") as step:
            check = self.playwright_available()
            if not check.ok:
                step.update(ok=False, reason=check.reason)
                return ParcelResolveResult(found=False, debug={"skipped": True, "reason": check.reason})

            if not input.address:
                reason = (
                    "Parcel id search is not supported by the address search form"
                    if input.parcel_id
                    else "No address provided"
                )
                step.update(ok=False, reason=reason)
                return ParcelResolveResult(found=False, debug={"error": reason})

            try:
                result = await self.scraper.scrape_by_address(input.address)
            except ScrapeError as e:
                # Only a rejected or empty search is "not found"; scrape failures fail the job
                logger.warning(
                    "parcel_resolve_scrape_failed",
                    source=self.key,
                    code=e.code.value,
                    error=str(e),
                )
                step.update(code=e.code.value, error=str(e))
                raise

            if not result.found:
                step.update(ok=False, found=False, candidates=len(result.candidates))
                return ParcelResolveResult(
                    found=False,
                    candidates=result.candidates,
                    debug=result.debug,
                )

            ctx.job_state.scrape = result
            step.update(detail_url=result.detail_url)
            return ParcelResolveResult(
                found=True,
                parcel_id_raw=result.scraped.parcel_id,
                detail_url=result.detail_url,
                confidence=result.confidence,
                candidates=result.candidates,
                debug=result.debug,
            )

    async def fetch(self, input: ParcelFetchInput, ctx: IngestionContext) -> ParcelFetchResult:
        with observe_step(ctx, "fetch") as step:
            scrape = ctx.job_state.scrape
            if scrape is None or scrape.detail_url != input.detail_url:
                scrape = await self.scraper.extract_from_url(input.detail_url)
                ctx.job_state.scrape = scrape

            json_body = scrape.scraped.to_dict()
            body_sha256 = sha256(scrape.html) if scrape.html else sha256_json(json_body)
            step.update(body_sha256=body_sha256, has_html=bool(scrape.html))
            return ParcelFetchResult(
                html=scrape.html,
                json_body=json_body,
                fetched_at=ctx.timestamp(),
                response_status=scrape.response_status or 200,
                body_sha256=body_sha256,
                debug=scrape.debug,
            )

    async def extract(self, input: ParcelExtractInput, ctx: IngestionContext) -> ParcelExtractResult:
        with observe_step(ctx, "extract") as step:
            scrape = ctx.job_state.scrape
            if scrape is not None:
                raw = scrape.scraped
            else:
                raw = PropertyDetails.model_validate(input.json_body or {})

            dom_signature = compute_dom_signature([raw.parcel_id, raw.address, raw.owner])
            warnings = extraction_warnings(raw)
            step.update(
                field_count=len(raw.model_dump(exclude_defaults=True)),
                warnings=len(warnings),
            )
            return ParcelExtractResult(
                raw=raw,
                parser_version=self.parser_version,
                dom_signature=dom_signature,
                warnings=warnings,
                debug=scrape.debug if scrape is not None else {},
            )

    async def normalize(self, input: ParcelNormalizeInput, ctx: IngestionContext) -> ParcelNormalizeResult:
        try:
            with observe_step(ctx, "normalize") as step:
                normalized = self.normalizer.normalize(
                    input.raw,
                    NormalizeMeta(timestamp=input.fetched_at, source_url=input.detail_url),
                )
                step.update(confidence=normalized.confidence)
                return ParcelNormalizeResult(normalized=normalized)
        finally:
            ctx.job_state.clear()
