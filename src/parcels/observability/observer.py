"""
Ingestion Observers

Pipeline and adapters report run and step lifecycle events through an
observer so metrics and log sinks can be swapped without touching the
ingestion code. ``LoggingObserver`` is the default and writes structlog
events; ``IngestionObserver`` is a no-op base for custom sinks.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from src.parcels.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class StepMetric:
    step: str
    ok: bool
    duration_ms: float
    data: Optional[Dict[str, Any]] = None


@dataclass
class ObserverMetrics:
    counters: Dict[str, float] = field(default_factory=dict)
    timings: Dict[str, List[float]] = field(default_factory=dict)
    steps: List[StepMetric] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "counters": dict(self.counters),
            "timings": {name: list(values) for name, values in self.timings.items()},
            "steps": [
                {"step": s.step, "ok": s.ok, "duration_ms": s.duration_ms, "data": s.data}
                for s in self.steps
            ],
        }


def _metric_key(name: str, tags: Optional[Dict[str, str]]) -> str:
    if not tags:
        return name
    rendered = ",".join(f"{k}={v}" for k, v in sorted(tags.items()))
    return f"{name}:{rendered}"


class IngestionObserver:
    """Observer interface. Every hook is a no-op by default."""

    def on_run_start(self, run_id: str, source_key: str, input: Dict[str, Any]) -> None:
        pass

    def on_step_start(self, run_id: str, step: str) -> None:
        pass

    def on_step_end(
        self,
        run_id: str,
        step: str,
        ok: bool,
        duration_ms: float,
        data: Optional[Dict[str, Any]] = None,
    ) -> None:
        pass

    def on_run_end(
        self,
        run_id: str,
        ok: bool,
        duration_ms: float,
        error: Optional[str] = None,
    ) -> None:
        pass

    def increment(self, name: str, by: float = 1, tags: Optional[Dict[str, str]] = None) -> None:
        pass

    def timing(self, name: str, duration_ms: float, tags: Optional[Dict[str, str]] = None) -> None:
        pass


class LoggingObserver(IngestionObserver):
    """
    Emits ``parcel_ingestion_*`` structlog events and keeps in-memory
    counters, timings and per-step results for the run summary.
    """

    def __init__(self):
        self.metrics = ObserverMetrics()

    def on_run_start(self, run_id: str, source_key: str, input: Dict[str, Any]) -> None:
        logger.info("parcel_ingestion_run_start", run_id=run_id, source_key=source_key, input=input)

    def on_step_start(self, run_id: str, step: str) -> None:
        logger.info("parcel_ingestion_step_start", run_id=run_id, step=step)

    def on_step_end(
        self,
        run_id: str,
        step: str,
        ok: bool,
        duration_ms: float,
        data: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.metrics.steps.append(StepMetric(step=step, ok=ok, duration_ms=duration_ms, data=data))
        self.timing("parcel_ingestion_step_ms", duration_ms, tags={"step": step})
        log = logger.info if ok else logger.warning
        log(
            "parcel_ingestion_step_end",
            run_id=run_id,
            step=step,
            ok=ok,
            duration_ms=round(duration_ms, 1),
            data=data,
        )

    def on_run_end(
        self,
        run_id: str,
        ok: bool,
        duration_ms: float,
        error: Optional[str] = None,
    ) -> None:
        self.increment("parcel_ingestion_runs", tags={"ok": str(ok).lower()})
        log = logger.info if ok else logger.warning
        log(
            "parcel_ingestion_run_end",
            run_id=run_id,
            ok=ok,
            duration_ms=round(duration_ms, 1),
            error=error,
            metrics=self.metrics.to_dict(),
        )

    def increment(self, name: str, by: float = 1, tags: Optional[Dict[str, str]] = None) -> None:
        key = _metric_key(name, tags)
        self.metrics.counters[key] = self.metrics.counters.get(key, 0) + by

    def timing(self, name: str, duration_ms: float, tags: Optional[Dict[str, str]] = None) -> None:
        self.metrics.timings.setdefault(_metric_key(name, tags), []).append(duration_ms)


def create_logging_observer() -> LoggingObserver:
    return LoggingObserver()
