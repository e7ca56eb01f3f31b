"""
Retryable Operations

A small wrapper around tenacity shared by the browser connector, the
database layer and any HTTP-based adapter. Callers supply an error
classifier that decides which failures are worth another attempt and a
backoff schedule; everything else is re-raised on the first failure.
"""
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from src.parcels.utils.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

ErrorClassifier = Callable[[BaseException], bool]


@dataclass(frozen=True)
class RetryPolicy:
    """
    Exponential backoff schedule.

    Delay before attempt ``n + 1`` is ``initial_delay * multiplier ** (n - 1)``,
    capped at ``max_delay``.
    """

    max_attempts: int = 3
    initial_delay: float = 1.0
    multiplier: float = 2.0
    max_delay: float = 30.0

    def wait(self):
        return wait_exponential(
            multiplier=self.initial_delay,
            exp_base=self.multiplier,
            max=self.max_delay,
        )


def retry_all(error: BaseException) -> bool:
    return True


def _log_before_sleep(operation: str) -> Callable[[RetryCallState], None]:
    def log(retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "operation_retry_scheduled",
            operation=operation,
            attempt=retry_state.attempt_number,
            next_delay_seconds=retry_state.next_action.sleep if retry_state.next_action else None,
            error=str(error) if error else None,
            error_type=type(error).__name__ if error else None,
        )

    return log


def _retry_kwargs(
    policy: RetryPolicy,
    classifier: ErrorClassifier,
    operation: str,
    sleep: Optional[Callable[[float], Any]],
) -> dict:
    kwargs = dict(
        stop=stop_after_attempt(policy.max_attempts),
        wait=policy.wait(),
        retry=retry_if_exception(classifier),
        before_sleep=_log_before_sleep(operation),
        reraise=True,
    )
    if sleep is not None:
        kwargs["sleep"] = sleep
    return kwargs


async def run_async_with_retry(
    fn: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    classifier: ErrorClassifier = retry_all,
    operation: str = "operation",
    sleep: Optional[Callable[[float], Awaitable[None]]] = None,
) -> T:
    """
    Await ``fn`` until it succeeds, the classifier rejects the error, or the
    policy runs out of attempts. The last error is re-raised unchanged.

    Args:
        fn: Zero-argument coroutine factory
        policy: Backoff schedule
        classifier: Returns True for errors that should be retried
        operation: Name used in log events
        sleep: Override for the async sleep (tests)
    """
    retrying = AsyncRetrying(**_retry_kwargs(policy, classifier, operation, sleep))
    return await retrying(fn)


def run_with_retry(
    fn: Callable[[], T],
    policy: RetryPolicy,
    classifier: ErrorClassifier = retry_all,
    operation: str = "operation",
    sleep: Optional[Callable[[float], None]] = None,
) -> T:
    """Synchronous counterpart of :func:`run_async_with_retry`."""
    retrying = Retrying(**_retry_kwargs(policy, classifier, operation, sleep))
    return retrying(fn)
