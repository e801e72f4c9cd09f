"""
Caller-directed retry for transport failures.

Only a retryable TransportError is retried. Every other storage error is
terminal for the operation and propagates on the first attempt.
"""

from collections.abc import Callable
from typing import Any, TypeVar

import structlog
from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from blobkit.storage.errors import TransportError

logger = structlog.get_logger(__name__)

T = TypeVar("T")


def _is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, TransportError) and exc.retryable


def _log_retry(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "Retrying after transport error",
        attempt=retry_state.attempt_number,
        error=str(exc),
    )


def transport_retry(
    max_attempts: int = 3,
    min_wait: float = 1,
    max_wait: float = 10,
):
    """
    Decorator that retries a call on retryable TransportError with exponential backoff.

    Args:
        max_attempts: Total attempts including the first call
        min_wait: Lower bound of the backoff in seconds
        max_wait: Upper bound of the backoff in seconds
    """
    return retry(
        retry=retry_if_exception(_is_retryable),
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=1, min=min_wait, max=max_wait),
        before_sleep=_log_retry,
        reraise=True,
    )


def call_with_retry(
    func: Callable[..., T],
    *args: Any,
    max_attempts: int = 3,
    min_wait: float = 1,
    max_wait: float = 10,
    **kwargs: Any,
) -> T:
    """Invoke ``func`` once, retrying on TransportError."""
    wrapped = transport_retry(max_attempts, min_wait=min_wait, max_wait=max_wait)(func)
    return wrapped(*args, **kwargs)
