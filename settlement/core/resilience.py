"""
Fault-tolerance helpers for calls that leave the process.

- :class:`CircuitBreaker` wraps a dependency (database, each payment gateway)
  and fails fast once it has failed ``failure_threshold`` times in a row.
  After ``recovery_timeout`` seconds one probe call is let through; success
  closes the circuit again, failure re-opens it.
- :func:`retry_with_backoff` retries an async callable with exponential
  backoff and jitter.  Ledger workflows do NOT use it: a money movement is
  never re-sent automatically.  Only idempotent side effects such as
  notification delivery are retried.
"""

import asyncio
import functools
import logging
import random
import time
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple, Type

from sqlalchemy.exc import InterfaceError, OperationalError

from settlement.core.config import settings

logger = logging.getLogger(__name__)

TRANSIENT_ERRORS: Tuple[Type[Exception], ...] = (ConnectionError, OSError, TimeoutError)


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreakerError(Exception):
    """Raised instead of calling the dependency while the circuit is open."""

    def __init__(self, name: str, retry_after: float):
        self.name = name
        self.retry_after = retry_after
        super().__init__(
            f"Circuit breaker '{name}' is OPEN; failing fast. "
            f"Retry after {retry_after:.1f}s."
        )


class CircuitBreaker:
    """
    Async circuit breaker.

    Parameters
    ----------
    name : str
        Identifier used in logs and the health endpoint.
    failure_threshold : int
        Consecutive failures that open the circuit.
    recovery_timeout : float
        Seconds the circuit stays open before a probe is allowed.
    expected_exceptions : tuple
        Exception types counted as failures.  Anything else (business
        errors, validation errors) passes through without touching the state.
    """

    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        recovery_timeout: float = 30.0,
        expected_exceptions: Tuple[Type[Exception], ...] = TRANSIENT_ERRORS,
    ):
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.expected_exceptions = expected_exceptions

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._opened_at: float = 0.0

    @property
    def state(self) -> CircuitState:
        if self._state == CircuitState.OPEN and self._seconds_open() >= self.recovery_timeout:
            self._state = CircuitState.HALF_OPEN
            logger.info("Circuit '%s' half-open, allowing a probe call", self.name)
        return self._state

    def _seconds_open(self) -> float:
        return time.monotonic() - self._opened_at

    def _on_success(self) -> None:
        if self._state != CircuitState.CLOSED:
            logger.info("Circuit '%s' closed after a successful probe", self.name)
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count += 1

    def _on_failure(self, exc: Exception) -> None:
        self._failure_count += 1
        if self._state == CircuitState.HALF_OPEN or self._failure_count >= self.failure_threshold:
            self._state = CircuitState.OPEN
            self._opened_at = time.monotonic()
            logger.error(
                "Circuit '%s' opened after %d consecutive failures (last: %s: %s)",
                self.name,
                self._failure_count,
                type(exc).__name__,
                exc,
            )
        else:
            logger.warning(
                "Circuit '%s' failure %d/%d: %s",
                self.name,
                self._failure_count,
                self.failure_threshold,
                exc,
            )

    async def call(self, func: Callable, *args: Any, **kwargs: Any) -> Any:
        """Await ``func(*args, **kwargs)`` unless the circuit is open."""
        if self.state == CircuitState.OPEN:
            raise CircuitBreakerError(
                self.name, max(self.recovery_timeout - self._seconds_open(), 0.0)
            )
        try:
            result = await func(*args, **kwargs)
        except self.expected_exceptions as exc:
            self._on_failure(exc)
            raise
        self._on_success()
        return result

    def get_status(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "state": self.state.value,
            "failure_count": self._failure_count,
            "failure_threshold": self.failure_threshold,
            "success_count": self._success_count,
            "recovery_timeout_s": self.recovery_timeout,
        }


_breakers: Dict[str, CircuitBreaker] = {}


def get_circuit_breaker(
    name: str,
    expected_exceptions: Tuple[Type[Exception], ...] = TRANSIENT_ERRORS,
) -> CircuitBreaker:
    """Return the process-wide breaker for ``name``, creating it on first use."""
    breaker = _breakers.get(name)
    if breaker is None:
        breaker = CircuitBreaker(
            name=name,
            failure_threshold=settings.CB_FAILURE_THRESHOLD,
            recovery_timeout=settings.CB_RECOVERY_TIMEOUT,
            expected_exceptions=expected_exceptions,
        )
        _breakers[name] = breaker
    return breaker


def all_breaker_statuses() -> list:
    return [breaker.get_status() for breaker in _breakers.values()]


# Connection-level database failures only; constraint violations are caller errors.
db_circuit_breaker = get_circuit_breaker(
    "database", TRANSIENT_ERRORS + (OperationalError, InterfaceError)
)


def retry_with_backoff(
    max_retries: int = 3,
    base_delay: float = 0.5,
    max_delay: float = 10.0,
    jitter: bool = True,
    retryable_exceptions: Tuple[Type[Exception], ...] = TRANSIENT_ERRORS,
) -> Callable:
    """
    Decorator: retry an async function on ``retryable_exceptions``.

    The delay doubles after each attempt, capped at ``max_delay``; jitter adds
    up to 50% so that replicas do not retry in lock-step.  The last exception
    is re-raised once ``max_retries`` retries are exhausted.
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            delay = base_delay
            last_exc: Optional[Exception] = None
            for attempt in range(max_retries + 1):
                try:
                    return await func(*args, **kwargs)
                except retryable_exceptions as exc:
                    last_exc = exc
                    if attempt == max_retries:
                        break
                    wait = min(delay, max_delay)
                    if jitter:
                        wait += random.uniform(0, wait * 0.5)
                    logger.warning(
                        "%s failed (%s: %s); retry %d/%d in %.2fs",
                        func.__qualname__,
                        type(exc).__name__,
                        exc,
                        attempt + 1,
                        max_retries,
                        wait,
                    )
                    await asyncio.sleep(wait)
                    delay *= 2
            logger.error("%s gave up after %d retries", func.__qualname__, max_retries)
            raise last_exc  # type: ignore[misc]

        return wrapper

    return decorator
