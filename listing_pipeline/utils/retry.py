"""
Error types, retries and the generation circuit breaker.

``ErrorHandler.categorize_error`` produces the ``error_type`` recorded on a
failed pipeline step.
"""

import asyncio
import time
from enum import Enum
from functools import wraps
from typing import Callable, Optional, Type

from listing_pipeline.utils.logger import get_logger

logger = get_logger(__name__)


# =============================================================================
# Custom Exceptions
# =============================================================================

class AppError(Exception):
    """Base application exception."""


class NetworkError(AppError):
    """Connection to an upstream service failed."""


class RateLimitError(AppError):
    """An upstream service throttled us."""


class ValidationError(AppError):
    """Input was rejected before any work started."""


class APIKeyError(AppError):
    """A required credential is missing or invalid."""


class AppTimeoutError(AppError):
    pass


class ServiceUnavailableError(AppError):
    """The circuit for an upstream service is open."""


# =============================================================================
# Retry Decorator
# =============================================================================

def async_retry(
    max_attempts: int = 3,
    backoff_factor: float = 2.0,
    initial_wait: float = 1.0,
    exceptions: tuple[Type[Exception], ...] = (Exception,),
    on_retry: Optional[Callable[[int, Exception], None]] = None,
    max_wait: float = 30.0,
):
    """
    Retry an async function with exponential backoff.

    Only ``exceptions`` are retried; the last failure is re-raised. The
    wait before attempt ``n + 1`` is ``initial_wait * backoff_factor ** (n - 1)``
    capped at ``max_wait``. ``on_retry(attempt, error)`` runs before each
    wait; its own errors are logged and ignored.
    """
    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            attempt = 1
            while True:
                try:
                    return await func(*args, **kwargs)
                except exceptions as e:
                    if attempt >= max_attempts:
                        logger.warning("Giving up", func=func.__name__, attempts=attempt, error=str(e))
                        raise
                    wait = min(initial_wait * backoff_factor ** (attempt - 1), max_wait)
                    if on_retry is not None:
                        try:
                            on_retry(attempt, e)
                        except Exception as callback_error:
                            logger.warning("on_retry callback failed", func=func.__name__, error=str(callback_error))
                    logger.warning(
                        "Retrying after failure",
                        func=func.__name__,
                        attempt=attempt,
                        wait_seconds=round(wait, 2),
                        error=str(e),
                    )
                    await asyncio.sleep(wait)
                    attempt += 1
        return wrapper
    return decorator


# =============================================================================
# Circuit Breaker
# =============================================================================

class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half-open"


class CircuitBreaker:
    """
    Stops calling a failing service for ``recovery_timeout`` seconds.

    closed -> open after ``failure_threshold`` consecutive failures;
    open -> half-open once the timeout has passed; a successful trial call
    closes the circuit, a failed one opens it again.
    """

    def __init__(self, failure_threshold: int = 5, recovery_timeout: float = 60, name: str = "CircuitBreaker"):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.name = name

        self.state = CircuitState.CLOSED
        self.failures = 0
        self.opened_at: Optional[float] = None

    def _seconds_until_trial(self) -> float:
        if self.opened_at is None:
            return 0.0
        return self.recovery_timeout - (time.monotonic() - self.opened_at)

    def _open(self, reason: str) -> None:
        self.state = CircuitState.OPEN
        self.opened_at = time.monotonic()
        logger.warning("Circuit opened", circuit=self.name, reason=reason, failures=self.failures)

    def _record_failure(self) -> None:
        self.failures += 1
        if self.state == CircuitState.HALF_OPEN:
            self._open("trial call failed")
        elif self.state == CircuitState.CLOSED and self.failures >= self.failure_threshold:
            self._open("failure threshold reached")

    def _record_success(self) -> None:
        if self.state != CircuitState.CLOSED:
            logger.info("Circuit closed", circuit=self.name)
        self.state = CircuitState.CLOSED
        self.failures = 0
        self.opened_at = None

    async def call(self, func: Callable, *args, **kwargs):
        """
        Await ``func(*args, **kwargs)`` through the breaker.

        Raises:
            ServiceUnavailableError: While the circuit is open.
        """
        if self.state == CircuitState.OPEN:
            remaining = self._seconds_until_trial()
            if remaining > 0:
                raise ServiceUnavailableError(f"Circuit {self.name} is OPEN. Retry in {remaining:.1f}s")
            self.state = CircuitState.HALF_OPEN
            logger.info("Circuit half-open, trying one call", circuit=self.name)

        try:
            result = await func(*args, **kwargs)
        except Exception:
            self._record_failure()
            raise
        self._record_success()
        return result


# =============================================================================
# Error Handler
# =============================================================================

class ErrorHandler:
    """Maps exceptions to the error categories recorded on failed steps."""

    TYPE_CATEGORIES: tuple[tuple[tuple[Type[BaseException], ...], str], ...] = (
        ((RateLimitError,), "RATE_LIMIT_ERROR"),
        ((AppTimeoutError, asyncio.TimeoutError, TimeoutError), "TIMEOUT_ERROR"),
        ((NetworkError, ConnectionError), "NETWORK_ERROR"),
        ((ValidationError, ValueError, TypeError), "VALIDATION_ERROR"),
        ((APIKeyError,), "API_KEY_ERROR"),
        ((ServiceUnavailableError,), "SERVICE_UNAVAILABLE"),
    )

    # Fallback for foreign exceptions, matched against the lowercased message
    MESSAGE_HINTS: tuple[tuple[tuple[str, ...], str], ...] = (
        (("rate limit",), "RATE_LIMIT_ERROR"),
        (("timeout", "timed out"), "TIMEOUT_ERROR"),
        (("api key", "unauthorized"), "API_KEY_ERROR"),
        (("connection",), "NETWORK_ERROR"),
    )

    RETRYABLE = frozenset({
        "NETWORK_ERROR",
        "RATE_LIMIT_ERROR",
        "TIMEOUT_ERROR",
        "SERVICE_UNAVAILABLE",
        "UNKNOWN_ERROR",
    })

    @classmethod
    def categorize_error(cls, error: Exception) -> str:
        for types, category in cls.TYPE_CATEGORIES:
            if isinstance(error, types):
                return category

        message = str(error).lower()
        for hints, category in cls.MESSAGE_HINTS:
            if any(hint in message for hint in hints):
                return category
        return "UNKNOWN_ERROR"

    @classmethod
    def is_retryable(cls, error_type: str) -> bool:
        """Whether a manual retry of the failed work is likely to succeed."""
        return error_type in cls.RETRYABLE
