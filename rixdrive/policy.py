"""Per-operation resiliency policies: retries with backoff and circuit breaking.

A policy wraps the send delegate of one operation. It is created when the
client is constructed and shared by every call to that operation, so the
only state it holds is the circuit breaker's counters, which are guarded by
their own lock.
"""

from __future__ import annotations

import asyncio
import logging
import random
import threading
import time
from collections.abc import Mapping
from enum import Enum
from types import MappingProxyType
from typing import Awaitable, Callable, Optional

import httpx

from .exceptions import DriveCircuitOpenError, DriveNetworkError
from .utils import DEFAULT_MAX_RETRIES, DEFAULT_RETRY_DELAY

logger = logging.getLogger(__name__)

# Status codes that signal a transient condition worth another attempt.
# 400 and 500 are part of the decoded contract and are never retried here.
DEFAULT_RETRY_STATUSES: frozenset[int] = frozenset({408, 429, 502, 503, 504})

SendDelegate = Callable[[], Awaitable[httpx.Response]]
Sleep = Callable[[float], Awaitable[None]]


class RetryPolicy:
    """Retry transient failures with exponential backoff and jitter."""

    def __init__(
        self,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        max_delay: float = 30.0,
        retry_statuses: frozenset[int] = DEFAULT_RETRY_STATUSES,
        jitter: bool = True,
    ):
        """Initialize the retry policy.

        Args:
            max_retries: Maximum number of retry attempts (default: 3)
            retry_delay: Initial delay between retries in seconds (default: 1.0)
            max_delay: Upper bound for a single delay in seconds
            retry_statuses: Response status codes that are retried
            jitter: Whether to add +/- 25% jitter to each delay
        """
        if max_retries < 0:
            raise ValueError("max_retries must not be negative")
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.max_delay = max_delay
        self.retry_statuses = frozenset(retry_statuses)
        self.jitter = jitter

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def should_retry(self, exception: Exception, attempt: int) -> bool:
        """Determine if a failed attempt should be retried.

        Args:
            exception: The exception that occurred
            attempt: Current attempt number (0-based)

        Returns:
            True if the request should be retried, False otherwise
        """
        # Don't retry if we've exhausted our attempts
        if attempt >= self.max_retries:
            return False

        # An open circuit is not a transient network failure
        if isinstance(exception, DriveCircuitOpenError):
            return False

        # Retry on network errors (transient failures)
        return isinstance(exception, DriveNetworkError)

    def should_retry_response(self, response: httpx.Response, attempt: int) -> bool:
        """Determine if a received response should be retried."""
        if attempt >= self.max_retries:
            return False
        return response.status_code in self.retry_statuses

    def calculate_delay(
        self, attempt: int, response: Optional[httpx.Response] = None
    ) -> float:
        """Calculate delay before next retry using exponential backoff.

        A numeric ``Retry-After`` header on the response takes precedence.

        Args:
            attempt: Current attempt number (0-based)
            response: Response that triggered the retry, if any

        Returns:
            Delay in seconds
        """
        if response is not None:
            retry_after = response.headers.get("Retry-After")
            if retry_after and retry_after.isdigit():
                return min(float(retry_after), self.max_delay)

        # Exponential backoff: retry_delay * (2 ** attempt)
        base_delay = self.retry_delay * (2**attempt)
        if self.jitter:
            # Add jitter: +/- 25% of base delay
            base_delay += base_delay * 0.25 * (2 * random.random() - 1)
        return min(base_delay, self.max_delay)


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """Stop calling an operation after repeated failures.

    After ``failure_threshold`` consecutive failures the circuit opens and
    attempts fail immediately with :class:`DriveCircuitOpenError`. Once
    ``reset_timeout`` has elapsed a single trial attempt is let through; its
    outcome closes or re-opens the circuit.
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        reset_timeout: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        if failure_threshold < 1:
            raise ValueError("failure_threshold must be at least 1")
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout
        self._clock = clock
        self._lock = threading.Lock()
        self._state = CircuitState.CLOSED
        self._failures = 0
        self._opened_at = 0.0
        self._trial_in_flight = False

    @property
    def state(self) -> CircuitState:
        with self._lock:
            if (
                self._state is CircuitState.OPEN
                and self._clock() - self._opened_at >= self.reset_timeout
            ):
                return CircuitState.HALF_OPEN
            return self._state

    @property
    def failure_count(self) -> int:
        with self._lock:
            return self._failures

    def before_attempt(self, name: str = "") -> None:
        """Check whether an attempt may proceed.

        Raises:
            DriveCircuitOpenError: If the circuit is open
        """
        with self._lock:
            if self._state is CircuitState.CLOSED:
                return
            remaining = self.reset_timeout - (self._clock() - self._opened_at)
            if self._state is CircuitState.OPEN and remaining <= 0:
                logger.debug("Circuit for %s is half-open, allowing trial", name)
                self._state = CircuitState.HALF_OPEN
                self._trial_in_flight = False
            if self._state is CircuitState.HALF_OPEN and not self._trial_in_flight:
                self._trial_in_flight = True
                return
            raise DriveCircuitOpenError(
                f"Circuit open for {name or 'operation'}",
                retry_after=max(remaining, 0.0),
            )

    def record_success(self) -> None:
        with self._lock:
            if self._state is not CircuitState.CLOSED:
                logger.debug("Circuit closed after successful trial")
            self._state = CircuitState.CLOSED
            self._failures = 0
            self._trial_in_flight = False

    def record_failure(self) -> None:
        with self._lock:
            self._failures += 1
            if (
                self._state is CircuitState.HALF_OPEN
                or self._failures >= self.failure_threshold
            ):
                if self._state is not CircuitState.OPEN:
                    logger.debug("Circuit opened after %d failures", self._failures)
                self._state = CircuitState.OPEN
                self._opened_at = self._clock()
                self._trial_in_flight = False

    def release_trial(self) -> None:
        """Free the half-open trial slot after an attempt ended without outcome."""
        with self._lock:
            self._trial_in_flight = False

    def reset(self) -> None:
        """Force the circuit back to the closed state."""
        self.record_success()


class ResiliencyPolicy:
    """Named policy combining an optional retry and an optional circuit breaker."""

    def __init__(
        self,
        name: str = "",
        retry: Optional[RetryPolicy] = None,
        circuit_breaker: Optional[CircuitBreaker] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.name = name
        self.retry = retry
        self.circuit_breaker = circuit_breaker
        self._sleep = sleep

    @classmethod
    def retrying(
        cls,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        name: str = "",
        **kwargs,
    ) -> ResiliencyPolicy:
        """Shortcut for a policy that only retries."""
        return cls(name, retry=RetryPolicy(max_retries, retry_delay, **kwargs))

    def _is_failure_status(self, status_code: int) -> bool:
        return status_code >= 500 or (
            self.retry is not None and status_code in self.retry.retry_statuses
        )

    async def execute(self, send: SendDelegate) -> httpx.Response:
        """Invoke ``send`` until it succeeds or the policy gives up.

        Responses that are going to be retried are closed before the next
        attempt. Cancellation interrupts both attempts and backoff sleeps.

        Returns:
            The response of the final attempt

        Raises:
            DriveNetworkError: If the final attempt failed at transport level
            DriveCircuitOpenError: If the circuit breaker rejected an attempt
        """
        attempt = 0
        while True:
            if self.circuit_breaker is not None:
                self.circuit_breaker.before_attempt(self.name)

            try:
                response = await send()
            except DriveNetworkError as e:
                if self.circuit_breaker is not None:
                    self.circuit_breaker.record_failure()
                if self.retry is not None and self.retry.should_retry(e, attempt):
                    delay = self.retry.calculate_delay(attempt)
                    logger.debug(
                        "%s attempt %d failed (%s), retrying in %.2fs",
                        self.name,
                        attempt + 1,
                        e,
                        delay,
                    )
                    await self._sleep(delay)
                    attempt += 1
                    continue
                raise
            except BaseException:
                # Cancelled or failed before a response: neither success nor failure
                if self.circuit_breaker is not None:
                    self.circuit_breaker.release_trial()
                raise

            if self.circuit_breaker is not None:
                if self._is_failure_status(response.status_code):
                    self.circuit_breaker.record_failure()
                else:
                    self.circuit_breaker.record_success()

            if self.retry is not None and self.retry.should_retry_response(
                response, attempt
            ):
                delay = self.retry.calculate_delay(attempt, response)
                logger.debug(
                    "%s attempt %d returned %d, retrying in %.2fs",
                    self.name,
                    attempt + 1,
                    response.status_code,
                    delay,
                )
                await response.aclose()
                await self._sleep(delay)
                attempt += 1
                continue

            return response


class PolicyRegistry:
    """Read-only lookup of resiliency policies by operation name."""

    def __init__(
        self,
        policies: Optional[Mapping[str, ResiliencyPolicy]] = None,
        default: Optional[ResiliencyPolicy] = None,
    ):
        self._policies = MappingProxyType(dict(policies or {}))
        self.default = default

    def get(self, operation: str) -> Optional[ResiliencyPolicy]:
        return self._policies.get(operation, self.default)

    def __contains__(self, operation: object) -> bool:
        return operation in self._policies

    def __len__(self) -> int:
        return len(self._policies)
