"""Unit tests for retry and circuit breaker policies."""

import asyncio

import httpx
import pytest

from rixdrive.exceptions import (
    DriveCircuitOpenError,
    DriveNetworkError,
    DriveTimeoutError,
    DriveValidationError,
)
from rixdrive.policy import (
    CircuitBreaker,
    CircuitState,
    PolicyRegistry,
    ResiliencyPolicy,
    RetryPolicy,
)


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class ScriptedSend:
    """Send delegate that replays responses and exceptions in order."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class TestRetryPolicy:
    """Tests for RetryPolicy decisions."""

    def test_should_retry_network_errors(self):
        """Test that network errors are retried until attempts run out."""
        policy = RetryPolicy(max_retries=2)
        error = DriveNetworkError("reset")
        assert policy.should_retry(error, 0)
        assert policy.should_retry(error, 1)
        assert not policy.should_retry(error, 2)

    def test_should_retry_timeouts(self):
        """Test that timeouts count as network errors."""
        assert RetryPolicy().should_retry(DriveTimeoutError("slow"), 0)

    def test_should_not_retry_other_errors(self):
        """Test that validation errors and open circuits are not retried."""
        policy = RetryPolicy()
        assert not policy.should_retry(DriveValidationError("bad"), 0)
        assert not policy.should_retry(DriveCircuitOpenError("open"), 0)
        assert not policy.should_retry(ValueError("x"), 0)

    @pytest.mark.parametrize("status_code", [408, 429, 502, 503, 504])
    def test_retry_statuses(self, status_code):
        """Test the default retryable statuses."""
        assert RetryPolicy().should_retry_response(httpx.Response(status_code), 0)

    @pytest.mark.parametrize("status_code", [200, 204, 400, 404, 500])
    def test_non_retry_statuses(self, status_code):
        """Test that decoded statuses, including 400 and 500, are never retried."""
        assert not RetryPolicy().should_retry_response(httpx.Response(status_code), 0)

    def test_exponential_backoff_without_jitter(self):
        """Test delay doubling and the max_delay cap."""
        policy = RetryPolicy(retry_delay=1.0, max_delay=5.0, jitter=False)
        assert policy.calculate_delay(0) == 1.0
        assert policy.calculate_delay(1) == 2.0
        assert policy.calculate_delay(2) == 4.0
        assert policy.calculate_delay(3) == 5.0

    def test_jitter_bounds(self):
        """Test that jitter stays within +/- 25% of the base delay."""
        policy = RetryPolicy(retry_delay=2.0)
        for _ in range(50):
            assert 1.5 <= policy.calculate_delay(0) <= 2.5

    def test_retry_after_header(self):
        """Test that a numeric Retry-After header wins over backoff."""
        policy = RetryPolicy(retry_delay=1.0, max_delay=10.0)
        response = httpx.Response(429, headers={"Retry-After": "7"})
        assert policy.calculate_delay(0, response) == 7.0

        capped = httpx.Response(429, headers={"Retry-After": "120"})
        assert policy.calculate_delay(0, capped) == 10.0

    def test_negative_retries_rejected(self):
        """Test that a negative retry count is invalid."""
        with pytest.raises(ValueError):
            RetryPolicy(max_retries=-1)


class TestCircuitBreaker:
    """Tests for the circuit breaker state machine."""

    def test_opens_after_threshold(self):
        """Test that consecutive failures open the circuit."""
        breaker = CircuitBreaker(failure_threshold=2, clock=FakeClock())
        breaker.record_failure()
        assert breaker.state is CircuitState.CLOSED
        breaker.record_failure()
        assert breaker.state is CircuitState.OPEN

        with pytest.raises(DriveCircuitOpenError) as exc_info:
            breaker.before_attempt("list_children")
        assert "list_children" in str(exc_info.value)
        assert exc_info.value.retry_after == 30.0

    def test_success_resets_failures(self):
        """Test that a success clears the failure count."""
        breaker = CircuitBreaker(failure_threshold=3)
        breaker.record_failure()
        breaker.record_failure()
        breaker.record_success()
        assert breaker.failure_count == 0
        assert breaker.state is CircuitState.CLOSED

    def test_half_open_trial(self):
        """Test that one trial is allowed after the reset timeout."""
        clock = FakeClock()
        breaker = CircuitBreaker(failure_threshold=1, reset_timeout=10, clock=clock)
        breaker.record_failure()

        clock.now = 10.0
        assert breaker.state is CircuitState.HALF_OPEN
        breaker.before_attempt()
        # A second concurrent attempt is rejected while the trial is in flight
        with pytest.raises(DriveCircuitOpenError):
            breaker.before_attempt()

        breaker.record_success()
        assert breaker.state is CircuitState.CLOSED
        breaker.before_attempt()

    def test_failed_trial_reopens(self):
        """Test that a failing trial opens the circuit again."""
        clock = FakeClock()
        breaker = CircuitBreaker(failure_threshold=3, reset_timeout=5, clock=clock)
        for _ in range(3):
            breaker.record_failure()

        clock.now = 5.0
        breaker.before_attempt()
        breaker.record_failure()
        assert breaker.state is CircuitState.OPEN

        clock.now = 6.0
        with pytest.raises(DriveCircuitOpenError):
            breaker.before_attempt()

    def test_reset(self):
        """Test forcing the circuit closed."""
        breaker = CircuitBreaker(failure_threshold=1)
        breaker.record_failure()
        breaker.reset()
        assert breaker.state is CircuitState.CLOSED

    def test_invalid_threshold(self):
        """Test that the threshold must be positive."""
        with pytest.raises(ValueError):
            CircuitBreaker(failure_threshold=0)


class TestResiliencyPolicy:
    """Tests for executing send delegates under a policy."""

    @pytest.mark.asyncio
    async def test_no_retry_single_attempt(self):
        """Test that a policy without retry makes exactly one attempt."""
        send = ScriptedSend(DriveNetworkError("down"))
        with pytest.raises(DriveNetworkError):
            await ResiliencyPolicy("op").execute(send)
        assert send.calls == 1

    @pytest.mark.asyncio
    async def test_retries_network_errors(self, no_sleep):
        """Test retrying until a response arrives."""
        send = ScriptedSend(
            DriveNetworkError("reset"), DriveTimeoutError("slow"), httpx.Response(200)
        )
        policy = ResiliencyPolicy(
            "op", retry=RetryPolicy(max_retries=3, jitter=False), sleep=no_sleep
        )
        response = await policy.execute(send)

        assert response.status_code == 200
        assert send.calls == 3
        assert no_sleep.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_retried_responses_are_closed(self, no_sleep):
        """Test that a response is released before it is retried."""
        throttled = httpx.Response(
            429, headers={"Retry-After": "2"}, stream=httpx.ByteStream(b"")
        )
        send = ScriptedSend(throttled, httpx.Response(200))
        policy = ResiliencyPolicy("op", retry=RetryPolicy(), sleep=no_sleep)

        response = await policy.execute(send)

        assert response.status_code == 200
        assert throttled.is_closed
        assert no_sleep.delays == [2.0]

    @pytest.mark.asyncio
    async def test_last_retryable_response_is_returned(self, no_sleep):
        """Test that the final attempt's response is returned once retries run out."""
        send = ScriptedSend(
            httpx.Response(503, stream=httpx.ByteStream(b"")),
            httpx.Response(503, stream=httpx.ByteStream(b"")),
        )
        policy = ResiliencyPolicy(
            "op", retry=RetryPolicy(max_retries=1), sleep=no_sleep
        )

        response = await policy.execute(send)

        assert response.status_code == 503
        assert not response.is_closed
        assert send.calls == 2

    @pytest.mark.asyncio
    async def test_circuit_breaker_counts_failures(self):
        """Test that server errors and transport failures trip the breaker."""
        breaker = CircuitBreaker(failure_threshold=2)
        policy = ResiliencyPolicy("op", circuit_breaker=breaker)

        await policy.execute(ScriptedSend(httpx.Response(500)))
        with pytest.raises(DriveNetworkError):
            await policy.execute(ScriptedSend(DriveNetworkError("down")))

        send = ScriptedSend(httpx.Response(200))
        with pytest.raises(DriveCircuitOpenError):
            await policy.execute(send)
        assert send.calls == 0

    @pytest.mark.asyncio
    async def test_client_errors_do_not_trip_breaker(self):
        """Test that 4xx domain errors count as healthy responses."""
        breaker = CircuitBreaker(failure_threshold=1)
        policy = ResiliencyPolicy("op", circuit_breaker=breaker)

        await policy.execute(ScriptedSend(httpx.Response(400)))
        assert breaker.state is CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_open_circuit_is_not_retried(self, no_sleep):
        """Test that retry gives up immediately on an open circuit."""
        breaker = CircuitBreaker(failure_threshold=1)
        breaker.record_failure()
        policy = ResiliencyPolicy(
            "op", retry=RetryPolicy(), circuit_breaker=breaker, sleep=no_sleep
        )
        with pytest.raises(DriveCircuitOpenError):
            await policy.execute(ScriptedSend(httpx.Response(200)))
        assert no_sleep.delays == []

    @pytest.mark.asyncio
    async def test_cancelled_trial_frees_half_open_slot(self):
        """Test that a cancelled trial lets the next call through."""
        clock = FakeClock()
        breaker = CircuitBreaker(failure_threshold=1, reset_timeout=5, clock=clock)
        breaker.record_failure()
        clock.now = 5.0
        policy = ResiliencyPolicy("op", circuit_breaker=breaker)
        started = asyncio.Event()

        async def hang():
            started.set()
            await asyncio.Event().wait()

        task = asyncio.create_task(policy.execute(hang))
        await started.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert breaker.state is CircuitState.HALF_OPEN
        response = await policy.execute(ScriptedSend(httpx.Response(200)))
        assert response.status_code == 200
        assert breaker.state is CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_unexpected_error_frees_half_open_slot(self):
        """Test that a non-network error during the trial is not a lockout."""
        clock = FakeClock()
        breaker = CircuitBreaker(failure_threshold=1, reset_timeout=5, clock=clock)
        breaker.record_failure()
        clock.now = 5.0
        policy = ResiliencyPolicy("op", circuit_breaker=breaker)

        with pytest.raises(RuntimeError):
            await policy.execute(ScriptedSend(RuntimeError("bug")))

        response = await policy.execute(ScriptedSend(httpx.Response(200)))
        assert response.status_code == 200

    def test_release_trial(self):
        """Test that releasing the trial allows another half-open attempt."""
        clock = FakeClock()
        breaker = CircuitBreaker(failure_threshold=1, reset_timeout=1, clock=clock)
        breaker.record_failure()
        clock.now = 1.0
        breaker.before_attempt()
        breaker.release_trial()
        breaker.before_attempt()

    def test_retrying_shortcut(self):
        """Test the retry-only constructor."""
        policy = ResiliencyPolicy.retrying(max_retries=5, retry_delay=0.1, name="op")
        assert policy.name == "op"
        assert policy.retry.max_attempts == 6
        assert policy.circuit_breaker is None


class TestPolicyRegistry:
    """Tests for looking up policies by operation name."""

    def test_lookup_and_default(self):
        """Test per-operation entries and the fallback default."""
        upsert = ResiliencyPolicy("upsert_file_metadata")
        default = ResiliencyPolicy("default")
        registry = PolicyRegistry({"upsert_file_metadata": upsert}, default)

        assert registry.get("upsert_file_metadata") is upsert
        assert registry.get("list_children") is default
        assert "upsert_file_metadata" in registry
        assert "list_children" not in registry
        assert len(registry) == 1

    def test_empty_registry(self):
        """Test that an empty registry yields no policy."""
        assert PolicyRegistry().get("copy") is None

    def test_registry_is_a_snapshot(self):
        """Test that later changes to the source mapping are not seen."""
        policies = {"copy": ResiliencyPolicy("copy")}
        registry = PolicyRegistry(policies)
        policies["move"] = ResiliencyPolicy("move")
        assert "move" not in registry
