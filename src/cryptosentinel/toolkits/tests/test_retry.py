"""Tests for the backoff retrier."""

import pytest
from unittest.mock import AsyncMock

from cryptosentinel.exceptions import (
    MissingConfigurationError,
    RateLimitPersistsError,
    StructuralUpstreamError,
)
from cryptosentinel.toolkits.utils import HTTPClientError, RetryPolicy, retry_with_backoff
from cryptosentinel.toolkits.utils.retry import (
    FailureClass,
    FatalFailure,
    Success,
    TransientFailure,
    apply_jitter,
    classify_failure,
    compute_next_delay,
    is_rate_limit_error,
    run_attempt,
)


# ============================================================================
# POLICY VALIDATION
# ============================================================================

class TestRetryPolicy:
    """RetryPolicy construction and validation."""

    def test_presets_match_defaults(self):
        policy = RetryPolicy.preset("holder_pages")
        assert policy.max_retries == 5
        assert policy.initial_delay == 2.0
        assert policy.max_delay == 45
        assert policy.backoff_factor == 2.5

    def test_unknown_preset_falls_back_to_default(self):
        assert RetryPolicy.preset("does_not_exist") == RetryPolicy.preset("default")

    def test_preset_overrides(self):
        policy = RetryPolicy.preset("twitter", max_retries=0)
        assert policy.max_retries == 0

    @pytest.mark.parametrize("field,value", [
        ("jitter_factor", 1.5),
        ("jitter_factor", -0.1),
        ("backoff_factor", 1.0),
        ("max_retries", -1),
    ])
    def test_invalid_values_rejected(self, field, value):
        with pytest.raises(ValueError):
            RetryPolicy(**{field: value})

    def test_initial_delay_above_max_rejected(self):
        with pytest.raises(ValueError):
            RetryPolicy(initial_delay=10.0, max_delay=5.0)

    def test_policy_is_immutable(self):
        policy = RetryPolicy()
        with pytest.raises(Exception):
            policy.max_retries = 10


# ============================================================================
# FAILURE CLASSIFICATION
# ============================================================================

class TestClassification:
    """Mapping exceptions onto attempt outcomes."""

    def test_429_is_rate_limit(self):
        outcome = classify_failure(HTTPClientError("HTTP 429 error", 429, "slow down", retry_after=3))
        assert isinstance(outcome, TransientFailure)
        assert outcome.classification == FailureClass.RATE_LIMIT
        assert outcome.suggested_delay == 3

    def test_rate_limit_detected_from_message(self):
        assert is_rate_limit_error(Exception("Too Many Requests"))
        assert is_rate_limit_error(HTTPClientError("HTTP 503 error", 503, "rate limited by upstream"))
        assert not is_rate_limit_error(Exception("connection reset"))

    def test_server_error_is_transient(self):
        outcome = classify_failure(HTTPClientError("HTTP 502 error", 502, "bad gateway"))
        assert isinstance(outcome, TransientFailure)
        assert outcome.classification == FailureClass.NETWORK_OR_SERVER

    def test_transport_error_is_transient(self):
        outcome = classify_failure(HTTPClientError("Request failed: timeout"))
        assert isinstance(outcome, TransientFailure)

    @pytest.mark.parametrize("error", [
        StructuralUpstreamError("bad shape"),
        MissingConfigurationError("HELIUS_API_KEY"),
        HTTPClientError("HTTP 404 error", 404, "not found"),
        KeyError("missing"),
    ])
    def test_fatal_errors(self, error):
        assert isinstance(classify_failure(error), FatalFailure)

    @pytest.mark.asyncio
    async def test_run_attempt_wraps_success(self):
        outcome = await run_attempt(AsyncMock(return_value=42))
        assert outcome == Success(42)


# ============================================================================
# DELAY MATH
# ============================================================================

class TestDelays:
    """Backoff growth, escalation and jitter bounds."""

    def test_delay_grows_by_backoff_factor(self):
        policy = RetryPolicy(initial_delay=1.0, max_delay=30.0, backoff_factor=2.0)
        assert compute_next_delay(1.0, policy) == 2.0
        assert compute_next_delay(2.0, policy) == 4.0

    def test_rate_limits_escalate_factor(self):
        policy = RetryPolicy(initial_delay=1.0, max_delay=30.0, backoff_factor=2.0, rate_limit_escalation=0.5)
        assert compute_next_delay(1.0, policy, consecutive_rate_limits=2) == 3.0

    def test_delay_capped_at_max(self):
        policy = RetryPolicy(initial_delay=1.0, max_delay=5.0, backoff_factor=3.0)
        assert compute_next_delay(4.0, policy) == 5.0

    def test_rate_limit_delays_monotonic_until_cap(self):
        policy = RetryPolicy(max_retries=10, initial_delay=1.0, max_delay=20.0, backoff_factor=2.0)
        delay = policy.initial_delay
        delays = []
        for consecutive in range(1, 11):
            delay = compute_next_delay(delay, policy, consecutive)
            delays.append(delay)

        assert delays == sorted(delays)
        assert delays[-1] == policy.max_delay
        assert all(d <= policy.max_delay for d in delays)

    @pytest.mark.parametrize("r", [0.0, 0.25, 0.5, 0.999])
    def test_jitter_never_exceeds_sleep_cap(self, r):
        policy = RetryPolicy(initial_delay=1.0, max_delay=10.0, jitter_factor=0.2)
        sleep_for = apply_jitter(policy.max_delay, policy, rng=lambda: r)
        assert sleep_for <= policy.max_delay * (1 + policy.jitter_factor)
        assert sleep_for >= policy.min_delay

    def test_jitter_floor(self):
        policy = RetryPolicy(initial_delay=0.1, max_delay=10.0, jitter_factor=0.5, min_delay=1.0)
        assert apply_jitter(0.1, policy, rng=lambda: 0.0) == 1.0


# ============================================================================
# RETRY LOOP
# ============================================================================

class TestRetryWithBackoff:
    """End-to-end behaviour of retry_with_backoff."""

    @pytest.mark.asyncio
    async def test_success_first_try(self, mock_sleep, fast_policy):
        operation = AsyncMock(return_value="ok")
        assert await retry_with_backoff(operation, fast_policy) == "ok"
        operation.assert_called_once()
        mock_sleep.assert_not_called()

    @pytest.mark.asyncio
    async def test_recovers_after_transient_failures(self, mock_sleep, fast_policy):
        operation = AsyncMock(side_effect=[
            HTTPClientError("HTTP 500 error", 500, "boom"),
            HTTPClientError("HTTP 503 error", 503, "boom"),
            "ok",
        ])
        assert await retry_with_backoff(operation, fast_policy) == "ok"
        assert operation.call_count == 3
        assert mock_sleep.call_count == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize("max_retries", [0, 1, 3, 5])
    async def test_permanent_failure_invoked_n_plus_one_times(self, mock_sleep, max_retries):
        policy = RetryPolicy(max_retries=max_retries, initial_delay=0.01, max_delay=0.1, min_delay=0.0)
        operation = AsyncMock(side_effect=HTTPClientError("HTTP 500 error", 500, "boom"))

        with pytest.raises(HTTPClientError):
            await retry_with_backoff(operation, policy)

        assert operation.call_count == max_retries + 1
        assert mock_sleep.call_count == max_retries

    @pytest.mark.asyncio
    async def test_persistent_rate_limit_raises_distinct_error(self, mock_sleep, fast_policy):
        operation = AsyncMock(side_effect=HTTPClientError("HTTP 429 error", 429, "rate limit"))

        with pytest.raises(RateLimitPersistsError) as exc_info:
            await retry_with_backoff(operation, fast_policy, description="DexScreener lookup")

        assert exc_info.value.status_code == 429
        assert operation.call_count == fast_policy.max_retries + 1

    @pytest.mark.asyncio
    async def test_fatal_failure_not_retried(self, mock_sleep, fast_policy):
        operation = AsyncMock(side_effect=StructuralUpstreamError("unexpected payload"))

        with pytest.raises(StructuralUpstreamError):
            await retry_with_backoff(operation, fast_policy)

        operation.assert_called_once()
        mock_sleep.assert_not_called()

    @pytest.mark.asyncio
    async def test_sleeps_bounded_by_cap(self, mock_sleep):
        policy = RetryPolicy(max_retries=6, initial_delay=1.0, max_delay=4.0, jitter_factor=0.2)
        operation = AsyncMock(side_effect=HTTPClientError("HTTP 429 error", 429, "rate limit"))

        with pytest.raises(RateLimitPersistsError):
            await retry_with_backoff(operation, policy)

        sleeps = [call.args[0] for call in mock_sleep.call_args_list]
        assert len(sleeps) == 6
        assert all(s <= policy.sleep_cap for s in sleeps)

    @pytest.mark.asyncio
    async def test_retry_after_respected(self, mock_sleep):
        policy = RetryPolicy(max_retries=1, initial_delay=1.0, max_delay=10.0, jitter_factor=0.0)
        operation = AsyncMock(side_effect=[
            HTTPClientError("HTTP 429 error", 429, "slow down", retry_after=5),
            "ok",
        ])

        assert await retry_with_backoff(operation, policy) == "ok"
        mock_sleep.assert_called_once_with(5.0)
