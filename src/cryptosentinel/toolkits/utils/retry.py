from __future__ import annotations

"""Backoff Retrier
==================

Retry-with-backoff primitive shared by every upstream call in the toolkits.

Key Features:
- Exponential backoff with symmetric jitter, a sleep floor and a hard cap
- Rate-limit failures escalate the backoff factor per consecutive throttle
- Fatal failures (schema mismatch, missing configuration, 4xx) are never retried
- Exhaustion while throttled raises a distinct ``RateLimitPersistsError``
- Pure delay helpers (``compute_next_delay``, ``apply_jitter``) for testing

Every attempt produces exactly one ``AttemptOutcome`` which the loop consumes
immediately; nothing about an attempt outlives the ``retry_with_backoff`` call.
"""

import asyncio
import random
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, TypeVar, Union

from loguru import logger
from pydantic import BaseModel, validator, root_validator

from ...config.defaults import DEFAULT_RETRY_POLICIES
from ...exceptions import (
    ConfigurationError,
    RateLimitPersistsError,
    StructuralUpstreamError,
)

__all__ = [
    "RetryPolicy",
    "FailureClass",
    "Success",
    "TransientFailure",
    "FatalFailure",
    "AttemptOutcome",
    "classify_failure",
    "is_rate_limit_error",
    "run_attempt",
    "compute_next_delay",
    "apply_jitter",
    "retry_with_backoff",
]

T = TypeVar("T")

RATE_LIMIT_MARKERS = ("rate limit", "rate-limit", "ratelimit", "rate limited", "too many requests")


class RetryPolicy(BaseModel):
    """Immutable backoff parameters for one retried call. Durations are seconds."""

    max_retries: int = 5
    initial_delay: float = 1.0
    max_delay: float = 30.0
    backoff_factor: float = 2.0
    jitter_factor: float = 0.2
    min_delay: float = 1.0
    rate_limit_escalation: float = 0.5

    class Config:
        frozen = True

    @validator("max_retries")
    def validate_max_retries(cls, v):
        if v < 0:
            raise ValueError("max_retries must be >= 0")
        return v

    @validator("jitter_factor")
    def validate_jitter(cls, v):
        if not 0.0 <= v <= 1.0:
            raise ValueError("jitter_factor must be between 0 and 1")
        return v

    @validator("backoff_factor")
    def validate_backoff_factor(cls, v):
        if v <= 1.0:
            raise ValueError("backoff_factor must be greater than 1")
        return v

    @validator("rate_limit_escalation")
    def validate_escalation(cls, v):
        if v < 0:
            raise ValueError("rate_limit_escalation must be >= 0")
        return v

    @root_validator(pre=False, skip_on_failure=True)
    def validate_delay_bounds(cls, values):
        if values["initial_delay"] > values["max_delay"]:
            raise ValueError("initial_delay must not exceed max_delay")
        if values["min_delay"] > values["max_delay"]:
            raise ValueError("min_delay must not exceed max_delay")
        return values

    @classmethod
    def preset(cls, name: str, **overrides: Any) -> "RetryPolicy":
        """Build a named preset from ``config.defaults`` ("default" when unknown)."""
        params = dict(DEFAULT_RETRY_POLICIES.get(name, DEFAULT_RETRY_POLICIES["default"]))
        params.update(overrides)
        return cls(**params)

    @property
    def sleep_cap(self) -> float:
        return self.max_delay * (1 + self.jitter_factor)


# ---------------------------------------------------------------------------
# Attempt outcomes
# ---------------------------------------------------------------------------

class FailureClass(str, Enum):
    RATE_LIMIT = "rate_limit"
    NETWORK_OR_SERVER = "network_or_server"


@dataclass(frozen=True)
class Success:
    value: Any


@dataclass(frozen=True)
class TransientFailure:
    classification: FailureClass
    error: Exception
    suggested_delay: Optional[float] = None


@dataclass(frozen=True)
class FatalFailure:
    error: Exception


AttemptOutcome = Union[Success, TransientFailure, FatalFailure]


def is_rate_limit_error(error: Exception) -> bool:
    """True when the status or any message text signals throttling."""
    if getattr(error, "status_code", None) == 429:
        return True
    texts = [str(error), getattr(error, "response_text", None) or ""]
    return any(marker in text.lower() for text in texts for marker in RATE_LIMIT_MARKERS)


def classify_failure(error: Exception) -> AttemptOutcome:
    """Map an exception raised by an attempt onto a transient or fatal outcome."""
    if isinstance(error, (StructuralUpstreamError, ConfigurationError, RateLimitPersistsError)):
        return FatalFailure(error)

    if is_rate_limit_error(error):
        return TransientFailure(
            classification=FailureClass.RATE_LIMIT,
            error=error,
            suggested_delay=getattr(error, "retry_after", None),
        )

    status_code = getattr(error, "status_code", None)
    if isinstance(status_code, int) and 400 <= status_code < 500 and status_code != 408:
        return FatalFailure(error)

    # Parsing and programming errors do not heal on retry
    if isinstance(error, (KeyError, TypeError, ValueError)):
        return FatalFailure(error)

    return TransientFailure(classification=FailureClass.NETWORK_OR_SERVER, error=error)


async def run_attempt(operation: Callable[[], Awaitable[T]]) -> AttemptOutcome:
    try:
        return Success(await operation())
    except Exception as e:
        return classify_failure(e)


# ---------------------------------------------------------------------------
# Delay math
# ---------------------------------------------------------------------------

def compute_next_delay(current_delay: float, policy: RetryPolicy, consecutive_rate_limits: int = 0) -> float:
    """Grow the base delay after a failure, capped at ``policy.max_delay``.

    Each consecutive rate-limit failure adds ``rate_limit_escalation`` to the
    backoff factor, so sustained throttling backs off faster than sporadic
    network errors.
    """
    factor = policy.backoff_factor
    if consecutive_rate_limits > 0:
        factor += policy.rate_limit_escalation * consecutive_rate_limits
    return min(current_delay * factor, policy.max_delay)


def apply_jitter(delay: float, policy: RetryPolicy, rng: Callable[[], float] = random.random) -> float:
    """Return ``delay ± jitter_factor * delay * r``, floored at ``min_delay`` and capped."""
    jitter = policy.jitter_factor * delay * (2.0 * rng() - 1.0)
    sleep_for = max(delay + jitter, policy.min_delay)
    return min(sleep_for, policy.sleep_cap)


# ---------------------------------------------------------------------------
# Retry loop
# ---------------------------------------------------------------------------

async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    policy: Optional[RetryPolicy] = None,
    description: str = "operation",
) -> T:
    """Run ``operation`` until it succeeds or the policy's attempts are spent.

    Args:
        operation: Zero-argument coroutine function performing one attempt
        policy: Backoff parameters (defaults to the "default" preset)
        description: Human-readable label used in retry log lines

    Returns:
        Whatever the first successful attempt returned

    Raises:
        RateLimitPersistsError: Attempts exhausted while still rate limited
        Exception: The attempt's own error on fatal failure, or on exhaustion
            after a non-rate-limit failure (re-raised unwrapped)

    Example:
        ```python
        data = await retry_with_backoff(
            lambda: client.get("dexscreener", f"/latest/dex/tokens/{address}"),
            RetryPolicy.preset("dexscreener"),
            description="DexScreener token lookup",
        )
        ```
    """
    policy = policy or RetryPolicy.preset("default")
    total_attempts = policy.max_retries + 1
    delay = policy.initial_delay
    consecutive_rate_limits = 0
    last_failure: Optional[TransientFailure] = None

    for attempt in range(1, total_attempts + 1):
        outcome = await run_attempt(operation)

        if isinstance(outcome, Success):
            if attempt > 1:
                logger.info(f"{description} succeeded on attempt {attempt}/{total_attempts}")
            return outcome.value

        if isinstance(outcome, FatalFailure):
            logger.debug(f"{description} failed fatally on attempt {attempt}: {outcome.error}")
            raise outcome.error

        last_failure = outcome
        rate_limited = outcome.classification == FailureClass.RATE_LIMIT
        if rate_limited:
            consecutive_rate_limits += 1

        if attempt == total_attempts:
            break

        sleep_for = apply_jitter(delay, policy)
        if outcome.suggested_delay:
            sleep_for = min(max(sleep_for, float(outcome.suggested_delay)), policy.sleep_cap)

        logger.warning(
            f"{description} attempt {attempt}/{total_attempts} failed "
            f"({outcome.classification.value}): {outcome.error}. Retrying in {sleep_for:.2f}s"
        )
        await asyncio.sleep(sleep_for)
        delay = compute_next_delay(delay, policy, consecutive_rate_limits if rate_limited else 0)

    if last_failure.classification == FailureClass.RATE_LIMIT:
        logger.error(f"{description}: rate limit persists after {total_attempts} attempts")
        raise RateLimitPersistsError(description, total_attempts, last_failure.error) from last_failure.error

    logger.error(f"{description} failed after {total_attempts} attempts: {last_failure.error}")
    raise last_failure.error
