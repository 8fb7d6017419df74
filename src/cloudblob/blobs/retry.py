"""Retry/backoff primitives for the cleanup sweep.

The whole sweep is retried on failure; no partial progress is carried from
one attempt to the next, which is safe because each attempt re-derives the
orphan set from scratch.

Backoff is exponential, base * 2^retry_index, capped. No jitter by default
so schedules are deterministic in tests.

Backoff schedule (default base=2s, cap=60s, 3 attempts):
  Attempt 1: immediate
  Attempt 2: after 2s
  Attempt 3: after 4s

Environment Variables:
    CLOUDBLOB_CLEANUP_MAX_ATTEMPTS: Total attempts, including the first (default: 3)
    CLOUDBLOB_CLEANUP_BACKOFF_BASE_SECONDS: Base delay (default: 2)
    CLOUDBLOB_CLEANUP_BACKOFF_CAP_SECONDS: Maximum delay (default: 60)
"""

from __future__ import annotations

import logging
import os
import random
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Final, TypeVar

from sqlalchemy.exc import SQLAlchemyError

from cloudblob.blobs.errors import CleanupFailedError
from cloudblob.storage.errors import ObjectStorageError

logger = logging.getLogger(__name__)

T = TypeVar("T")

CLOUDBLOB_CLEANUP_MAX_ATTEMPTS_ENV = "CLOUDBLOB_CLEANUP_MAX_ATTEMPTS"
CLOUDBLOB_CLEANUP_BACKOFF_BASE_ENV = "CLOUDBLOB_CLEANUP_BACKOFF_BASE_SECONDS"
CLOUDBLOB_CLEANUP_BACKOFF_CAP_ENV = "CLOUDBLOB_CLEANUP_BACKOFF_CAP_SECONDS"

DEFAULT_MAX_ATTEMPTS: Final[int] = 3
DEFAULT_BASE_SECONDS: Final[float] = 2.0
DEFAULT_CAP_SECONDS: Final[float] = 60.0

RETRYABLE_ERRORS: tuple[type[BaseException], ...] = (SQLAlchemyError, ObjectStorageError)


def _env_number(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be a number, got {raw!r}") from e
    if value < 0:
        raise ValueError(f"{name} must not be negative, got {raw!r}")
    return value


def compute_backoff_seconds(
    retry_index: int,
    base_seconds: float = DEFAULT_BASE_SECONDS,
    cap_seconds: float = DEFAULT_CAP_SECONDS,
    jitter: bool = False,
) -> float:
    """Compute the delay before a retry.

    Args:
        retry_index: Zero-based retry index (0 = first retry after the initial attempt).
        base_seconds: Base delay in seconds.
        cap_seconds: Maximum delay in seconds.
        jitter: If True, add random jitter up to 10% of the delay.

    Example:
        >>> compute_backoff_seconds(0)
        2.0
        >>> compute_backoff_seconds(2)
        8.0
        >>> compute_backoff_seconds(10)
        60.0
    """
    if retry_index < 0:
        return 0.0

    delay = min(base_seconds * (2**retry_index), cap_seconds)
    if jitter:
        delay += delay * 0.1 * random.random()
    return float(delay)


@dataclass(frozen=True)
class RetryPolicy:
    """Retry policy for the cleanup sweep.

    Attributes:
        max_attempts: Total attempts including the first; at least 1.
        base_seconds: Base backoff delay.
        cap_seconds: Maximum backoff delay.
        jitter: Add up to 10% random jitter to each delay.
    """

    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    base_seconds: float = DEFAULT_BASE_SECONDS
    cap_seconds: float = DEFAULT_CAP_SECONDS
    jitter: bool = False

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {self.max_attempts}")

    @classmethod
    def from_env(cls) -> RetryPolicy:
        """Load the policy from CLOUDBLOB_CLEANUP_* environment variables."""
        return cls(
            max_attempts=int(_env_number(CLOUDBLOB_CLEANUP_MAX_ATTEMPTS_ENV, DEFAULT_MAX_ATTEMPTS)),
            base_seconds=_env_number(CLOUDBLOB_CLEANUP_BACKOFF_BASE_ENV, DEFAULT_BASE_SECONDS),
            cap_seconds=_env_number(CLOUDBLOB_CLEANUP_BACKOFF_CAP_ENV, DEFAULT_CAP_SECONDS),
        )

    def schedule(self) -> list[float]:
        """Delays before each retry, in order (len == max_attempts - 1)."""
        return [
            compute_backoff_seconds(i, self.base_seconds, self.cap_seconds, jitter=False)
            for i in range(self.max_attempts - 1)
        ]


def run_with_retry(
    operation: Callable[[], T],
    policy: RetryPolicy,
    *,
    retry_on: tuple[type[BaseException], ...] = RETRYABLE_ERRORS,
    sleep: Callable[[float], None] = time.sleep,
    name: str = "operation",
) -> T:
    """Run ``operation``, retrying the whole call on retryable failures.

    Args:
        operation: Zero-argument callable to run.
        policy: Attempt count and backoff.
        retry_on: Exception types that trigger a retry; others propagate at once.
        sleep: Sleep function (injected by tests).
        name: Label for log messages.

    Returns:
        The operation's result from the first successful attempt.

    Raises:
        CleanupFailedError: If every attempt failed with a retryable error.
    """
    last_error: BaseException | None = None

    for attempt in range(1, policy.max_attempts + 1):
        try:
            return operation()
        except retry_on as e:
            last_error = e
            if attempt >= policy.max_attempts:
                break
            delay = compute_backoff_seconds(
                attempt - 1, policy.base_seconds, policy.cap_seconds, jitter=policy.jitter
            )
            logger.warning(
                "%s attempt %d/%d failed: %s; retrying in %.1fs",
                name,
                attempt,
                policy.max_attempts,
                e,
                delay,
            )
            sleep(delay)

    assert last_error is not None
    logger.error("%s failed after %d attempt(s): %s", name, policy.max_attempts, last_error)
    raise CleanupFailedError(policy.max_attempts, last_error) from last_error
