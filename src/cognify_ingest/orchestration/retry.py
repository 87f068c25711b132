"""Bounded per-stage retries with exponential backoff."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeVar

from cognify_ingest.config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """How many times a stage runs and how long to wait in between."""

    max_attempts: int = settings.stage_max_attempts
    base_delay: float = settings.stage_retry_base_delay_seconds
    max_delay: float = settings.stage_retry_max_delay_seconds

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts ({self.max_attempts}) must be >= 1")

    def delay_for(self, attempt: int) -> float:
        """Wait after failed *attempt* (1-based): base, 2×base, 4×base … capped."""
        return min(self.base_delay * 2 ** (attempt - 1), self.max_delay)


def is_retryable(exc: BaseException) -> bool:
    """Errors flagged ``retryable = False`` are fatal; everything else is transient."""
    return getattr(exc, "retryable", True) is not False


def run_with_retries(
    stage: str,
    fn: Callable[[], T],
    policy: RetryPolicy,
    *,
    sleep: Callable[[float], None] = time.sleep,
    on_attempt: Callable[[int], None] | None = None,
) -> T:
    """Call *fn* until it succeeds or *policy* is exhausted.

    Non-retryable errors propagate on the first attempt.  When every
    attempt fails, the last error propagates unchanged.
    """
    for attempt in range(1, policy.max_attempts + 1):
        if on_attempt is not None:
            on_attempt(attempt)
        try:
            return fn()
        except Exception as exc:
            if not is_retryable(exc):
                logger.error("Stage %s failed with non-retryable error: %s", stage, exc)
                raise
            if attempt == policy.max_attempts:
                logger.error(
                    "Stage %s failed after %d attempts: %s", stage, policy.max_attempts, exc
                )
                raise
            wait = policy.delay_for(attempt)
            logger.warning(
                "Retry %d/%d for stage %s (wait %.1fs): %s",
                attempt, policy.max_attempts, stage, wait, exc,
            )
            sleep(wait)

    raise AssertionError("unreachable")  # pragma: no cover
