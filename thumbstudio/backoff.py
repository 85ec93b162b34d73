"""
Backoff Scheduler - bounded retry loop for transient failures.

Delays grow exponentially from base_delay_ms, are capped at
max_delay_ms, and get up to jitter_ms of random jitter so concurrent
clients do not retry in lockstep. Only errors flagged retryable
(quota exhaustion, transient transport trouble) are retried.
"""

import logging
import random
import threading
import time
from dataclasses import dataclass
from typing import Callable, TypeVar

from .errors import GenerationCancelled, ThumbnailError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class BackoffPolicy:
    max_attempts: int = 3
    base_delay_ms: int = 20_000
    max_delay_ms: int = 60_000
    multiplier: float = 2.0
    jitter_ms: int = 1_000

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be a positive integer")

    @classmethod
    def from_settings(cls, settings) -> "BackoffPolicy":
        return cls(
            max_attempts=settings.max_attempts,
            base_delay_ms=settings.retry_base_ms,
            max_delay_ms=settings.retry_max_ms,
            jitter_ms=settings.retry_jitter_ms,
        )

    def should_retry(self, error: Exception, attempts_so_far: int, max_attempts: int | None = None) -> bool:
        limit = self.max_attempts if max_attempts is None else max_attempts
        if attempts_so_far >= limit:
            return False
        return isinstance(error, ThumbnailError) and error.retryable

    def base_delay(self, attempts_so_far: int) -> int:
        """Delay without jitter; non-decreasing in attempts_so_far, capped."""
        exponent = max(attempts_so_far - 1, 0)
        delay = self.base_delay_ms * (self.multiplier ** exponent)
        return int(min(delay, self.max_delay_ms))

    def next_delay(self, attempts_so_far: int, rng: random.Random | None = None) -> int:
        """Milliseconds to wait after attempts_so_far failed attempts."""
        jitter = 0
        if self.jitter_ms > 0:
            jitter = (rng or random).randint(0, self.jitter_ms)
        return self.base_delay(attempts_so_far) + jitter


@dataclass
class RetryState:
    attempt_count: int = 0
    next_delay_ms: int = 0


def _wait(delay_ms: int, sleep: Callable[[float], None], cancel_event: threading.Event | None) -> None:
    seconds = delay_ms / 1000.0
    if cancel_event is None:
        sleep(seconds)
        return
    if cancel_event.wait(seconds):
        raise GenerationCancelled("Cancelled while waiting to retry")


def run_with_backoff(
    operation: Callable[[], T],
    policy: BackoffPolicy,
    sleep: Callable[[float], None] = time.sleep,
    cancel_event: threading.Event | None = None,
    rng: random.Random | None = None,
    label: str = "operation",
) -> T:
    """
    Run operation until it succeeds, fails terminally, or attempts run out.

    The last error is re-raised unchanged once the policy gives up.
    """
    state = RetryState()
    while True:
        if cancel_event is not None and cancel_event.is_set():
            raise GenerationCancelled(f"Cancelled before attempt {state.attempt_count + 1}")

        state.attempt_count += 1
        logger.info("%s: attempt %d/%d", label, state.attempt_count, policy.max_attempts)
        try:
            return operation()
        except ThumbnailError as e:
            if not policy.should_retry(e, state.attempt_count):
                if e.retryable:
                    logger.error("%s: giving up after %d attempts: %s", label, state.attempt_count, e)
                raise
            state.next_delay_ms = policy.next_delay(state.attempt_count, rng)
            logger.warning(
                "%s: %s Waiting %.1fs before retry...",
                label, type(e).__name__, state.next_delay_ms / 1000.0,
            )
            _wait(state.next_delay_ms, sleep, cancel_event)
