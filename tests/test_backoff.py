import random
import threading

import pytest

from thumbstudio.backoff import BackoffPolicy, run_with_backoff
from thumbstudio.errors import (
    GenerationCancelled,
    PolicyBlocked,
    QuotaExceeded,
    TransportError,
)


def failing(*errors, result="ok"):
    """Operation that raises the given errors in order, then returns result."""
    calls = []

    def operation():
        calls.append(len(calls) + 1)
        if len(calls) <= len(errors):
            raise errors[len(calls) - 1]
        return result

    return operation, calls


def test_delays_grow_then_cap():
    policy = BackoffPolicy(base_delay_ms=1_000, max_delay_ms=4_000, jitter_ms=0)
    delays = [policy.next_delay(n) for n in range(1, 7)]
    assert delays == [1_000, 2_000, 4_000, 4_000, 4_000, 4_000]
    assert delays == sorted(delays)


def test_jitter_stays_within_bound():
    policy = BackoffPolicy(base_delay_ms=1_000, max_delay_ms=4_000, jitter_ms=500)
    rng = random.Random(7)
    for attempt in range(1, 6):
        delay = policy.next_delay(attempt, rng)
        base = policy.base_delay(attempt)
        assert base <= delay <= base + 500


def test_should_retry_only_retryable_errors_with_attempts_left():
    policy = BackoffPolicy(max_attempts=3)
    assert policy.should_retry(QuotaExceeded("429"), 1)
    assert policy.should_retry(QuotaExceeded("429"), 2)
    assert not policy.should_retry(QuotaExceeded("429"), 3)
    assert not policy.should_retry(PolicyBlocked("SAFETY"), 1)
    assert policy.should_retry(TransportError("503", retryable=True), 1)
    assert not policy.should_retry(TransportError("400", retryable=False), 1)
    assert not policy.should_retry(ValueError("boom"), 1)
    assert not policy.should_retry(QuotaExceeded("429"), 1, max_attempts=1)


def test_max_attempts_must_be_positive():
    with pytest.raises(ValueError):
        BackoffPolicy(max_attempts=0)


def test_quota_every_time_runs_exactly_max_attempts():
    policy = BackoffPolicy(max_attempts=3, base_delay_ms=10, max_delay_ms=40, jitter_ms=0)
    operation, calls = failing(QuotaExceeded("1"), QuotaExceeded("2"), QuotaExceeded("3"), QuotaExceeded("4"))
    sleeps = []

    with pytest.raises(QuotaExceeded) as exc_info:
        run_with_backoff(operation, policy, sleep=sleeps.append)

    assert calls == [1, 2, 3]
    assert sleeps == [0.01, 0.02]
    assert exc_info.value.detail == "3"


def test_recovers_after_transient_failure():
    policy = BackoffPolicy(max_attempts=3, base_delay_ms=500, jitter_ms=0)
    operation, calls = failing(QuotaExceeded("busy"), result="image")
    sleeps = []

    assert run_with_backoff(operation, policy, sleep=sleeps.append) == "image"
    assert calls == [1, 2]
    assert sleeps == [0.5]


def test_terminal_error_is_not_retried():
    policy = BackoffPolicy(max_attempts=5)
    operation, calls = failing(PolicyBlocked("SAFETY"))
    sleeps = []

    with pytest.raises(PolicyBlocked):
        run_with_backoff(operation, policy, sleep=sleeps.append)
    assert calls == [1]
    assert sleeps == []


def test_cancel_before_first_attempt():
    event = threading.Event()
    event.set()
    operation, calls = failing()

    with pytest.raises(GenerationCancelled):
        run_with_backoff(operation, BackoffPolicy(), cancel_event=event)
    assert calls == []


def test_cancel_interrupts_wait():
    event = threading.Event()

    def operation():
        event.set()
        raise QuotaExceeded("busy")

    # A 60s delay would hang the test if the wait were not interruptible
    policy = BackoffPolicy(max_attempts=3, base_delay_ms=60_000, max_delay_ms=60_000, jitter_ms=0)
    with pytest.raises(GenerationCancelled):
        run_with_backoff(operation, policy, cancel_event=event)
