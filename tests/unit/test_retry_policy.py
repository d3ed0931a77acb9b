from __future__ import annotations

import random

import pytest

from catalog_sync.common.config import get_settings
from catalog_sync.queue.retry import (
    exponential_delay,
    fixed_delay,
    jittered_delay,
    retry_delay_from_settings,
)


def test_fixed_delay() -> None:
    d = fixed_delay(5)
    assert [d(1), d(2), d(10)] == [5.0, 5.0, 5.0]


def test_exponential_delay_doubles_and_caps() -> None:
    d = exponential_delay(2, max_sec=30)
    assert [d(1), d(2), d(3), d(4)] == [2.0, 4.0, 8.0, 16.0]
    assert d(5) == 30.0
    assert d(10_000) == 30.0


def test_jittered_delay_within_exponential_bound() -> None:
    d = jittered_delay(1, max_sec=60, rng=random.Random(7))
    for attempt in range(1, 8):
        value = d(attempt)
        assert 0.0 <= value <= min(2 ** (attempt - 1), 60)


def test_retry_delay_from_settings() -> None:
    s = get_settings()
    snapshot = (s.queue_retry_policy, s.queue_retry_delay_sec, s.queue_retry_max_delay_sec)
    try:
        s.queue_retry_policy = "exponential"
        s.queue_retry_delay_sec = 1
        s.queue_retry_max_delay_sec = 4
        d = retry_delay_from_settings(s)
        assert [d(1), d(2), d(3), d(4)] == [1.0, 2.0, 4.0, 4.0]

        s.queue_retry_policy = "bogus"
        with pytest.raises(ValueError):
            retry_delay_from_settings(s)
    finally:
        s.queue_retry_policy, s.queue_retry_delay_sec, s.queue_retry_max_delay_sec = snapshot
