"""
Политики задержки ретраев.

Назначение:
- задержка задаётся чистой функцией attempt -> seconds (attempt с 1)
- политику можно поменять через QUEUE_RETRY_POLICY, не трогая диспетчер

Политики:
- fixed       -> всегда base
- exponential -> base * 2^(attempt-1), не больше max_delay
- jittered    -> full jitter: random(0, exponential(attempt))
"""

from __future__ import annotations

import random
from collections.abc import Callable

from catalog_sync.common.config import Settings

RetryDelay = Callable[[int], float]


def fixed_delay(base_sec: float) -> RetryDelay:
    def _delay(attempt: int) -> float:
        return float(base_sec)

    return _delay


def exponential_delay(base_sec: float, *, max_sec: float) -> RetryDelay:
    def _delay(attempt: int) -> float:
        n = max(int(attempt), 1)
        # 2**n растёт быстро: ограничиваем показатель, чтобы не уйти в огромные float
        return float(min(base_sec * (2 ** min(n - 1, 32)), max_sec))

    return _delay


def jittered_delay(
    base_sec: float, *, max_sec: float, rng: random.Random | None = None
) -> RetryDelay:
    expo = exponential_delay(base_sec, max_sec=max_sec)
    r = rng or random.Random()

    def _delay(attempt: int) -> float:
        return r.uniform(0.0, expo(attempt))

    return _delay


def retry_delay_from_settings(s: Settings) -> RetryDelay:
    policy = (s.queue_retry_policy or "fixed").strip().lower()
    if policy == "fixed":
        return fixed_delay(s.queue_retry_delay_sec)
    if policy == "exponential":
        return exponential_delay(s.queue_retry_delay_sec, max_sec=s.queue_retry_max_delay_sec)
    if policy == "jittered":
        return jittered_delay(s.queue_retry_delay_sec, max_sec=s.queue_retry_max_delay_sec)
    raise ValueError(f"unknown QUEUE_RETRY_POLICY: {s.queue_retry_policy}")
