"""
Время: всё в UTC.

- utc_now / utc_now_iso: timestamps сущностей и полей enqueued_at / failed_at
- epoch_sec / due_at: score записей в <stream>:delayed
"""

from __future__ import annotations

import time
from datetime import UTC, datetime


def utc_now() -> datetime:
    return datetime.now(UTC)


def utc_now_iso() -> str:
    return utc_now().isoformat()


def epoch_sec() -> float:
    return time.time()


def due_at(delay_sec: float) -> float:
    """
    Epoch-секунда, когда отложенный ретрай созреет. Отрицательная задержка = сразу.
    """
    return epoch_sec() + max(float(delay_sec), 0.0)
