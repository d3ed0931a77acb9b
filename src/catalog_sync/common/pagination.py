"""
Пагинация для read-путей.

- offset-пагинация: page (с 1) и page_size (1..100)
- page_count = ceil(total / page_size), но не меньше 1
- fetch_paginated: count и страница данных запрашиваются параллельно
"""

from __future__ import annotations

import math
from collections.abc import Callable, Sequence
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import TypeVar

DEFAULT_PAGE = 1
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100

T = TypeVar("T")

# Общий пул на процесс: пара (count, page) на каждый запрос
_POOL = ThreadPoolExecutor(max_workers=16, thread_name_prefix="paginate")


@dataclass(frozen=True)
class PaginationMeta:
    page: int
    page_size: int
    item_count: int
    page_count: int


def page_offset(page: int, page_size: int) -> int:
    return page_size * (page - 1)


def page_count(total: int, page_size: int) -> int:
    if page_size <= 0:
        raise ValueError("page_size must be positive")
    return max(math.ceil(total / page_size), 1)


def calculate_pagination(page: int, page_size: int, item_count: int) -> PaginationMeta:
    return PaginationMeta(
        page=page,
        page_size=page_size,
        item_count=item_count,
        page_count=page_count(item_count, page_size),
    )


def fetch_paginated(
    fetch_count: Callable[[], int],
    fetch_page: Callable[[], Sequence[T]],
    *,
    timeout: float | None = None,
    executor: ThreadPoolExecutor | None = None,
) -> tuple[int, list[T]]:
    """
    Запускает fetch_count и fetch_page параллельно и ждёт оба.

    Если упал хотя бы один, пробрасывается первая ошибка по времени завершения,
    результат второго отбрасывается. Count и данные возвращаются только вместе.
    """
    pool = executor or _POOL
    count_future: Future = pool.submit(fetch_count)
    page_future: Future = pool.submit(fetch_page)

    first_error: BaseException | None = None
    for done in as_completed((count_future, page_future), timeout=timeout):
        exc = done.exception()
        if exc is not None and first_error is None:
            first_error = exc

    if first_error is not None:
        raise first_error

    return int(count_future.result()), list(page_future.result())
