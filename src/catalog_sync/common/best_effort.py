"""
Best-effort побочные эффекты.

Назначение:
- явно пометить вызовы, чья ошибка НЕ должна ломать основную операцию
  (пример: постановка index-задачи после успешной записи в БД)
- ошибка логируется с контекстом и возвращается в BestEffort, а не пробрасывается
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from .errors import AppError
from .logging import get_project_logger

log = get_project_logger()

T = TypeVar("T")


@dataclass(frozen=True)
class BestEffort(Generic[T]):
    value: T | None = None
    error: BaseException | None = None
    context: dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.error is None


def best_effort(
    op: str,
    fn: Callable[[], T],
    *,
    errors: tuple[type[BaseException], ...] = (AppError,),
    **context: Any,
) -> BestEffort[T]:
    """
    Выполнить fn(); ошибки из `errors` логируются (warning) и возвращаются в результате.
    Прочие исключения пробрасываются как есть.
    """
    try:
        return BestEffort(value=fn(), context=context)
    except errors as e:
        log.warning(
            "best_effort_failed",
            extra={"payload": {"op": op, "err": str(e)[:300], **context}},
        )
        return BestEffort(error=e, context=context)
