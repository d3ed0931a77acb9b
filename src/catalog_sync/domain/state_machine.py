"""
Машина состояний задачи очереди.

Назначение:
- Централизованные правила переходов enqueued -> processing -> итог
- Решение ретрай / DLQ по результату обработчика
- Предсказуемое поведение при ошибках
"""

from __future__ import annotations

from dataclasses import dataclass

from .enums import TaskState

# =============================================================================
# ДОПУСТИМЫЕ ПЕРЕХОДЫ
# =============================================================================
_TRANSITIONS: dict[TaskState, frozenset[TaskState]] = {
    TaskState.enqueued: frozenset({TaskState.processing}),
    TaskState.processing: frozenset(
        {TaskState.succeeded, TaskState.retrying, TaskState.dead_lettered}
    ),
    TaskState.retrying: frozenset({TaskState.processing}),
    TaskState.succeeded: frozenset(),
    TaskState.dead_lettered: frozenset(),
}


class InvalidTransitionError(ValueError):
    def __init__(self, current: TaskState, target: TaskState) -> None:
        super().__init__(f"invalid task transition: {current.value} -> {target.value}")
        self.current = current
        self.target = target


def can_transition(current: TaskState, target: TaskState) -> bool:
    return target in _TRANSITIONS[current]


def advance(current: TaskState, target: TaskState) -> TaskState:
    if not can_transition(current, target):
        raise InvalidTransitionError(current, target)
    return target


def is_terminal(state: TaskState) -> bool:
    return not _TRANSITIONS[state]


# =============================================================================
# РЕЗУЛЬТАТ ОБРАБОТКИ
# =============================================================================
@dataclass
class TransitionResult:
    ok: bool
    state: TaskState
    reason: str | None = None
    retry_in_sec: float | None = None


def resolve_failure(
    *,
    attempts: int,
    max_retry: int,
    retryable: bool,
    delay_sec: float | None = None,
    reason: str = "handler_failed",
) -> TransitionResult:
    """
    Итог неуспешного запуска.

    attempts - число неуспешных запусков ДО текущего (с 0).
    - retryable=False -> dead_lettered сразу
    - attempts < max_retry -> retrying (ещё есть бюджет)
    - иначе -> dead_lettered (retries_exhausted)
    """
    if not retryable:
        return TransitionResult(ok=False, state=TaskState.dead_lettered, reason=reason)

    if attempts < max_retry:
        return TransitionResult(
            ok=False,
            state=TaskState.retrying,
            reason=reason,
            retry_in_sec=delay_sec,
        )

    return TransitionResult(ok=False, state=TaskState.dead_lettered, reason="retries_exhausted")
