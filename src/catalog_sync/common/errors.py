"""
Единые ошибки и коды ошибок.

Назначение:
- предсказуемые коды для HTTP/очередей/DLQ
- единый стиль исключений по проекту
- классификация ошибок задач: permanent (сразу в DLQ) / transient (ретрай)
"""

from __future__ import annotations

from dataclasses import dataclass


class ErrCode:
    # Общие
    UNKNOWN = "unknown"
    VALIDATION = "validation"
    NOT_FOUND = "not_found"

    # Очереди / задачи
    ENQUEUE_ERROR = "enqueue_error"
    TASK_PERMANENT = "task_permanent"
    TASK_TRANSIENT = "task_transient"

    # Провайдеры
    SEARCH_ERROR = "search_error"
    IMPORTER_NOT_FOUND = "importer_not_found"
    IMPORTER_PROVIDER_ERROR = "importer_provider_error"

    # Инфра/хранилища
    DB_ERROR = "db_error"
    REDIS_ERROR = "redis_error"


@dataclass
class AppError(Exception):
    """
    Базовая ошибка приложения.
    - code: стабильный код ошибки
    - message: безопасное сообщение
    - details: доп. данные (без секретов)
    """

    code: str
    message: str
    details: dict | None = None

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.code}: {self.message}"


class ValidationError(AppError):
    def __init__(self, message: str = "Ошибка валидации", details: dict | None = None) -> None:
        super().__init__(ErrCode.VALIDATION, message, details)


class NotFoundError(AppError):
    def __init__(self, message: str = "Не найдено", details: dict | None = None) -> None:
        super().__init__(ErrCode.NOT_FOUND, message, details)


class ProviderError(AppError):
    def __init__(self, code: str, message: str, details: dict | None = None) -> None:
        super().__init__(code, message, details)


class ImporterNotFoundError(NotFoundError):
    def __init__(self, source_type: str) -> None:
        super().__init__("importer not found", {"source_type": source_type})
        self.code = ErrCode.IMPORTER_NOT_FOUND


class EnqueueError(AppError):
    def __init__(self, message: str, details: dict | None = None) -> None:
        super().__init__(ErrCode.ENQUEUE_ERROR, message, details)


class SearchError(ProviderError):
    def __init__(
        self, message: str, *, status: int | None = None, details: dict | None = None
    ) -> None:
        super().__init__(ErrCode.SEARCH_ERROR, message, {**(details or {}), "status": status})
        self.status = status


# =============================================================================
# ОШИБКИ ОБРАБОТКИ ЗАДАЧ
# =============================================================================
class TaskError(AppError):
    """
    Ошибка обработчика задачи.

    retryable=False -> задача уходит в DLQ без ретраев
    retryable=True  -> ретраи до QUEUE_MAX_RETRY
    """

    retryable: bool = True

    def __init__(self, code: str, message: str, details: dict | None = None) -> None:
        super().__init__(code, message, details)


class PermanentTaskError(TaskError):
    retryable = False

    def __init__(self, message: str, details: dict | None = None) -> None:
        super().__init__(ErrCode.TASK_PERMANENT, message, details)


class TransientTaskError(TaskError):
    retryable = True

    def __init__(self, message: str, details: dict | None = None) -> None:
        super().__init__(ErrCode.TASK_TRANSIENT, message, details)
