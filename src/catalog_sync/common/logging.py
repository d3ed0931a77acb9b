"""
Логирование проекта.

- stdout, JSON по умолчанию (LOG_FORMAT=text для локальной отладки)
- структурированные поля: extra={"payload": {...}}
- каждая строка несёт service (SERVICE_NAME или имя воркера) и поток пула
- строки, записанные внутри обработчика задачи, получают контекст задачи
  (task_type, event_id, entry_id), см. task_log_context()
"""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import Any

from catalog_sync.common.config import get_settings

_TASK_CONTEXT: ContextVar[dict[str, str] | None] = ContextVar("catalog_sync_task", default=None)

_TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s [%(threadName)s]%(task_suffix)s: %(message)s"


@contextmanager
def task_log_context(**fields: str | None) -> Iterator[None]:
    """
    Контекст задачи для всех строк лога текущего потока (пустые значения отбрасываются).
    """
    token = _TASK_CONTEXT.set({k: str(v) for k, v in fields.items() if v})
    try:
        yield
    finally:
        _TASK_CONTEXT.reset(token)


class TaskContextFilter(logging.Filter):
    # фиксирует контекст в записи в момент emit: форматирование может быть отложено
    def filter(self, record: logging.LogRecord) -> bool:
        task = _TASK_CONTEXT.get()
        record.task = dict(task) if task else None
        record.task_suffix = f" task={task['task_type']}" if task and "task_type" in task else ""
        return True


class JsonFormatter(logging.Formatter):
    def __init__(self, *, service: str) -> None:
        super().__init__()
        self.service = service

    def format(self, record: logging.LogRecord) -> str:
        out: dict[str, Any] = {
            "ts": datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "service": self.service,
            "logger": record.name,
            "thread": record.threadName,
            "msg": record.getMessage(),
        }
        task = getattr(record, "task", None)
        if task:
            out["task"] = task
        extra_payload = getattr(record, "payload", None)
        if isinstance(extra_payload, dict):
            out["payload"] = extra_payload
        if record.exc_info:
            out["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(out, ensure_ascii=False, default=str)


def build_formatter(service: str) -> logging.Formatter:
    if (get_settings().log_format or "").lower() == "text":
        return logging.Formatter(fmt=_TEXT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    return JsonFormatter(service=service)


def setup_logging(service: str | None = None) -> None:
    s = get_settings()
    root = logging.getLogger()
    level = getattr(logging, (s.log_level or "INFO").upper(), logging.INFO)
    root.setLevel(level)

    # Не плодим хэндлеры при повторном вызове
    if root.handlers:
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.addFilter(TaskContextFilter())
    handler.setFormatter(build_formatter(service or s.service_name))
    root.addHandler(handler)

    logging.getLogger("uvicorn.error").setLevel(level)
    logging.getLogger("uvicorn.access").setLevel(level)
    # urllib3 слишком болтлив на DEBUG при частых запросах к OpenSearch
    logging.getLogger("urllib3").setLevel(max(level, logging.INFO))


def get_project_logger(name: str = "catalog-sync") -> logging.Logger:
    return logging.getLogger(name)
