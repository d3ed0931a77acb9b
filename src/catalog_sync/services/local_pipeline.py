"""
Локальный inline-конвейер (QUEUE_MODE=inline).

Назначение:
- dev без Redis и воркеров: задача выполняется синхронно в процессе продюсера
- та же упаковка payload и те же таблицы обработчиков, что у воркеров (tasks.routing)
- provisioning индексов один раз, перед первой задачей

Ограничения:
- нет ретраев и DLQ: ошибка обработчика -> EnqueueError у вызывающего
  (запись каталога логирует её как best-effort, POST /import отвечает 503)
- запрос API ждёт окончания обработки
"""

from __future__ import annotations

import itertools
import threading
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from catalog_sync.common.config import get_settings
from catalog_sync.common.errors import AppError, EnqueueError
from catalog_sync.common.logging import get_project_logger
from catalog_sync.common.metrics import QUEUE_TASKS_TOTAL, track_task_latency
from catalog_sync.contracts.queue_events import decode_payload
from catalog_sync.domain.enums import TaskType
from catalog_sync.importers.base import default_registry
from catalog_sync.queue.client import BaseTaskQueue
from catalog_sync.search.client import get_search_client
from catalog_sync.storage.store import SqlStore
from catalog_sync.tasks.import_processor import ImportProcessor
from catalog_sync.tasks.index_handlers import IndexHandlers, provision_indices
from catalog_sync.tasks.routing import build_import_handler_table, build_index_handler_table

log = get_project_logger()

SERVICE_NAME = "inline"


class InlineTaskQueue(BaseTaskQueue):
    def __init__(
        self,
        handlers: Mapping[TaskType, Callable[[Any], None]] | None = None,
        *,
        provisioners: Iterable[Callable[[], Any]] = (),
    ) -> None:
        self.handlers = dict(handlers or {})
        self.provisioners = list(provisioners)
        self._provisioned = False
        self._lock = threading.Lock()
        self._seq = itertools.count(1)

    def _ensure_provisioned(self) -> None:
        with self._lock:
            if self._provisioned:
                return
            for provision in self.provisioners:
                provision()
            self._provisioned = True

    def _publish(self, queue: str, fields: dict[str, str]) -> str:
        task_type = TaskType(fields["type"])
        handler = self.handlers.get(task_type)
        if handler is None:
            raise EnqueueError("no inline handler", {"queue": queue, "task_type": task_type.value})

        task_id = f"inline-{next(self._seq)}"
        try:
            self._ensure_provisioned()
            payload = decode_payload(task_type, fields["payload"])
            with track_task_latency(SERVICE_NAME, task_type.value):
                handler(payload)
        except Exception as e:
            QUEUE_TASKS_TOTAL.labels(
                service=SERVICE_NAME, task_type=task_type.value, result="failed"
            ).inc()
            details: dict[str, Any] = {
                "queue": queue,
                "task_type": task_type.value,
                "task_id": task_id,
                "err": str(e)[:200],
            }
            if isinstance(e, AppError):
                details["code"] = e.code
            log.error("task_inline_failed", extra={"payload": details})
            raise EnqueueError("inline task failed", details) from e

        QUEUE_TASKS_TOTAL.labels(
            service=SERVICE_NAME, task_type=task_type.value, result="success"
        ).inc()
        return task_id


def build_inline_queue() -> InlineTaskQueue:
    s = get_settings()
    search = get_search_client()
    prefix = s.opensearch_index_prefix

    queue = InlineTaskQueue(provisioners=[lambda: provision_indices(search, prefix)])
    # импорт ставит search:index_episode в ту же inline-очередь
    processor = ImportProcessor(SqlStore(), queue, default_registry())
    queue.handlers = {
        **build_index_handler_table(IndexHandlers(search, prefix)),
        **build_import_handler_table(processor),
    }
    return queue
