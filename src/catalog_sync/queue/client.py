"""
Продюсер задач (Queue Client).

Назначение:
- Упаковка payload в компактный JSON и постановка в stream, владеющий типом задачи
- Удобные функции enqueue_* для каждого типа задачи
- Любая ошибка сериализации/брокера -> EnqueueError (ничего не глотаем)

Режимы (QUEUE_MODE):
- redis  -> RedisTaskQueue (XADD)
- inline -> InlineTaskQueue (services.local_pipeline): задача выполняется сразу в процессе
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

import redis
from pydantic import BaseModel
from pydantic_core import PydanticSerializationError

from catalog_sync.common.config import get_settings
from catalog_sync.common.errors import EnqueueError
from catalog_sync.common.ids import new_event_id
from catalog_sync.common.logging import get_project_logger
from catalog_sync.common.metrics import QUEUE_ENQUEUED_TOTAL
from catalog_sync.contracts.entities import EpisodeAssetSnapshot, EpisodeSnapshot, SeriesSnapshot
from catalog_sync.contracts.queue_events import (
    PAYLOAD_MODELS,
    DeleteEpisodePayload,
    DeleteSeriesPayload,
    ImportContentPayload,
    IndexEpisodePayload,
    IndexSeriesPayload,
)
from catalog_sync.contracts.versions import QUEUE_SCHEMA_VERSION
from catalog_sync.domain.enums import TaskType

from .redis import redis_client
from .streams import build_fields, queue_for

log = get_project_logger()


@dataclass(frozen=True)
class TaskHandle:
    task_type: TaskType
    queue: str
    task_id: str  # id записи, назначенный брокером
    event_id: str


class TaskQueue(Protocol):
    def enqueue(self, task_type: TaskType, payload: BaseModel) -> TaskHandle: ...

    def enqueue_index_series(self, series: SeriesSnapshot) -> TaskHandle: ...

    def enqueue_index_episode(
        self, episode: EpisodeSnapshot, assets: Sequence[EpisodeAssetSnapshot]
    ) -> TaskHandle: ...

    def enqueue_delete_series(self, series_id: str) -> TaskHandle: ...

    def enqueue_delete_episode(self, episode_id: str) -> TaskHandle: ...

    def enqueue_import_content(self, payload: ImportContentPayload) -> TaskHandle: ...

    def close(self) -> None: ...


def encode_payload(task_type: TaskType, payload: BaseModel) -> str:
    """
    payload -> канонический компактный JSON.
    """
    expected = PAYLOAD_MODELS.get(task_type)
    if expected is None or not isinstance(payload, expected):
        raise EnqueueError(
            "payload type mismatch",
            {"task_type": str(task_type), "payload_type": type(payload).__name__},
        )
    try:
        return payload.model_dump_json()
    except (PydanticSerializationError, TypeError, ValueError) as e:
        raise EnqueueError(
            "payload serialization failed",
            {"task_type": task_type.value, "err": str(e)[:200]},
        ) from e


# =============================================================================
# ОБЩАЯ ЛОГИКА ПРОДЮСЕРА
# =============================================================================
class BaseTaskQueue:
    def _publish(self, queue: str, fields: dict[str, str]) -> str:
        raise NotImplementedError

    def enqueue(self, task_type: TaskType, payload: BaseModel) -> TaskHandle:
        queue = queue_for(task_type)
        try:
            data = encode_payload(task_type, payload)
        except EnqueueError:
            QUEUE_ENQUEUED_TOTAL.labels(task_type=task_type.value, result="error").inc()
            raise

        event_id = new_event_id("task")
        fields = build_fields(
            task_type=task_type.value,
            payload=data,
            event_id=event_id,
            schema_version=QUEUE_SCHEMA_VERSION,
        )
        try:
            task_id = self._publish(queue, fields)
        except EnqueueError:
            QUEUE_ENQUEUED_TOTAL.labels(task_type=task_type.value, result="error").inc()
            raise

        QUEUE_ENQUEUED_TOTAL.labels(task_type=task_type.value, result="ok").inc()
        log.info(
            "task_enqueued",
            extra={
                "payload": {
                    "task_type": task_type.value,
                    "queue": queue,
                    "task_id": task_id,
                    "event_id": event_id,
                }
            },
        )
        return TaskHandle(task_type=task_type, queue=queue, task_id=task_id, event_id=event_id)

    def enqueue_index_series(self, series: SeriesSnapshot) -> TaskHandle:
        return self.enqueue(TaskType.index_series, IndexSeriesPayload(series=series))

    def enqueue_index_episode(
        self, episode: EpisodeSnapshot, assets: Sequence[EpisodeAssetSnapshot]
    ) -> TaskHandle:
        return self.enqueue(
            TaskType.index_episode, IndexEpisodePayload(episode=episode, assets=list(assets))
        )

    def enqueue_delete_series(self, series_id: str) -> TaskHandle:
        return self.enqueue(TaskType.delete_series, DeleteSeriesPayload(series_id=str(series_id)))

    def enqueue_delete_episode(self, episode_id: str) -> TaskHandle:
        return self.enqueue(
            TaskType.delete_episode, DeleteEpisodePayload(episode_id=str(episode_id))
        )

    def enqueue_import_content(self, payload: ImportContentPayload) -> TaskHandle:
        return self.enqueue(TaskType.import_content, payload)

    def close(self) -> None:
        return None


# =============================================================================
# REDIS STREAMS
# =============================================================================
class RedisTaskQueue(BaseTaskQueue):
    def __init__(self, client: redis.Redis) -> None:
        self.client = client

    def _publish(self, queue: str, fields: dict[str, str]) -> str:
        try:
            return str(self.client.xadd(queue, fields))
        except redis.RedisError as e:
            raise EnqueueError(
                "broker unavailable",
                {"queue": queue, "task_type": fields.get("type"), "err": str(e)[:200]},
            ) from e

    def close(self) -> None:
        self.client.close()


_QUEUE: TaskQueue | None = None


def build_task_queue() -> TaskQueue:
    mode = (get_settings().queue_mode or "").strip().lower()
    if mode == "inline":
        from catalog_sync.services.local_pipeline import build_inline_queue

        return build_inline_queue()
    return RedisTaskQueue(redis_client())


def get_task_queue() -> TaskQueue:
    """
    Singleton продюсера для процесса.
    """
    global _QUEUE
    if _QUEUE is None:
        _QUEUE = build_task_queue()
    return _QUEUE
