"""
Обработчики задач индексации (search:*).

Назначение:
- снимок сущности -> документ -> upsert в индекс (id документа = id сущности)
- удаление документа по id (документа нет -> успех)
- ошибки поискового движка -> TransientTaskError (диспетчер ретраит)
- provisioning индексов перед стартом воркера
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TypeVar

from catalog_sync.common.errors import SearchError, TransientTaskError
from catalog_sync.common.logging import get_project_logger
from catalog_sync.contracts.queue_events import (
    DeleteEpisodePayload,
    DeleteSeriesPayload,
    IndexEpisodePayload,
    IndexSeriesPayload,
)
from catalog_sync.domain.enums import TaskType
from catalog_sync.search.client import SearchClient
from catalog_sync.search.documents import EpisodeDocument, SeriesDocument
from catalog_sync.search.mappings import episodes_index, index_names, series_index

log = get_project_logger()

T = TypeVar("T")


class IndexHandlers:
    def __init__(self, search_client: SearchClient, index_prefix: str) -> None:
        self.search = search_client
        self.series_index = series_index(index_prefix)
        self.episodes_index = episodes_index(index_prefix)

    def _call(self, task_type: TaskType, entity_id: str, index: str, fn: Callable[[], T]) -> T:
        try:
            return fn()
        except SearchError as e:
            raise TransientTaskError(
                f"{task_type.value} failed: {e.message}",
                {
                    "task_type": task_type.value,
                    "entity_id": entity_id,
                    "index": index,
                    "status": e.status,
                },
            ) from e

    # -------------------------------------------------------------------------
    # Индексация
    # -------------------------------------------------------------------------
    def handle_index_series(self, payload: IndexSeriesPayload) -> None:
        series = payload.series
        doc = SeriesDocument.from_snapshot(series).to_json()
        self._call(
            TaskType.index_series,
            series.id,
            self.series_index,
            lambda: self.search.index_document(self.series_index, series.id, doc),
        )
        log.info(
            "series_indexed",
            extra={"payload": {"series_id": series.id, "index": self.series_index}},
        )

    def handle_index_episode(self, payload: IndexEpisodePayload) -> None:
        episode = payload.episode
        doc = EpisodeDocument.from_snapshot(episode, payload.assets).to_json()
        self._call(
            TaskType.index_episode,
            episode.id,
            self.episodes_index,
            lambda: self.search.index_document(self.episodes_index, episode.id, doc),
        )
        log.info(
            "episode_indexed",
            extra={
                "payload": {
                    "episode_id": episode.id,
                    "index": self.episodes_index,
                    "assets": len(payload.assets),
                }
            },
        )

    # -------------------------------------------------------------------------
    # Удаление
    # -------------------------------------------------------------------------
    def handle_delete_series(self, payload: DeleteSeriesPayload) -> None:
        deleted = self._call(
            TaskType.delete_series,
            payload.series_id,
            self.series_index,
            lambda: self.search.delete_document(self.series_index, payload.series_id),
        )
        log.info(
            "series_unindexed",
            extra={"payload": {"series_id": payload.series_id, "found": bool(deleted)}},
        )

    def handle_delete_episode(self, payload: DeleteEpisodePayload) -> None:
        deleted = self._call(
            TaskType.delete_episode,
            payload.episode_id,
            self.episodes_index,
            lambda: self.search.delete_document(self.episodes_index, payload.episode_id),
        )
        log.info(
            "episode_unindexed",
            extra={"payload": {"episode_id": payload.episode_id, "found": bool(deleted)}},
        )


def provision_indices(search_client: SearchClient, prefix: str) -> list[str]:
    """
    Создаёт отсутствующие индексы. Возвращает имена созданных.
    Ошибка поискового движка пробрасывается (старт воркера прерывается).
    """
    created: list[str] = []
    for name, mapping in index_names(prefix).items():
        if search_client.index_exists(name):
            log.info("search_index_exists", extra={"payload": {"index": name}})
            continue
        search_client.create_index(name, mapping)
        created.append(name)
    return created
