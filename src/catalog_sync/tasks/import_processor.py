"""
Обработчик задачи import:content.

Алгоритм:
1) импортёр по source_type (нет -> PermanentTaskError, хранилище не трогаем)
2) fetch_episode (невалидный series_id -> PermanentTaskError)
3) create_episode: БД назначает постоянный id
4) ассет (если есть) перепривязывается к постоянному id и сохраняется
5) ставится задача индексации эпизода (best-effort)

Ошибки записи в хранилище -> TransientTaskError (ретрай).
Шаг 5 не ретраит задачу: эпизод уже сохранён, повтор импорта создал бы дубль.
"""

from __future__ import annotations

import dataclasses
from typing import TYPE_CHECKING

from sqlalchemy.exc import SQLAlchemyError

from catalog_sync.common.best_effort import best_effort
from catalog_sync.common.errors import (
    ImporterNotFoundError,
    PermanentTaskError,
    ProviderError,
    TransientTaskError,
    ValidationError,
)
from catalog_sync.common.ids import parse_uuid
from catalog_sync.common.logging import get_project_logger
from catalog_sync.contracts.entities import EpisodeAssetSnapshot
from catalog_sync.contracts.queue_events import ImportContentPayload
from catalog_sync.domain.enums import TaskType
from catalog_sync.importers.base import ImporterRegistry

if TYPE_CHECKING:
    from catalog_sync.queue.client import TaskQueue
    from catalog_sync.storage.store import Store

log = get_project_logger()


class ImportProcessor:
    def __init__(self, store: Store, queue: TaskQueue, importers: ImporterRegistry) -> None:
        self.store = store
        self.queue = queue
        self.importers = importers

    def process(self, payload: ImportContentPayload) -> None:
        ctx = {
            "task_type": TaskType.import_content.value,
            "source_type": payload.source_type,
            "series_id": payload.series_id,
        }

        try:
            importer = self.importers.get(payload.source_type)
        except ImporterNotFoundError as e:
            raise PermanentTaskError("unsupported import source", ctx) from e

        try:
            draft, asset_draft = importer.fetch_episode(payload.source_url, payload.series_id)
        except ValidationError as e:
            raise PermanentTaskError(f"failed to fetch episode: {e.message}", ctx) from e
        except ProviderError as e:
            raise TransientTaskError(f"failed to fetch episode: {e.message}", ctx) from e

        try:
            episode = self.store.create_episode(draft)
        except SQLAlchemyError as e:
            raise TransientTaskError("failed to create episode", ctx) from e

        assets: list[EpisodeAssetSnapshot] = []
        if asset_draft is not None:
            asset_draft = dataclasses.replace(
                asset_draft, episode_id=parse_uuid(episode.id, field="episode_id")
            )
            try:
                assets.append(self.store.create_asset(asset_draft))
            except SQLAlchemyError as e:
                raise TransientTaskError(
                    "failed to create asset", {**ctx, "entity_id": episode.id}
                ) from e

        best_effort(
            "enqueue_index_episode",
            lambda: self.queue.enqueue_index_episode(episode, assets),
            entity_id=episode.id,
            task_type=TaskType.index_episode.value,
        )

        log.info(
            "episode_imported",
            extra={
                "payload": {
                    "episode_id": episode.id,
                    "series_id": payload.series_id,
                    "source_type": payload.source_type,
                    "assets": len(assets),
                }
            },
        )
