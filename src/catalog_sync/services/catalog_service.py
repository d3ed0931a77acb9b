"""
Публикация изменений каталога в очередь.

Назначение:
- после коммита записи ставим задачу индексации/удаления (best-effort):
  ошибка постановки логируется и НЕ ломает запись
- постановка импорта, наоборот, обязательна: ошибка -> EnqueueError наружу
- полная переиндексация каталога (scripts/reindex_catalog.py)
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import asdict, dataclass

from catalog_sync.common.best_effort import BestEffort, best_effort
from catalog_sync.common.logging import get_project_logger
from catalog_sync.contracts.entities import (
    EpisodeAssetSnapshot,
    EpisodeSnapshot,
    SeriesSnapshot,
)
from catalog_sync.contracts.queue_events import ImportContentPayload
from catalog_sync.domain.enums import TaskType
from catalog_sync.queue.client import TaskHandle, TaskQueue

log = get_project_logger()


def publish_series_indexed(queue: TaskQueue, series: SeriesSnapshot) -> BestEffort[TaskHandle]:
    return best_effort(
        "enqueue_index_series",
        lambda: queue.enqueue_index_series(series),
        task_type=TaskType.index_series.value,
        entity_id=series.id,
    )


def publish_series_deleted(
    queue: TaskQueue, series_id: str, *, episode_ids: Sequence[str] = ()
) -> list[BestEffort[TaskHandle]]:
    """
    Удаление серии убирает из индекса и её эпизоды (в БД они удалены каскадом).
    """
    results = [
        best_effort(
            "enqueue_delete_series",
            lambda: queue.enqueue_delete_series(series_id),
            task_type=TaskType.delete_series.value,
            entity_id=series_id,
        )
    ]
    for episode_id in episode_ids:
        results.append(publish_episode_deleted(queue, episode_id))
    return results


def publish_episode_indexed(
    queue: TaskQueue, episode: EpisodeSnapshot, assets: Sequence[EpisodeAssetSnapshot]
) -> BestEffort[TaskHandle]:
    return best_effort(
        "enqueue_index_episode",
        lambda: queue.enqueue_index_episode(episode, assets),
        task_type=TaskType.index_episode.value,
        entity_id=episode.id,
    )


def publish_episode_deleted(queue: TaskQueue, episode_id: str) -> BestEffort[TaskHandle]:
    return best_effort(
        "enqueue_delete_episode",
        lambda: queue.enqueue_delete_episode(episode_id),
        task_type=TaskType.delete_episode.value,
        entity_id=episode_id,
    )


def request_import(queue: TaskQueue, payload: ImportContentPayload) -> TaskHandle:
    handle = queue.enqueue_import_content(payload)
    log.info(
        "import_requested",
        extra={
            "payload": {
                "task_id": handle.task_id,
                "source_type": payload.source_type,
                "series_id": payload.series_id,
            }
        },
    )
    return handle


# =============================================================================
# REINDEX
# =============================================================================
@dataclass
class ReindexReport:
    series_enqueued: int = 0
    episodes_enqueued: int = 0
    failed: int = 0


def reindex_catalog(
    queue: TaskQueue,
    series: Iterable[SeriesSnapshot],
    episodes: Iterable[tuple[EpisodeSnapshot, Sequence[EpisodeAssetSnapshot]]],
) -> ReindexReport:
    """
    Полная переиндексация: по задаче на каждую серию и эпизод.
    Upsert идемпотентен, повторный запуск безопасен.
    """
    report = ReindexReport()
    for s in series:
        if publish_series_indexed(queue, s).ok:
            report.series_enqueued += 1
        else:
            report.failed += 1
    for episode, assets in episodes:
        if publish_episode_indexed(queue, episode, assets).ok:
            report.episodes_enqueued += 1
        else:
            report.failed += 1

    log.info("reindex_enqueued", extra={"payload": asdict(report)})
    return report
