from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

import pytest

from catalog_sync.common.errors import EnqueueError, PermanentTaskError, SearchError
from catalog_sync.contracts.entities import EpisodeAssetSnapshot, EpisodeSnapshot, SeriesSnapshot
from catalog_sync.contracts.queue_events import ImportContentPayload
from catalog_sync.importers.base import AssetDraft, EpisodeDraft, ImporterRegistry
from catalog_sync.importers.youtube import YouTubeImporter
from catalog_sync.services.local_pipeline import InlineTaskQueue
from catalog_sync.tasks.import_processor import ImportProcessor
from catalog_sync.tasks.index_handlers import IndexHandlers, provision_indices
from catalog_sync.tasks.routing import build_import_handler_table, build_index_handler_table

SERIES_ID = "7b0c2f6e-2f5e-4a4b-9a51-0e6f0a4b9c11"
EPISODE_ID = "1f2e3d4c-5b6a-4789-8abc-def012345678"


class _Engine:
    def __init__(self) -> None:
        self.indices: dict[str, dict[str, dict[str, Any]]] = {}
        self.create_calls = 0
        self.down = False

    def index_exists(self, index: str) -> bool:
        return index in self.indices

    def create_index(self, index: str, mapping: dict[str, Any]) -> None:
        self.create_calls += 1
        self.indices.setdefault(index, {})

    def index_document(self, index: str, doc_id: str, document: dict[str, Any]) -> None:
        if self.down:
            raise SearchError("index document failed", status=503)
        self.indices.setdefault(index, {})[doc_id] = dict(document)

    def delete_document(self, index: str, doc_id: str) -> bool:
        return self.indices.get(index, {}).pop(doc_id, None) is not None


class _Store:
    def __init__(self) -> None:
        self.episodes: list[EpisodeDraft] = []

    def create_episode(self, draft: EpisodeDraft) -> EpisodeSnapshot:
        self.episodes.append(draft)
        return EpisodeSnapshot(
            id=EPISODE_ID,
            series_id=str(draft.series_id),
            title=draft.title,
            publish_date=datetime(2024, 5, 1, tzinfo=UTC),
        )

    def create_asset(self, draft: AssetDraft) -> EpisodeAssetSnapshot:
        return EpisodeAssetSnapshot(
            id="a-1",
            episode_id=str(draft.episode_id),
            asset_type=draft.asset_type,
            mime_type=draft.mime_type,
            url=draft.url,
        )


def _queue(engine: _Engine, store: _Store | None = None) -> InlineTaskQueue:
    queue = InlineTaskQueue(provisioners=[lambda: provision_indices(engine, "th")])
    processor = ImportProcessor(
        store or _Store(), queue, ImporterRegistry({"youtube": YouTubeImporter()})
    )
    queue.handlers = {
        **build_index_handler_table(IndexHandlers(engine, "th")),
        **build_import_handler_table(processor),
    }
    return queue


def test_inline_index_updates_search_before_returning() -> None:
    engine = _Engine()
    queue = _queue(engine)

    handle = queue.enqueue_index_series(SeriesSnapshot(id="s-1", title="Planet"))

    assert handle.task_id.startswith("inline-")
    assert engine.indices["th-series"]["s-1"]["title"] == "Planet"

    queue.enqueue_delete_series("s-1")
    assert engine.indices["th-series"] == {}


def test_inline_provisions_indices_once() -> None:
    engine = _Engine()
    queue = _queue(engine)

    queue.enqueue_index_series(SeriesSnapshot(id="s-1"))
    queue.enqueue_index_series(SeriesSnapshot(id="s-2"))

    assert engine.create_calls == 2  # series + episodes, один раз
    assert set(engine.indices["th-series"]) == {"s-1", "s-2"}


def test_inline_import_indexes_created_episode() -> None:
    engine = _Engine()
    store = _Store()
    queue = _queue(engine, store)

    queue.enqueue_import_content(
        ImportContentPayload.of("youtube", "https://youtu.be/abc", SERIES_ID)
    )

    assert len(store.episodes) == 1
    doc = engine.indices["th-episodes"][EPISODE_ID]
    assert doc["series_id"] == SERIES_ID
    assert [a["id"] for a in doc["assets"]] == ["a-1"]


def test_inline_handler_failure_surfaces_as_enqueue_error() -> None:
    engine = _Engine()
    engine.down = True
    queue = _queue(engine)

    with pytest.raises(EnqueueError) as exc_info:
        queue.enqueue_index_series(SeriesSnapshot(id="s-1"))
    assert exc_info.value.message == "inline task failed"
    assert exc_info.value.details["task_type"] == "search:index_series"


def test_inline_unsupported_source_never_touches_store() -> None:
    store = _Store()
    queue = _queue(_Engine(), store)

    with pytest.raises(EnqueueError) as exc_info:
        queue.enqueue_import_content(
            ImportContentPayload.of("vimeo", "https://vimeo.com/1", SERIES_ID)
        )
    assert isinstance(exc_info.value.__cause__, PermanentTaskError)
    assert store.episodes == []


def test_inline_queue_without_handler_rejects_task() -> None:
    with pytest.raises(EnqueueError, match="no inline handler"):
        InlineTaskQueue().enqueue_delete_episode("e-1")
