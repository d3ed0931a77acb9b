from __future__ import annotations

from types import SimpleNamespace

from catalog_sync.domain.enums import TaskType
from catalog_sync.queue.streams import GROUP_IMPORTER, GROUP_INDEXER, Q_IMPORT, Q_SEARCH, queue_for
from catalog_sync.tasks.import_processor import ImportProcessor
from catalog_sync.tasks.index_handlers import IndexHandlers
from catalog_sync.tasks.routing import (
    IMPORT_TASK_TYPES,
    INDEX_TASK_TYPES,
    build_import_handler_table,
    build_index_handler_table,
    unrouted_task_types,
)


def test_every_task_type_has_exactly_one_handler() -> None:
    index_table = build_index_handler_table(IndexHandlers(SimpleNamespace(), "th"))
    import_table = build_import_handler_table(
        ImportProcessor(SimpleNamespace(), SimpleNamespace(), SimpleNamespace())
    )

    assert unrouted_task_types(index_table, import_table) == set()
    assert set(index_table).isdisjoint(import_table)
    assert set(index_table) == INDEX_TASK_TYPES
    assert set(import_table) == IMPORT_TASK_TYPES


def test_task_types_route_to_owning_stream() -> None:
    for t in INDEX_TASK_TYPES:
        assert queue_for(t) == Q_SEARCH
    assert queue_for(TaskType.import_content) == Q_IMPORT
    assert GROUP_INDEXER != GROUP_IMPORTER


def test_task_type_parse() -> None:
    assert TaskType.parse("search:index_episode") == TaskType.index_episode
    assert TaskType.parse("search:unknown") is None
    assert TaskType.parse(None) is None
