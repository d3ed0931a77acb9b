"""
Таблицы маршрутизации TaskType -> обработчик.

- индексатор обслуживает search:*, импортёр обслуживает import:content
- объединение таблиц покрывает весь TaskType (проверяется тестом)
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

from catalog_sync.domain.enums import TaskType

from .import_processor import ImportProcessor
from .index_handlers import IndexHandlers

HandlerTable = dict[TaskType, Callable[[Any], None]]

INDEX_TASK_TYPES: frozenset[TaskType] = frozenset(
    {
        TaskType.index_series,
        TaskType.index_episode,
        TaskType.delete_series,
        TaskType.delete_episode,
    }
)
IMPORT_TASK_TYPES: frozenset[TaskType] = frozenset({TaskType.import_content})


def build_index_handler_table(handlers: IndexHandlers) -> HandlerTable:
    return {
        TaskType.index_series: handlers.handle_index_series,
        TaskType.index_episode: handlers.handle_index_episode,
        TaskType.delete_series: handlers.handle_delete_series,
        TaskType.delete_episode: handlers.handle_delete_episode,
    }


def build_import_handler_table(processor: ImportProcessor) -> HandlerTable:
    return {TaskType.import_content: processor.process}


def unrouted_task_types(*tables: Mapping[TaskType, Any]) -> set[TaskType]:
    covered: set[TaskType] = set()
    for table in tables:
        covered.update(table)
    return set(TaskType) - covered
