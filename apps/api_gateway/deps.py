"""
FastAPI Depends.

Сюда выносим:
- продюсер задач (QUEUE_MODE=redis|inline)
- клиент поиска
- разбор UUID из path/query (кривой id -> 400)
"""

from __future__ import annotations

from uuid import UUID

from fastapi import HTTPException, status

from catalog_sync.common.errors import ValidationError
from catalog_sync.common.ids import parse_uuid
from catalog_sync.queue.client import TaskQueue, get_task_queue
from catalog_sync.search.client import OpenSearchClient, get_search_client


def queue_dep() -> TaskQueue:
    return get_task_queue()


def search_dep() -> OpenSearchClient:
    return get_search_client()


def uuid_or_400(value: str, *, field: str) -> UUID:
    try:
        return parse_uuid(value, field=field)
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"invalid_{field}",
        ) from e
