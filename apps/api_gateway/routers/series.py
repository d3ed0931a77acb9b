"""
HTTP роуты для серий.

- GET    /v1/series            (страница + общее число параллельно)
- GET    /v1/series/{series_id}
- POST   /v1/series
- PUT    /v1/series/{series_id}
- DELETE /v1/series/{series_id}

Запись коммитится первой, задача индексации ставится после (best-effort).
"""

from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from apps.api_gateway.deps import queue_dep, uuid_or_400
from catalog_sync.common.pagination import (
    DEFAULT_PAGE,
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    calculate_pagination,
    fetch_paginated,
    page_offset,
)
from catalog_sync.contracts.entities import SeriesSnapshot
from catalog_sync.contracts.http_api import (
    PaginationInfo,
    SeriesCreateRequest,
    SeriesListResponse,
    SeriesResponse,
    SeriesUpdateRequest,
)
from catalog_sync.queue.client import TaskQueue
from catalog_sync.services.catalog_service import publish_series_deleted, publish_series_indexed
from catalog_sync.storage.db import db_session
from catalog_sync.storage.models import Series
from catalog_sync.storage.repositories import EpisodeRepository, SeriesRepository
from catalog_sync.storage.store import series_snapshot

router = APIRouter()
QUEUE_DEP = Depends(queue_dep)


def _to_response(s: SeriesSnapshot) -> SeriesResponse:
    return SeriesResponse(**s.model_dump())


@router.get("/series", response_model=SeriesListResponse)
def list_series(
    page: int = Query(default=DEFAULT_PAGE, ge=1),
    page_size: int = Query(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
) -> SeriesListResponse:
    offset = page_offset(page, page_size)

    def _count() -> int:
        with db_session() as session:
            return SeriesRepository(session).count()

    def _page() -> list[SeriesSnapshot]:
        with db_session() as session:
            rows = SeriesRepository(session).list_page(offset=offset, limit=page_size)
            return [series_snapshot(s) for s in rows]

    total, rows = fetch_paginated(_count, _page)
    meta = calculate_pagination(page, page_size, total)
    return SeriesListResponse(
        data=[_to_response(s) for s in rows],
        pagination=PaginationInfo(**asdict(meta)),
    )


@router.get("/series/{series_id}", response_model=SeriesResponse)
def get_series(series_id: str) -> SeriesResponse:
    sid = uuid_or_400(series_id, field="series_id")
    with db_session() as session:
        s = SeriesRepository(session).get(sid)
        if not s:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="not_found")
        snap = series_snapshot(s)
    return _to_response(snap)


@router.post("/series", response_model=SeriesResponse, status_code=status.HTTP_201_CREATED)
def create_series(req: SeriesCreateRequest, queue: TaskQueue = QUEUE_DEP) -> SeriesResponse:
    with db_session() as session:
        s = SeriesRepository(session).save(
            Series(
                title=req.title,
                description=req.description,
                category_id=req.category_id,
                language=req.language,
                series_type=req.type,
            )
        )
        snap = series_snapshot(s)

    publish_series_indexed(queue, snap)
    return _to_response(snap)


@router.put("/series/{series_id}", response_model=SeriesResponse)
def update_series(
    series_id: str, req: SeriesUpdateRequest, queue: TaskQueue = QUEUE_DEP
) -> SeriesResponse:
    sid = uuid_or_400(series_id, field="series_id")
    with db_session() as session:
        repo = SeriesRepository(session)
        s = repo.get(sid)
        if not s:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="not_found")
        s.title = req.title
        s.description = req.description
        s.language = req.language
        s.series_type = req.type
        if req.category_id is not None:
            s.category_id = req.category_id
        snap = series_snapshot(repo.save(s))

    publish_series_indexed(queue, snap)
    return _to_response(snap)


@router.delete("/series/{series_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_series(series_id: str, queue: TaskQueue = QUEUE_DEP) -> Response:
    sid = uuid_or_400(series_id, field="series_id")
    with db_session() as session:
        repo = SeriesRepository(session)
        s = repo.get(sid)
        if not s:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="not_found")
        episode_ids = [str(e) for e in EpisodeRepository(session).list_ids_by_series(sid)]
        repo.delete(s)

    publish_series_deleted(queue, str(sid), episode_ids=episode_ids)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
