"""
HTTP роуты для эпизодов.

- GET    /v1/series/{series_id}/episodes
- GET    /v1/episodes/{episode_id}
- POST   /v1/episodes
- PUT    /v1/episodes/{episode_id}
- DELETE /v1/episodes/{episode_id}
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
from catalog_sync.contracts.entities import EpisodeAssetSnapshot, EpisodeSnapshot
from catalog_sync.contracts.http_api import (
    EpisodeAssetResponse,
    EpisodeCreateRequest,
    EpisodeCreateResponse,
    EpisodeListResponse,
    EpisodeResponse,
    EpisodeUpdateRequest,
    PaginationInfo,
)
from catalog_sync.queue.client import TaskQueue
from catalog_sync.services.catalog_service import publish_episode_deleted, publish_episode_indexed
from catalog_sync.storage.db import db_session
from catalog_sync.storage.models import Episode
from catalog_sync.storage.repositories import (
    EpisodeAssetRepository,
    EpisodeRepository,
    SeriesRepository,
)
from catalog_sync.storage.store import asset_snapshot, episode_snapshot

router = APIRouter()
QUEUE_DEP = Depends(queue_dep)


def _to_response(
    e: EpisodeSnapshot, assets: list[EpisodeAssetSnapshot] | None = None
) -> EpisodeResponse:
    return EpisodeResponse(
        **e.model_dump(),
        assets=[EpisodeAssetResponse(**a.model_dump()) for a in assets or []],
    )


@router.get("/series/{series_id}/episodes", response_model=EpisodeListResponse)
def list_series_episodes(
    series_id: str,
    page: int = Query(default=DEFAULT_PAGE, ge=1),
    page_size: int = Query(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
) -> EpisodeListResponse:
    sid = uuid_or_400(series_id, field="series_id")
    with db_session() as session:
        if not SeriesRepository(session).exists(sid):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="not_found")

    offset = page_offset(page, page_size)

    def _count() -> int:
        with db_session() as session:
            return EpisodeRepository(session).count_by_series(sid)

    def _page() -> list[EpisodeSnapshot]:
        with db_session() as session:
            rows = EpisodeRepository(session).list_by_series(sid, offset=offset, limit=page_size)
            return [episode_snapshot(e) for e in rows]

    total, rows = fetch_paginated(_count, _page)
    meta = calculate_pagination(page, page_size, total)
    return EpisodeListResponse(
        data=[_to_response(e) for e in rows],
        pagination=PaginationInfo(**asdict(meta)),
    )


@router.get("/episodes/{episode_id}", response_model=EpisodeResponse)
def get_episode(episode_id: str) -> EpisodeResponse:
    eid = uuid_or_400(episode_id, field="episode_id")
    with db_session() as session:
        e = EpisodeRepository(session).get(eid)
        if not e:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="not_found")
        snap = episode_snapshot(e)
        assets = [asset_snapshot(a) for a in EpisodeAssetRepository(session).list_by_episode(eid)]
    return _to_response(snap, assets)


@router.post(
    "/episodes", response_model=EpisodeCreateResponse, status_code=status.HTTP_201_CREATED
)
def create_episode(
    req: EpisodeCreateRequest, queue: TaskQueue = QUEUE_DEP
) -> EpisodeCreateResponse:
    with db_session() as session:
        if not SeriesRepository(session).exists(req.series_id):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="series_not_found")
        e = EpisodeRepository(session).save(
            Episode(
                series_id=req.series_id,
                title=req.title,
                description=req.description,
                duration_seconds=req.duration_seconds,
                publish_date=req.publish_date,
            )
        )
        snap = episode_snapshot(e)

    # новый эпизод ещё без ассетов
    publish_episode_indexed(queue, snap, [])
    return EpisodeCreateResponse(id=snap.id)


@router.put("/episodes/{episode_id}", response_model=EpisodeResponse)
def update_episode(
    episode_id: str, req: EpisodeUpdateRequest, queue: TaskQueue = QUEUE_DEP
) -> EpisodeResponse:
    eid = uuid_or_400(episode_id, field="episode_id")
    with db_session() as session:
        repo = EpisodeRepository(session)
        e = repo.get(eid)
        if not e:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="not_found")
        e.title = req.title
        e.description = req.description
        e.duration_seconds = req.duration_seconds
        e.publish_date = req.publish_date
        snap = episode_snapshot(repo.save(e))
        assets = [asset_snapshot(a) for a in EpisodeAssetRepository(session).list_by_episode(eid)]

    publish_episode_indexed(queue, snap, assets)
    return _to_response(snap, assets)


@router.delete("/episodes/{episode_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_episode(episode_id: str, queue: TaskQueue = QUEUE_DEP) -> Response:
    eid = uuid_or_400(episode_id, field="episode_id")
    with db_session() as session:
        repo = EpisodeRepository(session)
        e = repo.get(eid)
        if not e:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="not_found")
        repo.delete(e)

    publish_episode_deleted(queue, str(eid))
    return Response(status_code=status.HTTP_204_NO_CONTENT)
