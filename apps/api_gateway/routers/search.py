"""
HTTP роуты поиска (discovery).

- GET /v1/search/series?q&page&page_size&category_id&type&language
- GET /v1/search/episodes?q&page&page_size&series_id

Ошибка поискового движка -> 502.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status

from apps.api_gateway.deps import search_dep, uuid_or_400
from catalog_sync.common.errors import SearchError
from catalog_sync.common.logging import get_project_logger
from catalog_sync.common.pagination import DEFAULT_PAGE, DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from catalog_sync.contracts.http_api import SearchResponse
from catalog_sync.domain.enums import SeriesType
from catalog_sync.search.client import OpenSearchClient
from catalog_sync.search.query import SearchRequest, SearchResult

log = get_project_logger()

router = APIRouter()
SEARCH_DEP = Depends(search_dep)


def _to_response(req: SearchRequest, result: SearchResult) -> SearchResponse:
    return SearchResponse(
        query=req.query,
        total=result.total,
        page=req.page,
        page_size=req.page_size,
        page_count=result.page_count,
        results=result.hits,
    )


def _search_failed(op: str, e: SearchError) -> HTTPException:
    log.error(
        "search_failed",
        extra={"payload": {"op": op, "status": e.status, "err": e.message}},
    )
    return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="search_failed")


@router.get("/search/series", response_model=SearchResponse)
def search_series(
    q: str = Query(default=""),
    page: int = Query(default=DEFAULT_PAGE, ge=1),
    page_size: int = Query(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    category_id: str | None = Query(default=None),
    type: SeriesType | None = Query(default=None),
    language: str | None = Query(default=None),
    client: OpenSearchClient = SEARCH_DEP,
) -> SearchResponse:
    filters: dict[str, str] = {}
    if category_id:
        filters["category_id"] = str(uuid_or_400(category_id, field="category_id"))
    if type is not None:
        filters["type"] = type.value
    if language:
        filters["language"] = language

    req = SearchRequest(query=q, page=page, page_size=page_size, filters=filters)
    try:
        result = client.search_series(req)
    except SearchError as e:
        raise _search_failed("search_series", e) from e
    return _to_response(req, result)


@router.get("/search/episodes", response_model=SearchResponse)
def search_episodes(
    q: str = Query(default=""),
    page: int = Query(default=DEFAULT_PAGE, ge=1),
    page_size: int = Query(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    series_id: str | None = Query(default=None),
    client: OpenSearchClient = SEARCH_DEP,
) -> SearchResponse:
    filters: dict[str, str] = {}
    if series_id:
        filters["series_id"] = str(uuid_or_400(series_id, field="series_id"))

    req = SearchRequest(query=q, page=page, page_size=page_size, filters=filters)
    try:
        result = client.search_episodes(req)
    except SearchError as e:
        raise _search_failed("search_episodes", e) from e
    return _to_response(req, result)
