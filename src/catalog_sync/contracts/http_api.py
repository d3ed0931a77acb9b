"""
HTTP API контракты (Pydantic-модели).

Назначение:
- валидация входа/выхода на уровне FastAPI
- стабильные структуры для клиентов
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from catalog_sync.domain.enums import SeriesType, SourceType


# =============================================================================
# ПАГИНАЦИЯ
# =============================================================================
class PaginationInfo(BaseModel):
    page: int
    page_size: int
    item_count: int
    page_count: int


# =============================================================================
# SERIES
# =============================================================================
class SeriesCreateRequest(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=1000)
    category_id: UUID
    language: str | None = Field(default=None, min_length=2, max_length=10)
    type: SeriesType


class SeriesUpdateRequest(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=1000)
    category_id: UUID | None = None
    language: str | None = Field(default=None, min_length=2, max_length=10)
    type: SeriesType


class SeriesResponse(BaseModel):
    id: str
    title: str
    description: str | None = None
    category_id: str
    language: str | None = None
    type: str
    created_at: datetime | None = None
    updated_at: datetime | None = None


class SeriesListResponse(BaseModel):
    data: list[SeriesResponse]
    pagination: PaginationInfo


# =============================================================================
# EPISODES
# =============================================================================
class EpisodeCreateRequest(BaseModel):
    series_id: UUID
    title: str = Field(min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=2000)
    duration_seconds: int | None = Field(default=None, ge=0, le=86400)
    publish_date: datetime | None = None


class EpisodeUpdateRequest(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=2000)
    duration_seconds: int | None = Field(default=None, ge=0, le=86400)
    publish_date: datetime | None = None


class EpisodeAssetResponse(BaseModel):
    id: str
    episode_id: str
    asset_type: str
    mime_type: str
    size_bytes: int | None = None
    url: str | None = None
    created_at: datetime | None = None


class EpisodeResponse(BaseModel):
    id: str
    series_id: str
    title: str
    description: str | None = None
    duration_seconds: int | None = None
    publish_date: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    assets: list[EpisodeAssetResponse] = Field(default_factory=list)


class EpisodeCreateResponse(BaseModel):
    id: str


class EpisodeListResponse(BaseModel):
    data: list[EpisodeResponse]
    pagination: PaginationInfo


# =============================================================================
# IMPORT
# =============================================================================
class ImportRequest(BaseModel):
    source_type: SourceType
    source_url: str = Field(min_length=1)
    # str: кривой UUID -> 400 "invalid series id", а не 422 от pydantic
    series_id: str


class ImportAcceptedResponse(BaseModel):
    task_id: str


# =============================================================================
# SEARCH
# =============================================================================
class SearchResponse(BaseModel):
    query: str
    total: int
    page: int
    page_size: int
    page_count: int
    results: list[dict[str, Any]]
