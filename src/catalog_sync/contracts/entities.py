"""
Снимки (snapshot) сущностей каталога для payload задач.

Важно:
- снимок фиксирует состояние сущности на момент постановки задачи
- обязателен только непустой id, остальные поля имеют значения по умолчанию
  (минимальный payload {"episode": {"id": ...}, "assets": []} валиден)
- id хранится строкой (строковая форма UUID)
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class _Snapshot(BaseModel):
    model_config = ConfigDict(extra="ignore", from_attributes=True)


class SeriesSnapshot(_Snapshot):
    id: str = Field(min_length=1)
    title: str = ""
    description: str | None = None
    category_id: str = ""
    language: str | None = None
    type: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None


class EpisodeSnapshot(_Snapshot):
    id: str = Field(min_length=1)
    series_id: str = ""
    title: str = ""
    description: str | None = None
    duration_seconds: int | None = None
    publish_date: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class EpisodeAssetSnapshot(_Snapshot):
    id: str = Field(min_length=1)
    episode_id: str = ""
    asset_type: str = ""
    mime_type: str = ""
    size_bytes: int | None = None
    url: str | None = None
    created_at: datetime | None = None
