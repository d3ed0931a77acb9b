"""
Документы поискового индекса (проекция сущностей каталога).

Важно:
- id документа = id сущности: повторная индексация перезаписывает документ
- indexed_at проставляется в момент сериализации
- список ассетов эпизода берётся ровно из снимка задачи, без дочитывания из БД
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from catalog_sync.common.time import utc_now
from catalog_sync.contracts.entities import (
    EpisodeAssetSnapshot,
    EpisodeSnapshot,
    SeriesSnapshot,
)


class _Document(BaseModel):
    indexed_at: datetime | None = None

    def to_json(self) -> dict[str, Any]:
        body = self.model_copy(update={"indexed_at": utc_now()})
        return body.model_dump(mode="json", exclude_none=True)


class SeriesDocument(_Document):
    id: str
    title: str = ""
    description: str | None = None
    category_id: str = ""
    language: str | None = None
    type: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_snapshot(cls, series: SeriesSnapshot) -> SeriesDocument:
        return cls(
            id=series.id,
            title=series.title,
            description=series.description,
            category_id=series.category_id,
            language=series.language,
            type=series.type,
            created_at=series.created_at,
            updated_at=series.updated_at,
        )


class AssetDocument(BaseModel):
    id: str
    asset_type: str = ""
    mime_type: str = ""
    size_bytes: int | None = None
    url: str | None = None


class EpisodeDocument(_Document):
    id: str
    series_id: str = ""
    title: str = ""
    description: str | None = None
    duration_seconds: int | None = None
    publish_date: datetime | None = None
    mime_type: str | None = None
    size_bytes: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    assets: list[AssetDocument] = Field(default_factory=list)

    def to_json(self) -> dict[str, Any]:
        body = super().to_json()
        # assets всегда присутствует, даже пустой
        body.setdefault("assets", [])
        return body

    @classmethod
    def from_snapshot(
        cls, episode: EpisodeSnapshot, assets: list[EpisodeAssetSnapshot]
    ) -> EpisodeDocument:
        first = assets[0] if assets else None
        return cls(
            id=episode.id,
            series_id=episode.series_id,
            title=episode.title,
            description=episode.description,
            duration_seconds=episode.duration_seconds,
            publish_date=episode.publish_date,
            mime_type=first.mime_type if first and first.mime_type else None,
            size_bytes=first.size_bytes if first else None,
            created_at=episode.created_at,
            updated_at=episode.updated_at,
            assets=[
                AssetDocument(
                    id=a.id,
                    asset_type=a.asset_type,
                    mime_type=a.mime_type,
                    size_bytes=a.size_bytes,
                    url=a.url,
                )
                for a in assets
            ],
        )
