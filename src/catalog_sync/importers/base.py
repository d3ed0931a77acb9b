"""
Базовые интерфейсы импортёров (внешние источники контента).

Назначение:
- стандартизировать адаптеры к внешним площадкам (видео/подкасты)
- реестр source_type -> импортёр, собирается один раз на старте воркера

Важно:
- id черновика эпизода генерирует импортёр, это НЕ id в БД
- поиск в реестре регистрозависимый: "youtube" != "YouTube"
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol
from uuid import UUID

from catalog_sync.common.errors import ImporterNotFoundError


@dataclass
class EpisodeDraft:
    id: UUID
    series_id: UUID
    title: str
    description: str | None = None
    duration_seconds: int | None = None
    publish_date: datetime | None = None


@dataclass
class AssetDraft:
    episode_id: UUID
    asset_type: str
    mime_type: str
    url: str | None = None
    size_bytes: int | None = None


class Importer(Protocol):
    """
    Контракт импортёра.
    """

    def fetch_episode(
        self, source_url: str, series_id: str
    ) -> tuple[EpisodeDraft, AssetDraft | None]:
        """Получить черновик эпизода и (опционально) один ассет."""
        ...


class ImporterRegistry:
    def __init__(self, importers: Mapping[str, Importer] | None = None) -> None:
        self._importers: dict[str, Importer] = dict(importers or {})

    def register(self, source_type: str, importer: Importer) -> None:
        self._importers[source_type] = importer

    def get(self, source_type: str) -> Importer:
        importer = self._importers.get(source_type)
        if importer is None:
            raise ImporterNotFoundError(source_type)
        return importer

    def source_types(self) -> list[str]:
        return sorted(self._importers)


def default_registry() -> ImporterRegistry:
    from .youtube import YouTubeImporter

    return ImporterRegistry({"youtube": YouTubeImporter.from_settings()})
