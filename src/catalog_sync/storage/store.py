"""
Store: узкий интерфейс хранилища для фоновых задач.

Назначение:
- импорт пишет эпизод/ассет через Store, не зная про сессии SQLAlchemy
- ORM -> снимки (snapshot) для payload задач индексации
"""

from __future__ import annotations

from collections.abc import Callable
from contextlib import AbstractContextManager
from typing import Protocol

from sqlalchemy.orm import Session

from catalog_sync.contracts.entities import (
    EpisodeAssetSnapshot,
    EpisodeSnapshot,
    SeriesSnapshot,
)
from catalog_sync.importers.base import AssetDraft, EpisodeDraft

from .db import db_session
from .models import Episode, EpisodeAsset, Series
from .repositories import EpisodeAssetRepository, EpisodeRepository, SeriesRepository


# =============================================================================
# ORM -> SNAPSHOT
# =============================================================================
def series_snapshot(s: Series) -> SeriesSnapshot:
    series_type = s.series_type.value if hasattr(s.series_type, "value") else str(s.series_type)
    return SeriesSnapshot(
        id=str(s.id),
        title=s.title,
        description=s.description,
        category_id=str(s.category_id),
        language=s.language,
        type=series_type,
        created_at=s.created_at,
        updated_at=s.updated_at,
    )


def episode_snapshot(e: Episode) -> EpisodeSnapshot:
    return EpisodeSnapshot(
        id=str(e.id),
        series_id=str(e.series_id),
        title=e.title,
        description=e.description,
        duration_seconds=e.duration_seconds,
        publish_date=e.publish_date,
        created_at=e.created_at,
        updated_at=e.updated_at,
    )


def asset_snapshot(a: EpisodeAsset) -> EpisodeAssetSnapshot:
    return EpisodeAssetSnapshot(
        id=str(a.id),
        episode_id=str(a.episode_id),
        asset_type=a.asset_type,
        mime_type=a.mime_type,
        size_bytes=a.size_bytes,
        url=a.url,
        created_at=a.created_at,
    )


# =============================================================================
# STORE
# =============================================================================
class Store(Protocol):
    def create_episode(self, draft: EpisodeDraft) -> EpisodeSnapshot: ...

    def create_asset(self, draft: AssetDraft) -> EpisodeAssetSnapshot: ...


SessionFactory = Callable[[], AbstractContextManager[Session]]


class SqlStore:
    """
    Каждый вызов - своя короткая транзакция (db_session).
    """

    def __init__(self, session_factory: SessionFactory = db_session) -> None:
        self._session = session_factory

    def create_episode(self, draft: EpisodeDraft) -> EpisodeSnapshot:
        # id черновика не используем: БД назначает собственный
        with self._session() as session:
            ep = EpisodeRepository(session).save(
                Episode(
                    series_id=draft.series_id,
                    title=draft.title,
                    description=draft.description,
                    duration_seconds=draft.duration_seconds,
                    publish_date=draft.publish_date,
                )
            )
            return episode_snapshot(ep)

    def create_asset(self, draft: AssetDraft) -> EpisodeAssetSnapshot:
        with self._session() as session:
            asset = EpisodeAssetRepository(session).save(
                EpisodeAsset(
                    episode_id=draft.episode_id,
                    asset_type=draft.asset_type,
                    mime_type=draft.mime_type,
                    size_bytes=draft.size_bytes,
                    url=draft.url,
                )
            )
            return asset_snapshot(asset)

    # -------------------------------------------------------------------------
    # Полная выгрузка для переиндексации
    # -------------------------------------------------------------------------
    def all_series(self) -> list[SeriesSnapshot]:
        with self._session() as session:
            return [series_snapshot(s) for s in SeriesRepository(session).list_all()]

    def all_episodes_with_assets(
        self,
    ) -> list[tuple[EpisodeSnapshot, list[EpisodeAssetSnapshot]]]:
        with self._session() as session:
            return [
                (episode_snapshot(ep), [asset_snapshot(a) for a in ep.assets])
                for ep in EpisodeRepository(session).list_all_with_assets()
            ]
