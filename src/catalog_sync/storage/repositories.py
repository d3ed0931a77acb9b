"""
Репозитории (DAO слой).

Правила:
- Никакой бизнес-логики
- Только CRUD и запросы
- list/count разделены: страницу и общее число можно читать параллельно
"""

from __future__ import annotations

import uuid

from sqlalchemy import desc, func, select
from sqlalchemy.orm import Session, selectinload

from .models import Episode, EpisodeAsset, Series


# =============================================================================
# SERIES REPOSITORY
# =============================================================================
class SeriesRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, series_id: uuid.UUID) -> Series | None:
        return self.session.get(Series, series_id)

    def exists(self, series_id: uuid.UUID) -> bool:
        stmt = select(func.count()).select_from(Series).where(Series.id == series_id)
        return bool(self.session.scalar(stmt))

    def list_page(self, *, offset: int, limit: int) -> list[Series]:
        stmt = select(Series).order_by(desc(Series.created_at)).offset(offset).limit(limit)
        return list(self.session.scalars(stmt))

    def count(self) -> int:
        return int(self.session.scalar(select(func.count()).select_from(Series)) or 0)

    def list_all(self) -> list[Series]:
        return list(self.session.scalars(select(Series).order_by(Series.created_at)))

    def save(self, series: Series) -> Series:
        self.session.add(series)
        self.session.flush()
        return series

    def delete(self, series: Series) -> None:
        self.session.delete(series)
        self.session.flush()


# =============================================================================
# EPISODE REPOSITORY
# =============================================================================
class EpisodeRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, episode_id: uuid.UUID) -> Episode | None:
        return self.session.get(Episode, episode_id)

    def list_by_series(self, series_id: uuid.UUID, *, offset: int, limit: int) -> list[Episode]:
        stmt = (
            select(Episode)
            .where(Episode.series_id == series_id)
            .order_by(desc(Episode.created_at))
            .offset(offset)
            .limit(limit)
        )
        return list(self.session.scalars(stmt))

    def count_by_series(self, series_id: uuid.UUID) -> int:
        stmt = select(func.count()).select_from(Episode).where(Episode.series_id == series_id)
        return int(self.session.scalar(stmt) or 0)

    def list_ids_by_series(self, series_id: uuid.UUID) -> list[uuid.UUID]:
        stmt = select(Episode.id).where(Episode.series_id == series_id)
        return list(self.session.scalars(stmt))

    def list_all_with_assets(self) -> list[Episode]:
        stmt = select(Episode).options(selectinload(Episode.assets)).order_by(Episode.created_at)
        return list(self.session.scalars(stmt))

    def save(self, episode: Episode) -> Episode:
        self.session.add(episode)
        self.session.flush()
        return episode

    def delete(self, episode: Episode) -> None:
        self.session.delete(episode)
        self.session.flush()


# =============================================================================
# EPISODE ASSET REPOSITORY
# =============================================================================
class EpisodeAssetRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def list_by_episode(self, episode_id: uuid.UUID) -> list[EpisodeAsset]:
        stmt = (
            select(EpisodeAsset)
            .where(EpisodeAsset.episode_id == episode_id)
            .order_by(EpisodeAsset.created_at)
        )
        return list(self.session.scalars(stmt))

    def save(self, asset: EpisodeAsset) -> EpisodeAsset:
        self.session.add(asset)
        self.session.flush()
        return asset
