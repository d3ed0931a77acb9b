"""
Postgres: engine и сессии каталога.

- один engine на процесс; размер пула не меньше QUEUE_CONCURRENCY,
  т.к. каждый поток воркера держит свою сессию на время задачи
- db_session(): commit при успехе, rollback при исключении
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from catalog_sync.common.config import Settings, get_settings


def engine_options(s: Settings) -> dict[str, Any]:
    return {
        "pool_pre_ping": True,
        "pool_size": max(s.postgres_pool_size, s.queue_concurrency),
        "max_overflow": max(s.postgres_max_overflow, 0),
    }


# =============================================================================
# ENGINE / SESSION FACTORY
# =============================================================================
_settings = get_settings()

engine = create_engine(_settings.postgres_dsn, **engine_options(_settings))

SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@contextmanager
def db_session() -> Iterator[Session]:
    session: Session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
