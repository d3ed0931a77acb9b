"""
Миграции схемы каталога (series / episodes / episode_assets).

- URL всегда из POSTGRES_DSN, sqlalchemy.url в alembic.ini не используется
- compare_type=True: autogenerate замечает смену типа колонки
"""

from __future__ import annotations

from logging.config import fileConfig
from typing import Any

from alembic import context
from sqlalchemy import create_engine, pool

from catalog_sync.common.config import get_settings
from catalog_sync.storage.models import Base

if context.config.config_file_name is not None:
    fileConfig(context.config.config_file_name, disable_existing_loggers=False)


def _configure(**kwargs: Any) -> None:
    context.configure(target_metadata=Base.metadata, compare_type=True, **kwargs)


def _migrate_offline(dsn: str) -> None:
    _configure(url=dsn, literal_binds=True, dialect_opts={"paramstyle": "named"})
    with context.begin_transaction():
        context.run_migrations()


def _migrate_online(dsn: str) -> None:
    connectable = create_engine(dsn, poolclass=pool.NullPool)
    with connectable.connect() as connection:
        _configure(connection=connection)
        with context.begin_transaction():
            context.run_migrations()


_dsn = get_settings().postgres_dsn
if context.is_offline_mode():
    _migrate_offline(_dsn)
else:
    _migrate_online(_dsn)
