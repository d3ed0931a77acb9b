"""
Полная переиндексация каталога.

Ставит в q:search задачу search:index_* на каждую серию и эпизод из Postgres.
Используется после смены маппингов или восстановления индекса.

Пример:
    python scripts/reindex_catalog.py
    python scripts/reindex_catalog.py --series-only
"""

from __future__ import annotations

import argparse

from catalog_sync.common.logging import setup_logging
from catalog_sync.queue.client import get_task_queue
from catalog_sync.services.catalog_service import reindex_catalog
from catalog_sync.storage.store import SqlStore


def _args() -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Enqueue index tasks for the whole catalog")
    p.add_argument("--series-only", action="store_true", help="Skip episodes")
    return p.parse_args()


def main() -> int:
    args = _args()
    setup_logging()

    store = SqlStore()
    queue = get_task_queue()
    try:
        episodes = [] if args.series_only else store.all_episodes_with_assets()
        report = reindex_catalog(queue, store.all_series(), episodes)
    finally:
        queue.close()

    print(
        f"series={report.series_enqueued} episodes={report.episodes_enqueued} "
        f"failed={report.failed}"
    )
    return 1 if report.failed else 0


if __name__ == "__main__":
    raise SystemExit(main())
