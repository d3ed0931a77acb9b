"""
Worker Importer.

Алгоритм:
- XREADGROUP из q:import (group g:importer)
- импортёр по source_type получает метаданные эпизода (YouTube oEmbed)
- эпизод и ассет сохраняются в Postgres
- ставится задача search:index_episode в q:search
"""

from __future__ import annotations

import sys

from catalog_sync.common.config import get_settings
from catalog_sync.common.ids import consumer_name
from catalog_sync.common.logging import setup_logging
from catalog_sync.importers.base import default_registry
from catalog_sync.queue.client import get_task_queue
from catalog_sync.queue.dispatcher import Dispatcher, DispatcherConfig
from catalog_sync.queue.redis import close_redis_clients, consumer_redis_client
from catalog_sync.queue.runner import run_worker
from catalog_sync.queue.streams import GROUP_IMPORTER, Q_IMPORT, RedisStreamBroker
from catalog_sync.services.readiness_service import enforce_startup_readiness
from catalog_sync.storage.store import SqlStore
from catalog_sync.tasks.import_processor import ImportProcessor
from catalog_sync.tasks.routing import build_import_handler_table

SERVICE_NAME = "worker-importer"


def build_dispatcher() -> Dispatcher:
    s = get_settings()
    processor = ImportProcessor(SqlStore(), get_task_queue(), default_registry())
    broker = RedisStreamBroker(
        consumer_redis_client(),
        stream=Q_IMPORT,
        group=GROUP_IMPORTER,
        dlq_maxlen=s.queue_dlq_maxlen,
    )
    return Dispatcher(
        broker,
        build_import_handler_table(processor),
        DispatcherConfig.from_settings(s, consumer=consumer_name(SERVICE_NAME)),
        service_name=SERVICE_NAME,
    )


def main() -> int:
    setup_logging(SERVICE_NAME)
    enforce_startup_readiness(service_name=SERVICE_NAME)
    dispatcher = build_dispatcher()
    return run_worker(dispatcher, cleanup=[get_task_queue().close, close_redis_clients])


if __name__ == "__main__":
    sys.exit(main())
