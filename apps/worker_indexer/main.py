"""
Worker Indexer.

Алгоритм:
- provisioning индексов OpenSearch (series/episodes); ошибка -> воркер не стартует
- XREADGROUP из q:search (group g:indexer)
- search:index_* -> upsert документа, search:delete_* -> удаление документа
- ошибки OpenSearch -> ретрай с задержкой, затем DLQ
"""

from __future__ import annotations

import sys

from catalog_sync.common.config import get_settings
from catalog_sync.common.ids import consumer_name
from catalog_sync.common.logging import get_project_logger, setup_logging
from catalog_sync.queue.dispatcher import Dispatcher, DispatcherConfig
from catalog_sync.queue.redis import close_redis_clients, consumer_redis_client
from catalog_sync.queue.runner import run_worker
from catalog_sync.queue.streams import GROUP_INDEXER, Q_SEARCH, RedisStreamBroker
from catalog_sync.search.client import get_search_client
from catalog_sync.services.readiness_service import enforce_startup_readiness
from catalog_sync.tasks.index_handlers import IndexHandlers, provision_indices
from catalog_sync.tasks.routing import build_index_handler_table

SERVICE_NAME = "worker-indexer"

log = get_project_logger()


def build_dispatcher() -> Dispatcher:
    s = get_settings()
    search = get_search_client()
    prefix = s.opensearch_index_prefix

    def _provision() -> None:
        created = provision_indices(search, prefix)
        log.info("search_indices_ready", extra={"payload": {"created": created}})

    broker = RedisStreamBroker(
        consumer_redis_client(),
        stream=Q_SEARCH,
        group=GROUP_INDEXER,
        dlq_maxlen=s.queue_dlq_maxlen,
    )
    return Dispatcher(
        broker,
        build_index_handler_table(IndexHandlers(search, prefix)),
        DispatcherConfig.from_settings(s, consumer=consumer_name(SERVICE_NAME)),
        provisioners=[_provision],
        service_name=SERVICE_NAME,
    )


def main() -> int:
    setup_logging(SERVICE_NAME)
    enforce_startup_readiness(service_name=SERVICE_NAME)
    dispatcher = build_dispatcher()
    return run_worker(dispatcher, cleanup=[get_search_client().close, close_redis_clients])


if __name__ == "__main__":
    sys.exit(main())
