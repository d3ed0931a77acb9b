"""
Redis-клиенты для очередей.

Назначение:
- Единая точка подключения к Redis
- redis_client: продюсер задач (API), socket timeout ограничивает enqueue
- consumer_redis_client: диспетчер воркеров, timeout учитывает XREADGROUP BLOCK
"""

from __future__ import annotations

import redis

from catalog_sync.common.config import get_settings

_client: redis.Redis | None = None
_consumer_client: redis.Redis | None = None


def _build(socket_timeout: float) -> redis.Redis:
    s = get_settings()
    return redis.Redis.from_url(
        s.redis_url,
        decode_responses=True,
        socket_timeout=socket_timeout,
        socket_connect_timeout=s.redis_socket_timeout_sec,
        health_check_interval=30,
    )


def redis_client() -> redis.Redis:
    """
    Singleton Redis client.
    """
    global _client
    if _client is None:
        _client = _build(get_settings().redis_socket_timeout_sec)
    return _client


def consumer_redis_client() -> redis.Redis:
    """
    Клиент для блокирующего чтения: timeout сокета больше, чем QUEUE_BLOCK_MS.
    """
    global _consumer_client
    if _consumer_client is None:
        s = get_settings()
        _consumer_client = _build(s.redis_socket_timeout_sec + s.queue_block_ms / 1000.0)
    return _consumer_client


def close_redis_clients() -> None:
    global _client, _consumer_client
    for c in (_client, _consumer_client):
        if c is not None:
            c.close()
    _client = None
    _consumer_client = None
