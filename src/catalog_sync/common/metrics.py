"""
Метрики Prometheus для сервиса.

Назначение:
- Экспорт /metrics (API Gateway)
- Счётчики постановки/обработки задач для воркеров
- Глубина stream-очередей, DLQ и отложенных ретраев
"""

from __future__ import annotations

import time
from collections.abc import Iterator
from contextlib import contextmanager

from fastapi import FastAPI, Request
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest

# =============================================================================
# СЧЁТЧИКИ И МЕТРИКИ
# =============================================================================

REQUESTS_TOTAL = Counter(
    "catalog_requests_total",
    "Общее количество HTTP запросов",
    ["service", "route", "method", "status"],
)

HTTP_REQUEST_LATENCY_MS = Histogram(
    "catalog_http_request_latency_ms",
    "Задержка HTTP запроса (мс)",
    ["service", "route", "method"],
    buckets=(5, 10, 25, 50, 100, 250, 500, 1000, 2500, 5000, 10000),
)

# Постановка задач (producer)
QUEUE_ENQUEUED_TOTAL = Counter(
    "catalog_queue_enqueued_total",
    "Количество поставленных задач",
    ["task_type", "result"],  # result=ok|error
)

# Обработка задач (consumer)
QUEUE_TASKS_TOTAL = Counter(
    "catalog_queue_tasks_total",
    "Количество обработанных задач очереди",
    ["service", "task_type", "result"],  # result=success|retry|dead_letter
)

TASK_LATENCY_MS = Histogram(
    "catalog_task_latency_ms",
    "Время выполнения обработчика задачи (мс)",
    ["service", "task_type"],
    buckets=(5, 10, 25, 50, 100, 250, 500, 1000, 2500, 5000, 10000, 30000),
)

QUEUE_DEPTH = Gauge(
    "catalog_queue_depth",
    "Текущая глубина stream-очередей",
    ["queue"],
)

DLQ_DEPTH = Gauge(
    "catalog_dlq_depth",
    "Текущая глубина DLQ stream-очередей",
    ["queue"],
)

DELAYED_DEPTH = Gauge(
    "catalog_delayed_depth",
    "Количество задач, ожидающих отложенного ретрая",
    ["queue"],
)

METRICS_COLLECTION_ERRORS_TOTAL = Counter(
    "catalog_metrics_collection_errors_total",
    "Ошибки сборки служебных метрик",
    ["source"],
)


@contextmanager
def track_task_latency(service: str, task_type: str) -> Iterator[None]:
    started = time.perf_counter()
    try:
        yield
    finally:
        elapsed_ms = (time.perf_counter() - started) * 1000
        TASK_LATENCY_MS.labels(service=service, task_type=task_type).observe(elapsed_ms)


def refresh_queue_metrics() -> None:
    from redis import RedisError

    from catalog_sync.queue.redis import redis_client
    from catalog_sync.queue.streams import ALL_QUEUES, delayed_key, stream_dlq_name

    try:
        r = redis_client()
        for queue in ALL_QUEUES:
            QUEUE_DEPTH.labels(queue=queue).set(int(r.xlen(queue)))
            DLQ_DEPTH.labels(queue=queue).set(int(r.xlen(stream_dlq_name(queue))))
            DELAYED_DEPTH.labels(queue=queue).set(int(r.zcard(delayed_key(queue))))
    except RedisError:
        METRICS_COLLECTION_ERRORS_TOTAL.labels(source="queue_metrics").inc()


# =============================================================================
# ENDPOINT /metrics
# =============================================================================
def setup_metrics_endpoint(app: FastAPI, *, service: str = "api-gateway") -> None:
    """
    Регистрирует endpoint /metrics для Prometheus.
    """

    @app.middleware("http")
    async def http_metrics(request: Request, call_next):
        route = request.url.path
        method = request.method
        started = time.perf_counter()

        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        status_code = str(response.status_code)

        REQUESTS_TOTAL.labels(
            service=service,
            route=route,
            method=method,
            status=status_code,
        ).inc()
        HTTP_REQUEST_LATENCY_MS.labels(
            service=service,
            route=route,
            method=method,
        ).observe(elapsed_ms)
        return response

    @app.get("/metrics")
    def metrics() -> Response:
        refresh_queue_metrics()
        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
