"""
API Gateway (FastAPI).

Функции:
- /health
- /metrics
- HTTP API каталога (серии, эпизоды)
- POST /v1/import (импорт контента в фоне)
- поиск по индексам OpenSearch

Архитектурно:
- запись в БД коммитится синхронно, затем ставится задача индексации в q:search
- импорт ставится в q:import, ответ 202 с task_id
- воркеры индексации/импорта живут в отдельных процессах (apps/worker_*)
"""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI

from apps.api_gateway.routers.episodes import router as episodes_router
from apps.api_gateway.routers.imports import router as imports_router
from apps.api_gateway.routers.search import router as search_router
from apps.api_gateway.routers.series import router as series_router
from catalog_sync.common.config import get_settings
from catalog_sync.common.logging import get_project_logger, setup_logging
from catalog_sync.common.metrics import setup_metrics_endpoint
from catalog_sync.contracts.versions import HTTP_API_VERSION
from catalog_sync.services.readiness_service import enforce_startup_readiness

log = get_project_logger()


def _create_app() -> FastAPI:
    app = FastAPI(title="Catalog Sync", version="0.1.0")

    setup_metrics_endpoint(app, service="api-gateway")

    @app.get("/health")
    def health() -> dict[str, Any]:
        return {"ok": True, "api_version": HTTP_API_VERSION}

    prefix = f"/{HTTP_API_VERSION}"
    app.include_router(series_router, prefix=prefix)
    app.include_router(episodes_router, prefix=prefix)
    app.include_router(imports_router, prefix=prefix)
    app.include_router(search_router, prefix=prefix)

    return app


setup_logging()
enforce_startup_readiness(service_name="api-gateway")

log.info("api_gateway_ready", extra={"payload": {"queue_mode": get_settings().queue_mode}})

app = _create_app()


if __name__ == "__main__":
    import uvicorn

    s = get_settings()
    uvicorn.run(app, host=s.api_host, port=s.api_port, log_config=None)
