"""
HTTP роут импорта контента.

POST /v1/import -> 202 {task_id}
- кривой series_id -> 400
- серии нет -> 404 (существование проверяется здесь, а не в воркере)
- очередь недоступна -> 503
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from apps.api_gateway.deps import queue_dep, uuid_or_400
from catalog_sync.common.errors import EnqueueError
from catalog_sync.common.logging import get_project_logger
from catalog_sync.contracts.http_api import ImportAcceptedResponse, ImportRequest
from catalog_sync.contracts.queue_events import ImportContentPayload
from catalog_sync.queue.client import TaskQueue
from catalog_sync.services.catalog_service import request_import
from catalog_sync.storage.db import db_session
from catalog_sync.storage.repositories import SeriesRepository

log = get_project_logger()

router = APIRouter()
QUEUE_DEP = Depends(queue_dep)


@router.post(
    "/import", response_model=ImportAcceptedResponse, status_code=status.HTTP_202_ACCEPTED
)
def import_content(req: ImportRequest, queue: TaskQueue = QUEUE_DEP) -> ImportAcceptedResponse:
    sid = uuid_or_400(req.series_id, field="series_id")

    with db_session() as session:
        if not SeriesRepository(session).exists(sid):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="series_not_found")

    payload = ImportContentPayload.of(req.source_type, req.source_url, str(sid))
    try:
        handle = request_import(queue, payload)
    except EnqueueError as e:
        log.error(
            "import_enqueue_failed",
            extra={"payload": {"series_id": str(sid), "code": e.code, "details": e.details}},
        )
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="import_queue_unavailable",
        ) from e

    return ImportAcceptedResponse(task_id=handle.task_id)
