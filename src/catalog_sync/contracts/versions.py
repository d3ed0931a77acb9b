"""
Версии контрактов (queue/HTTP).

Назначение:
- единая точка истинных версий
- schema_version пишется в каждую запись stream-очереди
"""

from __future__ import annotations

QUEUE_SCHEMA_VERSION = "v1"
HTTP_API_VERSION = "v1"
