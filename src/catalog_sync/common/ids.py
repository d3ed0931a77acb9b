"""
Генерация и разбор идентификаторов.

Назначение:
- UUID сущностей каталога (series / episode / asset)
- event_id задач очереди (лог/трассировка)
"""

from __future__ import annotations

import os
import secrets
import socket
import uuid
from datetime import UTC, datetime

from .errors import ValidationError


def new_uuid() -> uuid.UUID:
    """UUIDv4."""
    return uuid.uuid4()


def parse_uuid(value: str | uuid.UUID, *, field: str = "id") -> uuid.UUID:
    """
    Строка -> UUID. Пустая/кривая строка -> ValidationError.
    """
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError) as e:
        raise ValidationError(f"invalid {field}", {"field": field, "value": str(value)[:64]}) from e


def new_event_id(prefix: str = "evt") -> str:
    """
    Идентификатор события (лог/очереди/трассировка).
    Формат: <prefix>_<UTCYYYYMMDDHHMMSS>_<rand>
    """
    ts = datetime.now(UTC).strftime("%Y%m%d%H%M%S")
    rnd = secrets.token_hex(6)
    return f"{prefix}_{ts}_{rnd}"


def consumer_name(prefix: str) -> str:
    """
    Имя consumer'а в consumer group: <prefix>:<host>:<pid>.
    Стабильно в пределах процесса, уникально между репликами.
    """
    return f"{prefix}:{socket.gethostname()}:{os.getpid()}"
