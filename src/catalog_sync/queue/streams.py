"""
Redis Streams: транспорт задач.

Назначение:
- Единые имена stream-очередей, DLQ и отложенных ретраев
- Consumer group чтение/ack (XREADGROUP / XACK)
- Переподхват зависших записей упавших consumer'ов (XAUTOCLAIM)
- Отложенные ретраи через sorted set <stream>:delayed (score = due epoch)

Формат записи stream:
    type, payload (компактный JSON), attempts, event_id, enqueued_at, schema_version
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field

import redis

from catalog_sync.common.logging import get_project_logger
from catalog_sync.common.time import due_at, epoch_sec, utc_now_iso
from catalog_sync.domain.enums import TaskType

log = get_project_logger()

# =============================================================================
# ИМЕНА ОЧЕРЕДЕЙ (Redis Streams)
# =============================================================================
Q_SEARCH = "q:search"
Q_IMPORT = "q:import"

ALL_QUEUES: tuple[str, ...] = (Q_SEARCH, Q_IMPORT)

GROUP_INDEXER = "g:indexer"
GROUP_IMPORTER = "g:importer"

TASK_QUEUES: dict[TaskType, str] = {
    TaskType.index_series: Q_SEARCH,
    TaskType.index_episode: Q_SEARCH,
    TaskType.delete_series: Q_SEARCH,
    TaskType.delete_episode: Q_SEARCH,
    TaskType.import_content: Q_IMPORT,
}


def queue_for(task_type: TaskType) -> str:
    return TASK_QUEUES[task_type]


def stream_dlq_name(stream: str) -> str:
    return f"{stream}:dlq"


def delayed_key(stream: str) -> str:
    return f"{stream}:delayed"


# =============================================================================
# СООБЩЕНИЕ
# =============================================================================
@dataclass
class StreamMessage:
    stream: str
    entry_id: str
    fields: dict[str, str] = field(default_factory=dict)

    @property
    def task_type(self) -> str:
        return self.fields.get("type", "")

    @property
    def payload(self) -> str:
        return self.fields.get("payload", "")

    @property
    def attempts(self) -> int:
        try:
            return max(int(self.fields.get("attempts", "0")), 0)
        except ValueError:
            return 0

    @property
    def event_id(self) -> str | None:
        return self.fields.get("event_id")


def build_fields(
    *, task_type: str, payload: str, event_id: str, schema_version: str, attempts: int = 0
) -> dict[str, str]:
    return {
        "type": task_type,
        "payload": payload,
        "attempts": str(attempts),
        "event_id": event_id,
        "enqueued_at": utc_now_iso(),
        "schema_version": schema_version,
    }


def _to_messages(stream: str, entries) -> list[StreamMessage]:
    out: list[StreamMessage] = []
    for entry_id, fields in entries or []:
        # Redis 6.2 отдаёт удалённые записи как (id, None)
        if fields is None:
            continue
        out.append(StreamMessage(stream=stream, entry_id=entry_id, fields=dict(fields)))
    return out


# =============================================================================
# БРОКЕР
# =============================================================================
class RedisStreamBroker:
    """
    Операции над одним stream'ом и его consumer group.
    """

    def __init__(
        self,
        client: redis.Redis,
        *,
        stream: str,
        group: str,
        dlq_maxlen: int = 10_000,
    ) -> None:
        self.client = client
        self.stream = stream
        self.group = group
        self.dlq_maxlen = dlq_maxlen

    def ensure_group(self) -> None:
        try:
            self.client.xgroup_create(self.stream, self.group, id="0", mkstream=True)
            log.info(
                "stream_group_created",
                extra={"payload": {"stream": self.stream, "group": self.group}},
            )
        except redis.ResponseError as e:
            if "BUSYGROUP" not in str(e):
                raise

    def add(self, fields: dict[str, str]) -> str:
        return str(self.client.xadd(self.stream, fields))

    def read(self, *, consumer: str, count: int, block_ms: int) -> list[StreamMessage]:
        if count <= 0:
            return []
        resp = self.client.xreadgroup(
            self.group, consumer, {self.stream: ">"}, count=count, block=block_ms
        )
        out: list[StreamMessage] = []
        for stream, entries in resp or []:
            out.extend(_to_messages(stream, entries))
        return out

    def ack(self, entry_id: str) -> None:
        self.client.xack(self.stream, self.group, entry_id)

    def reclaim(self, *, consumer: str, min_idle_ms: int, count: int) -> list[StreamMessage]:
        """
        Забрать записи, которые висят в PEL дольше min_idle_ms (consumer упал).
        """
        if count <= 0:
            return []
        resp = self.client.xautoclaim(
            self.stream,
            self.group,
            consumer,
            min_idle_time=min_idle_ms,
            start_id="0-0",
            count=count,
        )
        entries = resp[1] if resp and len(resp) > 1 else []
        return _to_messages(self.stream, entries)

    # -------------------------------------------------------------------------
    # Ретраи
    # -------------------------------------------------------------------------
    def schedule_retry(self, fields: dict[str, str], *, delay_sec: float) -> None:
        member = json.dumps(fields, ensure_ascii=False, sort_keys=True, separators=(",", ":"))
        self.client.zadd(delayed_key(self.stream), {member: due_at(delay_sec)})

    def promote_due(self, *, limit: int = 100) -> int:
        """
        Перенести созревшие ретраи из <stream>:delayed обратно в stream.

        XADD до ZREM: ошибка XADD оставляет ретрай в sorted set до следующего прохода.
        Реплики, перенёсшие одну запись одновременно, дают дубль (at-least-once).
        """
        key = delayed_key(self.stream)
        due = self.client.zrangebyscore(key, "-inf", epoch_sec(), start=0, num=limit)
        moved = 0
        for member in due:
            entry_id = self.client.xadd(self.stream, json.loads(member))
            if self.client.zrem(key, member) != 1:
                log.info(
                    "retry_promoted_twice",
                    extra={"payload": {"stream": self.stream, "entry_id": str(entry_id)}},
                )
            moved += 1
        return moved

    # -------------------------------------------------------------------------
    # DLQ
    # -------------------------------------------------------------------------
    def dead_letter(self, msg: StreamMessage, *, error: str, reason: str) -> str:
        fields = {
            **msg.fields,
            "source_entry_id": msg.entry_id,
            "error": error[:500],
            "reason": reason,
            "failed_at": utc_now_iso(),
        }
        return str(
            self.client.xadd(
                stream_dlq_name(self.stream), fields, maxlen=self.dlq_maxlen, approximate=True
            )
        )
