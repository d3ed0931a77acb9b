from __future__ import annotations

import json
import threading
import time

import pytest

from catalog_sync.common.errors import PermanentTaskError, TransientTaskError
from catalog_sync.contracts.queue_events import DeleteSeriesPayload
from catalog_sync.domain.enums import TaskState, TaskType
from catalog_sync.queue.dispatcher import Dispatcher, DispatcherConfig
from catalog_sync.queue.retry import exponential_delay
from catalog_sync.queue.streams import StreamMessage, build_fields


class _FakeBroker:
    stream = "q:search"
    group = "g:indexer"

    def __init__(self, messages: list[StreamMessage] | None = None) -> None:
        self.pending = list(messages or [])
        self.acked: list[str] = []
        self.retries: list[tuple[dict[str, str], float]] = []
        self.dead: list[tuple[StreamMessage, str, str]] = []
        self.group_ensured = False

    def ensure_group(self) -> None:
        self.group_ensured = True

    def promote_due(self, *, limit: int = 100) -> int:
        return 0

    def reclaim(self, *, consumer: str, min_idle_ms: int, count: int) -> list[StreamMessage]:
        return []

    def read(self, *, consumer: str, count: int, block_ms: int) -> list[StreamMessage]:
        out, self.pending = self.pending[:count], self.pending[count:]
        return out

    def ack(self, entry_id: str) -> None:
        self.acked.append(entry_id)

    def schedule_retry(self, fields: dict[str, str], *, delay_sec: float) -> None:
        self.retries.append((fields, delay_sec))

    def dead_letter(self, msg: StreamMessage, *, error: str, reason: str) -> str:
        self.dead.append((msg, error, reason))
        return f"dlq-{len(self.dead)}"


def _msg(
    task_type: str = TaskType.delete_series.value,
    payload: str = '{"series_id":"s-1"}',
    *,
    attempts: int = 0,
    entry_id: str = "1-0",
) -> StreamMessage:
    fields = build_fields(
        task_type=task_type,
        payload=payload,
        event_id="task_x",
        schema_version="v1",
        attempts=attempts,
    )
    return StreamMessage(stream="q:search", entry_id=entry_id, fields=fields)


def _dispatcher(handler, broker: _FakeBroker | None = None, **cfg) -> Dispatcher:
    opts = {
        "concurrency": 2,
        "max_retry": 3,
        "retry_delay": exponential_delay(1, max_sec=60),
        "block_ms": 10,
        "shutdown_grace_sec": 1.0,
        "consumer": "test",
        **cfg,
    }
    config = DispatcherConfig(**opts)
    return Dispatcher(
        broker or _FakeBroker(),
        {TaskType.delete_series: handler},
        config,
        service_name="worker-test",
    )


def test_success_acks_once() -> None:
    seen: list[DeleteSeriesPayload] = []
    broker = _FakeBroker()
    d = _dispatcher(seen.append, broker)

    assert d.process_message(_msg()) == TaskState.succeeded
    assert broker.acked == ["1-0"]
    assert seen[0].series_id == "s-1"
    assert broker.retries == []
    assert broker.dead == []


def test_transient_failure_schedules_retry_with_incremented_attempts() -> None:
    def _fail(_p) -> None:
        raise TransientTaskError("search down", {"entity_id": "s-1"})

    broker = _FakeBroker()
    d = _dispatcher(_fail, broker)

    assert d.process_message(_msg(attempts=1)) == TaskState.retrying
    fields, delay = broker.retries[0]
    assert fields["attempts"] == "2"
    assert fields["last_error"]
    assert delay == 2.0  # exponential: 1 * 2^(2-1)
    assert broker.acked == ["1-0"]
    assert broker.dead == []


def test_unexpected_exception_is_retryable() -> None:
    def _bug(_p) -> None:
        raise RuntimeError("boom")

    broker = _FakeBroker()
    assert _dispatcher(_bug, broker).process_message(_msg()) == TaskState.retrying
    assert len(broker.retries) == 1


def test_retries_exhausted_goes_to_dlq() -> None:
    def _fail(_p) -> None:
        raise TransientTaskError("search down")

    broker = _FakeBroker()
    d = _dispatcher(_fail, broker)

    assert d.process_message(_msg(attempts=3)) == TaskState.dead_lettered
    assert broker.retries == []
    msg, _, reason = broker.dead[0]
    assert reason == "retries_exhausted"
    assert msg.entry_id == "1-0"
    assert broker.acked == ["1-0"]


def test_max_retry_bounds_total_runs() -> None:
    calls: list[int] = []

    def _fail(_p) -> None:
        calls.append(1)
        raise TransientTaskError("search down")

    broker = _FakeBroker()
    d = _dispatcher(_fail, broker)

    msg = _msg()
    while True:
        state = d.process_message(msg)
        if state != TaskState.retrying:
            break
        fields, _ = broker.retries[-1]
        msg = StreamMessage(stream="q:search", entry_id=f"{len(calls) + 1}-0", fields=fields)

    assert state == TaskState.dead_lettered
    assert len(calls) == 4  # первый запуск + 3 ретрая


def test_permanent_failure_skips_retries() -> None:
    def _fail(_p) -> None:
        raise PermanentTaskError("unsupported import source")

    broker = _FakeBroker()
    assert _dispatcher(_fail, broker).process_message(_msg()) == TaskState.dead_lettered
    assert broker.retries == []
    assert broker.dead[0][2] == "permanent_error"


def test_unknown_task_type_is_dead_lettered() -> None:
    called: list[object] = []
    broker = _FakeBroker()
    d = _dispatcher(called.append, broker)

    assert d.process_message(_msg(task_type="search:reindex_all")) == TaskState.dead_lettered
    assert called == []
    assert broker.dead[0][2] == "unknown_task_type"
    assert broker.acked == ["1-0"]


def test_known_type_without_handler_is_dead_lettered() -> None:
    broker = _FakeBroker()
    d = _dispatcher(lambda _p: None, broker)

    msg = _msg(task_type=TaskType.index_series.value, payload=json.dumps({"series": {"id": "s"}}))
    assert d.process_message(msg) == TaskState.dead_lettered
    assert broker.dead[0][2] == "no_handler"


def test_malformed_payload_is_dead_lettered_without_retry() -> None:
    called: list[object] = []
    broker = _FakeBroker()
    d = _dispatcher(called.append, broker)

    assert d.process_message(_msg(payload='{"series_id": ""}')) == TaskState.dead_lettered
    assert d.process_message(_msg(payload="not json", entry_id="2-0")) == TaskState.dead_lettered
    assert called == []
    assert [r for _, _, r in broker.dead] == ["permanent_error", "permanent_error"]


def test_provisioning_failure_aborts_start() -> None:
    def _provision() -> None:
        raise ConnectionError("search engine unreachable")

    broker = _FakeBroker()
    d = Dispatcher(
        broker,
        {},
        DispatcherConfig(consumer="test"),
        provisioners=[_provision],
        service_name="worker-test",
    )
    with pytest.raises(ConnectionError):
        d.start()
    assert broker.group_ensured is False
    assert d.started is False


def test_poll_once_requires_start() -> None:
    with pytest.raises(RuntimeError):
        _dispatcher(lambda _p: None).poll_once()


def test_poll_reads_no_more_than_free_slots_and_drains_on_shutdown() -> None:
    release = threading.Event()
    done: list[str] = []

    def _slow(p: DeleteSeriesPayload) -> None:
        release.wait(2)
        done.append(p.series_id)

    messages = [
        _msg(payload=json.dumps({"series_id": f"s-{i}"}), entry_id=f"{i}-0") for i in range(5)
    ]
    broker = _FakeBroker(messages)
    d = _dispatcher(_slow, broker)
    d.start()
    try:
        assert broker.group_ensured is True
        assert d.poll_once() == 2  # concurrency=2
        assert d.free_slots() == 0
        assert d.poll_once() == 0
        assert len(broker.pending) == 3
    finally:
        release.set()
        d.shutdown()

    assert sorted(done) == ["s-0", "s-1"]
    assert sorted(broker.acked) == ["0-0", "1-0"]
    assert d.stopping is True
    assert d.unfinished == 0


def test_shutdown_returns_after_grace_period_and_leaves_entry_unacked() -> None:
    release = threading.Event()

    def _stuck(_p: DeleteSeriesPayload) -> None:
        release.wait(5)

    broker = _FakeBroker([_msg(entry_id="9-0")])
    d = _dispatcher(_stuck, broker, shutdown_grace_sec=0.1)
    d.start()
    try:
        assert d.poll_once() == 1
        started = time.monotonic()
        assert d.shutdown() == 1
        assert time.monotonic() - started < 1.0
        assert d.unfinished == 1
        # запись без ack: её переподхватит reclaim после рестарта
        assert broker.acked == []
    finally:
        release.set()
