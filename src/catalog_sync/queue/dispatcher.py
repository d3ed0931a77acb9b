"""
Диспетчер задач (consumer).

Назначение:
- читать stream через consumer group и раздавать задачи обработчикам по TaskType
- ограничивать параллелизм (пул потоков на QUEUE_CONCURRENCY, читаем не больше свободных слотов)
- ретраи с задержкой retry_delay(attempt), затем DLQ
- однократный provisioning перед стартом (ошибка -> воркер не стартует)
- мягкая остановка: не читаем новые задачи, ждём in-flight до grace period

Доставка at-least-once:
- ack только после успешной обработки / переноса в ретрай / DLQ
- записи упавших consumer'ов переподхватываются через XAUTOCLAIM
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable, Iterable, Mapping
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Any

import redis

from catalog_sync.common.config import Settings
from catalog_sync.common.errors import AppError, TaskError
from catalog_sync.common.logging import get_project_logger, task_log_context
from catalog_sync.common.metrics import QUEUE_TASKS_TOTAL, track_task_latency
from catalog_sync.contracts.queue_events import decode_payload
from catalog_sync.domain.enums import TaskState, TaskType
from catalog_sync.domain.state_machine import advance, resolve_failure

from .retry import RetryDelay, fixed_delay, retry_delay_from_settings
from .streams import RedisStreamBroker, StreamMessage

log = get_project_logger()

Handler = Callable[[Any], None]
Provisioner = Callable[[], None]


@dataclass
class DispatcherConfig:
    concurrency: int = 10
    max_retry: int = 3
    retry_delay: RetryDelay = field(default_factory=lambda: fixed_delay(5.0))
    block_ms: int = 5000
    reclaim_idle_ms: int = 300_000
    reclaim_interval_sec: float = 30.0
    shutdown_grace_sec: float = 5.0
    consumer: str = "worker"

    @classmethod
    def from_settings(cls, s: Settings, *, consumer: str) -> DispatcherConfig:
        return cls(
            concurrency=max(int(s.queue_concurrency), 1),
            max_retry=max(int(s.queue_max_retry), 0),
            retry_delay=retry_delay_from_settings(s),
            block_ms=int(s.queue_block_ms),
            reclaim_idle_ms=int(s.queue_reclaim_idle_ms),
            shutdown_grace_sec=float(s.queue_shutdown_grace_sec),
            consumer=consumer,
        )


def _error_payload(e: BaseException) -> dict[str, Any]:
    out: dict[str, Any] = {"err": str(e)[:300], "err_type": type(e).__name__}
    if isinstance(e, AppError):
        out["code"] = e.code
        if e.details:
            out["details"] = e.details
    return out


class Dispatcher:
    def __init__(
        self,
        broker: RedisStreamBroker,
        handlers: Mapping[TaskType, Handler],
        config: DispatcherConfig,
        *,
        provisioners: Iterable[Provisioner] = (),
        service_name: str = "worker",
    ) -> None:
        self.broker = broker
        self.handlers = dict(handlers)
        self.config = config
        self.provisioners = list(provisioners)
        self.service_name = service_name

        self._stop = threading.Event()
        self._lock = threading.Lock()
        self._inflight: dict[Future, StreamMessage] = {}
        self._pool: ThreadPoolExecutor | None = None
        self._last_reclaim = 0.0
        # задачи, не завершившиеся за grace period последнего shutdown()
        self.unfinished = 0

    # =========================================================================
    # ЖИЗНЕННЫЙ ЦИКЛ
    # =========================================================================
    @property
    def started(self) -> bool:
        return self._pool is not None

    def start(self) -> None:
        """
        Provisioning + consumer group + пул. Ошибка provisioning пробрасывается.
        """
        for provision in self.provisioners:
            try:
                provision()
            except Exception as e:
                log.error(
                    "worker_provisioning_failed",
                    extra={"payload": {"service": self.service_name, **_error_payload(e)}},
                )
                raise

        self.broker.ensure_group()
        self._pool = ThreadPoolExecutor(
            max_workers=self.config.concurrency,
            thread_name_prefix=f"{self.service_name}-task",
        )
        log.info(
            "worker_started",
            extra={
                "payload": {
                    "service": self.service_name,
                    "stream": self.broker.stream,
                    "group": self.broker.group,
                    "consumer": self.config.consumer,
                    "concurrency": self.config.concurrency,
                    "handlers": sorted(t.value for t in self.handlers),
                }
            },
        )

    def stop(self) -> None:
        self._stop.set()

    @property
    def stopping(self) -> bool:
        return self._stop.is_set()

    def free_slots(self) -> int:
        with self._lock:
            return max(self.config.concurrency - len(self._inflight), 0)

    def run_forever(self) -> None:
        if not self.started:
            self.start()
        try:
            while not self._stop.is_set():
                try:
                    submitted = self.poll_once()
                except redis.RedisError as e:
                    log.error(
                        "worker_poll_error",
                        extra={"payload": {"service": self.service_name, **_error_payload(e)}},
                    )
                    self._stop.wait(1.0)
                    continue
                if submitted == 0 and self.free_slots() == 0:
                    # все слоты заняты: ждём освобождения
                    self._stop.wait(0.05)
        finally:
            self.shutdown()

    def shutdown(self) -> int:
        """
        Ждёт in-flight задачи не дольше shutdown_grace_sec.

        Возвращает число незавершённых задач. Их потоки пула не прерываются:
        процесс воркера завершается принудительно (queue.runner), а записи
        остаются в PEL без ack и переподхватываются reclaim'ом.
        """
        self._stop.set()
        pool = self._pool
        if pool is None:
            return self.unfinished
        with self._lock:
            pending = dict(self._inflight)
        done, not_done = wait(pending, timeout=self.config.shutdown_grace_sec)
        pool.shutdown(wait=False, cancel_futures=True)
        self._pool = None
        self.unfinished = len(not_done)

        payload: dict[str, Any] = {
            "service": self.service_name,
            "finished": len(done),
            "unfinished": self.unfinished,
        }
        if not_done:
            payload["unfinished_entry_ids"] = sorted(pending[f].entry_id for f in not_done)[:20]
            log.warning("worker_stopped", extra={"payload": payload})
        else:
            log.info("worker_stopped", extra={"payload": payload})
        return self.unfinished

    # =========================================================================
    # ЧТЕНИЕ
    # =========================================================================
    def poll_once(self) -> int:
        """
        Один шаг цикла: ретраи -> reclaim -> чтение. Возвращает число отправленных в пул задач.
        """
        if not self.started:
            raise RuntimeError("dispatcher is not started")

        self.broker.promote_due()

        messages: list[StreamMessage] = []
        now = time.monotonic()
        if now - self._last_reclaim >= self.config.reclaim_interval_sec:
            self._last_reclaim = now
            messages.extend(
                self.broker.reclaim(
                    consumer=self.config.consumer,
                    min_idle_ms=self.config.reclaim_idle_ms,
                    count=self.free_slots(),
                )
            )
            if messages:
                log.warning(
                    "tasks_reclaimed",
                    extra={
                        "payload": {
                            "stream": self.broker.stream,
                            "count": len(messages),
                            "entry_ids": [m.entry_id for m in messages][:20],
                        }
                    },
                )

        free = self.free_slots() - len(messages)
        if free > 0:
            messages.extend(
                self.broker.read(
                    consumer=self.config.consumer, count=free, block_ms=self.config.block_ms
                )
            )

        for msg in messages:
            self._submit(msg)
        return len(messages)

    def _submit(self, msg: StreamMessage) -> None:
        assert self._pool is not None
        fut = self._pool.submit(self.process_message, msg)
        with self._lock:
            self._inflight[fut] = msg
        fut.add_done_callback(lambda f, m=msg: self._on_done(f, m))

    def _on_done(self, fut: Future, msg: StreamMessage) -> None:
        with self._lock:
            self._inflight.pop(fut, None)
        if fut.cancelled():
            return
        exc = fut.exception()
        if exc is not None:
            # запись осталась в PEL без ack: её переподхватит reclaim
            log.error(
                "task_settle_failed",
                extra={
                    "payload": {
                        "service": self.service_name,
                        "entry_id": msg.entry_id,
                        "task_type": msg.task_type,
                        **_error_payload(exc),
                    }
                },
            )

    # =========================================================================
    # ОБРАБОТКА
    # =========================================================================
    def process_message(self, msg: StreamMessage) -> TaskState:
        with task_log_context(
            task_type=msg.task_type, event_id=msg.event_id, entry_id=msg.entry_id
        ):
            return self._process(msg)

    def _process(self, msg: StreamMessage) -> TaskState:
        prior = TaskState.retrying if msg.attempts > 0 else TaskState.enqueued
        state = advance(prior, TaskState.processing)

        task_type = TaskType.parse(msg.task_type)
        if task_type is None:
            return self._dead_letter(
                msg, state, reason="unknown_task_type", error=f"unknown task type: {msg.task_type}"
            )

        handler = self.handlers.get(task_type)
        if handler is None:
            return self._dead_letter(
                msg, state, reason="no_handler", error=f"no handler for {task_type.value}"
            )

        try:
            payload = decode_payload(task_type, msg.payload)
            with track_task_latency(self.service_name, task_type.value):
                handler(payload)
        except Exception as e:
            return self._on_failure(msg, state, task_type, e)

        self.broker.ack(msg.entry_id)
        QUEUE_TASKS_TOTAL.labels(
            service=self.service_name, task_type=task_type.value, result="success"
        ).inc()
        log.info(
            "task_succeeded",
            extra={
                "payload": {
                    "task_type": task_type.value,
                    "entry_id": msg.entry_id,
                    "event_id": msg.event_id,
                    "attempts": msg.attempts,
                }
            },
        )
        return advance(state, TaskState.succeeded)

    def _on_failure(
        self, msg: StreamMessage, state: TaskState, task_type: TaskType, e: Exception
    ) -> TaskState:
        retryable = not (isinstance(e, TaskError) and not e.retryable)
        attempt_no = msg.attempts + 1
        result = resolve_failure(
            attempts=msg.attempts,
            max_retry=self.config.max_retry,
            retryable=retryable,
            delay_sec=self.config.retry_delay(attempt_no) if retryable else None,
            reason="permanent_error" if not retryable else "handler_failed",
        )

        if result.state != TaskState.retrying:
            return self._dead_letter(msg, state, reason=result.reason or "failed", error=e)

        delay = float(result.retry_in_sec or 0.0)
        fields = {**msg.fields, "attempts": str(attempt_no), "last_error": str(e)[:300]}
        self.broker.schedule_retry(fields, delay_sec=delay)
        self.broker.ack(msg.entry_id)

        QUEUE_TASKS_TOTAL.labels(
            service=self.service_name, task_type=task_type.value, result="retry"
        ).inc()
        log.warning(
            "task_retry_scheduled",
            extra={
                "payload": {
                    "task_type": task_type.value,
                    "entry_id": msg.entry_id,
                    "event_id": msg.event_id,
                    "attempt": attempt_no,
                    "max_retry": self.config.max_retry,
                    "delay_sec": round(delay, 3),
                    **_error_payload(e),
                }
            },
        )
        return advance(state, TaskState.retrying)

    def _dead_letter(
        self, msg: StreamMessage, state: TaskState, *, reason: str, error: str | BaseException
    ) -> TaskState:
        err_payload = _error_payload(error) if isinstance(error, BaseException) else {"err": error}
        dlq_id = self.broker.dead_letter(msg, error=str(err_payload.get("err", "")), reason=reason)
        self.broker.ack(msg.entry_id)

        known = TaskType.parse(msg.task_type)
        QUEUE_TASKS_TOTAL.labels(
            service=self.service_name,
            task_type=known.value if known else "unknown",
            result="dead_letter",
        ).inc()
        log.error(
            "task_dead_lettered",
            extra={
                "payload": {
                    "task_type": msg.task_type,
                    "entry_id": msg.entry_id,
                    "event_id": msg.event_id,
                    "attempts": msg.attempts,
                    "reason": reason,
                    "dlq_entry_id": dlq_id,
                    **err_payload,
                }
            },
        )
        return advance(state, TaskState.dead_lettered)
