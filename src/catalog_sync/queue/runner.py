"""
Запуск диспетчера в процессе воркера.

- SIGINT/SIGTERM -> dispatcher.stop() (дочитывать новые задачи перестаём, in-flight ждём)
- ошибка provisioning -> код выхода 1, воркер не стартует
- in-flight задачи не успели за QUEUE_SHUTDOWN_GRACE_SEC -> процесс завершается
  через os._exit, не дожидаясь потоков пула (записи переподхватит reclaim)
"""

from __future__ import annotations

import logging
import os
import signal
from collections.abc import Callable, Iterable

from catalog_sync.common.logging import get_project_logger

from .dispatcher import Dispatcher

log = get_project_logger()

Cleanup = Callable[[], None]


def install_stop_signals(dispatcher: Dispatcher) -> None:
    def _handler(signum, _frame) -> None:
        log.info(
            "worker_stop_requested",
            extra={"payload": {"service": dispatcher.service_name, "signal": signum}},
        )
        dispatcher.stop()

    signal.signal(signal.SIGINT, _handler)
    signal.signal(signal.SIGTERM, _handler)


def _run_cleanup(service: str, cleanup: Iterable[Cleanup]) -> None:
    for fn in cleanup:
        try:
            fn()
        except Exception as e:
            log.warning(
                "worker_cleanup_failed",
                extra={"payload": {"service": service, "err": str(e)[:300]}},
            )


def run_worker(
    dispatcher: Dispatcher,
    *,
    cleanup: Iterable[Cleanup] = (),
    hard_exit: Callable[[int], None] = os._exit,
) -> int:
    """
    Возвращает код выхода. Если после shutdown остались незавершённые задачи,
    вызывает hard_exit(code): обычный выход ждал бы потоки пула без ограничения.
    """
    install_stop_signals(dispatcher)
    try:
        dispatcher.start()
    except Exception as e:
        log.error(
            "worker_start_failed",
            extra={"payload": {"service": dispatcher.service_name, "err": str(e)[:300]}},
        )
        _run_cleanup(dispatcher.service_name, cleanup)
        return 1

    try:
        dispatcher.run_forever()
    finally:
        _run_cleanup(dispatcher.service_name, cleanup)

    if dispatcher.unfinished > 0:
        log.warning(
            "worker_forced_exit",
            extra={
                "payload": {
                    "service": dispatcher.service_name,
                    "unfinished": dispatcher.unfinished,
                }
            },
        )
        for h in logging.getLogger().handlers:
            h.flush()
        hard_exit(0)
    return 0
