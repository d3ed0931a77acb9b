from __future__ import annotations

import pytest

from catalog_sync.common.config import get_settings
from catalog_sync.services.readiness_service import (
    enforce_startup_readiness,
    evaluate_readiness,
)


def test_readiness_prod_fails_on_inline_queue_and_bad_policy() -> None:
    s = get_settings()
    snapshot = (
        s.app_env,
        s.queue_mode,
        s.queue_retry_policy,
        s.opensearch_verify_tls,
        s.opensearch_url,
    )
    try:
        s.app_env = "prod"
        s.queue_mode = "inline"
        s.queue_retry_policy = "linear"
        s.opensearch_verify_tls = False
        s.opensearch_url = "http://search:9200"
        state = evaluate_readiness()
        codes = {i.code for i in state.issues}
        assert state.ready is False
        assert "queue_inline_in_prod" in codes
        assert "queue_retry_policy_invalid" in codes
        assert "opensearch_tls_verify_disabled" in codes
        assert "opensearch_url_not_https" in codes
    finally:
        (
            s.app_env,
            s.queue_mode,
            s.queue_retry_policy,
            s.opensearch_verify_tls,
            s.opensearch_url,
        ) = snapshot


def test_readiness_dev_allows_defaults() -> None:
    s = get_settings()
    snapshot = (s.app_env, s.queue_mode, s.queue_retry_policy)
    try:
        s.app_env = "dev"
        s.queue_mode = "inline"
        s.queue_retry_policy = "fixed"
        state = evaluate_readiness()
        # warning'и допустимы, важно что нет ошибок.
        assert state.ready is True
    finally:
        s.app_env, s.queue_mode, s.queue_retry_policy = snapshot


def test_readiness_rejects_bad_queue_numbers() -> None:
    s = get_settings()
    snapshot = (s.queue_concurrency, s.queue_max_retry, s.opensearch_index_prefix)
    try:
        s.queue_concurrency = 0
        s.queue_max_retry = -1
        s.opensearch_index_prefix = " "
        codes = {i.code for i in evaluate_readiness().issues}
        assert {
            "queue_concurrency_invalid",
            "queue_max_retry_invalid",
            "opensearch_index_prefix_empty",
        } <= codes
    finally:
        s.queue_concurrency, s.queue_max_retry, s.opensearch_index_prefix = snapshot


def test_startup_readiness_fail_fast_in_prod() -> None:
    s = get_settings()
    snapshot = (s.app_env, s.queue_mode, s.readiness_fail_fast_in_prod)
    try:
        s.app_env = "prod"
        s.queue_mode = "inline"
        s.readiness_fail_fast_in_prod = True
        with pytest.raises(RuntimeError, match="queue_inline_in_prod"):
            enforce_startup_readiness(service_name="worker-indexer")
    finally:
        s.app_env, s.queue_mode, s.readiness_fail_fast_in_prod = snapshot
