"""
Runtime readiness checks for production rollout.
"""

from __future__ import annotations

from dataclasses import dataclass

from catalog_sync.common.config import get_settings
from catalog_sync.common.logging import get_project_logger

log = get_project_logger()

_RETRY_POLICIES = {"fixed", "exponential", "jittered"}
_QUEUE_MODES = {"redis", "inline"}


@dataclass
class ReadinessIssue:
    severity: str  # error|warning
    code: str
    message: str


@dataclass
class ReadinessState:
    ready: bool
    issues: list[ReadinessIssue]


def _is_prod_env(app_env: str | None) -> bool:
    env = (app_env or "").strip().lower()
    return env in {"prod", "production"}


def evaluate_readiness() -> ReadinessState:
    s = get_settings()
    issues: list[ReadinessIssue] = []
    is_prod = _is_prod_env(s.app_env)

    queue_mode = (s.queue_mode or "").strip().lower()
    if queue_mode not in _QUEUE_MODES:
        issues.append(
            ReadinessIssue(
                severity="error",
                code="queue_mode_invalid",
                message=f"QUEUE_MODE должен быть одним из {sorted(_QUEUE_MODES)}",
            )
        )

    if (s.queue_retry_policy or "").strip().lower() not in _RETRY_POLICIES:
        issues.append(
            ReadinessIssue(
                severity="error",
                code="queue_retry_policy_invalid",
                message=f"QUEUE_RETRY_POLICY должен быть одним из {sorted(_RETRY_POLICIES)}",
            )
        )

    if s.queue_concurrency < 1:
        issues.append(
            ReadinessIssue(
                severity="error",
                code="queue_concurrency_invalid",
                message="QUEUE_CONCURRENCY должен быть >= 1",
            )
        )

    if s.queue_max_retry < 0:
        issues.append(
            ReadinessIssue(
                severity="error",
                code="queue_max_retry_invalid",
                message="QUEUE_MAX_RETRY не может быть отрицательным",
            )
        )

    if s.redis_socket_timeout_sec <= 0:
        issues.append(
            ReadinessIssue(
                severity="error",
                code="redis_socket_timeout_invalid",
                message="REDIS_SOCKET_TIMEOUT_SEC должен быть > 0",
            )
        )

    if not (s.opensearch_index_prefix or "").strip():
        issues.append(
            ReadinessIssue(
                severity="error",
                code="opensearch_index_prefix_empty",
                message="OPENSEARCH_INDEX_PREFIX не может быть пустым",
            )
        )

    if s.opensearch_username and not s.opensearch_password:
        issues.append(
            ReadinessIssue(
                severity="warning",
                code="opensearch_password_empty",
                message="OPENSEARCH_USERNAME задан без OPENSEARCH_PASSWORD",
            )
        )

    if is_prod:
        if queue_mode == "inline":
            issues.append(
                ReadinessIssue(
                    severity="error",
                    code="queue_inline_in_prod",
                    message=(
                        "QUEUE_MODE=inline запрещен в prod: задачи выполняются синхронно "
                        "в процессе API, без ретраев и DLQ"
                    ),
                )
            )
        if not s.opensearch_verify_tls:
            issues.append(
                ReadinessIssue(
                    severity="warning",
                    code="opensearch_tls_verify_disabled",
                    message="OPENSEARCH_VERIFY_TLS=false в prod",
                )
            )
        if (s.opensearch_url or "").strip().lower().startswith("http://"):
            issues.append(
                ReadinessIssue(
                    severity="warning",
                    code="opensearch_url_not_https",
                    message="В prod OPENSEARCH_URL лучше использовать с https://",
                )
            )

    ready = all(i.severity != "error" for i in issues)
    return ReadinessState(ready=ready, issues=issues)


def enforce_startup_readiness(*, service_name: str) -> ReadinessState:
    s = get_settings()
    state = evaluate_readiness()
    errors = [i for i in state.issues if i.severity == "error"]

    if errors:
        log.error(
            "startup_readiness_failed",
            extra={
                "payload": {
                    "service": service_name,
                    "app_env": s.app_env,
                    "error_codes": [e.code for e in errors],
                }
            },
        )
    else:
        log.info(
            "startup_readiness_ok",
            extra={"payload": {"service": service_name, "app_env": s.app_env}},
        )

    should_fail_fast = _is_prod_env(s.app_env) and bool(s.readiness_fail_fast_in_prod)
    if should_fail_fast and errors:
        msg = ", ".join(e.code for e in errors)
        raise RuntimeError(f"startup readiness failed for {service_name}: {msg}")
    return state
