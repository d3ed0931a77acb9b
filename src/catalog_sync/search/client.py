"""
Клиент OpenSearch (REST через requests.Session).

Назначение:
- проверка/создание индексов (provisioning воркера индексации)
- upsert документа по id с refresh=true (поиск сразу видит запись)
- удаление документа по id (404 -> не ошибка)
- поиск с пагинацией

Любая транспортная ошибка или ответ 4xx/5xx -> SearchError.
"""

from __future__ import annotations

from typing import Any, Protocol
from urllib.parse import quote

import requests

from catalog_sync.common.config import get_settings
from catalog_sync.common.errors import SearchError
from catalog_sync.common.logging import get_project_logger

from .mappings import episodes_index, series_index
from .query import SearchRequest, SearchResult, build_search_query

log = get_project_logger()


class SearchClient(Protocol):
    def index_exists(self, index: str) -> bool: ...

    def create_index(self, index: str, mapping: dict[str, Any]) -> None: ...

    def index_document(self, index: str, doc_id: str, document: dict[str, Any]) -> None: ...

    def delete_document(self, index: str, doc_id: str) -> bool: ...

    def search(self, index: str, request: SearchRequest) -> SearchResult: ...


def _error_type(resp: requests.Response) -> str | None:
    try:
        data = resp.json()
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None
    err = data.get("error")
    if isinstance(err, dict):
        return str(err.get("type") or "") or None
    return None


class OpenSearchClient:
    def __init__(
        self,
        *,
        base_url: str,
        index_prefix: str = "th",
        username: str | None = None,
        password: str | None = None,
        timeout_sec: float = 30.0,
        verify_tls: bool = True,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.index_prefix = index_prefix
        self.timeout_sec = timeout_sec
        self.session = session or requests.Session()
        self.session.headers.update({"Content-Type": "application/json"})
        self.session.verify = verify_tls
        if username:
            self.session.auth = (username, password or "")

    def _request(
        self,
        method: str,
        path: str,
        *,
        json_body: dict[str, Any] | None = None,
        params: dict[str, str] | None = None,
    ) -> requests.Response:
        url = f"{self.base_url}{path}"
        try:
            return self.session.request(
                method=method,
                url=url,
                json=json_body,
                params=params,
                timeout=self.timeout_sec,
            )
        except requests.RequestException as e:
            log.error(
                "search_http_error",
                extra={"payload": {"method": method, "path": path, "err": str(e)[:200]}},
            )
            raise SearchError("search engine unreachable", details={"path": path}) from e

    @staticmethod
    def _raise_for(resp: requests.Response, op: str, index: str) -> None:
        raise SearchError(
            f"{op} failed",
            status=resp.status_code,
            details={"index": index, "text_head": resp.text[:300]},
        )

    # =========================================================================
    # ИНДЕКСЫ
    # =========================================================================
    def index_exists(self, index: str) -> bool:
        resp = self._request("HEAD", f"/{quote(index)}")
        if resp.status_code == 200:
            return True
        if resp.status_code == 404:
            return False
        self._raise_for(resp, "index exists check", index)
        return False  # pragma: no cover

    def create_index(self, index: str, mapping: dict[str, Any]) -> None:
        resp = self._request("PUT", f"/{quote(index)}", json_body=mapping)
        if resp.status_code < 300:
            log.info("search_index_created", extra={"payload": {"index": index}})
            return
        if resp.status_code == 400 and _error_type(resp) == "resource_already_exists_exception":
            return
        self._raise_for(resp, "create index", index)

    # =========================================================================
    # ДОКУМЕНТЫ
    # =========================================================================
    def index_document(self, index: str, doc_id: str, document: dict[str, Any]) -> None:
        resp = self._request(
            "PUT",
            f"/{quote(index)}/_doc/{quote(str(doc_id), safe='')}",
            json_body=document,
            params={"refresh": "true"},
        )
        if resp.status_code >= 300:
            self._raise_for(resp, "index document", index)

    def delete_document(self, index: str, doc_id: str) -> bool:
        """
        True -> документ удалён, False -> его не было (не ошибка).
        """
        resp = self._request(
            "DELETE",
            f"/{quote(index)}/_doc/{quote(str(doc_id), safe='')}",
            params={"refresh": "true"},
        )
        if resp.status_code == 404:
            return False
        if resp.status_code >= 300:
            self._raise_for(resp, "delete document", index)
        return True

    # =========================================================================
    # ПОИСК
    # =========================================================================
    def search(self, index: str, request: SearchRequest) -> SearchResult:
        body = build_search_query(request)
        resp = self._request("POST", f"/{quote(index)}/_search", json_body=body)
        if resp.status_code >= 300:
            self._raise_for(resp, "search", index)
        try:
            data = resp.json()
            hits_block = data["hits"]
            total_raw = hits_block.get("total", 0)
            total = int(total_raw["value"] if isinstance(total_raw, dict) else total_raw)
            hits = [h.get("_source") or {} for h in hits_block.get("hits", [])]
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise SearchError(
                "invalid search response",
                status=resp.status_code,
                details={"index": index, "text_head": resp.text[:300]},
            ) from e
        return SearchResult(total=total, hits=hits, page=request.page, size=request.page_size)

    def search_series(self, request: SearchRequest) -> SearchResult:
        return self.search(series_index(self.index_prefix), request)

    def search_episodes(self, request: SearchRequest) -> SearchResult:
        return self.search(episodes_index(self.index_prefix), request)

    def close(self) -> None:
        self.session.close()


_CLIENT: OpenSearchClient | None = None


def build_search_client() -> OpenSearchClient:
    s = get_settings()
    return OpenSearchClient(
        base_url=s.opensearch_url,
        index_prefix=s.opensearch_index_prefix,
        username=s.opensearch_username,
        password=s.opensearch_password,
        timeout_sec=s.opensearch_timeout_sec,
        verify_tls=s.opensearch_verify_tls,
    )


def get_search_client() -> OpenSearchClient:
    """
    Singleton клиента на процесс (requests.Session держит пул соединений).
    """
    global _CLIENT
    if _CLIENT is None:
        _CLIENT = build_search_client()
    return _CLIENT
