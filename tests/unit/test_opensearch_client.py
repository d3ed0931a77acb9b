from __future__ import annotations

import json
from types import SimpleNamespace
from typing import Any

import pytest
import requests

from catalog_sync.common.errors import SearchError
from catalog_sync.search.client import OpenSearchClient
from catalog_sync.search.query import SearchRequest


def _resp(status: int, body: Any = None) -> SimpleNamespace:
    text = json.dumps(body) if body is not None else ""

    def _json() -> Any:
        if body is None:
            raise ValueError("no body")
        return body

    return SimpleNamespace(status_code=status, text=text, json=_json)


class _FakeSession:
    def __init__(self, *responses: SimpleNamespace | Exception) -> None:
        self.responses = list(responses)
        self.calls: list[dict[str, Any]] = []
        self.headers: dict[str, str] = {}
        self.verify = True
        self.auth = None
        self.closed = False

    def request(self, **kwargs) -> SimpleNamespace:
        self.calls.append(kwargs)
        nxt = self.responses.pop(0)
        if isinstance(nxt, Exception):
            raise nxt
        return nxt

    def close(self) -> None:
        self.closed = True


def _client(session: _FakeSession) -> OpenSearchClient:
    return OpenSearchClient(
        base_url="http://search:9200/",
        index_prefix="th",
        username="admin",
        password="secret",
        timeout_sec=2,
        verify_tls=False,
        session=session,
    )


def test_client_configures_session() -> None:
    session = _FakeSession()
    _client(session)
    assert session.auth == ("admin", "secret")
    assert session.verify is False
    assert session.headers["Content-Type"] == "application/json"


def test_index_exists_maps_statuses() -> None:
    session = _FakeSession(_resp(200), _resp(404), _resp(500, {"error": "x"}))
    c = _client(session)
    assert c.index_exists("th-series") is True
    assert c.index_exists("th-series") is False
    with pytest.raises(SearchError):
        c.index_exists("th-series")
    assert session.calls[0]["method"] == "HEAD"
    assert session.calls[0]["url"] == "http://search:9200/th-series"


def test_create_index_tolerates_concurrent_creation() -> None:
    already = _resp(400, {"error": {"type": "resource_already_exists_exception"}})
    session = _FakeSession(_resp(200, {"acknowledged": True}), already)
    c = _client(session)
    c.create_index("th-series", {"mappings": {}})
    c.create_index("th-series", {"mappings": {}})
    assert session.calls[0]["method"] == "PUT"
    assert session.calls[0]["json"] == {"mappings": {}}


def test_create_index_other_400_fails() -> None:
    session = _FakeSession(_resp(400, {"error": {"type": "mapper_parsing_exception"}}))
    with pytest.raises(SearchError) as exc_info:
        _client(session).create_index("th-series", {})
    assert exc_info.value.status == 400


def test_index_document_puts_by_id_with_refresh() -> None:
    session = _FakeSession(_resp(201, {"result": "created"}))
    _client(session).index_document("th-episodes", "e-1", {"id": "e-1"})
    call = session.calls[0]
    assert call["method"] == "PUT"
    assert call["url"] == "http://search:9200/th-episodes/_doc/e-1"
    assert call["params"] == {"refresh": "true"}
    assert call["timeout"] == 2


def test_delete_missing_document_is_not_an_error() -> None:
    session = _FakeSession(_resp(404, {"result": "not_found"}), _resp(200, {"result": "deleted"}))
    c = _client(session)
    assert c.delete_document("th-series", "s-1") is False
    assert c.delete_document("th-series", "s-1") is True


def test_transport_error_becomes_search_error() -> None:
    session = _FakeSession(requests.ConnectionError("refused"))
    with pytest.raises(SearchError, match="unreachable"):
        _client(session).index_document("th-series", "s-1", {})


def test_search_parses_hits_and_total() -> None:
    body = {
        "hits": {
            "total": {"value": 41, "relation": "eq"},
            "hits": [{"_id": "s-1", "_source": {"id": "s-1", "title": "Planet"}}],
        }
    }
    session = _FakeSession(_resp(200, body))
    res = _client(session).search_series(
        SearchRequest(query="planet", page=2, page_size=20, filters={"language": "en"})
    )
    assert res.total == 41
    assert res.page_count == 3
    assert res.hits == [{"id": "s-1", "title": "Planet"}]

    call = session.calls[0]
    assert call["method"] == "POST"
    assert call["url"] == "http://search:9200/th-series/_search"
    assert call["json"]["from"] == 20


def test_search_invalid_response_is_error() -> None:
    session = _FakeSession(_resp(200, {"unexpected": True}))
    with pytest.raises(SearchError, match="invalid search response"):
        _client(session).search_episodes(SearchRequest())


def test_close_closes_session() -> None:
    session = _FakeSession()
    _client(session).close()
    assert session.closed is True
