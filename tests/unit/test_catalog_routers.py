from __future__ import annotations

import json
import uuid
from contextlib import contextmanager
from datetime import timedelta

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from apps.api_gateway.deps import queue_dep
from apps.api_gateway.routers.episodes import router as episodes_router
from apps.api_gateway.routers.series import router as series_router
from catalog_sync.common.time import utc_now
from catalog_sync.domain.enums import SeriesType, TaskType
from catalog_sync.storage.models import Episode, EpisodeAsset, Series

from queue_fakes import InMemoryTaskQueue

CATEGORY_ID = "5d6c7b8a-1234-4cde-9f00-aabbccddeeff"


class _FakeDB:
    def __init__(self) -> None:
        self.series: dict[uuid.UUID, Series] = {}
        self.episodes: dict[uuid.UUID, Episode] = {}
        self.assets: dict[uuid.UUID, EpisodeAsset] = {}


def _stamp(obj) -> None:
    if obj.id is None:
        obj.id = uuid.uuid4()
    obj.created_at = obj.created_at or utc_now()
    if hasattr(obj, "updated_at"):
        obj.updated_at = utc_now()


class _SeriesRepo:
    def __init__(self, db: _FakeDB) -> None:
        self.db = db

    def get(self, series_id):
        return self.db.series.get(series_id)

    def exists(self, series_id) -> bool:
        return series_id in self.db.series

    def list_page(self, *, offset: int, limit: int):
        rows = sorted(self.db.series.values(), key=lambda s: s.created_at, reverse=True)
        return rows[offset : offset + limit]

    def count(self) -> int:
        return len(self.db.series)

    def save(self, series: Series) -> Series:
        _stamp(series)
        self.db.series[series.id] = series
        return series

    def delete(self, series: Series) -> None:
        self.db.series.pop(series.id, None)
        for eid in [e.id for e in self.db.episodes.values() if e.series_id == series.id]:
            self.db.episodes.pop(eid)


class _EpisodeRepo:
    def __init__(self, db: _FakeDB) -> None:
        self.db = db

    def get(self, episode_id):
        return self.db.episodes.get(episode_id)

    def _of_series(self, series_id):
        return [e for e in self.db.episodes.values() if e.series_id == series_id]

    def list_by_series(self, series_id, *, offset: int, limit: int):
        return self._of_series(series_id)[offset : offset + limit]

    def count_by_series(self, series_id) -> int:
        return len(self._of_series(series_id))

    def list_ids_by_series(self, series_id):
        return [e.id for e in self._of_series(series_id)]

    def save(self, episode: Episode) -> Episode:
        _stamp(episode)
        self.db.episodes[episode.id] = episode
        return episode

    def delete(self, episode: Episode) -> None:
        self.db.episodes.pop(episode.id, None)


class _AssetRepo:
    def __init__(self, db: _FakeDB) -> None:
        self.db = db

    def list_by_episode(self, episode_id):
        return [a for a in self.db.assets.values() if a.episode_id == episode_id]


@pytest.fixture
def db(monkeypatch) -> _FakeDB:
    fake = _FakeDB()

    @contextmanager
    def _session():
        yield fake

    for module in ("series", "episodes"):
        prefix = f"apps.api_gateway.routers.{module}"
        monkeypatch.setattr(f"{prefix}.db_session", _session)
        monkeypatch.setattr(f"{prefix}.SeriesRepository", _SeriesRepo)
        monkeypatch.setattr(f"{prefix}.EpisodeRepository", _EpisodeRepo)
    monkeypatch.setattr("apps.api_gateway.routers.episodes.EpisodeAssetRepository", _AssetRepo)
    return fake


def _client(queue: InMemoryTaskQueue) -> TestClient:
    app = FastAPI()
    app.include_router(series_router, prefix="/v1")
    app.include_router(episodes_router, prefix="/v1")
    app.dependency_overrides[queue_dep] = lambda: queue
    return TestClient(app)


def _seed_series(db: _FakeDB, title: str = "Planet", *, age_sec: int = 0) -> Series:
    s = Series(
        title=title,
        category_id=uuid.UUID(CATEGORY_ID),
        series_type=SeriesType.documentary,
        language="en",
    )
    s.created_at = utc_now() - timedelta(seconds=age_sec)
    return _SeriesRepo(db).save(s)


def _seed_episode(db: _FakeDB, series: Series, title: str = "Pilot") -> Episode:
    return _EpisodeRepo(db).save(Episode(series_id=series.id, title=title))


# =============================================================================
# SERIES
# =============================================================================
def test_create_series_enqueues_index_task(db) -> None:
    queue = InMemoryTaskQueue()
    resp = _client(queue).post(
        "/v1/series",
        json={"title": "Blue Planet", "category_id": CATEGORY_ID, "type": "documentary"},
    )
    assert resp.status_code == 201
    body = resp.json()
    assert body["type"] == "documentary"
    assert body["category_id"] == CATEGORY_ID

    tasks = queue.of_type(TaskType.index_series)
    assert len(tasks) == 1
    assert json.loads(tasks[0].payload)["series"]["id"] == body["id"]


def test_create_series_survives_queue_outage(db) -> None:
    queue = InMemoryTaskQueue()
    queue.available = False
    resp = _client(queue).post(
        "/v1/series",
        json={"title": "Blue Planet", "category_id": CATEGORY_ID, "type": "podcast"},
    )
    assert resp.status_code == 201
    assert len(db.series) == 1


def test_create_series_rejects_unknown_type(db) -> None:
    resp = _client(InMemoryTaskQueue()).post(
        "/v1/series",
        json={"title": "X", "category_id": CATEGORY_ID, "type": "sitcom"},
    )
    assert resp.status_code == 422


def test_get_series_bad_id_and_missing(db) -> None:
    client = _client(InMemoryTaskQueue())
    bad = client.get("/v1/series/not-a-uuid")
    assert bad.status_code == 400
    assert bad.json()["detail"] == "invalid_series_id"
    assert client.get(f"/v1/series/{uuid.uuid4()}").status_code == 404


def test_list_series_paginates(db) -> None:
    for i in range(3):
        _seed_series(db, f"S{i}", age_sec=i)
    resp = _client(InMemoryTaskQueue()).get("/v1/series", params={"page": 2, "page_size": 2})
    assert resp.status_code == 200
    body = resp.json()
    assert [s["title"] for s in body["data"]] == ["S2"]
    assert body["pagination"] == {"page": 2, "page_size": 2, "item_count": 3, "page_count": 2}


def test_list_series_empty_has_one_page(db) -> None:
    body = _client(InMemoryTaskQueue()).get("/v1/series").json()
    assert body["data"] == []
    assert body["pagination"]["page_count"] == 1


def test_list_series_rejects_bad_page_size(db) -> None:
    client = _client(InMemoryTaskQueue())
    assert client.get("/v1/series", params={"page_size": 0}).status_code == 422
    assert client.get("/v1/series", params={"page_size": 101}).status_code == 422


def test_update_series_reindexes(db) -> None:
    s = _seed_series(db)
    queue = InMemoryTaskQueue()
    resp = _client(queue).put(
        f"/v1/series/{s.id}",
        json={"title": "Planet Earth", "type": "podcast", "language": "de"},
    )
    assert resp.status_code == 200
    assert resp.json()["title"] == "Planet Earth"
    assert resp.json()["category_id"] == CATEGORY_ID
    payload = json.loads(queue.of_type(TaskType.index_series)[0].payload)
    assert payload["series"]["type"] == "podcast"


def test_delete_series_unindexes_series_and_episodes(db) -> None:
    s = _seed_series(db)
    e = _seed_episode(db, s)
    queue = InMemoryTaskQueue()

    resp = _client(queue).delete(f"/v1/series/{s.id}")
    assert resp.status_code == 204
    assert db.series == {}
    assert json.loads(queue.of_type(TaskType.delete_series)[0].payload) == {"series_id": str(s.id)}
    assert json.loads(queue.of_type(TaskType.delete_episode)[0].payload) == {
        "episode_id": str(e.id)
    }


# =============================================================================
# EPISODES
# =============================================================================
def test_create_episode_for_missing_series(db) -> None:
    queue = InMemoryTaskQueue()
    resp = _client(queue).post("/v1/episodes", json={"series_id": str(uuid.uuid4()), "title": "X"})
    assert resp.status_code == 404
    assert resp.json()["detail"] == "series_not_found"
    assert queue.tasks == []


def test_create_episode_enqueues_index_task_without_assets(db) -> None:
    s = _seed_series(db)
    queue = InMemoryTaskQueue()
    resp = _client(queue).post(
        "/v1/episodes",
        json={"series_id": str(s.id), "title": "Pilot", "duration_seconds": 600},
    )
    assert resp.status_code == 201
    payload = json.loads(queue.of_type(TaskType.index_episode)[0].payload)
    assert payload["episode"]["id"] == resp.json()["id"]
    assert payload["episode"]["duration_seconds"] == 600
    assert payload["assets"] == []


def test_get_episode_includes_assets(db) -> None:
    s = _seed_series(db)
    e = _seed_episode(db, s)
    asset = EpisodeAsset(
        id=uuid.uuid4(), episode_id=e.id, asset_type="video", mime_type="video/mp4", url="u"
    )
    db.assets[asset.id] = asset

    resp = _client(InMemoryTaskQueue()).get(f"/v1/episodes/{e.id}")
    assert resp.status_code == 200
    assert [a["mime_type"] for a in resp.json()["assets"]] == ["video/mp4"]


def test_update_episode_reindexes_with_current_assets(db) -> None:
    s = _seed_series(db)
    e = _seed_episode(db, s)
    asset = EpisodeAsset(
        id=uuid.uuid4(), episode_id=e.id, asset_type="audio", mime_type="audio/mpeg"
    )
    db.assets[asset.id] = asset
    queue = InMemoryTaskQueue()

    resp = _client(queue).put(f"/v1/episodes/{e.id}", json={"title": "Pilot (remastered)"})
    assert resp.status_code == 200
    payload = json.loads(queue.of_type(TaskType.index_episode)[0].payload)
    assert payload["episode"]["title"] == "Pilot (remastered)"
    assert [a["id"] for a in payload["assets"]] == [str(asset.id)]


def test_list_episodes_of_missing_series(db) -> None:
    resp = _client(InMemoryTaskQueue()).get(f"/v1/series/{uuid.uuid4()}/episodes")
    assert resp.status_code == 404


def test_list_episodes_of_series(db) -> None:
    s = _seed_series(db)
    _seed_episode(db, s, "E1")
    _seed_episode(db, s, "E2")
    body = _client(InMemoryTaskQueue()).get(f"/v1/series/{s.id}/episodes").json()
    assert sorted(e["title"] for e in body["data"]) == ["E1", "E2"]
    assert body["pagination"]["item_count"] == 2


def test_delete_episode(db) -> None:
    s = _seed_series(db)
    e = _seed_episode(db, s)
    queue = InMemoryTaskQueue()
    assert _client(queue).delete(f"/v1/episodes/{e.id}").status_code == 204
    assert db.episodes == {}
    assert queue.of_type(TaskType.delete_episode)[0].task_type == "search:delete_episode"
