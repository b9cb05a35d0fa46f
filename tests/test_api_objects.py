"""Tests for the /objects API endpoints.

All tests use an in-memory SQLite database via the FastAPI TestClient.
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from objedit.api.app import create_app
from objedit.db.connection import get_connection
from objedit.db.migrations import init_db
from tests.conftest import link_payload, object_payload


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture()
def client(tmp_path, monkeypatch):
    """Return a TestClient backed by an isolated in-memory DB."""
    monkeypatch.setattr("objedit.config.settings.workspace_dir", tmp_path)
    conn = get_connection(db_path=":memory:")  # type: ignore[arg-type]
    init_db(conn)
    app = create_app()

    with TestClient(app, raise_server_exceptions=True) as c:
        # Lifespan has run by this point; override its db with our in-memory one.
        c.app.state.db = conn
        yield c

    conn.close()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _upsert(client, objects, links=(), **extra) -> dict:
    resp = client.post(
        "/objects/bulk_upsert",
        json={"objects": list(objects), "subobject_links": list(links), **extra},
    )
    assert resp.status_code == 200, resp.text
    return resp.json()


def _wire(payload: dict) -> dict:
    payload = dict(payload)
    payload["object_data"] = dict(payload["object_data"])
    return payload


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------

class TestBulkUpsert:
    def test_create_composite(self, client) -> None:
        body = _upsert(
            client,
            [_wire(object_payload(0, "composite", "C")), _wire(object_payload(-1, "link", "L"))],
            [link_payload(0, -1)],
        )
        id_map = {int(k): v for k, v in body["new_object_ids_map"].items()}
        assert set(id_map) == {0, -1}
        composite = next(o for o in body["objects"] if o["object_id"] == id_map[0])
        assert composite["object_data"]["subobjects"][0]["subobject_id"] == id_map[-1]

    def test_invalid_url_rejected(self, client) -> None:
        payload = _wire(object_payload(0))
        payload["object_data"]["link"] = "not a url"
        resp = client.post("/objects/bulk_upsert", json={"objects": [payload]})
        assert resp.status_code == 422

    def test_empty_name_rejected(self, client) -> None:
        resp = client.post("/objects/bulk_upsert", json={"objects": [_wire(object_payload(0, name=""))]})
        assert resp.status_code == 422

    def test_missing_object_is_400(self, client) -> None:
        resp = client.post("/objects/bulk_upsert", json={"objects": [_wire(object_payload(77))]})
        assert resp.status_code == 400
        assert "not found" in resp.json()["detail"]

    def test_too_many_objects(self, client, monkeypatch) -> None:
        monkeypatch.setattr("objedit.api.schemas.settings.max_upserted_objects", 1)
        objects = [_wire(object_payload(-i)) for i in range(1, 3)]
        resp = client.post("/objects/bulk_upsert", json={"objects": objects})
        assert resp.status_code == 422

    def test_deleted_ids_must_be_positive(self, client) -> None:
        resp = client.post("/objects/bulk_upsert", json={"deleted_object_ids": [-1]})
        assert resp.status_code == 422


class TestView:
    def test_found_and_not_found(self, client) -> None:
        body = _upsert(client, [_wire(object_payload(0, "markdown", "Doc"))])
        object_id = body["new_object_ids_map"]["0"]
        resp = client.post("/objects/view", json={"object_ids": [object_id, 999]})
        assert resp.status_code == 200
        data = resp.json()
        assert [o["object_name"] for o in data["objects"]] == ["Doc"]
        assert data["objects"][0]["object_data"] == {"raw_text": "Some text"}
        assert data["not_found"] == [999]

    def test_empty_ids_rejected(self, client) -> None:
        assert client.post("/objects/view", json={"object_ids": []}).status_code == 422


class TestPage:
    def test_page_ids(self, client) -> None:
        _upsert(client, [_wire(object_payload(-i, name=f"Object {i}")) for i in range(1, 4)])
        resp = client.post(
            "/objects/get_page_object_ids",
            json={"page": 1, "items_per_page": 2, "order_by": "object_name", "sort_order": "asc"},
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["total_items"] == 3
        assert len(data["object_ids"]) == 2

    def test_bad_order_by(self, client) -> None:
        resp = client.post("/objects/get_page_object_ids", json={"order_by": "object_id"})
        assert resp.status_code == 422


class TestDelete:
    def test_delete(self, client) -> None:
        body = _upsert(client, [_wire(object_payload(0))])
        object_id = body["new_object_ids_map"]["0"]
        resp = client.request("DELETE", "/objects", json={"object_ids": [object_id, 555]})
        assert resp.status_code == 200
        assert resp.json() == {"deleted": [object_id], "not_found": [555]}


class TestLifespan:
    def test_startup_configures_logging(self, tmp_path, monkeypatch) -> None:
        monkeypatch.setattr("objedit.config.settings.workspace_dir", tmp_path)
        calls = []
        monkeypatch.setattr("objedit.api.app.configure_logging", lambda: calls.append("startup"))

        with TestClient(create_app()):
            pass

        assert calls == ["startup"]
        assert (tmp_path / "objects.db").exists()
