"""Tests for the HTTP API."""

from __future__ import annotations

import json
from types import SimpleNamespace

import pytest

import rackhddriver.flaskapi as flaskapi
import rackhddriver.lib.db as db
import rackhddriver.lib.lib as lib


@pytest.fixture
def queued(monkeypatch):
    names = []
    monkeypatch.setattr(flaskapi, "create_machine", SimpleNamespace(delay=names.append))
    return names


@pytest.fixture
def client(monkeypatch, tmp_path, queued):
    monkeypatch.setitem(flaskapi.config, "database_path", str(tmp_path / "machines.db"))
    monkeypatch.setitem(flaskapi.config, "store_path", str(tmp_path / "store"))
    db.init_database(flaskapi.config)
    return flaskapi.app.test_client()


def _post(client, url, data):
    return client.post(url, data=json.dumps(data), content_type="application/json")


def test_root(client) -> None:
    response = client.get("/")

    assert response.status_code == 200
    assert response.get_json() == {"message": "rackhd driver API"}


def test_create_queues_machine(client, queued) -> None:
    response = _post(client, "/machines", {"name": "node1", "rackhd-node-id": "node-1"})

    assert response.status_code == 202
    assert queued == ["node1"]
    assert db.get_machine(flaskapi.config, name="node1").state == "pending"


def test_create_rejects_bad_body(client, queued) -> None:
    response = client.post("/machines", data="not json", content_type="application/json")

    assert response.status_code == 400
    assert queued == []


def test_create_requires_node_id(client, queued) -> None:
    response = _post(client, "/machines", {"name": "node1"})

    assert response.status_code == 400
    assert "--rackhd-node-id" in response.get_json()["message"]
    assert queued == []


def test_create_conflict(client, queued) -> None:
    _post(client, "/machines", {"name": "node1", "rackhd-node-id": "node-1"})

    response = _post(client, "/machines", {"name": "node1", "rackhd-node-id": "node-2"})

    assert response.status_code == 409
    assert queued == ["node1"]


def test_list_and_show_machines(client) -> None:
    _post(client, "/machines", {"name": "node1", "rackhd-node-id": "node-1"})
    db.update_machine_address(flaskapi.config, "node1", "10.0.0.5")

    listing = client.get("/machines")
    shown = client.get("/machines/node1")

    assert listing.status_code == 200
    assert [m["name"] for m in listing.get_json()] == ["node1"]
    assert shown.status_code == 200
    assert shown.get_json()["url"] == "tcp://10.0.0.5:2376"


def test_show_missing_machine(client) -> None:
    assert client.get("/machines/absent").status_code == 404


def test_machine_actions(client) -> None:
    _post(client, "/machines", {"name": "node1", "rackhd-node-id": "node-1"})

    for action in lib.MACHINE_ACTIONS:
        assert client.post(f"/machines/node1/{action}").status_code == 200
    assert client.post("/machines/node1/format").status_code == 400
    assert client.post("/machines/absent/start").status_code == 404


def test_delete_machine(client) -> None:
    _post(client, "/machines", {"name": "node1", "rackhd-node-id": "node-1"})

    assert client.delete("/machines/node1").status_code == 200
    assert client.get("/machines/node1").status_code == 404
    assert client.delete("/machines/node1").status_code == 404
