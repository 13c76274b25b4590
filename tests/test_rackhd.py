"""Tests for the RackHD API session."""

from __future__ import annotations

import pytest
import requests

import rackhddriver.lib.rackhd as rackhd
from rackhddriver.lib.exceptions import RackHDException


class FakeResponse:
    def __init__(self, status_code, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self):
        if self._payload is None:
            raise ValueError("No JSON object could be decoded")
        return self._payload


@pytest.fixture
def http_get(monkeypatch):
    calls = []
    responses = []

    def fake_get(url, params=None, headers=None, verify=True):
        calls.append({"url": url, "params": params, "headers": headers, "verify": verify})
        return responses.pop(0)

    monkeypatch.setattr(requests, "get", fake_get)
    return calls, responses


def test_lookup_parses_records(http_get) -> None:
    calls, responses = http_get
    responses.append(
        FakeResponse(
            200,
            [
                {
                    "id": "5668b6ad8bee16a10989e5b8",
                    "node": "5668b6ad8bee16a10989e5b7",
                    "macAddress": "52:54:00:34:36:40",
                    "ipAddress": "172.31.128.5",
                },
                {"id": "5668b6ad8bee16a10989e5b9", "macAddress": "52:54:00:34:36:41"},
                "not-a-record",
            ],
        )
    )

    session = rackhd.RackHDSession("rackhd.lab:8080")
    records = session.lookup("52:54:00:34:36:40")

    assert calls[0]["url"] == "http://rackhd.lab:8080/api/1.1/lookups"
    assert calls[0]["params"] == {"q": "52:54:00:34:36:40"}
    assert calls[0]["verify"] is False
    assert len(records) == 2
    assert records[0].ip_address == "172.31.128.5"
    assert records[0].mac_address == "52:54:00:34:36:40"
    assert records[0].node == "5668b6ad8bee16a10989e5b7"
    assert records[1].ip_address is None


def test_lookup_ignores_non_string_addresses(http_get) -> None:
    _, responses = http_get
    responses.append(FakeResponse(200, [{"id": "a", "ipAddress": None}, {"id": "b", "ipAddress": 42}]))

    records = rackhd.RackHDSession("rackhd.lab:8080").lookup("node")

    assert [r.ip_address for r in records] == [None, None]


def test_get_config_uses_transport(http_get) -> None:
    calls, responses = http_get
    responses.append(FakeResponse(200, {"apiServerAddress": "0.0.0.0"}))

    result = rackhd.RackHDSession("rackhd.lab:443", transport="https").get_config()

    assert calls[0]["url"] == "https://rackhd.lab:443/api/1.1/config"
    assert result == {"apiServerAddress": "0.0.0.0"}


def test_error_status_raises_with_message(http_get) -> None:
    _, responses = http_get
    responses.append(FakeResponse(500, {"message": "database unavailable"}))

    with pytest.raises(RackHDException) as excinfo:
        rackhd.RackHDSession("rackhd.lab:8080").lookup("node")

    assert excinfo.value.status_code == 500
    assert "database unavailable" in str(excinfo.value)


def test_error_status_without_json_body(http_get) -> None:
    _, responses = http_get
    responses.append(FakeResponse(404, None, text="Not Found"))

    with pytest.raises(RackHDException) as excinfo:
        rackhd.RackHDSession("rackhd.lab:8080").get_config()

    assert excinfo.value.full_message == "Not Found"
    assert "HTTP Code: 404" in str(excinfo.value)
