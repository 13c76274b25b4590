"""Pytest configuration helpers for the test suite."""

from __future__ import annotations

import os
import socket
import tempfile

import pytest
import yaml

# The daemon reads its configuration at import time, so point it at a
# throwaway file before any test module imports it.
_CONFIG_DIR = tempfile.mkdtemp(prefix="rackhd-driver-tests_")
CONFIG_FILE = os.path.join(_CONFIG_DIR, "rackhd-driver.yaml")

TEST_CONFIG = {
    "rackhd": {
        "debug": True,
        "database": {"path": os.path.join(_CONFIG_DIR, "machines.db")},
        "store": {"path": os.path.join(_CONFIG_DIR, "store")},
        "api": {"address": "127.0.0.1", "port": 9998},
        "queue": {"address": "127.0.0.1", "port": 6379, "path": "/0"},
        "driver": {"endpoint": "rackhd.test:8080", "probe_timeout": 1},
    }
}

with open(CONFIG_FILE, "w") as _cfh:
    yaml.safe_dump(TEST_CONFIG, _cfh)
os.environ["RACKHD_DRIVER_CONFIG_FILE"] = CONFIG_FILE

from rackhddriver.lib.dataclasses import AddressRecord, DriverConfig, SSHKeyPair  # noqa: E402
from rackhddriver.lib.exceptions import RemoteCommandError  # noqa: E402

import rackhddriver.lib.bootstrap as bootstrap  # noqa: E402


RACKHD_ENV_VARS = [
    "RACKHD_ENDPOINT",
    "RACKHD_NODE_ID",
    "RACKHD_TRANSPORT",
    "RACKHD_SSH_USER",
    "RACKHD_SSH_PASSWORD",
    "RACKHD_SSH_PORT",
]

FAKE_PUBLIC_KEY = "ssh-rsa AAAAB3NzaC1yc2EAAAADAQABAAABAQCfakekey"


def record(ip_address=None, **extra):
    """Build an AddressRecord the way the lookups API would return it."""
    data = {"id": extra.get("id", "lookup-1"), "node": extra.get("node", "node-1")}
    if "mac" in extra:
        data["macAddress"] = extra["mac"]
    if ip_address is not None:
        data["ipAddress"] = ip_address
    return AddressRecord.from_dict(data)


class FakeInventory:
    """Inventory client returning canned records and remembering its queries."""

    def __init__(self, records=None, error=None, config_error=None):
        self.records = records or []
        self.error = error
        self.config_error = config_error
        self.queries = []
        self.config_checks = 0

    def lookup(self, query):
        self.queries.append(query)
        if self.error is not None:
            raise self.error
        return list(self.records)

    def get_config(self):
        self.config_checks += 1
        if self.config_error is not None:
            raise self.config_error
        return {"apiServerAddress": "0.0.0.0"}


class FakeShell:
    """Remote shell executor recording commands; fails on the command containing fail_on."""

    def __init__(self, fail_on=None):
        self.fail_on = fail_on
        self.calls = []

    def run(self, address, port, username, password, command):
        self.calls.append((address, port, username, password, command))
        if self.fail_on is not None and self.fail_on in command:
            raise RemoteCommandError(command, 1, "permission denied")
        return ""

    @property
    def commands(self):
        return [call[4] for call in self.calls]


class FakeConnection:
    def __init__(self):
        self.closed = False

    def close(self):
        self.closed = True


@pytest.fixture(autouse=True)
def clean_rackhd_env(monkeypatch):
    """Keep driver options set in the developer's shell out of the tests."""
    for env_var in RACKHD_ENV_VARS:
        monkeypatch.delenv(env_var, raising=False)


@pytest.fixture
def probes(monkeypatch):
    """Replace TCP connects; add addresses to probes.reachable to let them succeed."""

    class _Probes:
        def __init__(self):
            self.reachable = set()
            self.attempts = []
            self.connections = []

    state = _Probes()

    def fake_create_connection(address, timeout=None):
        state.attempts.append((address[0], address[1], timeout))
        if address[0] not in state.reachable:
            raise ConnectionRefusedError(f"connection refused by {address[0]}")
        conn = FakeConnection()
        state.connections.append(conn)
        return conn

    monkeypatch.setattr(socket, "create_connection", fake_create_connection)
    return state


@pytest.fixture
def fake_keygen(monkeypatch):
    """Skip real RSA generation; remember the paths keys were requested for."""
    requested = []

    def fake_generate_ssh_key(private_key_path):
        requested.append(private_key_path)
        return SSHKeyPair(private_key_path, f"{private_key_path}.pub", FAKE_PUBLIC_KEY)

    monkeypatch.setattr(bootstrap, "generate_ssh_key", fake_generate_ssh_key)
    return requested


@pytest.fixture
def driver_config(tmp_path):
    return DriverConfig(
        endpoint="rackhd.test:8080",
        transport="http",
        node_id="5678abcd1234ef0012345678",
        ssh_user="root",
        ssh_password="secret",
        ssh_port=22,
        ssh_key_path=str(tmp_path / "machines" / "node1" / "id_rsa"),
    )


@pytest.fixture
def daemon_config(tmp_path):
    """A daemon configuration dict with its database and store under tmp_path."""
    from rackhddriver.Daemon import read_config
    import rackhddriver.lib.db as db

    config = read_config(CONFIG_FILE)
    config["database_path"] = str(tmp_path / "db" / "machines.db")
    config["store_path"] = str(tmp_path / "store")
    db.init_database(config)
    return config
