"""Test configuration for AgbCloud CLI tests."""

from __future__ import annotations

import socket

import pytest

from agbcloud import AgbCloudClient
from agbcloud.retry import RetryPolicy


def get_free_port() -> str:
    """Ask the OS for a currently unused loopback port."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return str(sock.getsockname()[1])


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Point the token store at a temp dir and clear endpoint overrides."""
    config_dir = tmp_path / "agbcloud-config"
    monkeypatch.setenv("AGB_CLI_CONFIG_DIR", str(config_dir))
    monkeypatch.delenv("AGB_CLI_ENDPOINT", raising=False)
    monkeypatch.delenv("AGB_CLI_SKIP_SSL_VERIFY", raising=False)
    return config_dir


@pytest.fixture
def no_wait_policy():
    """Retry policy that records delays instead of sleeping."""
    delays: list[float] = []
    return RetryPolicy(sleep=delays.append), delays


@pytest.fixture
def client(no_wait_policy):
    """Shared AgbCloudClient fixture pointed at a fake endpoint."""
    policy, _ = no_wait_policy
    client = AgbCloudClient(base_url="https://agb.test", retry_policy=policy)
    yield client
    client.close()


@pytest.fixture
def occupied_port():
    """A loopback port held by a listening socket for the duration of the test."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    sock.listen(1)
    yield str(sock.getsockname()[1])
    sock.close()


@pytest.fixture
def occupy():
    """Factory that occupies extra loopback ports; all are released on teardown."""
    sockets: list[socket.socket] = []

    def _occupy() -> str:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.bind(("127.0.0.1", 0))
        sock.listen(1)
        sockets.append(sock)
        return str(sock.getsockname()[1])

    yield _occupy
    for sock in sockets:
        sock.close()


@pytest.fixture
def free_port():
    """Factory returning unused loopback ports."""
    return get_free_port
