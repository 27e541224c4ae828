"""Shared test fixtures for notepilot."""

from __future__ import annotations

import pytest

from notepilot.config import Settings
from notepilot.mcp.cache import McpToolCache
from notepilot.mcp.http_client import McpHttpClient
from notepilot.mcp.manager import McpToolManager
from notepilot.mcp.types import McpConfig
from mcp_http_echo import SERVER_URL, FakeMcpServer


class FakeClock:
    """Monotonic clock the tests advance by hand."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(autouse=True)
def set_test_env(monkeypatch):
    """Keep developer .env / NOTEPILOT_* variables out of the tests."""
    for key in ("NOTEPILOT_CLIENT_NAME", "NOTEPILOT_TOOL_CACHE_TTL_S", "NOTEPILOT_LOG_LEVEL"):
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None, client_name="notepilot-test", client_version="9.9.9")


@pytest.fixture
def make_config():
    def _make(**overrides) -> McpConfig:
        values = {"enabled": True, "server_url": SERVER_URL, "timeout_ms": 5000}
        values.update(overrides)
        return McpConfig(**values)

    return _make


@pytest.fixture
def mcp_config(make_config) -> McpConfig:
    return make_config()


@pytest.fixture
def server() -> FakeMcpServer:
    return FakeMcpServer()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_manager(settings, clock):
    """Build a manager whose clients talk to the given fake server."""

    def _make(fake: FakeMcpServer) -> McpToolManager:
        return McpToolManager(
            cache=McpToolCache(clock=clock),
            client_factory=lambda: McpHttpClient(settings=settings, transport=fake.transport()),
            settings=settings,
        )

    return _make


@pytest.fixture
def manager(make_manager, server) -> McpToolManager:
    return make_manager(server)
