"""Tests for the /mcp FastAPI routes."""

from __future__ import annotations

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from mcp_http_echo import SERVER_URL
from notepilot.mcp.manager import get_mcp_manager
from notepilot.mcp.routes import router

ENABLED = {"mcpEnabled": True, "mcpServerUrl": SERVER_URL}


@pytest.fixture
def client(manager):
    app = FastAPI()
    app.include_router(router)
    app.dependency_overrides[get_mcp_manager] = lambda: manager
    with TestClient(app) as test_client:
        yield test_client


def test_list_tools(client):
    response = client.post("/mcp/tools", json={"settings": ENABLED})
    assert response.status_code == 200
    body = response.json()
    assert body["count"] == 1
    assert body["tools"][0]["function"]["name"] == "mcp_echo"


def test_list_tools_disabled(client, server):
    response = client.post("/mcp/tools", json={"settings": {}})
    assert response.json() == {"tools": [], "count": 0}
    assert server.calls == 0


def test_invoke_tool(client):
    response = client.post("/mcp/tools/mcp_echo/invoke", json={"arguments": {"text": "hi"}, "settings": ENABLED})
    assert response.json() == {"success": True, "result": "echo:hi"}


def test_invoke_denied_tool(client):
    settings = {**ENABLED, "mcpDenyTools": "echo"}
    response = client.post("/mcp/tools/mcp_echo/invoke", json={"arguments": {"text": "hi"}, "settings": settings})
    assert response.json() == {"success": False, "error": "MCP_TOOL_NOT_ALLOWED: Tool 'echo' is in deny list"}


def test_connection_test(client):
    response = client.post("/mcp/test", json={"settings": ENABLED})
    assert response.json() == {"success": True, "serverInfo": "pytest-mcp-echo v0.0.0"}


def test_refresh(client, manager, server):
    client.post("/mcp/tools", json={"settings": ENABLED})
    assert manager.cache.has_valid_cache()

    response = client.post("/mcp/refresh")
    assert response.json() == {"status": "refreshed"}
    assert not manager.cache.has_valid_cache()


def test_validate_collects_every_error(client):
    response = client.post(
        "/mcp/validate",
        json={"settings": {"mcpEnabled": True, "mcpServerUrl": "ftp://notes", "mcpTimeoutMs": 10}},
    )
    assert response.json() == {
        "valid": False,
        "errors": ["Server URL must be a valid HTTP/HTTPS URL", "Timeout must be at least 1000ms"],
    }


def test_validate_ok(client):
    response = client.post("/mcp/validate", json={"settings": ENABLED})
    assert response.json() == {"valid": True, "errors": []}
