"""Tests for the HTTP MCP client against an in-process fake server."""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from mcp_http_echo import ECHO_TOOL, FakeMcpServer, data_frame
from notepilot.mcp.errors import (
    ConfigError,
    McpConnectionError,
    McpErrorCode,
    NotConnectedError,
    ProtocolError,
    ServerError,
)
from notepilot.mcp.http_client import McpHttpClient, parse_tool_entries

THREE_TOOLS = [
    ECHO_TOOL,
    {
        "name": "search",
        "description": "Search notes",
        "inputSchema": {"type": "object", "properties": {"q": {"type": "string"}}},
    },
    {"name": "list_boxes"},
]


def _client(settings, transport: httpx.AsyncBaseTransport) -> McpHttpClient:
    return McpHttpClient(settings=settings, transport=transport)


# ─────────────────────────────────────────────────────────────────────────
# Session lifecycle
# ─────────────────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_connect_performs_handshake(settings, server, make_config):
    client = _client(settings, server.transport())
    await client.connect(make_config(auth_token="secret"))

    assert client.is_connected
    assert str(client.server_info) == "pytest-mcp-echo v0.0.0"
    assert server.methods == ["initialize", "notifications/initialized"]

    init = server.sent_messages()[0]
    assert init["jsonrpc"] == "2.0"
    assert init["params"]["clientInfo"] == {"name": "notepilot-test", "version": "9.9.9"}
    assert server.requests[0].headers["Authorization"] == "Bearer secret"
    assert "text/event-stream" in server.requests[0].headers["Accept"]

    await client.disconnect()
    assert not client.is_connected


@pytest.mark.asyncio
async def test_connect_without_url_raises_config_error(settings, server, make_config):
    client = _client(settings, server.transport())
    with pytest.raises(ConfigError):
        await client.connect(make_config(server_url=""))
    assert server.calls == 0


@pytest.mark.asyncio
async def test_no_auth_header_without_token(settings, server, mcp_config):
    async with _client(settings, server.transport()) as client:
        await client.connect(mcp_config)
    assert "Authorization" not in server.requests[0].headers


@pytest.mark.asyncio
async def test_connect_failure_tears_down_session(settings, mcp_config):
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = _client(settings, httpx.MockTransport(refuse))
    with pytest.raises(McpConnectionError) as exc_info:
        await client.connect(mcp_config)

    assert "connection refused" in str(exc_info.value)
    assert isinstance(exc_info.value.__cause__, httpx.ConnectError)
    assert not client.is_connected


@pytest.mark.asyncio
async def test_handshake_rpc_error_is_connection_error(settings, mcp_config):
    def reject(request: httpx.Request) -> httpx.Response:
        msg = json.loads(request.content)
        return httpx.Response(
            200, json={"jsonrpc": "2.0", "id": msg["id"], "error": {"code": -32600, "message": "bad version"}}
        )

    client = _client(settings, httpx.MockTransport(reject))
    with pytest.raises(McpConnectionError, match="bad version"):
        await client.connect(mcp_config)
    assert client.server_info is None
    assert not client.is_connected


@pytest.mark.asyncio
async def test_disconnect_is_idempotent(settings, server, mcp_config):
    client = _client(settings, server.transport())
    await client.disconnect()
    await client.connect(mcp_config)
    await client.disconnect()
    await client.disconnect()
    assert not client.is_connected


@pytest.mark.asyncio
async def test_operations_require_ready_session(settings, server):
    client = _client(settings, server.transport())
    with pytest.raises(NotConnectedError):
        await client.list_tools()
    with pytest.raises(NotConnectedError):
        await client.call_tool("echo", {"text": "hi"})
    with pytest.raises(NotConnectedError):
        await client._request("ping")
    with pytest.raises(NotConnectedError):
        await client._notify("notifications/initialized")
    assert server.calls == 0


@pytest.mark.asyncio
async def test_streamable_session_id_is_echoed_and_terminated(settings, make_config):
    server = FakeMcpServer(session_id="sess-42")
    client = _client(settings, server.transport())
    await client.connect(make_config(transport="streamable_http"))
    await client.list_tools()
    await client.disconnect()

    assert server.methods == ["initialize", "notifications/initialized", "tools/list", "DELETE"]
    assert "Mcp-Session-Id" not in server.requests[0].headers
    for request in server.requests[1:]:
        assert request.headers["Mcp-Session-Id"] == "sess-42"
    assert server.requests[2].headers["MCP-Protocol-Version"]


@pytest.mark.asyncio
async def test_plain_http_transport_is_stateless(settings, mcp_config):
    server = FakeMcpServer(session_id="sess-42")
    async with _client(settings, server.transport()) as client:
        await client.connect(mcp_config)
        await client.list_tools()

    assert "DELETE" not in server.methods
    assert all("Mcp-Session-Id" not in r.headers for r in server.requests)


# ─────────────────────────────────────────────────────────────────────────
# Discovery
# ─────────────────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_list_tools_skips_malformed_entries(settings, mcp_config):
    server = FakeMcpServer(tools=[*THREE_TOOLS, {"description": "no name"}])
    async with _client(settings, server.transport()) as client:
        await client.connect(mcp_config)
        tools = await client.list_tools()

    assert [t.name for t in tools] == ["echo", "search", "list_boxes"]
    assert tools[0].input_schema.required == ["text"]


def test_odd_property_annotations_keep_the_tool():
    entries = [
        {"name": "create_note", "inputSchema": {"properties": {"title": {"type": "string", "required": True}}}},
        {"name": "tag_note", "inputSchema": {"properties": {"tag": {"description": ["short", "tag"]}}}},
        {"name": "page", "inputSchema": {"properties": {"n": {"type": "integer", "minimum": 1, "maximum": "big"}}}},
    ]
    tools, skipped = parse_tool_entries(entries)

    assert skipped == 0
    assert [t.name for t in tools] == ["create_note", "tag_note", "page"]
    assert tools[0].input_schema.properties["title"] == {"type": "string", "required": True}


def test_parse_tool_entries_counts_failures():
    entries = [ECHO_TOOL, "junk", {"name": ""}, {"name": 7}, {"name": "ok", "inputSchema": []}]
    tools, skipped = parse_tool_entries(entries)
    assert [t.name for t in tools] == ["echo", "ok"]
    assert skipped == 3


@pytest.mark.asyncio
async def test_sse_discovery_matches_json_discovery(settings, mcp_config):
    json_server = FakeMcpServer(tools=THREE_TOOLS)
    async with _client(settings, json_server.transport()) as client:
        await client.connect(mcp_config)
        from_json = await client.list_tools()

    def handler(request: httpx.Request) -> httpx.Response:
        msg = json.loads(request.content)
        if msg.get("method") != "tools/list":
            return json_server.handle(request)
        result = {"jsonrpc": "2.0", "id": msg["id"], "result": {"tools": THREE_TOOLS}}
        body = (
            ": heartbeat\n\n"
            + data_frame({"jsonrpc": "2.0", "method": "notifications/progress", "params": {"progress": 1}})
            + data_frame(result)
        ).encode()

        async def chunks():
            # cut inside the last frame so the result spans reads
            yield body[:7]
            yield body[7:-40]
            yield body[-40:]

        return httpx.Response(200, headers={"content-type": "text/event-stream"}, content=chunks())

    async with _client(settings, httpx.MockTransport(handler)) as client:
        await client.connect(mcp_config)
        from_sse = await client.list_tools()

    assert from_sse == from_json
    assert len(from_sse) == 3


@pytest.mark.asyncio
async def test_sse_reader_stops_after_result(settings, server, mcp_config):
    frames_read: list[int] = []

    async def stream(req_id: int):
        yield b": heartbeat\n\n"
        frames_read.append(1)
        yield b'data: {"partial": \n\n'
        frames_read.append(2)
        result = {"jsonrpc": "2.0", "id": req_id, "result": {"tools": [ECHO_TOOL]}}
        yield data_frame(result).encode()
        frames_read.append(3)
        raise AssertionError("stream read past the result")

    def handler(request: httpx.Request) -> httpx.Response:
        msg = json.loads(request.content)
        if msg.get("method") != "tools/list":
            return server.handle(request)
        return httpx.Response(200, headers={"content-type": "text/event-stream"}, content=stream(msg["id"]))

    async with _client(settings, httpx.MockTransport(handler)) as client:
        await client.connect(mcp_config)
        tools = await client.list_tools()

    assert [t.name for t in tools] == ["echo"]
    assert frames_read == [1, 2]


@pytest.mark.asyncio
async def test_sse_done_sentinel_yields_no_tools(settings, server, mcp_config):
    def handler(request: httpx.Request) -> httpx.Response:
        msg = json.loads(request.content)
        if msg.get("method") != "tools/list":
            return server.handle(request)
        return httpx.Response(200, headers={"content-type": "text/event-stream"}, content=b"data: [DONE]\n\n")

    async with _client(settings, httpx.MockTransport(handler)) as client:
        await client.connect(mcp_config)
        assert await client.list_tools() == []


@pytest.mark.asyncio
async def test_sse_stream_without_result_is_protocol_error(settings, server, mcp_config):
    def handler(request: httpx.Request) -> httpx.Response:
        msg = json.loads(request.content)
        if msg.get("method") != "tools/list":
            return server.handle(request)
        return httpx.Response(200, headers={"content-type": "text/event-stream"}, content=b": only heartbeats\n\n")

    async with _client(settings, httpx.MockTransport(handler)) as client:
        await client.connect(mcp_config)
        with pytest.raises(ProtocolError):
            await client.list_tools()


@pytest.mark.asyncio
async def test_list_tools_follows_cursor(settings, server, mcp_config):
    pages = {
        None: {"tools": [ECHO_TOOL], "nextCursor": "p2"},
        "p2": {"tools": [{"name": "search"}]},
    }

    def handler(request: httpx.Request) -> httpx.Response:
        msg = json.loads(request.content)
        if msg.get("method") != "tools/list":
            return server.handle(request)
        cursor = (msg.get("params") or {}).get("cursor")
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": msg["id"], "result": pages[cursor]})

    async with _client(settings, httpx.MockTransport(handler)) as client:
        await client.connect(mcp_config)
        tools = await client.list_tools()

    assert [t.name for t in tools] == ["echo", "search"]


# ─────────────────────────────────────────────────────────────────────────
# Invocation
# ─────────────────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_call_tool_returns_content(settings, server, mcp_config):
    async with _client(settings, server.transport()) as client:
        await client.connect(mcp_config)
        result = await client.call_tool("echo", {"text": "hi", "nested": {"n": [1, None, True]}})

    assert not result.is_error
    assert result.content[0].text == "echo:hi"
    call = server.sent_messages()[-1]
    assert call["method"] == "tools/call"
    assert call["params"] == {"name": "echo", "arguments": {"text": "hi", "nested": {"n": [1, None, True]}}}


@pytest.mark.asyncio
async def test_call_tool_execution_error_is_a_result(settings, server, mcp_config):
    async with _client(settings, server.transport()) as client:
        await client.connect(mcp_config)
        result = await client.call_tool("fail", {})

    assert result.is_error
    assert result.error_text == "boom\nagain"


@pytest.mark.asyncio
async def test_call_tool_rpc_error_raises_server_error(settings, server, mcp_config):
    async with _client(settings, server.transport()) as client:
        await client.connect(mcp_config)
        with pytest.raises(ServerError) as exc_info:
            await client.call_tool("missing", {})

    assert exc_info.value.code == McpErrorCode.INVALID_PARAMS
    assert exc_info.value.raw_code == -32602
    assert "Unknown tool: missing" in str(exc_info.value)


@pytest.mark.asyncio
async def test_http_error_status_is_connection_error(settings, server, mcp_config):
    def handler(request: httpx.Request) -> httpx.Response:
        msg = json.loads(request.content)
        if msg.get("method") == "tools/call":
            return httpx.Response(502, text="bad gateway")
        return server.handle(request)

    async with _client(settings, httpx.MockTransport(handler)) as client:
        await client.connect(mcp_config)
        with pytest.raises(McpConnectionError, match="HTTP 502"):
            await client.call_tool("echo", {"text": "hi"})


@pytest.mark.asyncio
async def test_invalid_json_body_is_protocol_error(settings, server, mcp_config):
    def handler(request: httpx.Request) -> httpx.Response:
        msg = json.loads(request.content)
        if msg.get("method") == "tools/call":
            return httpx.Response(200, headers={"content-type": "application/json"}, content=b"{not json")
        return server.handle(request)

    async with _client(settings, httpx.MockTransport(handler)) as client:
        await client.connect(mcp_config)
        with pytest.raises(ProtocolError):
            await client.call_tool("echo", {"text": "hi"})


@pytest.mark.asyncio
async def test_timeout_is_connection_error(settings, server, make_config):
    async def slow(request: httpx.Request) -> httpx.Response:
        msg = json.loads(request.content)
        if msg.get("method") == "tools/call":
            await asyncio.sleep(5)
        return server.handle(request)

    client = _client(settings, httpx.MockTransport(slow))
    await client.connect(make_config(timeout_ms=50))
    with pytest.raises(McpConnectionError, match="timed out"):
        await client.call_tool("echo", {"text": "hi"})
    await client.disconnect()


# ─────────────────────────────────────────────────────────────────────────
# Connection test
# ─────────────────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_test_connection_reports_server_info(settings, mcp_config):
    server = FakeMcpServer(server_name="notes-mcp", server_version="1.2.3")
    client = _client(settings, server.transport())
    result = await client.test_connection(mcp_config)

    assert result.success
    assert result.server_info.name == "notes-mcp"
    assert result.server_info.version == "1.2.3"
    assert server.methods == ["initialize", "notifications/initialized", "ping"]
    assert not client.is_connected


@pytest.mark.asyncio
async def test_test_connection_tolerates_missing_ping(settings, server, mcp_config):
    def handler(request: httpx.Request) -> httpx.Response:
        msg = json.loads(request.content)
        if msg.get("method") == "ping":
            return httpx.Response(
                200, json={"jsonrpc": "2.0", "id": msg["id"], "error": {"code": -32601, "message": "no ping"}}
            )
        return server.handle(request)

    result = await _client(settings, httpx.MockTransport(handler)).test_connection(mcp_config)
    assert result.success


@pytest.mark.asyncio
async def test_test_connection_reports_failure(settings, make_config):
    def unauthorized(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, text="unauthorized")

    result = await _client(settings, httpx.MockTransport(unauthorized)).test_connection(make_config())
    assert not result.success
    assert "HTTP 401" in result.error
