"""MCP client over HTTP (JSON-RPC 2.0 POSTs).

Supports what notepilot needs:
- initialize + notifications/initialized
- ping
- tools/list (with cursor pagination)
- tools/call

Servers may answer a POST with a single ``application/json`` body or with a
``text/event-stream`` carrying the response in one of its events; both are
handled transparently.  With the ``streamable_http`` transport the session
id issued at initialize is echoed on later requests and the session is
terminated with a DELETE on disconnect.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

import httpx
from pydantic import JsonValue, ValidationError

from notepilot.config import Settings, get_settings
from notepilot.mcp.errors import (
    ConfigError,
    McpConnectionError,
    McpErrorCode,
    NotConnectedError,
    ProtocolError,
    ServerError,
)
from notepilot.mcp.sse import SseDecoder, SseEvent
from notepilot.mcp.types import (
    CallToolResult,
    ConnectionTestResult,
    JsonRpcResponse,
    McpConfig,
    McpTool,
    ServerInfo,
)

logger = logging.getLogger(__name__)

SESSION_HEADER = "Mcp-Session-Id"
PROTOCOL_VERSION_HEADER = "MCP-Protocol-Version"
_ACCEPT = "application/json, text/event-stream"

_DONE = object()


def parse_tool_entries(entries: list[Any]) -> tuple[list[McpTool], int]:
    """Parse raw ``tools/list`` entries, skipping the ones that don't validate.

    Returns the parsed tools and the number of skipped entries.
    """
    tools: list[McpTool] = []
    skipped = 0
    for index, entry in enumerate(entries):
        try:
            tools.append(McpTool.model_validate(entry))
        except ValidationError as exc:
            skipped += 1
            logger.warning(
                "Skipping malformed MCP tool entry %d (%s): %s",
                index,
                entry.get("name") if isinstance(entry, dict) else type(entry).__name__,
                exc.errors(include_url=False)[0].get("msg", "invalid"),
            )
    return tools, skipped


def _matches_id(message: Any, req_id: int) -> bool:
    if not isinstance(message, dict) or "id" not in message:
        return False
    if "result" not in message and "error" not in message:
        return False
    return message["id"] == req_id or str(message["id"]) == str(req_id)


def _find_response(payload: Any, req_id: int) -> dict[str, Any] | None:
    if isinstance(payload, list):
        return next((m for m in payload if _matches_id(m, req_id)), None)
    return payload if _matches_id(payload, req_id) else None


class McpHttpClient:
    """One logical MCP session.  Not safe to share between concurrent callers."""

    def __init__(
        self,
        *,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._transport = transport
        self._config: McpConfig | None = None
        self._http: httpx.AsyncClient | None = None
        self._streams: set[httpx.Response] = set()
        self._session_id: str | None = None
        self._protocol_version: str | None = None
        self._server_info: ServerInfo | None = None
        self._server_capabilities: dict[str, Any] = {}
        self._ready = False
        self._id = 0

    async def __aenter__(self) -> McpHttpClient:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.disconnect()

    @property
    def is_connected(self) -> bool:
        return self._ready and self._http is not None

    @property
    def server_info(self) -> ServerInfo | None:
        return self._server_info

    @property
    def server_capabilities(self) -> dict[str, Any]:
        return dict(self._server_capabilities)

    @property
    def session_id(self) -> str | None:
        return self._session_id

    # ---------------------------------------------------------------------
    # Session lifecycle
    # ---------------------------------------------------------------------

    async def connect(self, config: McpConfig) -> None:
        if not config.server_url:
            raise ConfigError("Server URL is required")

        if self._http is not None:
            await self.disconnect()

        self._config = config
        self._server_info = None
        self._server_capabilities = {}

        headers = {"Accept": _ACCEPT, "Content-Type": "application/json"}
        if config.auth_token:
            headers["Authorization"] = f"Bearer {config.auth_token}"

        try:
            self._http = httpx.AsyncClient(
                timeout=httpx.Timeout(config.timeout_s),
                headers=headers,
                transport=self._transport,
                follow_redirects=True,
            )
            result = await self._request(
                "initialize",
                {
                    "protocolVersion": self._settings.protocol_version,
                    "capabilities": {},
                    "clientInfo": {
                        "name": self._settings.client_name,
                        "version": self._settings.client_version,
                    },
                },
            )
            self._accept_handshake(result)
            await self._notify("notifications/initialized")
        except Exception as exc:
            await self.disconnect()
            if isinstance(exc, McpConnectionError):
                raise
            raise McpConnectionError(f"Failed to connect to MCP server: {exc}") from exc

        self._ready = True
        logger.info(
            "Connected to MCP server %s (%s, protocol %s, has_token=%s)",
            config.server_url,
            self._server_info,
            self._protocol_version,
            bool(config.auth_token),
        )

    def _accept_handshake(self, result: dict[str, Any]) -> None:
        info = result.get("serverInfo")
        try:
            self._server_info = ServerInfo.model_validate(info) if isinstance(info, dict) else ServerInfo()
        except ValidationError:
            self._server_info = ServerInfo()
        capabilities = result.get("capabilities")
        self._server_capabilities = capabilities if isinstance(capabilities, dict) else {}
        version = result.get("protocolVersion")
        self._protocol_version = version if isinstance(version, str) else self._settings.protocol_version

    async def disconnect(self) -> None:
        """Release the session.  Safe to call repeatedly; never raises."""
        http, self._http = self._http, None
        streams, self._streams = list(self._streams), set()
        session_id, self._session_id = self._session_id, None
        config, self._config = self._config, None
        self._ready = False

        for response in streams:
            try:
                await response.aclose()
            except Exception as exc:
                logger.warning("Ignoring stream close error during disconnect: %s", exc)

        if http is None:
            return

        if session_id and config is not None and config.transport == "streamable_http":
            try:
                await http.delete(config.server_url, headers={SESSION_HEADER: session_id})
            except Exception as exc:
                logger.warning("Ignoring session termination error during disconnect: %s", exc)

        try:
            await http.aclose()
        except Exception as exc:
            logger.warning("Ignoring close() error during disconnect: %s", exc)

    def _require_ready(self) -> None:
        if not self.is_connected:
            raise NotConnectedError()

    # ---------------------------------------------------------------------
    # JSON-RPC plumbing
    # ---------------------------------------------------------------------

    def _next_id(self) -> int:
        self._id += 1
        return self._id

    def _session_headers(self) -> dict[str, str]:
        config = self._config
        if config is None or config.transport != "streamable_http":
            return {}
        headers: dict[str, str] = {}
        if self._session_id:
            headers[SESSION_HEADER] = self._session_id
        if self._protocol_version:
            headers[PROTOCOL_VERSION_HEADER] = self._protocol_version
        return headers

    async def _request(self, method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        req_id = self._next_id()
        msg: dict[str, Any] = {"jsonrpc": "2.0", "id": req_id, "method": method}
        if params is not None:
            msg["params"] = params

        if self._config is None:
            raise NotConnectedError()
        timeout_ms = self._config.timeout_ms
        try:
            envelope = await asyncio.wait_for(self._exchange(msg), timeout=self._config.timeout_s)
        except asyncio.TimeoutError as exc:
            raise McpConnectionError(f"MCP request '{method}' timed out after {timeout_ms}ms") from exc

        return self._unwrap(envelope, method)

    async def _notify(self, method: str, params: dict[str, Any] | None = None) -> None:
        msg: dict[str, Any] = {"jsonrpc": "2.0", "method": method}
        if params is not None:
            msg["params"] = params

        if self._http is None or self._config is None:
            raise NotConnectedError()
        try:
            response = await self._http.post(self._config.server_url, json=msg, headers=self._session_headers())
        except httpx.HTTPError as exc:
            raise McpConnectionError(f"MCP notification '{method}' failed: {exc}") from exc
        if response.is_error:
            logger.warning("MCP server rejected notification %s: HTTP %d", method, response.status_code)

    async def _exchange(self, msg: dict[str, Any]) -> dict[str, Any]:
        if self._http is None or self._config is None:
            raise NotConnectedError()

        method = msg["method"]
        try:
            request = self._http.build_request(
                "POST", self._config.server_url, json=msg, headers=self._session_headers()
            )
            response = await self._http.send(request, stream=True)
        except httpx.TimeoutException as exc:
            raise McpConnectionError(f"MCP request '{method}' timed out: {exc}") from exc
        except httpx.HTTPError as exc:
            raise McpConnectionError(f"MCP request '{method}' failed: {exc}") from exc

        self._streams.add(response)
        try:
            session_id = response.headers.get(SESSION_HEADER)
            if session_id:
                self._session_id = session_id

            if response.is_error:
                body = (await response.aread()).decode("utf-8", errors="replace")
                raise McpConnectionError(
                    f"MCP server returned HTTP {response.status_code} for '{method}': {body[:200]}"
                )

            content_type = response.headers.get("content-type", "")
            if "text/event-stream" in content_type:
                return await self._read_event_stream(response, msg["id"])
            return self._parse_json_body(await response.aread(), msg["id"])
        except httpx.TimeoutException as exc:
            raise McpConnectionError(f"MCP request '{method}' timed out: {exc}") from exc
        except httpx.HTTPError as exc:
            raise McpConnectionError(f"MCP request '{method}' failed: {exc}") from exc
        finally:
            self._streams.discard(response)
            await response.aclose()

    def _parse_json_body(self, body: bytes, req_id: int) -> dict[str, Any]:
        try:
            payload = json.loads(body)
        except ValueError as exc:
            raise ProtocolError(f"MCP server returned invalid JSON: {exc}") from exc

        envelope = _find_response(payload, req_id)
        if envelope is None:
            raise ProtocolError(
                f"MCP response does not answer request {req_id}",
                code=McpErrorCode.INVALID_REQUEST,
            )
        return envelope

    async def _read_event_stream(self, response: httpx.Response, req_id: int) -> dict[str, Any]:
        """Read events until the one answering ``req_id``; the rest is never read."""
        decoder = SseDecoder()
        async for chunk in response.aiter_text():
            for event in decoder.feed(chunk):
                envelope = self._match_event(event, req_id)
                if envelope is _DONE:
                    return self._empty_envelope(req_id)
                if envelope is not None:
                    return envelope

        for event in decoder.flush():
            envelope = self._match_event(event, req_id)
            if envelope is _DONE:
                return self._empty_envelope(req_id)
            if envelope is not None:
                return envelope

        raise ProtocolError(f"Event stream ended without a response to request {req_id}")

    @staticmethod
    def _match_event(event: SseEvent, req_id: int) -> Any:
        if event.is_done:
            logger.debug("Event stream finished with [DONE] before a result for %s", req_id)
            return _DONE
        try:
            payload = json.loads(event.data)
        except ValueError:
            logger.debug("Skipping non-JSON event frame: %r", event.data[:80])
            return None
        return _find_response(payload, req_id)

    @staticmethod
    def _empty_envelope(req_id: int) -> dict[str, Any]:
        return {"jsonrpc": "2.0", "id": req_id, "result": {}}

    @staticmethod
    def _unwrap(envelope: dict[str, Any], method: str) -> dict[str, Any]:
        try:
            response = JsonRpcResponse.model_validate(envelope)
        except ValidationError as exc:
            raise ProtocolError(f"Malformed JSON-RPC response to '{method}': {exc}") from exc

        if response.error is not None:
            raise ServerError(
                response.error.message or f"MCP error for '{method}'",
                raw_code=response.error.code,
                data=response.error.data,
            )
        if response.result is None:
            return {}
        if not isinstance(response.result, dict):
            raise ProtocolError(f"Result of '{method}' is not an object")
        return response.result

    # ---------------------------------------------------------------------
    # MCP primitives
    # ---------------------------------------------------------------------

    async def ping(self) -> dict[str, Any]:
        self._require_ready()
        return await self._request("ping")

    async def list_tools(self) -> list[McpTool]:
        """Discover every tool the server advertises, skipping malformed entries."""
        self._require_ready()

        tools: list[McpTool] = []
        skipped = 0
        cursor: str | None = None
        for _page in range(max(1, self._settings.max_tool_pages)):
            result = await self._request("tools/list", {"cursor": cursor} if cursor else {})

            entries = result.get("tools")
            if not isinstance(entries, list):
                logger.warning("tools/list result has no tools array: %r", type(entries).__name__)
                entries = []

            parsed, bad = parse_tool_entries(entries)
            tools.extend(parsed)
            skipped += bad

            next_cursor = result.get("nextCursor")
            if not next_cursor or not isinstance(next_cursor, str) or next_cursor == cursor:
                break
            cursor = next_cursor
        else:
            logger.warning("Stopped tools/list pagination after %d pages", self._settings.max_tool_pages)

        if skipped:
            logger.warning("Loaded %d MCP tools, skipped %d malformed entries", len(tools), skipped)
        else:
            logger.info("Loaded %d MCP tools", len(tools))
        return tools

    async def call_tool(self, name: str, arguments: dict[str, JsonValue] | None = None) -> CallToolResult:
        self._require_ready()
        result = await self._request("tools/call", {"name": name, "arguments": arguments or {}})
        try:
            call_result = CallToolResult.model_validate(result)
        except ValidationError as exc:
            raise ProtocolError(f"Malformed tools/call result for '{name}': {exc}") from exc

        if call_result.is_error:
            logger.info("MCP tool '%s' reported an execution error", name)
        return call_result

    async def test_connection(self, config: McpConfig) -> ConnectionTestResult:
        """Connect, probe, disconnect; report the outcome instead of raising."""
        try:
            await self.connect(config)
            try:
                await self.ping()
            except ServerError as exc:
                if exc.code != McpErrorCode.METHOD_NOT_FOUND:
                    raise
                logger.debug("MCP server does not implement ping; handshake is enough")
            return ConnectionTestResult(success=True, server_info=self._server_info or ServerInfo())
        except Exception as exc:
            logger.warning("MCP connection test failed: %s", exc)
            return ConnectionTestResult(success=False, error=str(exc) or type(exc).__name__)
        finally:
            await self.disconnect()
