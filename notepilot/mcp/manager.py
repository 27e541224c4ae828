"""MCP tool manager: discovery and invocation on behalf of the host."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Mapping
from typing import Any

from pydantic import JsonValue

from notepilot.config import Settings, get_settings
from notepilot.mcp.cache import McpToolCache
from notepilot.mcp.errors import ErrorCategory, ServerError
from notepilot.mcp.http_client import McpHttpClient
from notepilot.mcp.naming import strip_mcp_prefix
from notepilot.mcp.policy import McpPolicy
from notepilot.mcp.schema_adapter import adapt_tools
from notepilot.mcp.types import AdaptedTool, CallToolResult, McpConfig, ToolCallOutcome

logger = logging.getLogger(__name__)

ClientFactory = Callable[[], McpHttpClient]

_IMAGE_PREVIEW_CHARS = 50


def format_call_result(result: CallToolResult) -> str:
    """Flatten tool output into text suitable for a chat transcript."""
    parts: list[str] = []
    for block in result.content:
        if block.type == "text" and block.text:
            parts.append(block.text)
        elif block.type == "image" and block.data:
            mime_type = block.mime_type or "image/png"
            parts.append(f"[Image: data:{mime_type};base64,{block.data[:_IMAGE_PREVIEW_CHARS]}...]")
        elif block.type == "resource":
            resource = block.resource or {}
            if resource.get("text"):
                parts.append(str(resource["text"]))
            elif resource.get("uri") or block.uri:
                parts.append(f"[Resource: {resource.get('uri') or block.uri}]")

    if not parts and result.structured_content is not None:
        try:
            return json.dumps(result.structured_content, ensure_ascii=False, default=str)
        except (TypeError, ValueError):
            return str(result.structured_content)

    return "\n".join(parts) or "[No content]"


def _failure(category: ErrorCategory, message: str) -> ToolCallOutcome:
    return ToolCallOutcome(success=False, error=category.tag(message))


class McpToolManager:
    """Entry point for MCP operations used by the host bridge and tool adapters.

    Policy, cache and the client factory are injected so tests and separate
    host sessions get their own instances.  Every operation builds a fresh
    client; sessions are never shared between discovery and invocation.
    """

    def __init__(
        self,
        *,
        policy: McpPolicy | None = None,
        cache: McpToolCache | None = None,
        client_factory: ClientFactory | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self.policy = policy or McpPolicy()
        self.cache = cache or McpToolCache(default_ttl_s=self._settings.tool_cache_ttl_s)
        self._client_factory = client_factory or (lambda: McpHttpClient(settings=self._settings))
        self._started = False

    async def get_mcp_tools(self, config: McpConfig) -> list[AdaptedTool]:
        """Adapted tool list; ``[]`` on any failure so chat keeps working."""
        if not config.enabled:
            return []

        self.policy.configure(config)

        if not self._started:
            self._started = True
            if config.refresh_tools_on_start:
                logger.info("Refreshing MCP tool cache on start")
                self.cache.force_refresh()

        cached = self.cache.get_tools()
        if cached is not None:
            logger.info("Using cached MCP tools: %d", len(cached))
            return adapt_tools(cached)

        try:
            async with self._client_factory() as client:
                await client.connect(config)
                tools = await client.list_tools()
                self.cache.set_tools(tools)
        except Exception:
            logger.exception("Failed to load MCP tools from %s", config.server_url)
            return []

        logger.info("Discovered %d MCP tools from %s", len(tools), config.server_url)
        return adapt_tools(tools)

    async def invoke_mcp_tool(
        self,
        tool_name: str,
        arguments: Mapping[str, JsonValue] | None,
        config: McpConfig,
    ) -> ToolCallOutcome:
        remote_name = strip_mcp_prefix(tool_name)
        args: dict[str, Any] = dict(arguments or {})

        self.policy.configure(config)

        access = self.policy.check_tool_access(remote_name)
        if not access.allowed:
            logger.warning("MCP tool call denied: %s", access.reason)
            return _failure(ErrorCategory.TOOL_NOT_ALLOWED, access.reason or "denied")

        size = self.policy.check_argument_size(args)
        if not size.allowed:
            logger.warning("MCP tool call rejected for '%s': %s", remote_name, size.reason)
            return _failure(ErrorCategory.INVALID_ARGUMENT, size.reason or "invalid arguments")

        try:
            async with self._client_factory() as client:
                await client.connect(config)
                result = await client.call_tool(remote_name, args)
        except ServerError as exc:
            logger.warning("MCP server error calling '%s': %s", remote_name, exc)
            return _failure(ErrorCategory.SERVER_ERROR, exc.message)
        except Exception as exc:
            logger.warning("MCP call to '%s' failed: %s", remote_name, exc)
            return _failure(ErrorCategory.CONNECTION_ERROR, str(exc) or type(exc).__name__)

        if result.is_error:
            return _failure(ErrorCategory.SERVER_ERROR, result.error_text or "Tool execution returned error")

        return ToolCallOutcome(success=True, result=format_call_result(result))

    async def test_mcp_connection(self, config: McpConfig) -> dict[str, Any]:
        async with self._client_factory() as client:
            outcome = await client.test_connection(config)

        if outcome.success and outcome.server_info is not None:
            return {"success": True, "serverInfo": str(outcome.server_info)}
        return {"success": False, "error": outcome.error or "Unknown error"}

    def refresh_mcp_tools(self) -> None:
        self.cache.force_refresh()


_manager: McpToolManager | None = None


def get_mcp_manager() -> McpToolManager:
    global _manager
    if _manager is None:
        _manager = McpToolManager()
    return _manager
