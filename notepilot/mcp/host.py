"""Host-facing entry points.

The editor host hands over its flat settings mapping on every call; this
module reads the documented ``mcp*`` keys, builds an ``McpConfig`` and
delegates to the tool manager.  Settings are never written back.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from notepilot.mcp.manager import McpToolManager, get_mcp_manager
from notepilot.mcp.types import DEFAULT_MAX_ARG_KB, DEFAULT_TIMEOUT_MS, McpConfig

logger = logging.getLogger(__name__)

_FALSE_STRINGS = {"", "0", "false", "no", "off"}


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() not in _FALSE_STRINGS
    return bool(value)


def _as_int(value: Any, default: int) -> int:
    if value is None or value == "" or isinstance(value, bool):
        return default
    try:
        number = int(float(value))
    except (TypeError, ValueError):
        return default
    return number or default


def _as_name_list(value: Any) -> tuple[str, ...]:
    if isinstance(value, (list, tuple)):
        items = [str(v) for v in value]
    else:
        items = str(value or "").split(",")
    return tuple(t.strip() for t in items if t.strip())


def config_from_settings(settings: Mapping[str, Any]) -> McpConfig:
    transport = str(settings.get("mcpTransport") or "http")
    if transport not in ("http", "streamable_http"):
        logger.warning("Unknown MCP transport %r, using http", transport)
        transport = "http"

    return McpConfig(
        enabled=_as_bool(settings.get("mcpEnabled")),
        server_url=str(settings.get("mcpServerUrl") or "").strip(),
        auth_token=str(settings.get("mcpAuthToken") or ""),
        transport=transport,
        timeout_ms=_as_int(settings.get("mcpTimeoutMs"), DEFAULT_TIMEOUT_MS),
        max_arg_kb=_as_int(settings.get("mcpMaxArgChars"), DEFAULT_MAX_ARG_KB),
        allow_tools=_as_name_list(settings.get("mcpAllowTools")),
        deny_tools=_as_name_list(settings.get("mcpDenyTools")),
        refresh_tools_on_start=_as_bool(settings.get("mcpRefreshOnStart")),
    )


async def load_mcp_tools(
    settings: Mapping[str, Any],
    *,
    manager: McpToolManager | None = None,
) -> list[dict[str, Any]]:
    config = config_from_settings(settings)
    if not config.enabled or not config.server_url:
        return []

    manager = manager or get_mcp_manager()
    try:
        tools = await manager.get_mcp_tools(config)
    except Exception:
        logger.exception("Failed to load MCP tools")
        return []
    return [tool.model_dump() for tool in tools]


async def invoke_mcp_tool(
    tool_name: str,
    arguments: Mapping[str, Any] | None,
    settings: Mapping[str, Any],
    *,
    manager: McpToolManager | None = None,
) -> dict[str, Any]:
    manager = manager or get_mcp_manager()
    outcome = await manager.invoke_mcp_tool(tool_name, arguments, config_from_settings(settings))
    return outcome.to_dict()


async def test_mcp(
    settings: Mapping[str, Any],
    *,
    manager: McpToolManager | None = None,
) -> dict[str, Any]:
    config = config_from_settings(settings)
    logger.info(
        "Testing MCP connection: enabled=%s url=%s has_token=%s",
        config.enabled,
        config.server_url,
        bool(config.auth_token),
    )
    manager = manager or get_mcp_manager()
    try:
        return await manager.test_mcp_connection(config)
    except Exception as exc:
        logger.exception("MCP connection test raised")
        return {"success": False, "error": str(exc)}


def refresh_mcp(*, manager: McpToolManager | None = None) -> None:
    (manager or get_mcp_manager()).refresh_mcp_tools()
