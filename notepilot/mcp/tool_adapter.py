"""LangChain tool adapter for MCP tools discovered through the host bridge."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from langchain_core.tools import BaseTool, StructuredTool

from notepilot.mcp.host import invoke_mcp_tool, load_mcp_tools
from notepilot.mcp.jsonschema import jsonschema_to_pydantic_model
from notepilot.mcp.manager import McpToolManager
from notepilot.mcp.naming import sanitize_identifier
from notepilot.mcp.schema_adapter import is_placeholder
from notepilot.mcp.types import AdaptedTool

logger = logging.getLogger(__name__)


def build_mcp_tool(
    adapted: AdaptedTool,
    settings: Mapping[str, Any],
    *,
    manager: McpToolManager | None = None,
) -> BaseTool:
    """Wrap one adapted MCP tool; calls go through policy checks like any host call."""
    tool_name = adapted.name
    args_schema = jsonschema_to_pydantic_model(
        f"McpArgs_{sanitize_identifier(tool_name)}",
        adapted.function.parameters,
    )

    async def _acall(**kwargs: Any) -> str:
        arguments = {k: v for k, v in kwargs.items() if v is not None}
        outcome = await invoke_mcp_tool(tool_name, arguments, settings, manager=manager)
        if outcome.get("success"):
            return str(outcome.get("result", ""))
        return str(outcome.get("error", ""))

    return StructuredTool.from_function(
        name=sanitize_identifier(tool_name),
        description=adapted.function.description or f"MCP tool {tool_name}",
        coroutine=_acall,
        args_schema=args_schema,
    )


async def build_mcp_tools(
    settings: Mapping[str, Any],
    *,
    manager: McpToolManager | None = None,
) -> list[BaseTool]:
    """Discover MCP tools and bind each valid one as a LangChain tool."""
    tools: list[BaseTool] = []
    for raw in await load_mcp_tools(settings, manager=manager):
        adapted = AdaptedTool.model_validate(raw)
        if is_placeholder(adapted):
            logger.info("Not binding invalid MCP tool %s", adapted.name)
            continue
        tools.append(build_mcp_tool(adapted, settings, manager=manager))
    return tools
