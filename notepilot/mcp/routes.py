"""FastAPI routes exposing the MCP host bridge to a sidecar frontend."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from notepilot.mcp import host
from notepilot.mcp.manager import McpToolManager, get_mcp_manager

router = APIRouter(prefix="/mcp", tags=["mcp"])


class McpSettingsBody(BaseModel):
    settings: dict[str, Any] = Field(default_factory=dict)


class McpInvokeBody(BaseModel):
    arguments: dict[str, Any] = Field(default_factory=dict)
    settings: dict[str, Any] = Field(default_factory=dict)


@router.post("/tools")
async def mcp_list_tools(body: McpSettingsBody, manager: McpToolManager = Depends(get_mcp_manager)):
    tools = await host.load_mcp_tools(body.settings, manager=manager)
    return {"tools": tools, "count": len(tools)}


@router.post("/tools/{tool_name}/invoke")
async def mcp_invoke_tool(
    tool_name: str,
    body: McpInvokeBody,
    manager: McpToolManager = Depends(get_mcp_manager),
):
    return await host.invoke_mcp_tool(tool_name, body.arguments, body.settings, manager=manager)


@router.post("/test")
async def mcp_test_connection(body: McpSettingsBody, manager: McpToolManager = Depends(get_mcp_manager)):
    return await host.test_mcp(body.settings, manager=manager)


@router.post("/refresh")
def mcp_refresh(manager: McpToolManager = Depends(get_mcp_manager)):
    host.refresh_mcp(manager=manager)
    return {"status": "refreshed"}


@router.post("/validate")
def mcp_validate(body: McpSettingsBody, manager: McpToolManager = Depends(get_mcp_manager)):
    """Report every problem with the submitted settings at once."""
    config = host.config_from_settings(body.settings)
    return manager.policy.validate_config(config).model_dump()
