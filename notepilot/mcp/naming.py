"""Naming helpers for MCP tools exposed to the assistant."""

from __future__ import annotations

import re

MCP_TOOL_PREFIX = "mcp_"

_INVALID_CHARS = re.compile(r"[^A-Za-z0-9_-]+")
_MULTI_US = re.compile(r"_+")


def sanitize_identifier(value: str) -> str:
    """Normalize an identifier to ``A-Za-z0-9_-`` for function-calling APIs."""
    v = (value or "").strip()
    v = _INVALID_CHARS.sub("_", v)
    v = _MULTI_US.sub("_", v).strip("_")
    return v or "tool"


def mcp_tool_name(remote_name: str) -> str:
    """Namespace a remote tool name so it cannot collide with host tools."""
    return f"{MCP_TOOL_PREFIX}{remote_name}"


def strip_mcp_prefix(tool_name: str) -> str:
    """Recover the remote tool name from an assistant-facing name."""
    if tool_name.startswith(MCP_TOOL_PREFIX):
        return tool_name[len(MCP_TOOL_PREFIX):]
    return tool_name


def invalid_tool_name(index: int) -> str:
    return f"{MCP_TOOL_PREFIX}invalid_tool_{index}"
