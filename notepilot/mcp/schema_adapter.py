"""MCP tool descriptor -> assistant function-calling format.

The adapter is total: a malformed descriptor yields a clearly marked
placeholder instead of failing the discovery batch, so one bad entry never
hides the server's other tools.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from notepilot.mcp.naming import MCP_TOOL_PREFIX, invalid_tool_name, mcp_tool_name
from notepilot.mcp.types import AdaptedFunction, AdaptedTool, McpTool

logger = logging.getLogger(__name__)

DESCRIPTION_TAG = "[MCP]"
INVALID_NOT_OBJECT = "Invalid tool - not an object"
INVALID_MISSING_NAME = "Invalid tool - missing name"

_TYPE_MAP = {
    "string": "string",
    "number": "number",
    "integer": "number",
    "boolean": "boolean",
    "array": "array",
    "object": "object",
}

_CONSTRAINT_KEYS = (
    "minimum",
    "maximum",
    "exclusiveMinimum",
    "exclusiveMaximum",
    "minLength",
    "maxLength",
    "minItems",
    "maxItems",
)


def empty_object_schema() -> dict[str, Any]:
    return {"type": "object", "properties": {}}


def map_schema_type(type_name: Any) -> str:
    """Map a JSON Schema ``type`` onto the subset the assistant accepts."""
    if isinstance(type_name, list):
        # e.g. ["string", "null"]: first non-null wins
        type_name = next((t for t in type_name if isinstance(t, str) and t != "null"), None)
    return _TYPE_MAP.get(type_name, "string") if isinstance(type_name, str) else "string"


def convert_property(prop: Mapping[str, Any]) -> dict[str, Any]:
    out: dict[str, Any] = {"type": map_schema_type(prop.get("type") or "string")}

    if isinstance(prop.get("description"), str) and prop["description"]:
        out["description"] = prop["description"]
    if "default" in prop:
        out["default"] = prop["default"]
    if prop.get("enum") is not None:
        out["enum"] = prop["enum"]
    for key in _CONSTRAINT_KEYS:
        if prop.get(key) is not None:
            out[key] = prop[key]

    if out["type"] == "array" and isinstance(prop.get("items"), Mapping):
        out["items"] = convert_property(prop["items"])

    if out["type"] == "object" and isinstance(prop.get("properties"), Mapping):
        out["properties"] = _convert_properties(prop["properties"])
        required = prop.get("required")
        if isinstance(required, list) and required:
            out["required"] = list(required)

    return out


def _convert_properties(properties: Mapping[str, Any]) -> dict[str, Any]:
    return {
        name: convert_property(prop)
        for name, prop in properties.items()
        if isinstance(prop, Mapping)
    }


def convert_input_schema(input_schema: Any) -> dict[str, Any]:
    """Translate an MCP ``inputSchema`` into a JSON Schema parameters object."""
    if not isinstance(input_schema, Mapping):
        return empty_object_schema()

    result = empty_object_schema()

    required = input_schema.get("required")
    if isinstance(required, list) and required:
        result["required"] = list(required)

    properties = input_schema.get("properties")
    if isinstance(properties, Mapping):
        result["properties"] = _convert_properties(properties)

    return result


def _placeholder(index: int, reason: str) -> AdaptedTool:
    return AdaptedTool(
        function=AdaptedFunction(
            name=invalid_tool_name(index),
            description=f"{DESCRIPTION_TAG} {reason}",
            parameters=empty_object_schema(),
        )
    )


def is_placeholder(tool: AdaptedTool) -> bool:
    return tool.name.startswith(f"{MCP_TOOL_PREFIX}invalid_tool_") and tool.function.description.startswith(
        f"{DESCRIPTION_TAG} Invalid tool"
    )


def adapt_tool(tool: McpTool | Mapping[str, Any] | Any, index: int) -> AdaptedTool:
    """Project one tool descriptor into the assistant's format.

    ``index`` is only used to name the placeholder returned for a
    descriptor that is not an object or has no name.
    """
    if isinstance(tool, McpTool):
        raw: Any = tool.model_dump(by_alias=True, exclude_unset=True)
    else:
        raw = tool

    if not isinstance(raw, Mapping):
        logger.warning("MCP tool %d: not an object: %r", index, raw)
        return _placeholder(index, INVALID_NOT_OBJECT)

    name = raw.get("name")
    if not name or not isinstance(name, str):
        logger.warning("MCP tool %d: missing name: %r", index, raw)
        return _placeholder(index, INVALID_MISSING_NAME)

    description = raw.get("description")
    if description and isinstance(description, str):
        description = f"{DESCRIPTION_TAG} {description}"
    else:
        description = f"{DESCRIPTION_TAG} {name} - No description available"

    return AdaptedTool(
        function=AdaptedFunction(
            name=mcp_tool_name(name),
            description=description,
            parameters=convert_input_schema(raw.get("inputSchema")),
        )
    )


def adapt_tools(tools: Iterable[McpTool | Mapping[str, Any] | Any]) -> list[AdaptedTool]:
    return [adapt_tool(tool, index) for index, tool in enumerate(tools)]
