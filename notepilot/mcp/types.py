"""Pydantic models shared by the MCP client, policy, cache and adapter."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

McpTransport = Literal["http", "streamable_http"]

DEFAULT_TIMEOUT_MS = 20000
DEFAULT_MAX_ARG_KB = 12000


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class McpConfig(BaseModel):
    """Connection and access-control settings for one host-facing operation."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    server_url: str = ""
    auth_token: str = ""
    transport: McpTransport = "http"
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    max_arg_kb: int = DEFAULT_MAX_ARG_KB
    allow_tools: tuple[str, ...] = ()
    deny_tools: tuple[str, ...] = ()
    refresh_tools_on_start: bool = False

    @property
    def timeout_s(self) -> float:
        return self.timeout_ms / 1000.0


class ConfigValidation(BaseModel):
    valid: bool
    errors: list[str] = Field(default_factory=list)


class PolicyDecision(BaseModel):
    """Verdict of a single policy check."""

    model_config = ConfigDict(frozen=True)

    allowed: bool
    reason: str | None = None


# ---------------------------------------------------------------------------
# Tool descriptors (as advertised by the server)
# ---------------------------------------------------------------------------


class McpInputSchema(BaseModel):
    """Top level of a tool's ``inputSchema``.

    Property schemas are kept exactly as the server sent them; the adapter
    reads them leniently, so an odd annotation on one property never costs
    the whole tool and numeric bounds keep their original values.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    type: str = "object"
    properties: dict[str, dict[str, Any]] = Field(default_factory=dict)
    required: list[str] = Field(default_factory=list)

    @field_validator("type", mode="before")
    @classmethod
    def _object_type(cls, value: Any) -> Any:
        return value if isinstance(value, str) else "object"

    @field_validator("properties", mode="before")
    @classmethod
    def _object_properties(cls, value: Any) -> Any:
        if not isinstance(value, dict):
            return {}
        return {k: v for k, v in value.items() if isinstance(v, dict)}

    @field_validator("required", mode="before")
    @classmethod
    def _string_required(cls, value: Any) -> Any:
        if not isinstance(value, list):
            return []
        return [v for v in value if isinstance(v, str)]


class McpTool(BaseModel):
    """Tool descriptor produced by the remote server at discovery time."""

    model_config = ConfigDict(frozen=True, extra="allow", populate_by_name=True)

    name: str = Field(min_length=1)
    description: str | None = None
    input_schema: McpInputSchema = Field(default_factory=McpInputSchema, alias="inputSchema")

    @field_validator("description", mode="before")
    @classmethod
    def _string_description(cls, value: Any) -> Any:
        return value if isinstance(value, str) else None

    @field_validator("input_schema", mode="before")
    @classmethod
    def _object_schema(cls, value: Any) -> Any:
        return value if isinstance(value, dict) else {}


# ---------------------------------------------------------------------------
# Assistant-facing tools
# ---------------------------------------------------------------------------


class AdaptedFunction(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    parameters: dict[str, Any]


class AdaptedTool(BaseModel):
    """An MCP tool in the assistant's function-calling format."""

    model_config = ConfigDict(frozen=True)

    type: Literal["function"] = "function"
    function: AdaptedFunction

    @property
    def name(self) -> str:
        return self.function.name


# ---------------------------------------------------------------------------
# Invocation results
# ---------------------------------------------------------------------------


class ContentBlock(BaseModel):
    model_config = ConfigDict(frozen=True, extra="allow", populate_by_name=True)

    type: str = "text"
    text: str | None = None
    data: str | None = None
    mime_type: str | None = Field(default=None, alias="mimeType")
    uri: str | None = None
    resource: dict[str, Any] | None = None


class CallToolResult(BaseModel):
    """Result of a ``tools/call`` request."""

    model_config = ConfigDict(frozen=True, extra="allow", populate_by_name=True)

    content: list[ContentBlock] = Field(default_factory=list)
    is_error: bool = Field(default=False, alias="isError")
    structured_content: dict[str, Any] | None = Field(default=None, alias="structuredContent")

    @property
    def error_text(self) -> str:
        """Concatenated text blocks, used as the message of an execution error."""
        return "\n".join(block.text for block in self.content if block.type == "text" and block.text)


class ToolCallOutcome(BaseModel):
    """Host-facing outcome of an MCP tool invocation."""

    success: bool
    result: str | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class ServerInfo(BaseModel):
    model_config = ConfigDict(frozen=True, extra="allow")

    name: str = "Unknown"
    version: str = "Unknown"

    def __str__(self) -> str:
        return f"{self.name} v{self.version}"


class ConnectionTestResult(BaseModel):
    success: bool
    server_info: ServerInfo | None = None
    error: str | None = None


# ---------------------------------------------------------------------------
# JSON-RPC envelope
# ---------------------------------------------------------------------------


class JsonRpcError(BaseModel):
    model_config = ConfigDict(extra="allow")

    code: int
    message: str = ""
    data: Any = None


class JsonRpcResponse(BaseModel):
    model_config = ConfigDict(extra="allow")

    jsonrpc: str = "2.0"
    id: str | int | None = None
    result: Any = None
    error: JsonRpcError | None = None
