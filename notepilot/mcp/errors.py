"""MCP client exception hierarchy and outward-facing error categories.

All client failures inherit from ``McpError`` so the tool manager can
translate them at a single boundary.  Every error carries a code from the
closed ``McpErrorCode`` enumeration, a human-readable message, and an
optional opaque ``data`` payload taken from the remote JSON-RPC error.

Failures reaching the host are never raw exceptions: the manager renders
them as strings prefixed with an ``ErrorCategory`` tag so the chat UI can
branch on the category without matching free text.
"""

from __future__ import annotations

from enum import Enum, IntEnum
from typing import Any


class McpErrorCode(IntEnum):
    """JSON-RPC 2.0 error codes used by MCP servers."""

    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603
    SERVER_ERROR = -32000

    @classmethod
    def from_code(cls, code: Any) -> McpErrorCode:
        """Map a raw wire code onto the closed enumeration.

        Codes outside the enumeration (including the implementation-defined
        -32099..-32000 range) collapse to ``SERVER_ERROR``.
        """
        try:
            return cls(int(code))
        except (TypeError, ValueError):
            return cls.SERVER_ERROR


class ErrorCategory(str, Enum):  # noqa: UP042
    """Stable tags prefixed to every error string returned to the host."""

    TOOL_NOT_ALLOWED = "MCP_TOOL_NOT_ALLOWED"
    INVALID_ARGUMENT = "MCP_INVALID_ARGUMENT"
    SERVER_ERROR = "MCP_SERVER_ERROR"
    CONNECTION_ERROR = "MCP_CONNECTION_ERROR"

    def tag(self, message: str) -> str:
        return f"{self.value}: {message}"


class McpError(Exception):
    """Base exception for all MCP client failures."""

    default_code = McpErrorCode.INTERNAL_ERROR

    def __init__(
        self,
        message: str,
        *,
        code: McpErrorCode | None = None,
        data: Any = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code if code is not None else self.default_code
        self.data = data


class ConfigError(McpError):
    """Raised when the caller's MCP configuration cannot be used (e.g. no URL)."""

    default_code = McpErrorCode.INVALID_PARAMS


class McpConnectionError(McpError):
    """Raised on handshake, transport, or timeout failure.

    Named to avoid shadowing the builtin ``ConnectionError``.
    """


class ProtocolError(McpConnectionError):
    """Raised when the server's reply is not a usable JSON-RPC envelope."""

    default_code = McpErrorCode.PARSE_ERROR


class NotConnectedError(McpError):
    """Raised when an operation needs a ready session and none exists."""

    default_code = McpErrorCode.INVALID_REQUEST

    def __init__(self, message: str = "Not connected to MCP server") -> None:
        super().__init__(message)


class ServerError(McpError):
    """Raised when the server answers with a JSON-RPC ``error`` object.

    Attributes
    ----------
    raw_code : int | None
        The code exactly as sent by the server, before it was folded into
        ``McpErrorCode``.
    """

    default_code = McpErrorCode.SERVER_ERROR

    def __init__(self, message: str, *, raw_code: Any = None, data: Any = None) -> None:
        super().__init__(message, code=McpErrorCode.from_code(raw_code), data=data)
        self.raw_code = raw_code

    @classmethod
    def from_payload(cls, error: dict[str, Any]) -> ServerError:
        message = str(error.get("message") or "Unknown server error")
        return cls(message, raw_code=error.get("code"), data=error.get("data"))
