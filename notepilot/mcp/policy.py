"""Access-control policy for MCP tool calls.

Deny list, allow list and argument-size ceiling are evaluated against the
live ``McpConfig``; the policy holds no other state.  ``configure`` swaps
the config reference in one assignment, so a check never observes a
half-updated configuration.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any
from urllib.parse import urlparse

from notepilot.mcp.types import DEFAULT_TIMEOUT_MS, ConfigValidation, McpConfig, PolicyDecision

logger = logging.getLogger(__name__)

_MIN_TIMEOUT_MS = 1000
_MIN_ARG_KB = 1


def serialized_size(arguments: Any) -> int:
    """Byte length of ``arguments`` in its compact JSON wire form."""
    payload = json.dumps(arguments, ensure_ascii=False, separators=(",", ":"), default=str)
    return len(payload.encode("utf-8"))


def is_valid_http_url(url: str) -> bool:
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


class McpPolicy:
    """Stateless authorization over the most recently configured ``McpConfig``."""

    def __init__(self, config: McpConfig | None = None) -> None:
        self._config = config

    @property
    def config(self) -> McpConfig | None:
        return self._config

    def configure(self, config: McpConfig) -> None:
        self._config = config

    def is_enabled(self) -> bool:
        return bool(self._config and self._config.enabled)

    def timeout_ms(self) -> int:
        if self._config is None:
            return DEFAULT_TIMEOUT_MS
        return self._config.timeout_ms or DEFAULT_TIMEOUT_MS

    def check_tool_access(self, tool_name: str) -> PolicyDecision:
        """Decide whether ``tool_name`` (unprefixed) may be called."""
        config = self._config
        if config is None or not config.enabled:
            return PolicyDecision(allowed=False, reason="MCP is not enabled")

        # Deny list wins over the allow list.
        if tool_name in config.deny_tools:
            return PolicyDecision(allowed=False, reason=f"Tool '{tool_name}' is in deny list")

        if config.allow_tools and tool_name not in config.allow_tools:
            return PolicyDecision(allowed=False, reason=f"Tool '{tool_name}' is not in allow list")

        return PolicyDecision(allowed=True)

    def check_argument_size(self, arguments: Mapping[str, Any] | None) -> PolicyDecision:
        config = self._config
        if config is None:
            return PolicyDecision(allowed=True)

        size = serialized_size(dict(arguments or {}))
        limit = config.max_arg_kb * 1024
        if size > limit:
            return PolicyDecision(
                allowed=False,
                reason=f"Argument size {size} bytes exceeds limit {limit} bytes",
            )
        return PolicyDecision(allowed=True)

    def validate_config(self, partial: Mapping[str, Any] | McpConfig) -> ConfigValidation:
        """Collect every rule a (possibly partial) configuration violates."""
        values = partial.model_dump() if isinstance(partial, McpConfig) else dict(partial)
        errors: list[str] = []

        if values.get("enabled"):
            server_url = str(values.get("server_url") or "").strip()
            if not server_url:
                errors.append("Server URL is required when MCP is enabled")
            elif not is_valid_http_url(server_url):
                errors.append("Server URL must be a valid HTTP/HTTPS URL")

            timeout_ms = values.get("timeout_ms")
            if timeout_ms is not None and timeout_ms < _MIN_TIMEOUT_MS:
                errors.append(f"Timeout must be at least {_MIN_TIMEOUT_MS}ms")

            max_arg_kb = values.get("max_arg_kb")
            if max_arg_kb is not None and max_arg_kb < _MIN_ARG_KB:
                errors.append(f"Max argument size must be at least {_MIN_ARG_KB}KB")

        if errors:
            logger.info("MCP config rejected: %s", "; ".join(errors))
        return ConfigValidation(valid=not errors, errors=errors)
