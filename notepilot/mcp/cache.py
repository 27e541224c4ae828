"""Time-bounded in-memory cache for the discovered MCP tool list."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from notepilot.mcp.types import McpTool

logger = logging.getLogger(__name__)

DEFAULT_TTL_S = 5 * 60.0


@dataclass(slots=True, frozen=True)
class _CacheEntry:
    tools: tuple[McpTool, ...]
    timestamp: float
    ttl_s: float


class McpToolCache:
    """Holds at most one tool list; readers race-tolerate a last-writer-wins update."""

    def __init__(
        self,
        *,
        default_ttl_s: float = DEFAULT_TTL_S,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._default_ttl_s = float(default_ttl_s)
        self._clock = clock
        self._entry: _CacheEntry | None = None

    def get_tools(self) -> list[McpTool] | None:
        """Return the cached tools, or ``None`` (dropping the entry) once expired."""
        entry = self._entry
        if entry is None:
            return None
        if self._clock() - entry.timestamp >= entry.ttl_s:
            logger.debug("MCP tool cache expired after %.1fs", entry.ttl_s)
            self._entry = None
            return None
        return list(entry.tools)

    def set_tools(self, tools: Sequence[McpTool], ttl_s: float | None = None) -> None:
        self._entry = _CacheEntry(
            tools=tuple(tools),
            timestamp=self._clock(),
            ttl_s=self._default_ttl_s if ttl_s is None else float(ttl_s),
        )

    def invalidate(self) -> None:
        self._entry = None

    def force_refresh(self) -> None:
        """Drop the cached list so the next discovery hits the server."""
        self.invalidate()

    def has_valid_cache(self) -> bool:
        return self.get_tools() is not None

    def get_cache_age(self) -> float | None:
        """Seconds since the entry was stored, for diagnostics only."""
        entry = self._entry
        if entry is None:
            return None
        return self._clock() - entry.timestamp
