"""Process-wide notepilot configuration."""

from __future__ import annotations

import logging
from functools import lru_cache

from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Environment-driven defaults shared by every MCP operation.

    Per-call MCP configuration (server URL, token, allow/deny lists) comes
    from the host's settings mapping, not from here.
    """

    client_name: str = "notepilot"
    client_version: str = "0.1.0"
    protocol_version: str = "2025-06-18"

    tool_cache_ttl_s: float = 300.0  # 5 minutes
    max_tool_pages: int = 20

    log_level: str = "INFO"
    log_format: str = "%(asctime)s %(name)s %(levelname)s %(message)s"

    model_config = {"env_prefix": "NOTEPILOT_", "env_file": ".env", "extra": "ignore"}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


def configure_logging(settings: Settings | None = None) -> None:
    """Install the root handler used by the CLI and the HTTP bridge."""
    settings = settings or get_settings()
    logging.basicConfig(level=settings.log_level.upper(), format=settings.log_format)
    logger.debug("Logging configured at %s", settings.log_level)
