"""CLI for probing an MCP server and checking MCP settings.

Usage:
    python -m notepilot.mcp.cli probe                      # uses MCP_SERVER_URL / MCP_AUTH_TOKEN
    python -m notepilot.mcp.cli probe --url https://host/mcp/ --limit 5
    python -m notepilot.mcp.cli validate --url ftp://x --timeout-ms 10
"""

from __future__ import annotations

import argparse
import asyncio
import os
import sys

from notepilot.config import configure_logging
from notepilot.mcp.http_client import McpHttpClient
from notepilot.mcp.policy import McpPolicy
from notepilot.mcp.types import DEFAULT_MAX_ARG_KB, DEFAULT_TIMEOUT_MS, McpConfig

DEFAULT_SERVER_URL = "https://api.githubcopilot.com/mcp/"


async def _probe(config: McpConfig, limit: int) -> None:
    async with McpHttpClient() as client:
        await client.connect(config)
        print(f"Connected: {client.server_info}")
        tools = await client.list_tools()
        print(f"tools/list ok, count={len(tools)}")
        for tool in tools[:limit]:
            print(f"- {tool.name}: {tool.description or 'No description'}")


def cmd_probe(args: argparse.Namespace) -> None:
    """Connect, print server identity and the first tools."""
    if not args.token:
        print("ERROR: Missing MCP_AUTH_TOKEN env var (or --token)", file=sys.stderr)
        sys.exit(1)

    config = McpConfig(
        enabled=True,
        server_url=args.url,
        auth_token=args.token,
        transport=args.transport,
        timeout_ms=args.timeout_ms,
    )
    try:
        asyncio.run(_probe(config, args.limit))
    except Exception as exc:
        print(f"ERROR: MCP probe failed: {exc}", file=sys.stderr)
        sys.exit(1)


def cmd_validate(args: argparse.Namespace) -> None:
    """Print every violated configuration rule."""
    result = McpPolicy().validate_config(
        {
            "enabled": True,
            "server_url": args.url,
            "timeout_ms": args.timeout_ms,
            "max_arg_kb": args.max_arg_kb,
        }
    )
    if result.valid:
        print("OK: MCP configuration is valid")
        return
    for error in result.errors:
        print(f"ERROR: {error}", file=sys.stderr)
    sys.exit(1)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="notepilot-mcp", description="MCP connection tools")
    sub = parser.add_subparsers(dest="command", required=True)

    probe = sub.add_parser("probe", help="Connect and list tools")
    probe.add_argument("--url", default=os.environ.get("MCP_SERVER_URL", DEFAULT_SERVER_URL))
    probe.add_argument("--token", default=os.environ.get("MCP_AUTH_TOKEN", ""))
    probe.add_argument("--transport", choices=["http", "streamable_http"], default="streamable_http")
    probe.add_argument("--timeout-ms", type=int, default=DEFAULT_TIMEOUT_MS)
    probe.add_argument("--limit", type=int, default=20)
    probe.set_defaults(func=cmd_probe)

    validate = sub.add_parser("validate", help="Check MCP settings")
    validate.add_argument("--url", default="")
    validate.add_argument("--timeout-ms", type=int, default=DEFAULT_TIMEOUT_MS)
    validate.add_argument("--max-arg-kb", type=int, default=DEFAULT_MAX_ARG_KB)
    validate.set_defaults(func=cmd_validate)

    return parser


def main(argv: list[str] | None = None) -> None:
    configure_logging()
    args = build_parser().parse_args(argv)
    args.func(args)


if __name__ == "__main__":
    main()
