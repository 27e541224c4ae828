"""Model Context Protocol (MCP) integration for notepilot.

This package provides:
- An async HTTP MCP client (JSON and server-sent-event responses)
- Tool discovery with a TTL cache and schema translation for the assistant
- Allow/deny list and argument-size policy enforced before every call
- Host bridge functions, FastAPI routes and LangChain tool adapters
"""
