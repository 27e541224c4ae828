"""FastAPI app for running notepilot as a sidecar next to the editor.

Run with: uvicorn notepilot.serve:app --port 8060
"""

from __future__ import annotations

from fastapi import FastAPI

from notepilot.config import configure_logging
from notepilot.mcp.routes import router as mcp_router

configure_logging()

app = FastAPI(title="notepilot", version="0.1.0")
app.include_router(mcp_router)


@app.get("/health")
def health():
    return {"status": "ok"}
