"""
Grafana dashboard MCP server.

Tools:
  1.  upload_dashboard   — create or replace a dashboard from a local JSON file
  2.  get_dashboard      — fetch Grafana's copy of a local dashboard file (by its uid)
  3.  create_folder      — create a dashboard folder
  4.  update_folder      — rename an existing folder
  5.  get_folder         — fetch folder details
  6.  create_annotation  — post a tagged annotation
  7.  sync_dashboards    — upload every dashboard in a directory into one folder

Run:
    python -m grafana_dashclient.server
    # or via the installed script:
    grafana-dashclient
"""
from __future__ import annotations

import json
import logging
import sys

import structlog
from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp import types
from pydantic import ValidationError

from grafana_dashclient import client, updater
from grafana_dashclient.config import get_settings
from grafana_dashclient.models import (
    AnnotationInput,
    Connection,
    DashboardFileInput,
    FolderInput,
    FolderUidInput,
    GrafanaResult,
    SyncDashboardsInput,
    UploadDashboardInput,
)

# ---------------------------------------------------------------------------
# Logging setup — structured JSON to stderr, never to stdout (MCP uses stdout)
# ---------------------------------------------------------------------------

structlog.configure(
    wrapper_class=structlog.make_filtering_bound_logger(logging.INFO),
    logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
    processors=[
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.add_log_level,
        structlog.processors.JSONRenderer(),
    ],
)

log = structlog.get_logger(__name__)

app = Server("grafana-dashclient")


def _ok(data: object) -> list[types.TextContent]:
    """Wrap a result as a JSON TextContent response."""
    return [types.TextContent(type="text", text=json.dumps(data, indent=2, default=str))]


def _err(message: str) -> list[types.TextContent]:
    """Wrap an error message as a TextContent response."""
    return [types.TextContent(type="text", text=json.dumps({"error": message}))]


def _result(result: GrafanaResult) -> list[types.TextContent]:
    if result.ok:
        return _ok(result.data)
    return _ok({"error": result.error.model_dump(mode="json")})


_FOLDER_UID_PROP = {"type": "string", "description": "Folder UID (alphanumerics, hyphens, underscores; max 40)"}

# ---------------------------------------------------------------------------
# Tool registry
# ---------------------------------------------------------------------------

@app.list_tools()
async def list_tools() -> list[types.Tool]:
    return [
        types.Tool(
            name="upload_dashboard",
            description=(
                "Create a dashboard from a local Grafana dashboard JSON file, or replace the "
                "existing dashboard with the same uid. Optionally place it in a folder."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "dashboard_path": {"type": "string", "description": "Path to the dashboard JSON file."},
                    "folder_uid": _FOLDER_UID_PROP,
                    "message": {"type": "string", "description": "Version history message."},
                },
                "required": ["dashboard_path"],
            },
        ),
        types.Tool(
            name="get_dashboard",
            description="Fetch the dashboard currently stored in Grafana for the uid found in a local dashboard file.",
            inputSchema={
                "type": "object",
                "properties": {
                    "dashboard_path": {"type": "string", "description": "Path to the dashboard JSON file."},
                },
                "required": ["dashboard_path"],
            },
        ),
        types.Tool(
            name="create_folder",
            description="Create a new dashboard folder. Fails with already_exists if the UID is taken.",
            inputSchema={
                "type": "object",
                "properties": {
                    "folder_uid": _FOLDER_UID_PROP,
                    "title": {"type": "string", "description": "Folder title."},
                },
                "required": ["folder_uid", "title"],
            },
        ),
        types.Tool(
            name="update_folder",
            description="Change the title of an existing folder.",
            inputSchema={
                "type": "object",
                "properties": {
                    "folder_uid": _FOLDER_UID_PROP,
                    "title": {"type": "string", "description": "New folder title."},
                },
                "required": ["folder_uid", "title"],
            },
        ),
        types.Tool(
            name="get_folder",
            description="Fetch details of a folder by UID.",
            inputSchema={
                "type": "object",
                "properties": {"folder_uid": _FOLDER_UID_PROP},
                "required": ["folder_uid"],
            },
        ),
        types.Tool(
            name="create_annotation",
            description="Create an organisation-wide annotation with tags and a text message.",
            inputSchema={
                "type": "object",
                "properties": {
                    "tags": {"type": "array", "items": {"type": "string"}, "description": "Annotation tags."},
                    "text": {"type": "string", "description": "Annotation text."},
                },
                "required": ["text"],
            },
        ),
        types.Tool(
            name="sync_dashboards",
            description=(
                "Ensure a folder exists with the given title, then upload every *.json "
                "dashboard under a directory into it."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "dashboard_dir": {"type": "string", "description": "Directory containing dashboard JSON files."},
                    "folder_uid": _FOLDER_UID_PROP,
                    "folder_title": {"type": "string", "description": "Folder title."},
                },
                "required": ["dashboard_dir", "folder_uid", "folder_title"],
            },
        ),
    ]


# ---------------------------------------------------------------------------
# Tool dispatcher
# ---------------------------------------------------------------------------

@app.call_tool()
async def call_tool(name: str, arguments: dict) -> list[types.TextContent]:
    """Dispatch MCP tool calls to the Grafana client."""
    log.info("tool.called", tool=name)

    try:
        settings = get_settings()
    except RuntimeError as e:
        return _err(f"Configuration error: {e}")

    try:
        async with client.open_connection(settings) as conn:
            return await _dispatch(name, arguments or {}, conn)
    except ValidationError as e:
        log.warning("tool.validation_error", tool=name, errors=e.errors())
        return _err(f"Input validation error: {e}")
    except Exception as e:
        log.exception("tool.unexpected_error", tool=name)
        return _err(f"Unexpected error: {type(e).__name__}: {e}")


async def _dispatch(name: str, arguments: dict, conn: Connection) -> list[types.TextContent]:
    if name == "upload_dashboard":
        inp = UploadDashboardInput(**arguments)
        return _result(await client.upload_dashboard(conn, inp.dashboard_path, inp.options()))

    if name == "get_dashboard":
        inp = DashboardFileInput(**arguments)
        return _result(await client.get_dashboard(conn, inp.dashboard_path))

    if name == "create_folder":
        inp = FolderInput(**arguments)
        return _result(await client.create_folder(conn, inp.folder_uid, inp.title))

    if name == "update_folder":
        inp = FolderInput(**arguments)
        return _result(await client.update_folder(conn, inp.folder_uid, inp.title))

    if name == "get_folder":
        inp = FolderUidInput(**arguments)
        return _result(await client.get_folder(conn, inp.folder_uid))

    if name == "create_annotation":
        inp = AnnotationInput(**arguments)
        return _result(await client.create_annotation(conn, inp.tags, inp.text))

    if name == "sync_dashboards":
        inp = SyncDashboardsInput(**arguments)
        outcome = await updater.sync_dashboards(conn, inp.dashboard_dir, inp.folder_uid, inp.folder_title)
        if isinstance(outcome, GrafanaResult):
            return _result(outcome)
        return _ok({path: r.model_dump(mode="json") for path, r in outcome.items()})

    return _err(f"Unknown tool: {name!r}")


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

async def _serve() -> None:
    log.info("server.starting", name="grafana-dashclient")
    async with stdio_server() as (read_stream, write_stream):
        await app.run(read_stream, write_stream, app.create_initialization_options())


def main() -> None:
    import asyncio
    asyncio.run(_serve())


if __name__ == "__main__":
    main()
