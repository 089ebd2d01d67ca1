"""
Async client for the Grafana dashboard, folder and annotation APIs.

Every call sends exactly one request through the caller's ``httpx.AsyncClient``
and returns a ``GrafanaResult``:

  200  -> success with the decoded JSON body
  401  -> unauthorized
  404  -> not_found
  412  -> already_exists
  else -> unexpected_status (status code and body excerpt attached)

Connection-level failures become ``transport_error`` results. Nothing is
retried.
"""
from __future__ import annotations

import json
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Mapping, Optional, Union
from urllib.parse import quote

import httpx
import structlog

from grafana_dashclient.config import Settings
from grafana_dashclient.models import Connection, ErrorKind, GrafanaResult

log = structlog.get_logger(__name__)

PathLike = Union[str, Path]

_BODY_EXCERPT = 500


@asynccontextmanager
async def open_connection(settings: Settings) -> AsyncIterator[Connection]:
    """Build a transport from *settings* and close it when the block exits."""
    async with httpx.AsyncClient(verify=settings.ssl_verify, timeout=settings.timeout) as http:
        yield Connection(base_url=settings.grafana_url, auth_token=settings.bearer_token, http=http)


# ---------------------------------------------------------------------------
# Request / response plumbing
# ---------------------------------------------------------------------------

def grafana_headers(method: str, bearer_token: str) -> dict[str, str]:
    """Headers for a Grafana request. Only GET, POST and PUT are used."""
    method = method.upper()
    if method == "GET":
        return {
            "authorization": bearer_token,
            "accept": "application/json",
        }
    if method in ("POST", "PUT"):
        return {
            "authorization": bearer_token,
            "content-type": "application/json",
            "accept": "application/json",
        }
    raise ValueError(f"Unsupported method for Grafana requests: {method!r}")


def handle_response(response: httpx.Response) -> GrafanaResult:
    """Map a Grafana HTTP response onto a result.

    A 200 whose body is not JSON raises; Grafana never sends one.
    """
    status = response.status_code
    if status == 200:
        return GrafanaResult.success(response.json())
    if status == 401:
        return GrafanaResult.failure(
            ErrorKind.UNAUTHORIZED, "Unauthorized — check the Grafana API token", status_code=status
        )
    if status == 404:
        return GrafanaResult.failure(ErrorKind.NOT_FOUND, "Not found", status_code=status)
    if status == 412:
        return GrafanaResult.failure(ErrorKind.ALREADY_EXISTS, "Already exists", status_code=status)
    return GrafanaResult.failure(
        ErrorKind.UNEXPECTED_STATUS,
        f"Unexpected Grafana response status {status}",
        status_code=status,
        detail=response.text[:_BODY_EXCERPT],
    )


async def _send(
    conn: Connection,
    method: str,
    path: str,
    payload: Optional[Mapping[str, Any]] = None,
) -> GrafanaResult:
    url = f"{conn.base_url}/api/{path}"
    headers = grafana_headers(method, conn.auth_token)
    t0 = time.monotonic()
    try:
        response = await conn.http.request(method, url, headers=headers, json=payload)
    except httpx.TransportError as e:
        log.warning("grafana.transport_error", method=method, path=path, error=repr(e))
        return GrafanaResult.failure(
            ErrorKind.TRANSPORT_ERROR,
            f"Could not reach Grafana at {conn.base_url}",
            detail=f"{type(e).__name__}: {e}",
        )
    elapsed = round((time.monotonic() - t0) * 1000)

    log.info(
        "grafana.api_call",
        method=method,
        path=path,
        status=response.status_code,
        elapsed_ms=elapsed,
    )
    result = handle_response(response)
    if result.error_kind is ErrorKind.UNEXPECTED_STATUS:
        log.warning("grafana.unexpected_status", status=response.status_code, path=path)
    return result


def _segment(value: Any) -> str:
    """Escape one URL path segment, including lone dot segments httpx would collapse."""
    segment = quote(str(value), safe="")
    if segment in (".", ".."):
        segment = segment.replace(".", "%2E")
    return segment


def _load_dashboard(dashboard_file_path: PathLike) -> Optional[dict[str, Any]]:
    """Read and parse a dashboard file; ``None`` if it is not a usable definition."""
    path = Path(dashboard_file_path)
    try:
        contents = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        log.warning("dashboard.read_failed", path=str(path), reason=repr(e))
        return None
    try:
        dashboard = json.loads(contents)
    except json.JSONDecodeError as e:
        log.warning("dashboard.invalid_json", path=str(path), reason=str(e))
        return None
    if not isinstance(dashboard, dict):
        log.warning("dashboard.invalid_json", path=str(path), reason="top level is not an object")
        return None
    return dashboard


def _invalid_dashboard(dashboard_file_path: PathLike) -> GrafanaResult:
    return GrafanaResult.failure(
        ErrorKind.INVALID_DASHBOARD, f"Could not load dashboard from {dashboard_file_path}"
    )


# ---------------------------------------------------------------------------
# Dashboards
# ---------------------------------------------------------------------------

async def upload_dashboard(
    conn: Connection,
    dashboard_file_path: PathLike,
    options: Optional[Mapping[str, Any]] = None,
) -> GrafanaResult:
    """Create a dashboard from a JSON file, or replace the one with the same uid.

    *options* are merged into the request body (``folderUid``, ``message`` ...).
    ``overwrite`` is always sent as true.
    """
    dashboard = _load_dashboard(dashboard_file_path)
    if dashboard is None:
        return _invalid_dashboard(dashboard_file_path)

    payload = {**(options or {}), "overwrite": True, "dashboard": dashboard}
    return await _send(conn, "POST", "dashboards/db", payload)


async def get_dashboard(conn: Connection, dashboard_file_path: PathLike) -> GrafanaResult:
    """Fetch Grafana's current copy of the dashboard whose uid is in the file."""
    dashboard = _load_dashboard(dashboard_file_path)
    if dashboard is None:
        return _invalid_dashboard(dashboard_file_path)

    uid = dashboard.get("uid")
    return await _send(conn, "GET", f"dashboards/uid/{'' if uid is None else _segment(uid)}")


# ---------------------------------------------------------------------------
# Folders
# ---------------------------------------------------------------------------

async def create_folder(conn: Connection, folder_uid: str, title: str) -> GrafanaResult:
    return await _send(conn, "POST", "folders", {"uid": folder_uid, "title": title})


async def update_folder(conn: Connection, folder_uid: str, new_title: str) -> GrafanaResult:
    return await _send(conn, "PUT", f"folders/{_segment(folder_uid)}", {"title": new_title, "overwrite": True})


async def get_folder(conn: Connection, folder_uid: str) -> GrafanaResult:
    return await _send(conn, "GET", f"folders/{_segment(folder_uid)}")


# ---------------------------------------------------------------------------
# Annotations
# ---------------------------------------------------------------------------

async def create_annotation(conn: Connection, tags: list[str], message: str) -> GrafanaResult:
    """Post an organisation-wide annotation with *tags* and *message* as its text."""
    return await _send(conn, "POST", "annotations", {"tags": list(tags), "text": message})
