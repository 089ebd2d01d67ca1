"""
Push a directory of dashboard JSON files into a single Grafana folder.

The folder is created when missing and renamed when its title has drifted;
dashboards are then uploaded one at a time with overwrite on.
"""
from __future__ import annotations

from pathlib import Path
from typing import Iterable, Optional, Union

import structlog

from grafana_dashclient import client
from grafana_dashclient.models import Connection, ErrorKind, GrafanaResult

log = structlog.get_logger(__name__)


async def ensure_folder(conn: Connection, folder_uid: str, title: str) -> GrafanaResult:
    """Make sure *folder_uid* exists with *title*; return the folder result.

    A create that loses a race with another updater (412) falls back to the
    folder that won, renaming it if needed.
    """
    result = await client.get_folder(conn, folder_uid)

    if result.error_kind is ErrorKind.NOT_FOUND:
        log.info("updater.folder_create", folder_uid=folder_uid, title=title)
        created = await client.create_folder(conn, folder_uid, title)
        if created.error_kind is not ErrorKind.ALREADY_EXISTS:
            return created
        log.info("updater.folder_created_elsewhere", folder_uid=folder_uid)
        result = await client.get_folder(conn, folder_uid)

    if result.ok and result.data.get("title") != title:
        log.info("updater.folder_rename", folder_uid=folder_uid, old=result.data.get("title"), new=title)
        return await client.update_folder(conn, folder_uid, title)

    return result


def find_dashboards(directory: Union[str, Path]) -> list[Path]:
    """All ``*.json`` files below *directory*, sorted."""
    return sorted(p for p in Path(directory).rglob("*.json") if p.is_file())


async def upload_dashboards(
    conn: Connection,
    paths: Iterable[Union[str, Path]],
    folder_uid: Optional[str] = None,
) -> dict[str, GrafanaResult]:
    options = {"folderUid": folder_uid} if folder_uid else {}
    results: dict[str, GrafanaResult] = {}
    for path in paths:
        result = await client.upload_dashboard(conn, path, options)
        if not result.ok:
            log.warning("updater.upload_failed", path=str(path), error=result.error_kind.value)
        results[str(path)] = result
    return results


async def sync_dashboards(
    conn: Connection,
    directory: Union[str, Path],
    folder_uid: str,
    folder_title: str,
) -> Union[GrafanaResult, dict[str, GrafanaResult]]:
    """Ensure the folder, then upload every dashboard under *directory* into it.

    Returns the failed folder result if the folder step fails, otherwise the
    per-file upload results.
    """
    folder = await ensure_folder(conn, folder_uid, folder_title)
    if not folder.ok:
        log.error("updater.folder_failed", folder_uid=folder_uid, error=folder.error_kind.value)
        return folder

    paths = find_dashboards(directory)
    log.info("updater.sync_start", folder_uid=folder_uid, dashboards=len(paths))
    return await upload_dashboards(conn, paths, folder_uid)
