"""
Pydantic models for Grafana connections, call results and MCP tool inputs.

Grafana responses differ per endpoint, so successful payloads are carried as
plain decoded JSON rather than typed schemas.
"""
from __future__ import annotations

import re
from enum import Enum
from typing import Any, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field, field_validator


# ---------------------------------------------------------------------------
# Connection
# ---------------------------------------------------------------------------


class Connection(BaseModel):
    """Where and how to reach Grafana.

    ``http`` is owned by whoever built the connection; nothing in this
    package closes it except ``client.open_connection``.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    base_url: str
    auth_token: str
    http: httpx.AsyncClient

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


# ---------------------------------------------------------------------------
# Call results
# ---------------------------------------------------------------------------


class ErrorKind(str, Enum):
    INVALID_DASHBOARD = "invalid_dashboard"
    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "not_found"
    ALREADY_EXISTS = "already_exists"
    TRANSPORT_ERROR = "transport_error"
    UNEXPECTED_STATUS = "unexpected_status"


class GrafanaError(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: ErrorKind
    message: str
    status_code: Optional[int] = None
    detail: Optional[str] = None


class GrafanaResult(BaseModel):
    """Outcome of one Grafana call: decoded JSON on success, an error otherwise."""

    model_config = ConfigDict(frozen=True)

    ok: bool
    data: Any = None
    error: Optional[GrafanaError] = None

    @classmethod
    def success(cls, data: Any) -> "GrafanaResult":
        return cls(ok=True, data=data)

    @classmethod
    def failure(
        cls,
        kind: ErrorKind,
        message: str,
        status_code: Optional[int] = None,
        detail: Optional[str] = None,
    ) -> "GrafanaResult":
        error = GrafanaError(kind=kind, message=message, status_code=status_code, detail=detail)
        return cls(ok=False, error=error)

    @property
    def error_kind(self) -> Optional[ErrorKind]:
        return self.error.kind if self.error else None


# ---------------------------------------------------------------------------
# MCP tool input schemas
# ---------------------------------------------------------------------------

_UID_RE = re.compile(r"^[A-Za-z0-9_-]{1,40}$")


def _check_uid(v: str) -> str:
    if not _UID_RE.match(v):
        raise ValueError("folder_uid must be 1-40 alphanumerics, hyphens or underscores")
    return v


class DashboardFileInput(BaseModel):
    """Path to a local dashboard JSON file."""
    dashboard_path: str = Field(..., description="Path to the dashboard JSON file", min_length=1)


class UploadDashboardInput(DashboardFileInput):
    folder_uid: Optional[str] = Field(None, description="Target folder UID")
    message: Optional[str] = Field(None, description="Version history message", max_length=500)

    @field_validator("folder_uid")
    @classmethod
    def validate_folder_uid(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else _check_uid(v)

    def options(self) -> dict[str, Any]:
        """Extra keys merged into the ``/api/dashboards/db`` request body."""
        opts: dict[str, Any] = {}
        if self.folder_uid:
            opts["folderUid"] = self.folder_uid
        if self.message:
            opts["message"] = self.message
        return opts


class FolderUidInput(BaseModel):
    folder_uid: str = Field(..., description="Folder UID")

    @field_validator("folder_uid")
    @classmethod
    def validate_folder_uid(cls, v: str) -> str:
        return _check_uid(v)


class FolderInput(FolderUidInput):
    title: str = Field(..., description="Folder title", min_length=1, max_length=255)


class AnnotationInput(BaseModel):
    tags: list[str] = Field(default_factory=list, description="Annotation tags, order preserved")
    text: str = Field(..., description="Annotation message", min_length=1)


class SyncDashboardsInput(BaseModel):
    """Upload every dashboard under a directory into one folder."""
    dashboard_dir: str = Field(..., description="Directory containing dashboard JSON files", min_length=1)
    folder_uid: str = Field(..., description="Folder UID to upload into")
    folder_title: str = Field(..., description="Folder title", min_length=1, max_length=255)

    @field_validator("folder_uid")
    @classmethod
    def validate_folder_uid(cls, v: str) -> str:
        return _check_uid(v)
