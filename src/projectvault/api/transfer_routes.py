"""Transfer API routes: list projects, export and import archives, search.

Export and import run in a worker thread so the event loop stays free while
the key derivation and the row-by-row import are running.
"""

import asyncio
import base64
import binascii
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from pydantic import BaseModel, Field

from ..errors import (
    ArchiveError,
    DuplicateProjectError,
    PartialImportError,
    ProjectNotFoundError,
    ResolutionError,
    StorageError,
    TransferError,
    ValidationError,
)
from ..storage import ProjectItem, VaultStore, default_environment, search_items
from ..storage.items import item_title
from ..transfer import ARCHIVE_SUFFIX, ProjectExporter, ProjectImporter
from .security import verify_session_token

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["transfer"])

# ── Singleton ────────────────────────────────────────────────────────

_store: Optional[VaultStore] = None


def get_store() -> VaultStore:
    """Lazy singleton, created on first use."""
    global _store
    if _store is None:
        _store = VaultStore()
    return _store


# ── Pydantic Models ──────────────────────────────────────────────────


class ExportRequest(BaseModel):
    password: str = Field(..., min_length=1)


class ImportRequest(BaseModel):
    archive_b64: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


# ── Error mapping ────────────────────────────────────────────────────


def _http_error(e: TransferError) -> HTTPException:
    if isinstance(e, ProjectNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    if isinstance(e, DuplicateProjectError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    if isinstance(e, PartialImportError):
        return HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"error": str(e), "project_id": e.project_id, "partial": True},
        )
    if isinstance(e, ResolutionError):
        return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    if isinstance(e, (ValidationError, ArchiveError)):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if isinstance(e, StorageError):
        logger.error("Storage failure: %s", e)
        return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))


# ── Routes ───────────────────────────────────────────────────────────


@router.get("/projects")
async def list_projects(
    _token: str = Depends(verify_session_token),
):
    """List every project in the vault."""
    projects = get_store().list_projects()
    return {"projects": projects, "total": len(projects)}


@router.post("/projects/{project_id}/export")
async def export_project(
    project_id: int,
    body: ExportRequest,
    _token: str = Depends(verify_session_token),
):
    """Export one project as a password-protected archive."""
    store = get_store()
    exporter = ProjectExporter(store)
    try:
        archive = await asyncio.to_thread(exporter.export_project, project_id, body.password)
    except TransferError as e:
        raise _http_error(e)

    project = store.get_project(project_id)
    filename = f"{project['name']}{ARCHIVE_SUFFIX}" if project else f"project{ARCHIVE_SUFFIX}"
    return Response(
        content=archive,
        media_type="application/octet-stream",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/projects/import")
async def import_project(
    body: ImportRequest,
    _token: str = Depends(verify_session_token),
):
    """Import a project from a base64-encoded archive."""
    try:
        blob = base64.b64decode(body.archive_b64, validate=True)
    except (binascii.Error, ValueError):
        raise HTTPException(status_code=400, detail="archive_b64 is not valid base64.")

    importer = ProjectImporter(get_store())
    try:
        report = await asyncio.to_thread(importer.import_archive, blob, body.password)
    except TransferError as e:
        raise _http_error(e)
    return report.to_dict()


@router.get("/search")
async def search(
    q: str = Query(..., min_length=1),
    _token: str = Depends(verify_session_token),
):
    """Search project names and item titles."""
    results = [
        {"project": entry["project"], "items": [_item_dict(item) for item in entry["items"]]}
        for entry in search_items(get_store(), q)
    ]
    return {"results": results, "total": sum(len(r["items"]) for r in results)}


def _item_dict(item: ProjectItem) -> dict:
    env = default_environment(item)
    return {
        "kind": type(item).__name__,
        "id": item.id,
        "title": item_title(item),
        "group_name": item.group_name,
        "environment": env.value if env else None,
    }
