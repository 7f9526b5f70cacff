"""Revision routes — upload registration, listing and gated downloads."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel

from cutroom.auth.middleware import current_identity, require_authenticated_user
from cutroom.models.identity import INTERNAL_ROLES, AuthenticatedIdentity
from cutroom.models.revision import Revision
from cutroom.routes.results import unwrap
from cutroom.services.downloads import DownloadGrant

router = APIRouter(prefix="/projects/{project_id}/revisions", tags=["revisions"])

logger = logging.getLogger(__name__)

CurrentUser = Annotated[AuthenticatedIdentity, Depends(require_authenticated_user)]


class AddRevisionRequest(BaseModel):
    video_url: str
    description: str = ""


async def _require_viewer(request: Request, project_id: str, user: AuthenticatedIdentity) -> None:
    if user.role in INTERNAL_ROLES:
        return
    project = await request.app.state.project_service.get_project(project_id)
    if project is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found")
    if not project.is_member(user.uid):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not a project member")


@router.post("", status_code=status.HTTP_201_CREATED)
async def add_revision(
    request: Request, project_id: str, body: AddRevisionRequest, user: CurrentUser
) -> Revision:
    """Register an uploaded cut as the project's next version."""
    if user.role not in INTERNAL_ROLES:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Only the production team uploads cuts"
        )
    ledger = request.app.state.ledger
    return unwrap(
        await ledger.add_revision(project_id, body.video_url, user.uid, body.description)
    )


@router.get("")
async def list_revisions(request: Request, project_id: str, user: CurrentUser) -> list[Revision]:
    """All revisions, newest first."""
    await _require_viewer(request, project_id, user)
    return await request.app.state.ledger.list_revisions(project_id)


@router.get("/latest")
async def latest_revision(request: Request, project_id: str, user: CurrentUser) -> Revision:
    await _require_viewer(request, project_id, user)
    revision = await request.app.state.ledger.get_latest(project_id)
    if revision is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No revisions yet")
    return revision


@router.get("/{revision_id}")
async def get_revision(request: Request, project_id: str, revision_id: str) -> Revision:
    """A single revision. Open to guests holding a review link."""
    if current_identity(request) is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Identify yourself")
    revision = await request.app.state.ledger.get_revision(project_id, revision_id)
    if revision is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Revision not found")
    return revision


@router.post("/{revision_id}/downloads")
async def register_download(request: Request, project_id: str, revision_id: str) -> DownloadGrant:
    """Count a download and return a short-lived URL for the file."""
    identity = current_identity(request)
    if identity is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required"
        )
    gate = request.app.state.downloads
    grant = unwrap(await gate.register_download(project_id, revision_id, identity))
    logger.debug("Download URL issued — revision=%s user=%s", revision_id, identity.user_id)
    return grant
