"""Project routes — submission, payments, editor assignment, review and download unlock."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel, Field

from cutroom.auth.middleware import require_authenticated_user
from cutroom.models.identity import INTERNAL_ROLES, MANAGER_ROLES, AuthenticatedIdentity
from cutroom.models.project import AssignmentStatus, Project
from cutroom.routes.results import unwrap
from cutroom.services.assignments import effective_assignment_status
from cutroom.services.projects import PaymentKind

router = APIRouter(prefix="/projects", tags=["projects"])

logger = logging.getLogger(__name__)

CurrentUser = Annotated[AuthenticatedIdentity, Depends(require_authenticated_user)]


class CreateProjectRequest(BaseModel):
    name: str
    total_cost: float = Field(0.0, ge=0)
    description: str | None = None
    client_id: str | None = None
    assigned_pm_id: str | None = None


class PaymentRequest(BaseModel):
    amount: float
    kind: PaymentKind
    reference: str | None = None


class AssignRequest(BaseModel):
    editor_id: str
    editor_price: float | None = None


class EditorPriceRequest(BaseModel):
    price: float


class AssignmentResponseRequest(BaseModel):
    decision: AssignmentStatus
    reason: str | None = None


class ProjectView(BaseModel):
    project: Project
    assignment_status: AssignmentStatus | None


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_project(
    request: Request, body: CreateProjectRequest, user: CurrentUser
) -> Project:
    """Submit a new project owned by the caller."""
    service = request.app.state.project_service
    return unwrap(
        await service.create_project(
            user.uid,
            body.name,
            total_cost=body.total_cost,
            description=body.description,
            client_id=body.client_id,
            assigned_pm_id=body.assigned_pm_id,
        )
    )


@router.get("")
async def list_projects(request: Request, user: CurrentUser) -> list[Project]:
    """Projects the caller belongs to."""
    return await request.app.state.project_service.list_projects(user.uid)


@router.get("/{project_id}")
async def get_project(request: Request, project_id: str, user: CurrentUser) -> ProjectView:
    """A project with its assignment status as of now (lapsed offers read as rejected)."""
    project = await request.app.state.project_service.get_project(project_id)
    if project is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found")
    if user.role not in INTERNAL_ROLES and not project.is_member(user.uid):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not a project member")
    clock = request.app.state.clock
    return ProjectView(
        project=project, assignment_status=effective_assignment_status(project, clock())
    )


@router.post("/{project_id}/payments")
async def record_payment(
    request: Request, project_id: str, body: PaymentRequest, user: CurrentUser
) -> Project:
    """Record a payment confirmed by the payment gateway. Admin/PM only."""
    if user.role not in MANAGER_ROLES:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not permitted")
    service = request.app.state.project_service
    project = unwrap(
        await service.record_payment(
            project_id, body.amount, body.kind, reference=body.reference
        )
    )
    logger.info("Payment posted — project=%s by=%s", project_id, user.uid)
    return project


@router.post("/{project_id}/assignment")
async def assign_editor(
    request: Request, project_id: str, body: AssignRequest, user: CurrentUser
) -> Project:
    """Offer the project to an editor."""
    coordinator = request.app.state.assignments
    return unwrap(
        await coordinator.assign(
            project_id,
            body.editor_id,
            user.role,
            caller_id=user.uid,
            editor_price=body.editor_price,
        )
    )


@router.post("/{project_id}/editor-price")
async def set_editor_price(
    request: Request, project_id: str, body: EditorPriceRequest, user: CurrentUser
) -> Project:
    """Set the assigned editor's revenue share."""
    coordinator = request.app.state.assignments
    return unwrap(
        await coordinator.set_editor_price(project_id, body.price, user.uid, user.role)
    )


@router.post("/{project_id}/assignment/response")
async def respond_to_assignment(
    request: Request, project_id: str, body: AssignmentResponseRequest, user: CurrentUser
) -> Project:
    """The assigned editor accepts or rejects the offer."""
    coordinator = request.app.state.assignments
    return unwrap(await coordinator.respond(project_id, user.uid, body.decision, body.reason))


@router.post("/{project_id}/review")
async def submit_for_review(request: Request, project_id: str, user: CurrentUser) -> Project:
    return unwrap(await request.app.state.project_service.submit_for_review(project_id, user.uid))


@router.post("/{project_id}/approval")
async def approve(request: Request, project_id: str, user: CurrentUser) -> Project:
    return unwrap(await request.app.state.project_service.approve(project_id, user.uid))


@router.post("/{project_id}/changes")
async def request_changes(request: Request, project_id: str, user: CurrentUser) -> Project:
    return unwrap(await request.app.state.project_service.request_changes(project_id, user.uid))


@router.post("/{project_id}/archive")
async def archive_project(request: Request, project_id: str, user: CurrentUser) -> Project:
    service = request.app.state.project_service
    return unwrap(await service.archive_project(project_id, user.uid, user.role))


@router.post("/{project_id}/downloads/unlock-request")
async def request_download_unlock(
    request: Request, project_id: str, user: CurrentUser
) -> Project:
    """Ask the project manager to unlock downloads before full payment."""
    gate = request.app.state.downloads
    return unwrap(await gate.request_download_unlock(project_id, user.uid))


@router.post("/{project_id}/downloads/unlock")
async def unlock_downloads(request: Request, project_id: str, user: CurrentUser) -> Project:
    """Mark the project paid and unlock client downloads. Admin/PM only."""
    gate = request.app.state.downloads
    return unwrap(await gate.unlock_project_downloads(project_id, user.uid, user.role))
