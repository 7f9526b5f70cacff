"""Project submission, payment intake, the review hand-off and archival."""

from __future__ import annotations

import logging
from enum import StrEnum
from typing import TYPE_CHECKING

from cutroom.errors import (
    InvalidStateError,
    NotFoundError,
    UnauthorizedError,
    returns_result,
)
from cutroom.events import NotificationKind, notify_quietly
from cutroom.models.base import utcnow
from cutroom.models.identity import MANAGER_ROLES, Role
from cutroom.models.project import (
    AssignmentStatus,
    AuditNote,
    PaymentStatus,
    Project,
    ProjectStatus,
)
from cutroom.services import lifecycle
from cutroom.services.lifecycle import ProjectEvent

if TYPE_CHECKING:
    from collections.abc import Callable

    from cutroom.database.repositories.projects import ProjectRepository
    from cutroom.events import NotificationDispatcher

logger = logging.getLogger(__name__)


class PaymentKind(StrEnum):
    INITIAL = "initial"
    FINAL = "final"


class ProjectService:
    """Project operations outside assignment and downloads.

    ``record_payment`` is called by the payment integration only after it has
    verified the gateway's signature; this service trusts its input.
    """

    def __init__(
        self,
        projects: ProjectRepository,
        notifier: NotificationDispatcher | None = None,
    ) -> None:
        self._projects = projects
        self._notifier = notifier

    @returns_result
    async def create_project(
        self,
        owner_id: str,
        name: str,
        *,
        total_cost: float = 0.0,
        description: str | None = None,
        client_id: str | None = None,
        assigned_pm_id: str | None = None,
    ) -> Project:
        """Submit a new project. It waits for the initial payment."""
        if not name.strip():
            raise InvalidStateError("A project needs a name.")
        project = Project(
            name=name.strip(),
            owner_id=owner_id,
            client_id=client_id,
            description=description,
            total_cost=total_cost,
            assigned_pm_id=assigned_pm_id,
            members=[owner_id],
            notes=[AuditNote(event="PROJECT_CREATED", actor_id=owner_id)],
        )
        project = await self._projects.create(project)
        logger.info("Project created — project=%s owner=%s", project.id, owner_id)
        await notify_quietly(
            self._notifier,
            project.id,
            NotificationKind.PROJECT_CREATED,
            recipient_id=assigned_pm_id,
        )
        return project

    async def get_project(self, project_id: str) -> Project | None:
        return await self._projects.get(project_id, project_id)

    async def list_projects(self, user_id: str) -> list[Project]:
        return await self._projects.list_for_member(user_id)

    @returns_result
    async def record_payment(
        self,
        project_id: str,
        amount: float,
        kind: PaymentKind,
        *,
        reference: str | None = None,
    ) -> Project:
        """Apply a verified payment to the project."""
        if amount <= 0:
            raise InvalidStateError("Payment amount must be positive.")

        def change(project: Project) -> None:
            if project.payment_status == PaymentStatus.FULL_PAID:
                raise InvalidStateError("This project is already fully paid.")
            project.amount_paid += amount
            if kind == PaymentKind.INITIAL:
                project.payment_status = PaymentStatus.PENDING_PAYMENT
                if project.status == ProjectStatus.PENDING_PAYMENT:
                    lifecycle.apply(project, ProjectEvent.INITIAL_PAYMENT_RECEIVED)
            else:
                lifecycle.apply(project, ProjectEvent.FINAL_PAYMENT_RECEIVED)
                project.payment_status = PaymentStatus.FULL_PAID
            project.notes.append(
                AuditNote(
                    event=f"PAYMENT_{kind.upper()}",
                    actor_id="payment-gateway",
                    details=f"{amount:.2f} received" + (f" ({reference})" if reference else ""),
                )
            )

        project = await self._projects.mutate(project_id, project_id, change)
        if project is None:
            raise NotFoundError("Project not found.")
        logger.info(
            "Payment recorded — project=%s kind=%s amount=%.2f status=%s",
            project_id,
            kind,
            amount,
            project.status,
        )
        await notify_quietly(
            self._notifier,
            project_id,
            NotificationKind.STATUS_CHANGED,
            details={"status": project.status, "payment_status": project.payment_status},
        )
        return project

    @returns_result
    async def submit_for_review(self, project_id: str, caller_id: str) -> Project:
        """The assigned editor hands the current cut to the client."""

        def authorize(project: Project) -> None:
            if (
                project.assigned_editor_id != caller_id
                or project.assignment_status != AssignmentStatus.ACCEPTED
            ):
                raise UnauthorizedError("Only the editor working on this project can do that.")

        return await self._review_step(
            project_id, caller_id, Role.EDITOR, ProjectEvent.REVIEW_REQUESTED, authorize
        )

    @returns_result
    async def approve(self, project_id: str, caller_id: str) -> Project:
        """The client accepts the cut under review."""
        return await self._review_step(
            project_id, caller_id, Role.CLIENT, ProjectEvent.APPROVED, self._owner_only(caller_id)
        )

    @returns_result
    async def request_changes(self, project_id: str, caller_id: str) -> Project:
        """The client sends the cut back to the editor."""
        return await self._review_step(
            project_id,
            caller_id,
            Role.CLIENT,
            ProjectEvent.CHANGES_REQUESTED,
            self._owner_only(caller_id),
        )

    @returns_result
    async def archive_project(self, project_id: str, caller_id: str, caller_role: Role) -> Project:
        """Retire a completed project. Admin/PM only."""
        if caller_role not in MANAGER_ROLES:
            raise UnauthorizedError("Only admins or project managers can archive projects.")
        return await self._review_step(
            project_id, caller_id, caller_role, ProjectEvent.ARCHIVED, lambda _: None
        )

    @staticmethod
    def _owner_only(caller_id: str) -> Callable[[Project], None]:
        def authorize(project: Project) -> None:
            if caller_id not in (project.owner_id, project.client_id):
                raise UnauthorizedError("Only the project's client can do that.")

        return authorize

    async def _review_step(
        self,
        project_id: str,
        caller_id: str,
        caller_role: Role,
        event: ProjectEvent,
        authorize: Callable[[Project], None],
    ) -> Project:
        now = utcnow()

        def change(project: Project) -> None:
            authorize(project)
            lifecycle.apply(project, event)
            project.notes.append(
                AuditNote(event=event.upper(), actor_id=caller_id, actor_role=caller_role, at=now)
            )

        project = await self._projects.mutate(project_id, project_id, change)
        if project is None:
            raise NotFoundError("Project not found.")
        logger.info(
            "Project status changed — project=%s event=%s status=%s by=%s",
            project_id,
            event,
            project.status,
            caller_id,
        )
        await notify_quietly(
            self._notifier,
            project_id,
            NotificationKind.STATUS_CHANGED,
            details={"status": project.status, "event": event},
        )
        return project
