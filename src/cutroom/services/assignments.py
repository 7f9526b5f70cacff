"""Editor assignment — offering a project to an editor and recording the answer."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
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
from cutroom.models.project import AssignmentStatus, AuditNote, Project
from cutroom.services import lifecycle
from cutroom.services.lifecycle import ProjectEvent

if TYPE_CHECKING:
    from collections.abc import Callable

    from cutroom.database.repositories.projects import ProjectRepository
    from cutroom.events import NotificationDispatcher

logger = logging.getLogger(__name__)

ASSIGNMENT_WINDOW = timedelta(minutes=10)
EXPIRED_REASON = "expired"


def offer_expired(project: Project, now: datetime) -> bool:
    """Return True when a pending offer has outlived its validity window."""
    return (
        project.assignment_status == AssignmentStatus.PENDING
        and project.assignment_expires_at is not None
        and now >= project.assignment_expires_at
    )


def effective_assignment_status(project: Project, now: datetime) -> AssignmentStatus | None:
    """The assignment status as callers should see it at ``now``.

    A pending offer whose window has passed reads as rejected even before the
    editor's late response records it.
    """
    if offer_expired(project, now):
        return AssignmentStatus.REJECTED
    return project.assignment_status


class AssignmentCoordinator:
    """Drive the ``(status, assignment_status)`` state machine on a project.

    Re-assigning is last-writer-wins: a new offer replaces whatever offer was
    outstanding, and the superseded editor loses project membership.
    """

    def __init__(
        self,
        projects: ProjectRepository,
        notifier: NotificationDispatcher | None = None,
        *,
        window: timedelta = ASSIGNMENT_WINDOW,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._projects = projects
        self._notifier = notifier
        self._window = window
        self._clock = clock

    @returns_result
    async def assign(
        self,
        project_id: str,
        editor_id: str,
        caller_role: Role,
        *,
        caller_id: str | None = None,
        editor_price: float | None = None,
    ) -> Project:
        """Offer the project to ``editor_id``. Only admins and project managers may assign.

        ``editor_price`` records the editor's revenue share for the project.
        """
        if caller_role not in MANAGER_ROLES:
            raise UnauthorizedError("Only admins or project managers can assign editors.")
        _check_price(editor_price)

        now = self._clock()
        superseded: str | None = None

        def change(project: Project) -> None:
            nonlocal superseded
            lifecycle.apply(project, ProjectEvent.EDITOR_ASSIGNED)
            previous = project.assigned_editor_id
            superseded = previous if previous and previous != editor_id else None
            if superseded:
                project.remove_member(superseded)
            project.assigned_editor_id = editor_id
            project.assignment_status = AssignmentStatus.PENDING
            project.assignment_at = now
            project.assignment_expires_at = now + self._window
            project.editor_decline_reason = None
            project.add_member(editor_id)
            details = f"Editor {editor_id} assigned."
            if editor_price is not None:
                project.editor_price = editor_price
                details = f"Editor {editor_id} assigned with revenue share {editor_price:g}."
            project.notes.append(
                AuditNote(
                    event="EDITOR_ASSIGNED",
                    actor_id=caller_id or str(caller_role),
                    actor_role=caller_role,
                    at=now,
                    details=details,
                )
            )

        project = await self._projects.mutate(project_id, project_id, change)
        if project is None:
            raise NotFoundError("Project not found.")

        logger.info(
            "Editor assigned — project=%s editor=%s superseded=%s expires_at=%s",
            project_id,
            editor_id,
            superseded,
            project.assignment_expires_at,
        )
        await notify_quietly(
            self._notifier,
            project_id,
            NotificationKind.EDITOR_ASSIGNED,
            recipient_id=editor_id,
        )
        if superseded:
            await notify_quietly(
                self._notifier,
                project_id,
                NotificationKind.ASSIGNMENT_SUPERSEDED,
                recipient_id=superseded,
            )
        return project

    @returns_result
    async def respond(
        self,
        project_id: str,
        caller_id: str,
        decision: AssignmentStatus,
        reason: str | None = None,
    ) -> Project:
        """Record the assigned editor's acceptance or rejection of a pending offer.

        A response that arrives after the offer window records the offer as
        rejected with reason ``expired`` and is itself refused.
        """
        if decision not in (AssignmentStatus.ACCEPTED, AssignmentStatus.REJECTED):
            raise InvalidStateError("Respond with 'accepted' or 'rejected'.")

        now = self._clock()
        expired = False

        def change(project: Project) -> None:
            nonlocal expired
            expired = False
            if project.assigned_editor_id != caller_id:
                raise UnauthorizedError("Only the assigned editor can respond to this offer.")
            if project.assignment_status != AssignmentStatus.PENDING:
                raise InvalidStateError(
                    f"This assignment was already {project.assignment_status}."
                )
            if offer_expired(project, now):
                expired = True
                lifecycle.apply(project, ProjectEvent.ASSIGNMENT_EXPIRED)
                project.assignment_status = AssignmentStatus.REJECTED
                project.editor_decline_reason = EXPIRED_REASON
                project.notes.append(
                    AuditNote(
                        event="ASSIGNMENT_EXPIRED",
                        actor_id=caller_id,
                        actor_role=Role.EDITOR,
                        at=now,
                    )
                )
                return

            if decision == AssignmentStatus.ACCEPTED:
                lifecycle.apply(project, ProjectEvent.ASSIGNMENT_ACCEPTED)
            else:
                lifecycle.apply(project, ProjectEvent.ASSIGNMENT_REJECTED)
                project.editor_decline_reason = reason
            project.assignment_status = decision
            project.notes.append(
                AuditNote(
                    event=f"ASSIGNMENT_{decision.upper()}",
                    actor_id=caller_id,
                    actor_role=Role.EDITOR,
                    at=now,
                    details=reason,
                )
            )

        project = await self._projects.mutate(project_id, project_id, change)
        if project is None:
            raise NotFoundError("Project not found.")

        if expired:
            logger.info("Assignment expired — project=%s editor=%s", project_id, caller_id)
            await notify_quietly(
                self._notifier,
                project_id,
                NotificationKind.ASSIGNMENT_EXPIRED,
                recipient_id=caller_id,
            )
            raise InvalidStateError("This assignment offer has expired.")

        logger.info(
            "Assignment answered — project=%s editor=%s decision=%s",
            project_id,
            caller_id,
            decision,
        )
        kind = (
            NotificationKind.EDITOR_ACCEPTED
            if decision == AssignmentStatus.ACCEPTED
            else NotificationKind.EDITOR_REJECTED
        )
        await notify_quietly(
            self._notifier,
            project_id,
            kind,
            details={"reason": reason} if reason else None,
        )
        return project

    @returns_result
    async def set_editor_price(
        self, project_id: str, price: float, caller_id: str, caller_role: Role
    ) -> Project:
        """Set the editor's revenue share on a project. Admin/PM only."""
        if caller_role not in MANAGER_ROLES:
            raise UnauthorizedError("Only admins or project managers can set the editor's share.")
        _check_price(price)
        now = self._clock()

        def change(project: Project) -> None:
            project.editor_price = price
            project.notes.append(
                AuditNote(
                    event="REVENUE_SHARE_SET",
                    actor_id=caller_id,
                    actor_role=caller_role,
                    at=now,
                    details=f"Editor revenue share set to {price:g}",
                )
            )

        project = await self._projects.mutate(project_id, project_id, change)
        if project is None:
            raise NotFoundError("Project not found.")

        logger.info(
            "Editor revenue share set — project=%s price=%s by=%s", project_id, price, caller_id
        )
        return project


def _check_price(price: float | None) -> None:
    if price is not None and price < 0:
        raise InvalidStateError("The editor's share cannot be negative.")
