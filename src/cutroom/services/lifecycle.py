"""The single table of legal project status transitions.

Coordinators never assign ``Project.status`` directly; they name the event that
happened and let :func:`transition` decide the resulting status.
"""

from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING

from cutroom.errors import InvalidStateError
from cutroom.models.project import ProjectStatus

if TYPE_CHECKING:
    from cutroom.models.project import Project


class ProjectEvent(StrEnum):
    INITIAL_PAYMENT_RECEIVED = "initial_payment_received"
    EDITOR_ASSIGNED = "editor_assigned"
    ASSIGNMENT_ACCEPTED = "assignment_accepted"
    ASSIGNMENT_REJECTED = "assignment_rejected"
    ASSIGNMENT_EXPIRED = "assignment_expired"
    REVIEW_REQUESTED = "review_requested"
    CHANGES_REQUESTED = "changes_requested"
    APPROVED = "approved"
    FINAL_PAYMENT_RECEIVED = "final_payment_received"
    DOWNLOADS_UNLOCKED = "downloads_unlocked"
    ARCHIVED = "archived"


_OPEN = frozenset(ProjectStatus) - {ProjectStatus.ARCHIVED}
_ASSIGNABLE = frozenset(
    {
        ProjectStatus.PENDING_PAYMENT,
        ProjectStatus.PENDING_ASSIGNMENT,
        ProjectStatus.ACTIVE,
        ProjectStatus.IN_REVIEW,
    }
)

TRANSITIONS: dict[ProjectEvent, tuple[frozenset[ProjectStatus], ProjectStatus]] = {
    ProjectEvent.INITIAL_PAYMENT_RECEIVED: (
        frozenset({ProjectStatus.PENDING_PAYMENT}),
        ProjectStatus.PENDING_ASSIGNMENT,
    ),
    ProjectEvent.EDITOR_ASSIGNED: (_ASSIGNABLE, ProjectStatus.PENDING_ASSIGNMENT),
    ProjectEvent.ASSIGNMENT_ACCEPTED: (
        frozenset({ProjectStatus.PENDING_ASSIGNMENT}),
        ProjectStatus.ACTIVE,
    ),
    ProjectEvent.ASSIGNMENT_REJECTED: (
        frozenset({ProjectStatus.PENDING_ASSIGNMENT}),
        ProjectStatus.PENDING_ASSIGNMENT,
    ),
    ProjectEvent.ASSIGNMENT_EXPIRED: (
        frozenset({ProjectStatus.PENDING_ASSIGNMENT}),
        ProjectStatus.PENDING_ASSIGNMENT,
    ),
    ProjectEvent.REVIEW_REQUESTED: (
        frozenset({ProjectStatus.ACTIVE}),
        ProjectStatus.IN_REVIEW,
    ),
    ProjectEvent.CHANGES_REQUESTED: (
        frozenset({ProjectStatus.IN_REVIEW}),
        ProjectStatus.ACTIVE,
    ),
    ProjectEvent.APPROVED: (
        frozenset({ProjectStatus.IN_REVIEW}),
        ProjectStatus.APPROVED,
    ),
    ProjectEvent.FINAL_PAYMENT_RECEIVED: (_OPEN, ProjectStatus.COMPLETED),
    ProjectEvent.DOWNLOADS_UNLOCKED: (_OPEN, ProjectStatus.COMPLETED),
    ProjectEvent.ARCHIVED: (
        frozenset({ProjectStatus.COMPLETED}),
        ProjectStatus.ARCHIVED,
    ),
}


def transition(current: ProjectStatus, event: ProjectEvent) -> ProjectStatus:
    """Return the status reached by applying ``event`` in ``current``.

    Raises ``InvalidStateError`` when the pair is not in the table.
    """
    sources, target = TRANSITIONS[event]
    if current not in sources:
        raise InvalidStateError(
            f"Cannot apply '{event}' to a project that is {current.replace('_', ' ')}."
        )
    return target


def apply(project: Project, event: ProjectEvent) -> ProjectStatus:
    """Move ``project`` to the status reached by ``event`` and return it."""
    project.status = transition(project.status, event)
    return project.status
