"""Tests for AssignmentCoordinator."""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, call

import pytest

from cutroom.database.repositories import ProjectRepository
from cutroom.errors import ErrorCode
from cutroom.events import NotificationKind
from cutroom.models.identity import Role
from cutroom.models.project import AssignmentStatus, ProjectStatus
from cutroom.services.assignments import (
    EXPIRED_REASON,
    AssignmentCoordinator,
    effective_assignment_status,
)

_NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


class _Clock:
    def __init__(self) -> None:
        self.now = _NOW

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock() -> _Clock:
    return _Clock()


@pytest.fixture
def coordinator(
    projects: ProjectRepository, notifier: AsyncMock, clock: _Clock
) -> AssignmentCoordinator:
    return AssignmentCoordinator(projects, notifier, clock=clock)


class TestAssign:
    """Test the Assign operation."""

    async def test_assign_opens_pending_offer(
        self, coordinator: AssignmentCoordinator, make_project, projects: ProjectRepository
    ) -> None:
        """Verify assign writes the offer fields and adds the editor as a member."""
        await make_project()

        result = await coordinator.assign("proj-1", "e7", Role.PROJECT_MANAGER, caller_id="pm-1")

        assert result.ok
        stored = await projects.get("proj-1", "proj-1")
        assert stored.assigned_editor_id == "e7"
        assert stored.assignment_status == AssignmentStatus.PENDING
        assert stored.status == ProjectStatus.PENDING_ASSIGNMENT
        assert stored.assignment_at == _NOW
        assert stored.assignment_expires_at == _NOW + timedelta(minutes=10)
        assert "e7" in stored.members
        assert stored.notes[-1].event == "EDITOR_ASSIGNED"

    async def test_assign_then_accept_activates_project(
        self, coordinator: AssignmentCoordinator, make_project
    ) -> None:
        """Verify the assign-accept path ends with an active project."""
        await make_project()

        await coordinator.assign("proj-1", "e7", Role.ADMIN)
        result = await coordinator.respond("proj-1", "e7", AssignmentStatus.ACCEPTED)

        assert result.ok
        project = result.value
        assert project.assigned_editor_id == "e7"
        assert project.assignment_status == AssignmentStatus.ACCEPTED
        assert project.status == ProjectStatus.ACTIVE

    async def test_non_manager_cannot_assign(
        self, coordinator: AssignmentCoordinator, make_project, projects: ProjectRepository
    ) -> None:
        """Verify clients and editors are refused without touching the project."""
        await make_project()

        for role in (Role.CLIENT, Role.EDITOR, Role.GUEST):
            result = await coordinator.assign("proj-1", "e7", role)
            assert result.error == ErrorCode.UNAUTHORIZED

        stored = await projects.get("proj-1", "proj-1")
        assert stored.assigned_editor_id is None
        assert stored.version == 0

    async def test_assign_missing_project(self, coordinator: AssignmentCoordinator) -> None:
        """Verify assign reports not_found for an unknown project."""
        result = await coordinator.assign("nope", "e7", Role.ADMIN)

        assert result.error == ErrorCode.NOT_FOUND

    async def test_assign_refused_after_approval(
        self, coordinator: AssignmentCoordinator, make_project
    ) -> None:
        """Verify an approved project cannot be handed to a new editor."""
        await make_project(status=ProjectStatus.APPROVED)

        result = await coordinator.assign("proj-1", "e7", Role.ADMIN)

        assert result.error == ErrorCode.INVALID_STATE

    async def test_reassign_supersedes_previous_editor(
        self,
        coordinator: AssignmentCoordinator,
        make_project,
        projects: ProjectRepository,
        notifier: AsyncMock,
    ) -> None:
        """Verify a new offer revokes the old editor's membership and signals them."""
        await make_project()
        await coordinator.assign("proj-1", "e1", Role.ADMIN)

        result = await coordinator.assign("proj-1", "e2", Role.ADMIN)

        assert result.ok
        stored = await projects.get("proj-1", "proj-1")
        assert stored.assigned_editor_id == "e2"
        assert "e1" not in stored.members
        assert "e2" in stored.members
        assert "client-1" in stored.members
        notifier.notify.assert_any_call(
            "proj-1",
            NotificationKind.ASSIGNMENT_SUPERSEDED,
            recipient_id="e1",
            details=None,
        )

    async def test_reassign_same_editor_keeps_membership(
        self, coordinator: AssignmentCoordinator, make_project, projects: ProjectRepository
    ) -> None:
        """Verify re-offering to the same editor renews the window without revoking access."""
        await make_project()
        await coordinator.assign("proj-1", "e1", Role.ADMIN)

        await coordinator.assign("proj-1", "e1", Role.ADMIN)

        stored = await projects.get("proj-1", "proj-1")
        assert stored.members.count("e1") == 1

    async def test_superseded_editor_cannot_respond(
        self, coordinator: AssignmentCoordinator, make_project
    ) -> None:
        """Verify the replaced editor's late acceptance is refused."""
        await make_project()
        await coordinator.assign("proj-1", "e1", Role.ADMIN)
        await coordinator.assign("proj-1", "e2", Role.ADMIN)

        result = await coordinator.respond("proj-1", "e1", AssignmentStatus.ACCEPTED)

        assert result.error == ErrorCode.UNAUTHORIZED


    async def test_assign_records_editor_price(
        self, coordinator: AssignmentCoordinator, make_project, projects: ProjectRepository
    ) -> None:
        """Verify the editor's revenue share is stored with the offer."""
        await make_project()

        await coordinator.assign(
            "proj-1", "e7", Role.PROJECT_MANAGER, caller_id="pm-1", editor_price=250.0
        )

        stored = await projects.get("proj-1", "proj-1")
        assert stored.editor_price == 250.0
        assert "250" in stored.notes[-1].details

    async def test_assign_refuses_negative_price(
        self, coordinator: AssignmentCoordinator, make_project, projects: ProjectRepository
    ) -> None:
        await make_project()

        result = await coordinator.assign("proj-1", "e7", Role.ADMIN, editor_price=-1.0)

        assert result.error == ErrorCode.INVALID_STATE
        stored = await projects.get("proj-1", "proj-1")
        assert stored.assigned_editor_id is None


class TestRespond:
    """Test the Respond operation."""

    async def test_reject_keeps_editor_and_status(
        self, coordinator: AssignmentCoordinator, make_project, notifier: AsyncMock
    ) -> None:
        """Verify rejection leaves the editor recorded and the project assignable."""
        await make_project()
        await coordinator.assign("proj-1", "e1", Role.ADMIN)

        result = await coordinator.respond(
            "proj-1", "e1", AssignmentStatus.REJECTED, "Fully booked"
        )

        assert result.ok
        project = result.value
        assert project.assigned_editor_id == "e1"
        assert project.assignment_status == AssignmentStatus.REJECTED
        assert project.status == ProjectStatus.PENDING_ASSIGNMENT
        assert project.editor_decline_reason == "Fully booked"
        notifier.notify.assert_any_call(
            "proj-1",
            NotificationKind.EDITOR_REJECTED,
            recipient_id=None,
            details={"reason": "Fully booked"},
        )

    async def test_respond_twice_is_invalid(
        self, coordinator: AssignmentCoordinator, make_project
    ) -> None:
        """Verify an answered offer cannot be answered again."""
        await make_project()
        await coordinator.assign("proj-1", "e1", Role.ADMIN)
        await coordinator.respond("proj-1", "e1", AssignmentStatus.ACCEPTED)

        result = await coordinator.respond("proj-1", "e1", AssignmentStatus.REJECTED)

        assert result.error == ErrorCode.INVALID_STATE

    async def test_other_user_cannot_respond(
        self, coordinator: AssignmentCoordinator, make_project
    ) -> None:
        """Verify only the assigned editor can answer."""
        await make_project()
        await coordinator.assign("proj-1", "e1", Role.ADMIN)

        result = await coordinator.respond("proj-1", "client-1", AssignmentStatus.ACCEPTED)

        assert result.error == ErrorCode.UNAUTHORIZED

    async def test_pending_is_not_a_valid_decision(
        self, coordinator: AssignmentCoordinator, make_project
    ) -> None:
        """Verify the decision must be accepted or rejected."""
        await make_project()
        await coordinator.assign("proj-1", "e1", Role.ADMIN)

        result = await coordinator.respond("proj-1", "e1", AssignmentStatus.PENDING)

        assert result.error == ErrorCode.INVALID_STATE

    async def test_late_response_records_expiry(
        self,
        coordinator: AssignmentCoordinator,
        make_project,
        projects: ProjectRepository,
        clock: _Clock,
        notifier: AsyncMock,
    ) -> None:
        """Verify accepting after the window is refused and marks the offer expired."""
        await make_project()
        await coordinator.assign("proj-1", "e1", Role.ADMIN)
        clock.now = _NOW + timedelta(minutes=10, seconds=1)

        result = await coordinator.respond("proj-1", "e1", AssignmentStatus.ACCEPTED)

        assert result.error == ErrorCode.INVALID_STATE
        assert "expired" in result.reason
        stored = await projects.get("proj-1", "proj-1")
        assert stored.assignment_status == AssignmentStatus.REJECTED
        assert stored.editor_decline_reason == EXPIRED_REASON
        assert stored.status == ProjectStatus.PENDING_ASSIGNMENT
        assert (
            call(
                "proj-1",
                NotificationKind.ASSIGNMENT_EXPIRED,
                recipient_id="e1",
                details=None,
            )
            in notifier.notify.call_args_list
        )

    async def test_response_inside_window_succeeds(
        self, coordinator: AssignmentCoordinator, make_project, clock: _Clock
    ) -> None:
        """Verify an answer just before the deadline is accepted."""
        await make_project()
        await coordinator.assign("proj-1", "e1", Role.ADMIN)
        clock.now = _NOW + timedelta(minutes=9, seconds=59)

        result = await coordinator.respond("proj-1", "e1", AssignmentStatus.ACCEPTED)

        assert result.ok

    async def test_notification_failure_does_not_fail_response(
        self, projects: ProjectRepository, make_project, clock: _Clock
    ) -> None:
        """Verify a broken dispatcher never rolls back the transition."""
        broken = AsyncMock()
        broken.notify.side_effect = RuntimeError("bus down")
        coordinator = AssignmentCoordinator(projects, broken, clock=clock)
        await make_project()

        await coordinator.assign("proj-1", "e1", Role.ADMIN)
        result = await coordinator.respond("proj-1", "e1", AssignmentStatus.ACCEPTED)

        assert result.ok
        assert result.value.status == ProjectStatus.ACTIVE


class TestSetEditorPrice:
    """Test the Set Editor Price operation."""

    async def test_manager_sets_price_with_audit_note(
        self, coordinator: AssignmentCoordinator, make_project, projects: ProjectRepository
    ) -> None:
        """Verify the share is updated and the change is logged."""
        await make_project(editor_price=200.0)

        result = await coordinator.set_editor_price("proj-1", 320.0, "pm-1", Role.PROJECT_MANAGER)

        assert result.ok
        stored = await projects.get("proj-1", "proj-1")
        assert stored.editor_price == 320.0
        note = stored.notes[-1]
        assert note.event == "REVENUE_SHARE_SET"
        assert note.actor_id == "pm-1"
        assert note.details == "Editor revenue share set to 320"

    async def test_non_manager_cannot_set_price(
        self, coordinator: AssignmentCoordinator, make_project, projects: ProjectRepository
    ) -> None:
        await make_project()

        for role in (Role.CLIENT, Role.EDITOR, Role.GUEST):
            result = await coordinator.set_editor_price("proj-1", 100.0, "u1", role)
            assert result.error == ErrorCode.UNAUTHORIZED

        stored = await projects.get("proj-1", "proj-1")
        assert stored.editor_price is None
        assert stored.version == 0

    async def test_negative_price_is_refused(
        self, coordinator: AssignmentCoordinator, make_project
    ) -> None:
        await make_project()

        result = await coordinator.set_editor_price("proj-1", -5.0, "pm-1", Role.ADMIN)

        assert result.error == ErrorCode.INVALID_STATE

    async def test_missing_project(self, coordinator: AssignmentCoordinator) -> None:
        result = await coordinator.set_editor_price("nope", 100.0, "pm-1", Role.ADMIN)

        assert result.error == ErrorCode.NOT_FOUND


class TestEffectiveAssignmentStatus:
    """Test the effective_assignment_status helper."""

    async def test_lapsed_offer_reads_as_rejected(
        self, coordinator: AssignmentCoordinator, make_project
    ) -> None:
        """Verify an unanswered offer past its window is reported as rejected."""
        await make_project()
        project = (await coordinator.assign("proj-1", "e1", Role.ADMIN)).value

        assert effective_assignment_status(project, _NOW) == AssignmentStatus.PENDING
        assert (
            effective_assignment_status(project, _NOW + timedelta(minutes=11))
            == AssignmentStatus.REJECTED
        )
