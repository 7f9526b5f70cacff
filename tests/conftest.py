"""Shared fixtures: an in-memory database, repositories over it, and seeded documents."""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock

import pytest

from cutroom.database.repositories import (
    CommentRepository,
    ProjectRepository,
    RevisionRepository,
)
from cutroom.models.identity import AuthenticatedIdentity, Role
from cutroom.models.project import PaymentStatus, Project, ProjectStatus
from cutroom.models.revision import Revision
from tests.fakes import FakeDatabase


@pytest.fixture
def database() -> FakeDatabase:
    return FakeDatabase()


@pytest.fixture
def projects(database: FakeDatabase) -> ProjectRepository:
    return ProjectRepository(database)


@pytest.fixture
def revisions(database: FakeDatabase) -> RevisionRepository:
    return RevisionRepository(database)


@pytest.fixture
def comments(database: FakeDatabase) -> CommentRepository:
    return CommentRepository(database)


@pytest.fixture
def notifier() -> AsyncMock:
    """A dispatcher double; inspect ``notifier.notify`` for signals sent."""
    return AsyncMock()


@pytest.fixture
def make_project(projects: ProjectRepository):
    """Store a project owned by ``client-1`` with any field overridden."""

    async def factory(**overrides: Any) -> Project:
        fields: dict[str, Any] = {
            "id": "proj-1",
            "name": "Summer Launch",
            "owner_id": "client-1",
            "members": ["client-1"],
            "status": ProjectStatus.PENDING_ASSIGNMENT,
            "payment_status": PaymentStatus.PENDING_PAYMENT,
            "assigned_pm_id": "pm-1",
            "total_cost": 500.0,
        }
        fields.update(overrides)
        return await projects.create(Project(**fields))

    return factory


@pytest.fixture
def make_revision(revisions: RevisionRepository):
    """Store a revision of ``proj-1`` with any field overridden."""

    async def factory(**overrides: Any) -> Revision:
        fields: dict[str, Any] = {
            "id": "proj-1-v1",
            "project_id": "proj-1",
            "version": 1,
            "video_url": "https://acct.blob.core.windows.net/videos/cut1.mov",
            "uploaded_by": "editor-1",
            "description": "First cut",
        }
        fields.update(overrides)
        return await revisions.create(Revision(**fields))

    return factory


@pytest.fixture
def client_user() -> AuthenticatedIdentity:
    return AuthenticatedIdentity(uid="client-1", role=Role.CLIENT, display_name="Casey")


@pytest.fixture
def editor_user() -> AuthenticatedIdentity:
    return AuthenticatedIdentity(uid="editor-1", role=Role.EDITOR, display_name="Eddie")
