"""Typed contracts for project notifications."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field


class NotificationKind(StrEnum):
    PROJECT_CREATED = "PROJECT_CREATED"
    EDITOR_ASSIGNED = "EDITOR_ASSIGNED"
    EDITOR_ACCEPTED = "EDITOR_ACCEPTED"
    EDITOR_REJECTED = "EDITOR_REJECTED"
    ASSIGNMENT_EXPIRED = "ASSIGNMENT_EXPIRED"
    ASSIGNMENT_SUPERSEDED = "ASSIGNMENT_SUPERSEDED"
    REVISION_UPLOADED = "REVISION_UPLOADED"
    COMMENT_ADDED = "COMMENT_ADDED"
    COMMENT_REPLIED = "COMMENT_REPLIED"
    DOWNLOAD_UNLOCK_REQUESTED = "DOWNLOAD_UNLOCK_REQUESTED"
    STATUS_CHANGED = "STATUS_CHANGED"
    COMPLETED = "completed"


class ProjectNotification(BaseModel):
    """A fire-and-forget signal that something happened on a project."""

    project_id: str
    kind: str
    recipient_id: str | None = None
    details: dict[str, Any] = Field(default_factory=dict)


class EventEnvelope(BaseModel):
    """Canonical event envelope used on Service Bus."""

    event: str
    data: dict[str, Any] | str
