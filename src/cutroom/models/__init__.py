"""Data models for Cosmos DB document types."""

from cutroom.models.comment import Comment, CommentStatus, Reply
from cutroom.models.identity import (
    AuthenticatedIdentity,
    GuestIdentity,
    Identity,
    Role,
    capture_guest_identity,
)
from cutroom.models.project import (
    AssignmentStatus,
    AuditNote,
    PaymentStatus,
    Project,
    ProjectStatus,
)
from cutroom.models.revision import Revision, RevisionStatus

__all__ = [
    "AssignmentStatus",
    "AuditNote",
    "AuthenticatedIdentity",
    "Comment",
    "CommentStatus",
    "GuestIdentity",
    "Identity",
    "PaymentStatus",
    "Project",
    "ProjectStatus",
    "Reply",
    "Revision",
    "RevisionStatus",
    "Role",
    "capture_guest_identity",
]
