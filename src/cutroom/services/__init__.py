"""Coordinators that enforce the project lifecycle and revision access rules."""

from cutroom.services.assignments import AssignmentCoordinator
from cutroom.services.comments import CommentThreadEngine
from cutroom.services.downloads import DownloadGate, DownloadGrant
from cutroom.services.ledger import RevisionLedger
from cutroom.services.projects import PaymentKind, ProjectService

__all__ = [
    "AssignmentCoordinator",
    "CommentThreadEngine",
    "DownloadGate",
    "DownloadGrant",
    "PaymentKind",
    "ProjectService",
    "RevisionLedger",
]
