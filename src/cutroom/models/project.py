"""Project document model — a client's order and its assignment state."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field

from cutroom.models.base import DocumentBase, utcnow


class ProjectStatus(StrEnum):
    PENDING_PAYMENT = "pending_payment"
    PENDING_ASSIGNMENT = "pending_assignment"
    ACTIVE = "active"
    IN_REVIEW = "in_review"
    APPROVED = "approved"
    COMPLETED = "completed"
    ARCHIVED = "archived"


class AssignmentStatus(StrEnum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class PaymentStatus(StrEnum):
    PENDING_INITIAL_PAYMENT = "pending_initial_payment"
    PENDING_PAYMENT = "pending_payment"
    FULL_PAID = "full_paid"


class AuditNote(BaseModel):
    """An append-only record of who changed what on a project."""

    event: str
    actor_id: str
    actor_role: str | None = None
    at: datetime = Field(default_factory=utcnow)
    details: str | None = None


class Project(DocumentBase):
    """A video project submitted by a client."""

    name: str
    owner_id: str
    client_id: str | None = None
    description: str | None = None
    status: ProjectStatus = ProjectStatus.PENDING_PAYMENT

    assigned_editor_id: str | None = None
    assignment_status: AssignmentStatus | None = None
    assignment_at: datetime | None = None
    assignment_expires_at: datetime | None = None
    editor_decline_reason: str | None = None
    editor_price: float | None = None
    assigned_pm_id: str | None = None

    payment_status: PaymentStatus = PaymentStatus.PENDING_INITIAL_PAYMENT
    total_cost: float = 0.0
    amount_paid: float = 0.0
    downloads_unlocked: bool = False
    download_unlock_requested: bool = False

    members: list[str] = Field(default_factory=list)
    notes: list[AuditNote] = Field(default_factory=list)
    version: int = 0

    def is_member(self, user_id: str) -> bool:
        """Return True for the owner, the listed client, or any member."""
        return user_id in (self.owner_id, self.client_id) or user_id in self.members

    def add_member(self, user_id: str) -> None:
        if user_id not in self.members:
            self.members.append(user_id)

    def remove_member(self, user_id: str) -> None:
        if user_id != self.owner_id and user_id in self.members:
            self.members.remove(user_id)

    @property
    def has_paid_access(self) -> bool:
        return self.payment_status == PaymentStatus.FULL_PAID or self.downloads_unlocked
