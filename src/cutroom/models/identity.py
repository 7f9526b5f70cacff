"""Caller identities — authenticated users and self-declared guests."""

from __future__ import annotations

import re
from enum import StrEnum
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class Role(StrEnum):
    CLIENT = "client"
    EDITOR = "editor"
    ADMIN = "admin"
    PROJECT_MANAGER = "project_manager"
    SALES_EXECUTIVE = "sales_executive"
    GUEST = "guest"


MANAGER_ROLES = frozenset({Role.ADMIN, Role.PROJECT_MANAGER})
INTERNAL_ROLES = frozenset({Role.ADMIN, Role.PROJECT_MANAGER, Role.EDITOR})


class AuthenticatedIdentity(BaseModel):
    """A signed-in user."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["authenticated"] = "authenticated"
    uid: str
    role: Role
    display_name: str | None = None

    @property
    def user_id(self) -> str:
        return self.uid


class GuestIdentity(BaseModel):
    """A reviewer without an account, known only by name and email.

    The identity is keyed by ``guest-{email}`` so every comment a guest leaves
    during a visit is attributed to the same author.
    """

    model_config = ConfigDict(frozen=True)

    kind: Literal["guest"] = "guest"
    name: str
    email: str

    @field_validator("name")
    @classmethod
    def _name_required(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("name is required")
        return value

    @field_validator("email")
    @classmethod
    def _email_format(cls, value: str) -> str:
        value = value.strip().lower()
        if not _EMAIL_PATTERN.match(value):
            raise ValueError("a valid email address is required")
        return value

    @property
    def user_id(self) -> str:
        return f"guest-{self.email}"

    @property
    def role(self) -> Role:
        return Role.GUEST


Identity = Annotated[AuthenticatedIdentity | GuestIdentity, Field(discriminator="kind")]


def capture_guest_identity(name: str, email: str) -> GuestIdentity:
    """Validate a guest's self-declared details. Raises ``ValidationError`` if invalid."""
    return GuestIdentity(name=name, email=email)
