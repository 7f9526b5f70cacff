"""Session identity — the signed-in user or a guest's self-declared details."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import HTTPException, Request, status
from pydantic import ValidationError

from cutroom.models.identity import AuthenticatedIdentity, GuestIdentity, Role

logger = logging.getLogger(__name__)

_GUEST_KEY = "guest"


def get_user(request: Request) -> dict[str, Any] | None:
    """Extract the authenticated user from the session, if present."""
    return request.session.get("user") if hasattr(request, "session") else None


def current_identity(request: Request) -> AuthenticatedIdentity | GuestIdentity | None:
    """Resolve the caller: a signed-in user first, then a captured guest, else None."""
    user = get_user(request)
    if user:
        try:
            return AuthenticatedIdentity(
                uid=user["uid"],
                role=Role(user.get("role", Role.CLIENT)),
                display_name=user.get("name"),
            )
        except (KeyError, ValueError):
            logger.warning("Ignoring malformed session user")
            return None

    guest = request.session.get(_GUEST_KEY) if hasattr(request, "session") else None
    if guest:
        try:
            return GuestIdentity.model_validate(guest)
        except ValidationError:
            logger.warning("Ignoring malformed guest session")
    return None


def require_authenticated_user(request: Request) -> AuthenticatedIdentity:
    """Return the signed-in user or raise HTTP 401."""
    identity = current_identity(request)
    if not isinstance(identity, AuthenticatedIdentity):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )
    return identity


def remember_guest(request: Request, guest: GuestIdentity) -> None:
    """Keep the guest's details in the session so later comments reuse them."""
    request.session[_GUEST_KEY] = guest.model_dump(mode="json")
