"""Session-backed caller identity."""

from cutroom.auth.middleware import (
    current_identity,
    get_user,
    remember_guest,
    require_authenticated_user,
)

__all__ = ["current_identity", "get_user", "remember_guest", "require_authenticated_user"]
