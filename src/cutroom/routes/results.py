"""Translate operation results into HTTP responses."""

from __future__ import annotations

from typing import TYPE_CHECKING, TypeVar

from fastapi import HTTPException, status

from cutroom.errors import ErrorCode

if TYPE_CHECKING:
    from cutroom.errors import Result

T = TypeVar("T")

STATUS_BY_CODE: dict[ErrorCode, int] = {
    ErrorCode.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.UNAUTHORIZED: status.HTTP_403_FORBIDDEN,
    ErrorCode.INVALID_STATE: status.HTTP_409_CONFLICT,
    ErrorCode.LIMIT_EXCEEDED: status.HTTP_429_TOO_MANY_REQUESTS,
    ErrorCode.TRANSIENT: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def unwrap(result: Result[T]) -> T:
    """Return the result's value or raise the matching ``HTTPException``."""
    if result.error is not None:
        raise HTTPException(
            status_code=STATUS_BY_CODE[result.error],
            detail={"code": result.error.value, "reason": result.reason},
        )
    return result.value  # type: ignore[return-value]
