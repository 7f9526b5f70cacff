"""Error taxonomy and the typed result returned by every core operation.

Coordinators raise ``LifecycleError`` subclasses internally. Public operations
are wrapped with :func:`returns_result`, so callers always receive a
:class:`Result` and never an exception from a rejected operation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum
from functools import wraps
from typing import TYPE_CHECKING, Generic, ParamSpec, TypeVar

from azure.cosmos.exceptions import CosmosHttpResponseError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

T = TypeVar("T")
P = ParamSpec("P")


class ErrorCode(StrEnum):
    NOT_FOUND = "not_found"
    UNAUTHORIZED = "unauthorized"
    INVALID_STATE = "invalid_state"
    LIMIT_EXCEEDED = "limit_exceeded"
    TRANSIENT = "transient"


class LifecycleError(Exception):
    """Base class for rejections raised inside core operations."""

    code: ErrorCode = ErrorCode.INVALID_STATE

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class NotFoundError(LifecycleError):
    code = ErrorCode.NOT_FOUND


class UnauthorizedError(LifecycleError):
    code = ErrorCode.UNAUTHORIZED


class InvalidStateError(LifecycleError):
    code = ErrorCode.INVALID_STATE


class LimitExceededError(LifecycleError):
    code = ErrorCode.LIMIT_EXCEEDED


class TransientInfrastructureError(LifecycleError):
    code = ErrorCode.TRANSIENT


@dataclass(frozen=True)
class Result(Generic[T]):
    """Outcome of a core operation: a value, or an error code with a reason."""

    value: T | None = None
    error: ErrorCode | None = None
    reason: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> Result[T]:
        return cls(value=value)

    @classmethod
    def failure(cls, code: ErrorCode, reason: str) -> Result[T]:
        return cls(error=code, reason=reason)

    def unwrap(self) -> T:
        """Return the value, raising the matching ``LifecycleError`` on failure."""
        if self.error is not None:
            raise _ERRORS_BY_CODE[self.error](self.reason or self.error.value)
        return self.value  # type: ignore[return-value]


_ERRORS_BY_CODE: dict[ErrorCode, type[LifecycleError]] = {
    ErrorCode.NOT_FOUND: NotFoundError,
    ErrorCode.UNAUTHORIZED: UnauthorizedError,
    ErrorCode.INVALID_STATE: InvalidStateError,
    ErrorCode.LIMIT_EXCEEDED: LimitExceededError,
    ErrorCode.TRANSIENT: TransientInfrastructureError,
}


def returns_result(
    func: Callable[P, Awaitable[T]],
) -> Callable[P, Awaitable[Result[T]]]:
    """Convert rejections and storage failures of an async operation into a ``Result``."""

    @wraps(func)
    async def wrapper(*args: P.args, **kwargs: P.kwargs) -> Result[T]:
        try:
            value = await func(*args, **kwargs)
        except LifecycleError as exc:
            logger.info(
                "Operation rejected — op=%s code=%s reason=%s",
                func.__qualname__,
                exc.code,
                exc.reason,
            )
            return Result.failure(exc.code, exc.reason)
        except CosmosHttpResponseError as exc:
            logger.warning(
                "Storage error — op=%s status=%s",
                func.__qualname__,
                exc.status_code,
                exc_info=True,
            )
            return Result.failure(
                ErrorCode.TRANSIENT, "Storage is temporarily unavailable, try again."
            )
        return Result.success(value)

    return wrapper
