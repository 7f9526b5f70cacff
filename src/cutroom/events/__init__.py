"""Notification contracts and the dispatcher interface used by the coordinators."""

from __future__ import annotations

import logging
from typing import Any, Protocol, runtime_checkable

from cutroom.events.contracts import EventEnvelope, NotificationKind, ProjectNotification
from cutroom.events.servicebus import ServiceBusNotificationDispatcher

logger = logging.getLogger(__name__)


@runtime_checkable
class NotificationDispatcher(Protocol):
    """Receives fire-and-forget signals about project state transitions."""

    async def notify(
        self,
        project_id: str,
        kind: str,
        *,
        recipient_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Deliver a notification; must not mutate project state."""
        ...


async def notify_quietly(
    dispatcher: NotificationDispatcher | None,
    project_id: str,
    kind: str,
    *,
    recipient_id: str | None = None,
    details: dict[str, Any] | None = None,
) -> None:
    """Signal the dispatcher, logging and discarding any failure."""
    if dispatcher is None:
        return
    try:
        await dispatcher.notify(
            project_id, kind, recipient_id=recipient_id, details=details
        )
    except Exception:  # noqa: BLE001
        logger.warning(
            "Notification dropped — project=%s kind=%s", project_id, kind, exc_info=True
        )


__all__ = [
    "EventEnvelope",
    "NotificationDispatcher",
    "NotificationKind",
    "ProjectNotification",
    "ServiceBusNotificationDispatcher",
    "notify_quietly",
]
