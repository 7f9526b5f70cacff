"""Service Bus notification dispatcher."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from azure.servicebus.aio import ServiceBusClient, ServiceBusSender

from cutroom.events.contracts import EventEnvelope, ProjectNotification

if TYPE_CHECKING:
    from cutroom.config import ServiceBusConfig

logger = logging.getLogger(__name__)


class ServiceBusNotificationDispatcher:
    """Publish project notifications to an Azure Service Bus topic.

    Delivery is best-effort: failures are logged and never raised.
    """

    def __init__(self, config: ServiceBusConfig) -> None:
        self._config = config
        self._client: ServiceBusClient | None = None
        self._sender: ServiceBusSender | None = None
        self._disabled = not config.connection_string
        if self._disabled:
            logger.warning(
                "AZURE_SERVICEBUS_CONNECTION_STRING is not set — "
                "project notifications will not be published"
            )

    @property
    def enabled(self) -> bool:
        return not self._disabled

    async def _ensure_sender(self) -> ServiceBusSender:
        """Lazily create the Service Bus client and sender."""
        if self._sender is None:
            self._client = ServiceBusClient.from_connection_string(
                self._config.connection_string
            )
            self._sender = self._client.get_topic_sender(topic_name=self._config.topic_name)
        return self._sender

    async def notify(
        self,
        project_id: str,
        kind: str,
        *,
        recipient_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Send a notification message to the topic."""
        if self._disabled:
            return

        from azure.servicebus import ServiceBusMessage  # noqa: PLC0415

        notification = ProjectNotification(
            project_id=project_id,
            kind=kind,
            recipient_id=recipient_id,
            details=details or {},
        )
        try:
            sender = await self._ensure_sender()
            body = EventEnvelope(
                event=kind, data=notification.model_dump(mode="json")
            ).model_dump_json()
            message = ServiceBusMessage(
                body=body,
                application_properties={"event_type": kind, "project_id": project_id},
            )
            await sender.send_messages(message)
            logger.debug("Published notification=%s project=%s", kind, project_id)
        except Exception:  # noqa: BLE001
            logger.warning(
                "Failed to publish notification=%s project=%s",
                kind,
                project_id,
                exc_info=True,
            )

    async def close(self) -> None:
        """Close the Service Bus client."""
        if self._sender:
            await self._sender.close()
        if self._client:
            await self._client.close()
