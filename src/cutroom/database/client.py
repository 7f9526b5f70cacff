"""Async Cosmos DB client for the projects, revisions and comments containers."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from azure.cosmos.aio import CosmosClient as AzureCosmosClient

if TYPE_CHECKING:
    from azure.cosmos.aio import DatabaseProxy

    from cutroom.config import CosmosConfig

logger = logging.getLogger(__name__)


class CosmosClient:
    """Owns the SDK client and hands out the ``cutroom`` database reference.

    Every container is partitioned by ``/id``; cross-document reads go through
    queries on ``project_id`` or ``revision_id``.
    """

    def __init__(self, config: CosmosConfig) -> None:
        self._config = config
        self._sdk: AzureCosmosClient | None = None
        self._database: DatabaseProxy | None = None

    async def initialize(self) -> None:
        """Open the client and confirm the database exists.

        Raises ``AzureError`` when the account is unreachable or the database
        is missing, and ``ValueError`` for a malformed endpoint.
        """
        self._sdk = AzureCosmosClient(self._config.endpoint, credential=self._config.key)
        database = self._sdk.get_database_client(self._config.database)
        properties = await database.read()
        self._database = database
        logger.info(
            "Cosmos database ready — endpoint=%s database=%s rid=%s",
            self._config.endpoint,
            self._config.database,
            properties.get("_rid"),
        )

    async def close(self) -> None:
        if self._sdk is not None:
            await self._sdk.close()
        self._sdk = None
        self._database = None

    @property
    def database(self) -> DatabaseProxy:
        if self._database is None:
            msg = "Cosmos database is not open; await initialize() first"
            raise RuntimeError(msg)
        return self._database
