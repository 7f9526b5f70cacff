"""Generic repository over a single Cosmos DB container.

Every write to an existing document is conditioned on the etag that was read,
so concurrent writers never silently overwrite each other. Counters and array
appends go through server-side patch operations instead.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, ClassVar, Generic, TypeVar, cast

from azure.core import MatchConditions
from azure.cosmos.exceptions import CosmosHttpResponseError, CosmosResourceNotFoundError

from cutroom.errors import TransientInfrastructureError
from cutroom.models.base import DocumentBase, utcnow

if TYPE_CHECKING:
    from collections.abc import Callable

    from azure.cosmos.aio import ContainerProxy, DatabaseProxy

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=DocumentBase)

MAX_MUTATION_ATTEMPTS = 5
_HTTP_PRECONDITION_FAILED = 412


class BaseRepository(Generic[T]):
    """CRUD with optimistic concurrency for one container (partitioned by /id)."""

    container_name: ClassVar[str]
    model_class: type[T]

    def __init__(self, database: DatabaseProxy) -> None:
        self._container: ContainerProxy = database.get_container_client(self.container_name)

    def _to_body(self, item: T) -> dict[str, Any]:
        return item.model_dump(mode="json", exclude_none=True)

    def _from_body(self, data: dict[str, Any]) -> T:
        return self.model_class.model_validate(data)

    async def create(self, item: T) -> T:
        """Insert a new document. Raises ``CosmosResourceExistsError`` on duplicate ids."""
        data = await self._container.create_item(body=self._to_body(item))
        return self._from_body(cast("dict[str, Any]", data))

    async def get(self, item_id: str, partition_key: str) -> T | None:
        """Read a document by id, or None if it does not exist."""
        try:
            data = await self._container.read_item(item=item_id, partition_key=partition_key)
        except CosmosResourceNotFoundError:
            return None
        return self._from_body(cast("dict[str, Any]", data))

    async def replace_if_unchanged(self, item: T, partition_key: str) -> T | None:
        """Replace a document only if its etag still matches.

        Returns the stored document, or None when another writer got there first.
        """
        item.updated_at = utcnow()
        kwargs: dict[str, Any] = {}
        if item.etag:
            kwargs = {"etag": item.etag, "match_condition": MatchConditions.IfNotModified}
        try:
            data = await self._container.replace_item(
                item=item.id,
                body=self._to_body(item),
                **kwargs,
            )
        except CosmosHttpResponseError as exc:
            if exc.status_code == _HTTP_PRECONDITION_FAILED:
                return None
            raise
        logger.debug("Replaced document — container=%s id=%s", self.container_name, item.id)
        return self._from_body(cast("dict[str, Any]", data))

    async def mutate(
        self,
        item_id: str,
        partition_key: str,
        change: Callable[[T], None],
    ) -> T | None:
        """Apply ``change`` to the current document and write it back atomically.

        The read-modify-write is retried on etag conflicts, re-running ``change``
        against the fresh document each time. ``change`` may raise to abort.
        Returns None if the document does not exist.
        """
        for attempt in range(1, MAX_MUTATION_ATTEMPTS + 1):
            current = await self.get(item_id, partition_key)
            if current is None:
                return None
            change(current)
            saved = await self.replace_if_unchanged(current, partition_key)
            if saved is not None:
                return saved
            logger.debug(
                "Etag conflict — container=%s id=%s attempt=%d",
                self.container_name,
                item_id,
                attempt,
            )
        logger.warning(
            "Giving up after repeated write conflicts — container=%s id=%s",
            self.container_name,
            item_id,
        )
        raise TransientInfrastructureError("The record is busy, try again.")

    async def patch(
        self,
        item_id: str,
        partition_key: str,
        operations: list[dict[str, Any]],
    ) -> T | None:
        """Apply server-side patch operations. Returns None if the document is missing."""
        try:
            data = await self._container.patch_item(
                item=item_id,
                partition_key=partition_key,
                patch_operations=operations,
            )
        except CosmosResourceNotFoundError:
            return None
        return self._from_body(cast("dict[str, Any]", data))

    async def patch_if_unchanged(
        self,
        item: T,
        partition_key: str,
        operations: list[dict[str, Any]],
    ) -> T | None:
        """Apply patch operations only if ``item``'s etag still matches.

        Returns the stored document, or None when another writer got there first.
        """
        try:
            data = await self._container.patch_item(
                item=item.id,
                partition_key=partition_key,
                patch_operations=operations,
                etag=item.etag,
                match_condition=MatchConditions.IfNotModified,
            )
        except CosmosHttpResponseError as exc:
            if exc.status_code == _HTTP_PRECONDITION_FAILED:
                return None
            raise
        return self._from_body(cast("dict[str, Any]", data))

    async def query(
        self,
        sql: str,
        parameters: list[dict[str, Any]] | None = None,
    ) -> list[T]:
        """Run a parameterized query and validate each result."""
        items = self._container.query_items(query=sql, parameters=parameters or [])
        return [self._from_body(item) async for item in items]
