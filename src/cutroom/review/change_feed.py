"""Cosmos DB change feed that pushes stored comment documents to open review sessions."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections import defaultdict
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from cutroom.models.comment import Comment

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable

    from azure.cosmos.aio import ContainerProxy, DatabaseProxy

    CommentHandler = Callable[[Comment], Awaitable[None] | None]

logger = logging.getLogger(__name__)

POLL_INTERVAL_SECONDS = 1.0


class CommentFeed:
    """Polls the ``comments`` change feed and fans changes out by revision.

    Runs as a background task within the FastAPI lifespan. Subscribers receive
    every created or updated comment on the revision they subscribed to,
    including replies appended by other participants.
    """

    def __init__(
        self,
        database: DatabaseProxy,
        *,
        poll_interval: float = POLL_INTERVAL_SECONDS,
    ) -> None:
        self._database = database
        self._poll_interval = poll_interval
        self._subscribers: dict[str, list[CommentHandler]] = defaultdict(list)
        self._running = False
        self._task: asyncio.Task | None = None

    def subscribe(self, revision_id: str, handler: CommentHandler) -> Callable[[], None]:
        """Register ``handler`` for a revision's comments. Returns an unsubscribe callable."""
        self._subscribers[revision_id].append(handler)

        def unsubscribe() -> None:
            handlers = self._subscribers.get(revision_id, [])
            if handler in handlers:
                handlers.remove(handler)
            if not handlers:
                self._subscribers.pop(revision_id, None)

        return unsubscribe

    async def stream(
        self, revision_id: str, *, idle_timeout: float | None = None
    ) -> AsyncIterator[Comment | None]:
        """Yield a revision's comment changes as they arrive, until the consumer stops.

        With ``idle_timeout`` set, ``None`` is yielded whenever that many seconds
        pass without a change, so callers can send keep-alives.
        """
        queue: asyncio.Queue[Comment] = asyncio.Queue()
        unsubscribe = self.subscribe(revision_id, queue.put_nowait)
        try:
            while True:
                try:
                    yield await asyncio.wait_for(queue.get(), timeout=idle_timeout)
                except TimeoutError:
                    yield None
        finally:
            unsubscribe()

    async def start(self) -> None:
        """Start polling the change feed in a background task."""
        self._running = True
        self._task = asyncio.create_task(self._poll_loop())
        logger.info("Comment feed started")

    async def stop(self) -> None:
        """Stop polling gracefully."""
        self._running = False
        if self._task:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
        logger.info("Comment feed stopped")

    async def _poll_loop(self) -> None:
        container: ContainerProxy = self._database.get_container_client("comments")
        token: str | None = None

        while self._running:
            try:
                token = await self._process_feed(container, token, self._dispatch)
            except Exception:
                logger.exception("Error processing comment feed")

            await asyncio.sleep(self._poll_interval)

    async def _process_feed(
        self,
        container: ContainerProxy,
        continuation_token: str | None,
        handler: Callable[[dict[str, Any]], Awaitable[None]],
    ) -> str | None:
        """Read a batch of changes and hand each one to ``handler`` in order."""
        query_kwargs: dict[str, Any] = {"max_item_count": 100}
        if continuation_token:
            query_kwargs["continuation"] = continuation_token
        else:
            query_kwargs["start_time"] = "Now"

        response = container.query_items_change_feed(**query_kwargs)
        new_token = continuation_token

        async for item in response:
            try:
                await handler(item)
            except Exception:
                logger.exception("Failed to process comment change %s", item.get("id"))

        if hasattr(response, "continuation_token"):
            token = response.continuation_token
            if isinstance(token, str):
                new_token = token

        return new_token

    async def _dispatch(self, item: dict[str, Any]) -> None:
        try:
            comment = Comment.model_validate(item)
        except ValidationError:
            logger.warning("Skipping malformed comment document — id=%s", item.get("id"))
            return

        for handler in list(self._subscribers.get(comment.revision_id, [])):
            try:
                outcome = handler(comment)
                if asyncio.iscoroutine(outcome):
                    await outcome
            except Exception:
                logger.exception(
                    "Comment subscriber failed — revision=%s comment=%s",
                    comment.revision_id,
                    comment.id,
                )
