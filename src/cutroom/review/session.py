"""Optimistic review session — renders a participant's edits before the store confirms them."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from cutroom.errors import ErrorCode, Result, UnauthorizedError
from cutroom.models.base import new_id
from cutroom.models.comment import Comment, Reply
from cutroom.models.identity import capture_guest_identity
from cutroom.services.comments import require_identity

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from cutroom.models.identity import AuthenticatedIdentity, GuestIdentity
    from cutroom.review.change_feed import CommentFeed
    from cutroom.services.comments import CommentThreadEngine

    ErrorCallback = Callable[[Result], None]

logger = logging.getLogger(__name__)


class ReviewSession:
    """One participant's view of the comment threads on a revision.

    Edits appear in :meth:`comments` immediately under a provisional id and are
    then persisted with that same id, so the authoritative document arriving
    from the change feed replaces the provisional copy in place. A failed
    write retracts the local edit and reports the failure to ``on_error``.
    """

    def __init__(
        self,
        engine: CommentThreadEngine,
        project_id: str,
        revision_id: str,
        identity: AuthenticatedIdentity | GuestIdentity | None = None,
        *,
        on_error: ErrorCallback | None = None,
    ) -> None:
        self._engine = engine
        self.project_id = project_id
        self.revision_id = revision_id
        self.identity = identity
        self._on_error = on_error
        self._comments: dict[str, Comment] = {}
        self._provisional: set[str] = set()
        self._pending_replies: dict[str, dict[str, Reply]] = {}
        self._unsubscribe: Callable[[], None] | None = None

    @property
    def comments(self) -> list[Comment]:
        """Comments in timeline order, provisional ones included."""
        return sorted(self._comments.values(), key=lambda c: (c.timestamp, c.created_at))

    def is_provisional(self, comment_id: str) -> bool:
        return comment_id in self._provisional

    def capture_guest(self, name: str, email: str) -> GuestIdentity:
        """Record the guest's name and email for this session. Raises ``ValidationError``."""
        guest = capture_guest_identity(name, email)
        self.identity = guest
        return guest

    async def load(self) -> list[Comment]:
        """Fetch the stored threads, keeping any edits still in flight."""
        for comment in await self._engine.list_comments(self.revision_id):
            self.apply_change(comment)
        return self.comments

    def follow(self, feed: CommentFeed) -> None:
        """Receive authoritative updates for this revision from ``feed``."""
        self.close()
        self._unsubscribe = feed.subscribe(self.revision_id, self.apply_change)

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    async def add_comment(
        self, timestamp: float, content: str, attachments: Sequence[str] = ()
    ) -> Result[Comment]:
        try:
            author = require_identity(self.identity)
        except UnauthorizedError as exc:
            return self._fail(Result.failure(exc.code, exc.reason))

        provisional = Comment(
            project_id=self.project_id,
            revision_id=self.revision_id,
            timestamp=float(timestamp),
            author=author,
            content=content,
            attachments=list(attachments),
        )
        self._comments[provisional.id] = provisional
        self._provisional.add(provisional.id)

        result = await self._engine.add_comment(
            self.revision_id,
            timestamp,
            content,
            attachments,
            author,
            comment_id=provisional.id,
        )
        if not result.ok:
            self._comments.pop(provisional.id, None)
            self._provisional.discard(provisional.id)
            return self._fail(result)

        self.apply_change(result.value)
        return result

    async def add_reply(
        self, comment_id: str, content: str, attachments: Sequence[str] = ()
    ) -> Result[Reply]:
        try:
            author = require_identity(self.identity)
        except UnauthorizedError as exc:
            return self._fail(Result.failure(exc.code, exc.reason))

        comment = self._comments.get(comment_id)
        if comment is None:
            return self._fail(Result.failure(ErrorCode.NOT_FOUND, "Comment not found."))

        reply = Reply(id=new_id(), author=author, content=content, attachments=list(attachments))
        comment.replies.append(reply)
        self._pending_replies.setdefault(comment_id, {})[reply.id] = reply

        result = await self._engine.add_reply(
            comment_id, content, attachments, author, reply_id=reply.id
        )
        pending = self._pending_replies.get(comment_id, {})
        pending.pop(reply.id, None)
        if not pending:
            self._pending_replies.pop(comment_id, None)

        if not result.ok:
            current = self._comments.get(comment_id)
            if current is not None:
                current.replies = [r for r in current.replies if r.id != reply.id]
            return self._fail(result)
        return result

    async def toggle_resolve(self, comment_id: str) -> Result[Comment]:
        comment = self._comments.get(comment_id)
        if comment is None:
            return self._fail(Result.failure(ErrorCode.NOT_FOUND, "Comment not found."))

        previous = comment.status
        comment.status = comment.toggled_status()

        result = await self._engine.toggle_resolve(comment_id)
        if not result.ok:
            current = self._comments.get(comment_id)
            if current is not None:
                current.status = previous
            return self._fail(result)

        self.apply_change(result.value)
        return result

    def apply_change(self, comment: Comment) -> None:
        """Merge an authoritative comment document into the local view.

        Replies still being written locally are kept until the store returns
        them. A document older than the confirmed copy already held is ignored.
        """
        if comment.revision_id != self.revision_id:
            return

        existing = self._comments.get(comment.id)
        if (
            existing is not None
            and comment.id not in self._provisional
            and existing.updated_at > comment.updated_at
        ):
            return

        merged = comment.model_copy(deep=True)
        stored_ids = {reply.id for reply in merged.replies}
        for reply_id, reply in self._pending_replies.get(comment.id, {}).items():
            if reply_id not in stored_ids:
                merged.replies.append(reply)

        self._provisional.discard(comment.id)
        self._comments[comment.id] = merged

    def _fail(self, result: Result) -> Result:
        logger.warning(
            "Review edit failed — revision=%s code=%s reason=%s",
            self.revision_id,
            result.error,
            result.reason,
        )
        if self._on_error is not None:
            self._on_error(result)
        return result
