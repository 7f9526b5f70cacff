"""Comment threads anchored to positions on a revision's timeline."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from azure.cosmos.exceptions import CosmosResourceExistsError

from cutroom.database.repositories.base import MAX_MUTATION_ATTEMPTS
from cutroom.errors import (
    NotFoundError,
    TransientInfrastructureError,
    UnauthorizedError,
    returns_result,
)
from cutroom.events import NotificationKind, notify_quietly
from cutroom.models.base import new_id
from cutroom.models.comment import Comment, Reply

if TYPE_CHECKING:
    from collections.abc import Sequence

    from cutroom.database.repositories.comments import CommentRepository
    from cutroom.database.repositories.revisions import RevisionRepository
    from cutroom.events import NotificationDispatcher
    from cutroom.models.identity import AuthenticatedIdentity, GuestIdentity

logger = logging.getLogger(__name__)


def require_identity(
    identity: AuthenticatedIdentity | GuestIdentity | None,
) -> AuthenticatedIdentity | GuestIdentity:
    """Guests must give a name and email before their first comment or reply."""
    if identity is None:
        raise UnauthorizedError("Enter your name and email to join the review.")
    return identity


class CommentThreadEngine:
    """Create, reply to and resolve timeline comments on a revision."""

    def __init__(
        self,
        revisions: RevisionRepository,
        comments: CommentRepository,
        notifier: NotificationDispatcher | None = None,
    ) -> None:
        self._revisions = revisions
        self._comments = comments
        self._notifier = notifier

    @returns_result
    async def add_comment(
        self,
        revision_id: str,
        timestamp: float,
        content: str,
        attachments: Sequence[str] = (),
        identity: AuthenticatedIdentity | GuestIdentity | None = None,
        *,
        comment_id: str | None = None,
    ) -> Comment:
        """Anchor a new open comment at ``timestamp`` seconds into the revision.

        ``comment_id`` lets a client persist a comment it has already rendered
        under a provisional id; resubmitting the same id returns the stored comment.
        """
        author = require_identity(identity)
        revision = await self._revisions.get(revision_id, revision_id)
        if revision is None:
            raise NotFoundError("Revision not found.")

        comment = Comment(
            id=comment_id or new_id(),
            project_id=revision.project_id,
            revision_id=revision_id,
            timestamp=float(timestamp),
            author=author,
            content=content,
            attachments=list(attachments),
        )
        try:
            saved = await self._comments.create(comment)
        except CosmosResourceExistsError:
            existing = await self._comments.get(comment.id, comment.id)
            if existing is None or existing.revision_id != revision_id:
                raise
            return existing

        logger.info(
            "Comment added — revision=%s comment=%s author=%s at=%.2fs",
            revision_id,
            saved.id,
            author.user_id,
            saved.timestamp,
        )
        await notify_quietly(
            self._notifier,
            revision.project_id,
            NotificationKind.COMMENT_ADDED,
            details={
                "revision_id": revision_id,
                "comment_id": saved.id,
                "author_id": author.user_id,
            },
        )
        return saved

    @returns_result
    async def add_reply(
        self,
        comment_id: str,
        content: str,
        attachments: Sequence[str] = (),
        identity: AuthenticatedIdentity | GuestIdentity | None = None,
        *,
        reply_id: str | None = None,
    ) -> Reply:
        """Append a reply to a comment's thread.

        Retrying with the same ``reply_id`` returns the reply already stored
        instead of adding it twice.
        """
        author = require_identity(identity)
        reply = Reply(
            id=reply_id or new_id(),
            author=author,
            content=content,
            attachments=list(attachments),
        )
        for _ in range(MAX_MUTATION_ATTEMPTS):
            comment = await self._comments.get(comment_id, comment_id)
            if comment is None:
                raise NotFoundError("Comment not found.")
            stored = next((r for r in comment.replies if r.id == reply.id), None)
            if stored is not None:
                logger.info("Reply already recorded — comment=%s reply=%s", comment_id, reply.id)
                return stored
            if await self._comments.append_reply(comment, reply) is not None:
                break
        else:
            raise TransientInfrastructureError("The comment is busy, try again.")

        logger.info(
            "Reply added — comment=%s reply=%s author=%s",
            comment_id,
            reply.id,
            author.user_id,
        )
        await notify_quietly(
            self._notifier,
            comment.project_id,
            NotificationKind.COMMENT_REPLIED,
            details={"comment_id": comment_id, "author_id": author.user_id},
        )
        return reply

    @returns_result
    async def toggle_resolve(self, comment_id: str) -> Comment:
        """Flip a comment between open and resolved. Any participant may do this."""

        def change(comment: Comment) -> None:
            comment.status = comment.toggled_status()

        comment = await self._comments.mutate(comment_id, comment_id, change)
        if comment is None:
            raise NotFoundError("Comment not found.")
        logger.info("Comment %s — comment=%s", comment.status, comment_id)
        return comment

    async def list_comments(self, revision_id: str) -> list[Comment]:
        """A revision's comments in timeline order."""
        return await self._comments.list_by_revision(revision_id)
