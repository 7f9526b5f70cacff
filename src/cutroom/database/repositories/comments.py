"""Repository for the comments container (partitioned by /id)."""

from __future__ import annotations

from cutroom.database.repositories.base import BaseRepository
from cutroom.models.base import utcnow
from cutroom.models.comment import Comment, Reply


class CommentRepository(BaseRepository[Comment]):
    container_name = "comments"
    model_class = Comment

    async def list_by_revision(self, revision_id: str) -> list[Comment]:
        """Fetch a revision's comments in timeline order."""
        return await self.query(
            "SELECT * FROM c WHERE c.revision_id = @revision_id ORDER BY c.timestamp ASC",
            [{"name": "@revision_id", "value": revision_id}],
        )

    async def append_reply(self, comment: Comment, reply: Reply) -> Comment | None:
        """Append a reply with a server-side array add, conditioned on ``comment``'s etag.

        Returns None when the thread changed since ``comment`` was read.
        """
        return await self.patch_if_unchanged(
            comment,
            comment.id,
            [
                {
                    "op": "add",
                    "path": "/replies/-",
                    "value": reply.model_dump(mode="json", exclude_none=True),
                },
                {"op": "set", "path": "/updated_at", "value": utcnow().isoformat()},
            ],
        )
