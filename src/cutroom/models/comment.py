"""Comment document model — review notes anchored to a playback position."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field

from cutroom.models.base import DocumentBase, new_id, utcnow
from cutroom.models.identity import Identity


class CommentStatus(StrEnum):
    OPEN = "open"
    RESOLVED = "resolved"


class Reply(BaseModel):
    id: str = Field(default_factory=new_id)
    author: Identity
    content: str
    attachments: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)


class Comment(DocumentBase):
    """A timeline comment on a revision.

    ``timestamp`` is the position in seconds the comment is anchored to. It is
    stored exactly as given; the player clamps it to the video length.
    """

    project_id: str
    revision_id: str
    timestamp: float
    author: Identity
    content: str
    attachments: list[str] = Field(default_factory=list)
    status: CommentStatus = CommentStatus.OPEN
    replies: list[Reply] = Field(default_factory=list)

    def toggled_status(self) -> CommentStatus:
        if self.status == CommentStatus.OPEN:
            return CommentStatus.RESOLVED
        return CommentStatus.OPEN
