"""Base document model shared by every Cosmos DB container."""

from __future__ import annotations

from datetime import UTC, datetime
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


def utcnow() -> datetime:
    return datetime.now(UTC)


def new_id() -> str:
    return str(uuid4())


class DocumentBase(BaseModel):
    """Fields common to all stored documents.

    ``etag`` carries the store's ``_etag`` for optimistic concurrency. It is read
    from documents but never serialized back into them.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=new_id)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    etag: str | None = Field(default=None, alias="_etag", exclude=True)
