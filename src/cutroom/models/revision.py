"""Revision document model — one uploaded cut of a project's video."""

from __future__ import annotations

from enum import StrEnum

from cutroom.models.base import DocumentBase


class RevisionStatus(StrEnum):
    ACTIVE = "active"
    ARCHIVED = "archived"


class Revision(DocumentBase):
    """A versioned upload. Only ``status``, ``download_count`` and ``description`` change."""

    project_id: str
    version: int
    video_url: str
    uploaded_by: str
    description: str = ""
    status: RevisionStatus = RevisionStatus.ACTIVE
    download_count: int = 0
