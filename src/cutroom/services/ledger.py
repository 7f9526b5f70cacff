"""Revision ledger — the numbered sequence of uploads for each project."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from azure.cosmos.exceptions import CosmosHttpResponseError, CosmosResourceExistsError

from cutroom.errors import NotFoundError, TransientInfrastructureError, returns_result
from cutroom.events import NotificationKind, notify_quietly
from cutroom.models.revision import Revision

if TYPE_CHECKING:
    from cutroom.database.repositories.projects import ProjectRepository
    from cutroom.database.repositories.revisions import RevisionRepository
    from cutroom.events import NotificationDispatcher

logger = logging.getLogger(__name__)

_CREATE_ATTEMPTS = 3
_VERSION_ATTEMPTS = 50


def revision_id_for(project_id: str, version: int) -> str:
    """Revision ids are derived from the version so two uploads cannot claim the same one."""
    return f"{project_id}-v{version}"


class RevisionLedger:
    """Append-only, gap-free revision numbering per project.

    The next version is the latest stored version plus one, and the insert of
    ``{project_id}-v{n}`` is the claim: a duplicate-id conflict means another
    upload took ``n`` first, so the latest version is re-read and the next
    number tried. A version only exists once its document does, so a failed
    insert never leaves a hole in the sequence.
    """

    def __init__(
        self,
        projects: ProjectRepository,
        revisions: RevisionRepository,
        notifier: NotificationDispatcher | None = None,
    ) -> None:
        self._projects = projects
        self._revisions = revisions
        self._notifier = notifier

    @returns_result
    async def add_revision(
        self,
        project_id: str,
        video_url: str,
        uploader_id: str,
        description: str = "",
    ) -> Revision:
        """Record a new upload as the next version of the project."""
        if await self._projects.get(project_id, project_id) is None:
            raise NotFoundError("Project not found.")

        saved = await self._claim_next_version(project_id, video_url, uploader_id, description)

        logger.info(
            "Revision uploaded — project=%s version=%d uploader=%s",
            project_id,
            saved.version,
            uploader_id,
        )
        await notify_quietly(
            self._notifier,
            project_id,
            NotificationKind.REVISION_UPLOADED,
            details={"revision_id": saved.id, "version": saved.version},
        )
        return saved

    async def _claim_next_version(
        self,
        project_id: str,
        video_url: str,
        uploader_id: str,
        description: str,
    ) -> Revision:
        failures = 0
        revision: Revision | None = None
        # set when the last insert errored; that write may still have landed
        unacknowledged = False
        for _ in range(_VERSION_ATTEMPTS):
            if revision is None:
                latest = await self._revisions.get_latest(project_id)
                version = (latest.version if latest else 0) + 1
                revision = Revision(
                    id=revision_id_for(project_id, version),
                    project_id=project_id,
                    version=version,
                    video_url=video_url,
                    uploaded_by=uploader_id,
                    description=description,
                )
            try:
                return await self._revisions.create(revision)
            except CosmosResourceExistsError:
                if unacknowledged:
                    existing = await self._revisions.get(revision.id, revision.id)
                    if existing is not None and _same_upload(existing, revision):
                        return existing
                logger.debug(
                    "Version already taken — project=%s version=%d",
                    project_id,
                    revision.version,
                )
                revision = None
                unacknowledged = False
            except CosmosHttpResponseError:
                failures += 1
                unacknowledged = True
                if failures >= _CREATE_ATTEMPTS:
                    logger.error(  # noqa: TRY400
                        "Revision insert failed — project=%s version=%d attempts=%d",
                        project_id,
                        revision.version,
                        failures,
                    )
                    raise
                logger.warning(
                    "Revision insert failed — project=%s version=%d attempt=%d",
                    project_id,
                    revision.version,
                    failures,
                    exc_info=True,
                )
        logger.warning("Giving up on busy revision sequence — project=%s", project_id)
        raise TransientInfrastructureError("Too many simultaneous uploads, try again.")

    async def list_revisions(self, project_id: str) -> list[Revision]:
        """All revisions of a project, newest first."""
        return await self._revisions.list_by_project(project_id)

    async def get_latest(self, project_id: str) -> Revision | None:
        return await self._revisions.get_latest(project_id)

    async def get_revision(self, project_id: str, revision_id: str) -> Revision | None:
        revision = await self._revisions.get(revision_id, revision_id)
        if revision is None or revision.project_id != project_id:
            return None
        return revision


def _same_upload(stored: Revision, attempted: Revision) -> bool:
    return (
        stored.video_url == attempted.video_url
        and stored.uploaded_by == attempted.uploaded_by
        and stored.description == attempted.description
    )
