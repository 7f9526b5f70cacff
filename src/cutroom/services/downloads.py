"""Download gate — quota, archival and payment-unlock policy for revision files."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import TYPE_CHECKING

from pydantic import BaseModel

from cutroom.errors import (
    LimitExceededError,
    NotFoundError,
    TransientInfrastructureError,
    UnauthorizedError,
    returns_result,
)
from cutroom.events import NotificationKind, notify_quietly
from cutroom.models.base import utcnow
from cutroom.models.identity import (
    INTERNAL_ROLES,
    MANAGER_ROLES,
    AuthenticatedIdentity,
    GuestIdentity,
    Role,
)
from cutroom.models.project import AuditNote, PaymentStatus, Project
from cutroom.models.revision import Revision, RevisionStatus
from cutroom.services import lifecycle
from cutroom.services.lifecycle import ProjectEvent
from cutroom.storage.signing import download_filename

if TYPE_CHECKING:
    from cutroom.database.repositories.projects import ProjectRepository
    from cutroom.database.repositories.revisions import RevisionRepository
    from cutroom.events import NotificationDispatcher
    from cutroom.storage.signing import DownloadUrlSigner

logger = logging.getLogger(__name__)

DOWNLOAD_LIMIT = 10
DOWNLOAD_URL_TTL = timedelta(hours=1)
LIMIT_MARKER = " [Download Limit Reached]"
_QUOTA_ATTEMPTS = 5


class DownloadGrant(BaseModel):
    count: int
    remaining: int
    download_url: str


class DownloadGate:
    """Decide whether a revision may be downloaded and hand out the URL.

    Two policies must both pass: the payment gate (clients need a fully paid or
    unlocked project) and the per-revision quota. Exhausting the quota archives
    the revision in the same conditional write that observes the limit.
    """

    def __init__(
        self,
        projects: ProjectRepository,
        revisions: RevisionRepository,
        signer: DownloadUrlSigner | None = None,
        notifier: NotificationDispatcher | None = None,
        *,
        limit: int = DOWNLOAD_LIMIT,
        url_ttl: timedelta = DOWNLOAD_URL_TTL,
    ) -> None:
        self._projects = projects
        self._revisions = revisions
        self._signer = signer
        self._notifier = notifier
        self._limit = limit
        self._url_ttl = url_ttl

    @returns_result
    async def register_download(
        self,
        project_id: str,
        revision_id: str,
        caller: AuthenticatedIdentity | GuestIdentity | None,
    ) -> DownloadGrant:
        """Count one download of a revision and return a short-lived download URL."""
        project = await self._projects.get(project_id, project_id)
        if project is None:
            raise NotFoundError("Project not found.")
        self._check_payment_gate(project, caller)

        revision = await self._revisions.get(revision_id, revision_id)
        if revision is None or revision.project_id != project_id:
            raise NotFoundError("Revision not found.")
        if not revision.video_url:
            raise TransientInfrastructureError("No video file found for this revision.")

        revision = await self._consume_quota(revision)
        grant = DownloadGrant(
            count=revision.download_count,
            remaining=self._limit - revision.download_count,
            download_url=self._download_url(project, revision),
        )
        logger.info(
            "Download registered — project=%s revision=%s count=%d remaining=%d",
            project_id,
            revision_id,
            grant.count,
            grant.remaining,
        )
        return grant

    def _check_payment_gate(
        self, project: Project, caller: AuthenticatedIdentity | GuestIdentity | None
    ) -> None:
        match caller:
            case AuthenticatedIdentity(role=role) if role in INTERNAL_ROLES:
                return
            case AuthenticatedIdentity(uid=uid):
                if not project.is_member(uid):
                    raise UnauthorizedError("You are not a member of this project.")
                if not project.has_paid_access:
                    raise UnauthorizedError(
                        "Downloads unlock once the project is fully paid."
                    )
            case GuestIdentity():
                raise UnauthorizedError("Sign in to download project files.")
            case _:
                raise UnauthorizedError("Authentication required.")

    async def _consume_quota(self, revision: Revision) -> Revision:
        """Increment the download count, or archive the revision if the quota is spent.

        Both writes are conditioned on the etag that was read, so two callers
        racing at ``limit - 1`` cannot both succeed.
        """
        for _ in range(_QUOTA_ATTEMPTS):
            if revision.status == RevisionStatus.ARCHIVED:
                raise LimitExceededError("Download limit reached for this revision.")

            if revision.download_count >= self._limit:
                archived = revision.model_copy(deep=True)
                archived.status = RevisionStatus.ARCHIVED
                archived.description = f"{archived.description}{LIMIT_MARKER}"
                if await self._revisions.replace_if_unchanged(archived, archived.id):
                    logger.info(
                        "Revision archived — download limit reached project=%s revision=%s",
                        revision.project_id,
                        revision.id,
                    )
                    raise LimitExceededError("Download limit reached for this revision.")
            else:
                bumped = revision.model_copy(deep=True)
                bumped.download_count += 1
                saved = await self._revisions.replace_if_unchanged(bumped, bumped.id)
                if saved is not None:
                    return saved

            reloaded = await self._revisions.get(revision.id, revision.id)
            if reloaded is None:
                raise NotFoundError("Revision not found.")
            revision = reloaded

        raise TransientInfrastructureError("Too many simultaneous downloads, try again.")

    def _download_url(self, project: Project, revision: Revision) -> str:
        """Sign the stored URL, falling back to it unsigned if signing fails."""
        if self._signer is None:
            return revision.video_url
        filename = download_filename(project.name, revision.version, revision.video_url)
        try:
            signed = self._signer.sign(revision.video_url, filename, self._url_ttl)
        except Exception:  # noqa: BLE001
            logger.warning(
                "Signing failed, returning stored URL — revision=%s",
                revision.id,
                exc_info=True,
            )
            return revision.video_url
        return signed or revision.video_url

    @returns_result
    async def request_download_unlock(self, project_id: str, user_id: str) -> Project:
        """Flag that the project's client wants downloads unlocked. Safe to repeat."""
        project = await self._projects.get(project_id, project_id)
        if project is None:
            raise NotFoundError("Project not found.")
        if not project.is_member(user_id):
            raise UnauthorizedError("You are not a member of this project.")
        if project.download_unlock_requested:
            return project

        def change(current: Project) -> None:
            current.download_unlock_requested = True

        project = await self._projects.mutate(project_id, project_id, change)
        if project is None:
            raise NotFoundError("Project not found.")

        logger.info("Download unlock requested — project=%s user=%s", project_id, user_id)
        await notify_quietly(
            self._notifier,
            project_id,
            NotificationKind.DOWNLOAD_UNLOCK_REQUESTED,
            recipient_id=project.assigned_pm_id,
            details={"requested_by": user_id},
        )
        return project

    @returns_result
    async def unlock_project_downloads(
        self, project_id: str, caller_id: str, caller_role: Role
    ) -> Project:
        """Mark the project paid and completed so its client can download. Admin/PM only."""
        if caller_role not in MANAGER_ROLES:
            raise UnauthorizedError(
                "Only admins or project managers can unlock downloads."
            )
        now = utcnow()

        def change(project: Project) -> None:
            lifecycle.apply(project, ProjectEvent.DOWNLOADS_UNLOCKED)
            project.payment_status = PaymentStatus.FULL_PAID
            project.downloads_unlocked = True
            project.download_unlock_requested = False
            project.notes.append(
                AuditNote(
                    event="DOWNLOADS_UNLOCKED",
                    actor_id=caller_id,
                    actor_role=caller_role,
                    at=now,
                    details=(
                        f"Downloads unlocked by {caller_id} ({caller_role}) at {now.isoformat()}"
                    ),
                )
            )

        project = await self._projects.mutate(project_id, project_id, change)
        if project is None:
            raise NotFoundError("Project not found.")

        logger.info(
            "Downloads unlocked — project=%s by=%s role=%s", project_id, caller_id, caller_role
        )
        await notify_quietly(self._notifier, project_id, NotificationKind.COMPLETED)
        return project
