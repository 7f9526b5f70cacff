"""Startup wiring — opens the store and builds the coordinators the routes use."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from azure.core.exceptions import AzureError

from cutroom.database.client import CosmosClient
from cutroom.database.repositories import (
    CommentRepository,
    ProjectRepository,
    RevisionRepository,
)
from cutroom.models.base import utcnow
from cutroom.services import (
    AssignmentCoordinator,
    CommentThreadEngine,
    DownloadGate,
    ProjectService,
    RevisionLedger,
)

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime

    from azure.cosmos.aio import DatabaseProxy

    from cutroom.config import Settings
    from cutroom.events import NotificationDispatcher
    from cutroom.storage import DownloadUrlSigner

logger = logging.getLogger(__name__)


@dataclass
class Services:
    projects: ProjectService
    assignments: AssignmentCoordinator
    ledger: RevisionLedger
    downloads: DownloadGate
    comments: CommentThreadEngine


async def init_database(settings: Settings) -> CosmosClient:
    """Open the Cosmos DB client. Raises ``ConnectionError`` when it cannot be created."""
    cosmos = CosmosClient(settings.cosmos)
    try:
        await cosmos.initialize()
    except (AzureError, ValueError) as exc:
        await cosmos.close()
        msg = f"Cannot connect to Cosmos DB at {settings.cosmos.endpoint or '(unset)'}: {exc}"
        raise ConnectionError(msg) from exc
    return cosmos


def build_services(
    database: DatabaseProxy,
    settings: Settings,
    *,
    notifier: NotificationDispatcher | None = None,
    signer: DownloadUrlSigner | None = None,
    clock: Callable[[], datetime] = utcnow,
) -> Services:
    """Create the repositories and the coordinators that share them."""
    projects = ProjectRepository(database)
    revisions = RevisionRepository(database)
    comments = CommentRepository(database)
    policy = settings.policy

    services = Services(
        projects=ProjectService(projects, notifier),
        assignments=AssignmentCoordinator(
            projects, notifier, window=policy.assignment_window, clock=clock
        ),
        ledger=RevisionLedger(projects, revisions, notifier),
        downloads=DownloadGate(
            projects,
            revisions,
            signer,
            notifier,
            limit=policy.download_limit,
            url_ttl=policy.download_url_ttl,
        ),
        comments=CommentThreadEngine(revisions, comments, notifier),
    )
    logger.info(
        "Services ready — download_limit=%d assignment_window=%s",
        policy.download_limit,
        policy.assignment_window,
    )
    return services
