"""FastAPI application factory for the review and delivery API."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

import uvicorn
from fastapi import FastAPI, Request
from starlette.middleware.sessions import SessionMiddleware

from cutroom import __version__
from cutroom.config import load_settings
from cutroom.events import ServiceBusNotificationDispatcher
from cutroom.health import check_emulators
from cutroom.logging import configure_logging
from cutroom.models.base import utcnow
from cutroom.review import CommentFeed
from cutroom.routes import comments, projects, revisions
from cutroom.startup import build_services, init_database
from cutroom.storage import DownloadUrlSigner

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from cutroom.config import Settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open the store, wire the coordinators onto ``app.state`` and tear down on exit."""
    settings: Settings = app.state.settings
    configure_logging(settings.app.log_level)
    logger.info("Cutroom starting — env=%s version=%s", settings.app.env, __version__)

    if settings.app.is_development and not await check_emulators(settings):
        msg = "Local emulators are not reachable"
        raise RuntimeError(msg)

    cosmos = await init_database(settings)
    notifier = ServiceBusNotificationDispatcher(settings.servicebus)
    signer = DownloadUrlSigner(settings.storage)
    services = build_services(
        cosmos.database,
        settings,
        notifier=notifier,
        signer=signer,
        clock=app.state.clock,
    )
    feed = CommentFeed(cosmos.database)
    await feed.start()

    app.state.cosmos = cosmos
    app.state.notifier = notifier
    app.state.signer = signer
    app.state.project_service = services.projects
    app.state.assignments = services.assignments
    app.state.ledger = services.ledger
    app.state.downloads = services.downloads
    app.state.comments = services.comments
    app.state.comment_feed = feed

    try:
        yield
    finally:
        logger.info("Cutroom shutting down")
        await feed.stop()
        await notifier.close()
        await cosmos.close()
        logger.info("Cutroom shutdown complete")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the application. Settings are read from the environment when omitted."""
    settings = settings or load_settings()
    app = FastAPI(title="Cutroom", version=__version__, lifespan=lifespan)
    app.state.settings = settings
    app.state.clock = utcnow

    app.add_middleware(SessionMiddleware, secret_key=settings.app.session_secret)
    app.include_router(projects.router)
    app.include_router(revisions.router)
    app.include_router(comments.router)

    @app.get("/health", tags=["status"])
    async def health(request: Request) -> dict[str, Any]:
        state = request.app.state
        return {
            "status": "ok",
            "environment": state.settings.app.env,
            "version": __version__,
            "notifications": state.notifier.enabled,
            "signed_downloads": state.signer.enabled,
        }

    return app


def main() -> None:
    """Run the API with uvicorn."""
    uvicorn.run("cutroom.app:create_app", factory=True, host="0.0.0.0", port=8000)  # noqa: S104


if __name__ == "__main__":
    main()
