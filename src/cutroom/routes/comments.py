"""Comment routes — timeline comments, replies and resolution, open to guests."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fastapi import APIRouter, HTTPException, Request, status
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field, ValidationError

from cutroom.auth.middleware import current_identity, remember_guest
from cutroom.models.comment import Comment, Reply
from cutroom.models.identity import GuestIdentity, capture_guest_identity
from cutroom.routes.results import unwrap

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from cutroom.review import CommentFeed

router = APIRouter(tags=["comments"])

logger = logging.getLogger(__name__)

KEEPALIVE_SECONDS = 15.0


class GuestRequest(BaseModel):
    name: str
    email: str


class CommentRequest(BaseModel):
    timestamp: float = Field(ge=0)
    content: str
    attachments: list[str] = Field(default_factory=list)
    id: str | None = None


class ReplyRequest(BaseModel):
    content: str
    attachments: list[str] = Field(default_factory=list)
    id: str | None = None


@router.post("/reviews/guest")
async def join_as_guest(request: Request, body: GuestRequest) -> GuestIdentity:
    """Capture a guest reviewer's name and email for this session."""
    try:
        guest = capture_guest_identity(body.name, body.email)
    except ValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=[error["msg"] for error in exc.errors()],
        ) from exc
    remember_guest(request, guest)
    logger.info("Guest joined review — guest=%s", guest.user_id)
    return guest


@router.get("/revisions/{revision_id}/comments")
async def list_comments(request: Request, revision_id: str) -> list[Comment]:
    if current_identity(request) is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Identify yourself")
    return await request.app.state.comments.list_comments(revision_id)


@router.get("/revisions/{revision_id}/comments/stream")
async def stream_comments(request: Request, revision_id: str) -> StreamingResponse:
    """Server-sent events carrying every stored comment change on the revision."""
    if current_identity(request) is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Identify yourself")
    feed: CommentFeed = request.app.state.comment_feed
    return StreamingResponse(
        _comment_events(request, feed, revision_id),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


async def _comment_events(
    request: Request, feed: CommentFeed, revision_id: str
) -> AsyncIterator[str]:
    changes = feed.stream(revision_id, idle_timeout=KEEPALIVE_SECONDS)
    logger.info("Comment stream opened — revision=%s", revision_id)
    try:
        async for comment in changes:
            if await request.is_disconnected():
                break
            if comment is None:
                yield ": keep-alive\n\n"
            else:
                yield f"event: comment\ndata: {comment.model_dump_json()}\n\n"
    finally:
        await changes.aclose()
        logger.info("Comment stream closed — revision=%s", revision_id)


@router.post("/revisions/{revision_id}/comments", status_code=status.HTTP_201_CREATED)
async def add_comment(request: Request, revision_id: str, body: CommentRequest) -> Comment:
    """Anchor a comment at a playback position. ``id`` may carry a client-provisional id."""
    engine = request.app.state.comments
    return unwrap(
        await engine.add_comment(
            revision_id,
            body.timestamp,
            body.content,
            body.attachments,
            current_identity(request),
            comment_id=body.id,
        )
    )


@router.post("/comments/{comment_id}/replies", status_code=status.HTTP_201_CREATED)
async def add_reply(request: Request, comment_id: str, body: ReplyRequest) -> Reply:
    engine = request.app.state.comments
    return unwrap(
        await engine.add_reply(
            comment_id,
            body.content,
            body.attachments,
            current_identity(request),
            reply_id=body.id,
        )
    )


@router.post("/comments/{comment_id}/resolution")
async def toggle_resolve(request: Request, comment_id: str) -> Comment:
    """Flip the comment between open and resolved."""
    if current_identity(request) is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Identify yourself")
    return unwrap(await request.app.state.comments.toggle_resolve(comment_id))
