"""Tests for CommentThreadEngine."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from cutroom.database.repositories import CommentRepository, RevisionRepository
from cutroom.errors import ErrorCode
from cutroom.events import NotificationKind
from cutroom.models.comment import CommentStatus
from cutroom.models.identity import AuthenticatedIdentity, GuestIdentity
from cutroom.services.comments import CommentThreadEngine


@pytest.fixture
def engine(
    revisions: RevisionRepository, comments: CommentRepository, notifier: AsyncMock
) -> CommentThreadEngine:
    return CommentThreadEngine(revisions, comments, notifier)


@pytest.fixture
def guest() -> GuestIdentity:
    return GuestIdentity(name="Ada", email="ada@x.com")


class TestAddComment:
    """Test the Add Comment operation."""

    async def test_guest_comment_then_editor_reply(
        self,
        engine: CommentThreadEngine,
        make_revision,
        guest: GuestIdentity,
        editor_user: AuthenticatedIdentity,
        comments: CommentRepository,
    ) -> None:
        """Verify a reply is threaded under the comment and leaves it open."""
        await make_revision(id="r1")

        added = await engine.add_comment("r1", 42.5, "fix the color", [], guest)
        reply = await engine.add_reply(added.value.id, "On it", [], editor_user)

        assert added.ok
        assert reply.ok
        stored = await comments.get(added.value.id, added.value.id)
        assert stored.timestamp == 42.5
        assert stored.author == guest
        assert stored.project_id == "proj-1"
        assert stored.status == CommentStatus.OPEN
        assert len(stored.replies) == 1
        assert stored.replies[0].author == editor_user
        assert stored.replies[0].content == "On it"

    async def test_comment_requires_identity(
        self, engine: CommentThreadEngine, make_revision
    ) -> None:
        """Verify an anonymous caller is asked for a name and email."""
        await make_revision(id="r1")

        result = await engine.add_comment("r1", 1.0, "hello", [], None)

        assert result.error == ErrorCode.UNAUTHORIZED
        assert "name and email" in result.reason

    async def test_comment_on_missing_revision(
        self, engine: CommentThreadEngine, guest: GuestIdentity
    ) -> None:
        """Verify comments need an existing revision."""
        result = await engine.add_comment("nope", 1.0, "hello", [], guest)

        assert result.error == ErrorCode.NOT_FOUND

    async def test_resubmitted_id_returns_stored_comment(
        self,
        engine: CommentThreadEngine,
        make_revision,
        guest: GuestIdentity,
        comments: CommentRepository,
    ) -> None:
        """Verify a retried submission with the same id does not duplicate the comment."""
        await make_revision(id="r1")

        first = await engine.add_comment("r1", 3.0, "too loud", [], guest, comment_id="c-tmp")
        second = await engine.add_comment("r1", 3.0, "too loud", [], guest, comment_id="c-tmp")

        assert first.ok
        assert second.ok
        assert second.value.id == "c-tmp"
        assert len(await comments.list_by_revision("r1")) == 1

    async def test_guest_comments_share_author_key(
        self, engine: CommentThreadEngine, make_revision, guest: GuestIdentity
    ) -> None:
        """Verify a guest's comments are attributed to the same author id."""
        await make_revision(id="r1")

        first = await engine.add_comment("r1", 1.0, "a", [], guest)
        second = await engine.add_comment(
            "r1", 2.0, "b", [], GuestIdentity(name="Ada", email="ADA@x.com ")
        )

        assert first.value.author.user_id == second.value.author.user_id == "guest-ada@x.com"

    async def test_comment_signals_dispatcher(
        self,
        engine: CommentThreadEngine,
        make_revision,
        guest: GuestIdentity,
        notifier: AsyncMock,
    ) -> None:
        """Verify a new comment is signalled against the owning project."""
        await make_revision(id="r1")

        result = await engine.add_comment("r1", 1.0, "hello", [], guest)

        notifier.notify.assert_awaited_once_with(
            "proj-1",
            NotificationKind.COMMENT_ADDED,
            recipient_id=None,
            details={
                "revision_id": "r1",
                "comment_id": result.value.id,
                "author_id": "guest-ada@x.com",
            },
        )


class TestReplies:
    """Test the Add Reply operation."""

    async def test_concurrent_replies_both_survive(
        self,
        engine: CommentThreadEngine,
        make_revision,
        guest: GuestIdentity,
        editor_user: AuthenticatedIdentity,
        comments: CommentRepository,
    ) -> None:
        """Verify two simultaneous replies are both kept."""
        await make_revision(id="r1")
        comment = (await engine.add_comment("r1", 5.0, "hmm", [], guest)).value

        first, second = await asyncio.gather(
            engine.add_reply(comment.id, "first", [], editor_user),
            engine.add_reply(comment.id, "second", [], guest),
        )

        assert first.ok
        assert second.ok
        stored = await comments.get(comment.id, comment.id)
        assert {reply.content for reply in stored.replies} == {"first", "second"}

    async def test_retried_reply_id_is_stored_once(
        self,
        engine: CommentThreadEngine,
        make_revision,
        guest: GuestIdentity,
        comments: CommentRepository,
        notifier: AsyncMock,
    ) -> None:
        """Verify resending a reply with the same id does not duplicate it."""
        await make_revision(id="r1")
        comment = (await engine.add_comment("r1", 5.0, "hmm", [], guest)).value
        notifier.notify.reset_mock()

        first = await engine.add_reply(comment.id, "agreed", [], guest, reply_id="rep-1")
        again = await engine.add_reply(comment.id, "agreed", [], guest, reply_id="rep-1")

        assert first.ok
        assert again.ok
        assert again.value.id == "rep-1"
        assert again.value.created_at == first.value.created_at
        stored = await comments.get(comment.id, comment.id)
        assert [reply.id for reply in stored.replies] == ["rep-1"]
        assert notifier.notify.await_count == 1

    async def test_reply_to_missing_comment(
        self, engine: CommentThreadEngine, guest: GuestIdentity
    ) -> None:
        """Verify replying to an unknown comment reports not_found."""
        result = await engine.add_reply("nope", "hi", [], guest)

        assert result.error == ErrorCode.NOT_FOUND

    async def test_reply_requires_identity(
        self, engine: CommentThreadEngine, make_revision, guest: GuestIdentity
    ) -> None:
        """Verify anonymous replies are refused."""
        await make_revision(id="r1")
        comment = (await engine.add_comment("r1", 5.0, "hmm", [], guest)).value

        result = await engine.add_reply(comment.id, "hi", [], None)

        assert result.error == ErrorCode.UNAUTHORIZED

    async def test_reply_keeps_attachments(
        self,
        engine: CommentThreadEngine,
        make_revision,
        guest: GuestIdentity,
        comments: CommentRepository,
    ) -> None:
        """Verify attachment references are stored with the reply."""
        await make_revision(id="r1")
        comment = (await engine.add_comment("r1", 5.0, "hmm", [], guest)).value

        await engine.add_reply(comment.id, "see frame", ["frames/120.png"], guest)

        stored = await comments.get(comment.id, comment.id)
        assert stored.replies[0].attachments == ["frames/120.png"]


class TestToggleResolve:
    """Test the Toggle Resolve operation."""

    async def test_toggle_flips_status_both_ways(
        self, engine: CommentThreadEngine, make_revision, guest: GuestIdentity
    ) -> None:
        """Verify open becomes resolved and back."""
        await make_revision(id="r1")
        comment = (await engine.add_comment("r1", 5.0, "hmm", [], guest)).value

        resolved = await engine.toggle_resolve(comment.id)
        reopened = await engine.toggle_resolve(comment.id)

        assert resolved.value.status == CommentStatus.RESOLVED
        assert reopened.value.status == CommentStatus.OPEN

    async def test_toggle_preserves_replies(
        self,
        engine: CommentThreadEngine,
        make_revision,
        guest: GuestIdentity,
        editor_user: AuthenticatedIdentity,
    ) -> None:
        """Verify resolving does not drop the thread."""
        await make_revision(id="r1")
        comment = (await engine.add_comment("r1", 5.0, "hmm", [], guest)).value
        await engine.add_reply(comment.id, "done", [], editor_user)

        resolved = await engine.toggle_resolve(comment.id)

        assert len(resolved.value.replies) == 1

    async def test_toggle_missing_comment(self, engine: CommentThreadEngine) -> None:
        """Verify toggling an unknown comment reports not_found."""
        result = await engine.toggle_resolve("nope")

        assert result.error == ErrorCode.NOT_FOUND


class TestListComments:
    """Test timeline ordering."""

    async def test_comments_in_timeline_order(
        self, engine: CommentThreadEngine, make_revision, guest: GuestIdentity
    ) -> None:
        """Verify comments come back sorted by playback position."""
        await make_revision(id="r1")
        for position in (30.0, 2.5, 12.0):
            await engine.add_comment("r1", position, f"at {position}", [], guest)

        listed = await engine.list_comments("r1")

        assert [c.timestamp for c in listed] == [2.5, 12.0, 30.0]
