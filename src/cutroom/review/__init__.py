"""Live review: the comment change feed and per-participant optimistic sessions."""

from cutroom.review.change_feed import CommentFeed
from cutroom.review.session import ReviewSession

__all__ = ["CommentFeed", "ReviewSession"]
