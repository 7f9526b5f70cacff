"""Repository modules for each Cosmos DB container."""

from cutroom.database.repositories.comments import CommentRepository
from cutroom.database.repositories.projects import ProjectRepository
from cutroom.database.repositories.revisions import RevisionRepository

__all__ = [
    "CommentRepository",
    "ProjectRepository",
    "RevisionRepository",
]
