"""Repository for the revisions container (partitioned by /id)."""

from __future__ import annotations

from cutroom.database.repositories.base import BaseRepository
from cutroom.models.revision import Revision


class RevisionRepository(BaseRepository[Revision]):
    container_name = "revisions"
    model_class = Revision

    async def list_by_project(self, project_id: str) -> list[Revision]:
        """Fetch every revision of a project, newest version first."""
        return await self.query(
            "SELECT * FROM c WHERE c.project_id = @project_id ORDER BY c.version DESC",
            [{"name": "@project_id", "value": project_id}],
        )

    async def get_latest(self, project_id: str) -> Revision | None:
        """Return the highest-versioned revision of a project, if any."""
        results = await self.query(
            "SELECT TOP 1 * FROM c WHERE c.project_id = @project_id ORDER BY c.version DESC",
            [{"name": "@project_id", "value": project_id}],
        )
        return results[0] if results else None
