"""Repository for the projects container (partitioned by /id)."""

from __future__ import annotations

from cutroom.database.repositories.base import BaseRepository
from cutroom.models.project import Project


class ProjectRepository(BaseRepository[Project]):
    container_name = "projects"
    model_class = Project

    async def replace_if_unchanged(self, item: Project, partition_key: str) -> Project | None:
        item.version += 1
        return await super().replace_if_unchanged(item, partition_key)

    async def list_for_member(self, user_id: str) -> list[Project]:
        """Fetch projects a user owns or has been given access to."""
        return await self.query(
            "SELECT * FROM c WHERE c.owner_id = @user_id"
            " OR c.client_id = @user_id"
            " OR ARRAY_CONTAINS(c.members, @user_id)"
            " ORDER BY c.updated_at DESC",
            [{"name": "@user_id", "value": user_id}],
        )

