"""
Project lifecycle.

Projects are globally unique by name but always belong to one team of one
org. A project may move between teams of its org, never across orgs.

Invariants:
    - create requires the owning org and team to exist
    - update is version guarded; the caller presents the version it read
    - delete is refused while topics exist under the project
"""

from __future__ import annotations

import logging
from typing import List, Optional

from ..db import VaradhiMetaStore
from ..entities import Project, ResourceType
from ..errors import InvalidOperationError, InvalidResourceError, ResourceNotFoundError
from .role_binding_service import RoleBindingService

logger = logging.getLogger(__name__)


class ProjectService:
    def __init__(
        self,
        meta_store: VaradhiMetaStore,
        role_binding_service: Optional[RoleBindingService] = None,
    ) -> None:
        self.meta_store = meta_store
        self.role_binding_service = role_binding_service

    async def _ensure_team(self, team: str, org: str) -> None:
        if not await self.meta_store.org_exists(org):
            raise ResourceNotFoundError(f"Org({org}) not found.")
        if not await self.meta_store.team_exists(team, org):
            raise ResourceNotFoundError(f"Team({team}) not found.")

    async def create_project(self, project: Project) -> Project:
        """Create a project under an existing team.

        Raises:
            InvalidResourceError: If any name is invalid
            ResourceNotFoundError: If the org or team does not exist
            DuplicateResourceError: If the project name is taken
        """
        project.validate()
        await self._ensure_team(project.team, project.org)
        await self.meta_store.create_project(project)
        logger.info(
            f"Created Project({project.name})",
            extra={"org": project.org, "team": project.team, "project": project.name},
        )
        return project

    async def get_project(self, name: str) -> Project:
        return await self.meta_store.get_project(name)

    async def get_projects(self, team: str, org: str) -> List[Project]:
        """Projects of a team.

        Raises:
            ResourceNotFoundError: If the org or team does not exist
        """
        await self._ensure_team(team, org)
        return await self.meta_store.get_projects(team, org)

    async def update_project(self, project: Project) -> Project:
        """Change a project's team or description.

        Raises:
            ResourceNotFoundError: If the project or the new team does not exist
            InvalidResourceError: If the project would move to another org or
                nothing changes
            InvalidOperationError: If project.version is stale
        """
        project.validate()
        existing = await self.meta_store.get_project(project.name)
        if existing.org != project.org:
            raise InvalidResourceError(
                f"Project({project.name}) can not be moved across organisation.",
                field_name="org",
            )
        if existing.team == project.team and existing.description == project.description:
            raise InvalidResourceError(
                f"Project({project.name}) has same team name and description. "
                f"Nothing to update.",
                field_name="team",
            )
        if existing.team != project.team:
            await self._ensure_team(project.team, project.org)
        await self.meta_store.update_project(project)
        logger.info(
            f"Updated Project({project.name}) to version {project.version}",
            extra={"project": project.name, "team": project.team, "version": project.version},
        )
        return project

    async def delete_project(self, name: str) -> None:
        """Delete a project that has no topics.

        Raises:
            ResourceNotFoundError: If the project does not exist
            InvalidOperationError: If topics exist under the project
        """
        if not await self.meta_store.project_exists(name):
            raise ResourceNotFoundError(f"Project({name}) not found.")
        if await self.meta_store.get_topic_resource_names(name):
            raise InvalidOperationError(
                f"Can not delete Project({name}) as it has associated Topic(s)."
            )
        await self.meta_store.delete_project(name)
        if self.role_binding_service is not None:
            await self.role_binding_service.discard_iam_policy(ResourceType.PROJECT, name)
        logger.info(f"Deleted Project({name})", extra={"project": name})
