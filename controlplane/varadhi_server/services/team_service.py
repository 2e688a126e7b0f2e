"""Team lifecycle; teams live under an existing org and own projects."""

from __future__ import annotations

import logging
from typing import List, Optional

from ..db import VaradhiMetaStore
from ..entities import ResourceType, Team, team_resource_id, validate_name
from ..errors import InvalidOperationError, ResourceNotFoundError
from .role_binding_service import RoleBindingService

logger = logging.getLogger(__name__)


class TeamService:
    def __init__(
        self,
        meta_store: VaradhiMetaStore,
        role_binding_service: Optional[RoleBindingService] = None,
    ) -> None:
        self.meta_store = meta_store
        self.role_binding_service = role_binding_service

    async def create_team(self, team: Team) -> Team:
        """Create a team in an existing org.

        Raises:
            InvalidResourceError: If the team or org name is invalid
            ResourceNotFoundError: If the org does not exist
            DuplicateResourceError: If the org already has this team
        """
        team.validate()
        validate_name(team.org, "Org")
        if not await self.meta_store.org_exists(team.org):
            raise ResourceNotFoundError(f"Org({team.org}) not found.")
        await self.meta_store.create_team(team)
        logger.info(
            f"Created Team({team.name}) in Org({team.org})",
            extra={"org": team.org, "team": team.name},
        )
        return team

    async def get_team(self, name: str, org: str) -> Team:
        return await self.meta_store.get_team(name, org)

    async def get_teams(self, org: str) -> List[Team]:
        return await self.meta_store.get_teams(org)

    async def update_team(self, team: Team) -> Team:
        """Version-guarded rewrite of a team."""
        team.validate()
        await self.meta_store.update_team(team)
        return team

    async def delete_team(self, name: str, org: str) -> None:
        """Delete a team that owns no projects.

        Raises:
            ResourceNotFoundError: If the team does not exist
            InvalidOperationError: If the team still has projects
        """
        if not await self.meta_store.team_exists(name, org):
            raise ResourceNotFoundError(f"Team({name}) not found.")
        if await self.meta_store.get_projects(name, org):
            raise InvalidOperationError(
                f"Can not delete Team({name}) as it has associated Project(s)."
            )
        await self.meta_store.delete_team(name, org)
        if self.role_binding_service is not None:
            await self.role_binding_service.discard_iam_policy(
                ResourceType.TEAM, team_resource_id(org, name)
            )
        logger.info(f"Deleted Team({name}) in Org({org})", extra={"org": org, "team": name})
