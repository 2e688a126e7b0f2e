"""Org lifecycle with the "no orphaned teams" constraint."""

from __future__ import annotations

import logging
from typing import List, Optional

from ..db import VaradhiMetaStore
from ..entities import Org, ResourceType
from ..errors import InvalidOperationError
from .role_binding_service import RoleBindingService

logger = logging.getLogger(__name__)


class OrgService:
    def __init__(
        self,
        meta_store: VaradhiMetaStore,
        role_binding_service: Optional[RoleBindingService] = None,
    ) -> None:
        self.meta_store = meta_store
        self.role_binding_service = role_binding_service

    async def create_org(self, org: Org) -> Org:
        org.validate()
        await self.meta_store.create_org(org)
        logger.info(f"Created Org({org.name})", extra={"org": org.name})
        return org

    async def get_org(self, name: str) -> Org:
        return await self.meta_store.get_org(name)

    async def get_orgs(self) -> List[Org]:
        return await self.meta_store.get_orgs()

    async def delete_org(self, name: str) -> None:
        """Delete an org that owns no teams.

        Raises:
            ResourceNotFoundError: If the org does not exist
            InvalidOperationError: If the org still has teams
        """
        if await self.meta_store.get_team_names(name):
            raise InvalidOperationError(
                f"Can not delete Org({name}) as it has associated Team(s)."
            )
        await self.meta_store.delete_org(name)
        if self.role_binding_service is not None:
            await self.role_binding_service.discard_iam_policy(ResourceType.ORG, name)
        logger.info(f"Deleted Org({name})", extra={"org": name})
