"""
Entity-level metadata CRUD and the persisted layout.

Layout (under the configured root, default /varadhi):

    /orgs/<org>                              Org
    /orgs/<org>/teams/<team>                 Team
    /projects/<project>                      Project
    /topics/<project>:<topic>                TopicResource
    /roleBindings/<RESOURCE_TYPE>/<id>       RoleBindingNode

Structural constraints (an org with teams cannot go, a project needs its
team) belong to the services layer; this module only maps kinds and names
to paths and delegates to MetaStore.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from ..entities import (
    Org,
    Project,
    ResourceType,
    RoleBindingNode,
    Team,
    TopicResource,
    leaf_resource_id,
)
from ..entities.resources import ID_SEPARATOR
from ..errors import ResourceNotFoundError
from .base import NodeTree
from .meta_store import MetaStore, ZNode

logger = logging.getLogger(__name__)

ORGS = "orgs"
TEAMS = "teams"
PROJECTS = "projects"
TOPICS = "topics"
ROLE_BINDINGS = "roleBindings"


class VaradhiMetaStore:
    """Per-kind CRUD over the persisted layout.

    Example:
        >>> store = VaradhiMetaStore(tree, root_path="/varadhi")
        >>> await store.init()
        >>> await store.create_org(Org("public"))
        >>> [o.name for o in await store.get_orgs()]
        ['public']
    """

    def __init__(self, tree: NodeTree, root_path: str = "/varadhi") -> None:
        self.root_path = root_path.rstrip("/")
        self.store = MetaStore(tree)

    async def init(self) -> None:
        """Create the entity directories so empty listings return []."""
        for directory in (ORGS, PROJECTS, TOPICS, ROLE_BINDINGS):
            await self.store.create_path(self._path(directory))
        logger.info(f"Metadata layout initialized under {self.root_path}")

    def _path(self, *parts: str) -> str:
        return "/".join((self.root_path,) + parts)

    # Orgs

    def _org_znode(self, name: str) -> ZNode:
        return ZNode(Org.KIND, name, self._path(ORGS, name))

    async def create_org(self, org: Org) -> None:
        await self.store.create(self._org_znode(org.name), org)

    async def get_org(self, name: str) -> Org:
        return await self.store.get(self._org_znode(name), Org)

    async def get_org_names(self) -> List[str]:
        return await self.store.list_children(ZNode(Org.KIND, ORGS, self._path(ORGS)))

    async def get_orgs(self) -> List[Org]:
        return [await self.get_org(name) for name in await self.get_org_names()]

    async def org_exists(self, name: str) -> bool:
        return await self.store.exists(self._org_znode(name))

    async def update_org(self, org: Org) -> int:
        return await self.store.update(self._org_znode(org.name), org)

    async def delete_org(self, name: str) -> None:
        """Delete an org and its (empty) team directory.

        Raises:
            ResourceNotFoundError: If the org does not exist
            InvalidOperationError: If the org still has teams
        """
        teams = self._teams_znode(name)
        if await self.store.exists(teams):
            await self.store.delete(teams)
        await self.store.delete(self._org_znode(name))

    # Teams

    def _teams_znode(self, org: str) -> ZNode:
        return ZNode(Team.KIND, f"{org}/{TEAMS}", self._path(ORGS, org, TEAMS))

    def _team_znode(self, name: str, org: str) -> ZNode:
        return ZNode(Team.KIND, name, self._path(ORGS, org, TEAMS, name))

    async def create_team(self, team: Team) -> None:
        await self.store.create(self._team_znode(team.name, team.org), team)

    async def get_team(self, name: str, org: str) -> Team:
        return await self.store.get(self._team_znode(name, org), Team)

    async def get_team_names(self, org: str) -> List[str]:
        """Names of the org's teams.

        Raises:
            ResourceNotFoundError: If the org does not exist
        """
        teams = self._teams_znode(org)
        if not await self.store.exists(teams):
            if not await self.org_exists(org):
                raise ResourceNotFoundError(f"Org({org}) not found.")
            return []
        return await self.store.list_children(teams)

    async def get_teams(self, org: str) -> List[Team]:
        return [await self.get_team(name, org) for name in await self.get_team_names(org)]

    async def team_exists(self, name: str, org: str) -> bool:
        return await self.store.exists(self._team_znode(name, org))

    async def update_team(self, team: Team) -> int:
        return await self.store.update(self._team_znode(team.name, team.org), team)

    async def delete_team(self, name: str, org: str) -> None:
        await self.store.delete(self._team_znode(name, org))

    # Projects

    def _project_znode(self, name: str) -> ZNode:
        return ZNode(Project.KIND, name, self._path(PROJECTS, name))

    async def create_project(self, project: Project) -> None:
        await self.store.create(self._project_znode(project.name), project)

    async def get_project(self, name: str) -> Project:
        return await self.store.get(self._project_znode(name), Project)

    async def get_project_names(self) -> List[str]:
        return await self.store.list_children(
            ZNode(Project.KIND, PROJECTS, self._path(PROJECTS))
        )

    async def get_projects(self, team: str, org: str) -> List[Project]:
        """Projects owned by a team."""
        projects = []
        for name in await self.get_project_names():
            project = await self.get_project(name)
            if project.team == team and project.org == org:
                projects.append(project)
        return projects

    async def project_exists(self, name: str) -> bool:
        return await self.store.exists(self._project_znode(name))

    async def update_project(self, project: Project) -> int:
        return await self.store.update(self._project_znode(project.name), project)

    async def delete_project(self, name: str) -> None:
        await self.store.delete(self._project_znode(name))

    # Topic resources

    def _topic_znode(self, name: str, project: str) -> ZNode:
        return ZNode(
            TopicResource.KIND,
            name,
            self._path(TOPICS, leaf_resource_id(project, name)),
        )

    async def create_topic_resource(self, topic: TopicResource) -> None:
        await self.store.create(self._topic_znode(topic.name, topic.project), topic)

    async def get_topic_resource(self, name: str, project: str) -> TopicResource:
        return await self.store.get(self._topic_znode(name, project), TopicResource)

    async def get_topic_resource_names(self, project: str) -> List[str]:
        prefix = f"{project}{ID_SEPARATOR}"
        children = await self.store.list_children(
            ZNode(TopicResource.KIND, TOPICS, self._path(TOPICS))
        )
        return [child[len(prefix):] for child in children if child.startswith(prefix)]

    async def get_topic_resources(self, project: str) -> List[TopicResource]:
        return [
            await self.get_topic_resource(name, project)
            for name in await self.get_topic_resource_names(project)
        ]

    async def topic_resource_exists(self, name: str, project: str) -> bool:
        return await self.store.exists(self._topic_znode(name, project))

    async def update_topic_resource(self, topic: TopicResource) -> int:
        return await self.store.update(self._topic_znode(topic.name, topic.project), topic)

    async def delete_topic_resource(self, name: str, project: str) -> None:
        await self.store.delete(self._topic_znode(name, project))

    # Role bindings

    def _role_binding_znode(self, resource_type: ResourceType, resource_id: str) -> ZNode:
        return ZNode(
            RoleBindingNode.KIND,
            f"{resource_type.name}/{resource_id}",
            self._path(ROLE_BINDINGS, resource_type.name, resource_id),
        )

    async def create_role_binding_node(self, node: RoleBindingNode) -> None:
        await self.store.create(
            self._role_binding_znode(node.resource_type, node.resource_id), node
        )

    async def get_role_binding_node(
        self, resource_type: ResourceType, resource_id: str
    ) -> RoleBindingNode:
        return await self.store.get(
            self._role_binding_znode(resource_type, resource_id), RoleBindingNode
        )

    async def get_role_binding_nodes(self) -> List[RoleBindingNode]:
        """All role binding nodes, grouped by resource type."""
        nodes = []
        root = ZNode(RoleBindingNode.KIND, ROLE_BINDINGS, self._path(ROLE_BINDINGS))
        for type_name in await self.store.list_children(root):
            type_dir = ZNode(
                RoleBindingNode.KIND, type_name, self._path(ROLE_BINDINGS, type_name)
            )
            resource_type = ResourceType[type_name]
            for resource_id in await self.store.list_children(type_dir):
                nodes.append(await self.get_role_binding_node(resource_type, resource_id))
        return nodes

    async def role_binding_node_exists(
        self, resource_type: ResourceType, resource_id: str
    ) -> bool:
        return await self.store.exists(self._role_binding_znode(resource_type, resource_id))

    async def update_role_binding_node(self, node: RoleBindingNode) -> int:
        return await self.store.update(
            self._role_binding_znode(node.resource_type, node.resource_id), node
        )

    async def delete_role_binding_node(
        self, resource_type: ResourceType, resource_id: str, version: Optional[int] = None
    ) -> None:
        await self.store.delete(self._role_binding_znode(resource_type, resource_id), version)
