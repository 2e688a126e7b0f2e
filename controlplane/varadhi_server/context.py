"""
Server context: the wired-up control plane components.

Builds, in order: node tree -> VaradhiMetaStore -> authorization provider
-> owning services. The HTTP app holds one context for its lifetime.

Invariants:
    - The metadata layout exists before any service is used
    - Role definitions are installed once, before the first request
    - The role binding snapshot is loaded from the store at startup
    - A start that fails after connecting leaves the tree closed

How to change safely:
    - Keep start()/stop() idempotent; the app lifespan and tests both call them
    - New components must be closed in stop() in reverse start order
"""

from __future__ import annotations

import logging

from .auth import (
    AuthorizationConfiguration,
    DefaultAuthorizationProvider,
    load_authorization_config,
)
from .config import ServerConfig
from .core import DefaultStorageTopicFactory, StorageTopicFactory, VaradhiTopicFactory
from .db import NodeTree, VaradhiMetaStore, create_node_tree
from .entities import Org, Project, Team
from .errors import DuplicateResourceError
from .services import (
    OrgService,
    ProjectService,
    RoleBindingService,
    TeamService,
    TopicService,
)

logger = logging.getLogger(__name__)


class ServerContext:
    """Control plane component graph.

    Attributes:
        config: Server configuration
        tree: Node tree backend
        meta_store: Entity store over the tree
        authorization_provider: Provider deciding admin requests
        org_service, team_service, project_service, topic_service,
        role_binding_service: Owning services

    Example:
        >>> context = ServerContext(config, tree=InMemoryNodeTree())
        >>> await context.start()
        >>> await context.org_service.create_org(Org("public"))
        >>> await context.stop()
    """

    def __init__(
        self,
        config: ServerConfig,
        tree: NodeTree | None = None,
        storage_topic_factory: StorageTopicFactory | None = None,
        authorization: AuthorizationConfiguration | None = None,
    ) -> None:
        """Initialize the context.

        Args:
            config: Server configuration
            tree: Node tree to use instead of the configured backend
            storage_topic_factory: Storage layer topic planner
            authorization: Role configuration to use instead of the YAML file
        """
        self.config = config
        self.tree = tree or create_node_tree(config)
        self.meta_store = VaradhiMetaStore(self.tree, config.metastore.root_path)
        self.authorization_provider = DefaultAuthorizationProvider()
        self._authorization = authorization

        self.topic_factory = VaradhiTopicFactory(
            storage_topic_factory or DefaultStorageTopicFactory(),
            config.rest.deployed_region,
        )
        self.role_binding_service = RoleBindingService(
            self.meta_store, provider=self.authorization_provider
        )
        self.org_service = OrgService(self.meta_store, self.role_binding_service)
        self.team_service = TeamService(self.meta_store, self.role_binding_service)
        self.project_service = ProjectService(self.meta_store, self.role_binding_service)
        self.topic_service = TopicService(
            self.meta_store, self.topic_factory, self.role_binding_service
        )
        self._started = False
        self._in_rotation = True

    @property
    def authorization_enabled(self) -> bool:
        return self.config.authorization.enabled

    def is_super_user(self, subject: str) -> bool:
        return subject in self.config.authorization.super_users

    @property
    def in_rotation(self) -> bool:
        return self._in_rotation

    def bring_out_of_rotation(self) -> None:
        """Make the health check answer 503 so load balancers drain this node."""
        self._in_rotation = False
        logger.info("Control plane taken out of rotation")

    async def start(self) -> None:
        """Connect the store and load authorization state."""
        if self._started:
            return

        await self.tree.connect()
        try:
            await self._load()
        except Exception:
            await self.tree.close()
            raise

        self._started = True
        self._in_rotation = True
        logger.info(
            "Control plane context started",
            extra={
                "region": self.config.rest.deployed_region,
                "authz_enabled": self.authorization_enabled,
            },
        )

    async def _load(self) -> None:
        await self.meta_store.init()

        configuration = self._authorization
        if configuration is None and self.config.authorization.config_file:
            configuration = load_authorization_config(self.config.authorization.config_file)
        if configuration is not None:
            self.authorization_provider.init(configuration)
            await self.authorization_provider.load_role_bindings(self.meta_store)
        elif self.authorization_enabled:
            raise RuntimeError("Authorization is enabled but no role configuration was given")

        if self.config.rest.bootstrap_defaults:
            await self._bootstrap_default_tenancy()

    async def _bootstrap_default_tenancy(self) -> None:
        rest = self.config.rest
        entities = (
            (self.org_service.create_org, Org(rest.default_org)),
            (self.team_service.create_team, Team(rest.default_team, org=rest.default_org)),
            (
                self.project_service.create_project,
                Project(rest.default_project, org=rest.default_org, team=rest.default_team),
            ),
        )
        for create, entity in entities:
            try:
                await create(entity)
            except DuplicateResourceError:
                logger.debug(f"Default {entity.KIND}({entity.name}) already exists")

    async def stop(self) -> None:
        if not self._started:
            return
        await self.tree.close()
        self._started = False
        logger.info("Control plane context stopped")
