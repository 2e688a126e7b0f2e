"""
Hierarchical authorization resolution.

Decides whether a subject may perform an action on a resource path by
walking the tenancy tree from the most specific resource up to the root:

    [TOPIC|SUBSCRIPTION (leaf actions only)] -> PROJECT -> TEAM -> ORG -> ROOT

A single role bound anywhere on that chain that permits the action grants
access. There is no deny rule and no requirement that every level grants.

Invariants:
    - is_authorized never raises for malformed paths; it returns False
    - Empty resource ids have no roles
    - Persisted bindings apply only to their own resource type; seed
      bindings from configuration are untyped and match by id alone
    - Role definitions are fixed after init(); bindings are swapped whole

How to change safely:
    - Candidate order is part of the contract (leaf first, root last)
    - Snapshots must stay immutable; refresh by replacing, never mutating
"""

from __future__ import annotations

import logging
from abc import abstractmethod
from collections import defaultdict
from types import MappingProxyType
from typing import TYPE_CHECKING, Dict, FrozenSet, Iterable, List, Mapping, Protocol, Set, Tuple

from ..entities import ResourceAction, ResourcePath, ResourceType, Role, RoleBindingNode
from .options import AuthorizationConfiguration, RoleBindings

if TYPE_CHECKING:
    from ..db import VaradhiMetaStore

logger = logging.getLogger(__name__)

TypedBindings = Mapping[Tuple[ResourceType, str], Mapping[str, FrozenSet[str]]]


class AuthorizationProvider(Protocol):
    """Decides (subject, action, resource path) authorization requests."""

    @abstractmethod
    def init(self, configuration: AuthorizationConfiguration) -> None:
        ...

    @abstractmethod
    def is_authorized(self, subject: str, action: ResourceAction, resource: str) -> bool:
        ...


class DefaultAuthorizationProvider:
    """Allow-list, OR-across-ancestors authorization over role bindings.

    Role definitions come from configuration and are loaded exactly once.
    Role bindings are the configuration's seed bindings plus the persisted
    RoleBindingNodes keyed by (resource type, resource id), so an org and a
    project sharing a name never share grants. refresh_role_bindings() swaps
    in a new immutable snapshot, so lookups need no locking.

    Thread safety:
        is_authorized is safe for concurrent use; it reads one snapshot
        reference per call.

    Example:
        >>> provider = DefaultAuthorizationProvider()
        >>> provider.init(load_authorization_config("authorizationConfig.yaml"))
        >>> provider.is_authorized("xyz", ResourceAction.ORG_CREATE, "public")
        True
    """

    def __init__(self) -> None:
        self._roles: Mapping[str, Role] = MappingProxyType({})
        self._seed_bindings: RoleBindings = MappingProxyType({})
        self._bindings: TypedBindings = MappingProxyType({})
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def roles(self) -> Mapping[str, Role]:
        return self._roles

    def init(self, configuration: AuthorizationConfiguration) -> None:
        """Install role definitions and seed bindings.

        Raises:
            RuntimeError: If called twice (role definitions are never reloaded)
        """
        if self._initialized:
            raise RuntimeError("Authorization provider is already initialized")
        self._roles = configuration.roles
        self._seed_bindings = configuration.role_bindings
        self._initialized = True
        logger.info(
            "Authorization provider initialized",
            extra={"roles": len(self._roles), "seed_bindings": len(self._seed_bindings)},
        )

    def refresh_role_bindings(self, nodes: Iterable[RoleBindingNode]) -> None:
        """Replace the persisted binding snapshot with these nodes."""
        merged: Dict[Tuple[ResourceType, str], Dict[str, Set[str]]] = defaultdict(
            lambda: defaultdict(set)
        )
        for node in nodes:
            for subject, roles in node.role_bindings.items():
                merged[(node.resource_type, node.resource_id)][subject].update(roles)
        self._bindings = MappingProxyType(
            {
                key: MappingProxyType(
                    {subject: frozenset(roles) for subject, roles in subjects.items()}
                )
                for key, subjects in merged.items()
            }
        )
        logger.debug(f"Role binding snapshot refreshed: {len(self._bindings)} resources")

    async def load_role_bindings(self, meta_store: "VaradhiMetaStore") -> None:
        """Refresh the snapshot from the persisted role binding nodes."""
        self.refresh_role_bindings(await meta_store.get_role_binding_nodes())

    def resolve_ordered_from_leaf(
        self, action: ResourceAction, resource: str
    ) -> List[Tuple[ResourceType, str]]:
        """Candidate (resource type, resource id) pairs, leaf first, root last."""
        path = ResourcePath.parse(resource if isinstance(resource, str) else None)
        candidates: List[Tuple[ResourceType, str]] = []
        if action.resource_type.is_leaf:
            candidates.append((action.resource_type, path.leaf_id()))
        candidates.append((ResourceType.PROJECT, path.project_id()))
        candidates.append((ResourceType.TEAM, path.team_id()))
        candidates.append((ResourceType.ORG, path.org_id()))
        candidates.append((ResourceType.ROOT, path.root_id()))
        return candidates

    def get_roles_for_subject(
        self, subject: str, resource_type: ResourceType, resource_id: str
    ) -> FrozenSet[str]:
        if not resource_id:
            return frozenset()
        seeded = self._seed_bindings.get(resource_id, {}).get(subject, frozenset())
        bound = self._bindings.get((resource_type, resource_id), {}).get(subject, frozenset())
        return seeded | bound

    def is_authorized(self, subject: str, action: ResourceAction, resource: str) -> bool:
        """Check if subject may perform action on the resource path.

        Args:
            subject: User identifier
            action: Action being performed
            resource: ``{org}/{team}/{project}/{topic|subscription}``, possibly
                truncated at any level

        Returns:
            True on the first candidate with a role permitting the action
        """
        for resource_type, resource_id in self.resolve_ordered_from_leaf(action, resource):
            if self._is_authorized_internal(subject, action, resource_type, resource_id):
                logger.debug(
                    f"Authorized {subject} for {action.name} via {resource_type.name}({resource_id})"
                )
                return True
        return False

    def _is_authorized_internal(
        self,
        subject: str,
        action: ResourceAction,
        resource_type: ResourceType,
        resource_id: str,
    ) -> bool:
        logger.debug(
            f"Checking authorization for subject [{subject}] and action [{action.name}] "
            f"on resource [{resource_id}]"
        )
        for role_id in self.get_roles_for_subject(subject, resource_type, resource_id):
            role = self._roles.get(role_id)
            if role is not None and role.permits(action):
                return True
        return False
