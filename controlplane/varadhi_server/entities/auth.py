"""
Roles and role bindings.

Roles are static (configuration driven); role binding nodes are persisted,
one per resource instance that has at least one explicit grant.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterable, Set

from .base import VersionedEntity
from .resources import ResourceAction, ResourceType


@dataclass(frozen=True)
class Role:
    """Named set of permitted actions.

    Attributes:
        role_id: Role identifier (e.g. "org.admin")
        permissions: Actions this role permits
    """

    role_id: str
    permissions: FrozenSet[ResourceAction] = frozenset()

    def permits(self, action: ResourceAction) -> bool:
        return action in self.permissions


@dataclass
class RoleBindingNode(VersionedEntity):
    """Role grants on a single resource instance.

    The entity name is the resource id, so a node is addressed by
    (resource_type, resource_id).

    Attributes:
        resource_type: Kind of the bound resource
        role_bindings: Subject -> role ids granted on this resource
    """

    KIND = "RoleBinding"

    resource_type: ResourceType = ResourceType.ROOT
    role_bindings: Dict[str, Set[str]] = field(default_factory=dict)

    @property
    def resource_id(self) -> str:
        return self.name

    def validate(self) -> None:
        # Resource ids are derived from already-validated names.
        pass

    def roles_for(self, subject: str) -> Set[str]:
        return set(self.role_bindings.get(subject, ()))

    def set_roles(self, subject: str, roles: Iterable[str]) -> None:
        """Replace the subject's roles; an empty set removes the subject."""
        roles = set(roles)
        if roles:
            self.role_bindings[subject] = roles
        else:
            self.role_bindings.pop(subject, None)

    def is_empty(self) -> bool:
        return not self.role_bindings

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "resource_type": self.resource_type.name,
            "role_bindings": {
                subject: sorted(roles) for subject, roles in sorted(self.role_bindings.items())
            },
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> RoleBindingNode:
        return cls(
            name=data["name"],
            resource_type=ResourceType[data["resource_type"]],
            role_bindings={
                subject: set(roles) for subject, roles in data.get("role_bindings", {}).items()
            },
        )


@dataclass
class IamPolicyRequest:
    """Set the roles of one subject on one resource."""

    subject: str
    roles: Set[str] = field(default_factory=set)
