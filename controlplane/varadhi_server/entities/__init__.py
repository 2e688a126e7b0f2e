"""
Entity and hierarchy model for the Varadhi control plane.

This module provides:
- The resource hierarchy (ResourceType, ResourceAction, ResourcePath)
- Versioned administrative entities (Org, Team, Project, TopicResource)
- Deployed topic model (VaradhiTopic, InternalTopic, StorageTopic)
- Roles and role binding nodes

Invariants:
    - Entity versions are owned by the metadata store
    - Missing path levels resolve to empty ids, never None
"""

from .auth import IamPolicyRequest, Role, RoleBindingNode
from .base import INITIAL_VERSION, NAME_SEPARATOR, VersionedEntity, validate_name
from .resources import (
    ROOT_RESOURCE_ID,
    ResourceAction,
    ResourcePath,
    ResourceType,
    leaf_resource_id,
    team_resource_id,
)
from .tenancy import Org, Project, Team
from .topic import (
    CapacityPolicy,
    InternalTopic,
    StorageTopic,
    TopicResource,
    TopicState,
    VaradhiTopic,
    build_topic_name,
)

__all__ = [
    # Hierarchy
    "ResourceType",
    "ResourceAction",
    "ResourcePath",
    "ROOT_RESOURCE_ID",
    "team_resource_id",
    "leaf_resource_id",
    # Versioned entities
    "VersionedEntity",
    "INITIAL_VERSION",
    "NAME_SEPARATOR",
    "validate_name",
    "Org",
    "Team",
    "Project",
    "TopicResource",
    "CapacityPolicy",
    # Deployment
    "VaradhiTopic",
    "InternalTopic",
    "TopicState",
    "StorageTopic",
    "build_topic_name",
    # Auth
    "Role",
    "RoleBindingNode",
    "IamPolicyRequest",
]
