"""
Resource hierarchy and path grammar.

This module defines the five-level tenancy tree used for addressing and
authorization:

    ROOT -> ORG -> TEAM -> PROJECT -> TOPIC | SUBSCRIPTION | QUEUE

Resource paths are "/"-delimited strings ``org/team/project/leaf``. Each
level's id is derived positionally:

    org id      = segment[0]
    team id     = segment[0]:segment[1]   (teams are unique only within an org)
    project id  = segment[2]              (projects are globally unique)
    leaf id     = segment[2]:segment[3]   (leaves are unique within a project)
    root id     = "ROOT"

Invariants:
    - A level whose segments are absent or empty resolves to "" (never None)
    - "" is never a valid bound resource id
    - The hierarchy depth is fixed at five levels

How to change safely:
    - Changing the depth means changing every *_DEPTH constant together
    - Never reorder ResourceType members; order is root -> leaf
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Tuple

ROOT_RESOURCE_ID = "ROOT"
ID_SEPARATOR = ":"
PATH_SEPARATOR = "/"

# Number of path segments needed to name each level.
ORG_DEPTH = 1
TEAM_DEPTH = 2
PROJECT_DEPTH = 3
LEAF_DEPTH = 4


class ResourceType(Enum):
    """Resource kinds, ordered from root to leaf."""

    ROOT = "root"
    ORG = "org"
    TEAM = "team"
    PROJECT = "project"
    TOPIC = "topic"
    SUBSCRIPTION = "subscription"
    QUEUE = "queue"

    @property
    def is_leaf(self) -> bool:
        """Whether this kind sits below a project."""
        return self in (ResourceType.TOPIC, ResourceType.SUBSCRIPTION, ResourceType.QUEUE)


class ResourceAction(Enum):
    """Actions that can be authorized.

    The value is ``<resource type>.<operation>``; the resource type prefix
    decides whether the action targets a leaf resource.
    """

    ORG_CREATE = "org.create"
    ORG_UPDATE = "org.update"
    ORG_DELETE = "org.delete"
    ORG_GET = "org.get"
    ORG_LIST = "org.list"

    TEAM_CREATE = "team.create"
    TEAM_UPDATE = "team.update"
    TEAM_DELETE = "team.delete"
    TEAM_GET = "team.get"
    TEAM_LIST = "team.list"

    PROJECT_CREATE = "project.create"
    PROJECT_UPDATE = "project.update"
    PROJECT_DELETE = "project.delete"
    PROJECT_GET = "project.get"
    PROJECT_LIST = "project.list"

    TOPIC_CREATE = "topic.create"
    TOPIC_UPDATE = "topic.update"
    TOPIC_DELETE = "topic.delete"
    TOPIC_GET = "topic.get"
    TOPIC_LIST = "topic.list"
    TOPIC_PRODUCE = "topic.produce"
    TOPIC_CONSUME = "topic.consume"

    SUBSCRIPTION_CREATE = "subscription.create"
    SUBSCRIPTION_UPDATE = "subscription.update"
    SUBSCRIPTION_DELETE = "subscription.delete"
    SUBSCRIPTION_GET = "subscription.get"
    SUBSCRIPTION_LIST = "subscription.list"
    SUBSCRIPTION_SEEK = "subscription.seek"

    @property
    def resource_type(self) -> ResourceType:
        """Resource kind this action targets."""
        return ResourceType(self.value.split(".", 1)[0])

    @classmethod
    def from_name(cls, name: str) -> ResourceAction:
        """Look up an action by member name (``TOPIC_GET``) or value (``topic.get``).

        Raises:
            ValueError: If the name matches no action
        """
        try:
            return cls[name]
        except KeyError:
            pass
        try:
            return cls(name)
        except ValueError:
            raise ValueError(f"Unknown resource action: {name!r}") from None


@dataclass(frozen=True)
class ResourcePath:
    """Parsed resource path with per-level id accessors.

    Accessors never raise; a level that the path does not name resolves to
    the empty string, which matches no role binding.

    Example:
        >>> path = ResourcePath.parse("public/team_rocket/default/topic001")
        >>> path.team_id()
        'public:team_rocket'
        >>> path.leaf_id()
        'default:topic001'
        >>> ResourcePath.parse("public").project_id()
        ''
    """

    segments: Tuple[str, ...]

    @classmethod
    def parse(cls, path: str | None) -> ResourcePath:
        if not path:
            return cls(segments=())
        return cls(segments=tuple(path.split(PATH_SEPARATOR)))

    @classmethod
    def of(cls, *segments: str) -> ResourcePath:
        return cls(segments=tuple(segments))

    def _segment(self, index: int) -> str:
        if index < len(self.segments):
            return self.segments[index]
        return ""

    def _qualified(self, depth: int, scope_index: int, name_index: int) -> str:
        if len(self.segments) < depth:
            return ""
        scope, name = self._segment(scope_index), self._segment(name_index)
        if not scope or not name:
            return ""
        return f"{scope}{ID_SEPARATOR}{name}"

    def org_id(self) -> str:
        return self._segment(0) if len(self.segments) >= ORG_DEPTH else ""

    def team_id(self) -> str:
        return self._qualified(TEAM_DEPTH, 0, 1)

    def project_id(self) -> str:
        return self._segment(2) if len(self.segments) >= PROJECT_DEPTH else ""

    def leaf_id(self) -> str:
        return self._qualified(LEAF_DEPTH, 2, 3)

    def root_id(self) -> str:
        return ROOT_RESOURCE_ID

    def resource_id(self, resource_type: ResourceType) -> str:
        """Id of the given level of this path."""
        if resource_type is ResourceType.ROOT:
            return self.root_id()
        if resource_type is ResourceType.ORG:
            return self.org_id()
        if resource_type is ResourceType.TEAM:
            return self.team_id()
        if resource_type is ResourceType.PROJECT:
            return self.project_id()
        return self.leaf_id()

    def __str__(self) -> str:
        return PATH_SEPARATOR.join(self.segments)


def team_resource_id(org: str, team: str) -> str:
    """Resource id of a team, qualified by its org."""
    return f"{org}{ID_SEPARATOR}{team}"


def leaf_resource_id(project: str, name: str) -> str:
    """Resource id of a topic/subscription, qualified by its project."""
    return f"{project}{ID_SEPARATOR}{name}"
