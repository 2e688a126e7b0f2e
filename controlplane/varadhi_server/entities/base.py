"""
Versioned entity base and naming constraints.

Every administrative entity (Org, Team, Project, TopicResource,
RoleBindingNode) is a VersionedEntity: a unique name plus a version that
is owned by the metadata store.

Invariants:
    - version is assigned by the store; payload versions are never trusted
    - to_dict() never includes the version
    - Entity names obey NAME_PATTERN and the per-kind length bounds
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict

from ..errors import InvalidResourceError

INITIAL_VERSION = 0
NAME_SEPARATOR = "."

NAME_PATTERN = re.compile(r"^[a-zA-Z0-9][a-zA-Z0-9_-]*[a-zA-Z0-9]$")
NAME_MIN_LENGTH = 3
NAME_MAX_LENGTH = 50


@dataclass
class VersionedEntity:
    """Base for entities persisted in the metadata store.

    Attributes:
        name: Unique key within the entity's store namespace
        version: Store revision last observed for this entity
    """

    KIND: ClassVar[str] = "Entity"
    MAX_NAME_LENGTH: ClassVar[int] = NAME_MAX_LENGTH

    name: str
    version: int = field(default=INITIAL_VERSION, kw_only=True)

    def validate(self) -> None:
        """Check naming constraints.

        Raises:
            InvalidResourceError: If the name is malformed
        """
        validate_name(self.name, self.KIND, self.MAX_NAME_LENGTH)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for storage (version excluded)."""
        return {"name": self.name}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> VersionedEntity:
        return cls(name=data["name"])


def validate_name(name: Any, kind: str, max_length: int = NAME_MAX_LENGTH) -> None:
    """Validate an entity name.

    Raises:
        InvalidResourceError: If the name is empty, out of bounds or has
            characters outside ``[a-zA-Z0-9_-]`` (and must start and end
            alphanumeric)
    """
    if (
        not isinstance(name, str)
        or not NAME_MIN_LENGTH <= len(name) <= max_length
        or not NAME_PATTERN.match(name)
    ):
        raise InvalidResourceError(
            f"Invalid {kind} name. Check naming constraints.",
            field_name="name",
        )
