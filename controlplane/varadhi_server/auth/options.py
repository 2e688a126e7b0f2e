"""
Authorization configuration loading.

Role definitions are read once from a YAML document:

    roleDefinitions:
      org.admin:
        roleId: org.admin
        permissions: [ORG_CREATE, ORG_GET, TEAM_CREATE, ...]
      topic.read:
        roleId: topic.read
        permissions: [TOPIC_GET]
    roleBindings:            # optional seed bindings
      public:                # resource id
        xyz: [org.admin]     # subject -> role ids

Any malformed document is a fatal AuthorizationConfigError at startup.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Mapping

import yaml

from ..entities import ResourceAction, Role
from ..errors import AuthorizationConfigError

logger = logging.getLogger(__name__)

# resource id -> subject -> role ids
RoleBindings = Mapping[str, Mapping[str, FrozenSet[str]]]


@dataclass(frozen=True)
class AuthorizationConfiguration:
    """Parsed role definitions and seed role bindings.

    Attributes:
        roles: Role id -> Role (read-only)
        role_bindings: Seed bindings (read-only)
    """

    roles: Mapping[str, Role] = field(default_factory=lambda: MappingProxyType({}))
    role_bindings: RoleBindings = field(default_factory=lambda: MappingProxyType({}))


def freeze_bindings(bindings: Mapping[str, Mapping[str, Any]]) -> RoleBindings:
    """Copy bindings into an immutable snapshot."""
    return MappingProxyType({
        resource_id: MappingProxyType({
            subject: frozenset(roles) for subject, roles in subjects.items()
        })
        for resource_id, subjects in bindings.items()
    })


def _parse_roles(raw: Any, source: str) -> Dict[str, Role]:
    if not isinstance(raw, dict):
        raise AuthorizationConfigError("roleDefinitions must be a mapping", source)

    roles: Dict[str, Role] = {}
    for key, definition in raw.items():
        if not isinstance(definition, dict):
            raise AuthorizationConfigError(f"Role '{key}' must be a mapping", source)
        role_id = definition.get("roleId", key)
        if role_id != key:
            raise AuthorizationConfigError(
                f"Role key '{key}' does not match roleId '{role_id}'", source
            )
        permissions = definition.get("permissions") or []
        if not isinstance(permissions, list):
            raise AuthorizationConfigError(f"Role '{key}' permissions must be a list", source)
        try:
            actions = frozenset(ResourceAction.from_name(str(p)) for p in permissions)
        except ValueError as e:
            raise AuthorizationConfigError(f"Role '{key}': {e}", source) from e
        roles[key] = Role(role_id=key, permissions=actions)
    return roles


def _parse_bindings(raw: Any, source: str) -> RoleBindings:
    if raw is None:
        return MappingProxyType({})
    if not isinstance(raw, dict):
        raise AuthorizationConfigError("roleBindings must be a mapping", source)
    for resource_id, subjects in raw.items():
        if not resource_id:
            raise AuthorizationConfigError("roleBindings resource id must not be empty", source)
        if not isinstance(subjects, dict) or not all(
            isinstance(roles, list) for roles in subjects.values()
        ):
            raise AuthorizationConfigError(
                f"roleBindings for '{resource_id}' must map subjects to role lists", source
            )
    return freeze_bindings(raw)


def parse_authorization_config(
    document: Any, source: str = "<memory>"
) -> AuthorizationConfiguration:
    """Build configuration from an already-loaded YAML document.

    Raises:
        AuthorizationConfigError: If the document is malformed
    """
    if not isinstance(document, dict):
        raise AuthorizationConfigError("Authorization config must be a mapping", source)
    if "roleDefinitions" not in document:
        raise AuthorizationConfigError("Authorization config has no roleDefinitions", source)

    roles = _parse_roles(document["roleDefinitions"], source)
    bindings = _parse_bindings(document.get("roleBindings"), source)
    return AuthorizationConfiguration(
        roles=MappingProxyType(roles),
        role_bindings=bindings,
    )


def load_authorization_config(path: str) -> AuthorizationConfiguration:
    """Load and parse an authorization YAML file.

    Raises:
        AuthorizationConfigError: If the file is unreadable or malformed
    """
    try:
        document = yaml.safe_load(Path(path).read_text())
    except OSError as e:
        raise AuthorizationConfigError(f"Cannot read authorization config: {e}", path) from e
    except yaml.YAMLError as e:
        raise AuthorizationConfigError(f"Invalid YAML: {e}", path) from e

    config = parse_authorization_config(document, source=path)
    logger.info(
        f"Loaded {len(config.roles)} role definitions from {path}",
        extra={"roles": sorted(config.roles)},
    )
    return config
