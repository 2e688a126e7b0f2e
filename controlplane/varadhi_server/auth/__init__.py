"""
Authorization for the Varadhi control plane.

This module handles:
- Role definitions loaded from YAML configuration
- Role binding snapshots (seed + persisted)
- Leaf-to-root authorization resolution
"""

from .options import (
    AuthorizationConfiguration,
    load_authorization_config,
    parse_authorization_config,
)
from .provider import AuthorizationProvider, DefaultAuthorizationProvider

__all__ = [
    "AuthorizationConfiguration",
    "load_authorization_config",
    "parse_authorization_config",
    "AuthorizationProvider",
    "DefaultAuthorizationProvider",
]
