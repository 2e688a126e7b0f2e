"""Admin HTTP surface."""

from .app import ERROR_STATUS, create_app, status_for
from .settings import Settings

__all__ = ["create_app", "status_for", "ERROR_STATUS", "Settings"]
