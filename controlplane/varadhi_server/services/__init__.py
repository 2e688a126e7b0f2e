"""
Owning services for the administrative entities.

Each service enforces the structural constraints of its entity (parents
must exist, non-empty containers cannot be deleted) on top of the
VaradhiMetaStore.
"""

from .org_service import OrgService
from .project_service import ProjectService
from .role_binding_service import DEFAULT_MAX_ATTEMPTS, RoleBindingService
from .team_service import TeamService
from .topic_service import TopicService

__all__ = [
    "OrgService",
    "TeamService",
    "ProjectService",
    "TopicService",
    "RoleBindingService",
    "DEFAULT_MAX_ATTEMPTS",
]
