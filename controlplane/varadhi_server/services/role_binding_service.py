"""
IAM policy management over persisted role binding nodes.

One RoleBindingNode per resource instance holds subject -> roles. Every
change is a read-modify-write through the versioned store:

    get node  --not found-->  create node (lazily, on first grant)
       |                          |  duplicate: another writer created it
       v                          v
    modify  -->  update (CAS) / delete at version (when emptied)
                     |  conflict: refetch and retry
                     v
                   done

Invariants:
    - A node never persists with an empty binding map
    - Retries are bounded by max_attempts; the last conflict is surfaced
    - The authorization snapshot is refreshed after each successful change

How to change safely:
    - Only INVALID_OPERATION, DUPLICATE and NOT_FOUND are retried; never
      retry META_STORE inside the loop
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, List, Optional

from ..db import VaradhiMetaStore
from ..entities import (
    ROOT_RESOURCE_ID,
    IamPolicyRequest,
    ResourceType,
    RoleBindingNode,
)
from ..entities.resources import ID_SEPARATOR
from ..errors import (
    ErrorKind,
    InvalidOperationError,
    InvalidResourceError,
    ResourceNotFoundError,
    Result,
)

if TYPE_CHECKING:
    from ..auth import DefaultAuthorizationProvider

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 3

_RETRYABLE = (ErrorKind.INVALID_OPERATION, ErrorKind.DUPLICATE, ErrorKind.NOT_FOUND)


class RoleBindingService:
    """Grants and revokes roles on resources.

    Attributes:
        meta_store: Entity store holding role binding nodes
        max_attempts: Read-modify-write attempts before giving up
        provider: Authorization provider to refresh after changes, and whose
            role definitions gate which role ids may be granted

    Example:
        >>> service = RoleBindingService(meta_store)
        >>> node = await service.set_iam_policy(
        ...     ResourceType.ORG, "public", IamPolicyRequest("alice", {"org.admin"})
        ... )
        >>> node.roles_for("alice")
        {'org.admin'}
    """

    def __init__(
        self,
        meta_store: VaradhiMetaStore,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        provider: Optional["DefaultAuthorizationProvider"] = None,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.meta_store = meta_store
        self.max_attempts = max_attempts
        self.provider = provider

    async def _ensure_resource(self, resource_type: ResourceType, resource_id: str) -> None:
        if resource_type is ResourceType.ROOT:
            found = resource_id == ROOT_RESOURCE_ID
        elif resource_type is ResourceType.ORG:
            found = await self.meta_store.org_exists(resource_id)
        elif resource_type is ResourceType.PROJECT:
            found = await self.meta_store.project_exists(resource_id)
        elif resource_type in (ResourceType.TEAM, ResourceType.TOPIC):
            scope, _, name = resource_id.partition(ID_SEPARATOR)
            if not scope or not name:
                raise InvalidResourceError(
                    f"Invalid {resource_type.name} resource id {resource_id!r}.",
                    field_name="resource_id",
                )
            if resource_type is ResourceType.TEAM:
                found = await self.meta_store.team_exists(name, scope)
            else:
                found = await self.meta_store.topic_resource_exists(name, scope)
        else:
            raise InvalidResourceError(
                f"IAM policies are not supported on {resource_type.name} resources.",
                field_name="resource_type",
            )
        if not found:
            raise ResourceNotFoundError(
                f"{resource_type.name.title()}({resource_id}) not found."
            )

    def _check_roles(self, request: IamPolicyRequest) -> None:
        if not request.subject:
            raise InvalidResourceError("Subject must not be empty.", field_name="subject")
        if self.provider is None or not self.provider.initialized:
            return
        unknown = sorted(set(request.roles) - set(self.provider.roles))
        if unknown:
            raise InvalidResourceError(
                f"Unknown role(s): {', '.join(unknown)}.", field_name="roles"
            )

    async def _refresh(self) -> None:
        if self.provider is not None and self.provider.initialized:
            await self.provider.load_role_bindings(self.meta_store)

    async def set_iam_policy(
        self,
        resource_type: ResourceType,
        resource_id: str,
        request: IamPolicyRequest,
    ) -> RoleBindingNode:
        """Replace the subject's roles on a resource.

        An empty role set removes the subject; removing the last subject
        deletes the node.

        Returns:
            The node as written (empty if the last grant was removed)

        Raises:
            InvalidResourceError: If the request or resource id is malformed
            ResourceNotFoundError: If the resource does not exist
            InvalidOperationError: If conflicts persist for max_attempts
            MetaStoreError: On store failure
        """
        self._check_roles(request)
        await self._ensure_resource(resource_type, resource_id)

        for attempt in range(1, self.max_attempts + 1):
            result = await self._apply(resource_type, resource_id, request)
            if result.ok:
                await self._refresh()
                logger.info(
                    f"Set roles of {request.subject} on {resource_type.name}({resource_id})",
                    extra={
                        "subject": request.subject,
                        "roles": sorted(request.roles),
                        "resource_type": resource_type.name,
                        "resource_id": resource_id,
                        "attempt": attempt,
                    },
                )
                return result.unwrap()
            if result.kind not in _RETRYABLE:
                result.unwrap()
            logger.debug(
                f"Retrying IAM policy change on {resource_type.name}({resource_id}) "
                f"after {result.kind.name}: attempt {attempt}/{self.max_attempts}"
            )

        raise InvalidOperationError(
            f"Conflicting update, RoleBinding({resource_type.name}/{resource_id}) "
            f"has been modified. Fetch latest and try again."
        )

    async def _apply(
        self,
        resource_type: ResourceType,
        resource_id: str,
        request: IamPolicyRequest,
    ) -> Result[RoleBindingNode]:
        current = await Result.capture(
            self.meta_store.get_role_binding_node(resource_type, resource_id)
        )
        if current.kind is ErrorKind.NOT_FOUND:
            node = RoleBindingNode(resource_id, resource_type=resource_type)
            node.set_roles(request.subject, request.roles)
            if node.is_empty():
                return Result(value=node)
            created = await Result.capture(self.meta_store.create_role_binding_node(node))
            return created if not created.ok else Result(value=node)

        node = current.unwrap()
        node.set_roles(request.subject, request.roles)
        if node.is_empty():
            written = await Result.capture(
                self.meta_store.delete_role_binding_node(
                    resource_type, resource_id, version=node.version
                )
            )
        else:
            written = await Result.capture(self.meta_store.update_role_binding_node(node))
        return written if not written.ok else Result(value=node)

    async def get_iam_policy(
        self, resource_type: ResourceType, resource_id: str
    ) -> RoleBindingNode:
        """Role bindings on a resource.

        Raises:
            ResourceNotFoundError: If no roles are bound on the resource
        """
        return await self.meta_store.get_role_binding_node(resource_type, resource_id)

    async def delete_iam_policy(self, resource_type: ResourceType, resource_id: str) -> None:
        """Remove every binding on a resource."""
        await self.meta_store.delete_role_binding_node(resource_type, resource_id)
        await self._refresh()
        logger.info(
            f"Deleted IAM policy on {resource_type.name}({resource_id})",
            extra={"resource_type": resource_type.name, "resource_id": resource_id},
        )

    async def discard_iam_policy(self, resource_type: ResourceType, resource_id: str) -> None:
        """Remove every binding on a deleted resource, if it has any.

        A recreated resource with the same id starts without grants.
        """
        try:
            await self.delete_iam_policy(resource_type, resource_id)
        except ResourceNotFoundError:
            pass

    async def list_role_bindings(self) -> List[RoleBindingNode]:
        return await self.meta_store.get_role_binding_nodes()
