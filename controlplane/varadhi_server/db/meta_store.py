"""
Versioned metadata store.

MetaStore gives every VersionedEntity create/get/update/delete/list
semantics with optimistic concurrency on top of a NodeTree. It is the only
layer that translates node tree failures into the domain error taxonomy.

The entity version and the node version are the same number. create/get
overwrite the entity's version with the node version, so any payload
version is ignored. A side effect: a write that bypasses this API still
bumps the entity's effective version.

Invariants:
    - create sets version to 0; update succeeds only on the current version
    - Every failure that is not not-found/duplicate/conflict is MetaStoreError
    - Nothing here retries; callers own retry-with-refetch

How to change safely:
    - Changing the payload format needs a migration of existing nodes
    - Keep error messages stable; the admin API returns them verbatim
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import List, Optional, Type, TypeVar

from ..entities.base import INITIAL_VERSION, VersionedEntity
from ..errors import (
    DuplicateResourceError,
    InvalidOperationError,
    MetaStoreError,
    ResourceNotFoundError,
)
from .base import (
    BadVersionError,
    NodeExistsError,
    NodeTree,
    NoNodeError,
    NotEmptyError,
)

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=VersionedEntity)


@dataclass(frozen=True)
class ZNode:
    """Location of an entity in the node tree.

    Attributes:
        kind: Entity kind, used in error messages ("Org", "Team", ...)
        name: Entity name, used in error messages
        path: Absolute node path
    """

    kind: str
    name: str
    path: str

    def __str__(self) -> str:
        return f"{self.kind}({self.name})@{self.path}"


class MetaStore:
    """CRUD with compare-and-swap versioning over a NodeTree.

    Thread safety:
        Stateless apart from the tree handle. Concurrency control is the
        node tree's conditional write.

    Example:
        >>> store = MetaStore(tree)
        >>> await store.create(ZNode("Org", "public", "/varadhi/orgs/public"), org)
        >>> org.version
        0
        >>> await store.update(znode, org)
        1
    """

    def __init__(self, tree: NodeTree) -> None:
        self.tree = tree

    @staticmethod
    def _serialize(entity: VersionedEntity) -> bytes:
        return json.dumps(entity.to_dict(), sort_keys=True).encode("utf-8")

    async def create_path(self, path: str) -> None:
        """Create an empty structural node (and its parents) if absent.

        Raises:
            MetaStoreError: On any store failure
        """
        try:
            await self.tree.create(path, b"", make_parents=True)
            logger.debug(f"Created path {path}")
        except NodeExistsError:
            pass
        except Exception as e:
            raise MetaStoreError(f"Failed to create path {path}.") from e

    async def create(self, znode: ZNode, entity: VersionedEntity) -> None:
        """Create the entity's node, creating parent paths if absent.

        On success sets entity.version to the initial version (0).

        Raises:
            DuplicateResourceError: If a node already exists at the path
            MetaStoreError: On any other store failure
        """
        try:
            await self.tree.create(znode.path, self._serialize(entity), make_parents=True)
        except NodeExistsError as e:
            raise DuplicateResourceError(f"{znode.kind}({znode.name}) already exists.") from e
        except Exception as e:
            raise MetaStoreError(
                f"Failed to create {znode.kind}({znode.name}) at {znode.path}."
            ) from e
        entity.version = INITIAL_VERSION
        logger.debug(
            f"Created {znode.kind}({znode.name}) at {znode.path}",
            extra={"kind": znode.kind, "entity": znode.name, "path": znode.path},
        )

    async def update(self, znode: ZNode, entity: VersionedEntity) -> int:
        """Write the entity if its version equals the node's current version.

        Returns:
            The new version (also stored on the entity)

        Raises:
            ResourceNotFoundError: If the node does not exist
            InvalidOperationError: If entity.version is stale (conflicting update)
            MetaStoreError: On any other store failure
        """
        try:
            new_version = await self.tree.set(
                znode.path, self._serialize(entity), entity.version
            )
        except NoNodeError as e:
            raise ResourceNotFoundError(f"{znode.kind}({znode.name}) not found.") from e
        except BadVersionError as e:
            raise InvalidOperationError(
                f"Conflicting update, {znode.kind}({znode.name}) has been modified. "
                f"Fetch latest and try again."
            ) from e
        except Exception as e:
            raise MetaStoreError(
                f"Failed to update {znode.kind}({znode.name}) at {znode.path}."
            ) from e
        entity.version = new_version
        logger.debug(
            f"Updated {znode.kind}({znode.name}) at {znode.path}: new version {new_version}",
            extra={"kind": znode.kind, "entity": znode.name, "version": new_version},
        )
        return new_version

    async def get(self, znode: ZNode, entity_cls: Type[E]) -> E:
        """Read and deserialize the entity, version taken from the node.

        Raises:
            ResourceNotFoundError: If the node does not exist
            MetaStoreError: On any other store failure (including bad payloads)
        """
        try:
            data, version = await self.tree.get(znode.path)
        except NoNodeError as e:
            raise ResourceNotFoundError(f"{znode.kind}({znode.name}) not found.") from e
        except Exception as e:
            raise MetaStoreError(
                f"Failed to find {znode.kind}({znode.name}) at {znode.path}."
            ) from e
        try:
            entity = entity_cls.from_dict(json.loads(data.decode("utf-8")))
        except (ValueError, KeyError, TypeError) as e:
            raise MetaStoreError(
                f"Corrupt payload for {znode.kind}({znode.name}) at {znode.path}."
            ) from e
        entity.version = version
        return entity  # type: ignore[return-value]

    async def exists(self, znode: ZNode) -> bool:
        """Non-throwing existence probe for domain purposes.

        Raises:
            MetaStoreError: On store failure (not a domain outcome)
        """
        try:
            return await self.tree.exists(znode.path)
        except Exception as e:
            raise MetaStoreError(f"Failed to check if {znode.name}({znode.path}) exists.") from e

    async def delete(self, znode: ZNode, version: Optional[int] = None) -> None:
        """Delete the node, only at version when one is given.

        Raises:
            ResourceNotFoundError: If the node does not exist
            InvalidOperationError: If the node still has children, or version is stale
            MetaStoreError: On any other store failure
        """
        try:
            await self.tree.delete(znode.path, version)
        except NoNodeError as e:
            raise ResourceNotFoundError(f"{znode.kind}({znode.name}) not found.") from e
        except BadVersionError as e:
            raise InvalidOperationError(
                f"Conflicting update, {znode.kind}({znode.name}) has been modified. "
                f"Fetch latest and try again."
            ) from e
        except NotEmptyError as e:
            raise InvalidOperationError(
                f"Can not delete {znode.kind}({znode.name}), it has associated entities."
            ) from e
        except Exception as e:
            raise MetaStoreError(
                f"Failed to delete {znode.kind}({znode.name}) at {znode.path}."
            ) from e
        logger.debug(f"Deleted {znode.kind}({znode.name}) at {znode.path}")

    async def list_children(self, znode: ZNode) -> List[str]:
        """Names of the node's children, in order.

        Raises:
            ResourceNotFoundError: If the node itself does not exist
            MetaStoreError: On any other store failure
        """
        if not await self.exists(znode):
            raise ResourceNotFoundError(
                f"Path({znode.path}) not found for entity {znode.name}."
            )
        try:
            return await self.tree.children(znode.path)
        except NoNodeError as e:
            raise ResourceNotFoundError(
                f"Path({znode.path}) not found for entity {znode.name}."
            ) from e
        except Exception as e:
            raise MetaStoreError(
                f"Failed to list children for entity type {znode.name} at path {znode.path}."
            ) from e
