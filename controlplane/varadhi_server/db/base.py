"""
Base protocol and types for the hierarchical node tree abstraction.

The metadata store persists entities in an external hierarchical key/value
tree (ZooKeeper in production). Each node carries a byte payload and a
store-assigned version. This module defines the NodeTree protocol all
backends implement, and the backend-neutral errors they raise.

Invariants:
    - A freshly created node has version 0
    - Each successful set() increments the version by exactly 1
    - set() with a version other than the current one changes nothing
    - Backends raise only the errors defined here; MetaStore translates them

How to change safely:
    - Protocol changes require updating all implementations
    - Error mapping changes must be mirrored in MetaStore
"""

from __future__ import annotations

from abc import abstractmethod
from typing import List, Optional, Protocol, Tuple, TYPE_CHECKING, runtime_checkable
import logging

if TYPE_CHECKING:
    from ..config import ServerConfig

logger = logging.getLogger(__name__)

INITIAL_NODE_VERSION = 0


class NodeTreeError(Exception):
    """Base exception for node tree operations."""
    pass


class NodeTreeConnectionError(NodeTreeError):
    """Connection to the node tree backend failed or is not established."""
    pass


class NodeExistsError(NodeTreeError):
    """A node already exists at the path."""
    pass


class NoNodeError(NodeTreeError):
    """No node exists at the path (or its parent is missing)."""
    pass


class BadVersionError(NodeTreeError):
    """Expected version does not match the node's current version."""
    pass


class NotEmptyError(NodeTreeError):
    """Node still has children and cannot be deleted."""
    pass


def parent_path(path: str) -> str:
    """Parent of an absolute node path ("/" for top-level nodes)."""
    head, _, _ = path.rstrip("/").rpartition("/")
    return head or "/"


def node_name(path: str) -> str:
    """Last segment of an absolute node path."""
    return path.rstrip("/").rpartition("/")[2]


def ancestors(path: str) -> List[str]:
    """All ancestor paths from the top down, excluding "/" and the path itself.

    Example:
        >>> ancestors("/varadhi/orgs/public")
        ['/varadhi', '/varadhi/orgs']
    """
    parts = [p for p in path.split("/") if p]
    return ["/" + "/".join(parts[:i]) for i in range(1, len(parts))]


@runtime_checkable
class NodeTree(Protocol):
    """Protocol for node tree backends.

    Paths are absolute ("/a/b/c"). Versions are integers owned by the
    backend.

    Consistency contract:
        - Writes to a single node are linearizable
        - A read after a successful write on the same node observes it

    Example:
        >>> tree = InMemoryNodeTree()
        >>> await tree.connect()
        >>> await tree.create("/varadhi/orgs/public", b"{}", make_parents=True)
        >>> data, version = await tree.get("/varadhi/orgs/public")
    """

    @abstractmethod
    async def connect(self) -> None:
        """Connect to the backend.

        Raises:
            NodeTreeConnectionError: If connection fails
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """Close the connection and release resources."""
        ...

    @abstractmethod
    async def create(self, path: str, data: bytes = b"", make_parents: bool = False) -> None:
        """Create a node.

        Args:
            path: Absolute node path
            data: Payload bytes
            make_parents: Create missing ancestors with empty payloads

        Raises:
            NodeExistsError: If a node already exists at path
            NoNodeError: If the parent is missing and make_parents is False
        """
        ...

    @abstractmethod
    async def get(self, path: str) -> Tuple[bytes, int]:
        """Read payload and current version.

        Raises:
            NoNodeError: If the node does not exist
        """
        ...

    @abstractmethod
    async def set(self, path: str, data: bytes, version: int) -> int:
        """Compare-and-swap write of the payload.

        Args:
            path: Absolute node path
            data: New payload
            version: Version the caller last observed

        Returns:
            The node's new version

        Raises:
            NoNodeError: If the node does not exist
            BadVersionError: If version is not the current version
        """
        ...

    @abstractmethod
    async def exists(self, path: str) -> bool:
        """Whether a node exists at path."""
        ...

    @abstractmethod
    async def delete(self, path: str, version: Optional[int] = None) -> None:
        """Delete a node, optionally only at an expected version.

        Raises:
            NoNodeError: If the node does not exist
            BadVersionError: If version is given and is not the current version
            NotEmptyError: If the node has children
        """
        ...

    @abstractmethod
    async def children(self, path: str) -> List[str]:
        """Names of the node's children, sorted.

        Raises:
            NoNodeError: If the node does not exist
        """
        ...

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        """Whether currently connected to the backend."""
        ...


def create_node_tree(config: "ServerConfig") -> NodeTree:
    """Factory function to create a node tree from configuration.

    Args:
        config: Server configuration

    Returns:
        Appropriate NodeTree implementation

    Raises:
        ValueError: If backend is not supported
    """
    from ..config import MetaStoreBackend
    from .memory import InMemoryNodeTree
    from .sqlite import SqliteNodeTree
    from .zookeeper import ZookeeperNodeTree

    if config.metastore.backend == MetaStoreBackend.ZOOKEEPER:
        return ZookeeperNodeTree(config.zookeeper)
    elif config.metastore.backend == MetaStoreBackend.SQLITE:
        return SqliteNodeTree(
            db_path=config.sqlite.db_path,
            wal_mode=config.sqlite.wal_mode,
            busy_timeout_ms=config.sqlite.busy_timeout_ms,
        )
    elif config.metastore.backend == MetaStoreBackend.MEMORY:
        return InMemoryNodeTree()
    else:
        raise ValueError(f"Unsupported metastore backend: {config.metastore.backend}")
