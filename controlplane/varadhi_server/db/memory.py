"""
In-memory node tree implementation for testing.

This module provides a simple in-memory node tree backend for:
- Unit tests
- Integration tests
- Local development without ZooKeeper

Invariants:
    - All data is lost on process exit
    - Provides the same version semantics as production backends
    - Writes are serialized by a single asyncio lock

How to change safely:
    - This is test-only code, changes don't affect production
    - Keep interface compatible with NodeTree protocol
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from .base import (
    INITIAL_NODE_VERSION,
    BadVersionError,
    NodeExistsError,
    NodeTreeConnectionError,
    NoNodeError,
    NotEmptyError,
    ancestors,
    parent_path,
)

logger = logging.getLogger(__name__)


@dataclass
class InMemoryNode:
    """In-memory node storage."""
    data: bytes
    version: int = INITIAL_NODE_VERSION


class InMemoryNodeTree:
    """In-memory implementation of NodeTree for testing.

    Attributes:
        nodes: Path -> node storage ("/" is implicit and always present)

    Thread safety:
        Uses an asyncio lock. Safe to use from multiple coroutines on one
        event loop.

    Example:
        >>> tree = InMemoryNodeTree()
        >>> await tree.connect()
        >>> await tree.create("/a/b", b"x", make_parents=True)
        >>> await tree.set("/a/b", b"y", version=0)
        1
    """

    def __init__(self) -> None:
        self._nodes: Dict[str, InMemoryNode] = {}
        self._connected = False
        self._lock = asyncio.Lock()
        self._pending_failure: Optional[Exception] = None

    @property
    def is_connected(self) -> bool:
        """Whether connected (always true after connect())."""
        return self._connected

    async def connect(self) -> None:
        """Connect (no-op for in-memory)."""
        self._connected = True
        logger.debug("InMemoryNodeTree connected")

    async def close(self) -> None:
        """Close and clear all data."""
        self._connected = False
        self._nodes.clear()
        logger.debug("InMemoryNodeTree closed")

    def _check(self) -> None:
        if not self._connected:
            raise NodeTreeConnectionError("Not connected")
        if self._pending_failure is not None:
            failure, self._pending_failure = self._pending_failure, None
            raise failure

    def _exists(self, path: str) -> bool:
        return path == "/" or path in self._nodes

    def _get_node(self, path: str) -> InMemoryNode:
        node = self._nodes.get(path)
        if node is None:
            raise NoNodeError(path)
        return node

    async def create(self, path: str, data: bytes = b"", make_parents: bool = False) -> None:
        async with self._lock:
            self._check()
            if self._exists(path):
                raise NodeExistsError(path)
            if make_parents:
                for ancestor in ancestors(path):
                    if ancestor not in self._nodes:
                        self._nodes[ancestor] = InMemoryNode(data=b"")
            elif not self._exists(parent_path(path)):
                raise NoNodeError(parent_path(path))
            self._nodes[path] = InMemoryNode(data=data)

    async def get(self, path: str) -> Tuple[bytes, int]:
        self._check()
        node = self._get_node(path)
        return node.data, node.version

    async def set(self, path: str, data: bytes, version: int) -> int:
        async with self._lock:
            self._check()
            node = self._get_node(path)
            if node.version != version:
                raise BadVersionError(
                    f"{path}: expected version {version}, current {node.version}"
                )
            node.data = data
            node.version += 1
            return node.version

    async def exists(self, path: str) -> bool:
        self._check()
        return self._exists(path)

    async def delete(self, path: str, version: Optional[int] = None) -> None:
        async with self._lock:
            self._check()
            node = self._get_node(path)
            if version is not None and node.version != version:
                raise BadVersionError(
                    f"{path}: expected version {version}, current {node.version}"
                )
            if self._children(path):
                raise NotEmptyError(path)
            del self._nodes[path]

    async def children(self, path: str) -> List[str]:
        self._check()
        if not self._exists(path):
            raise NoNodeError(path)
        return self._children(path)

    def _children(self, path: str) -> List[str]:
        prefix = path.rstrip("/") + "/"
        return sorted(
            p[len(prefix):] for p in self._nodes
            if p.startswith(prefix) and "/" not in p[len(prefix):]
        )

    # Testing helpers

    def inject_failure(self, exception: Exception) -> None:
        """Make the next operation raise this exception."""
        self._pending_failure = exception

    def dump(self) -> Dict[str, Tuple[bytes, int]]:
        """Snapshot of all nodes as path -> (data, version)."""
        return {path: (node.data, node.version) for path, node in sorted(self._nodes.items())}

    def bump_version(self, path: str) -> int:
        """Rewrite a node out of band, bumping its version (testing helper)."""
        node = self._get_node(path)
        node.version += 1
        return node.version
