"""
ZooKeeper node tree implementation.

This module provides the production backend for the metadata store. The
ZooKeeper data tree gives exactly the semantics the store relies on:
per-znode versions, conditional setData and linearizable writes.

Invariants:
    - All znodes are PERSISTENT
    - The znode's data version is the entity version
    - kazoo's blocking calls never run on the event loop thread

How to change safely:
    - Test against a real ensemble before deploying
    - Keep the exception mapping in _translate in sync with kazoo releases
"""

from __future__ import annotations

import asyncio
import functools
import logging
from typing import Any, List, Optional, Tuple

from .base import (
    BadVersionError,
    NodeExistsError,
    NodeTreeConnectionError,
    NodeTreeError,
    NoNodeError,
    NotEmptyError,
)

logger = logging.getLogger(__name__)

# Try to import kazoo, provide helpful message if not installed
try:
    from kazoo import exceptions as kazoo_exceptions
    from kazoo.client import KazooClient

    KAZOO_AVAILABLE = True
except ImportError:
    KAZOO_AVAILABLE = False
    KazooClient = None
    kazoo_exceptions = None


class ZookeeperNodeTree:
    """ZooKeeper implementation of the NodeTree protocol.

    Uses kazoo's synchronous client; every call is dispatched to the default
    executor.

    Attributes:
        config: ZookeeperConfig instance

    Example:
        >>> tree = ZookeeperNodeTree(ZookeeperConfig(hosts="zk1:2181,zk2:2181"))
        >>> await tree.connect()
        >>> await tree.create("/varadhi/orgs/public", b"{}", make_parents=True)
    """

    def __init__(self, config: Any, client: Any = None) -> None:
        """Initialize the ZooKeeper node tree.

        Args:
            config: ZookeeperConfig instance with connection settings
            client: Pre-built KazooClient (tests inject a mock here)

        Raises:
            ImportError: If kazoo is not installed
        """
        if not KAZOO_AVAILABLE:
            raise ImportError(
                "kazoo is required for ZooKeeper backend. Install with: pip install kazoo"
            )
        self.config = config
        self._client = client
        self._connected = False

    @property
    def is_connected(self) -> bool:
        return self._connected and self._client is not None and self._client.connected

    async def _run(self, method: str, *args: Any, **kwargs: Any) -> Any:
        if not self._connected or self._client is None:
            raise NodeTreeConnectionError("Not connected")
        fn = getattr(self._client, method)
        try:
            return await asyncio.get_event_loop().run_in_executor(
                None, functools.partial(fn, *args, **kwargs)
            )
        except kazoo_exceptions.KazooException as e:
            raise _translate(e) from e

    async def connect(self) -> None:
        """Start the kazoo session.

        Raises:
            NodeTreeConnectionError: If the ensemble is unreachable
        """
        if self._connected:
            return

        if self._client is None:
            self._client = KazooClient(
                hosts=self.config.hosts,
                timeout=self.config.session_timeout_s,
            )
        try:
            await asyncio.get_event_loop().run_in_executor(
                None, functools.partial(self._client.start, timeout=self.config.connect_timeout_s)
            )
            if self.config.auth_scheme:
                await asyncio.get_event_loop().run_in_executor(
                    None,
                    self._client.add_auth,
                    self.config.auth_scheme,
                    self.config.auth_credential or "",
                )
        except Exception as e:
            raise NodeTreeConnectionError(
                f"Failed to connect to ZooKeeper at {self.config.hosts}: {e}"
            ) from e

        self._connected = True
        logger.info("Connected to ZooKeeper", extra={"hosts": self.config.hosts})

    async def close(self) -> None:
        if self._client is None:
            return
        try:
            await asyncio.get_event_loop().run_in_executor(None, self._client.stop)
            await asyncio.get_event_loop().run_in_executor(None, self._client.close)
        finally:
            self._connected = False
            logger.info("ZooKeeper session closed")

    async def create(self, path: str, data: bytes = b"", make_parents: bool = False) -> None:
        await self._run("create", path, value=data, makepath=make_parents)

    async def get(self, path: str) -> Tuple[bytes, int]:
        data, stat = await self._run("get", path)
        return data or b"", stat.version

    async def set(self, path: str, data: bytes, version: int) -> int:
        stat = await self._run("set", path, data, version=version)
        return stat.version

    async def exists(self, path: str) -> bool:
        return await self._run("exists", path) is not None

    async def delete(self, path: str, version: Optional[int] = None) -> None:
        await self._run("delete", path, version=-1 if version is None else version)

    async def children(self, path: str) -> List[str]:
        return sorted(await self._run("get_children", path))


def _translate(error: Exception) -> NodeTreeError:
    """Map a kazoo exception onto the backend-neutral errors."""
    if isinstance(error, kazoo_exceptions.NodeExistsError):
        return NodeExistsError(str(error))
    if isinstance(error, kazoo_exceptions.NoNodeError):
        return NoNodeError(str(error))
    if isinstance(error, kazoo_exceptions.BadVersionError):
        return BadVersionError(str(error))
    if isinstance(error, kazoo_exceptions.NotEmptyError):
        return NotEmptyError(str(error))
    if isinstance(error, (kazoo_exceptions.ConnectionLoss, kazoo_exceptions.SessionExpiredError)):
        return NodeTreeConnectionError(str(error))
    return NodeTreeError(f"{type(error).__name__}: {error}")
