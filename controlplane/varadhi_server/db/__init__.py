"""
Versioned metadata persistence for the Varadhi control plane.

This module provides a pluggable node tree interface supporting:
- ZooKeeper (production)
- SQLite (single instance)
- In-memory (for testing)

and, on top of it, MetaStore (versioned CRUD with the domain error
taxonomy) and VaradhiMetaStore (per-kind CRUD and the persisted layout).

Invariants:
    - Node version == entity version, owned by the backend
    - update() is the sole optimistic-concurrency gate
    - Backend failures surface as MetaStoreError, never as backend types

How to change safely:
    - New backends must implement the NodeTree protocol
    - Verify CAS semantics with concurrent update tests
"""

from .base import (
    BadVersionError,
    NodeExistsError,
    NodeTree,
    NodeTreeConnectionError,
    NodeTreeError,
    NoNodeError,
    NotEmptyError,
    create_node_tree,
)
from .memory import InMemoryNodeTree
from .meta_store import MetaStore, ZNode
from .sqlite import SqliteNodeTree
from .varadhi_meta_store import VaradhiMetaStore
from .zookeeper import ZookeeperNodeTree

__all__ = [
    # Protocol and errors
    "NodeTree",
    "NodeTreeError",
    "NodeTreeConnectionError",
    "NodeExistsError",
    "NoNodeError",
    "BadVersionError",
    "NotEmptyError",
    # Factory
    "create_node_tree",
    # Implementations
    "InMemoryNodeTree",
    "SqliteNodeTree",
    "ZookeeperNodeTree",
    # Stores
    "MetaStore",
    "ZNode",
    "VaradhiMetaStore",
]
