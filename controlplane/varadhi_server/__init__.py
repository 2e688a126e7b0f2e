"""
Varadhi control plane - tenancy, authorization and metadata for pub/sub.

This package implements the administrative core of a multi-tenant
publish/subscribe platform:
- A five-level resource hierarchy (root -> org -> team -> project -> topic)
- A versioned metadata store with optimistic concurrency on a node tree
- Role definitions and per-resource role bindings
- Leaf-to-root authorization resolution
- Deployment planning of logical topics onto storage topics

Architecture:
    ┌─────────────┐     ┌─────────────┐     ┌─────────────────┐
    │ Admin HTTP  │────▶│  Services   │────▶│ VaradhiMetaStore│
    │  (FastAPI)  │     │ (org/team/..)│     │   (MetaStore)   │
    └──────┬──────┘     └──────┬──────┘     └────────┬────────┘
           │                   │                     │
           ▼                   ▼                     ▼
    ┌─────────────┐     ┌─────────────┐     ┌─────────────────┐
    │ AuthZ       │     │ Topic       │     │ NodeTree        │
    │ Provider    │     │ Factory     │     │ (ZK/SQLite/mem) │
    └─────────────┘     └─────────────┘     └─────────────────┘

Invariants:
    - The node revision is the only authoritative entity version
    - Updates are compare-and-swap on that revision, never merged
    - Authorization is an allow-list evaluated from leaf to root
    - Role definitions are read-only after startup

How to change safely:
    - New resource kinds must extend ResourceType and ResourcePath together
    - New backends must implement the NodeTree protocol and its error mapping
    - Keep the persisted layout stable; it is shared by every server instance

Version: see _version.py.
"""

from ._version import __version__

__all__ = ["__version__"]
