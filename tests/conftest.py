"""Shared fixtures for the Varadhi control plane tests."""

import pytest
import yaml

from controlplane.varadhi_server.auth import parse_authorization_config
from controlplane.varadhi_server.db import InMemoryNodeTree, VaradhiMetaStore

AUTHORIZATION_YAML = """
roleDefinitions:
  org.admin:
    roleId: org.admin
    permissions:
      - ORG_CREATE
      - ORG_UPDATE
      - ORG_GET
      - ORG_DELETE
      - TEAM_CREATE
      - TEAM_GET
      - TEAM_UPDATE
      - PROJECT_GET
      - TOPIC_GET
  team.admin:
    roleId: team.admin
    permissions:
      - TEAM_CREATE
      - TEAM_GET
      - TEAM_UPDATE
      - PROJECT_GET
      - TOPIC_GET
  project.read:
    roleId: project.read
    permissions:
      - PROJECT_GET
      - TOPIC_GET
  topic.read:
    roleId: topic.read
    permissions:
      - TOPIC_GET
"""


@pytest.fixture
def authorization_yaml():
    """Role definitions used across authorization tests."""
    return AUTHORIZATION_YAML


@pytest.fixture
def authorization_config():
    """Parsed role definitions without seed bindings."""
    return parse_authorization_config(yaml.safe_load(AUTHORIZATION_YAML))


@pytest.fixture
async def tree():
    """Connected in-memory node tree."""
    tree = InMemoryNodeTree()
    await tree.connect()
    yield tree
    await tree.close()


@pytest.fixture
async def meta_store(tree):
    """Initialized VaradhiMetaStore over the in-memory tree."""
    store = VaradhiMetaStore(tree, root_path="/varadhi")
    await store.init()
    return store
