"""
Unit tests for topic deployment planning.
"""

import pytest

from controlplane.varadhi_server.core import (
    DefaultStorageTopicFactory,
    PlannedStorageTopic,
    VaradhiTopicFactory,
)
from controlplane.varadhi_server.entities import (
    CapacityPolicy,
    Project,
    StorageTopic,
    TopicResource,
    TopicState,
)

REGION = "in-chennai-1"


class RecordingStorageTopicFactory:
    """Storage factory that records its calls."""

    def __init__(self):
        self.calls = []

    def get_topic(self, name, project, capacity_policy):
        self.calls.append((name, project.name, capacity_policy))
        return PlannedStorageTopic(name, project.name, capacity_policy or CapacityPolicy())


class FailingStorageTopicFactory:
    def get_topic(self, name, project, capacity_policy):
        raise ConnectionError("broker unavailable")


class TestVaradhiTopicFactory:
    """Tests for VaradhiTopicFactory."""

    @pytest.fixture
    def project(self):
        return Project("default", org="public", team="team_rocket")

    def test_plans_one_producing_internal_topic(self, project):
        factory = VaradhiTopicFactory(DefaultStorageTopicFactory(), REGION)
        topic = factory.get(project, TopicResource("topic001", project="default"))

        assert topic.name == "default.topic001"
        assert list(topic.internal_topics) == [REGION]
        internal = topic.get_internal_topic(REGION)
        assert internal.name == f"default.topic001.{REGION}"
        assert internal.state is TopicState.PRODUCING
        assert isinstance(internal.storage_topic, StorageTopic)

    def test_storage_topic_named_after_logical_topic(self, project):
        storage = RecordingStorageTopicFactory()
        capacity = CapacityPolicy(max_qps=5, max_throughput_kbps=10, read_fan_out=1)
        factory = VaradhiTopicFactory(storage, REGION)
        factory.get(
            project, TopicResource("topic001", project="default", capacity_policy=capacity)
        )
        assert storage.calls == [("default.topic001", "default", capacity)]

    def test_deterministic(self, project):
        """Same inputs give the same internal topic name."""
        factory = VaradhiTopicFactory(DefaultStorageTopicFactory(), REGION)
        resource = TopicResource("topic001", project="default")
        first = factory.get(project, resource).get_internal_topic(REGION).name
        second = factory.get(project, resource).get_internal_topic(REGION).name
        assert first == second

    def test_default_capacity(self, project):
        factory = VaradhiTopicFactory(DefaultStorageTopicFactory(), REGION)
        topic = factory.get(project, TopicResource("topic001", project="default"))
        assert topic.get_internal_topic(REGION).storage_topic.capacity_policy == CapacityPolicy()

    def test_storage_failure_propagates_unwrapped(self, project):
        factory = VaradhiTopicFactory(FailingStorageTopicFactory(), REGION)
        with pytest.raises(ConnectionError, match="broker unavailable"):
            factory.get(project, TopicResource("topic001", project="default"))

    def test_region_required(self):
        with pytest.raises(ValueError, match="deployment_region"):
            VaradhiTopicFactory(DefaultStorageTopicFactory(), "")
