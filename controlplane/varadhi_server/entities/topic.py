"""
Topic entities.

A TopicResource is the administrative description of a topic within a
project. A VaradhiTopic is its deployed form: a logical topic owning one
InternalTopic per region, each bound to an opaque storage topic produced by
the storage layer.

Invariants:
    - A VaradhiTopic has exactly one InternalTopic per deployed region
    - Internal topic names are ``<logical name>.<region>``
    - Storage topics are opaque; only their name is read here
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Protocol, runtime_checkable

from .base import NAME_SEPARATOR, VersionedEntity
from .resources import leaf_resource_id


@dataclass(frozen=True)
class CapacityPolicy:
    """Throughput envelope requested for a topic.

    Attributes:
        max_qps: Maximum produce requests per second
        max_throughput_kbps: Maximum produce throughput (KB/s)
        read_fan_out: Expected number of concurrent consumer groups
    """

    max_qps: int = 50
    max_throughput_kbps: int = 100
    read_fan_out: int = 2

    def to_dict(self) -> Dict[str, int]:
        return {
            "max_qps": self.max_qps,
            "max_throughput_kbps": self.max_throughput_kbps,
            "read_fan_out": self.read_fan_out,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> CapacityPolicy:
        return cls(
            max_qps=int(data.get("max_qps", 50)),
            max_throughput_kbps=int(data.get("max_throughput_kbps", 100)),
            read_fan_out=int(data.get("read_fan_out", 2)),
        )


@dataclass
class TopicResource(VersionedEntity):
    """Topic as created through the admin API.

    Attributes:
        project: Owning project name
        grouped: Whether the topic is ordering-sensitive
        capacity_policy: Requested capacity (None means platform default)
    """

    KIND = "TopicResource"
    MAX_NAME_LENGTH = 64

    project: str = ""
    grouped: bool = False
    capacity_policy: Optional[CapacityPolicy] = None

    @property
    def resource_id(self) -> str:
        return leaf_resource_id(self.project, self.name)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "project": self.project,
            "grouped": self.grouped,
            "capacity_policy": self.capacity_policy.to_dict() if self.capacity_policy else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> TopicResource:
        policy = data.get("capacity_policy")
        return cls(
            name=data["name"],
            project=data["project"],
            grouped=bool(data.get("grouped", False)),
            capacity_policy=CapacityPolicy.from_dict(policy) if policy else None,
        )


class TopicState(Enum):
    """Lifecycle state of an internal topic."""

    PRODUCING = "Producing"
    BLOCKED = "Blocked"
    THROTTLED = "Throttled"
    REPLICATING = "Replicating"


@runtime_checkable
class StorageTopic(Protocol):
    """Physical broker topic handle. Opaque to the control plane."""

    name: str


@dataclass
class InternalTopic:
    """Region-scoped deployment of a logical topic.

    Attributes:
        name: ``<logical name>.<region>``
        region: Deployment region
        state: Current lifecycle state
        storage_topic: Physical topic handle from the storage layer
    """

    name: str
    region: str
    state: TopicState
    storage_topic: StorageTopic


@dataclass
class VaradhiTopic:
    """Logical topic with its per-region internal topics.

    Attributes:
        name: ``<project>.<topic>``
        project: Owning project name
        grouped: Whether the topic is ordering-sensitive
        capacity_policy: Capacity used to plan storage
        internal_topics: Region -> InternalTopic
    """

    name: str
    project: str
    grouped: bool = False
    capacity_policy: Optional[CapacityPolicy] = None
    internal_topics: Dict[str, InternalTopic] = field(default_factory=dict)

    @classmethod
    def of(cls, topic_resource: TopicResource) -> VaradhiTopic:
        return cls(
            name=build_topic_name(topic_resource.project, topic_resource.name),
            project=topic_resource.project,
            grouped=topic_resource.grouped,
            capacity_policy=topic_resource.capacity_policy,
        )

    def add_internal_topic(self, internal_topic: InternalTopic) -> None:
        """Attach the internal topic for a region.

        Raises:
            ValueError: If the region already has an internal topic
        """
        if internal_topic.region in self.internal_topics:
            raise ValueError(
                f"VaradhiTopic({self.name}) already deployed in region {internal_topic.region}."
            )
        self.internal_topics[internal_topic.region] = internal_topic

    def get_internal_topic(self, region: str) -> Optional[InternalTopic]:
        return self.internal_topics.get(region)


def build_topic_name(project: str, topic: str) -> str:
    return NAME_SEPARATOR.join((project, topic))
