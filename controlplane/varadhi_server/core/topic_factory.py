"""
Topic deployment planning.

Turns a TopicResource into a VaradhiTopic with one InternalTopic in the
deployment region, bound to a storage topic obtained from the storage
layer's StorageTopicFactory.

Invariants:
    - Same inputs give the same internal topic name
    - StorageTopicFactory failures propagate unwrapped
    - New topics start in TopicState.PRODUCING
"""

from __future__ import annotations

import logging
from abc import abstractmethod
from dataclasses import dataclass
from typing import Optional, Protocol

from ..entities import (
    NAME_SEPARATOR,
    CapacityPolicy,
    InternalTopic,
    Project,
    StorageTopic,
    TopicResource,
    TopicState,
    VaradhiTopic,
)

logger = logging.getLogger(__name__)


class StorageTopicFactory(Protocol):
    """Storage layer capability that plans physical topics."""

    @abstractmethod
    def get_topic(
        self, name: str, project: Project, capacity_policy: Optional[CapacityPolicy]
    ) -> StorageTopic:
        ...


@dataclass(frozen=True)
class PlannedStorageTopic:
    """Storage topic handle carrying only what the control plane planned."""

    name: str
    project: str
    capacity_policy: CapacityPolicy


class DefaultStorageTopicFactory:
    """Plans a storage topic with the logical topic's name.

    Broker adapters replace this with a factory that maps the name and
    capacity onto physical partitions.
    """

    def get_topic(
        self, name: str, project: Project, capacity_policy: Optional[CapacityPolicy]
    ) -> PlannedStorageTopic:
        return PlannedStorageTopic(
            name=name,
            project=project.name,
            capacity_policy=capacity_policy or CapacityPolicy(),
        )


class VaradhiTopicFactory:
    """Builds deployable VaradhiTopics for a single deployment region.

    Attributes:
        deployment_region: Region every new topic is deployed to

    Example:
        >>> factory = VaradhiTopicFactory(DefaultStorageTopicFactory(), "in-chennai-1")
        >>> vt = factory.get(project, TopicResource("orders", project="payments"))
        >>> vt.get_internal_topic("in-chennai-1").name
        'payments.orders.in-chennai-1'
    """

    def __init__(self, topic_factory: StorageTopicFactory, deployment_region: str) -> None:
        # TODO: take the primary region from the topic's regional/DR policy once
        # TopicResource carries one; until then every topic uses deployment_region.
        if not deployment_region:
            raise ValueError("deployment_region is required")
        self.topic_factory = topic_factory
        self.deployment_region = deployment_region

    def get(self, project: Project, topic_resource: TopicResource) -> VaradhiTopic:
        varadhi_topic = VaradhiTopic.of(topic_resource)
        self._plan_deployment(project, varadhi_topic)
        return varadhi_topic

    def _plan_deployment(self, project: Project, varadhi_topic: VaradhiTopic) -> None:
        storage_topic = self.topic_factory.get_topic(
            varadhi_topic.name, project, varadhi_topic.capacity_policy
        )
        internal_topic_name = NAME_SEPARATOR.join((varadhi_topic.name, self.deployment_region))
        varadhi_topic.add_internal_topic(
            InternalTopic(
                name=internal_topic_name,
                region=self.deployment_region,
                state=TopicState.PRODUCING,
                storage_topic=storage_topic,
            )
        )
        logger.debug(
            f"Planned {internal_topic_name} on storage topic {storage_topic.name}",
            extra={"topic": varadhi_topic.name, "region": self.deployment_region},
        )
