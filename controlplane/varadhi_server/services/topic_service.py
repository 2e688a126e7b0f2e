"""
Topic lifecycle.

create plans the deployment first and persists the TopicResource only if
planning succeeded, so a storage-layer failure leaves nothing behind.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from ..core import VaradhiTopicFactory
from ..db import VaradhiMetaStore
from ..entities import ResourceType, TopicResource, VaradhiTopic, leaf_resource_id
from ..errors import ResourceNotFoundError
from .role_binding_service import RoleBindingService

logger = logging.getLogger(__name__)


class TopicService:
    def __init__(
        self,
        meta_store: VaradhiMetaStore,
        topic_factory: VaradhiTopicFactory,
        role_binding_service: Optional[RoleBindingService] = None,
    ) -> None:
        self.meta_store = meta_store
        self.topic_factory = topic_factory
        self.role_binding_service = role_binding_service

    async def create_topic(self, topic_resource: TopicResource) -> VaradhiTopic:
        """Plan and register a topic in an existing project.

        Returns:
            The planned VaradhiTopic for the deployment region

        Raises:
            InvalidResourceError: If the topic name is invalid
            ResourceNotFoundError: If the project does not exist
            DuplicateResourceError: If the project already has this topic
        """
        topic_resource.validate()
        project = await self.meta_store.get_project(topic_resource.project)
        varadhi_topic = self.topic_factory.get(project, topic_resource)
        await self.meta_store.create_topic_resource(topic_resource)
        logger.info(
            f"Created Topic({varadhi_topic.name})",
            extra={
                "project": project.name,
                "topic": topic_resource.name,
                "region": self.topic_factory.deployment_region,
            },
        )
        return varadhi_topic

    async def get_topic(self, name: str, project: str) -> TopicResource:
        return await self.meta_store.get_topic_resource(name, project)

    async def get_topics(self, project: str) -> List[TopicResource]:
        if not await self.meta_store.project_exists(project):
            raise ResourceNotFoundError(f"Project({project}) not found.")
        return await self.meta_store.get_topic_resources(project)

    async def delete_topic(self, name: str, project: str) -> None:
        await self.meta_store.delete_topic_resource(name, project)
        if self.role_binding_service is not None:
            await self.role_binding_service.discard_iam_policy(
                ResourceType.TOPIC, leaf_resource_id(project, name)
            )
        logger.info(f"Deleted Topic({project}.{name})", extra={"project": project, "topic": name})
