"""Topic deployment planning."""

from .topic_factory import (
    DefaultStorageTopicFactory,
    PlannedStorageTopic,
    StorageTopicFactory,
    VaradhiTopicFactory,
)

__all__ = [
    "StorageTopicFactory",
    "DefaultStorageTopicFactory",
    "PlannedStorageTopic",
    "VaradhiTopicFactory",
]
