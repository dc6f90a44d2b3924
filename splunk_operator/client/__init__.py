from .base import (
    ObjectStore,
    SECRET,
    SERVICE,
    CONFIG_MAP,
    STATEFUL_SET,
    PERSISTENT_VOLUME_CLAIM,
    STANDALONE,
)
from .kubernetes import KubernetesObjectStore
from .memory import InMemoryObjectStore

__all__ = [
    "ObjectStore",
    "KubernetesObjectStore",
    "InMemoryObjectStore",
    "SECRET",
    "SERVICE",
    "CONFIG_MAP",
    "STATEFUL_SET",
    "PERSISTENT_VOLUME_CLAIM",
    "STANDALONE",
]
