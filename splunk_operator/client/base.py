import abc
from typing import Any, Dict, List, Optional, Union

SECRET = "Secret"
SERVICE = "Service"
CONFIG_MAP = "ConfigMap"
STATEFUL_SET = "StatefulSet"
PERSISTENT_VOLUME_CLAIM = "PersistentVolumeClaim"
STANDALONE = "Standalone"

KINDS = (
    SECRET,
    SERVICE,
    CONFIG_MAP,
    STATEFUL_SET,
    PERSISTENT_VOLUME_CLAIM,
    STANDALONE,
)

LabelSelector = Union[str, Dict[str, str], None]


def parse_label_selector(selector: LabelSelector) -> Dict[str, str]:
    """Parse an equality based label selector (`k=v,k2=v2`) into a dict."""
    if not selector:
        return {}
    if isinstance(selector, dict):
        return dict(selector)
    result = {}
    for term in selector.split(","):
        term = term.strip()
        if not term:
            continue
        key, _, value = term.partition("=")
        result[key.strip()] = value.strip()
    return result


def format_label_selector(selector: LabelSelector) -> Optional[str]:
    if not selector:
        return None
    if isinstance(selector, str):
        return selector
    return ",".join([f"{k}={v}" for k, v in selector.items()])


class ObjectStore(abc.ABC):
    """Typed access to the cluster objects the operator reads and writes.

    Every operation raises a subclass of `ObjectStoreError`; `get` returns
    None instead of raising when the object does not exist.
    """

    @abc.abstractmethod
    async def get(self, kind: str, namespace: str, name: str) -> Optional[Any]:
        ...

    @abc.abstractmethod
    async def list(
        self, kind: str, namespace: str, label_selector: LabelSelector = None
    ) -> List[Any]:
        ...

    @abc.abstractmethod
    async def create(self, kind: str, body: Any) -> Any:
        ...

    @abc.abstractmethod
    async def update(self, kind: str, body: Any) -> Any:
        """Replace an object. A stale `resource_version` raises `ConflictError`."""

    @abc.abstractmethod
    async def delete(self, kind: str, namespace: str, name: str) -> None:
        ...

    @abc.abstractmethod
    async def update_status(self, kind: str, body: Any) -> Any:
        ...
