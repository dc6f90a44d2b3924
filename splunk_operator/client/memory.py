import copy
import itertools
import uuid
from typing import Any, Dict, List, Optional, Tuple
from splunk_operator.client.base import (
    ObjectStore,
    LabelSelector,
    parse_label_selector,
    KINDS,
    SERVICE,
)
from splunk_operator.utils.errors import (
    AlreadyExistsError,
    ConflictError,
    NotFoundError,
    ObjectStoreError,
)

MUTATING_VERBS = ("create", "update", "delete", "update_status")


class InMemoryObjectStore(ObjectStore):
    """Deterministic in-memory object store.

    Objects are copied on the way in and on the way out, every write bumps
    `resource_version`, and a write carrying a stale `resource_version` is
    rejected with `ConflictError`, like the API server does. Every call is
    recorded in `calls` as a `(verb, kind, name)` tuple.

    `fail_on` maps `(verb, kind)` or `(verb, kind, name)` to an exception that
    is raised instead of performing the call.
    """

    def __init__(self):
        self._objects: Dict[Tuple[str, str, str], Any] = {}
        self._versions = itertools.count(1)
        self._cluster_ips = itertools.count(1)
        self.calls: List[Tuple[str, str, str]] = []
        self.fail_on: Dict[tuple, Exception] = {}

    def _record(self, verb: str, kind: str, name: str):
        self.calls.append((verb, kind, name))
        for key in ((verb, kind, name), (verb, kind)):
            if key in self.fail_on:
                raise self.fail_on[key]

    def _check_kind(self, kind: str):
        if kind not in KINDS:
            raise ObjectStoreError(f"Unsupported kind `{kind}`", kind)

    def _next_version(self) -> str:
        return str(next(self._versions))

    def mutations(self) -> List[Tuple[str, str, str]]:
        """Return recorded calls that would have changed cluster state."""
        return [call for call in self.calls if call[0] in MUTATING_VERBS]

    def reset_calls(self):
        self.calls.clear()

    def put(self, kind: str, body: Any) -> Any:
        """Store an object directly, without recording a call. Used to seed state."""
        self._check_kind(kind)
        body = copy.deepcopy(body)
        meta = body.metadata
        meta.resource_version = self._next_version()
        if not meta.uid:
            meta.uid = str(uuid.uuid4())
        self._objects[(kind, meta.namespace, meta.name)] = body
        return copy.deepcopy(body)

    def peek(self, kind: str, namespace: str, name: str) -> Optional[Any]:
        """Return a copy of a stored object without recording a call."""
        obj = self._objects.get((kind, namespace, name))
        return copy.deepcopy(obj)

    async def get(self, kind: str, namespace: str, name: str) -> Optional[Any]:
        self._check_kind(kind)
        self._record("get", kind, name)
        return self.peek(kind, namespace, name)

    async def list(
        self, kind: str, namespace: str, label_selector: LabelSelector = None
    ) -> List[Any]:
        self._check_kind(kind)
        self._record("list", kind, namespace)
        selector = parse_label_selector(label_selector)
        items = []
        for (kind_, namespace_, _), obj in sorted(self._objects.items()):
            if kind_ != kind or namespace_ != namespace:
                continue
            labels = obj.metadata.labels or {}
            if all(labels.get(k) == v for k, v in selector.items()):
                items.append(copy.deepcopy(obj))
        return items

    async def create(self, kind: str, body: Any) -> Any:
        self._check_kind(kind)
        meta = body.metadata
        self._record("create", kind, meta.name)
        key = (kind, meta.namespace, meta.name)
        if key in self._objects:
            raise AlreadyExistsError(
                f"{kind} `{meta.name}` already exists", kind, meta.name
            )
        body = copy.deepcopy(body)
        body.metadata.resource_version = self._next_version()
        body.metadata.uid = body.metadata.uid or str(uuid.uuid4())
        if kind == SERVICE and body.spec and body.spec.cluster_ip is None:
            body.spec.cluster_ip = f"10.0.0.{next(self._cluster_ips)}"
        self._objects[key] = body
        return copy.deepcopy(body)

    def _existing_for_write(self, kind: str, body: Any) -> Any:
        meta = body.metadata
        key = (kind, meta.namespace, meta.name)
        existing = self._objects.get(key)
        if existing is None:
            raise NotFoundError(f"{kind} `{meta.name}` not found", kind, meta.name)
        if (
            meta.resource_version is not None
            and meta.resource_version != existing.metadata.resource_version
        ):
            raise ConflictError(
                f"{kind} `{meta.name}` was modified (stale resourceVersion "
                f"{meta.resource_version})",
                kind,
                meta.name,
            )
        return existing

    async def update(self, kind: str, body: Any) -> Any:
        self._check_kind(kind)
        self._record("update", kind, body.metadata.name)
        existing = self._existing_for_write(kind, body)
        body = copy.deepcopy(body)
        body.metadata.resource_version = self._next_version()
        body.metadata.uid = existing.metadata.uid
        # status is only written through update_status
        if hasattr(existing, "status"):
            body.status = copy.deepcopy(existing.status)
        self._objects[(kind, body.metadata.namespace, body.metadata.name)] = body
        return copy.deepcopy(body)

    async def update_status(self, kind: str, body: Any) -> Any:
        self._check_kind(kind)
        self._record("update_status", kind, body.metadata.name)
        existing = self._existing_for_write(kind, body)
        stored = copy.deepcopy(existing)
        stored.status = copy.deepcopy(body.status)
        stored.metadata.resource_version = self._next_version()
        self._objects[(kind, body.metadata.namespace, body.metadata.name)] = stored
        return copy.deepcopy(stored)

    async def delete(self, kind: str, namespace: str, name: str) -> None:
        self._check_kind(kind)
        self._record("delete", kind, name)
        self._objects.pop((kind, namespace, name), None)
