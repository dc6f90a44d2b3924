import logging
from logging import Logger
from typing import Any, Callable, Dict, List, Optional, Tuple, Union
from kubernetes_asyncio.client import V1OwnerReference
from splunk_operator.client.base import ObjectStore
from splunk_operator.common.models.labels import Labels
from splunk_operator.sensors.base import OperatorSensor
from splunk_operator.types.models.standalone_spec import Standalone
from splunk_operator.utils.errors import FatalInvariantError
from splunk_operator.utils.helpers import compute_hash

#: Outcome of syncing a single child resource.
CREATED, UPDATED, UNCHANGED = "create", "update", "unchanged"

WatchFields = Callable[[Any], Dict]
PrepareUpdate = Callable[[Any, Any], Any]


class BaseResource:
    """Base resource model.

    Holds the identity of the owning descriptor and the get-or-create,
    compare, update cycle every child resource goes through.
    """

    OPERATOR_NAME = Labels.OPERATOR_NAME
    HASH_ANNOTATION = "enterprise.splunk.com/resource-hash"

    sensor: OperatorSensor = OperatorSensor()

    _owner: Standalone
    _namespace: str
    _component_name: str
    _labels: Labels

    def __init__(
        self,
        owner: Standalone,
        component_name: str,
        labels: Labels,
        logger: Logger = None,
    ):
        self._owner = owner
        self._namespace = owner.namespace
        self._component_name = component_name
        self._labels = labels
        self.logger = logger or logging.getLogger(__name__)

    @property
    def owner(self) -> Standalone:
        return self._owner

    @property
    def cluster(self) -> str:
        return self._owner.name

    @property
    def namespace(self) -> str:
        return self._namespace

    @property
    def component_name(self) -> str:
        return self._component_name

    @property
    def labels(self) -> Labels:
        return self._labels

    def compute_hash(self, data: Any) -> str:
        """Compute a murmur3 hash."""
        return compute_hash(data)

    def prepare_hash_annotation(self, hash: Union[str, int]) -> Dict[str, str]:
        """Prepare hash annotation for k8s resources."""
        return {self.HASH_ANNOTATION: str(hash)}

    def prepare_owner_reference(self) -> V1OwnerReference:
        return V1OwnerReference(
            api_version=self._owner.api_version,
            kind=self._owner.kind,
            name=self._owner.name,
            uid=self._owner.uid,
            controller=True,
            block_owner_deletion=True,
        )

    def controller_uid(self, obj: Any) -> Optional[str]:
        """Return the uid of the controlling owner of `obj`, if any."""
        for ref in obj.metadata.owner_references or []:
            if ref.controller:
                return ref.uid
        return None

    def is_owned(self, obj: Any) -> bool:
        return self.controller_uid(obj) == self._owner.uid

    def check_owner(self, obj: Any, resource_type: str) -> None:
        """Raise if `obj` is controlled by another object. Unowned objects are adopted."""
        uid = self.controller_uid(obj)
        if uid is not None and uid != self._owner.uid:
            raise FatalInvariantError(
                f"{resource_type} `{obj.metadata.name}` is controlled by another owner "
                f"(uid {uid}), refusing to modify it"
            )

    def adopt(self, obj: Any) -> Any:
        """Set the descriptor as controller of `obj`, keeping non-controller references."""
        refs = [
            ref for ref in (obj.metadata.owner_references or []) if not ref.controller
        ]
        obj.metadata.owner_references = refs + [self.prepare_owner_reference()]
        return obj

    def hash_of(self, obj: Any) -> Optional[str]:
        return (obj.metadata.annotations or {}).get(self.HASH_ANNOTATION)

    async def _instrumented(
        self, resource_name: str, resource_type: str, operation: str, call
    ):
        sensor_state = self.sensor.on_resource_sync_start(
            self.cluster, resource_name, self.namespace, resource_type
        )
        success, error = True, None
        try:
            return await call()
        except Exception as ex:
            success, error = False, ex
            raise
        finally:
            self.sensor.on_resource_sync_complete(
                self.cluster,
                resource_name,
                self.namespace,
                resource_type,
                sensor_state,
                operation,
                success,
                error,
            )

    async def create_resource(
        self, client: ObjectStore, kind: str, body: Any, resource_type: str
    ) -> Any:
        self.logger.info(f"Creating {resource_type} `{body.metadata.name}`")
        return await self._instrumented(
            body.metadata.name,
            resource_type,
            CREATED,
            lambda: client.create(kind, body),
        )

    async def update_resource(
        self, client: ObjectStore, kind: str, body: Any, resource_type: str
    ) -> Any:
        self.logger.info(f"Updating {resource_type} `{body.metadata.name}`")
        return await self._instrumented(
            body.metadata.name,
            resource_type,
            UPDATED,
            lambda: client.update(kind, body),
        )

    async def delete_resource(
        self, client: ObjectStore, kind: str, name: str, resource_type: str
    ) -> None:
        self.logger.info(f"Deleting {resource_type} `{name}`")
        await self._instrumented(
            name,
            resource_type,
            "delete",
            lambda: client.delete(kind, self.namespace, name),
        )

    async def sync_resource(
        self,
        client: ObjectStore,
        kind: str,
        resource_type: str,
        desired: Any,
        watch_fields: WatchFields,
        prepare_update: PrepareUpdate,
    ) -> Tuple[str, Any]:
        """Check current state of a child resource and create/update it if needed.

        Args:
            client: object store
            kind: object kind
            resource_type: name used in logs and metrics
            desired: the desired object
            watch_fields: returns the fields compared between actual and desired
            prepare_update: applies desired fields onto the existing object

        Returns:
            The operation performed and the resulting object.
        """
        name = desired.metadata.name
        existing = await client.get(kind, self.namespace, name)
        if existing is None:
            return CREATED, await self.create_resource(
                client, kind, desired, resource_type
            )

        self.check_owner(existing, resource_type)
        actual_fields = watch_fields(existing)
        desired_fields = watch_fields(desired)
        drift = self.drift_fields(actual_fields, desired_fields)
        if not self.is_owned(existing):
            drift.append("ownerReferences")
        if not drift:
            return UNCHANGED, existing

        self.sensor.on_resource_drift_detected(
            self.cluster, name, self.namespace, resource_type, drift
        )
        self.logger.debug(f"{resource_type} `{name}` drifted: {', '.join(drift)}")
        body = self.adopt(prepare_update(existing, desired))
        return UPDATED, await self.update_resource(client, kind, body, resource_type)

    def drift_fields(self, actual: Dict, desired: Dict) -> List[str]:
        """Top level watch fields whose hash differs between actual and desired."""
        if self.compute_hash(actual) == self.compute_hash(desired):
            return []
        return [
            key
            for key in sorted(set(actual) | set(desired))
            if self.compute_hash({key: actual.get(key)})
            != self.compute_hash({key: desired.get(key)})
        ]
