import logging
import re
from logging import Logger
from typing import Dict, List, Optional, Tuple
from kubernetes_asyncio.client import V1StatefulSet
from splunk_operator.client.base import (
    ObjectStore,
    PERSISTENT_VOLUME_CLAIM,
    STANDALONE,
)
from splunk_operator.common.models.labels import Labels
from splunk_operator.remote.appframework import AppFrameworkEngine, AppFrameworkRefresh
from splunk_operator.remote.credentials import CredentialResolver, RemoteCredentials
from splunk_operator.remote.registry import ProviderRegistry
from splunk_operator.resources.base import CREATED, UPDATED
from splunk_operator.resources.secrets import SecretsResource
from splunk_operator.resources.standalone import StandaloneResource
from splunk_operator.sensors.base import OperatorSensor
from splunk_operator.types.base import BaseModel
from splunk_operator.types.models.app_context import AppContext
from splunk_operator.types.models.phase import Phase
from splunk_operator.types.models.standalone_resources import StandaloneResources
from splunk_operator.types.models.standalone_spec import Standalone, StandaloneStatus
from splunk_operator.types.schemas.standalone import StandaloneStatusSchema
from splunk_operator.types.settings import Settings
from splunk_operator.utils.errors import OperatorError, ValidationError
from splunk_operator.utils.helpers import compute_hash, upsert_condition, utc_now

logger = logging.getLogger(__name__)

PVC_FINALIZER = "enterprise.splunk.com/delete-pvc"
IMAGE_PULL_POLICIES = ("Always", "IfNotPresent")


class ReconcileResult(BaseModel):
    """Outcome of one reconciliation pass."""

    requeue_after: Optional[float]
    error: Optional[Exception]
    descriptor: Standalone

    @property
    def ok(self) -> bool:
        return self.error is None


class _Pass:
    """Mutable bookkeeping of a single pass."""

    def __init__(self, status: StandaloneStatus):
        self.previous_phase = status.phase
        self.rev_map = dict(status.resource_rev_map or {})
        self.app_context: Optional[AppContext] = status.app_context
        self.refresh: Optional[AppFrameworkRefresh] = None
        self.stateful_set: Optional[V1StatefulSet] = None
        self.stateful_set_created = False
        self.stateful_set_updated = False
        self.error: Optional[Exception] = None


def is_transient(error: Exception) -> bool:
    return not isinstance(error, OperatorError) or error.transient


class StandaloneReconciler:
    """Drives the cluster toward the state declared by a Standalone descriptor.

    One call to `apply` is one pass: validate, refresh app framework state,
    converge the child objects in order, then write status. Passes for
    different descriptors may run concurrently; nothing here keeps
    per-descriptor state between passes.
    """

    FINALIZER = PVC_FINALIZER

    registry: ProviderRegistry
    conf: Settings
    sensor: OperatorSensor

    def __init__(
        self,
        registry: ProviderRegistry = None,
        conf: Settings = None,
        sensor: OperatorSensor = None,
        resolver: CredentialResolver = None,
        logger: Logger = None,
    ):
        self.registry = registry if registry is not None else ProviderRegistry.default()
        self.conf = conf or Settings()
        self.sensor = sensor or OperatorSensor()
        self.resolver = resolver or CredentialResolver()
        self.logger = logger or logging.getLogger(__name__)
        self.engine = AppFrameworkEngine(
            self.registry,
            resolver=self.resolver,
            conf=self.conf,
            sensor=self.sensor,
            logger=self.logger,
        )

    async def apply(
        self,
        client: ObjectStore,
        descriptor: Standalone,
        logger: Logger = None,
        trigger_source: str = "reconcile",
    ) -> ReconcileResult:
        """Run one reconciliation pass.

        The given descriptor is left untouched; the returned result carries
        the snapshot produced by this pass. Failures are reported through
        `ReconcileResult.error` and never raised.
        """
        logger = logger or self.logger
        cr = descriptor.deepcopy()
        if cr.status is None:
            cr.status = StandaloneStatusSchema().load({})
        sensor_state = self.sensor.on_reconcile_start(
            cr.name, cr.namespace, cr.metadata.generation, trigger_source
        )
        try:
            if cr.is_being_deleted:
                result = await self._apply_deletion(client, cr, logger)
            else:
                result = await self._apply(client, cr, logger)
        except Exception as ex:
            logger.exception(f"Unexpected error reconciling `{cr.name}`")
            result = ReconcileResult(
                requeue_after=self.conf.default_requeue_seconds,
                error=ex,
                descriptor=cr,
            )
        self.sensor.on_reconcile_complete(
            cr.name, cr.namespace, sensor_state, result.ok, result.error
        )
        return result

    # ---------------------------------------------------------------
    # Validation
    # ---------------------------------------------------------------

    def validate_spec(self, cr: Standalone) -> None:
        """Check the descriptor without reading or writing anything.

        Raises:
            ValidationError
        """
        if not cr.uid:
            raise ValidationError(f"Standalone `{cr.name}` has no uid")
        spec = cr.spec
        if spec.replicas is None or spec.replicas < 0:
            raise ValidationError(f"replicas must not be negative, got {spec.replicas}")
        if spec.image_pull_policy not in IMAGE_PULL_POLICIES:
            raise ValidationError(
                f"imagePullPolicy `{spec.image_pull_policy}` is not valid, "
                f"expected one of {', '.join(IMAGE_PULL_POLICIES)}"
            )
        for env in spec.extra_env or []:
            if not env.name:
                raise ValidationError("extraEnv entry without a name")
        self.engine.validate(spec.app_repo)
        self.validate_smartstore(cr)

    def validate_smartstore(self, cr: Standalone) -> None:
        smartstore = cr.spec.smartstore
        if smartstore is None:
            return
        volumes = smartstore.volumes or []
        AppFrameworkEngine.validate_volumes(volumes, "smartstore")
        default_vol = smartstore.defaults.vol_name if smartstore.defaults else None
        if default_vol and smartstore.find_volume(default_vol) is None:
            raise ValidationError(
                f"smartstore default volName `{default_vol}` matches no volume"
            )
        names = set()
        for index in smartstore.indexes or []:
            if not index.name:
                raise ValidationError("smartstore index without a name")
            if index.name in names:
                raise ValidationError(f"Duplicate smartstore index `{index.name}`")
            names.add(index.name)
            vol_name = index.vol_name or default_vol
            if not vol_name:
                raise ValidationError(
                    f"smartstore index `{index.name}` has no volName and no default is set"
                )
            if smartstore.find_volume(vol_name) is None:
                raise ValidationError(
                    f"smartstore index `{index.name}` refers to unknown volume `{vol_name}`"
                )

    async def resolve_smartstore_credentials(
        self, client: ObjectStore, cr: Standalone
    ) -> Dict[str, RemoteCredentials]:
        """Credentials of every smartstore volume, keyed by volume name.

        Raises:
            ConfigurationError: a referenced secret is missing or incomplete.
        """
        smartstore = cr.spec.smartstore
        credentials = {}
        for volume in (smartstore.volumes or []) if smartstore else []:
            credentials[volume.name] = await self.resolver.resolve(
                client, cr.namespace, volume
            )
        return credentials

    # ---------------------------------------------------------------
    # Reconcile
    # ---------------------------------------------------------------

    def tracked_volumes(self, cr: Standalone) -> Tuple[List, List]:
        app_repo = cr.spec.app_repo
        app_volumes = list(app_repo.volumes or []) if app_repo else []
        smartstore = cr.spec.smartstore
        smartstore_volumes = list(smartstore.volumes or []) if smartstore else []
        return app_volumes, smartstore_volumes

    async def refresh_app_framework(
        self, client: ObjectStore, cr: Standalone, state: _Pass, logger: Logger
    ) -> Dict[str, str]:
        """Refresh app listings when due and return the observed volume secret revisions."""
        app_volumes, smartstore_volumes = self.tracked_volumes(cr)
        observed = await self.engine.observe_volume_secrets(
            client, cr.namespace, app_volumes + smartstore_volumes
        )
        changed = self.engine.keys_changed(observed, state.rev_map)
        for secret_name in changed:
            if secret_name not in state.rev_map:
                logger.info(f"Tracking secret `{secret_name}`")
                continue
            logger.info(f"Secret `{secret_name}` was rotated")
            self.sensor.on_credentials_rotated(cr.name, cr.namespace, secret_name)

        app_repo = cr.spec.app_repo
        if app_repo is None or not app_repo.is_configured():
            state.app_context = None
            return observed

        app_secrets = {v.secret_ref for v in app_volumes if v.secret_ref}
        app_rotated = any(name in app_secrets for name in changed)
        now = utc_now()
        if self.engine.needs_refresh(app_repo, state.app_context, now, rotated=app_rotated):
            logger.info(f"Refreshing app sources of `{cr.name}`")
            state.refresh = await self.engine.refresh(client, cr)
            state.app_context = self.engine.merge_app_context(
                state.app_context, state.refresh, app_repo, now
            )
        return observed

    def config_hash(self, *config_maps) -> Optional[str]:
        data = {}
        for config_map in config_maps:
            if config_map is not None:
                data[config_map.metadata.name] = dict(config_map.data or {})
        return compute_hash(data) if data else None

    async def converge(
        self,
        client: ObjectStore,
        cr: Standalone,
        state: _Pass,
        credentials: Dict[str, RemoteCredentials],
        observed: Dict[str, str],
        logger: Logger,
    ) -> None:
        resource = StandaloneResource(cr, conf=self.conf, logger=logger)
        resource.sensor = self.sensor
        secrets = SecretsResource(
            cr,
            resource.labels,
            history=self.conf.versioned_secret_history,
            logger=logger,
        )
        secrets.sensor = self.sensor

        _, namespace_secret = await secrets.sync_namespace_secret(client)
        await resource.sync_headless_service(client)
        await resource.sync_service(client)
        # a rotated remote volume secret gets a new version mounted
        _, versioned_secret = await secrets.sync_versioned_secret(
            client, namespace_secret, observed
        )

        defaults = resource.prepare_defaults_config_map()
        smartstore = resource.prepare_smartstore_config_map(credentials)
        app_list = resource.prepare_app_list_config_map(state.app_context)
        for config_map in (defaults, smartstore, app_list):
            if config_map is not None:
                await resource.sync_config_map(client, config_map)

        desired = resource.prepare_statefulset(
            versioned_secret.metadata.name, self.config_hash(defaults, smartstore)
        )
        operation, stateful_set, replicas_only = await resource.sync_stateful_set(
            client, desired
        )
        state.stateful_set = stateful_set
        state.stateful_set_created = operation == CREATED
        state.stateful_set_updated = operation == UPDATED and not replicas_only
        state.rev_map[namespace_secret.metadata.name] = (
            namespace_secret.metadata.resource_version
        )

    async def _apply(
        self, client: ObjectStore, cr: Standalone, logger: Logger
    ) -> ReconcileResult:
        state = _Pass(cr.status)
        try:
            self.validate_spec(cr)
            credentials = await self.resolve_smartstore_credentials(client, cr)
        except Exception as ex:
            logger.error(f"Standalone `{cr.name}` is not valid: {ex}")
            state.error = ex
            return await self.finish(client, cr, state, logger)

        try:
            observed = await self.refresh_app_framework(client, cr, state, logger)
            await self.converge(client, cr, state, credentials, observed, logger)
            # only recorded once the workload picked up the current secrets
            state.rev_map.update(observed)
        except Exception as ex:
            logger.error(f"Reconciling `{cr.name}` failed: {ex}")
            state.error = ex
        return await self.finish(client, cr, state, logger)

    # ---------------------------------------------------------------
    # Status
    # ---------------------------------------------------------------

    def compute_phase(self, cr: Standalone, state: _Pass) -> str:
        if state.error is not None:
            if is_transient(state.error):
                return state.previous_phase or Phase.PENDING.value
            return Phase.ERROR.value
        stateful_set = state.stateful_set
        sts_status = stateful_set.status if stateful_set is not None else None
        if (
            stateful_set is None
            or state.stateful_set_created
            or sts_status is None
            or sts_status.observed_generation is None
        ):
            return Phase.PENDING.value
        generation = stateful_set.metadata.generation
        if (
            state.stateful_set_updated
            or (generation is not None and sts_status.observed_generation < generation)
            or (
                sts_status.update_revision
                and sts_status.current_revision
                and sts_status.update_revision != sts_status.current_revision
            )
        ):
            return Phase.UPDATING.value
        desired = cr.spec.replicas
        ready = sts_status.ready_replicas or 0
        current = sts_status.replicas or 0
        if ready < desired:
            return Phase.SCALING_UP.value
        if ready > desired or current > desired:
            return Phase.SCALING_DOWN.value
        return Phase.READY.value

    def compute_message(self, state: _Pass) -> Optional[str]:
        messages = []
        if state.error is not None:
            messages.append(f"{type(state.error).__name__}: {state.error}")
        if state.app_context is not None:
            for name, source in sorted((state.app_context.app_sources or {}).items()):
                if source.error:
                    messages.append(f"App source `{name}`: {source.error}")
        return "; ".join(messages) or None

    def build_status(self, cr: Standalone, state: _Pass) -> StandaloneStatus:
        previous = cr.status
        phase = self.compute_phase(cr, state)
        message = self.compute_message(state)
        ready_replicas = previous.ready_replicas or 0
        if state.stateful_set is not None and state.stateful_set.status is not None:
            ready_replicas = state.stateful_set.status.ready_replicas or 0
        ready = phase == Phase.READY.value
        conditions = upsert_condition(
            previous.conditions,
            {
                "type": "Ready",
                "status": "True" if ready else "False",
                "reason": phase,
                "message": message or ("Standalone is ready" if ready else f"Standalone is {phase}"),
                "observedGeneration": cr.metadata.generation,
            },
        )
        return StandaloneStatus(
            phase=phase,
            replicas=cr.spec.replicas,
            ready_replicas=ready_replicas,
            selector=StandaloneResource(cr, conf=self.conf).selector(),
            resource_rev_map=state.rev_map,
            app_context=state.app_context,
            conditions=conditions,
            message=message,
        )

    async def write_status(
        self, client: ObjectStore, cr: Standalone, status: StandaloneStatus, logger: Logger
    ) -> None:
        """Persist `status` when it differs from the stored one."""
        schema = StandaloneStatusSchema()
        before, after = schema.dump(cr.status), schema.dump(status)
        if before == after:
            return
        changed = sorted(k for k in set(before) | set(after) if before.get(k) != after.get(k))
        if cr.status.phase != status.phase:
            logger.info(f"Standalone `{cr.name}` phase {cr.status.phase} -> {status.phase}")
            self.sensor.on_phase_transition(
                cr.name, cr.namespace, cr.status.phase, status.phase
            )
        cr.status = status
        stored = await client.update_status(STANDALONE, cr)
        cr.metadata.resource_version = stored.metadata.resource_version
        self.sensor.on_status_update(cr.name, cr.namespace, changed)

    def requeue_after(self, cr: Standalone, state: _Pass, phase: str) -> Optional[float]:
        default = self.conf.default_requeue_seconds
        if state.error is not None:
            return default if is_transient(state.error) else None
        delays = []
        poll = self.engine.requeue_after(cr.spec.app_repo, state.app_context, utc_now())
        if poll is not None:
            delays.append(poll)
        if state.refresh is not None and state.refresh.transient:
            delays.append(default)
        if phase != Phase.READY.value:
            delays.append(default)
        return min(delays) if delays else None

    async def finish(
        self, client: ObjectStore, cr: Standalone, state: _Pass, logger: Logger
    ) -> ReconcileResult:
        status = self.build_status(cr, state)
        try:
            await self.write_status(client, cr, status, logger)
        except Exception as ex:
            logger.error(f"Writing status of `{cr.name}` failed: {ex}")
            if state.error is None:
                state.error = ex
        return ReconcileResult(
            requeue_after=self.requeue_after(cr, state, status.phase),
            error=state.error,
            descriptor=cr,
        )

    # ---------------------------------------------------------------
    # Deletion
    # ---------------------------------------------------------------

    def is_descriptor_pvc(self, cr: Standalone, pvc) -> bool:
        component = StandaloneResources.component_name(cr.name)
        labels = pvc.metadata.labels or {}
        if labels.get(Labels.KUBERNETES_INSTANCE_LABEL) == component:
            return True
        pattern = re.compile(StandaloneResources.pvc_name_pattern(cr.name))
        return bool(pattern.match(pvc.metadata.name))

    async def _apply_deletion(
        self, client: ObjectStore, cr: Standalone, logger: Logger
    ) -> ReconcileResult:
        """Delete the claims of a descriptor marked for deletion, then release it.

        Without the PVC finalizer nothing is done: owned objects are
        garbage collected through their owner references.
        """
        if not cr.has_finalizer(self.FINALIZER):
            logger.info(f"Standalone `{cr.name}` deleted without `{self.FINALIZER}`")
            return ReconcileResult(requeue_after=None, error=None, descriptor=cr)

        resource = StandaloneResource(cr, conf=self.conf, logger=logger)
        resource.sensor = self.sensor
        try:
            if cr.status.phase != Phase.TERMINATING.value:
                status = cr.status.deepcopy()
                status.phase = Phase.TERMINATING.value
                status.message = None
                await self.write_status(client, cr, status, logger)

            claims = await client.list(PERSISTENT_VOLUME_CLAIM, cr.namespace)
            for claim in claims:
                if self.is_descriptor_pvc(cr, claim):
                    await resource.delete_resource(
                        client, PERSISTENT_VOLUME_CLAIM, claim.metadata.name, "pvc"
                    )

            cr.metadata.finalizers = [
                f for f in cr.metadata.finalizers or [] if f != self.FINALIZER
            ]
            stored = await client.update(STANDALONE, cr)
            cr.metadata.resource_version = stored.metadata.resource_version
            logger.info(f"Removed finalizer `{self.FINALIZER}` from `{cr.name}`")
        except Exception as ex:
            logger.error(f"Deleting `{cr.name}` failed: {ex}")
            return ReconcileResult(
                requeue_after=self.conf.default_requeue_seconds if is_transient(ex) else None,
                error=ex,
                descriptor=cr,
            )
        return ReconcileResult(requeue_after=None, error=None, descriptor=cr)
