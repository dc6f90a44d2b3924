import asyncio
import logging
import time
from datetime import datetime
from logging import Logger
from typing import Callable, Dict, List, Optional, Tuple
from splunk_operator.client.base import ObjectStore, SECRET
from splunk_operator.remote.base import RemoteStorageClient, split_volume_path
from splunk_operator.remote.credentials import CredentialResolver
from splunk_operator.remote.registry import ProviderRegistry
from splunk_operator.sensors.base import OperatorSensor
from splunk_operator.types.base import BaseModel
from splunk_operator.types.models.app_context import AppContext, AppSourceStatus
from splunk_operator.types.models.app_framework import (
    AppFrameworkSpec,
    AppScope,
    AppSourceSpec,
    RemoteStorageType,
    VolumeSpec,
)
from splunk_operator.types.models.remote_object import RemoteObject
from splunk_operator.types.models.standalone_spec import Standalone
from splunk_operator.types.schemas.app_framework import AppFrameworkSpecSchema
from splunk_operator.types.settings import Settings
from splunk_operator.utils.errors import (
    ConfigurationError,
    OperatorError,
    TransientRemoteError,
    ValidationError,
)
from splunk_operator.utils.helpers import compute_hash

logger = logging.getLogger(__name__)

#: Scopes an app source of a Standalone may use.
STANDALONE_SCOPES = (AppScope.LOCAL.value, AppScope.PREMIUM_APPS.value)


class AppSourceContext(BaseModel):
    """Everything needed to list one app source."""

    client: ObjectStore
    namespace: str
    app_source: AppSourceSpec
    volume: VolumeSpec


class AppSourceOutcome(BaseModel):
    """Result of listing one app source: either objects or an error."""

    name: str
    objects: List[RemoteObject]
    error: Optional[Exception]

    @property
    def ok(self) -> bool:
        return self.error is None


class AppFrameworkRefresh(BaseModel):
    """One outcome per app source, in app source order."""

    outcomes: Dict[str, AppSourceOutcome]

    @property
    def errors(self) -> Dict[str, Exception]:
        return {
            name: outcome.error
            for name, outcome in self.outcomes.items()
            if outcome.error is not None
        }

    @property
    def transient(self) -> bool:
        """Whether any failed app source may succeed on a retry."""
        return any(
            not isinstance(err, OperatorError) or err.transient
            for err in self.errors.values()
        )


class AppFrameworkEngine:
    """Lists app packages from remote storage for each app source of a descriptor.

    The engine holds no per-descriptor state: scheduling information lives in
    the `AppContext` stored in the descriptor status and is passed in by the
    caller.
    """

    registry: ProviderRegistry
    resolver: CredentialResolver
    conf: Settings
    sensor: OperatorSensor

    def __init__(
        self,
        registry: ProviderRegistry,
        resolver: CredentialResolver = None,
        conf: Settings = None,
        sensor: OperatorSensor = None,
        logger: Logger = None,
    ):
        self.registry = registry
        self.resolver = resolver or CredentialResolver()
        self.conf = conf or Settings()
        self.sensor = sensor or OperatorSensor()
        self.logger = logger or logging.getLogger(__name__)

    # -----------------------------------------------------------------
    # Validation
    # -----------------------------------------------------------------

    def validate(self, app_framework: AppFrameworkSpec) -> None:
        """Check the app framework config of a Standalone without touching any remote state.

        Volume bindings of app sources are resolved at listing time so that a
        bad binding only affects its own app source.

        Raises:
            ValidationError
        """
        if app_framework is None:
            return
        if (
            app_framework.apps_repo_poll_interval is not None
            and app_framework.apps_repo_poll_interval < 0
        ):
            raise ValidationError(
                f"appsRepoPollIntervalSeconds must not be negative, got "
                f"{app_framework.apps_repo_poll_interval}"
            )
        self.validate_volumes(app_framework.volumes or [], "appRepo")

        names = set()
        for app_source in app_framework.app_sources or []:
            if not app_source.name:
                raise ValidationError("appRepo app source without a name")
            if app_source.name in names:
                raise ValidationError(f"Duplicate app source name `{app_source.name}`")
            names.add(app_source.name)
            if not app_source.location:
                raise ValidationError(
                    f"App source `{app_source.name}` does not set a location"
                )
            scope = app_source.scope or (
                app_framework.defaults.scope if app_framework.defaults else None
            )
            if scope and scope not in STANDALONE_SCOPES:
                raise ValidationError(
                    f"App source `{app_source.name}` has scope `{scope}`, "
                    f"expected one of {', '.join(STANDALONE_SCOPES)}"
                )

        default_scope = app_framework.defaults.scope if app_framework.defaults else None
        if default_scope and default_scope not in STANDALONE_SCOPES:
            raise ValidationError(
                f"Default scope `{default_scope}` is not valid, "
                f"expected one of {', '.join(STANDALONE_SCOPES)}"
            )

    @classmethod
    def validate_volumes(cls, volumes: List[VolumeSpec], owner: str) -> None:
        names = set()
        for volume in volumes:
            if not volume.name:
                raise ValidationError(f"{owner} volume without a name")
            if volume.name in names:
                raise ValidationError(f"Duplicate {owner} volume name `{volume.name}`")
            names.add(volume.name)
            if not volume.path:
                raise ValidationError(f"Volume `{volume.name}` does not set a path")
            if volume.storage_type and volume.storage_type != RemoteStorageType.S3.value:
                raise ValidationError(
                    f"Volume `{volume.name}` has unsupported storageType "
                    f"`{volume.storage_type}`"
                )

    # -----------------------------------------------------------------
    # Volume and client resolution
    # -----------------------------------------------------------------

    def get_app_src_volume(
        self, app_source: AppSourceSpec, app_framework: AppFrameworkSpec
    ) -> VolumeSpec:
        """Return the volume an app source lists from.

        The app source's own `volName` wins over the framework default.

        Raises:
            ConfigurationError: neither is set, or the name matches no volume.
        """
        vol_name = app_source.vol_name
        if not vol_name and app_framework.defaults:
            vol_name = app_framework.defaults.vol_name
        if not vol_name:
            raise ConfigurationError(
                f"App source `{app_source.name}` has no volume and no default volume is set"
            )
        volume = app_framework.find_volume(vol_name)
        if volume is None:
            raise ConfigurationError(
                f"App source `{app_source.name}` refers to unknown volume `{vol_name}`"
            )
        return volume

    async def get_remote_client(
        self, context: AppSourceContext
    ) -> Tuple[Callable[[], RemoteStorageClient], str]:
        """Resolve what an app source needs and return a client builder with the key prefix to list.

        Building the client may block (boto3 loads its models from disk), so
        the builder is meant to be called off the event loop.
        """
        volume = context.volume
        try:
            bucket, prefix = split_volume_path(volume.path, context.app_source.location)
        except ValueError as ex:
            raise ConfigurationError(str(ex))
        factory = self.registry.get(volume.provider)
        credentials = await self.resolver.resolve(
            context.client, context.namespace, volume
        )

        def build() -> RemoteStorageClient:
            try:
                remote = factory(
                    bucket=bucket,
                    region=volume.region,
                    access_key=credentials.access_key,
                    secret_key=credentials.secret_key,
                    endpoint=volume.endpoint,
                )
            except OperatorError:
                raise
            except Exception as ex:
                raise ConfigurationError(
                    f"Unable to build `{volume.provider}` client for volume `{volume.name}`: {ex}"
                )
            if remote is None:
                raise ConfigurationError(
                    f"Provider `{volume.provider}` returned no client for volume `{volume.name}`"
                )
            return remote

        return build, prefix

    @staticmethod
    def _build_and_list(
        build: Callable[[], RemoteStorageClient],
        prefix: str,
        deadline: Optional[float],
    ) -> List[RemoteObject]:
        return build().list_objects(prefix, deadline=deadline)

    async def get_apps_list(
        self, context: AppSourceContext, deadline: float = None
    ) -> List[RemoteObject]:
        """List the objects of one app source, passed through as the provider reports them.

        An empty listing is a success. Past `deadline` (a `time.monotonic()`
        value) the listing is abandoned.
        """
        build, prefix = await self.get_remote_client(context)
        loop = asyncio.get_running_loop()
        objects = await loop.run_in_executor(
            None, self._build_and_list, build, prefix, deadline
        )
        return list(objects or [])

    # -----------------------------------------------------------------
    # Credential rotation
    # -----------------------------------------------------------------

    async def observe_volume_secrets(
        self, client: ObjectStore, namespace: str, volumes: List[VolumeSpec]
    ) -> Dict[str, str]:
        """Return the current resourceVersion of every existing volume secret."""
        observed = {}
        for secret_name in sorted({v.secret_ref for v in volumes if v.secret_ref}):
            secret = await client.get(SECRET, namespace, secret_name)
            if secret is None:
                self.logger.warning(
                    f"Volume secret `{secret_name}` not found in `{namespace}`, "
                    f"its rotation is not tracked"
                )
                continue
            observed[secret_name] = secret.metadata.resource_version
        return observed

    @staticmethod
    def keys_changed(observed: Dict[str, str], rev_map: Dict[str, str]) -> List[str]:
        """Names of observed secrets whose revision differs from the recorded one.

        A secret without a recorded revision counts as changed.
        """
        rev_map = rev_map or {}
        return [
            name for name, version in observed.items() if rev_map.get(name) != version
        ]

    async def are_remote_volume_keys_changed(
        self,
        client: ObjectStore,
        descriptor: Standalone,
        volumes: List[VolumeSpec],
        rev_map: Dict[str, str],
    ) -> bool:
        """Whether a volume secret was rotated, or is not yet recorded, in `rev_map`."""
        observed = await self.observe_volume_secrets(
            client, descriptor.namespace, volumes
        )
        return bool(self.keys_changed(observed, rev_map))

    # -----------------------------------------------------------------
    # Refresh and scheduling
    # -----------------------------------------------------------------

    def poll_interval(self, app_framework: AppFrameworkSpec) -> int:
        interval = app_framework.apps_repo_poll_interval
        if interval is None:
            interval = self.conf.apps_repo_poll_interval_seconds
        return min(max(int(interval), 0), self.conf.max_apps_repo_poll_interval_seconds)

    def spec_hash(self, app_framework: AppFrameworkSpec) -> str:
        return compute_hash(AppFrameworkSpecSchema().dump(app_framework))

    def needs_refresh(
        self,
        app_framework: AppFrameworkSpec,
        app_context: Optional[AppContext],
        now: datetime,
        rotated: bool = False,
    ) -> bool:
        if app_framework is None or not app_framework.is_configured():
            return False
        if rotated:
            return True
        if app_context is None or app_context.spec_hash != self.spec_hash(app_framework):
            return True
        interval = self.poll_interval(app_framework)
        if interval == 0:
            return False
        last = app_context.last_app_info_check_time
        return last is None or (now - last).total_seconds() >= interval

    def requeue_after(
        self,
        app_framework: AppFrameworkSpec,
        app_context: Optional[AppContext],
        now: datetime,
    ) -> Optional[float]:
        """Seconds until the next poll is due, or None when polling is disabled."""
        if app_framework is None or not app_framework.is_configured():
            return None
        interval = self.poll_interval(app_framework)
        if interval == 0:
            return None
        if app_context is None or app_context.last_app_info_check_time is None:
            return 0.0
        elapsed = (now - app_context.last_app_info_check_time).total_seconds()
        return max(float(interval) - elapsed, 0.0)

    async def _list_app_source(
        self,
        client: ObjectStore,
        descriptor: Standalone,
        app_source: AppSourceSpec,
        app_framework: AppFrameworkSpec,
    ) -> AppSourceOutcome:
        try:
            volume = self.get_app_src_volume(app_source, app_framework)
            context = AppSourceContext(
                client=client,
                namespace=descriptor.namespace,
                app_source=app_source,
                volume=volume,
            )
            timeout = self.conf.remote_listing_timeout_seconds
            try:
                # the executor thread is not cancelled with the task, the deadline stops it
                objects = await asyncio.wait_for(
                    self.get_apps_list(context, deadline=time.monotonic() + timeout),
                    timeout=timeout,
                )
            except asyncio.TimeoutError:
                raise TransientRemoteError(
                    f"Listing app source `{app_source.name}` timed out after "
                    f"{timeout}s"
                )
        except Exception as ex:
            self.logger.warning(f"Listing app source `{app_source.name}` failed: {ex}")
            self.sensor.on_app_source_listed(
                descriptor.name, descriptor.namespace, app_source.name, False, error=ex
            )
            return AppSourceOutcome(name=app_source.name, objects=[], error=ex)

        self.logger.info(
            f"Listed {len(objects)} objects from app source `{app_source.name}`"
        )
        self.sensor.on_app_source_listed(
            descriptor.name,
            descriptor.namespace,
            app_source.name,
            True,
            object_count=len(objects),
        )
        return AppSourceOutcome(name=app_source.name, objects=objects, error=None)

    async def refresh(
        self, client: ObjectStore, descriptor: Standalone
    ) -> AppFrameworkRefresh:
        """List every app source of the descriptor concurrently.

        Each app source runs as its own task; a failure, timeout or
        cancellation of one app source is recorded as its outcome and never
        affects the others.
        """
        app_framework = descriptor.spec.app_repo
        app_sources = list(app_framework.app_sources or []) if app_framework else []
        tasks = [
            asyncio.ensure_future(
                self._list_app_source(client, descriptor, app_source, app_framework)
            )
            for app_source in app_sources
        ]
        results = await asyncio.gather(*tasks, return_exceptions=True)

        outcomes = {}
        for app_source, result in zip(app_sources, results):
            if isinstance(result, BaseException):
                # the task itself was cancelled; nothing it listed is kept
                error = TransientRemoteError(
                    f"Listing app source `{app_source.name}` was cancelled"
                )
                self.sensor.on_app_source_listed(
                    descriptor.name,
                    descriptor.namespace,
                    app_source.name,
                    False,
                    error=error,
                )
                result = AppSourceOutcome(name=app_source.name, objects=[], error=error)
            outcomes[app_source.name] = result
        return AppFrameworkRefresh(outcomes=outcomes)

    def merge_app_context(
        self,
        previous: Optional[AppContext],
        refresh: AppFrameworkRefresh,
        app_framework: AppFrameworkSpec,
        now: datetime,
    ) -> AppContext:
        """Fold a refresh into the app context stored in status.

        A failed app source keeps its last successful listing.
        """
        previous_sources = (previous.app_sources if previous else None) or {}
        app_sources = {}
        for name, outcome in refresh.outcomes.items():
            if outcome.ok:
                app_sources[name] = AppSourceStatus(
                    objects=list(outcome.objects), last_listed=now, error=None
                )
            else:
                prior = previous_sources.get(name)
                app_sources[name] = AppSourceStatus(
                    objects=list(prior.objects or []) if prior else [],
                    last_listed=prior.last_listed if prior else None,
                    error=str(outcome.error),
                )
        return AppContext(
            spec_hash=self.spec_hash(app_framework),
            apps_repo_poll_interval=self.poll_interval(app_framework),
            last_app_info_check_time=now,
            app_sources=app_sources,
        )
