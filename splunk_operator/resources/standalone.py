import yaml
from logging import Logger
from typing import Dict, List, Optional, Tuple
from kubernetes_asyncio.client import (
    V1Affinity,
    V1ConfigMap,
    V1ConfigMapVolumeSource,
    V1Container,
    V1ContainerPort,
    V1EmptyDirVolumeSource,
    V1EnvVar,
    V1ExecAction,
    V1LabelSelector,
    V1LabelSelectorRequirement,
    V1ObjectMeta,
    V1PersistentVolumeClaim,
    V1PersistentVolumeClaimSpec,
    V1PodAffinityTerm,
    V1PodAntiAffinity,
    V1PodSecurityContext,
    V1PodSpec,
    V1PodTemplateSpec,
    V1Probe,
    V1ResourceRequirements,
    V1SecretVolumeSource,
    V1Service,
    V1ServicePort,
    V1ServiceSpec,
    V1StatefulSet,
    V1StatefulSetSpec,
    V1StatefulSetUpdateStrategy,
    V1Volume,
    V1VolumeMount,
    V1WeightedPodAffinityTerm,
)
from splunk_operator.client.base import ObjectStore, SERVICE, CONFIG_MAP, STATEFUL_SET
from splunk_operator.common.models.labels import Labels
from splunk_operator.remote.credentials import RemoteCredentials
from splunk_operator.resources.base import BaseResource, UPDATED
from splunk_operator.types.models.app_context import AppContext
from splunk_operator.types.models.standalone_resources import StandaloneResources
from splunk_operator.types.models.standalone_spec import Standalone
from splunk_operator.types.models.storage import StorageClassSpec
from splunk_operator.types.schemas.remote_object import RemoteObjectSchema
from splunk_operator.types.settings import Settings


class StandaloneResource(BaseResource):
    """Builds the child objects of a Standalone descriptor and keeps them in sync."""

    KIND = "Standalone"
    COMPONENT_TYPE = "standalone"
    CONTAINER_NAME = "splunk"
    SPLUNK_HOME = "/opt/splunk"
    SPLUNK_ROLE = "splunk_standalone"

    SECRETS_VOLUME = "mnt-splunk-secrets"
    SECRETS_MOUNT_PATH = "/mnt/splunk-secrets"
    DEFAULTS_VOLUME = "mnt-splunk-defaults"
    DEFAULTS_MOUNT_PATH = "/mnt/splunk-defaults"
    SMARTSTORE_VOLUME = "mnt-splunk-operator"
    SMARTSTORE_MOUNT_PATH = "/mnt/splunk-operator/local"
    APP_LIST_VOLUME = "mnt-app-listing"
    APP_LIST_MOUNT_PATH = "/mnt/app-listing"

    DEFAULTS_FILE = "default.yml"
    INDEXES_CONF = "indexes.conf"
    APP_LIST_FILE = "app-list.yml"

    PORTS = (
        ("http-splunkweb", 8000),
        ("http-hec", 8088),
        ("https-splunkd", 8089),
        ("tcp-s2s", 9997),
    )

    RUN_AS_USER = 41812
    DEFAULT_ETC_STORAGE = "10Gi"
    DEFAULT_VAR_STORAGE = "100Gi"
    DEFAULT_RESOURCES = {
        "limits": {"cpu": "4", "memory": "8Gi"},
        "requests": {"cpu": "100m", "memory": "512Mi"},
    }
    POD_ANNOTATIONS = {
        "traffic.sidecar.istio.io/excludeOutboundPorts": "8089,8191,9997",
        "traffic.sidecar.istio.io/includeInboundPorts": "8000,8088",
    }
    CONFIG_HASH_ANNOTATION = "enterprise.splunk.com/config-hash"

    HEADLESS_SERVICE_TYPE = "headless_service"
    SERVICE_TYPE = "service"
    CONFIG_MAP_TYPE = "config_map"
    STATEFUL_SET_TYPE = "stateful_set"

    conf: Settings

    def __init__(self, owner: Standalone, conf: Settings = None, logger: Logger = None):
        component_name = StandaloneResources.component_name(owner.name)
        labels = Labels.generate_default_labels(component_name, self.COMPONENT_TYPE)
        super().__init__(owner, component_name, labels, logger=logger)
        self.conf = conf or Settings()
        self.spec = owner.spec
        self.stateful_set_name = StandaloneResources.stateful_set_name(owner.name)
        self.headless_service_name = StandaloneResources.headless_service_name(owner.name)
        self.service_name = StandaloneResources.service_name(owner.name)
        self.defaults_config_name = StandaloneResources.defaults_config_name(owner.name)
        self.smartstore_config_name = StandaloneResources.smartstore_config_name(owner.name)
        self.app_list_config_name = StandaloneResources.app_list_config_name(owner.name)

    @property
    def image(self) -> str:
        return self.spec.image or self.conf.default_image

    @property
    def replicas(self) -> int:
        return self.spec.replicas if self.spec.replicas is not None else 1

    def selector(self) -> str:
        return self.labels.selector_labels().as_str()

    # ---------------------------------------------------------------
    # Services
    # ---------------------------------------------------------------

    def prepare_service_ports(self) -> List[V1ServicePort]:
        return [
            V1ServicePort(name=name, protocol="TCP", port=port, target_port=port)
            for name, port in self.PORTS
        ]

    def prepare_headless_service(self) -> V1Service:
        """Build headless service resource."""
        service = V1Service(
            api_version="v1",
            kind="Service",
            metadata=V1ObjectMeta(
                name=self.headless_service_name,
                namespace=self.namespace,
                labels=self.labels.as_dict(),
                annotations={},
                owner_references=[self.prepare_owner_reference()],
            ),
            spec=V1ServiceSpec(
                selector=self.labels.selector_labels().as_dict(),
                cluster_ip="None",
                publish_not_ready_addresses=True,
                ports=self.prepare_service_ports(),
            ),
        )
        service.metadata.annotations.update(
            self.prepare_hash_annotation(self.prepare_service_hash(service))
        )
        return service

    def prepare_service(self) -> V1Service:
        """Build the client service, applying the service template."""
        template = self.spec.service_template
        template_metadata = template.metadata if template else None
        labels = dict((template_metadata.labels if template_metadata else None) or {})
        labels.update(self.labels.as_dict())
        annotations = dict(
            (template_metadata.annotations if template_metadata else None) or {}
        )
        service = V1Service(
            api_version="v1",
            kind="Service",
            metadata=V1ObjectMeta(
                name=self.service_name,
                namespace=self.namespace,
                labels=labels,
                annotations=annotations,
                owner_references=[self.prepare_owner_reference()],
            ),
            spec=V1ServiceSpec(
                selector=self.labels.selector_labels().as_dict(),
                type=(template.type if template else None) or "ClusterIP",
                ports=self.prepare_service_ports(),
            ),
        )
        annotations.update(
            self.prepare_hash_annotation(self.prepare_service_hash(service))
        )
        return service

    def prepare_service_hash(self, service: V1Service) -> str:
        """Compute hash for a service resource."""
        return self.compute_hash(service.to_dict())

    def prepare_service_watch_fields(self, service: V1Service) -> Dict:
        """
        Prepare fields of interest when comparing actual vs desired state.
        These fields are tracked for changes made outside the operator and are used to
        determine if an update is needed.
        """
        return {
            "ports": [
                [p.name, p.port, p.target_port, p.protocol]
                for p in service.spec.ports or []
            ],
            "type": service.spec.type or "ClusterIP",
            "selector": service.spec.selector or {},
            "hash": self.hash_of(service),
        }

    def prepare_service_update(self, existing: V1Service, desired: V1Service) -> V1Service:
        """Apply the desired fields onto the existing service, keeping server assigned ones (clusterIP)."""
        existing.metadata.labels = {
            **(existing.metadata.labels or {}),
            **(desired.metadata.labels or {}),
        }
        existing.metadata.annotations = {
            **(existing.metadata.annotations or {}),
            **(desired.metadata.annotations or {}),
        }
        existing.spec.ports = desired.spec.ports
        existing.spec.selector = desired.spec.selector
        if desired.spec.type:
            existing.spec.type = desired.spec.type
        if desired.spec.publish_not_ready_addresses is not None:
            existing.spec.publish_not_ready_addresses = (
                desired.spec.publish_not_ready_addresses
            )
        return existing

    async def sync_headless_service(self, client: ObjectStore) -> Tuple[str, V1Service]:
        """Check current state of headless service and create/update if needed"""
        return await self.sync_resource(
            client,
            SERVICE,
            self.HEADLESS_SERVICE_TYPE,
            self.prepare_headless_service(),
            self.prepare_service_watch_fields,
            self.prepare_service_update,
        )

    async def sync_service(self, client: ObjectStore) -> Tuple[str, V1Service]:
        """Check current state of service and create/update if needed."""
        return await self.sync_resource(
            client,
            SERVICE,
            self.SERVICE_TYPE,
            self.prepare_service(),
            self.prepare_service_watch_fields,
            self.prepare_service_update,
        )

    # ---------------------------------------------------------------
    # ConfigMaps
    # ---------------------------------------------------------------

    def _config_map(self, name: str, data: Dict[str, str]) -> V1ConfigMap:
        config_map = V1ConfigMap(
            api_version="v1",
            kind="ConfigMap",
            metadata=V1ObjectMeta(
                name=name,
                namespace=self.namespace,
                labels=self.labels.as_dict(),
                annotations={},
                owner_references=[self.prepare_owner_reference()],
            ),
            data=data,
        )
        config_map.metadata.annotations.update(
            self.prepare_hash_annotation(self.compute_hash(dict(data)))
        )
        return config_map

    def prepare_defaults_config_map(self) -> Optional[V1ConfigMap]:
        if not self.spec.defaults:
            return None
        return self._config_map(
            self.defaults_config_name, {self.DEFAULTS_FILE: self.spec.defaults}
        )

    def render_indexes_conf(self, credentials: Dict[str, RemoteCredentials]) -> str:
        """Render indexes.conf for the smartstore volumes and indexes."""
        smartstore = self.spec.smartstore
        lines = []
        defaults = smartstore.defaults
        lines += [
            "[default]",
            "repFactor = auto",
            "maxDataSize = auto",
            "homePath = $SPLUNK_DB/$_index_name/db",
            "coldPath = $SPLUNK_DB/$_index_name/colddb",
            "thawedPath = $SPLUNK_DB/$_index_name/thaweddb",
        ]
        if defaults and defaults.vol_name:
            lines.append(f"remotePath = volume:{defaults.vol_name}/$_index_name")
        if defaults and defaults.max_global_data_size_mb:
            lines.append(f"maxGlobalDataSizeMB = {defaults.max_global_data_size_mb}")
        if defaults and defaults.max_global_raw_data_size_mb:
            lines.append(
                f"maxGlobalRawDataSizeMB = {defaults.max_global_raw_data_size_mb}"
            )
        lines.append("")

        for volume in smartstore.volumes or []:
            lines += [
                f"[volume:{volume.name}]",
                "storageType = remote",
                f"path = s3://{volume.path}",
            ]
            keys = credentials.get(volume.name)
            if keys is not None and not keys.anonymous:
                lines.append(f"remote.s3.access_key = {keys.access_key}")
                lines.append(f"remote.s3.secret_key = {keys.secret_key}")
            if volume.endpoint:
                lines.append(f"remote.s3.endpoint = {volume.endpoint}")
            lines.append("")

        for index in smartstore.indexes or []:
            lines.append(f"[{index.name}]")
            vol_name = index.vol_name or (defaults.vol_name if defaults else None)
            if vol_name:
                remote_path = index.remote_path or index.name
                lines.append(f"remotePath = volume:{vol_name}/{remote_path}")
            if index.max_global_data_size_mb:
                lines.append(f"maxGlobalDataSizeMB = {index.max_global_data_size_mb}")
            if index.max_global_raw_data_size_mb:
                lines.append(
                    f"maxGlobalRawDataSizeMB = {index.max_global_raw_data_size_mb}"
                )
            lines.append("")
        return "\n".join(lines)

    def prepare_smartstore_config_map(
        self, credentials: Dict[str, RemoteCredentials]
    ) -> Optional[V1ConfigMap]:
        if not self.spec.smartstore or not self.spec.smartstore.is_configured():
            return None
        return self._config_map(
            self.smartstore_config_name,
            {self.INDEXES_CONF: self.render_indexes_conf(credentials)},
        )

    def render_app_list(self, app_context: Optional[AppContext]) -> str:
        app_framework = self.spec.app_repo
        default_vol = app_framework.defaults.vol_name if app_framework.defaults else None
        default_scope = app_framework.defaults.scope if app_framework.defaults else None
        sources_status = (app_context.app_sources if app_context else None) or {}
        schema = RemoteObjectSchema()
        app_sources = []
        for app_source in app_framework.app_sources or []:
            status = sources_status.get(app_source.name)
            app_sources.append(
                {
                    "name": app_source.name,
                    "location": app_source.location,
                    "volName": app_source.vol_name or default_vol,
                    "scope": app_source.scope or default_scope or "local",
                    "objects": [
                        schema.dump(obj) for obj in (status.objects if status else [])
                    ],
                }
            )
        return yaml.safe_dump(
            {"appSources": app_sources}, default_flow_style=False, sort_keys=False
        )

    def prepare_app_list_config_map(
        self, app_context: Optional[AppContext]
    ) -> Optional[V1ConfigMap]:
        if not self.spec.app_repo or not self.spec.app_repo.is_configured():
            return None
        return self._config_map(
            self.app_list_config_name, {self.APP_LIST_FILE: self.render_app_list(app_context)}
        )

    def prepare_config_map_watch_fields(self, config_map: V1ConfigMap) -> Dict:
        return {"data": dict(config_map.data or {}), "hash": self.hash_of(config_map)}

    def prepare_config_map_update(
        self, existing: V1ConfigMap, desired: V1ConfigMap
    ) -> V1ConfigMap:
        existing.data = desired.data
        existing.metadata.labels = {
            **(existing.metadata.labels or {}),
            **(desired.metadata.labels or {}),
        }
        existing.metadata.annotations = {
            **(existing.metadata.annotations or {}),
            **(desired.metadata.annotations or {}),
        }
        return existing

    async def sync_config_map(
        self, client: ObjectStore, config_map: V1ConfigMap
    ) -> Tuple[str, V1ConfigMap]:
        return await self.sync_resource(
            client,
            CONFIG_MAP,
            self.CONFIG_MAP_TYPE,
            config_map,
            self.prepare_config_map_watch_fields,
            self.prepare_config_map_update,
        )

    # ---------------------------------------------------------------
    # StatefulSet
    # ---------------------------------------------------------------

    def prepare_defaults_url(self) -> str:
        urls = [f"{self.SECRETS_MOUNT_PATH}/{self.DEFAULTS_FILE}"]
        if self.spec.defaults_url:
            urls.append(self.spec.defaults_url)
        if self.spec.defaults:
            urls.append(f"{self.DEFAULTS_MOUNT_PATH}/{self.DEFAULTS_FILE}")
        return ",".join(urls)

    def prepare_env_vars(self) -> List[V1EnvVar]:
        env = [
            V1EnvVar(name="SPLUNK_HOME", value=self.SPLUNK_HOME),
            V1EnvVar(name="SPLUNK_START_ARGS", value="--accept-license"),
            V1EnvVar(name="SPLUNK_DEFAULTS_URL", value=self.prepare_defaults_url()),
            V1EnvVar(name="SPLUNK_HOME_OWNERSHIP_ENFORCEMENT", value="false"),
            V1EnvVar(name="SPLUNK_ROLE", value=self.SPLUNK_ROLE),
            V1EnvVar(name="SPLUNK_DECLARATIVE_ADMIN_PASSWORD", value="true"),
        ]
        reserved = {e.name for e in env}
        for extra in self.spec.extra_env or []:
            if extra.name in reserved:
                self.logger.warning(
                    f"Ignoring extraEnv `{extra.name}`, it is managed by the operator"
                )
                continue
            env.append(V1EnvVar(name=extra.name, value=extra.value))
        return env

    def prepare_volume_claim(self, volume: str, storage: StorageClassSpec, default_size: str):
        return V1PersistentVolumeClaim(
            api_version="v1",
            kind="PersistentVolumeClaim",
            metadata=V1ObjectMeta(
                name=StandaloneResources.pvc_template_name(volume),
                namespace=self.namespace,
                labels=self.labels.as_dict(),
            ),
            spec=V1PersistentVolumeClaimSpec(
                access_modes=["ReadWriteOnce"],
                storage_class_name=storage.storage_class_name if storage else None,
                resources=V1ResourceRequirements(
                    requests={
                        "storage": (storage.storage_capacity if storage else None)
                        or default_size
                    }
                ),
            ),
        )

    def prepare_storage(self) -> Tuple[List[V1PersistentVolumeClaim], List[V1Volume], List[V1VolumeMount]]:
        """Claim templates (or emptyDir volumes when ephemeral) for etc and var."""
        claims, volumes, mounts = [], [], []
        for volume, storage, default_size in (
            ("etc", self.spec.etc_volume_storage_config, self.DEFAULT_ETC_STORAGE),
            ("var", self.spec.var_volume_storage_config, self.DEFAULT_VAR_STORAGE),
        ):
            mount_path = f"{self.SPLUNK_HOME}/{volume}"
            if storage is not None and storage.ephemeral_storage:
                name = f"mnt-splunk-{volume}"
                volumes.append(V1Volume(name=name, empty_dir=V1EmptyDirVolumeSource()))
            else:
                claim = self.prepare_volume_claim(volume, storage, default_size)
                name = claim.metadata.name
                claims.append(claim)
            mounts.append(V1VolumeMount(name=name, mount_path=mount_path))
        return claims, volumes, mounts

    def prepare_config_volumes(
        self, versioned_secret_name: str
    ) -> Tuple[List[V1Volume], List[V1VolumeMount]]:
        volumes = [
            V1Volume(
                name=self.SECRETS_VOLUME,
                secret=V1SecretVolumeSource(secret_name=versioned_secret_name),
            )
        ]
        mounts = [
            V1VolumeMount(name=self.SECRETS_VOLUME, mount_path=self.SECRETS_MOUNT_PATH)
        ]
        for enabled, volume_name, config_name, mount_path in (
            (
                bool(self.spec.defaults),
                self.DEFAULTS_VOLUME,
                self.defaults_config_name,
                self.DEFAULTS_MOUNT_PATH,
            ),
            (
                bool(self.spec.smartstore and self.spec.smartstore.is_configured()),
                self.SMARTSTORE_VOLUME,
                self.smartstore_config_name,
                self.SMARTSTORE_MOUNT_PATH,
            ),
            (
                bool(self.spec.app_repo and self.spec.app_repo.is_configured()),
                self.APP_LIST_VOLUME,
                self.app_list_config_name,
                self.APP_LIST_MOUNT_PATH,
            ),
        ):
            if not enabled:
                continue
            volumes.append(
                V1Volume(
                    name=volume_name,
                    config_map=V1ConfigMapVolumeSource(name=config_name),
                )
            )
            mounts.append(V1VolumeMount(name=volume_name, mount_path=mount_path))
        return volumes, mounts

    def prepare_container_resource_requirements(self) -> V1ResourceRequirements:
        resources = self.spec.resources or self.DEFAULT_RESOURCES
        return V1ResourceRequirements(
            limits=resources.get("limits"), requests=resources.get("requests")
        )

    def prepare_container_probes(self) -> Dict[str, V1Probe]:
        return {
            "liveness_probe": V1Probe(
                _exec=V1ExecAction(command=["/sbin/checkstate.sh"]),
                initial_delay_seconds=300,
                timeout_seconds=30,
                period_seconds=30,
            ),
            "readiness_probe": V1Probe(
                _exec=V1ExecAction(
                    command=[
                        "/bin/grep",
                        "started",
                        "/opt/container_artifact/splunk-container.state",
                    ]
                ),
                initial_delay_seconds=10,
                timeout_seconds=5,
                period_seconds=5,
            ),
        }

    def prepare_affinity(self) -> V1Affinity:
        return V1Affinity(
            pod_anti_affinity=V1PodAntiAffinity(
                preferred_during_scheduling_ignored_during_execution=[
                    V1WeightedPodAffinityTerm(
                        weight=100,
                        pod_affinity_term=V1PodAffinityTerm(
                            label_selector=V1LabelSelector(
                                match_expressions=[
                                    V1LabelSelectorRequirement(
                                        key=Labels.KUBERNETES_INSTANCE_LABEL,
                                        operator="In",
                                        values=[self.component_name],
                                    )
                                ]
                            ),
                            topology_key="kubernetes.io/hostname",
                        ),
                    )
                ]
            )
        )

    def prepare_statefulset(
        self, versioned_secret_name: str, config_hash: str = None
    ) -> V1StatefulSet:
        """Build stateful set resource."""
        claims, storage_volumes, storage_mounts = self.prepare_storage()
        config_volumes, config_mounts = self.prepare_config_volumes(versioned_secret_name)
        container = V1Container(
            name=self.CONTAINER_NAME,
            image=self.image,
            image_pull_policy=self.spec.image_pull_policy or "IfNotPresent",
            ports=[
                V1ContainerPort(name=name, container_port=port, protocol="TCP")
                for name, port in self.PORTS
            ],
            env=self.prepare_env_vars(),
            resources=self.prepare_container_resource_requirements(),
            volume_mounts=storage_mounts + config_mounts,
            **self.prepare_container_probes(),
        )
        pod_annotations = dict(self.POD_ANNOTATIONS)
        if config_hash:
            pod_annotations[self.CONFIG_HASH_ANNOTATION] = config_hash
        annotations = {}
        stateful_set = V1StatefulSet(
            api_version="apps/v1",
            kind="StatefulSet",
            metadata=V1ObjectMeta(
                name=self.stateful_set_name,
                namespace=self.namespace,
                labels=self.labels.as_dict(),
                annotations=annotations,
                owner_references=[self.prepare_owner_reference()],
            ),
            spec=V1StatefulSetSpec(
                replicas=self.replicas,
                service_name=self.headless_service_name,
                update_strategy=V1StatefulSetUpdateStrategy(type="OnDelete"),
                pod_management_policy="Parallel",
                selector=V1LabelSelector(
                    match_labels=self.labels.selector_labels().as_dict()
                ),
                template=V1PodTemplateSpec(
                    metadata=V1ObjectMeta(
                        labels=self.labels.selector_labels().as_dict(),
                        annotations=pod_annotations,
                    ),
                    spec=V1PodSpec(
                        containers=[container],
                        volumes=storage_volumes + config_volumes,
                        security_context=V1PodSecurityContext(
                            run_as_user=self.RUN_AS_USER,
                            run_as_non_root=True,
                            fs_group=self.RUN_AS_USER,
                        ),
                        affinity=self.prepare_affinity(),
                        scheduler_name="default-scheduler",
                    ),
                ),
                volume_claim_templates=claims or None,
            ),
        )
        annotations.update(
            self.prepare_hash_annotation(self.prepare_statefulset_hash(stateful_set))
        )
        return stateful_set

    def prepare_statefulset_hash(self, stateful_set: V1StatefulSet) -> str:
        """Compute hash for stateful set resource; replicas are tracked on their own."""
        body = stateful_set.to_dict()
        body["spec"].pop("replicas", None)
        return self.compute_hash(body)

    def prepare_statefulset_watch_fields(self, stateful_set: V1StatefulSet) -> Dict:
        """
        Prepare fields of interest when comparing actual vs desired state.
        These fields are tracked for changes made outside the operator and are used to
        determine if an update is needed.
        """
        pod_spec = stateful_set.spec.template.spec
        container = next(
            (c for c in pod_spec.containers if c.name == self.CONTAINER_NAME),
            pod_spec.containers[0],
        )
        volumes = []
        for volume in pod_spec.volumes or []:
            if volume.secret is not None:
                volumes.append([volume.name, "secret", volume.secret.secret_name])
            elif volume.config_map is not None:
                volumes.append([volume.name, "configMap", volume.config_map.name])
            else:
                volumes.append([volume.name, "other", None])
        template_annotations = stateful_set.spec.template.metadata.annotations or {}
        return {
            "replicas": stateful_set.spec.replicas,
            "image": container.image,
            "imagePullPolicy": container.image_pull_policy,
            "env": [[e.name, e.value] for e in container.env or []],
            "volumes": volumes,
            "configHash": template_annotations.get(self.CONFIG_HASH_ANNOTATION),
            "hash": self.hash_of(stateful_set),
        }

    def prepare_statefulset_update(
        self, existing: V1StatefulSet, desired: V1StatefulSet
    ) -> V1StatefulSet:
        """Apply desired fields onto the existing stateful set.

        Selector and claim templates are immutable and are kept as they are.
        """
        existing.metadata.labels = {
            **(existing.metadata.labels or {}),
            **(desired.metadata.labels or {}),
        }
        existing.metadata.annotations = {
            **(existing.metadata.annotations or {}),
            **(desired.metadata.annotations or {}),
        }
        existing.spec.replicas = desired.spec.replicas
        existing.spec.template = desired.spec.template
        existing.spec.update_strategy = desired.spec.update_strategy
        existing.spec.service_name = desired.spec.service_name
        return existing

    def prepare_replicas_update(
        self, existing: V1StatefulSet, desired: V1StatefulSet
    ) -> V1StatefulSet:
        existing.spec.replicas = desired.spec.replicas
        return existing

    async def sync_stateful_set(
        self, client: ObjectStore, desired: V1StatefulSet
    ) -> Tuple[str, V1StatefulSet, bool]:
        """Check current state of stateful set and create/update if needed.

        Returns:
            The operation, the resulting stateful set and whether only the
            replica count was changed.
        """
        replicas_only = False

        def prepare_update(existing: V1StatefulSet, wanted: V1StatefulSet):
            nonlocal replicas_only
            drift = self.drift_fields(
                self.prepare_statefulset_watch_fields(existing),
                self.prepare_statefulset_watch_fields(wanted),
            )
            if drift == ["replicas"] and self.is_owned(existing):
                replicas_only = True
                return self.prepare_replicas_update(existing, wanted)
            return self.prepare_statefulset_update(existing, wanted)

        operation, stateful_set = await self.sync_resource(
            client,
            STATEFUL_SET,
            self.STATEFUL_SET_TYPE,
            desired,
            self.prepare_statefulset_watch_fields,
            prepare_update,
        )
        return operation, stateful_set, operation == UPDATED and replicas_only
