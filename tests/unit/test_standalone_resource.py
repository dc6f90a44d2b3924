"""Unit tests for the Standalone child object builders."""

import pytest
import yaml
from fakes import UID, app_repo, load_standalone, remote_object
from splunk_operator.remote.credentials import RemoteCredentials
from splunk_operator.resources.standalone import StandaloneResource
from splunk_operator.types.models.app_context import AppContext, AppSourceStatus
from splunk_operator.types.settings import Settings

INSTANCE = "splunk-s1-standalone"


def resource_for(spec=None):
    return StandaloneResource(load_standalone(spec), conf=Settings(default_image="splunk/splunk:9.1"))


def env_of(stateful_set):
    container = stateful_set.spec.template.spec.containers[0]
    return {e.name: e.value for e in container.env}


def volumes_of(stateful_set):
    return {v.name: v for v in stateful_set.spec.template.spec.volumes}


def mounts_of(stateful_set):
    container = stateful_set.spec.template.spec.containers[0]
    return {m.name: m.mount_path for m in container.volume_mounts}


class TestLabelsAndNames:
    """Tests for names and labels of the child objects."""

    def test_labels(self):
        resource = resource_for()
        assert resource.labels.as_dict() == {
            "app.kubernetes.io/component": "standalone",
            "app.kubernetes.io/instance": INSTANCE,
            "app.kubernetes.io/managed-by": "splunk-operator",
            "app.kubernetes.io/name": "standalone",
            "app.kubernetes.io/part-of": INSTANCE,
        }

    def test_names(self):
        resource = resource_for()
        assert resource.stateful_set_name == INSTANCE
        assert resource.headless_service_name == f"{INSTANCE}-headless"
        assert resource.service_name == f"{INSTANCE}-service"
        assert resource.defaults_config_name == f"{INSTANCE}-defaults"
        assert resource.smartstore_config_name == f"{INSTANCE}-smartstore"
        assert resource.app_list_config_name == f"{INSTANCE}-app-list"


class TestServices:
    """Tests for the headless and client services."""

    def test_headless_service(self):
        service = resource_for().prepare_headless_service()
        assert service.spec.cluster_ip == "None"
        assert service.spec.publish_not_ready_addresses is True
        assert [(p.name, p.port) for p in service.spec.ports] == [
            ("http-splunkweb", 8000),
            ("http-hec", 8088),
            ("https-splunkd", 8089),
            ("tcp-s2s", 9997),
        ]
        assert service.metadata.owner_references[0].uid == UID
        assert service.metadata.owner_references[0].controller is True
        assert StandaloneResource.HASH_ANNOTATION in service.metadata.annotations

    def test_client_service_template(self):
        """Test the service template type, labels and annotations are applied."""
        service = resource_for(
            {
                "serviceTemplate": {
                    "metadata": {
                        "labels": {"team": "search"},
                        "annotations": {"lb": "internal"},
                    },
                    "type": "LoadBalancer",
                }
            }
        ).prepare_service()
        assert service.spec.type == "LoadBalancer"
        assert service.metadata.labels["team"] == "search"
        assert service.metadata.labels["app.kubernetes.io/instance"] == INSTANCE
        assert service.metadata.annotations["lb"] == "internal"

    def test_client_service_defaults_to_cluster_ip(self):
        assert resource_for().prepare_service().spec.type == "ClusterIP"

    def test_update_keeps_cluster_ip(self):
        """Test applying the desired service keeps server assigned fields."""
        resource = resource_for()
        existing = resource.prepare_service()
        existing.spec.cluster_ip = "10.0.0.7"
        existing.metadata.resource_version = "42"
        desired = resource_for({"serviceTemplate": {"type": "NodePort"}}).prepare_service()
        updated = resource.prepare_service_update(existing, desired)
        assert updated.spec.cluster_ip == "10.0.0.7"
        assert updated.metadata.resource_version == "42"
        assert updated.spec.type == "NodePort"


class TestStatefulSet:
    """Tests for the StatefulSet body."""

    def test_defaults(self):
        stateful_set = resource_for().prepare_statefulset(f"{INSTANCE}-secret-v1")
        spec = stateful_set.spec
        container = spec.template.spec.containers[0]
        assert spec.replicas == 1
        assert spec.service_name == f"{INSTANCE}-headless"
        assert spec.pod_management_policy == "Parallel"
        assert spec.update_strategy.type == "OnDelete"
        assert spec.selector.match_labels["app.kubernetes.io/instance"] == INSTANCE
        assert container.name == "splunk"
        assert container.image == "splunk/splunk:9.1"
        assert container.image_pull_policy == "IfNotPresent"
        assert container.resources.limits == {"cpu": "4", "memory": "8Gi"}
        assert container.resources.requests == {"cpu": "100m", "memory": "512Mi"}
        assert container.liveness_probe._exec.command == ["/sbin/checkstate.sh"]
        security = spec.template.spec.security_context
        assert (security.run_as_user, security.fs_group) == (41812, 41812)
        assert security.run_as_non_root is True

    def test_env(self):
        env = env_of(resource_for().prepare_statefulset("sec-v1"))
        assert env["SPLUNK_HOME"] == "/opt/splunk"
        assert env["SPLUNK_START_ARGS"] == "--accept-license"
        assert env["SPLUNK_ROLE"] == "splunk_standalone"
        assert env["SPLUNK_DEFAULTS_URL"] == "/mnt/splunk-secrets/default.yml"
        assert env["SPLUNK_DECLARATIVE_ADMIN_PASSWORD"] == "true"

    def test_extra_env_cannot_override_managed_vars(self):
        env = env_of(
            resource_for(
                {
                    "extraEnv": [
                        {"name": "SPLUNK_ROLE", "value": "other"},
                        {"name": "TZ", "value": "UTC"},
                    ]
                }
            ).prepare_statefulset("sec-v1")
        )
        assert env["SPLUNK_ROLE"] == "splunk_standalone"
        assert env["TZ"] == "UTC"

    def test_defaults_url_order(self):
        """Test the secret defaults come first, then the url, then the defaults config."""
        env = env_of(
            resource_for(
                {"defaults": "splunk:\n  site: a\n", "defaultsUrl": "http://cfg/x.yml"}
            ).prepare_statefulset("sec-v1")
        )
        assert env["SPLUNK_DEFAULTS_URL"] == (
            "/mnt/splunk-secrets/default.yml,http://cfg/x.yml,/mnt/splunk-defaults/default.yml"
        )

    def test_secret_volume(self):
        stateful_set = resource_for().prepare_statefulset(f"{INSTANCE}-secret-v3")
        volume = volumes_of(stateful_set)["mnt-splunk-secrets"]
        assert volume.secret.secret_name == f"{INSTANCE}-secret-v3"
        assert mounts_of(stateful_set)["mnt-splunk-secrets"] == "/mnt/splunk-secrets"

    def test_claim_templates(self):
        stateful_set = resource_for(
            {
                "etcVolumeStorageConfig": {"storageClassName": "fast"},
                "varVolumeStorageConfig": {"storageCapacity": "50Gi"},
            }
        ).prepare_statefulset("sec-v1")
        claims = {c.metadata.name: c for c in stateful_set.spec.volume_claim_templates}
        assert claims["pvc-etc"].spec.storage_class_name == "fast"
        assert claims["pvc-etc"].spec.resources.requests == {"storage": "10Gi"}
        assert claims["pvc-var"].spec.resources.requests == {"storage": "50Gi"}
        mounts = mounts_of(stateful_set)
        assert mounts["pvc-etc"] == "/opt/splunk/etc"
        assert mounts["pvc-var"] == "/opt/splunk/var"

    def test_ephemeral_storage(self):
        stateful_set = resource_for(
            {
                "etcVolumeStorageConfig": {"ephemeralStorage": True},
                "varVolumeStorageConfig": {"ephemeralStorage": True},
            }
        ).prepare_statefulset("sec-v1")
        assert stateful_set.spec.volume_claim_templates is None
        volumes = volumes_of(stateful_set)
        assert volumes["mnt-splunk-etc"].empty_dir is not None
        assert mounts_of(stateful_set)["mnt-splunk-var"] == "/opt/splunk/var"

    def test_config_map_volumes(self):
        stateful_set = resource_for(
            {
                "defaults": "splunk: {}\n",
                "appRepo": app_repo(),
                "smartstore": {"volumes": [{"name": "remote", "path": "bucket/idx"}]},
            }
        ).prepare_statefulset("sec-v1", config_hash="abc")
        volumes = volumes_of(stateful_set)
        assert volumes["mnt-splunk-defaults"].config_map.name == f"{INSTANCE}-defaults"
        assert volumes["mnt-splunk-operator"].config_map.name == f"{INSTANCE}-smartstore"
        assert volumes["mnt-app-listing"].config_map.name == f"{INSTANCE}-app-list"
        annotations = stateful_set.spec.template.metadata.annotations
        assert annotations[StandaloneResource.CONFIG_HASH_ANNOTATION] == "abc"

    def test_hash_ignores_replicas(self):
        """Test scaling alone does not change the stateful set hash."""
        one = resource_for({"replicas": 1}).prepare_statefulset("sec-v1")
        three = resource_for({"replicas": 3}).prepare_statefulset("sec-v1")
        resource = resource_for()
        assert resource.hash_of(one) == resource.hash_of(three)
        drift = resource.drift_fields(
            resource.prepare_statefulset_watch_fields(one),
            resource.prepare_statefulset_watch_fields(three),
        )
        assert drift == ["replicas"]

    def test_image_drift(self):
        resource = resource_for()
        old = resource.prepare_statefulset("sec-v1")
        new = resource_for({"image": "splunk/splunk:9.2"}).prepare_statefulset("sec-v1")
        drift = resource.drift_fields(
            resource.prepare_statefulset_watch_fields(old),
            resource.prepare_statefulset_watch_fields(new),
        )
        assert "image" in drift
        assert "replicas" not in drift


class TestConfigMaps:
    """Tests for the defaults, smartstore and app-list config maps."""

    def test_not_configured(self):
        resource = resource_for()
        assert resource.prepare_defaults_config_map() is None
        assert resource.prepare_smartstore_config_map({}) is None
        assert resource.prepare_app_list_config_map(None) is None

    def test_defaults_config_map(self):
        config_map = resource_for({"defaults": "splunk:\n  a: 1\n"}).prepare_defaults_config_map()
        assert config_map.data == {"default.yml": "splunk:\n  a: 1\n"}

    def test_indexes_conf(self):
        resource = resource_for(
            {
                "smartstore": {
                    "defaults": {"volName": "remote"},
                    "volumes": [
                        {
                            "name": "remote",
                            "path": "bucket/indexes",
                            "endpoint": "https://s3-us-west-2.amazonaws.com",
                            "secretRef": "s3-keys",
                        }
                    ],
                    "indexes": [
                        {"name": "main", "remotePath": "main_idx", "maxGlobalDataSizeMB": 100},
                        {"name": "web"},
                    ],
                }
            }
        )
        credentials = {
            "remote": RemoteCredentials(
                access_key="AKIA", secret_key="SECRET", secret_name="s3-keys"
            )
        }
        conf = resource.prepare_smartstore_config_map(credentials).data["indexes.conf"]
        assert "[default]" in conf
        assert "remotePath = volume:remote/$_index_name" in conf
        assert "[volume:remote]\nstorageType = remote\npath = s3://bucket/indexes\n" in conf
        assert "remote.s3.access_key = AKIA" in conf
        assert "remote.s3.secret_key = SECRET" in conf
        assert "remote.s3.endpoint = https://s3-us-west-2.amazonaws.com" in conf
        assert "[main]\nremotePath = volume:remote/main_idx\nmaxGlobalDataSizeMB = 100" in conf
        assert "[web]\nremotePath = volume:remote/web" in conf

    def test_anonymous_volume_has_no_keys(self):
        resource = resource_for(
            {"smartstore": {"volumes": [{"name": "remote", "path": "bucket"}]}}
        )
        conf = resource.render_indexes_conf({"remote": RemoteCredentials()})
        assert "remote.s3.access_key" not in conf

    def test_app_list(self):
        """Test the app list carries the last listing of each app source."""
        resource = resource_for(
            {
                "appRepo": app_repo(
                    sources=[
                        {"name": "adminApps", "location": "admin"},
                        {"name": "premium", "location": "es", "scope": "premiumApps"},
                    ]
                )
            }
        )
        context = AppContext(
            app_sources={
                "adminApps": AppSourceStatus(
                    objects=[remote_object("apps/admin/b.tgz"), remote_object("apps/admin/a.tgz")]
                )
            }
        )
        config_map = resource.prepare_app_list_config_map(context)
        listing = yaml.safe_load(config_map.data["app-list.yml"])
        admin, premium = listing["appSources"]
        assert admin["volName"] == "apps"
        assert admin["scope"] == "local"
        assert [o["key"] for o in admin["objects"]] == ["apps/admin/b.tgz", "apps/admin/a.tgz"]
        assert premium["scope"] == "premiumApps"
        assert premium["objects"] == []
