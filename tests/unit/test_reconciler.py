"""Unit tests for the Standalone reconciliation engine."""

import pytest
from kubernetes_asyncio.client import (
    V1ObjectMeta,
    V1OwnerReference,
    V1PersistentVolumeClaim,
    V1Service,
    V1ServiceSpec,
    V1StatefulSetStatus,
)
from fakes import (
    NAME,
    NAMESPACE,
    app_repo,
    load_standalone,
    make_secret,
    remote_object,
    s3_keys,
)
from splunk_operator.client.base import (
    CONFIG_MAP,
    PERSISTENT_VOLUME_CLAIM,
    SECRET,
    SERVICE,
    STANDALONE,
    STATEFUL_SET,
)
from splunk_operator.controller import PVC_FINALIZER, StandaloneReconciler
from splunk_operator.resources.secrets import decode_secret
from splunk_operator.sensors.base import OperatorSensor
from splunk_operator.types.models.phase import Phase
from splunk_operator.types.settings import Settings
from splunk_operator.utils.errors import (
    ConfigurationError,
    FatalInvariantError,
    TransientRemoteError,
    ValidationError,
)

INSTANCE = "splunk-s1-standalone"
NAMESPACE_SECRET = f"splunk-{NAMESPACE}-secret"


class RecordingSensor(OperatorSensor):
    def __init__(self):
        self.events = []

    def on_phase_transition(self, name, namespace, from_phase, to_phase):
        self.events.append(("phase", from_phase, to_phase))

    def on_credentials_rotated(self, name, namespace, secret_name):
        self.events.append(("rotated", secret_name))

    def on_reconcile_complete(self, name, namespace, state, success, error=None):
        self.events.append(("complete", success))


@pytest.fixture
def sensor():
    return RecordingSensor()


@pytest.fixture
def reconciler(registry, sensor):
    return StandaloneReconciler(
        registry=registry,
        conf=Settings(remote_listing_timeout_seconds=5.0),
        sensor=sensor,
    )


def seed(store, spec=None, **metadata):
    """Store a descriptor and return the stored copy."""
    return store.put(STANDALONE, load_standalone(spec, **metadata))


def child_mutations(store):
    return [call for call in store.mutations() if call[1] != STANDALONE]


def mark_rolled_out(store, ready_replicas, replicas=None):
    """Simulate the StatefulSet controller reporting a finished rollout."""
    stateful_set = store.peek(STATEFUL_SET, NAMESPACE, INSTANCE)
    stateful_set.status = V1StatefulSetStatus(
        observed_generation=1,
        replicas=replicas if replicas is not None else ready_replicas,
        ready_replicas=ready_replicas,
        current_revision="rev-1",
        update_revision="rev-1",
    )
    store.put(STATEFUL_SET, stateful_set)


class TestFirstPass:
    """Tests for creating a Standalone from scratch."""

    @pytest.mark.asyncio
    async def test_creates_children_in_order(self, store, reconciler):
        descriptor = seed(store)
        result = await reconciler.apply(store, descriptor)

        assert result.ok
        assert child_mutations(store) == [
            ("create", SECRET, NAMESPACE_SECRET),
            ("create", SERVICE, f"{INSTANCE}-headless"),
            ("create", SERVICE, f"{INSTANCE}-service"),
            ("create", SECRET, f"{INSTANCE}-secret-v1"),
            ("create", STATEFUL_SET, INSTANCE),
        ]
        stateful_set = store.peek(STATEFUL_SET, NAMESPACE, INSTANCE)
        secret_volume = next(
            v for v in stateful_set.spec.template.spec.volumes if v.secret is not None
        )
        assert secret_volume.secret.secret_name == f"{INSTANCE}-secret-v1"

    @pytest.mark.asyncio
    async def test_status_pending_until_observed(self, store, reconciler, sensor):
        descriptor = seed(store)
        result = await reconciler.apply(store, descriptor)

        stored = store.peek(STANDALONE, NAMESPACE, NAME)
        assert stored.status.phase == Phase.PENDING.value
        assert stored.status.replicas == 1
        assert stored.status.selector.startswith("app.kubernetes.io/component=standalone")
        assert stored.status.resource_rev_map[NAMESPACE_SECRET]
        ready = next(c for c in stored.status.conditions if c["type"] == "Ready")
        assert ready["status"] == "False"
        assert result.descriptor.status.phase == Phase.PENDING.value
        assert result.requeue_after == reconciler.conf.default_requeue_seconds
        assert ("phase", None, "Pending") in sensor.events

    @pytest.mark.asyncio
    async def test_input_descriptor_not_mutated(self, store, reconciler):
        descriptor = seed(store)
        await reconciler.apply(store, descriptor)
        assert descriptor.status.phase is None
        assert descriptor.status.resource_rev_map == {}

    @pytest.mark.asyncio
    async def test_ready_once_rolled_out(self, store, reconciler):
        result = await reconciler.apply(store, seed(store))
        mark_rolled_out(store, ready_replicas=1)
        result = await reconciler.apply(store, result.descriptor)

        assert result.descriptor.status.phase == Phase.READY.value
        assert result.descriptor.status.ready_replicas == 1
        ready = next(c for c in result.descriptor.status.conditions if c["type"] == "Ready")
        assert ready["status"] == "True"
        assert result.requeue_after is None


class TestIdempotence:
    """Tests for passes without any change."""

    @pytest.mark.asyncio
    async def test_second_pass_mutates_nothing(self, store, reconciler):
        first = await reconciler.apply(store, seed(store))
        store.reset_calls()
        second = await reconciler.apply(store, first.descriptor)

        assert second.ok
        assert store.mutations() == []

    @pytest.mark.asyncio
    async def test_second_pass_with_all_features(self, store, reconciler, provider):
        store.put(SECRET, make_secret("s3-keys", s3_keys()))
        provider.listings["apps/admin/"] = [remote_object("apps/admin/app.tgz")]
        spec = {
            "appRepo": app_repo(),
            "defaults": "splunk:\n  site: one\n",
            "smartstore": {
                "defaults": {"volName": "remote"},
                "volumes": [
                    {"name": "remote", "path": "bucket/idx", "secretRef": "s3-keys"}
                ],
                "indexes": [{"name": "main"}],
            },
        }
        first = await reconciler.apply(store, seed(store, spec))
        assert first.ok
        assert ("create", CONFIG_MAP, f"{INSTANCE}-smartstore") in store.mutations()
        assert ("create", CONFIG_MAP, f"{INSTANCE}-app-list") in store.mutations()
        assert ("create", CONFIG_MAP, f"{INSTANCE}-defaults") in store.mutations()

        store.reset_calls()
        second = await reconciler.apply(store, first.descriptor)
        assert second.ok
        assert store.mutations() == []


class TestSelectiveUpdate:
    """Tests for updates that touch only what changed."""

    @pytest.mark.asyncio
    async def test_image_change_updates_only_stateful_set(self, store, reconciler):
        first = await reconciler.apply(store, seed(store))
        mark_rolled_out(store, ready_replicas=1)
        descriptor = first.descriptor.deepcopy()
        descriptor.spec.image = "splunk/splunk:9.2"
        store.reset_calls()

        result = await reconciler.apply(store, descriptor)

        assert result.ok
        assert child_mutations(store) == [("update", STATEFUL_SET, INSTANCE)]
        stateful_set = store.peek(STATEFUL_SET, NAMESPACE, INSTANCE)
        assert stateful_set.spec.template.spec.containers[0].image == "splunk/splunk:9.2"
        assert result.descriptor.status.phase == Phase.UPDATING.value

    @pytest.mark.asyncio
    async def test_scaling_touches_only_replicas(self, store, reconciler):
        first = await reconciler.apply(store, seed(store))
        mark_rolled_out(store, ready_replicas=1)
        before = store.peek(STATEFUL_SET, NAMESPACE, INSTANCE)
        descriptor = first.descriptor.deepcopy()
        descriptor.spec.replicas = 3
        store.reset_calls()

        result = await reconciler.apply(store, descriptor)

        assert child_mutations(store) == [("update", STATEFUL_SET, INSTANCE)]
        after = store.peek(STATEFUL_SET, NAMESPACE, INSTANCE)
        assert after.spec.replicas == 3
        before.spec.replicas = 3
        assert after.spec.to_dict() == before.spec.to_dict()
        assert result.descriptor.status.phase == Phase.SCALING_UP.value

    @pytest.mark.asyncio
    async def test_scaling_down(self, store, reconciler):
        first = await reconciler.apply(store, seed(store, {"replicas": 3}))
        mark_rolled_out(store, ready_replicas=3)
        descriptor = first.descriptor.deepcopy()
        descriptor.spec.replicas = 1

        result = await reconciler.apply(store, descriptor)

        assert result.descriptor.status.phase == Phase.SCALING_DOWN.value

    @pytest.mark.asyncio
    async def test_external_drift_is_corrected(self, store, reconciler):
        first = await reconciler.apply(store, seed(store))
        service = store.peek(SERVICE, NAMESPACE, f"{INSTANCE}-service")
        service.spec.type = "NodePort"
        store.put(SERVICE, service)
        store.reset_calls()

        await reconciler.apply(store, first.descriptor)

        assert child_mutations(store) == [("update", SERVICE, f"{INSTANCE}-service")]
        corrected = store.peek(SERVICE, NAMESPACE, f"{INSTANCE}-service")
        assert corrected.spec.type == "ClusterIP"
        assert corrected.spec.cluster_ip == service.spec.cluster_ip


class TestSecretRotation:
    """Tests for reacting to rotated secrets."""

    @pytest.mark.asyncio
    async def test_namespace_secret_rotation_mints_version(self, store, reconciler):
        first = await reconciler.apply(store, seed(store))
        secret = store.peek(SECRET, NAMESPACE, NAMESPACE_SECRET)
        data = decode_secret(secret)
        data["password"] = "rotated"
        store.put(SECRET, make_secret(NAMESPACE_SECRET, data))
        store.reset_calls()

        result = await reconciler.apply(store, first.descriptor)

        assert result.ok
        assert child_mutations(store) == [
            ("create", SECRET, f"{INSTANCE}-secret-v2"),
            ("update", STATEFUL_SET, INSTANCE),
        ]
        stateful_set = store.peek(STATEFUL_SET, NAMESPACE, INSTANCE)
        secret_volume = next(
            v for v in stateful_set.spec.template.spec.volumes if v.secret is not None
        )
        assert secret_volume.secret.secret_name == f"{INSTANCE}-secret-v2"
        rotated = store.peek(SECRET, NAMESPACE, NAMESPACE_SECRET)
        assert (
            result.descriptor.status.resource_rev_map[NAMESPACE_SECRET]
            == rotated.metadata.resource_version
        )

    @pytest.mark.asyncio
    async def test_app_volume_rotation_triggers_listing(
        self, store, reconciler, provider, sensor
    ):
        store.put(SECRET, make_secret("s3-keys", s3_keys()))
        first = await reconciler.apply(store, seed(store, {"appRepo": app_repo()}))
        assert len(provider.calls) == 1
        assert "s3-keys" in first.descriptor.status.resource_rev_map
        assert ("rotated", "s3-keys") not in sensor.events

        store.put(SECRET, make_secret("s3-keys", s3_keys(secret_key="new")))
        store.reset_calls()
        result = await reconciler.apply(store, first.descriptor)

        assert result.ok
        assert len(provider.calls) == 2
        assert provider.calls[-1]["secret_key"] == "new"
        assert ("rotated", "s3-keys") in sensor.events
        rotated = store.peek(SECRET, NAMESPACE, "s3-keys")
        assert (
            result.descriptor.status.resource_rev_map["s3-keys"]
            == rotated.metadata.resource_version
        )

    @pytest.mark.asyncio
    async def test_app_volume_rotation_mints_version(self, store, reconciler):
        store.put(SECRET, make_secret("s3-keys", s3_keys()))
        first = await reconciler.apply(store, seed(store, {"appRepo": app_repo()}))
        assert ("create", SECRET, f"{INSTANCE}-secret-v1") in store.mutations()

        store.put(SECRET, make_secret("s3-keys", s3_keys(secret_key="new")))
        store.reset_calls()
        result = await reconciler.apply(store, first.descriptor)

        assert result.ok
        mutations = child_mutations(store)
        assert ("create", SECRET, f"{INSTANCE}-secret-v2") in mutations
        assert ("update", STATEFUL_SET, INSTANCE) in mutations
        assert mutations.index(("create", SECRET, f"{INSTANCE}-secret-v2")) < (
            mutations.index(("update", STATEFUL_SET, INSTANCE))
        )
        stateful_set = store.peek(STATEFUL_SET, NAMESPACE, INSTANCE)
        secret_volume = next(
            v for v in stateful_set.spec.template.spec.volumes if v.secret is not None
        )
        assert secret_volume.secret.secret_name == f"{INSTANCE}-secret-v2"

    @pytest.mark.asyncio
    async def test_smartstore_rotation_mints_version(self, store, reconciler, sensor):
        store.put(SECRET, make_secret("ss-keys", s3_keys()))
        spec = {
            "smartstore": {
                "defaults": {"volName": "remote"},
                "volumes": [
                    {"name": "remote", "path": "bucket/idx", "secretRef": "ss-keys"}
                ],
                "indexes": [{"name": "main"}],
            }
        }
        first = await reconciler.apply(store, seed(store, spec))
        assert first.ok
        assert ("create", SECRET, f"{INSTANCE}-secret-v1") in store.mutations()
        assert ("create", SECRET, f"{INSTANCE}-secret-v2") not in store.mutations()

        store.put(SECRET, make_secret("ss-keys", s3_keys(secret_key="rotated")))
        store.reset_calls()
        result = await reconciler.apply(store, first.descriptor)

        assert result.ok
        mutations = child_mutations(store)
        assert mutations[0] == ("create", SECRET, f"{INSTANCE}-secret-v2")
        assert ("update", CONFIG_MAP, f"{INSTANCE}-smartstore") in mutations
        assert mutations[-1] == ("update", STATEFUL_SET, INSTANCE)
        stateful_set = store.peek(STATEFUL_SET, NAMESPACE, INSTANCE)
        secret_volume = next(
            v for v in stateful_set.spec.template.spec.volumes if v.secret is not None
        )
        assert secret_volume.secret.secret_name == f"{INSTANCE}-secret-v2"
        assert ("rotated", "ss-keys") in sensor.events

        store.reset_calls()
        third = await reconciler.apply(store, result.descriptor)
        assert third.ok
        assert child_mutations(store) == []

    @pytest.mark.asyncio
    async def test_rotation_retried_after_failure_mints_once(self, store, reconciler):
        store.put(SECRET, make_secret("s3-keys", s3_keys()))
        first = await reconciler.apply(store, seed(store, {"appRepo": app_repo()}))
        store.put(SECRET, make_secret("s3-keys", s3_keys(secret_key="new")))
        store.fail_on[("update", STATEFUL_SET)] = TransientRemoteError("api down")

        failed = await reconciler.apply(store, first.descriptor)
        assert isinstance(failed.error, TransientRemoteError)

        del store.fail_on[("update", STATEFUL_SET)]
        store.reset_calls()
        result = await reconciler.apply(store, failed.descriptor)

        assert result.ok
        assert ("create", SECRET, f"{INSTANCE}-secret-v3") not in store.mutations()
        stateful_set = store.peek(STATEFUL_SET, NAMESPACE, INSTANCE)
        secret_volume = next(
            v for v in stateful_set.spec.template.spec.volumes if v.secret is not None
        )
        assert secret_volume.secret.secret_name == f"{INSTANCE}-secret-v2"

    @pytest.mark.asyncio
    async def test_rev_map_not_committed_when_stateful_set_fails(self, store, reconciler):
        store.put(SECRET, make_secret("s3-keys", s3_keys()))
        store.fail_on[("create", STATEFUL_SET)] = TransientRemoteError("api down")

        result = await reconciler.apply(store, seed(store, {"appRepo": app_repo()}))

        assert isinstance(result.error, TransientRemoteError)
        assert "s3-keys" not in result.descriptor.status.resource_rev_map
        assert result.requeue_after == reconciler.conf.default_requeue_seconds


class TestAppFramework:
    """Tests for app framework handling inside a pass."""

    @pytest.mark.asyncio
    async def test_failing_app_source_does_not_fail_pass(self, store, reconciler, provider):
        store.put(SECRET, make_secret("s3-keys", s3_keys()))
        provider.listings["apps/good/"] = [remote_object("apps/good/a.tgz")]
        provider.errors["apps/bad/"] = TransientRemoteError("connection reset")
        spec = {
            "appRepo": app_repo(
                sources=[
                    {"name": "good", "location": "good"},
                    {"name": "bad", "location": "bad"},
                ]
            )
        }
        result = await reconciler.apply(store, seed(store, spec))

        assert result.ok
        status = result.descriptor.status
        assert status.phase == Phase.PENDING.value
        assert [o.key for o in status.app_context.app_sources["good"].objects] == [
            "apps/good/a.tgz"
        ]
        assert "connection reset" in status.app_context.app_sources["bad"].error
        assert "App source `bad`" in status.message
        assert result.requeue_after == reconciler.conf.default_requeue_seconds
        assert store.peek(CONFIG_MAP, NAMESPACE, f"{INSTANCE}-app-list") is not None

    @pytest.mark.asyncio
    async def test_listing_not_repeated_before_interval(self, store, reconciler, provider):
        store.put(SECRET, make_secret("s3-keys", s3_keys()))
        first = await reconciler.apply(store, seed(store, {"appRepo": app_repo()}))
        await reconciler.apply(store, first.descriptor)
        assert len(provider.calls) == 1


class TestValidation:
    """Tests for descriptors rejected before any child is touched."""

    @pytest.mark.asyncio
    async def test_duplicate_app_source(self, store, reconciler):
        spec = {
            "appRepo": app_repo(
                sources=[{"name": "a", "location": "x"}, {"name": "a", "location": "y"}]
            )
        }
        result = await reconciler.apply(store, seed(store, spec))

        assert isinstance(result.error, ValidationError)
        assert child_mutations(store) == []
        assert store.mutations() == [("update_status", STANDALONE, NAME)]
        stored = store.peek(STANDALONE, NAMESPACE, NAME)
        assert stored.status.phase == Phase.ERROR.value
        assert "Duplicate app source name" in stored.status.message
        assert result.requeue_after is None

    @pytest.mark.asyncio
    async def test_smartstore_index_unknown_volume(self, store, reconciler):
        spec = {
            "smartstore": {
                "volumes": [{"name": "remote", "path": "bucket"}],
                "indexes": [{"name": "main", "volName": "missing"}],
            }
        }
        result = await reconciler.apply(store, seed(store, spec))
        assert isinstance(result.error, ValidationError)
        assert child_mutations(store) == []

    @pytest.mark.asyncio
    async def test_smartstore_secret_incomplete(self, store, reconciler):
        store.put(SECRET, make_secret("s3-keys", s3_keys(secret_key=None)))
        spec = {
            "smartstore": {
                "volumes": [{"name": "remote", "path": "bucket", "secretRef": "s3-keys"}],
            }
        }
        result = await reconciler.apply(store, seed(store, spec))
        assert isinstance(result.error, ConfigurationError)
        assert child_mutations(store) == []
        assert result.descriptor.status.phase == Phase.ERROR.value

    @pytest.mark.asyncio
    async def test_invalid_image_pull_policy(self, store, reconciler):
        result = await reconciler.apply(store, seed(store, {"imagePullPolicy": "Sometimes"}))
        assert isinstance(result.error, ValidationError)
        assert child_mutations(store) == []


class TestOwnership:
    """Tests for objects controlled by someone else."""

    @pytest.mark.asyncio
    async def test_foreign_controller_is_fatal(self, store, reconciler):
        store.put(
            SERVICE,
            V1Service(
                api_version="v1",
                kind="Service",
                metadata=V1ObjectMeta(
                    name=f"{INSTANCE}-headless",
                    namespace=NAMESPACE,
                    owner_references=[
                        V1OwnerReference(
                            api_version="v1",
                            kind="Other",
                            name="other",
                            uid="other-uid",
                            controller=True,
                        )
                    ],
                ),
                spec=V1ServiceSpec(cluster_ip="None"),
            ),
        )
        result = await reconciler.apply(store, seed(store))

        assert isinstance(result.error, FatalInvariantError)
        assert result.descriptor.status.phase == Phase.ERROR.value
        assert ("update", SERVICE, f"{INSTANCE}-headless") not in store.mutations()
        assert ("create", STATEFUL_SET, INSTANCE) not in store.mutations()

    @pytest.mark.asyncio
    async def test_unowned_object_is_adopted(self, store, reconciler):
        store.put(
            SERVICE,
            V1Service(
                api_version="v1",
                kind="Service",
                metadata=V1ObjectMeta(name=f"{INSTANCE}-service", namespace=NAMESPACE),
                spec=V1ServiceSpec(cluster_ip="10.0.0.99"),
            ),
        )
        result = await reconciler.apply(store, seed(store))

        assert result.ok
        service = store.peek(SERVICE, NAMESPACE, f"{INSTANCE}-service")
        assert service.metadata.owner_references[0].uid == result.descriptor.uid
        assert service.spec.cluster_ip == "10.0.0.99"


def make_pvc(name, labels=None):
    return V1PersistentVolumeClaim(
        api_version="v1",
        kind="PersistentVolumeClaim",
        metadata=V1ObjectMeta(name=name, namespace=NAMESPACE, labels=labels),
    )


class TestDeletion:
    """Tests for the Terminating branch."""

    @pytest.mark.asyncio
    async def test_without_finalizer_nothing_happens(self, store, reconciler):
        store.put(PERSISTENT_VOLUME_CLAIM, make_pvc(f"pvc-etc-{INSTANCE}-0"))
        descriptor = seed(store, deletionTimestamp="2024-01-01T00:00:00Z")

        result = await reconciler.apply(store, descriptor)

        assert result.ok
        assert store.mutations() == []
        assert store.peek(PERSISTENT_VOLUME_CLAIM, NAMESPACE, f"pvc-etc-{INSTANCE}-0")

    @pytest.mark.asyncio
    async def test_with_finalizer_deletes_claims(self, store, reconciler):
        store.put(PERSISTENT_VOLUME_CLAIM, make_pvc(f"pvc-etc-{INSTANCE}-0"))
        store.put(PERSISTENT_VOLUME_CLAIM, make_pvc(f"pvc-var-{INSTANCE}-0"))
        store.put(PERSISTENT_VOLUME_CLAIM, make_pvc(f"splunk-{NAME}-var"))
        store.put(
            PERSISTENT_VOLUME_CLAIM,
            make_pvc("labelled", labels={"app.kubernetes.io/instance": INSTANCE}),
        )
        store.put(PERSISTENT_VOLUME_CLAIM, make_pvc("pvc-etc-splunk-other-standalone-0"))
        descriptor = seed(
            store,
            deletionTimestamp="2024-01-01T00:00:00Z",
            finalizers=[PVC_FINALIZER, "other/finalizer"],
        )

        result = await reconciler.apply(store, descriptor)

        assert result.ok
        remaining = [p.metadata.name for p in await store.list(PERSISTENT_VOLUME_CLAIM, NAMESPACE)]
        assert remaining == ["pvc-etc-splunk-other-standalone-0"]
        stored = store.peek(STANDALONE, NAMESPACE, NAME)
        assert stored.metadata.finalizers == ["other/finalizer"]
        assert stored.status.phase == Phase.TERMINATING.value
        assert store.mutations()[0] == ("update_status", STANDALONE, NAME)
        assert store.mutations()[-1] == ("update", STANDALONE, NAME)

    @pytest.mark.asyncio
    async def test_repeated_deletion_is_idempotent(self, store, reconciler):
        descriptor = seed(
            store,
            deletionTimestamp="2024-01-01T00:00:00Z",
            finalizers=[PVC_FINALIZER],
        )
        first = await reconciler.apply(store, descriptor)
        store.reset_calls()
        second = await reconciler.apply(store, first.descriptor)
        assert second.ok
        assert store.mutations() == []

    @pytest.mark.asyncio
    async def test_failure_keeps_finalizer(self, store, reconciler):
        store.put(PERSISTENT_VOLUME_CLAIM, make_pvc(f"pvc-etc-{INSTANCE}-0"))
        store.fail_on[("delete", PERSISTENT_VOLUME_CLAIM)] = TransientRemoteError("api down")
        descriptor = seed(
            store,
            deletionTimestamp="2024-01-01T00:00:00Z",
            finalizers=[PVC_FINALIZER],
        )

        result = await reconciler.apply(store, descriptor)

        assert isinstance(result.error, TransientRemoteError)
        assert store.peek(STANDALONE, NAMESPACE, NAME).metadata.finalizers == [PVC_FINALIZER]
        assert result.requeue_after == reconciler.conf.default_requeue_seconds
