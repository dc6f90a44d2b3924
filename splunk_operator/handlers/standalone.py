import kopf
from logging import Logger
from marshmallow import ValidationError as SchemaValidationError
from splunk_operator.client.base import STANDALONE
from splunk_operator.client.kubernetes import KubernetesObjectStore
from splunk_operator.controller import StandaloneReconciler
from splunk_operator.types.models import Phase, Standalone
from splunk_operator.types.schemas.standalone import StandaloneSchema
from splunk_operator.types.settings import RECONCILE_TIMER_INTERVAL_SECONDS
from splunk_operator.utils.errors import convert_error
from splunk_operator.utils.helpers import upsert_condition

KIND = STANDALONE
GROUP = KubernetesObjectStore.GROUP


def load_descriptor(body, status, meta, patch, logger: Logger) -> Standalone:
    """Load the custom resource body, reporting schema errors on its status."""
    try:
        return StandaloneSchema().load(dict(body))
    except SchemaValidationError as ex:
        logger.error(f"Invalid Standalone `{meta.get('name')}`: {ex.messages}")
        conds = upsert_condition(
            (status or {}).get("conditions", []),
            {
                "type": "Ready",
                "status": "False",
                "reason": Phase.ERROR.value,
                "message": f"Invalid spec: {ex.messages}",
                "observedGeneration": meta.get("generation"),
            },
        )
        patch.status["phase"] = Phase.ERROR.value
        patch.status["message"] = f"Invalid spec: {ex.messages}"
        patch.status["conditions"] = conds
        raise kopf.PermanentError(f"Invalid spec: {ex.messages}")


async def reconcile(body, status, meta, patch, memo: kopf.Memo, logger: Logger, trigger: str):
    descriptor = load_descriptor(body, status, meta, patch, logger)
    reconciler: StandaloneReconciler = memo.reconciler
    result = await reconciler.apply(
        memo.client, descriptor, logger=logger, trigger_source=trigger
    )
    if result.error is not None:
        convert_error(result.error, result.requeue_after)
    if result.requeue_after is not None:
        logger.debug(f"Next pass due in {result.requeue_after:.0f}s")


@kopf.on.resume(group=GROUP, kind=KIND)
@kopf.on.create(group=GROUP, kind=KIND)
@kopf.on.update(group=GROUP, kind=KIND)
async def on_reconcile(body, status, meta, patch, memo, logger, reason, **kwargs):
    """Reconcile Standalone resources."""
    await reconcile(body, status, meta, patch, memo, logger, reason.value)


@kopf.timer(
    group=GROUP,
    kind=KIND,
    interval=RECONCILE_TIMER_INTERVAL_SECONDS,
    initial_delay=RECONCILE_TIMER_INTERVAL_SECONDS,
)
async def periodic_reconcile(body, status, meta, patch, memo, logger, **kwargs):
    """Full sync: app source polling, drift correction and status refresh."""
    await reconcile(body, status, meta, patch, memo, logger, "timer")


@kopf.on.delete(group=GROUP, kind=KIND, optional=True)
async def on_delete(body, status, meta, patch, memo, logger, **kwargs):
    """Delete claims of a Standalone that carries the PVC finalizer."""
    await reconcile(body, status, meta, patch, memo, logger, "delete")
