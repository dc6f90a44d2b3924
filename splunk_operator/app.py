import kopf
import logging
import splunk_operator.handlers.standalone as standalone
from splunk_operator.client.kubernetes import KubernetesObjectStore
from splunk_operator.controller import StandaloneReconciler
from splunk_operator.remote.registry import ProviderRegistry
from splunk_operator.resources.base import BaseResource
from splunk_operator.sensors import init_metrics_server, SensorDelegate, PrometheusMonitor
from splunk_operator.types.settings import Settings
from kubernetes_asyncio import config
from kubernetes_asyncio.client.api_client import ApiClient


class TimerLogFilter(logging.Filter):
    """Drop the per-tick success lines kopf logs for the periodic timer."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        return not (
            "periodic_reconcile" in message and "succeeded" in message
        )


# Configure Kopf settings
@kopf.on.startup()
async def setup(
    settings: kopf.OperatorSettings, memo: kopf.Memo, logger: logging.Logger, **kwargs
):
    # Load Kubernetes config - try in-cluster first (for production), then local kubeconfig (for dev)
    try:
        config.load_incluster_config()
        logger.info("Loaded in-cluster Kubernetes configuration")
    except config.ConfigException:
        logger.info("In-cluster config not found, trying local kubeconfig")
        try:
            await config.load_kube_config()
            logger.info("Loaded local Kubernetes configuration")
        except config.ConfigException as e:
            logger.error(f"Failed to load Kubernetes configuration: {e}")
            raise

    memo.conf = Settings()

    # Create a shared ApiClient for all resources to prevent connection leaks
    shared_client = ApiClient()
    memo.client = KubernetesObjectStore(shared_client)
    logger.info("Shared Kubernetes API client initialized")

    # Initialize sensor infrastructure
    sensor_delegate = SensorDelegate()
    prometheus_monitor = PrometheusMonitor()
    sensor_delegate.add(prometheus_monitor)
    memo.sensor = sensor_delegate
    BaseResource.sensor = sensor_delegate
    logger.info("Sensor infrastructure initialized with PrometheusMonitor")

    registry = ProviderRegistry.default()
    logger.info(f"Remote storage providers: {', '.join(registry.providers())}")
    memo.reconciler = StandaloneReconciler(
        registry=registry, conf=memo.conf, sensor=sensor_delegate
    )

    # Initialize Prometheus metrics server
    try:
        init_metrics_server()
    except Exception as e:
        logger.error(f"Failed to start metrics server: {e}")
        # Don't fail operator startup if metrics server fails
        logger.warning("Continuing without metrics server")

    # Limit the number of concurrent workers to prevent flooding the API
    settings.batching.worker_limit = 4

    # Post events to the Kubernetes API for logging >= Warning
    settings.posting.enabled = True
    settings.posting.level = logging.WARNING

    for handler in logging.getLogger().handlers:
        handler.addFilter(TimerLogFilter())


@kopf.on.cleanup()
async def cleanup(memo: kopf.Memo, logger: logging.Logger, **kwargs):
    """Cleanup handler for operator shutdown."""
    logger.info("Shutting down operator...")

    # Close the shared API client
    client = getattr(memo, "client", None)
    if client is not None:
        await client.close()
        logger.info("Shared API client closed")

    logger.info("Operator shutdown complete")


__all__ = [
    "standalone",
]
