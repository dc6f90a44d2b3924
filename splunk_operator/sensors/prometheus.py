"""Prometheus monitoring backend for the Splunk operator.

This module provides PrometheusMonitor, which collects operator lifecycle events
and exposes them as Prometheus metrics:

1. Reconciliation Loop Health - Duration, throughput, errors, phase transitions
2. Kubernetes Resource Sync - Operation counts, latency, drift detection
3. App Framework - Remote listing results and credential rotations

All metrics include labels for multi-dimensional analysis (name, namespace, etc.).
"""

from typing import Dict, List, Optional, Any
import time
import logging

from prometheus_client import Counter, Histogram, REGISTRY, CollectorRegistry

from splunk_operator.sensors.base import OperatorSensor

logger = logging.getLogger(__name__)


class PrometheusMonitor(OperatorSensor):
    """Prometheus metrics monitor for the Splunk operator.

    Exposes metrics via prometheus_client that can be scraped by Prometheus.

    Metrics are organized into categories:
    - splunkop_reconcile_* - Reconciliation loop metrics
    - splunkop_resource_* - Kubernetes resource sync metrics
    - splunkop_app_source_* / splunkop_credential_* - App framework metrics
    - splunkop_phase_* / splunkop_status_* - Status metrics

    Example:
        monitor = PrometheusMonitor()
        state = monitor.on_reconcile_start("s1", "default", 5, "timer")
        monitor.on_reconcile_complete("s1", "default", state, True)
    """

    def __init__(self, registry: CollectorRegistry = REGISTRY):
        """Initialize Prometheus metrics."""
        super().__init__()

        # =============================================================================
        # Reconciliation Loop Metrics
        # =============================================================================

        self.reconcile_duration = Histogram(
            'splunkop_reconcile_duration_seconds',
            'Time spent in reconciliation loop',
            labelnames=['name', 'namespace', 'trigger_source', 'result'],
            buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0],
            registry=registry,
        )

        self.reconcile_total = Counter(
            'splunkop_reconcile_total',
            'Total number of reconciliation attempts',
            labelnames=['name', 'namespace', 'trigger_source', 'result'],
            registry=registry,
        )

        self.reconcile_errors = Counter(
            'splunkop_reconcile_errors_total',
            'Total number of reconciliation errors',
            labelnames=['name', 'namespace', 'error_type'],
            registry=registry,
        )

        # =============================================================================
        # Kubernetes Resource Sync Metrics
        # =============================================================================

        self.resource_sync_duration = Histogram(
            'splunkop_resource_sync_duration_seconds',
            'Time spent syncing Kubernetes resources',
            labelnames=['name', 'resource_name', 'namespace', 'resource_type', 'operation', 'result'],
            buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0],
            registry=registry,
        )

        self.resource_sync_total = Counter(
            'splunkop_resource_sync_total',
            'Total number of resource sync operations',
            labelnames=['name', 'resource_name', 'namespace', 'resource_type', 'operation', 'result'],
            registry=registry,
        )

        self.resource_sync_errors = Counter(
            'splunkop_resource_sync_errors_total',
            'Total number of resource sync errors',
            labelnames=['name', 'resource_name', 'namespace', 'resource_type', 'error_type'],
            registry=registry,
        )

        self.resource_drift_detected = Counter(
            'splunkop_resource_drift_detected_total',
            'Total number of resource drift detections',
            labelnames=['name', 'resource_name', 'namespace', 'resource_type', 'drift_field'],
            registry=registry,
        )

        # =============================================================================
        # App Framework Metrics
        # =============================================================================

        self.app_source_listings = Counter(
            'splunkop_app_source_listings_total',
            'Total number of app source listings',
            labelnames=['name', 'namespace', 'app_source', 'result'],
            registry=registry,
        )

        self.app_source_listing_errors = Counter(
            'splunkop_app_source_listing_errors_total',
            'Total number of failed app source listings',
            labelnames=['name', 'namespace', 'app_source', 'error_type'],
            registry=registry,
        )

        self.credential_rotations = Counter(
            'splunkop_credential_rotations_total',
            'Total number of detected secret rotations',
            labelnames=['name', 'namespace', 'secret_name'],
            registry=registry,
        )

        # =============================================================================
        # Status Update Metrics
        # =============================================================================

        self.phase_transitions = Counter(
            'splunkop_phase_transitions_total',
            'Total number of phase transitions',
            labelnames=['name', 'namespace', 'from_phase', 'to_phase'],
            registry=registry,
        )

        self.status_updates = Counter(
            'splunkop_status_updates_total',
            'Total number of status updates',
            labelnames=['name', 'namespace', 'update_field'],
            registry=registry,
        )

        logger.info("PrometheusMonitor initialized with all metrics")

    # =============================================================================
    # Reconciliation Lifecycle Hooks
    # =============================================================================

    def on_reconcile_start(
        self,
        name: str,
        namespace: str,
        generation: int,
        trigger_source: str,
    ) -> Optional[Dict[str, Any]]:
        """Record reconciliation start time."""
        return {
            'start_time': time.time(),
            'trigger_source': trigger_source,
        }

    def on_reconcile_complete(
        self,
        name: str,
        namespace: str,
        state: Optional[Dict[str, Any]],
        success: bool,
        error: Optional[Exception] = None,
    ) -> None:
        """Record reconciliation duration and result."""
        if state:
            duration = time.time() - state['start_time']
            trigger_source = state['trigger_source']
            result = 'success' if success else 'failure'

            self.reconcile_duration.labels(
                name=name,
                namespace=namespace,
                trigger_source=trigger_source,
                result=result,
            ).observe(duration)

            self.reconcile_total.labels(
                name=name,
                namespace=namespace,
                trigger_source=trigger_source,
                result=result,
            ).inc()

        if error:
            self.reconcile_errors.labels(
                name=name,
                namespace=namespace,
                error_type=error.__class__.__name__,
            ).inc()

    # =============================================================================
    # Resource Operation Hooks
    # =============================================================================

    def on_resource_sync_start(
        self,
        name: str,
        resource_name: str,
        namespace: str,
        resource_type: str,
    ) -> Optional[Dict[str, Any]]:
        """Record resource sync start time."""
        return {
            'start_time': time.time(),
            'resource_type': resource_type,
            'resource_name': resource_name,
        }

    def on_resource_sync_complete(
        self,
        name: str,
        resource_name: str,
        namespace: str,
        resource_type: str,
        state: Optional[Dict[str, Any]],
        operation: str,
        success: bool,
        error: Optional[Exception] = None,
    ) -> None:
        """Record resource sync duration and result."""
        result = 'success' if success else 'failure'
        if state:
            duration = time.time() - state['start_time']
            self.resource_sync_duration.labels(
                name=name,
                resource_name=resource_name,
                namespace=namespace,
                resource_type=resource_type,
                operation=operation,
                result=result,
            ).observe(duration)

        self.resource_sync_total.labels(
            name=name,
            resource_name=resource_name,
            namespace=namespace,
            resource_type=resource_type,
            operation=operation,
            result=result,
        ).inc()

        if error:
            self.resource_sync_errors.labels(
                name=name,
                resource_name=resource_name,
                namespace=namespace,
                resource_type=resource_type,
                error_type=error.__class__.__name__,
            ).inc()

    def on_resource_drift_detected(
        self,
        name: str,
        resource_name: str,
        namespace: str,
        resource_type: str,
        drift_fields: List[str],
    ) -> None:
        """Record drift detection per field."""
        for field in drift_fields:
            self.resource_drift_detected.labels(
                name=name,
                resource_name=resource_name,
                namespace=namespace,
                resource_type=resource_type,
                drift_field=field,
            ).inc()

    # =============================================================================
    # App Framework Hooks
    # =============================================================================

    def on_app_source_listed(
        self,
        name: str,
        namespace: str,
        app_source: str,
        success: bool,
        object_count: int = 0,
        error: Optional[Exception] = None,
    ) -> None:
        """Record app source listing result."""
        self.app_source_listings.labels(
            name=name,
            namespace=namespace,
            app_source=app_source,
            result='success' if success else 'failure',
        ).inc()
        if error:
            self.app_source_listing_errors.labels(
                name=name,
                namespace=namespace,
                app_source=app_source,
                error_type=error.__class__.__name__,
            ).inc()

    def on_credentials_rotated(
        self,
        name: str,
        namespace: str,
        secret_name: str,
    ) -> None:
        self.credential_rotations.labels(
            name=name,
            namespace=namespace,
            secret_name=secret_name,
        ).inc()

    # =============================================================================
    # Status Update Hooks
    # =============================================================================

    def on_phase_transition(
        self,
        name: str,
        namespace: str,
        from_phase: Optional[str],
        to_phase: str,
    ) -> None:
        self.phase_transitions.labels(
            name=name,
            namespace=namespace,
            from_phase=from_phase or "",
            to_phase=to_phase,
        ).inc()

    def on_status_update(
        self,
        name: str,
        namespace: str,
        update_fields: List[str],
    ) -> None:
        """Record status update."""
        for field in update_fields:
            self.status_updates.labels(
                name=name,
                namespace=namespace,
                update_field=field,
            ).inc()
