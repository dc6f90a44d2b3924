"""Base sensor classes for operator monitoring.

This module defines the base OperatorSensor class that provides lifecycle hooks
for monitoring various operator events. All hooks are no-ops by default, allowing
subclasses to override only the events they care about.

The hook pattern follows Faust's sensor design:
- Hooks come in pairs: on_X_start() and on_X_complete()
- Start hooks return an optional state dict for tracking multi-phase operations
- Complete hooks receive the state dict from their corresponding start hook
- All hooks are optional - sensors only implement what they need
"""

from typing import Dict, List, Optional, Any
import logging

logger = logging.getLogger(__name__)


class OperatorSensor:
    """Base sensor class for Splunk operator monitoring.

    Hooks cover the reconciliation pass, the sync of each child resource,
    and the app framework (remote listings and credential rotation).

    All methods are no-ops by default. Subclasses override only the hooks
    they need to monitor.

    Example:
        class LoggingSensor(OperatorSensor):
            def on_reconcile_start(self, name, namespace, generation, trigger_source):
                return {'start_time': time.time()}

            def on_reconcile_complete(self, name, namespace, state, success, error=None):
                duration = time.time() - state['start_time']
                logger.info(f"Reconciled {name} in {duration}s")
    """

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
        """Called when a reconciliation pass begins.

        Args:
            name: Standalone resource name
            namespace: Kubernetes namespace
            generation: Resource generation number
            trigger_source: What triggered reconciliation (create, update, resume, timer, delete)

        Returns:
            Optional state dict passed to on_reconcile_complete
        """
        pass

    def on_reconcile_complete(
        self,
        name: str,
        namespace: str,
        state: Optional[Dict[str, Any]],
        success: bool,
        error: Optional[Exception] = None,
    ) -> None:
        """Called when a reconciliation pass completes.

        Args:
            name: Standalone resource name
            namespace: Kubernetes namespace
            state: State dict returned by on_reconcile_start
            success: Whether the pass converged without error
            error: Error reported by the pass, if any
        """
        pass

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
        """Called when a create/update of a child resource begins.

        Args:
            name: Owning Standalone resource name
            resource_name: Child resource name
            namespace: Kubernetes namespace
            resource_type: Type of resource (secret, service, config_map, stateful_set, ...)

        Returns:
            Optional state dict passed to on_resource_sync_complete
        """
        pass

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
        """Called when a create/update/delete of a child resource completes.

        Args:
            name: Owning Standalone resource name
            resource_name: Child resource name
            namespace: Kubernetes namespace
            resource_type: Type of resource
            state: State dict from on_resource_sync_start
            operation: Operation performed (create, update, delete)
            success: Whether the operation succeeded
            error: Exception if the operation failed
        """
        pass

    def on_resource_drift_detected(
        self,
        name: str,
        resource_name: str,
        namespace: str,
        resource_type: str,
        drift_fields: List[str],
    ) -> None:
        """Called when the observed state of a child resource differs from the desired state."""
        pass

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
        """Called once per app source after a remote listing attempt.

        Args:
            name: Standalone resource name
            namespace: Kubernetes namespace
            app_source: App source name
            success: Whether the listing succeeded
            object_count: Number of objects listed
            error: Exception if the listing failed, timed out or was cancelled
        """
        pass

    def on_credentials_rotated(
        self,
        name: str,
        namespace: str,
        secret_name: str,
    ) -> None:
        """Called when an externally managed secret is seen at a new revision."""
        pass

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
        """Called when the reported phase of a Standalone changes."""
        pass

    def on_status_update(
        self,
        name: str,
        namespace: str,
        update_fields: List[str],
    ) -> None:
        """Called when status is written.

        Args:
            name: Standalone resource name
            namespace: Kubernetes namespace
            update_fields: Status fields that changed
        """
        pass

    # =============================================================================
    # Utility Methods
    # =============================================================================

    def asdict(self) -> Dict[str, Any]:
        """Return sensor state as dictionary.

        Override in subclasses to expose internal state for debugging.

        Returns:
            Dictionary of sensor state
        """
        return {}
