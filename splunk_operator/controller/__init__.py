from .standalone import StandaloneReconciler, ReconcileResult, PVC_FINALIZER

__all__ = ["StandaloneReconciler", "ReconcileResult", "PVC_FINALIZER"]
