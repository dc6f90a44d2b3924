from enum import Enum


class Phase(str, Enum):
    """Reconciliation phase reported in a descriptor's status."""

    PENDING = "Pending"
    UPDATING = "Updating"
    SCALING_UP = "ScalingUp"
    SCALING_DOWN = "ScalingDown"
    READY = "Ready"
    ERROR = "Error"
    TERMINATING = "Terminating"
