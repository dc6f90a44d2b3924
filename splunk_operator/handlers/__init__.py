from . import probes, standalone

__all__ = ["probes", "standalone"]
