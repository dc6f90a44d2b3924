from .base import BaseResource, CREATED, UPDATED, UNCHANGED
from .secrets import SecretsResource
from .standalone import StandaloneResource

__all__ = [
    "BaseResource",
    "SecretsResource",
    "StandaloneResource",
    "CREATED",
    "UPDATED",
    "UNCHANGED",
]
