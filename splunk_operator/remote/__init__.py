from .base import RemoteStorageClient, RemoteClientFactory
from .registry import ProviderRegistry
from .credentials import CredentialResolver, RemoteCredentials
from .appframework import (
    AppFrameworkEngine,
    AppFrameworkRefresh,
    AppSourceContext,
    AppSourceOutcome,
)

__all__ = [
    "RemoteStorageClient",
    "RemoteClientFactory",
    "ProviderRegistry",
    "CredentialResolver",
    "RemoteCredentials",
    "AppFrameworkEngine",
    "AppFrameworkRefresh",
    "AppSourceContext",
    "AppSourceOutcome",
]
