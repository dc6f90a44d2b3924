import logging
from typing import Dict, List
from splunk_operator.remote.base import RemoteClientFactory
from splunk_operator.utils.errors import ConfigurationError

logger = logging.getLogger(__name__)


class ProviderRegistry:
    """Maps a remote storage provider name to the factory building its clients.

    Registration happens at startup; lookups afterwards only read the mapping,
    so a registry can be shared by concurrent reconciliations.
    """

    def __init__(self, factories: Dict[str, RemoteClientFactory] = None):
        self._factories: Dict[str, RemoteClientFactory] = dict(factories or {})

    def register(self, provider: str, factory: RemoteClientFactory) -> None:
        logger.debug(f"Registering remote storage provider `{provider}`")
        self._factories[provider] = factory

    def unregister(self, provider: str) -> None:
        self._factories.pop(provider, None)

    def get(self, provider: str) -> RemoteClientFactory:
        try:
            return self._factories[provider]
        except KeyError:
            raise ConfigurationError(
                f"Remote storage provider `{provider}` is not registered"
            )

    def providers(self) -> List[str]:
        return sorted(self._factories)

    def __contains__(self, provider: str) -> bool:
        return provider in self._factories

    @classmethod
    def default(cls) -> "ProviderRegistry":
        """Registry with the S3 compatible providers built in."""
        from splunk_operator.remote import s3

        return cls({"aws": s3.new_aws_client, "minio": s3.new_minio_client})
