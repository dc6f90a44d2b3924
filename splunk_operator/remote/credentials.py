import logging
from typing import Optional
from splunk_operator.client.base import ObjectStore, SECRET
from splunk_operator.types.base import BaseModel
from splunk_operator.types.models.app_framework import VolumeSpec
from splunk_operator.utils.errors import ConfigurationError
from splunk_operator.utils.helpers import decode_secret_value

logger = logging.getLogger(__name__)

ACCESS_KEY = "s3_access_key"
SECRET_KEY = "s3_secret_key"


class RemoteCredentials(BaseModel):
    """Keys used to reach a remote volume, along with the secret revision they came from."""

    access_key: Optional[str]
    secret_key: Optional[str]
    secret_name: Optional[str]
    resource_version: Optional[str]

    @property
    def anonymous(self) -> bool:
        return not self.secret_name


class CredentialResolver:
    """Reads the access and secret keys of a volume from its referenced secret."""

    access_key_field: str = ACCESS_KEY
    secret_key_field: str = SECRET_KEY

    async def resolve(
        self, client: ObjectStore, namespace: str, volume: VolumeSpec
    ) -> RemoteCredentials:
        """Resolve credentials of `volume`.

        A volume without `secretRef` relies on the provider's ambient
        credentials (for instance an IAM role) and resolves to empty keys.

        Raises:
            ConfigurationError: the secret is missing, has no data, or lacks
                one of the two keys.
        """
        if not volume.secret_ref:
            logger.debug(f"Volume `{volume.name}` has no secretRef, using ambient credentials")
            return RemoteCredentials()

        secret_name = volume.secret_ref
        secret = await client.get(SECRET, namespace, secret_name)
        if secret is None:
            raise ConfigurationError(
                f"Secret `{secret_name}` referenced by volume `{volume.name}` not found"
            )
        data = secret.data or {}
        if not data:
            raise ConfigurationError(
                f"Secret `{secret_name}` referenced by volume `{volume.name}` has no data"
            )
        try:
            access_key = decode_secret_value(data.get(self.access_key_field))
            secret_key = decode_secret_value(data.get(self.secret_key_field))
        except ValueError as ex:
            raise ConfigurationError(
                f"Secret `{secret_name}` holds a value that is not valid base64: {ex}"
            )
        if not access_key:
            raise ConfigurationError(
                f"Secret `{secret_name}` is missing `{self.access_key_field}`"
            )
        if not secret_key:
            raise ConfigurationError(
                f"Secret `{secret_name}` is missing `{self.secret_key_field}`"
            )
        return RemoteCredentials(
            access_key=access_key,
            secret_key=secret_key,
            secret_name=secret_name,
            resource_version=secret.metadata.resource_version,
        )
