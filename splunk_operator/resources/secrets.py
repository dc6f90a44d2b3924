import re
import secrets
import string
import uuid
import yaml
from typing import Dict, List, Optional, Tuple
from kubernetes_asyncio.client import V1ObjectMeta, V1Secret
from splunk_operator.client.base import ObjectStore, SECRET
from splunk_operator.common.models.labels import Labels
from splunk_operator.resources.base import BaseResource, CREATED, UPDATED, UNCHANGED
from splunk_operator.types.models.standalone_resources import StandaloneResources
from splunk_operator.utils.helpers import (
    compute_hash,
    decode_secret_value,
    encode_secret_data,
)

HEC_TOKEN = "hec_token"
PASSWORD = "password"
PASS4_SYMM_KEY = "pass4SymmKey"
IDXC_SECRET = "idxc_secret"
SHC_SECRET = "shc_secret"

#: Keys of the namespace scoped secret, in the order they are generated.
NAMESPACE_SECRET_KEYS = (HEC_TOKEN, PASSWORD, PASS4_SYMM_KEY, IDXC_SECRET, SHC_SECRET)

DEFAULTS_FILE = "default.yml"
RANDOM_SECRET_LENGTH = 24

_ALPHABET = string.ascii_letters + string.digits


def generate_secret_value(key: str) -> str:
    if key == HEC_TOKEN:
        return str(uuid.uuid4()).upper()
    return "".join(secrets.choice(_ALPHABET) for _ in range(RANDOM_SECRET_LENGTH))


def decode_secret(secret: V1Secret) -> Dict[str, str]:
    return {k: decode_secret_value(v) for k, v in (secret.data or {}).items()}


def render_default_yml(data: Dict[str, str]) -> str:
    """Render the ansible defaults the containers pick up from the mounted secret."""
    defaults = {
        "splunk": {
            "hec_disabled": 0,
            "hec_enableSSL": 0,
            "hec_token": data.get(HEC_TOKEN, ""),
            "password": data.get(PASSWORD, ""),
            "pass4SymmKey": data.get(PASS4_SYMM_KEY, ""),
            "idxc": {"secret": data.get(IDXC_SECRET, "")},
            "shc": {"secret": data.get(SHC_SECRET, "")},
        }
    }
    return yaml.safe_dump(defaults, default_flow_style=False, sort_keys=True)


class SecretsResource(BaseResource):
    """Namespace scoped admin secret and the versioned secrets derived from it."""

    NAMESPACE_SECRET_TYPE = "namespace_secret"
    VERSIONED_SECRET_TYPE = "versioned_secret"

    #: Hash of the remote volume secret revisions a version was minted against.
    VOLUME_SECRETS_ANNOTATION = "enterprise.splunk.com/volume-secrets-hash"

    history: int = 3

    def __init__(self, owner, labels: Labels, history: int = None, logger=None):
        super().__init__(
            owner,
            StandaloneResources.component_name(owner.name),
            labels,
            logger=logger,
        )
        if history is not None:
            self.history = history
        self.namespace_secret_name = StandaloneResources.namespace_secret_name(
            self.namespace
        )

    # ---------------------------------------------------------------
    # Namespace scoped secret
    # ---------------------------------------------------------------

    def prepare_namespace_secret(self, data: Dict[str, str] = None) -> V1Secret:
        """Build the namespace secret, generating every key missing from `data`."""
        data = dict(data or {})
        for key in NAMESPACE_SECRET_KEYS:
            if not data.get(key):
                data[key] = generate_secret_value(key)
        return V1Secret(
            api_version="v1",
            kind="Secret",
            type="Opaque",
            metadata=V1ObjectMeta(
                name=self.namespace_secret_name,
                namespace=self.namespace,
                labels=Labels().include_kubernetes_managed_by(self.OPERATOR_NAME).as_dict(),
            ),
            data=encode_secret_data(data),
        )

    async def sync_namespace_secret(self, client: ObjectStore) -> Tuple[str, V1Secret]:
        """Create the namespace secret, or fill in keys missing from an existing one.

        The secret is shared by every workload of the namespace, so it is
        never owned by a single descriptor and existing values are never
        replaced.
        """
        secret = await client.get(SECRET, self.namespace, self.namespace_secret_name)
        if secret is None:
            body = self.prepare_namespace_secret()
            return CREATED, await self.create_resource(
                client, SECRET, body, self.NAMESPACE_SECRET_TYPE
            )

        current = decode_secret(secret)
        missing = [key for key in NAMESPACE_SECRET_KEYS if not current.get(key)]
        if not missing:
            return UNCHANGED, secret

        self.sensor.on_resource_drift_detected(
            self.cluster,
            self.namespace_secret_name,
            self.namespace,
            self.NAMESPACE_SECRET_TYPE,
            missing,
        )
        secret.data = self.prepare_namespace_secret(current).data
        return UPDATED, await self.update_resource(
            client, SECRET, secret, self.NAMESPACE_SECRET_TYPE
        )

    # ---------------------------------------------------------------
    # Versioned secrets
    # ---------------------------------------------------------------

    def prepare_versioned_secret_data(self, namespace_data: Dict[str, str]) -> Dict[str, str]:
        data = dict(namespace_data)
        data[DEFAULTS_FILE] = render_default_yml(namespace_data)
        return data

    def volume_secrets_hash(self, volume_secrets: Optional[Dict[str, str]]) -> str:
        return compute_hash(dict(volume_secrets or {}))

    def prepare_versioned_secret(
        self, version: int, data: Dict[str, str], volume_secrets_hash: str = None
    ) -> V1Secret:
        annotations = None
        if volume_secrets_hash is not None:
            annotations = {self.VOLUME_SECRETS_ANNOTATION: volume_secrets_hash}
        return V1Secret(
            api_version="v1",
            kind="Secret",
            type="Opaque",
            metadata=V1ObjectMeta(
                name=StandaloneResources.versioned_secret_name(self.cluster, version),
                namespace=self.namespace,
                labels=Labels.versioned_secret_labels().as_dict(),
                annotations=annotations,
                owner_references=[self.prepare_owner_reference()],
            ),
            data=encode_secret_data(data),
        )

    async def list_versioned_secrets(self, client: ObjectStore) -> List[Tuple[int, V1Secret]]:
        """Return the versioned secrets of this descriptor, oldest first."""
        pattern = re.compile(
            "^" + re.escape(StandaloneResources.versioned_secret_prefix(self.cluster)) + r"(\d+)$"
        )
        items = await client.list(
            SECRET, self.namespace, label_selector=Labels.versioned_secret_labels().as_dict()
        )
        versions = []
        for secret in items:
            match = pattern.match(secret.metadata.name)
            if match:
                versions.append((int(match.group(1)), secret))
        return sorted(versions, key=lambda item: item[0])

    async def sync_versioned_secret(
        self,
        client: ObjectStore,
        namespace_secret: V1Secret,
        volume_secrets: Optional[Dict[str, str]] = None,
    ) -> Tuple[str, V1Secret]:
        """Return the latest versioned secret, minting a new version when it is stale.

        `volume_secrets` maps the remote volume secrets in use to their
        resourceVersion. A new version is created when none exists, when
        the latest one no longer matches the namespace secret, or when it
        was minted against other volume secret revisions (a rotation, or a
        volume secret tracked for the first time). Versions beyond the
        history limit are pruned, oldest first.
        """
        desired_data = self.prepare_versioned_secret_data(decode_secret(namespace_secret))
        desired_hash = self.volume_secrets_hash(volume_secrets)
        versions = await self.list_versioned_secrets(client)

        if versions:
            latest_version, latest = versions[-1]
            self.check_owner(latest, self.VERSIONED_SECRET_TYPE)
            minted_for = (latest.metadata.annotations or {}).get(
                self.VOLUME_SECRETS_ANNOTATION
            )
            if decode_secret(latest) == desired_data and minted_for == desired_hash:
                return UNCHANGED, latest
            if minted_for != desired_hash:
                self.logger.info(
                    f"Remote volume secrets of `{self.cluster}` changed, "
                    f"minting version {latest_version + 1}"
                )
            next_version = latest_version + 1
        else:
            next_version = 1

        body = self.prepare_versioned_secret(next_version, desired_data, desired_hash)
        created = await self.create_resource(
            client, SECRET, body, self.VERSIONED_SECRET_TYPE
        )
        versions.append((next_version, created))
        await self.prune_versioned_secrets(client, versions)
        return CREATED, created

    async def prune_versioned_secrets(
        self, client: ObjectStore, versions: List[Tuple[int, V1Secret]]
    ) -> None:
        for _, secret in versions[: max(len(versions) - self.history, 0)]:
            if not self.is_owned(secret):
                continue
            await self.delete_resource(
                client, SECRET, secret.metadata.name, self.VERSIONED_SECRET_TYPE
            )
