import re
import logging
import time
import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from typing import List, Optional
from splunk_operator.remote.base import RemoteStorageClient
from splunk_operator.types.models.remote_object import RemoteObject
from splunk_operator.utils.errors import ConfigurationError, TransientRemoteError

logger = logging.getLogger(__name__)

_REGION_PATTERN = re.compile(r"s3[.-]([a-z0-9-]+)\.amazonaws\.com")

# Errors that will not go away without an external change.
_CONFIGURATION_ERROR_CODES = {
    "AccessDenied",
    "InvalidAccessKeyId",
    "SignatureDoesNotMatch",
    "NoSuchBucket",
    "InvalidBucketName",
    "AuthorizationHeaderMalformed",
}


def region_from_endpoint(endpoint: Optional[str]) -> Optional[str]:
    """Derive the AWS region from an endpoint such as `https://s3-eu-west-2.amazonaws.com`."""
    if not endpoint:
        return None
    match = _REGION_PATTERN.search(endpoint)
    return match.group(1) if match else None


class S3Client(RemoteStorageClient):
    """S3 compatible storage client backed by boto3."""

    def __init__(self, bucket: str, client) -> None:
        self.bucket = bucket
        self._client = client

    def list_objects(
        self, prefix: str, deadline: Optional[float] = None
    ) -> List[RemoteObject]:
        objects = []
        try:
            paginator = self._client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix):
                if deadline is not None and time.monotonic() > deadline:
                    raise TransientRemoteError(
                        f"Listing s3://{self.bucket}/{prefix} abandoned after "
                        f"{len(objects)} objects, deadline passed"
                    )
                for item in page.get("Contents", []):
                    objects.append(
                        RemoteObject(
                            key=item["Key"],
                            etag=item.get("ETag"),
                            last_modified=item.get("LastModified"),
                            size=item.get("Size"),
                            storage_class=item.get("StorageClass"),
                        )
                    )
        except ClientError as ex:
            code = ex.response.get("Error", {}).get("Code", "")
            message = f"Listing s3://{self.bucket}/{prefix} failed ({code}): {ex}"
            if code in _CONFIGURATION_ERROR_CODES:
                raise ConfigurationError(message)
            raise TransientRemoteError(message)
        except BotoCoreError as ex:
            raise TransientRemoteError(
                f"Listing s3://{self.bucket}/{prefix} failed: {ex}"
            )
        logger.debug(f"Listed {len(objects)} objects under s3://{self.bucket}/{prefix}")
        return objects


def _boto_client(
    region: Optional[str],
    access_key: Optional[str],
    secret_key: Optional[str],
    endpoint: Optional[str],
    config: Config = None,
):
    kwargs = {"region_name": region or region_from_endpoint(endpoint)}
    if endpoint:
        kwargs["endpoint_url"] = endpoint
    if access_key and secret_key:
        kwargs["aws_access_key_id"] = access_key
        kwargs["aws_secret_access_key"] = secret_key
    if config is not None:
        kwargs["config"] = config
    return boto3.session.Session().client("s3", **kwargs)


def new_aws_client(
    bucket: str,
    region: Optional[str] = None,
    access_key: Optional[str] = None,
    secret_key: Optional[str] = None,
    endpoint: Optional[str] = None,
) -> S3Client:
    """Build a client for AWS S3. Without keys, the default credential chain (IAM) is used."""
    return S3Client(bucket, _boto_client(region, access_key, secret_key, endpoint))


def new_minio_client(
    bucket: str,
    region: Optional[str] = None,
    access_key: Optional[str] = None,
    secret_key: Optional[str] = None,
    endpoint: Optional[str] = None,
) -> S3Client:
    """Build a client for a MinIO (or other S3 compatible) endpoint using path-style addressing."""
    if not endpoint:
        raise ConfigurationError("The minio provider requires an endpoint")
    config = Config(s3={"addressing_style": "path"})
    return S3Client(
        bucket,
        _boto_client(region or "us-east-1", access_key, secret_key, endpoint, config),
    )
