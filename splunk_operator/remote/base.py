import abc
from typing import Callable, List, Optional, Tuple
from splunk_operator.types.models.remote_object import RemoteObject


class RemoteStorageClient(abc.ABC):
    """Client for a single bucket of a remote object store."""

    bucket: str

    @abc.abstractmethod
    def list_objects(
        self, prefix: str, deadline: Optional[float] = None
    ) -> List[RemoteObject]:
        """List every object under `prefix`, in the order the provider reports them.

        This is a blocking call; callers run it in an executor. When
        `deadline` (a `time.monotonic()` value) passes before the listing
        is complete, it stops and raises TransientRemoteError.
        """


#: Builds a client from (bucket, region, access_key, secret_key, endpoint).
#: A factory may return None when it cannot build a client.
RemoteClientFactory = Callable[..., Optional[RemoteStorageClient]]


def split_volume_path(path: str, location: str) -> Tuple[str, str]:
    """Split a volume path and an app source location into bucket and key prefix.

    >>> split_volume_path("bucket/apps", "admin")
    ('bucket', 'apps/admin/')
    """
    parts = [p for p in (path or "").strip("/").split("/") if p]
    if not parts:
        raise ValueError(f"Volume path `{path}` does not name a bucket")
    bucket, rest = parts[0], parts[1:]
    rest += [p for p in (location or "").strip("/").split("/") if p]
    prefix = "/".join(rest)
    return bucket, f"{prefix}/" if prefix else ""
