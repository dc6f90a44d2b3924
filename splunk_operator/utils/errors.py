import json
import kopf
import kubernetes_asyncio
from typing import Optional

_ALREADY_EXISTS = "alreadyexists"
_NOT_FOUND = "notfound"
_CONFLICT = "conflict"


class OperatorError(Exception):
    """Base class for all errors raised by the operator."""

    #: Whether retrying without an external change can succeed.
    transient: bool = False


class ValidationError(OperatorError):
    """The descriptor spec is malformed."""


class ConfigurationError(OperatorError):
    """Missing or invalid credentials, volume bindings or providers.

    Only an external correction (a new secret, a spec edit) fixes these.
    """


class TransientRemoteError(OperatorError):
    """Network or listing failure against remote storage."""

    transient = True


class FatalInvariantError(OperatorError):
    """An object the operator expects to own is controlled by someone else."""


class ObjectStoreError(OperatorError):
    """Failure reported by the object store client."""

    transient = True

    def __init__(self, message: str, kind: str = None, name: str = None):
        super().__init__(message)
        self.kind = kind
        self.name = name


class NotFoundError(ObjectStoreError):
    pass


class AlreadyExistsError(ObjectStoreError):
    pass


class ConflictError(ObjectStoreError):
    """Stale write rejected by optimistic concurrency."""


def _reason(ex: kubernetes_asyncio.client.ApiException) -> str:
    try:
        err = json.loads(ex.body) if ex.body else {}
    except (json.JSONDecodeError, TypeError):
        return ""
    return (err.get("reason") or "").lower()


def already_exists_error(ex: kubernetes_asyncio.client.ApiException) -> bool:
    if not isinstance(ex, kubernetes_asyncio.client.ApiException):
        return False
    return ex.status == 409 and _reason(ex) == _ALREADY_EXISTS


def not_found_error(ex: kubernetes_asyncio.client.ApiException) -> bool:
    if not isinstance(ex, kubernetes_asyncio.client.ApiException):
        return False
    return ex.status == 404 or _reason(ex) == _NOT_FOUND


def conflict_error(ex: kubernetes_asyncio.client.ApiException) -> bool:
    if not isinstance(ex, kubernetes_asyncio.client.ApiException):
        return False
    return ex.status == 409 and _reason(ex) in (_CONFLICT, "")


def translate_api_exception(
    ex: kubernetes_asyncio.client.ApiException, kind: str, name: str
) -> ObjectStoreError:
    """Map a kubernetes ApiException onto the object store error taxonomy."""
    message = f"Kubernetes API error ({ex.status}) on {kind} `{name}`: {ex.reason}"
    try:
        if ex.body:
            body = json.loads(ex.body)
            if "message" in body:
                message = f"{message} - {body['message']}"
    except (json.JSONDecodeError, AttributeError, TypeError):
        pass

    if not_found_error(ex):
        return NotFoundError(message, kind, name)
    if already_exists_error(ex):
        return AlreadyExistsError(message, kind, name)
    if conflict_error(ex):
        return ConflictError(message, kind, name)
    err = ObjectStoreError(message, kind, name)
    # 4xx errors (except 408, 429) will not fix themselves
    err.transient = not (400 <= ex.status < 500 and ex.status not in (408, 429))
    return err


def convert_error(error: Exception, delay: Optional[float] = None):
    """
    Convert a reconcile error into a Kopf-friendly exception and raise it.

    Args:
        error: The error reported by the reconciliation engine
        delay: Requeue hint for transient errors (seconds)

    Raises:
        kopf.TemporaryError or kopf.PermanentError
    """
    message = f"{type(error).__name__}: {error}"
    if isinstance(error, OperatorError) and not error.transient:
        raise kopf.PermanentError(message)
    raise kopf.TemporaryError(message, delay=delay or 30)
