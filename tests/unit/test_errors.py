"""Unit tests for error translation."""

import json
import kopf
import pytest
from kubernetes_asyncio.client import ApiException
from splunk_operator.utils.errors import (
    AlreadyExistsError,
    ConfigurationError,
    ConflictError,
    NotFoundError,
    ObjectStoreError,
    TransientRemoteError,
    ValidationError,
    convert_error,
    translate_api_exception,
)


def api_exception(status, reason="", body=None):
    ex = ApiException(status=status, reason=reason)
    ex.body = json.dumps(body) if body is not None else None
    return ex


class TestTranslateApiException:
    """Tests for mapping API errors onto the object store taxonomy."""

    def test_not_found(self):
        """Test 404 maps to NotFoundError."""
        err = translate_api_exception(api_exception(404, "Not Found"), "Secret", "a")
        assert isinstance(err, NotFoundError)
        assert err.kind == "Secret"
        assert err.name == "a"

    def test_already_exists(self):
        """Test 409 AlreadyExists maps to AlreadyExistsError."""
        ex = api_exception(409, "Conflict", {"reason": "AlreadyExists", "message": "exists"})
        err = translate_api_exception(ex, "Secret", "a")
        assert isinstance(err, AlreadyExistsError)
        assert "exists" in str(err)

    def test_conflict(self):
        """Test 409 Conflict maps to ConflictError."""
        ex = api_exception(409, "Conflict", {"reason": "Conflict"})
        assert isinstance(translate_api_exception(ex, "Secret", "a"), ConflictError)

    def test_client_error_is_permanent(self):
        """Test 4xx errors other than 408 and 429 will not be retried."""
        err = translate_api_exception(api_exception(422, "Invalid"), "Service", "s")
        assert type(err) is ObjectStoreError
        assert err.transient is False

    @pytest.mark.parametrize("status", [408, 429, 500, 503])
    def test_retryable_statuses(self, status):
        """Test timeouts, throttling and server errors are transient."""
        err = translate_api_exception(api_exception(status, "x"), "Service", "s")
        assert err.transient is True

    def test_body_not_json(self):
        """Test non JSON bodies are tolerated."""
        ex = ApiException(status=500, reason="Oops")
        ex.body = "<html>"
        err = translate_api_exception(ex, "Service", "s")
        assert "Oops" in str(err)


class TestConvertError:
    """Tests for converting reconcile errors into kopf errors."""

    @pytest.mark.parametrize(
        "error", [ValidationError("bad"), ConfigurationError("missing secret")]
    )
    def test_permanent(self, error):
        """Test non transient operator errors stop retries."""
        with pytest.raises(kopf.PermanentError):
            convert_error(error)

    def test_transient_uses_delay(self):
        """Test transient errors are retried after the given delay."""
        with pytest.raises(kopf.TemporaryError) as exc_info:
            convert_error(TransientRemoteError("reset"), 5)
        assert exc_info.value.delay == 5

    def test_unknown_error_is_temporary(self):
        """Test unexpected exceptions are retried with the default delay."""
        with pytest.raises(kopf.TemporaryError) as exc_info:
            convert_error(RuntimeError("boom"))
        assert exc_info.value.delay == 30
