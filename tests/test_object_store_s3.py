"""Tests for the S3 object store.

Uses botocore's Stubber against a real client, so request shapes are
validated without any network access. Managed stream uploads and transport
failures use a MagicMock client.
"""

from __future__ import annotations

import io
import uuid
from typing import Any
from unittest.mock import MagicMock

import boto3
import pytest
from botocore.exceptions import EndpointConnectionError
from botocore.response import StreamingBody
from botocore.stub import Stubber

from cloudblob.storage.errors import (
    InvalidObjectKeyError,
    ObjectNotFoundError,
    ObjectStoreConfigError,
    StorageBackendError,
)
from cloudblob.storage.s3_store import S3ObjectStore, S3Settings

BUCKET = "cloudblob-test"


@pytest.fixture
def s3_client() -> Any:
    """A real S3 client with dummy credentials; never reaches the network."""
    return boto3.client(
        "s3",
        region_name="eu-west-1",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
    )


@pytest.fixture
def stubber(s3_client: Any) -> Any:
    with Stubber(s3_client) as stub:
        yield stub
        stub.assert_no_pending_responses()


@pytest.fixture
def store(s3_client: Any) -> S3ObjectStore:
    return S3ObjectStore(BUCKET, s3_client)


@pytest.fixture
def key() -> str:
    return str(uuid.uuid4())


def _streaming_body(data: bytes) -> StreamingBody:
    return StreamingBody(io.BytesIO(data), len(data))


class TestPut:
    """Uploads."""

    def test_put_bytes_uses_put_object(self, store: S3ObjectStore, stubber: Any, key: str) -> None:
        stubber.add_response("put_object", {}, {"Bucket": BUCKET, "Key": key, "Body": b"hello"})

        metadata = store.put(key, b"hello")

        assert metadata.key == key
        assert metadata.size_bytes == 5

    def test_put_stream_uses_managed_upload(self, key: str) -> None:
        """Streams go through upload_fileobj and their size is counted."""
        client = MagicMock()

        def fake_upload(fileobj: Any, bucket: str, object_key: str, Config: Any = None) -> None:
            while fileobj.read(4):
                pass

        client.upload_fileobj.side_effect = fake_upload
        store = S3ObjectStore(BUCKET, client)

        metadata = store.put(key, io.BytesIO(b"0123456789"))

        assert metadata.size_bytes == 10
        args = client.upload_fileobj.call_args
        assert args.args[1:] == (BUCKET, key)
        client.put_object.assert_not_called()

    def test_put_service_error_is_backend_error(
        self, store: S3ObjectStore, stubber: Any, key: str
    ) -> None:
        stubber.add_client_error(
            "put_object", service_error_code="SlowDown", http_status_code=503
        )

        with pytest.raises(StorageBackendError) as exc_info:
            store.put(key, b"hello")

        assert exc_info.value.key == key
        assert exc_info.value.cause is not None

    def test_put_connection_error_is_backend_error(self, key: str) -> None:
        client = MagicMock()
        client.put_object.side_effect = EndpointConnectionError(endpoint_url="https://s3.example")
        store = S3ObjectStore(BUCKET, client)

        with pytest.raises(StorageBackendError):
            store.put(key, b"hello")

    def test_invalid_key_rejected_before_request(self, store: S3ObjectStore) -> None:
        with pytest.raises(InvalidObjectKeyError):
            store.put("../escape", b"x")


class TestGet:
    """Downloads."""

    def test_get_returns_body(self, store: S3ObjectStore, stubber: Any, key: str) -> None:
        stubber.add_response(
            "get_object",
            {"Body": _streaming_body(b"payload"), "ContentLength": 7},
            {"Bucket": BUCKET, "Key": key},
        )

        result = store.get(key)

        assert result.body == b"payload"
        assert result.metadata.size_bytes == 7

    def test_get_missing_is_not_found(self, store: S3ObjectStore, stubber: Any, key: str) -> None:
        stubber.add_client_error("get_object", service_error_code="NoSuchKey", http_status_code=404)

        with pytest.raises(ObjectNotFoundError):
            store.get(key)

    def test_get_throttled_is_backend_error_not_not_found(
        self, store: S3ObjectStore, stubber: Any, key: str
    ) -> None:
        stubber.add_client_error("get_object", service_error_code="SlowDown", http_status_code=503)

        with pytest.raises(StorageBackendError) as exc_info:
            store.get(key)

        assert not isinstance(exc_info.value, ObjectNotFoundError)

    def test_get_access_denied_is_backend_error(
        self, store: S3ObjectStore, stubber: Any, key: str
    ) -> None:
        stubber.add_client_error(
            "get_object", service_error_code="AccessDenied", http_status_code=403
        )

        with pytest.raises(StorageBackendError):
            store.get(key)


class TestOpenStream:
    """Streaming downloads return the response body unread."""

    def test_open_stream_returns_streaming_body(
        self, store: S3ObjectStore, stubber: Any, key: str
    ) -> None:
        body = _streaming_body(b"payload")
        stubber.add_response(
            "get_object",
            {"Body": body, "ContentLength": 7},
            {"Bucket": BUCKET, "Key": key},
        )

        stream = store.open_stream(key)

        assert stream is body
        assert stream.read(3) == b"pay"
        assert stream.read() == b"load"

    def test_open_stream_missing_is_not_found(
        self, store: S3ObjectStore, stubber: Any, key: str
    ) -> None:
        stubber.add_client_error("get_object", service_error_code="NoSuchKey", http_status_code=404)

        with pytest.raises(ObjectNotFoundError):
            store.open_stream(key)

    def test_open_stream_throttled_is_backend_error(
        self, store: S3ObjectStore, stubber: Any, key: str
    ) -> None:
        stubber.add_client_error("get_object", service_error_code="SlowDown", http_status_code=503)

        with pytest.raises(StorageBackendError) as exc_info:
            store.open_stream(key)

        assert not isinstance(exc_info.value, ObjectNotFoundError)


class TestHeadAndDelete:
    """Metadata and deletion."""

    def test_head_returns_size(self, store: S3ObjectStore, stubber: Any, key: str) -> None:
        stubber.add_response("head_object", {"ContentLength": 42}, {"Bucket": BUCKET, "Key": key})

        assert store.head(key).size_bytes == 42

    def test_head_missing_is_not_found(self, store: S3ObjectStore, stubber: Any, key: str) -> None:
        stubber.add_client_error("head_object", service_error_code="404", http_status_code=404)

        assert store.exists(key) is False

    def test_delete_checks_existence_then_deletes(
        self, store: S3ObjectStore, stubber: Any, key: str
    ) -> None:
        stubber.add_response("head_object", {"ContentLength": 1}, {"Bucket": BUCKET, "Key": key})
        stubber.add_response("delete_object", {}, {"Bucket": BUCKET, "Key": key})

        store.delete(key)

    def test_delete_missing_is_not_found(
        self, store: S3ObjectStore, stubber: Any, key: str
    ) -> None:
        stubber.add_client_error("head_object", service_error_code="404", http_status_code=404)

        with pytest.raises(ObjectNotFoundError):
            store.delete(key)

    def test_delete_failure_is_backend_error(
        self, store: S3ObjectStore, stubber: Any, key: str
    ) -> None:
        stubber.add_response("head_object", {"ContentLength": 1}, {"Bucket": BUCKET, "Key": key})
        stubber.add_client_error(
            "delete_object", service_error_code="InternalError", http_status_code=500
        )

        with pytest.raises(StorageBackendError):
            store.delete(key)


class TestSettings:
    """Configuration comes only from the environment."""

    def test_bucket_required(self) -> None:
        with pytest.raises(ObjectStoreConfigError):
            S3Settings.from_env()

    def test_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CLOUDBLOB_S3_BUCKET", BUCKET)

        settings = S3Settings.from_env()

        assert settings.bucket == BUCKET
        assert settings.region == "eu-west-1"
        assert settings.endpoint_url is None
        assert settings.access_key_id is None
        assert settings.secret_access_key is None
        assert settings.max_attempts == 3

    def test_half_credential_pair_rejected(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CLOUDBLOB_S3_BUCKET", BUCKET)
        monkeypatch.setenv("CLOUDBLOB_S3_ACCESS_KEY_ID", "AKIDEXAMPLE")

        with pytest.raises(ObjectStoreConfigError):
            S3Settings.from_env()

    def test_invalid_timeout_rejected(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CLOUDBLOB_S3_BUCKET", BUCKET)
        monkeypatch.setenv("CLOUDBLOB_S3_READ_TIMEOUT_SECONDS", "soon")

        with pytest.raises(ObjectStoreConfigError):
            S3Settings.from_env()

    def test_repr_hides_secret(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CLOUDBLOB_S3_BUCKET", BUCKET)
        monkeypatch.setenv("CLOUDBLOB_S3_ACCESS_KEY_ID", "AKIDEXAMPLE")
        monkeypatch.setenv("CLOUDBLOB_S3_SECRET_ACCESS_KEY", "super-secret-value")

        settings = S3Settings.from_env()

        assert settings.secret_access_key == "super-secret-value"
        assert "super-secret-value" not in repr(settings)

    def test_from_env_builds_store(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CLOUDBLOB_S3_BUCKET", BUCKET)
        monkeypatch.setenv("CLOUDBLOB_S3_ENDPOINT_URL", "http://localhost:9000")
        monkeypatch.setenv("CLOUDBLOB_S3_ACCESS_KEY_ID", "minio")
        monkeypatch.setenv("CLOUDBLOB_S3_SECRET_ACCESS_KEY", "minio-secret")

        store = S3ObjectStore.from_env()

        assert store.bucket == BUCKET
        assert store.backend_name == "s3"

    def test_empty_bucket_rejected(self) -> None:
        with pytest.raises(ObjectStoreConfigError):
            S3ObjectStore("", MagicMock())
