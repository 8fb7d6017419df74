"""S3-compatible object storage backend.

Stores each blob as a single object keyed by its canonical identifier string
in one bucket. Bytes are sent with PutObject; streams go through boto3's
managed transfer (upload_fileobj), which switches to multipart uploads for
large media files.

Every botocore failure is translated: a missing key becomes
ObjectNotFoundError, everything else StorageBackendError with the original
exception attached. Nothing is swallowed.

Environment Variables:
    CLOUDBLOB_S3_BUCKET: Bucket name (required)
    CLOUDBLOB_S3_REGION: Region name (default: "eu-west-1")
    CLOUDBLOB_S3_ENDPOINT_URL: Endpoint override for S3-compatible stores
    CLOUDBLOB_S3_ACCESS_KEY_ID / CLOUDBLOB_S3_SECRET_ACCESS_KEY: Explicit
        credentials; when unset the standard boto3 credential chain applies
    CLOUDBLOB_S3_CONNECT_TIMEOUT_SECONDS: Connect timeout (default: 5)
    CLOUDBLOB_S3_READ_TIMEOUT_SECONDS: Read timeout (default: 30)
    CLOUDBLOB_S3_MAX_ATTEMPTS: botocore retry attempts (default: 3)
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any, BinaryIO

import boto3
from boto3.s3.transfer import TransferConfig
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from cloudblob.storage.errors import (
    ObjectNotFoundError,
    ObjectStoreConfigError,
    StorageBackendError,
)
from cloudblob.storage.models import StoredObject, StoredObjectMetadata
from cloudblob.storage.object_store import ObjectData, ObjectStore, validate_key
from cloudblob.storage.tracing import traced_storage_operation

logger = logging.getLogger(__name__)

CLOUDBLOB_S3_BUCKET_ENV = "CLOUDBLOB_S3_BUCKET"
CLOUDBLOB_S3_REGION_ENV = "CLOUDBLOB_S3_REGION"
CLOUDBLOB_S3_ENDPOINT_URL_ENV = "CLOUDBLOB_S3_ENDPOINT_URL"
CLOUDBLOB_S3_ACCESS_KEY_ID_ENV = "CLOUDBLOB_S3_ACCESS_KEY_ID"
CLOUDBLOB_S3_SECRET_ACCESS_KEY_ENV = "CLOUDBLOB_S3_SECRET_ACCESS_KEY"
CLOUDBLOB_S3_CONNECT_TIMEOUT_ENV = "CLOUDBLOB_S3_CONNECT_TIMEOUT_SECONDS"
CLOUDBLOB_S3_READ_TIMEOUT_ENV = "CLOUDBLOB_S3_READ_TIMEOUT_SECONDS"
CLOUDBLOB_S3_MAX_ATTEMPTS_ENV = "CLOUDBLOB_S3_MAX_ATTEMPTS"

DEFAULT_REGION = "eu-west-1"
DEFAULT_CONNECT_TIMEOUT_SECONDS = 5.0
DEFAULT_READ_TIMEOUT_SECONDS = 30.0
DEFAULT_MAX_ATTEMPTS = 3

_NOT_FOUND_CODES = frozenset({"NoSuchKey", "404", "NotFound"})


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError as e:
        raise ObjectStoreConfigError(f"{name} must be a number, got {raw!r}") from e
    if value <= 0:
        raise ObjectStoreConfigError(f"{name} must be positive, got {raw!r}")
    return value


@dataclass(frozen=True)
class S3Settings:
    """Connection settings for the S3 backend.

    Credentials are optional; when both are None boto3 resolves them from
    its default chain (environment, shared config, instance role).
    """

    bucket: str
    region: str = DEFAULT_REGION
    endpoint_url: str | None = None
    access_key_id: str | None = None
    secret_access_key: str | None = None
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT_SECONDS
    read_timeout: float = DEFAULT_READ_TIMEOUT_SECONDS
    max_attempts: int = DEFAULT_MAX_ATTEMPTS

    def __repr__(self) -> str:
        # Never render the secret.
        return (
            f"S3Settings(bucket={self.bucket!r}, region={self.region!r}, "
            f"endpoint_url={self.endpoint_url!r})"
        )

    @classmethod
    def from_env(cls) -> S3Settings:
        """Load S3 settings from the environment.

        Raises:
            ObjectStoreConfigError: If the bucket is missing, a numeric value is
                invalid, or only one half of the credential pair is set.
        """
        bucket = os.environ.get(CLOUDBLOB_S3_BUCKET_ENV, "").strip()
        if not bucket:
            raise ObjectStoreConfigError(
                f"S3 bucket not configured. Set {CLOUDBLOB_S3_BUCKET_ENV} environment variable."
            )

        access_key_id = os.environ.get(CLOUDBLOB_S3_ACCESS_KEY_ID_ENV) or None
        secret_access_key = os.environ.get(CLOUDBLOB_S3_SECRET_ACCESS_KEY_ENV) or None
        if (access_key_id is None) != (secret_access_key is None):
            raise ObjectStoreConfigError(
                f"Set both {CLOUDBLOB_S3_ACCESS_KEY_ID_ENV} and "
                f"{CLOUDBLOB_S3_SECRET_ACCESS_KEY_ENV}, or neither."
            )

        max_attempts = int(_env_float(CLOUDBLOB_S3_MAX_ATTEMPTS_ENV, DEFAULT_MAX_ATTEMPTS))

        return cls(
            bucket=bucket,
            region=os.environ.get(CLOUDBLOB_S3_REGION_ENV, "").strip() or DEFAULT_REGION,
            endpoint_url=os.environ.get(CLOUDBLOB_S3_ENDPOINT_URL_ENV, "").strip() or None,
            access_key_id=access_key_id,
            secret_access_key=secret_access_key,
            connect_timeout=_env_float(
                CLOUDBLOB_S3_CONNECT_TIMEOUT_ENV, DEFAULT_CONNECT_TIMEOUT_SECONDS
            ),
            read_timeout=_env_float(CLOUDBLOB_S3_READ_TIMEOUT_ENV, DEFAULT_READ_TIMEOUT_SECONDS),
            max_attempts=max_attempts,
        )


def create_s3_client(settings: S3Settings) -> Any:
    """Create a boto3 S3 client with bounded timeouts and retries."""
    session = boto3.session.Session(
        aws_access_key_id=settings.access_key_id,
        aws_secret_access_key=settings.secret_access_key,
        region_name=settings.region,
    )
    config = Config(
        connect_timeout=settings.connect_timeout,
        read_timeout=settings.read_timeout,
        retries={"max_attempts": settings.max_attempts, "mode": "standard"},
    )
    return session.client("s3", endpoint_url=settings.endpoint_url, config=config)


class _CountingReader:
    """File-like wrapper counting bytes handed to the transfer manager."""

    def __init__(self, inner: BinaryIO) -> None:
        self._inner = inner
        self.count = 0

    def read(self, size: int = -1) -> bytes:
        chunk = self._inner.read(size)
        self.count += len(chunk)
        return chunk


def _is_not_found(error: ClientError) -> bool:
    code = str(error.response.get("Error", {}).get("Code", ""))
    return code in _NOT_FOUND_CODES


class S3ObjectStore(ObjectStore):
    """S3-backed object storage implementation.

    Args:
        bucket: Bucket holding every blob object.
        client: boto3 S3 client. Tests pass a stubbed client.
        transfer_config: Managed-transfer settings for stream uploads.
    """

    def __init__(
        self,
        bucket: str,
        client: Any,
        *,
        transfer_config: TransferConfig | None = None,
    ) -> None:
        if not bucket:
            raise ObjectStoreConfigError("S3 bucket name must not be empty")
        self._bucket = bucket
        self._client = client
        self._transfer_config = transfer_config or TransferConfig()

    @classmethod
    def from_settings(cls, settings: S3Settings) -> S3ObjectStore:
        """Create a store and its client from settings."""
        logger.info(
            "Initializing S3 object store: bucket=%s region=%s endpoint=%s",
            settings.bucket,
            settings.region,
            settings.endpoint_url or "default",
        )
        return cls(settings.bucket, create_s3_client(settings))

    @classmethod
    def from_env(cls) -> S3ObjectStore:
        """Create a store from CLOUDBLOB_S3_* environment variables."""
        return cls.from_settings(S3Settings.from_env())

    @property
    def backend_name(self) -> str:
        """Return the backend identifier."""
        return "s3"

    @property
    def bucket(self) -> str:
        """Return the bucket name."""
        return self._bucket

    def _backend_error(self, action: str, key: str, error: Exception) -> StorageBackendError:
        logger.warning("S3 %s failed: key=%s error=%s", action, key, error)
        return StorageBackendError(
            message=f"S3 {action} failed: {error}",
            key=key,
            cause=error,
        )

    @traced_storage_operation("put")
    def put(self, key: str, data: ObjectData) -> StoredObjectMetadata:
        """Store an object."""
        validate_key(key)
        try:
            if isinstance(data, bytes | bytearray | memoryview):
                body = bytes(data)
                self._client.put_object(Bucket=self._bucket, Key=key, Body=body)
                size = len(body)
            else:
                reader = _CountingReader(data)
                self._client.upload_fileobj(
                    reader, self._bucket, key, Config=self._transfer_config
                )
                size = reader.count
        except (ClientError, BotoCoreError) as e:
            raise self._backend_error("put", key, e) from e

        logger.debug("Stored object in S3: bucket=%s key=%s size=%d", self._bucket, key, size)
        return StoredObjectMetadata(key=key, size_bytes=size)

    @traced_storage_operation("get")
    def get(self, key: str) -> StoredObject:
        """Retrieve an object."""
        validate_key(key)
        try:
            response = self._client.get_object(Bucket=self._bucket, Key=key)
            body = response["Body"].read()
        except ClientError as e:
            if _is_not_found(e):
                raise ObjectNotFoundError(key=key) from e
            raise self._backend_error("get", key, e) from e
        except BotoCoreError as e:
            raise self._backend_error("get", key, e) from e

        metadata = StoredObjectMetadata(
            key=key,
            size_bytes=int(response.get("ContentLength", len(body))),
            last_modified=response.get("LastModified"),
        )
        return StoredObject(metadata=metadata, body=body)

    @traced_storage_operation("open_stream")
    def open_stream(self, key: str) -> BinaryIO:
        """Return the GetObject streaming body without reading it."""
        validate_key(key)
        try:
            response = self._client.get_object(Bucket=self._bucket, Key=key)
        except ClientError as e:
            if _is_not_found(e):
                raise ObjectNotFoundError(key=key) from e
            raise self._backend_error("get", key, e) from e
        except BotoCoreError as e:
            raise self._backend_error("get", key, e) from e

        return response["Body"]

    @traced_storage_operation("head")
    def head(self, key: str) -> StoredObjectMetadata:
        """Get object metadata without retrieving content."""
        validate_key(key)
        try:
            response = self._client.head_object(Bucket=self._bucket, Key=key)
        except ClientError as e:
            if _is_not_found(e):
                raise ObjectNotFoundError(key=key) from e
            raise self._backend_error("head", key, e) from e
        except BotoCoreError as e:
            raise self._backend_error("head", key, e) from e

        return StoredObjectMetadata(
            key=key,
            size_bytes=int(response.get("ContentLength", 0)),
            last_modified=response.get("LastModified"),
        )

    @traced_storage_operation("delete")
    def delete(self, key: str) -> None:
        """Delete an object.

        S3 DeleteObject succeeds for missing keys, so existence is checked
        first to keep the not-found contract of the other backends.
        """
        self.head(key)
        try:
            self._client.delete_object(Bucket=self._bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise self._backend_error("delete", key, e) from e

        logger.debug("Deleted object from S3: bucket=%s key=%s", self._bucket, key)
