"""Blob storage provider.

Ties the object store and the Blobs ledger together behind the host-facing
BlobStorage interface, and runs the reference-driven cleanup sweep.
"""

from cloudblob.blobs.cleanup import BlobCleanupSweep, CleanupPolicy, SweepReport
from cloudblob.blobs.content_model import (
    ContentModel,
    ContentModelError,
    JsonContentModel,
    StaticContentModel,
    Template,
    TemplateField,
)
from cloudblob.blobs.errors import (
    BlobNotFoundError,
    BlobStoreUnavailableError,
    CleanupFailedError,
)
from cloudblob.blobs.interface import BlobStorage
from cloudblob.blobs.locks import BlobLockSet
from cloudblob.blobs.provider import (
    BlobWriteResult,
    CloudBlobStorageProvider,
    create_provider_from_env,
)
from cloudblob.blobs.retry import RetryPolicy, run_with_retry
from cloudblob.blobs.scanner import ReferenceScanner, ScanResult

__all__ = [
    "BlobCleanupSweep",
    "BlobLockSet",
    "BlobNotFoundError",
    "BlobStorage",
    "BlobStoreUnavailableError",
    "BlobWriteResult",
    "CleanupFailedError",
    "CleanupPolicy",
    "CloudBlobStorageProvider",
    "ContentModel",
    "ContentModelError",
    "JsonContentModel",
    "ReferenceScanner",
    "RetryPolicy",
    "ScanResult",
    "StaticContentModel",
    "SweepReport",
    "Template",
    "TemplateField",
    "create_provider_from_env",
    "run_with_retry",
]
