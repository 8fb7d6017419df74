"""Per-blob mutual exclusion within one process.

Each blob id maps to its own lock, created lazily and never removed. Writers
of different blobs never contend; writers of the same blob are serialized.
There is no coordination across processes.
"""

from __future__ import annotations

import logging
import threading
import uuid
from collections.abc import Generator
from contextlib import contextmanager

from cloudblob.storage.errors import BlobLockTimeoutError

logger = logging.getLogger(__name__)


class BlobLockSet:
    """Map from blob identifier to a mutual-exclusion lock.

    Owned by a provider instance; pass it explicitly to whatever else needs
    to coordinate with that provider's writers (e.g. the cleanup sweep).
    """

    def __init__(self) -> None:
        self._locks: dict[uuid.UUID, threading.Lock] = {}
        self._guard = threading.Lock()

    def _lock_for(self, blob_id: uuid.UUID) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(blob_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[blob_id] = lock
            return lock

    @contextmanager
    def hold(self, blob_id: uuid.UUID, timeout: float | None = None) -> Generator[None, None, None]:
        """Hold the lock for ``blob_id`` for the duration of the block.

        The lock is released on every exit path, including exceptions.

        Args:
            blob_id: Blob identifier to lock.
            timeout: Maximum seconds to wait. None waits indefinitely.

        Raises:
            BlobLockTimeoutError: If the lock was not acquired within ``timeout``.
        """
        lock = self._lock_for(blob_id)
        acquired = lock.acquire(timeout=-1 if timeout is None else timeout)
        if not acquired:
            logger.warning("Timed out after %ss waiting for blob lock: %s", timeout, blob_id)
            raise BlobLockTimeoutError(key=str(blob_id), timeout=timeout)
        try:
            yield
        finally:
            lock.release()

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
