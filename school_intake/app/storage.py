"""Persistence backends for accepted school submissions.

Every backend exposes the same narrow interface: :meth:`SubmissionStore.transaction`
yields a :class:`StoreTransaction` holding the current records.  Anything
appended inside the ``with`` block is persisted when the block exits cleanly;
an exception inside the block discards the changes.
"""

from __future__ import annotations

import json
import logging
import os
import time
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, ContextManager, Dict, Iterator, List, Optional

from filelock import FileLock, Timeout
from pydantic import ValidationError

from .models import SchoolSubmission
from .schemas import SchoolStoreDocument

logger = logging.getLogger(__name__)


class StoreBusyError(RuntimeError):
    """Raised when the store lock could not be acquired in time."""


class StoreTransaction:
    """In-memory view of the store while a transaction is open."""

    def __init__(self, schools: Optional[List[Dict[str, Any]]] = None) -> None:
        self.schools: List[Dict[str, Any]] = list(schools or [])
        self.added: List[SchoolSubmission] = []

    def has_url(self, url: str) -> bool:
        """Return ``True`` when a stored record uses ``url``, ignoring case."""

        needle = url.strip().lower()
        for record in self.schools:
            stored = record.get("schoolUrl")
            if isinstance(stored, str) and stored.strip().lower() == needle:
                return True
        return False

    def append(self, submission: SchoolSubmission) -> None:
        self.schools.append(submission.to_record())
        self.added.append(submission)

    @property
    def dirty(self) -> bool:
        return bool(self.added)

    def document(self) -> SchoolStoreDocument:
        return SchoolStoreDocument(schools=self.schools)


class SubmissionStore(ABC):
    """Storage interface used by the intake pipeline."""

    @abstractmethod
    def transaction(self) -> ContextManager[StoreTransaction]:
        """Context manager giving exclusive access to the stored records."""


class JsonFileStore(SubmissionStore):
    """Keep submissions in a single JSON document guarded by a lock file.

    The lock lives next to the data file (``schools.json.lock``) so every
    process and thread that goes through this class is serialized.  Writes go
    to ``schools.json.tmp`` first and are renamed over the data file, so a
    reader never sees a half written document.
    """

    def __init__(
        self,
        path: Path,
        *,
        retries: int = 5,
        factor: float = 2.0,
        min_timeout: float = 0.1,
        max_timeout: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.path = Path(path)
        self.lock_path = self.path.with_name(self.path.name + ".lock")
        self.temp_path = self.path.with_name(self.path.name + ".tmp")
        self.retries = retries
        self.factor = factor
        self.min_timeout = min_timeout
        self.max_timeout = max_timeout
        self._sleep = sleep

    def backoff_delays(self) -> List[float]:
        """Return the waits between lock attempts."""

        return [
            min(self.min_timeout * (self.factor ** attempt), self.max_timeout)
            for attempt in range(self.retries)
        ]

    @contextmanager
    def transaction(self) -> Iterator[StoreTransaction]:
        lock = self._acquire_lock()
        try:
            transaction = StoreTransaction(self.load().schools)
            yield transaction
            if transaction.dirty:
                self._write(transaction.document())
        finally:
            lock.release()

    def load(self) -> SchoolStoreDocument:
        """Read the store, falling back to an empty document.

        A missing file is a fresh store.  A file that cannot be read or parsed
        is logged and replaced on the next write instead of failing the
        request.
        """

        if not self.path.exists():
            return SchoolStoreDocument()

        try:
            raw = self.path.read_text(encoding="utf-8")
            return SchoolStoreDocument.model_validate(json.loads(raw))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError, ValidationError) as exc:
            logger.error("Error reading %s, starting from an empty store: %s", self.path, exc)
            return SchoolStoreDocument()

    def _acquire_lock(self) -> FileLock:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        lock = FileLock(str(self.lock_path))
        delays = self.backoff_delays()

        for attempt in range(len(delays) + 1):
            try:
                lock.acquire(timeout=0)
                return lock
            except Timeout:
                if attempt == len(delays):
                    break
                self._sleep(delays[attempt])

        logger.warning(
            "Could not lock %s after %s attempts", self.lock_path, len(delays) + 1
        )
        raise StoreBusyError(f"Timed out waiting for lock on {self.path}")

    def _write(self, document: SchoolStoreDocument) -> None:
        payload = json.dumps(document.model_dump(), indent=2, ensure_ascii=False)
        with open(self.temp_path, "w", encoding="utf-8") as handle:
            handle.write(payload)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(self.temp_path, self.path)


class LogOnlyStore(SubmissionStore):
    """Store for deployments without a writable disk.

    Accepted submissions are written to the log and then forgotten, so the
    duplicate check never finds an earlier record.
    """

    @contextmanager
    def transaction(self) -> Iterator[StoreTransaction]:
        transaction = StoreTransaction()
        yield transaction
        for submission in transaction.added:
            logger.info("New school submission: %s", json.dumps(submission.to_record()))


__all__ = [
    "JsonFileStore",
    "LogOnlyStore",
    "StoreBusyError",
    "StoreTransaction",
    "SubmissionStore",
]
