"""Document store interface - Imperative Shell.

The engine reads and writes the store of record through three calls:
``get`` a document, ``subscribe`` to the full matching set of a
collection, and ``commit`` an atomic batch of writes. Writes may carry
compare-and-swap preconditions so that two racing updates cannot both
win.

This module defines that interface, the exceptions adapters raise, and
an in-memory implementation used for local runs and tests.
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable


logger = logging.getLogger(__name__)


# Callback receiving the full current set as (doc_id, data) pairs and a
# comparable stamp of when that set was read
SnapshotCallback = Callable[[list[tuple[str, dict[str, Any]]], Any], None]

Unsubscribe = Callable[[], None]


class StoreError(Exception):
    """Base class for store adapter errors."""


class NotFoundError(StoreError):
    """A referenced document does not exist."""

    def __init__(self, collection: str, doc_id: str) -> None:
        super().__init__(f"{collection}/{doc_id} not found")
        self.collection = collection
        self.doc_id = doc_id


class ConflictError(StoreError):
    """A transactional commit lost a race and wrote nothing."""


@dataclass(frozen=True)
class WriteOp:
    """A single document update within a transaction.

    Attributes:
        collection: Collection name
        doc_id: Document ID
        data: Fields to merge into the document
        expected: Field values the document must still hold at commit
            time; any mismatch aborts the whole transaction
    """
    collection: str
    doc_id: str
    data: dict[str, Any]
    expected: dict[str, Any] = field(default_factory=dict)


def matches_filters(data: dict[str, Any], filters: dict[str, Any] | None) -> bool:
    """Check a document against equality filters."""
    if not filters:
        return True
    return all(data.get(key) == value for key, value in filters.items())


class DocumentStore:
    """Interface of the external store of record."""

    def get(self, collection: str, doc_id: str) -> dict[str, Any]:
        """Fetch one document.

        Raises:
            NotFoundError: If the document does not exist
        """
        raise NotImplementedError

    def subscribe(
        self,
        collection: str,
        filters: dict[str, Any] | None,
        callback: SnapshotCallback,
    ) -> Unsubscribe:
        """Listen to the full matching set of a collection.

        The callback receives every matching document on each change,
        with a read stamp that orders the deliveries.

        Returns:
            Function that stops the subscription
        """
        raise NotImplementedError

    def commit(self, ops: list[WriteOp]) -> None:
        """Apply all writes atomically.

        Raises:
            ConflictError: If any precondition no longer holds
            NotFoundError: If a written document does not exist
        """
        raise NotImplementedError


@dataclass
class _Listener:
    collection: str
    filters: dict[str, Any] | None
    callback: SnapshotCallback


class InMemoryStore(DocumentStore):
    """Process-local DocumentStore.

    Commits are serialized by a lock, which gives the same
    at-most-one-winner behaviour as a transactional backend. Every write
    bumps a revision counter; a snapshot and its revision are read under
    the same lock and the revision is delivered as the read stamp.
    """

    def __init__(self) -> None:
        self._docs: dict[str, dict[str, dict[str, Any]]] = {}
        self._listeners: list[_Listener] = []
        self._lock = threading.RLock()
        self._revision = 0

    def put(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        """Create or replace a document (seeding, tests)."""
        with self._lock:
            self._docs.setdefault(collection, {})[doc_id] = dict(data)
            self._revision += 1
        self._notify({collection})

    def get(self, collection: str, doc_id: str) -> dict[str, Any]:
        with self._lock:
            doc = self._docs.get(collection, {}).get(doc_id)
            if doc is None:
                raise NotFoundError(collection, doc_id)
            return dict(doc)

    def _read_set(
        self,
        collection: str,
        filters: dict[str, Any] | None,
    ) -> tuple[list[tuple[str, dict[str, Any]]], int]:
        with self._lock:
            docs = [
                (doc_id, dict(data))
                for doc_id, data in self._docs.get(collection, {}).items()
                if matches_filters(data, filters)
            ]
            return docs, self._revision

    def subscribe(
        self,
        collection: str,
        filters: dict[str, Any] | None,
        callback: SnapshotCallback,
    ) -> Unsubscribe:
        listener = _Listener(collection, filters, callback)
        with self._lock:
            self._listeners.append(listener)
            docs, revision = self._read_set(collection, filters)

        # Listeners get the current set immediately, like a live query
        callback(docs, revision)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def commit(self, ops: list[WriteOp]) -> None:
        if not ops:
            return

        with self._lock:
            for op in ops:
                current = self._docs.get(op.collection, {}).get(op.doc_id)
                if current is None:
                    raise NotFoundError(op.collection, op.doc_id)
                for key, value in op.expected.items():
                    if current.get(key) != value:
                        raise ConflictError(
                            f"{op.collection}/{op.doc_id}: {key} is "
                            f"{current.get(key)!r}, expected {value!r}"
                        )

            now = datetime.now(timezone.utc)
            for op in ops:
                self._docs[op.collection][op.doc_id].update(op.data, updatedAt=now)
            self._revision += 1

        logger.debug("Committed %d writes", len(ops))
        self._notify({op.collection for op in ops})

    def _notify(self, collections: set[str]) -> None:
        with self._lock:
            deliveries = [
                (listener.callback, *self._read_set(listener.collection, listener.filters))
                for listener in self._listeners
                if listener.collection in collections
            ]
        # Callbacks run outside the lock; the revision lets them drop a
        # delivery that arrives after a newer one
        for callback, docs, revision in deliveries:
            callback(docs, revision)
