"""Firestore Client - Imperative Shell.

This module implements the DocumentStore interface on Google Cloud
Firestore: single-document reads, live ``on_snapshot`` listeners that
deliver the full matching set, and transactional multi-document commits
with compare-and-swap preconditions.

All I/O is contained here; state transition logic is in the core module.
"""

import logging
from dataclasses import dataclass
from typing import Any

from google.api_core import exceptions as gcp_exceptions
from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter

from reliefengine.shell.store import (
    ConflictError,
    DocumentStore,
    NotFoundError,
    SnapshotCallback,
    Unsubscribe,
    WriteOp,
)


logger = logging.getLogger(__name__)


# Transport errors that mean "someone else won the race"
CONFLICT_ERRORS = (
    gcp_exceptions.Aborted,
    gcp_exceptions.Conflict,
    gcp_exceptions.FailedPrecondition,
)


@dataclass
class FirestoreConfig:
    """Configuration for Firestore client.

    Attributes:
        project_id: GCP project ID (None for default)
        database: Firestore database name (None for default database)
    """
    project_id: str | None = None
    database: str | None = None


class FirestoreClient(DocumentStore):
    """DocumentStore backed by Cloud Firestore.

    This is part of the imperative shell - it handles database I/O.
    Every committed write also stamps ``updatedAt`` with the server time.
    """

    def __init__(self, config: FirestoreConfig | None = None) -> None:
        """Initialize Firestore client.

        Args:
            config: Firestore configuration
        """
        self.config = config or FirestoreConfig()
        self._client: firestore.Client | None = None

    @property
    def client(self) -> firestore.Client:
        """Lazy initialization of Firestore client."""
        if self._client is None:
            kwargs = {}
            if self.config.project_id:
                kwargs['project'] = self.config.project_id
            if self.config.database:
                kwargs['database'] = self.config.database
            self._client = firestore.Client(**kwargs)
        return self._client

    def get(self, collection: str, doc_id: str) -> dict[str, Any]:
        """Fetch one document.

        This method performs database I/O.

        Raises:
            NotFoundError: If the document does not exist
            ConflictError: If the read was aborted by contention
        """
        try:
            doc = self.client.collection(collection).document(doc_id).get()
        except gcp_exceptions.NotFound as e:
            raise NotFoundError(collection, doc_id) from e
        except CONFLICT_ERRORS as e:
            raise ConflictError(str(e)) from e

        if not doc.exists:
            raise NotFoundError(collection, doc_id)

        return doc.to_dict() or {}

    def subscribe(
        self,
        collection: str,
        filters: dict[str, Any] | None,
        callback: SnapshotCallback,
    ) -> Unsubscribe:
        """Attach a live listener to a collection query.

        Firestore invokes the listener on its own thread with every
        matching document after each change. The snapshot read time is
        passed on as the read stamp.

        Returns:
            Function that detaches the listener
        """
        query = self.client.collection(collection)
        for key, value in (filters or {}).items():
            query = query.where(filter=FieldFilter(key, "==", value))

        def on_snapshot(docs: list[Any], changes: list[Any], read_time: Any) -> None:
            logger.debug(
                "Snapshot for %s: %d documents (%d changes)",
                collection,
                len(docs),
                len(changes),
            )
            callback([(doc.id, doc.to_dict() or {}) for doc in docs], read_time)

        logger.info("Subscribing to %s with filters %s", collection, filters or {})
        watch = query.on_snapshot(on_snapshot)
        return watch.unsubscribe

    def commit(self, ops: list[WriteOp]) -> None:
        """Apply all writes in one Firestore transaction.

        Every document is read inside the transaction and its ``expected``
        fields are checked before anything is written.

        Raises:
            ConflictError: If a precondition fails or the transaction aborts
            NotFoundError: If a written document does not exist
        """
        if not ops:
            return

        refs = [
            self.client.collection(op.collection).document(op.doc_id)
            for op in ops
        ]

        @firestore.transactional
        def apply_ops(transaction: firestore.Transaction) -> None:
            snapshots = [ref.get(transaction=transaction) for ref in refs]

            for op, snapshot in zip(ops, snapshots):
                if not snapshot.exists:
                    raise NotFoundError(op.collection, op.doc_id)
                current = snapshot.to_dict() or {}
                for key, value in op.expected.items():
                    if current.get(key) != value:
                        raise ConflictError(
                            f"{op.collection}/{op.doc_id}: {key} is "
                            f"{current.get(key)!r}, expected {value!r}"
                        )

            for op, ref in zip(ops, refs):
                transaction.update(ref, {
                    **op.data,
                    "updatedAt": firestore.SERVER_TIMESTAMP,
                })

        logger.info("Committing %d writes to Firestore", len(ops))

        try:
            apply_ops(self.client.transaction())
        except gcp_exceptions.NotFound as e:
            raise NotFoundError(ops[0].collection, ops[0].doc_id) from e
        except CONFLICT_ERRORS as e:
            raise ConflictError(str(e)) from e

        logger.info("Committed %d writes", len(ops))
