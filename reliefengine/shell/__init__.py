"""Imperative Shell - I/O and side effects.

This module contains all code that interacts with external systems:
- Document store interface and in-memory store
- Firestore client (database)
- Configuration loading (environment/files)

Keep this layer thin and simple. All decision logic should be in core.
"""

from reliefengine.shell.store import (
    ConflictError,
    DocumentStore,
    InMemoryStore,
    NotFoundError,
    WriteOp,
)
from reliefengine.shell.firestore_client import FirestoreClient, FirestoreConfig
from reliefengine.shell.config_loader import load_config, EngineConfig

__all__ = [
    "ConflictError",
    "DocumentStore",
    "InMemoryStore",
    "NotFoundError",
    "WriteOp",
    "FirestoreClient",
    "FirestoreConfig",
    "load_config",
    "EngineConfig",
]
