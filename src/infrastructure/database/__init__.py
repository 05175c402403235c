# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Local replica database infrastructure.

This package provides the SQLite-backed local replica used while offline:
courses with embedded lessons, student progress, profiles, the mutation
queue and offline video blobs.

Example:
    from src.infrastructure.database import LocalReplicaStore

    store = LocalReplicaStore.from_settings(settings.local_store)
    await store.open()
    async with store.transaction() as tx:
        courses = await tx.list_courses(for_class=5)
"""

from src.infrastructure.database.store import (
    SCHEMA_VERSION,
    LocalReplicaStore,
    LocalStorageError,
    ReplicaSession,
    SchemaVersionError,
)

__all__ = [
    "SCHEMA_VERSION",
    "LocalReplicaStore",
    "LocalStorageError",
    "ReplicaSession",
    "SchemaVersionError",
]
