# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Inspection and manual handling of the mutation queue."""

import logging

from src.infrastructure.database.store import LocalReplicaStore
from src.models.sync import QueueEntry

logger = logging.getLogger(__name__)


class SyncQueueService:
    """Read access to the queue plus requeue and discard of stuck items.

    Attributes:
        store: Local replica store owning the queue.
    """

    def __init__(self, store: LocalReplicaStore) -> None:
        self.store = store

    async def pending_count(self) -> int:
        """Number of items waiting for replay (dead letters excluded)."""
        async with self.store.transaction() as tx:
            return await tx.count_queue()

    async def list_pending(self) -> list[QueueEntry]:
        async with self.store.transaction() as tx:
            return await tx.list_queue()

    async def list_dead_letters(self) -> list[QueueEntry]:
        async with self.store.transaction() as tx:
            return await tx.list_queue(dead_lettered_only=True)

    async def requeue(self, entry_ids: list[int] | None = None) -> int:
        """Return dead-lettered items to replay with a fresh attempt count.

        Args:
            entry_ids: Items to requeue; every dead letter if None.

        Returns:
            Number of items requeued.
        """
        async with self.store.transaction() as tx:
            count = await tx.requeue(entry_ids)
        logger.info("Requeued %d dead-lettered mutations", count)
        return count

    async def discard(self, entry_id: int) -> bool:
        """Drop a queued item without replaying it.

        Returns:
            True if the item existed.
        """
        async with self.store.transaction() as tx:
            removed = await tx.delete_queue_entry(entry_id)
        if removed:
            logger.warning("Discarded queued mutation %d", entry_id)
        return removed
