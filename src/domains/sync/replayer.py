# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Uplink replay: push queued local mutations to the remote.

Queued items are replayed one at a time, oldest first. An item is deleted
only after the remote confirmed it. A failed item stays queued with its
attempt count and last error, and replay continues with the next item.
Remote writes are upserts and deletes by id, so replaying an item that was
already applied is harmless.

When ``max_attempts`` is configured, an item failing that many times is
dead-lettered: replay skips it until it is requeued or discarded through
SyncQueueService.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from pydantic import ValidationError

from src.core.config.settings import SyncSettings
from src.infrastructure.database.store import LocalReplicaStore
from src.infrastructure.events import EventBus, EventTypes
from src.infrastructure.remote.client import RemoteClient, RemoteError
from src.models.progress import StudentProgress
from src.models.sync import (
    DeleteCourseMutation,
    DeleteLessonMutation,
    QueueEntry,
    SaveCourseMutation,
    SaveLessonMutation,
    SyncMutation,
    UpdateProgressMutation,
)
from src.utils.datetime import utc_now

logger = logging.getLogger(__name__)


@dataclass
class UplinkFailure:
    """A queue item that failed during one replay."""

    entry_id: int
    mutation_type: str
    error: str
    attempts: int
    dead_lettered: bool


@dataclass
class UplinkResult:
    """Result of one queue replay.

    Attributes:
        succeeded: Items confirmed by the remote and removed.
        failures: Items that failed and stay queued.
        skipped: Dead-lettered items not attempted.
        started_at: When the replay started.
        completed_at: When the replay completed.
    """

    succeeded: int = 0
    failures: list[UplinkFailure] = field(default_factory=list)
    skipped: int = 0
    started_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def failed(self) -> int:
        return len(self.failures)

    @property
    def processed(self) -> int:
        return self.succeeded + self.failed

    @property
    def success(self) -> bool:
        return not self.failures

    @property
    def duration_seconds(self) -> float | None:
        """Get replay duration in seconds."""
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "processed": self.processed,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "skipped": self.skipped,
            "duration_seconds": self.duration_seconds,
        }


class UplinkReplayer:
    """Replays the local mutation queue against the remote.

    Attributes:
        store: Local replica store owning the queue.
        remote: Remote client.
    """

    def __init__(
        self,
        store: LocalReplicaStore,
        remote: RemoteClient,
        settings: SyncSettings | None = None,
        event_bus: EventBus | None = None,
    ) -> None:
        self.store = store
        self.remote = remote
        self._settings = settings or SyncSettings()
        self._event_bus = event_bus

    async def _publish(self, event_type: str, payload: dict[str, Any]) -> None:
        if self._event_bus is not None:
            await self._event_bus.publish(event_type, payload)

    async def process_sync_queue(self) -> UplinkResult:
        """Replay every queued mutation once.

        Returns:
            Per-run counts and the failed items.

        Raises:
            LocalStorageError: If the queue cannot be read or updated.
        """
        result = UplinkResult(started_at=utc_now())

        async with self.store.transaction() as tx:
            entries = await tx.list_queue(include_dead_lettered=True)

        if entries:
            logger.info("Replaying %d queued mutations", len(entries))

        for entry in entries:
            if entry.dead_lettered:
                result.skipped += 1
                continue

            try:
                await self._apply(entry.decode())
            except (RemoteError, ValidationError) as e:
                result.failures.append(await self._record_failure(entry, e))
                continue

            async with self.store.transaction() as tx:
                await tx.delete_queue_entry(entry.id)
            result.succeeded += 1
            logger.debug("Replayed %s (entry %d)", entry.mutation_type, entry.id)

        result.completed_at = utc_now()
        if entries:
            logger.info(
                "Queue replay completed: %d succeeded, %d failed, %d skipped",
                result.succeeded,
                result.failed,
                result.skipped,
            )
        await self._publish(EventTypes.Sync.UPLINK_COMPLETED, result.to_dict())
        return result

    async def _record_failure(self, entry: QueueEntry, error: Exception) -> UplinkFailure:
        if isinstance(error, RemoteError):
            logger.error(
                "Failed to replay %s (entry %d): %s (details: %s, hint: %s)",
                entry.mutation_type,
                entry.id,
                error.message,
                error.details,
                error.hint,
            )
        else:
            logger.error(
                "Queued %s (entry %d) has an invalid payload: %s",
                entry.mutation_type,
                entry.id,
                error,
            )

        async with self.store.transaction() as tx:
            updated = await tx.record_queue_failure(
                entry.id,
                str(error),
                max_attempts=self._settings.max_attempts,
            )

        failure = UplinkFailure(
            entry_id=entry.id,
            mutation_type=entry.mutation_type,
            error=str(error),
            attempts=updated.attempts if updated else entry.attempts + 1,
            dead_lettered=updated.dead_lettered if updated else False,
        )
        if failure.dead_lettered:
            logger.warning(
                "Dead-lettered %s (entry %d) after %d attempts",
                entry.mutation_type,
                entry.id,
                failure.attempts,
            )
        await self._publish(
            EventTypes.Sync.QUEUE_ITEM_FAILED,
            {
                "entry_id": failure.entry_id,
                "mutation_type": failure.mutation_type,
                "attempts": failure.attempts,
                "error": failure.error,
                "dead_lettered": failure.dead_lettered,
            },
        )
        return failure

    async def _apply(self, mutation: SyncMutation) -> None:
        if isinstance(mutation, UpdateProgressMutation):
            await self.remote.upsert_progress(mutation.payload)
        elif isinstance(mutation, SaveCourseMutation):
            await self.remote.upsert_course(mutation.payload)
        elif isinstance(mutation, DeleteCourseMutation):
            await self._delete_course(mutation.payload.id)
        elif isinstance(mutation, SaveLessonMutation):
            await self.remote.upsert_lesson(mutation.payload, mutation.payload.course_id)
        elif isinstance(mutation, DeleteLessonMutation):
            await self.remote.delete_lesson(mutation.payload.id)
        else:
            raise TypeError(f"Unsupported mutation: {type(mutation).__name__}")

    async def _delete_course(self, course_id: str) -> None:
        """Delete a remote course along with everything referencing it."""
        if not self._settings.cascade_course_delete:
            await self.remote.delete_course(course_id)
            return

        await self.remote.delete_lessons_of_course(course_id)
        await self.remote.delete_course(course_id)

        stripped: list[StudentProgress] = []
        for progress in await self.remote.fetch_progress():
            if progress.find_course(course_id) is None:
                continue
            stripped.append(
                progress.model_copy(
                    update={
                        "course_progress": [
                            entry
                            for entry in progress.course_progress
                            if entry.course_id != course_id
                        ]
                    }
                )
            )
        if stripped:
            await self.remote.upsert_progress(stripped)
            logger.info(
                "Removed course %s from %d remote progress documents",
                course_id,
                len(stripped),
            )
