# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Downlink reconciliation: refresh the local replica from the remote.

Each run fetches full snapshots of all four remote tables concurrently,
regroups lessons under their courses and replaces the replica contents in
one local transaction:

1. Fetch courses, lessons, student_progress and profiles.
2. Regroup lessons by course_id. Fetched lessons never carry an offline
   video flag.
3. Drop course progress entries that reference unknown courses.
4. Delete local rows whose ids are absent remotely, except courses whose
   creation is still queued for upload.
5. Upsert every fetched document.

Any fetch error aborts the run before the replica is touched.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from src.infrastructure.database.store import LocalReplicaStore
from src.infrastructure.events import EventBus, EventTypes
from src.infrastructure.remote import wire
from src.infrastructure.remote.client import RemoteClient, RemoteError
from src.utils.datetime import utc_now

logger = logging.getLogger(__name__)


@dataclass
class DownlinkResult:
    """Result of a downlink reconciliation.

    Attributes:
        courses_synced: Courses written from the remote snapshot.
        lessons_synced: Lessons embedded in those courses.
        progress_synced: Progress documents written.
        profiles_synced: Profiles written.
        courses_deleted: Stale local courses removed.
        progress_deleted: Stale local progress documents removed.
        profiles_deleted: Stale local profiles removed.
        pending_courses_kept: Local-only courses kept because their
            creation is still queued.
        started_at: When the run started.
        completed_at: When the run completed.
    """

    courses_synced: int = 0
    lessons_synced: int = 0
    progress_synced: int = 0
    profiles_synced: int = 0
    courses_deleted: int = 0
    progress_deleted: int = 0
    profiles_deleted: int = 0
    pending_courses_kept: int = 0
    started_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def duration_seconds(self) -> float | None:
        """Get run duration in seconds."""
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "courses_synced": self.courses_synced,
            "lessons_synced": self.lessons_synced,
            "progress_synced": self.progress_synced,
            "profiles_synced": self.profiles_synced,
            "courses_deleted": self.courses_deleted,
            "progress_deleted": self.progress_deleted,
            "profiles_deleted": self.profiles_deleted,
            "pending_courses_kept": self.pending_courses_kept,
            "duration_seconds": self.duration_seconds,
        }


class DownlinkSyncError(Exception):
    """Raised when a downlink reconciliation is aborted.

    Attributes:
        message: Error description.
        original_error: The remote error that aborted the run.
    """

    def __init__(self, message: str, original_error: Optional[Exception] = None) -> None:
        super().__init__(message)
        self.message = message
        self.original_error = original_error

    def __str__(self) -> str:
        if self.original_error:
            return f"{self.message}: {self.original_error}"
        return self.message


class DownlinkReconciler:
    """Replaces the local replica with the remote snapshot.

    Attributes:
        store: Local replica store.
        remote: Remote client.
    """

    def __init__(
        self,
        store: LocalReplicaStore,
        remote: RemoteClient,
        event_bus: EventBus | None = None,
    ) -> None:
        self.store = store
        self.remote = remote
        self._event_bus = event_bus

    async def _publish(self, event_type: str, payload: dict[str, Any]) -> None:
        if self._event_bus is not None:
            await self._event_bus.publish(event_type, payload)

    async def sync_down(self) -> DownlinkResult:
        """Run one downlink reconciliation.

        Returns:
            Counts of written and deleted documents.

        Raises:
            DownlinkSyncError: If any remote fetch fails. The replica is
                left untouched.
            LocalStorageError: If the local transaction fails.
        """
        result = DownlinkResult(started_at=utc_now())
        logger.info("Starting downlink sync")

        fetched = await asyncio.gather(
            self.remote.fetch_courses(),
            self.remote.fetch_lessons(),
            self.remote.fetch_progress(),
            self.remote.fetch_profiles(),
            return_exceptions=True,
        )
        errors = [item for item in fetched if isinstance(item, BaseException)]
        if errors:
            error = errors[0]
            if not isinstance(error, RemoteError):
                raise error
            logger.error("Downlink sync aborted: %s", error)
            await self._publish(EventTypes.Sync.DOWNLINK_FAILED, {"error": str(error)})
            raise DownlinkSyncError("Downlink sync aborted", error) from error

        course_headers, lessons, remote_progress, profiles = fetched
        courses = wire.assemble_courses(course_headers, lessons)
        remote_course_ids = {course.id for course in courses}

        async with self.store.transaction() as tx:
            pending_ids = await tx.pending_course_creation_ids()
            local_course_ids = await tx.course_ids()
            kept_ids = (local_course_ids & pending_ids) - remote_course_ids

            known_course_ids = remote_course_ids | kept_ids
            progress = [
                wire.restrict_to_courses(document, known_course_ids)
                for document in remote_progress
            ]

            stale_courses = local_course_ids - remote_course_ids - pending_ids
            stale_progress = await tx.progress_ids() - {doc.student_id for doc in progress}
            stale_profiles = await tx.profile_ids() - {profile.id for profile in profiles}

            result.courses_deleted = await tx.delete_courses(stale_courses)
            result.progress_deleted = await tx.delete_progress(stale_progress)
            result.profiles_deleted = await tx.delete_profiles(stale_profiles)

            result.courses_synced = await tx.put_courses(courses)
            result.progress_synced = await tx.put_progress_many(progress)
            result.profiles_synced = await tx.put_profiles(profiles)

        result.lessons_synced = sum(len(course.lessons) for course in courses)
        result.pending_courses_kept = len(kept_ids)
        result.completed_at = utc_now()

        logger.info(
            "Downlink sync completed: %d courses, %d lessons, %d progress, %d profiles "
            "(deleted %d/%d/%d) in %.2fs",
            result.courses_synced,
            result.lessons_synced,
            result.progress_synced,
            result.profiles_synced,
            result.courses_deleted,
            result.progress_deleted,
            result.profiles_deleted,
            result.duration_seconds or 0,
        )
        await self._publish(EventTypes.Sync.DOWNLINK_COMPLETED, result.to_dict())
        return result
