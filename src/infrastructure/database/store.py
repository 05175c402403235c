# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Local replica store using SQLAlchemy async over SQLite.

The store is an explicitly constructed object with an open/close lifecycle.
It is passed to the domain services, the reconciler and the replayer; there
is no module-level database state.

All access goes through ``transaction()``, which yields a ReplicaSession
offering typed operations on every collection. A transaction spans all
collections, so an operation that touches courses, progress and the queue
either commits entirely or not at all.

Example:
    store = LocalReplicaStore.from_settings(settings.local_store)
    await store.open()

    async with store.transaction() as tx:
        course = await tx.get_course("course_1")
        await tx.enqueue(SaveCourseMutation(payload=course.header()))

    await store.close()
"""

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, AsyncIterator, Iterable, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from src.infrastructure.database.models import (
    Base,
    CourseRecord,
    ProfileRecord,
    ReplicaMetadata,
    StudentProgressRecord,
    SyncQueueRecord,
    VideoBlobRecord,
)
from src.models.content import Course
from src.models.profile import Profile
from src.models.progress import StudentProgress
from src.models.sync import MutationType, QueueEntry, SyncMutation
from src.utils.datetime import epoch_millis, utc_now

if TYPE_CHECKING:
    from src.core.config.settings import LocalStoreSettings

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1
_SCHEMA_VERSION_KEY = "schema_version"
_MAX_ERROR_LENGTH = 2000


class LocalStorageError(Exception):
    """Base exception for local replica operations.

    Attributes:
        message: Human-readable error description.
        original_error: The underlying SQLAlchemy or driver error.
    """

    def __init__(self, message: str, original_error: Optional[Exception] = None) -> None:
        super().__init__(message)
        self.message = message
        self.original_error = original_error

    def __str__(self) -> str:
        """Return string representation of the error."""
        if self.original_error:
            return f"{self.message}: {self.original_error}"
        return self.message


class SchemaVersionError(LocalStorageError):
    """Raised when the replica file was written with another schema version.

    Attributes:
        found: Version recorded in the file.
        expected: Version this code understands.
    """

    def __init__(self, found: int, expected: int) -> None:
        super().__init__(
            f"Local replica schema version {found} does not match expected version {expected}"
        )
        self.found = found
        self.expected = expected


# =============================================================================
# Record conversion
# =============================================================================


def _course_to_record(course: Course) -> CourseRecord:
    return CourseRecord(
        id=course.id,
        title=course.title,
        description=course.description,
        icon=course.icon.value,
        author_id=course.author_id,
        for_class=course.for_class,
        lessons=[lesson.model_dump(mode="json", by_alias=True) for lesson in course.lessons],
    )


def _course_from_record(record: CourseRecord) -> Course:
    return Course.model_validate(
        {
            "id": record.id,
            "title": record.title,
            "description": record.description,
            "icon": record.icon,
            "author_id": record.author_id,
            "for_class": record.for_class,
            "lessons": record.lessons or [],
        }
    )


def _progress_to_record(progress: StudentProgress) -> StudentProgressRecord:
    dumped = progress.model_dump(mode="json", by_alias=True)
    return StudentProgressRecord(
        student_id=progress.student_id,
        student_name=progress.student_name,
        course_progress=dumped["courseProgress"],
        score_history=dumped["scoreHistory"],
    )


def _progress_from_record(record: StudentProgressRecord) -> StudentProgress:
    return StudentProgress.model_validate(
        {
            "studentId": record.student_id,
            "studentName": record.student_name,
            "courseProgress": record.course_progress or [],
            "scoreHistory": record.score_history or [],
        }
    )


def _profile_to_record(profile: Profile) -> ProfileRecord:
    return ProfileRecord(
        id=profile.id,
        username=profile.username,
        role=profile.role.value,
        class_number=profile.class_number,
    )


def _profile_from_record(record: ProfileRecord) -> Profile:
    return Profile(
        id=record.id,
        username=record.username,
        role=record.role,
        class_number=record.class_number,
    )


def _queue_entry_from_record(record: SyncQueueRecord) -> QueueEntry:
    return QueueEntry(
        id=record.id,
        mutation_type=record.mutation_type,
        payload=dict(record.payload or {}),
        timestamp=record.timestamp,
        attempts=record.attempts,
        last_error=record.last_error,
        dead_lettered=record.dead_lettered,
    )


class ReplicaSession:
    """Typed operations on the replica collections within one transaction.

    Instances are only handed out by LocalReplicaStore.transaction().
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    # =========================================================================
    # Courses
    # =========================================================================

    async def get_course(self, course_id: str) -> Course | None:
        record = await self._session.get(CourseRecord, course_id)
        return _course_from_record(record) if record else None

    async def list_courses(
        self,
        for_class: int | None = None,
        author_id: str | None = None,
    ) -> list[Course]:
        """List courses, optionally by class and/or author (indexed columns)."""
        stmt = select(CourseRecord)
        if for_class is not None:
            stmt = stmt.where(CourseRecord.for_class == for_class)
        if author_id is not None:
            stmt = stmt.where(CourseRecord.author_id == author_id)
        result = await self._session.execute(stmt.order_by(CourseRecord.id))
        return [_course_from_record(record) for record in result.scalars().all()]

    async def course_ids(self) -> set[str]:
        result = await self._session.execute(select(CourseRecord.id))
        return set(result.scalars().all())

    async def put_course(self, course: Course) -> None:
        await self._session.merge(_course_to_record(course))

    async def put_courses(self, courses: Iterable[Course]) -> int:
        count = 0
        for course in courses:
            await self.put_course(course)
            count += 1
        return count

    async def delete_courses(self, course_ids: Iterable[str]) -> int:
        ids = list(course_ids)
        if not ids:
            return 0
        result = await self._session.execute(
            delete(CourseRecord).where(CourseRecord.id.in_(ids))
        )
        return result.rowcount or 0

    # =========================================================================
    # Student progress
    # =========================================================================

    async def get_progress(self, student_id: str) -> StudentProgress | None:
        record = await self._session.get(StudentProgressRecord, student_id)
        return _progress_from_record(record) if record else None

    async def list_progress(
        self,
        student_ids: Iterable[str] | None = None,
    ) -> list[StudentProgress]:
        """List progress documents, optionally restricted to a student-id set."""
        stmt = select(StudentProgressRecord)
        if student_ids is not None:
            ids = list(student_ids)
            if not ids:
                return []
            stmt = stmt.where(StudentProgressRecord.student_id.in_(ids))
        result = await self._session.execute(stmt.order_by(StudentProgressRecord.student_id))
        return [_progress_from_record(record) for record in result.scalars().all()]

    async def progress_ids(self) -> set[str]:
        result = await self._session.execute(select(StudentProgressRecord.student_id))
        return set(result.scalars().all())

    async def put_progress(self, progress: StudentProgress) -> None:
        await self._session.merge(_progress_to_record(progress))

    async def put_progress_many(self, documents: Iterable[StudentProgress]) -> int:
        count = 0
        for progress in documents:
            await self.put_progress(progress)
            count += 1
        return count

    async def delete_progress(self, student_ids: Iterable[str]) -> int:
        ids = list(student_ids)
        if not ids:
            return 0
        result = await self._session.execute(
            delete(StudentProgressRecord).where(StudentProgressRecord.student_id.in_(ids))
        )
        return result.rowcount or 0

    # =========================================================================
    # Profiles
    # =========================================================================

    async def get_profile(self, profile_id: str) -> Profile | None:
        record = await self._session.get(ProfileRecord, profile_id)
        return _profile_from_record(record) if record else None

    async def list_profiles(
        self,
        class_number: int | None = None,
        role: str | None = None,
    ) -> list[Profile]:
        stmt = select(ProfileRecord)
        if class_number is not None:
            stmt = stmt.where(ProfileRecord.class_number == class_number)
        if role is not None:
            stmt = stmt.where(ProfileRecord.role == role)
        result = await self._session.execute(stmt.order_by(ProfileRecord.username))
        return [_profile_from_record(record) for record in result.scalars().all()]

    async def profile_ids(self) -> set[str]:
        result = await self._session.execute(select(ProfileRecord.id))
        return set(result.scalars().all())

    async def put_profiles(self, profiles: Iterable[Profile]) -> int:
        count = 0
        for profile in profiles:
            await self._session.merge(_profile_to_record(profile))
            count += 1
        return count

    async def delete_profiles(self, profile_ids: Iterable[str]) -> int:
        ids = list(profile_ids)
        if not ids:
            return 0
        result = await self._session.execute(
            delete(ProfileRecord).where(ProfileRecord.id.in_(ids))
        )
        return result.rowcount or 0

    # =========================================================================
    # Mutation queue
    # =========================================================================

    async def enqueue(self, mutation: SyncMutation) -> QueueEntry:
        """Append a mutation to the queue.

        Timestamps never decrease: an entry is stamped with the later of the
        current time and the newest queued timestamp, and ties are ordered
        by sequence id.

        Returns:
            The stored queue entry.
        """
        newest = await self._session.execute(select(func.max(SyncQueueRecord.timestamp)))
        timestamp = max(epoch_millis(), newest.scalar() or 0)

        record = SyncQueueRecord(
            mutation_type=mutation.type,
            payload=mutation.payload_json(),
            timestamp=timestamp,
            attempts=0,
            dead_lettered=False,
        )
        self._session.add(record)
        await self._session.flush()
        return _queue_entry_from_record(record)

    async def list_queue(
        self,
        include_dead_lettered: bool = False,
        dead_lettered_only: bool = False,
        mutation_type: MutationType | None = None,
    ) -> list[QueueEntry]:
        """List queued mutations, oldest first."""
        stmt = select(SyncQueueRecord)
        if dead_lettered_only:
            stmt = stmt.where(SyncQueueRecord.dead_lettered.is_(True))
        elif not include_dead_lettered:
            stmt = stmt.where(SyncQueueRecord.dead_lettered.is_(False))
        if mutation_type is not None:
            stmt = stmt.where(SyncQueueRecord.mutation_type == mutation_type.value)
        stmt = stmt.order_by(SyncQueueRecord.timestamp, SyncQueueRecord.id)
        result = await self._session.execute(stmt)
        return [_queue_entry_from_record(record) for record in result.scalars().all()]

    async def count_queue(self, include_dead_lettered: bool = False) -> int:
        stmt = select(func.count()).select_from(SyncQueueRecord)
        if not include_dead_lettered:
            stmt = stmt.where(SyncQueueRecord.dead_lettered.is_(False))
        result = await self._session.execute(stmt)
        return int(result.scalar() or 0)

    async def pending_course_creation_ids(self) -> set[str]:
        """Ids of courses with a queued SAVE_COURSE not yet confirmed remotely."""
        entries = await self.list_queue(
            include_dead_lettered=True,
            mutation_type=MutationType.SAVE_COURSE,
        )
        return {entry.payload["id"] for entry in entries if entry.payload.get("id")}

    async def delete_queue_entry(self, entry_id: int) -> bool:
        result = await self._session.execute(
            delete(SyncQueueRecord).where(SyncQueueRecord.id == entry_id)
        )
        return bool(result.rowcount)

    async def record_queue_failure(
        self,
        entry_id: int,
        error: str,
        max_attempts: int | None = None,
    ) -> QueueEntry | None:
        """Count a failed replay attempt and dead-letter at the attempt cap.

        Returns:
            The updated entry, or None if it no longer exists.
        """
        record = await self._session.get(SyncQueueRecord, entry_id)
        if record is None:
            return None
        record.attempts += 1
        record.last_error = error[:_MAX_ERROR_LENGTH]
        if max_attempts is not None and record.attempts >= max_attempts:
            record.dead_lettered = True
        await self._session.flush()
        return _queue_entry_from_record(record)

    async def requeue(self, entry_ids: Iterable[int] | None = None) -> int:
        """Return dead-lettered entries to the replay queue.

        Args:
            entry_ids: Entries to requeue; all dead-lettered entries if None.

        Returns:
            Number of entries requeued.
        """
        stmt = (
            update(SyncQueueRecord)
            .where(SyncQueueRecord.dead_lettered.is_(True))
            .values(dead_lettered=False, attempts=0, last_error=None)
        )
        if entry_ids is not None:
            ids = list(entry_ids)
            if not ids:
                return 0
            stmt = stmt.where(SyncQueueRecord.id.in_(ids))
        result = await self._session.execute(stmt)
        return result.rowcount or 0

    # =========================================================================
    # Video blobs
    # =========================================================================

    async def put_video(self, lesson_id: str, data: bytes) -> None:
        await self._session.merge(
            VideoBlobRecord(lesson_id=lesson_id, data=data, created_at=utc_now())
        )

    async def get_video(self, lesson_id: str) -> bytes | None:
        record = await self._session.get(VideoBlobRecord, lesson_id)
        return record.data if record else None

    async def has_video(self, lesson_id: str) -> bool:
        result = await self._session.execute(
            select(VideoBlobRecord.lesson_id).where(VideoBlobRecord.lesson_id == lesson_id)
        )
        return result.scalar_one_or_none() is not None

    async def video_ids(self) -> set[str]:
        result = await self._session.execute(select(VideoBlobRecord.lesson_id))
        return set(result.scalars().all())

    async def delete_video(self, lesson_id: str) -> bool:
        result = await self._session.execute(
            delete(VideoBlobRecord).where(VideoBlobRecord.lesson_id == lesson_id)
        )
        return bool(result.rowcount)

    # =========================================================================
    # Metadata
    # =========================================================================

    async def get_metadata(self, key: str) -> str | None:
        record = await self._session.get(ReplicaMetadata, key)
        return record.value if record else None

    async def set_metadata(self, key: str, value: str) -> None:
        await self._session.merge(ReplicaMetadata(key=key, value=value))


class LocalReplicaStore:
    """Persistent, transactional local replica.

    Attributes:
        url: SQLAlchemy async database URL.

    Example:
        async with LocalReplicaStore("sqlite+aiosqlite:///replica.db") as store:
            async with store.transaction() as tx:
                courses = await tx.list_courses(for_class=5)
    """

    def __init__(self, url: str, echo: bool = False) -> None:
        self.url = url
        self._echo = echo
        self._engine: AsyncEngine | None = None
        self._sessionmaker: async_sessionmaker[AsyncSession] | None = None

    @classmethod
    def from_settings(cls, settings: "LocalStoreSettings") -> "LocalReplicaStore":
        return cls(settings.url, echo=settings.echo)

    @property
    def is_open(self) -> bool:
        return self._engine is not None

    async def open(self) -> None:
        """Create the engine, the tables and verify the schema version.

        Raises:
            LocalStorageError: If the database cannot be opened.
            SchemaVersionError: If the file has an incompatible schema.
        """
        if self._engine is not None:
            return

        try:
            self._engine = create_async_engine(self.url, echo=self._echo)
            async with self._engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            self._sessionmaker = async_sessionmaker(
                bind=self._engine,
                class_=AsyncSession,
                expire_on_commit=False,
            )
        except SQLAlchemyError as e:
            await self.close()
            raise LocalStorageError("Failed to open local replica", e) from e

        async with self.transaction() as tx:
            stored = await tx.get_metadata(_SCHEMA_VERSION_KEY)
            if stored is None:
                await tx.set_metadata(_SCHEMA_VERSION_KEY, str(SCHEMA_VERSION))

        if stored is not None and int(stored) != SCHEMA_VERSION:
            await self.close()
            raise SchemaVersionError(found=int(stored), expected=SCHEMA_VERSION)

        logger.info("Local replica opened: %s (schema v%d)", self.url, SCHEMA_VERSION)

    async def close(self) -> None:
        """Dispose the engine and its connections."""
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._sessionmaker = None

    async def __aenter__(self) -> "LocalReplicaStore":
        await self.open()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[ReplicaSession]:
        """Run operations atomically across all collections.

        Commits on success and rolls back on any exception.

        Yields:
            ReplicaSession bound to the transaction.

        Raises:
            LocalStorageError: If the store is not open or a database
                operation fails.
        """
        if self._sessionmaker is None:
            raise LocalStorageError("Local replica not open. Call open() first.")

        async with self._sessionmaker() as session:
            try:
                yield ReplicaSession(session)
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                raise LocalStorageError("Local replica operation failed", e) from e
            except Exception:
                await session.rollback()
                raise

    # =========================================================================
    # Blob store interface
    # =========================================================================

    async def put_blob(self, lesson_id: str, data: bytes) -> None:
        async with self.transaction() as tx:
            await tx.put_video(lesson_id, data)

    async def get_blob(self, lesson_id: str) -> bytes | None:
        async with self.transaction() as tx:
            return await tx.get_video(lesson_id)

    async def delete_blob(self, lesson_id: str) -> bool:
        async with self.transaction() as tx:
            return await tx.delete_video(lesson_id)
