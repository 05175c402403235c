# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Content service for offline course and lesson management.

This module provides the ContentService class for:
- Course and lesson writes against the local replica, each queued for upload
- Course and lesson reads with the offline-video flag taken from the blob table
- Lesson video upload, download and removal
- Content search

Every write runs in a single local transaction covering the course, the
affected progress documents, the video blobs and the queued mutations.
"""

from __future__ import annotations

import logging
import re
from uuid import uuid4

from src.domains.content.errors import (
    CourseNotFoundError,
    LessonDownloadError,
    LessonNotFoundError,
)
from src.domains.progress import aggregates
from src.infrastructure.database.store import LocalReplicaStore, ReplicaSession
from src.infrastructure.remote.client import RemoteClient, RemoteError
from src.models.content import Course, CourseDraft, Lesson, LessonDraft, SearchResult
from src.models.sync import (
    DeleteCourseMutation,
    DeleteLessonMutation,
    EntityRef,
    QueuedLesson,
    SaveCourseMutation,
    SaveLessonMutation,
    UpdateProgressMutation,
)
from src.utils.datetime import today_iso

logger = logging.getLogger(__name__)

_HTML_TAG = re.compile(r"<[^>]+>")
MIN_SEARCH_LENGTH = 2
MAX_SEARCH_RESULTS = 10


def _with_video_flags(course: Course, video_ids: set[str]) -> Course:
    lessons = [
        lesson.model_copy(update={"has_offline_video": lesson.id in video_ids})
        for lesson in course.lessons
    ]
    return course.model_copy(update={"lessons": lessons})


class ContentService:
    """Service for courses, lessons and their offline videos.

    Attributes:
        store: Local replica store.
        remote: Remote client used for video downloads.
    """

    def __init__(self, store: LocalReplicaStore, remote: RemoteClient | None = None) -> None:
        """Initialize content service.

        Args:
            store: Open local replica store.
            remote: Remote client, required only for download_lesson.
        """
        self.store = store
        self.remote = remote

    # =========================================================================
    # Course writes
    # =========================================================================

    async def save_course(self, draft: CourseDraft, author_id: str) -> Course:
        """Create a course (draft without id) or update one.

        Args:
            draft: Course attributes.
            author_id: Author of a new course. Ignored on update.

        Returns:
            The saved course.

        Raises:
            CourseNotFoundError: If the draft names a course that does not exist.
        """
        async with self.store.transaction() as tx:
            if draft.id:
                existing = await tx.get_course(draft.id)
                if existing is None:
                    raise CourseNotFoundError(f"Course {draft.id} not found")
                course = existing.model_copy(
                    update={
                        "title": draft.title,
                        "description": draft.description,
                        "icon": draft.icon,
                        "for_class": draft.for_class,
                    }
                )
            else:
                course = Course(
                    id=f"course_{uuid4().hex}",
                    title=draft.title,
                    description=draft.description,
                    icon=draft.icon,
                    author_id=author_id,
                    for_class=draft.for_class,
                    lessons=[],
                )

            await tx.put_course(course)
            await tx.enqueue(SaveCourseMutation(payload=course.header()))

        logger.info("Saved course %s (%s)", course.id, "update" if draft.id else "create")
        return course

    async def delete_course(self, course_id: str) -> Course:
        """Delete a course with its lessons, videos and progress entries.

        Queues one lesson delete per lesson, then the course delete, then one
        progress update per student that had progress in the course.

        Returns:
            The deleted course.

        Raises:
            CourseNotFoundError: If the course does not exist.
        """
        today = today_iso()
        affected = 0

        async with self.store.transaction() as tx:
            course = await tx.get_course(course_id)
            if course is None:
                raise CourseNotFoundError(f"Course {course_id} not found")

            for lesson in course.lessons:
                await tx.enqueue(DeleteLessonMutation(payload=EntityRef(id=lesson.id)))
            await tx.enqueue(DeleteCourseMutation(payload=EntityRef(id=course_id)))

            await tx.delete_courses([course_id])
            for lesson in course.lessons:
                await tx.delete_video(lesson.id)

            for progress in await tx.list_progress():
                if aggregates.remove_course(progress, course_id, today):
                    await tx.put_progress(progress)
                    await tx.enqueue(UpdateProgressMutation(payload=progress))
                    affected += 1

        logger.info(
            "Deleted course %s: %d lessons, %d progress documents updated",
            course_id,
            len(course.lessons),
            affected,
        )
        return course

    # =========================================================================
    # Lesson writes
    # =========================================================================

    async def save_lesson(
        self,
        course_id: str,
        draft: LessonDraft,
        video: bytes | None = None,
        remove_video: bool = False,
    ) -> Lesson:
        """Create a lesson (draft without id) or update one.

        Video handling:
        - ``video`` given: stored as the lesson's offline video.
        - ``remove_video``: the offline video is deleted.
        - Otherwise, a lesson switching from an offline video to a video URL
          has its stored video deleted.

        Returns:
            The saved lesson.

        Raises:
            CourseNotFoundError: If the course does not exist.
            LessonNotFoundError: If the draft names a lesson not in the course.
        """
        async with self.store.transaction() as tx:
            course = await tx.get_course(course_id)
            if course is None:
                raise CourseNotFoundError(f"Course {course_id} not found")

            is_update = bool(draft.id)
            lesson_id = draft.id or f"lesson_{uuid4().hex}"
            old_lesson = course.find_lesson(lesson_id) if is_update else None
            if is_update and old_lesson is None:
                raise LessonNotFoundError(f"Lesson {lesson_id} not found in course {course_id}")

            had_video = await tx.has_video(lesson_id)
            if video is not None:
                await tx.put_video(lesson_id, video)
            elif remove_video:
                await tx.delete_video(lesson_id)
            elif (
                had_video
                and draft.video_url
                and old_lesson is not None
                and not old_lesson.video_url
            ):
                await tx.delete_video(lesson_id)

            lesson = Lesson(
                **draft.model_dump(exclude={"id"}),
                id=lesson_id,
                has_offline_video=await tx.has_video(lesson_id),
            )

            if is_update:
                lessons = [lesson if item.id == lesson_id else item for item in course.lessons]
            else:
                lessons = [*course.lessons, lesson]
            course = course.model_copy(update={"lessons": lessons})

            await tx.put_course(course)
            await tx.enqueue(
                SaveLessonMutation(
                    payload=QueuedLesson(**lesson.model_dump(), course_id=course_id)
                )
            )

            if not is_update:
                await self._sync_lesson_counts(tx, course)

        logger.info("Saved lesson %s in course %s", lesson_id, course_id)
        return lesson

    async def delete_lesson(self, course_id: str, lesson_id: str) -> Course:
        """Delete a lesson, its video and its progress entries.

        Returns:
            The updated course.

        Raises:
            CourseNotFoundError: If the course does not exist.
            LessonNotFoundError: If the lesson is not in the course.
        """
        today = today_iso()

        async with self.store.transaction() as tx:
            course = await tx.get_course(course_id)
            if course is None:
                raise CourseNotFoundError(f"Course {course_id} not found")
            if course.find_lesson(lesson_id) is None:
                raise LessonNotFoundError(f"Lesson {lesson_id} not found in course {course_id}")

            await tx.delete_video(lesson_id)
            course = course.model_copy(
                update={"lessons": [item for item in course.lessons if item.id != lesson_id]}
            )
            await tx.put_course(course)
            await tx.enqueue(DeleteLessonMutation(payload=EntityRef(id=lesson_id)))

            for progress in await tx.list_progress():
                if aggregates.remove_lesson(
                    progress, course_id, lesson_id, len(course.lessons), today
                ):
                    await tx.put_progress(progress)
                    await tx.enqueue(UpdateProgressMutation(payload=progress))

        logger.info("Deleted lesson %s from course %s", lesson_id, course_id)
        return course

    async def _sync_lesson_counts(self, tx: ReplicaSession, course: Course) -> None:
        for progress in await tx.list_progress():
            if aggregates.set_total_lessons(progress, course.id, len(course.lessons)):
                await tx.put_progress(progress)
                await tx.enqueue(UpdateProgressMutation(payload=progress))

    # =========================================================================
    # Reads
    # =========================================================================

    async def get_courses(self) -> list[Course]:
        async with self.store.transaction() as tx:
            video_ids = await tx.video_ids()
            courses = await tx.list_courses()
        return [_with_video_flags(course, video_ids) for course in courses]

    async def get_courses_for_class(self, class_number: int) -> list[Course]:
        async with self.store.transaction() as tx:
            video_ids = await tx.video_ids()
            courses = await tx.list_courses(for_class=class_number)
        return [_with_video_flags(course, video_ids) for course in courses]

    async def get_courses_by_author(self, author_id: str) -> list[Course]:
        async with self.store.transaction() as tx:
            video_ids = await tx.video_ids()
            courses = await tx.list_courses(author_id=author_id)
        return [_with_video_flags(course, video_ids) for course in courses]

    async def get_course(self, course_id: str) -> Course:
        """Get a course by id.

        Raises:
            CourseNotFoundError: If the course does not exist.
        """
        async with self.store.transaction() as tx:
            course = await tx.get_course(course_id)
            if course is None:
                raise CourseNotFoundError(f"Course {course_id} not found")
            video_ids = await tx.video_ids()
        return _with_video_flags(course, video_ids)

    async def get_lesson(self, course_id: str, lesson_id: str) -> Lesson:
        """Get a lesson of a course.

        Raises:
            CourseNotFoundError: If the course does not exist.
            LessonNotFoundError: If the lesson is not in the course.
        """
        course = await self.get_course(course_id)
        lesson = course.find_lesson(lesson_id)
        if lesson is None:
            raise LessonNotFoundError(f"Lesson {lesson_id} not found in course {course_id}")
        return lesson

    # =========================================================================
    # Offline videos
    # =========================================================================

    async def download_lesson(self, course_id: str, lesson_id: str) -> Lesson:
        """Download a lesson's video URL into the blob table.

        Does nothing when the lesson has no video URL or is already
        downloaded.

        Returns:
            The lesson with its offline-video flag.

        Raises:
            LessonDownloadError: If the video cannot be fetched or stored.
        """
        lesson = await self.get_lesson(course_id, lesson_id)
        if not lesson.video_url or lesson.has_offline_video:
            return lesson
        if self.remote is None:
            raise LessonDownloadError("No remote client configured for downloads")

        try:
            data = await self.remote.fetch_media(lesson.video_url)
            await self.store.put_blob(lesson_id, data)
        except RemoteError as e:
            await self.store.delete_blob(lesson_id)
            raise LessonDownloadError(f"Failed to download lesson {lesson_id}: {e}") from e

        logger.info("Downloaded video for lesson %s (%d bytes)", lesson_id, len(data))
        return lesson.model_copy(update={"has_offline_video": True})

    async def remove_downloaded_lesson(self, lesson_id: str) -> bool:
        """Delete a lesson's stored video. Returns False if none was stored."""
        return await self.store.delete_blob(lesson_id)

    async def is_lesson_downloaded(self, lesson_id: str) -> bool:
        async with self.store.transaction() as tx:
            return await tx.has_video(lesson_id)

    async def get_downloaded_lesson_ids(self) -> set[str]:
        async with self.store.transaction() as tx:
            return await tx.video_ids()

    async def get_video(self, lesson_id: str) -> bytes | None:
        return await self.store.get_blob(lesson_id)

    # =========================================================================
    # Search
    # =========================================================================

    async def search_content(self, query: str) -> list[SearchResult]:
        """Case-insensitive search over course and lesson text.

        Courses match on title or description, lessons on title or content
        with HTML tags stripped.

        Returns:
            At most MAX_SEARCH_RESULTS results; none for queries shorter
            than MIN_SEARCH_LENGTH.
        """
        if not query or len(query.strip()) < MIN_SEARCH_LENGTH:
            return []

        needle = query.lower()
        results: list[SearchResult] = []
        for course in await self.get_courses():
            if needle in course.title.lower() or needle in course.description.lower():
                results.append(
                    SearchResult(type="course", course=course, title=course.title, context="Course")
                )
            for lesson in course.lessons:
                text = _HTML_TAG.sub("", lesson.content)
                if needle in lesson.title.lower() or needle in text.lower():
                    results.append(
                        SearchResult(
                            type="lesson",
                            course=course,
                            lesson=lesson,
                            title=lesson.title,
                            context=f"In course: {course.title}",
                        )
                    )

        return results[:MAX_SEARCH_RESULTS]
