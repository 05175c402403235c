# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Progress service for quiz attempts and progress reads.

Quiz attempts update the student's progress document locally and queue it
for upload in the same transaction. The aggregate rules live in
``src.domains.progress.aggregates``.
"""

from __future__ import annotations

import logging

from src.domains.content.errors import CourseNotFoundError, LessonNotFoundError
from src.domains.progress import aggregates
from src.infrastructure.database.store import LocalReplicaStore
from src.models.profile import UserRole
from src.models.progress import StudentProgress
from src.models.sync import UpdateProgressMutation
from src.utils.datetime import today_iso

logger = logging.getLogger(__name__)


class ProgressServiceError(Exception):
    """Base exception for progress service errors."""

    pass


class InvalidScoreError(ProgressServiceError):
    """Raised when a quiz score is outside 0-100."""

    def __init__(self, score: float) -> None:
        super().__init__(f"Quiz score must be between 0 and 100, got {score}")
        self.score = score


class ProgressService:
    """Service for student progress.

    Attributes:
        store: Local replica store.
    """

    def __init__(self, store: LocalReplicaStore) -> None:
        self.store = store

    async def update_quiz_progress(
        self,
        student_id: str,
        student_name: str,
        course_id: str,
        lesson_id: str,
        score: float,
    ) -> StudentProgress:
        """Record a quiz attempt.

        Creates the student's progress document on first use. A repeated
        attempt on the same lesson keeps the best score.

        Args:
            student_id: Student identifier.
            student_name: Display name, used when creating the document.
            course_id: Course the lesson belongs to.
            lesson_id: Lesson whose quiz was attempted.
            score: Score in percent.

        Returns:
            The updated progress document.

        Raises:
            InvalidScoreError: If score is outside 0-100.
            CourseNotFoundError: If the course does not exist.
            LessonNotFoundError: If the lesson is not in the course.
        """
        if not 0 <= score <= 100:
            raise InvalidScoreError(score)

        async with self.store.transaction() as tx:
            course = await tx.get_course(course_id)
            if course is None:
                raise CourseNotFoundError(f"Course {course_id} not found")
            if course.find_lesson(lesson_id) is None:
                raise LessonNotFoundError(f"Lesson {lesson_id} not found in course {course_id}")

            progress = await tx.get_progress(student_id)
            if progress is None:
                progress = StudentProgress(student_id=student_id, student_name=student_name)

            aggregates.apply_quiz_attempt(
                progress,
                course_id=course_id,
                lesson_id=lesson_id,
                score=score,
                total_lessons=len(course.lessons),
                today=today_iso(),
            )

            await tx.put_progress(progress)
            await tx.enqueue(UpdateProgressMutation(payload=progress))

        logger.debug(
            "Recorded quiz attempt: student=%s course=%s lesson=%s score=%s",
            student_id,
            course_id,
            lesson_id,
            score,
        )
        return progress

    async def get_student_progress(self, student_id: str) -> StudentProgress | None:
        async with self.store.transaction() as tx:
            return await tx.get_progress(student_id)

    async def get_all_progress(self) -> list[StudentProgress]:
        async with self.store.transaction() as tx:
            return await tx.list_progress()

    async def get_progress_for_class(self, class_number: int) -> list[StudentProgress]:
        """Progress documents of the students in a class."""
        async with self.store.transaction() as tx:
            students = await tx.list_profiles(
                class_number=class_number,
                role=UserRole.STUDENT.value,
            )
            return await tx.list_progress(student_ids=[student.id for student in students])
