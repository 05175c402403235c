# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Student progress aggregate models.

One StudentProgress document exists per student. Its course progress and
score history are stored remotely as JSON arrays with camelCase keys, which
is why every model here derives from CamelModel.
"""

from pydantic import Field

from src.models.content import CamelModel


class LessonStatus(CamelModel):
    """Attempt bookkeeping for one lesson.

    Attributes:
        lesson_id: Lesson identifier.
        attempts: Number of quiz attempts.
        final_score: Best score achieved, in percent.
    """

    lesson_id: str
    attempts: int = Field(default=1, ge=0)
    final_score: float = Field(default=0, ge=0, le=100)


class CourseProgress(CamelModel):
    """Per-course aggregate for one student.

    Attributes:
        course_id: Course identifier.
        completed_lessons: Lessons with a positive final score.
        total_lessons: Current lesson count of the course.
        score: Mean final score over completed lessons.
        lesson_status: Per-lesson attempt records.
    """

    course_id: str
    completed_lessons: int = 0
    total_lessons: int = 0
    score: float = 0
    lesson_status: list[LessonStatus] = Field(default_factory=list)

    def find_lesson(self, lesson_id: str) -> LessonStatus | None:
        """Return the status entry for a lesson, if any."""
        for status in self.lesson_status:
            if status.lesson_id == lesson_id:
                return status
        return None


class ScoreHistoryEntry(CamelModel):
    """Overall average score for one calendar date (YYYY-MM-DD)."""

    date: str
    score: float


class StudentProgress(CamelModel):
    """All progress of one student."""

    student_id: str
    student_name: str
    course_progress: list[CourseProgress] = Field(default_factory=list)
    score_history: list[ScoreHistoryEntry] = Field(default_factory=list)

    def find_course(self, course_id: str) -> CourseProgress | None:
        """Return the progress entry for a course, if any."""
        for progress in self.course_progress:
            if progress.course_id == course_id:
                return progress
        return None
