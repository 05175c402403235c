# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Progress aggregate rules.

These functions keep a StudentProgress document internally consistent:

- completed_lessons is the number of lesson statuses with a positive final
  score, and score is the mean of those final scores (0 when there are none).
- total_lessons follows the owning course's current lesson count.
- score_history holds at most one entry per date. The overall average is
  the mean of course scores that are above zero.
- A re-attempt increments attempts and keeps the best final score.

All functions mutate the document they are given. Callers pass a copy when
the original must stay untouched.
"""

from src.models.progress import (
    CourseProgress,
    LessonStatus,
    ScoreHistoryEntry,
    StudentProgress,
)


def recompute_course(course_progress: CourseProgress) -> None:
    """Recompute completed_lessons and score from the lesson statuses."""
    scored = [status.final_score for status in course_progress.lesson_status if status.final_score > 0]
    course_progress.completed_lessons = len(scored)
    course_progress.score = sum(scored) / len(scored) if scored else 0


def overall_average(progress: StudentProgress) -> float:
    """Mean of the positive course scores, 0 when there are none."""
    scores = [entry.score for entry in progress.course_progress if entry.score > 0]
    return sum(scores) / len(scores) if scores else 0


def record_history(progress: StudentProgress, today: str, append: bool) -> None:
    """Write the current overall average into today's history entry.

    Args:
        progress: Student document to update.
        today: Calendar date as ``YYYY-MM-DD``.
        append: Create today's entry when it does not exist yet.
    """
    average = overall_average(progress)
    for entry in progress.score_history:
        if entry.date == today:
            entry.score = average
            return
    if append:
        progress.score_history.append(ScoreHistoryEntry(date=today, score=average))


def apply_quiz_attempt(
    progress: StudentProgress,
    course_id: str,
    lesson_id: str,
    score: float,
    total_lessons: int,
    today: str,
) -> None:
    """Record one quiz attempt and refresh every derived field."""
    course_progress = progress.find_course(course_id)
    if course_progress is None:
        course_progress = CourseProgress(course_id=course_id, total_lessons=total_lessons)
        progress.course_progress.append(course_progress)
    else:
        course_progress.total_lessons = total_lessons

    status = course_progress.find_lesson(lesson_id)
    if status is None:
        course_progress.lesson_status.append(
            LessonStatus(lesson_id=lesson_id, attempts=1, final_score=score)
        )
    else:
        status.attempts += 1
        status.final_score = max(status.final_score, score)

    recompute_course(course_progress)
    record_history(progress, today, append=True)


def remove_course(progress: StudentProgress, course_id: str, today: str) -> bool:
    """Drop a course's progress entry.

    Returns:
        True if the document changed.
    """
    remaining = [entry for entry in progress.course_progress if entry.course_id != course_id]
    if len(remaining) == len(progress.course_progress):
        return False
    progress.course_progress = remaining
    record_history(progress, today, append=False)
    return True


def remove_lesson(
    progress: StudentProgress,
    course_id: str,
    lesson_id: str,
    total_lessons: int,
    today: str,
) -> bool:
    """Drop a lesson's status and sync the course's lesson count.

    Returns:
        True if the document changed.
    """
    course_progress = progress.find_course(course_id)
    if course_progress is None:
        return False

    changed = False
    remaining = [status for status in course_progress.lesson_status if status.lesson_id != lesson_id]
    if len(remaining) != len(course_progress.lesson_status):
        course_progress.lesson_status = remaining
        recompute_course(course_progress)
        record_history(progress, today, append=False)
        changed = True

    if course_progress.total_lessons != total_lessons:
        course_progress.total_lessons = total_lessons
        changed = True

    return changed


def set_total_lessons(progress: StudentProgress, course_id: str, total_lessons: int) -> bool:
    """Set a course's lesson count.

    Returns:
        True if the document changed.
    """
    course_progress = progress.find_course(course_id)
    if course_progress is None or course_progress.total_lessons == total_lessons:
        return False
    course_progress.total_lessons = total_lessons
    return True
