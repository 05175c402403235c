# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Translation between local documents and remote table rows.

Remote tables (column names are the wire contract):
- profiles(id, username, role, class)
- courses(id, title, description, icon, author_id, for_class)
- lessons(id, course_id, title, content, summary, video_url, difficulty,
  quiz, transcript)
- student_progress(student_id, student_name, course_progress, score_history)

Locally, lessons are embedded in their course and the progress aggregates
are nested documents. JSON array columns keep camelCase element keys.
Local-only fields (``has_offline_video``) never appear in an outgoing row.
"""

from collections import defaultdict
from typing import Any, Iterable

from src.models.content import Course, CourseHeader, Lesson
from src.models.profile import Profile
from src.models.progress import StudentProgress
from src.models.sync import QueuedLesson


def course_to_row(course: CourseHeader) -> dict[str, Any]:
    """Build a ``courses`` row. Embedded lessons are not part of it."""
    return {
        "id": course.id,
        "title": course.title,
        "description": course.description,
        "icon": course.icon.value,
        "author_id": course.author_id,
        "for_class": course.for_class,
    }


def course_from_row(row: dict[str, Any]) -> CourseHeader:
    return CourseHeader.model_validate(
        {
            "id": row["id"],
            "title": row["title"],
            "description": row.get("description") or "",
            "icon": row["icon"],
            "author_id": row["author_id"],
            "for_class": row["for_class"],
        }
    )


def lesson_to_row(lesson: Lesson, course_id: str) -> dict[str, Any]:
    """Build a ``lessons`` row, dropping local-only fields."""
    return {
        "id": lesson.id,
        "course_id": course_id,
        "title": lesson.title,
        "content": lesson.content,
        "summary": lesson.summary,
        "video_url": lesson.video_url,
        "difficulty": lesson.difficulty.value if lesson.difficulty else None,
        "quiz": [question.model_dump(mode="json", by_alias=True) for question in lesson.quiz],
        "transcript": (
            [entry.model_dump(mode="json", by_alias=True) for entry in lesson.transcript]
            if lesson.transcript is not None
            else None
        ),
    }


def lesson_from_row(row: dict[str, Any]) -> QueuedLesson:
    """Parse a ``lessons`` row. The offline-video flag always starts False."""
    return QueuedLesson.model_validate(
        {
            "id": row["id"],
            "course_id": row["course_id"],
            "title": row["title"],
            "content": row.get("content") or "",
            "summary": row.get("summary") or None,
            "video_url": row.get("video_url") or None,
            "has_offline_video": False,
            "transcript": row.get("transcript"),
            "quiz": row.get("quiz") or [],
            "difficulty": row.get("difficulty") or None,
        }
    )


def progress_to_row(progress: StudentProgress) -> dict[str, Any]:
    dumped = progress.model_dump(mode="json", by_alias=True)
    return {
        "student_id": progress.student_id,
        "student_name": progress.student_name,
        "course_progress": dumped["courseProgress"],
        "score_history": dumped["scoreHistory"],
    }


def progress_from_row(row: dict[str, Any]) -> StudentProgress:
    return StudentProgress.model_validate(
        {
            "studentId": row["student_id"],
            "studentName": row.get("student_name") or "",
            "courseProgress": row.get("course_progress") or [],
            "scoreHistory": row.get("score_history") or [],
        }
    )


def profile_to_row(profile: Profile) -> dict[str, Any]:
    return {
        "id": profile.id,
        "username": profile.username,
        "role": profile.role.value,
        "class": profile.class_number,
    }


def profile_from_row(row: dict[str, Any]) -> Profile:
    return Profile.model_validate(row)


def assemble_courses(
    courses: Iterable[CourseHeader],
    lessons: Iterable[QueuedLesson],
) -> list[Course]:
    """Regroup flat lessons under their courses.

    Lessons keep the order in which they were fetched. Lessons whose course
    is not in ``courses`` are dropped.
    """
    by_course: dict[str, list[Lesson]] = defaultdict(list)
    for lesson in lessons:
        by_course[lesson.course_id].append(
            Lesson.model_validate(lesson.model_dump(exclude={"course_id"}))
        )

    return [
        Course(**course.model_dump(), lessons=by_course.get(course.id, []))
        for course in courses
    ]


def restrict_to_courses(progress: StudentProgress, course_ids: set[str]) -> StudentProgress:
    """Drop course progress entries whose course is not in ``course_ids``."""
    kept = [entry for entry in progress.course_progress if entry.course_id in course_ids]
    if len(kept) == len(progress.course_progress):
        return progress
    return progress.model_copy(update={"course_progress": kept})
