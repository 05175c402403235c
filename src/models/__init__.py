# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pydantic models shared by the store, the remote client and the domains."""

from src.models.content import (
    CamelModel,
    Course,
    CourseDraft,
    CourseHeader,
    CourseIcon,
    Difficulty,
    Lesson,
    LessonDraft,
    QuizQuestion,
    SearchResult,
    TranscriptEntry,
)
from src.models.profile import Profile, UserRole
from src.models.progress import (
    CourseProgress,
    LessonStatus,
    ScoreHistoryEntry,
    StudentProgress,
)
from src.models.sync import (
    DeleteCourseMutation,
    DeleteLessonMutation,
    EntityRef,
    MutationType,
    QueueEntry,
    QueuedLesson,
    SaveCourseMutation,
    SaveLessonMutation,
    SyncMutation,
    UpdateProgressMutation,
    decode_mutation,
)

__all__ = [
    # Content
    "CamelModel",
    "Course",
    "CourseDraft",
    "CourseHeader",
    "CourseIcon",
    "Difficulty",
    "Lesson",
    "LessonDraft",
    "QuizQuestion",
    "SearchResult",
    "TranscriptEntry",
    # Profiles
    "Profile",
    "UserRole",
    # Progress
    "CourseProgress",
    "LessonStatus",
    "ScoreHistoryEntry",
    "StudentProgress",
    # Sync queue
    "MutationType",
    "EntityRef",
    "QueuedLesson",
    "QueueEntry",
    "SyncMutation",
    "UpdateProgressMutation",
    "SaveCourseMutation",
    "DeleteCourseMutation",
    "SaveLessonMutation",
    "DeleteLessonMutation",
    "decode_mutation",
]
