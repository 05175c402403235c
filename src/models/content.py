# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Content models: courses, lessons, quizzes and transcripts.

Courses are stored locally as nested documents with their lessons embedded
in authoritative order. Quiz questions and transcript entries are also
persisted remotely as JSON arrays, so they serialize with camelCase keys.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base for models embedded in remote JSON columns (camelCase keys)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CourseIcon(str, Enum):
    """Icon tag shown for a course."""

    BOOK = "Book"
    COMPUTER = "Computer"
    CALCULATOR = "Calculator"


class Difficulty(str, Enum):
    """Lesson difficulty tag."""

    EASY = "Easy"
    MEDIUM = "Medium"
    HARD = "Hard"


class QuizQuestion(CamelModel):
    """A multiple-choice quiz question.

    Attributes:
        question: Question text.
        options: Answer options, at least two.
        correct_answer_index: Index of the correct option.
    """

    question: str
    options: list[str] = Field(min_length=2)
    correct_answer_index: int = Field(ge=0)

    @model_validator(mode="after")
    def check_answer_index(self) -> "QuizQuestion":
        """Ensure the correct answer points at an existing option."""
        if self.correct_answer_index >= len(self.options):
            raise ValueError(
                f"correct_answer_index {self.correct_answer_index} out of range "
                f"for {len(self.options)} options"
            )
        return self


class TranscriptEntry(CamelModel):
    """A timed transcript segment, in seconds."""

    text: str
    start: float = Field(ge=0)
    end: float = Field(ge=0)


class Lesson(BaseModel):
    """A lesson embedded in a course.

    ``has_offline_video`` is local-only. It reflects whether the lesson's
    video is present in the local blob table and is never sent remotely.
    """

    id: str
    title: str
    content: str
    summary: str | None = None
    video_url: str | None = None
    has_offline_video: bool = False
    transcript: list[TranscriptEntry] | None = None
    quiz: list[QuizQuestion] = Field(default_factory=list)
    difficulty: Difficulty | None = None


class CourseHeader(BaseModel):
    """Course attributes without the embedded lessons."""

    id: str
    title: str
    description: str
    icon: CourseIcon
    author_id: str
    for_class: int


class Course(CourseHeader):
    """A course with its ordered lessons."""

    lessons: list[Lesson] = Field(default_factory=list)

    def find_lesson(self, lesson_id: str) -> Lesson | None:
        """Return the embedded lesson with the given id, if any."""
        for lesson in self.lessons:
            if lesson.id == lesson_id:
                return lesson
        return None

    def header(self) -> CourseHeader:
        """Return the course attributes without lessons."""
        return CourseHeader.model_validate(self.model_dump(exclude={"lessons"}))


class CourseDraft(BaseModel):
    """Input for creating (no id) or updating (with id) a course."""

    id: str | None = None
    title: str = Field(min_length=1)
    description: str = ""
    icon: CourseIcon = CourseIcon.BOOK
    for_class: int = Field(ge=1)


class LessonDraft(BaseModel):
    """Input for creating (no id) or updating (with id) a lesson."""

    id: str | None = None
    title: str = Field(min_length=1)
    content: str = ""
    summary: str | None = None
    video_url: str | None = None
    transcript: list[TranscriptEntry] | None = None
    quiz: list[QuizQuestion] = Field(default_factory=list)
    difficulty: Difficulty | None = None


class SearchResult(BaseModel):
    """A course or lesson matching a content search."""

    type: str
    course: Course
    lesson: Lesson | None = None
    title: str
    context: str
