# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Mutation queue models.

Every queued mutation is one member of a tagged union discriminated by
``type``. Payloads are stored as JSON in the local queue and decoded back
into typed models when the queue is replayed, so a payload that no longer
matches its mutation kind is detected per item instead of leaking a bad
shape into a remote write.

Example:
    >>> mutation = DeleteCourseMutation(payload=EntityRef(id="course_1"))
    >>> decoded = decode_mutation(mutation.type, mutation.payload_json())
    >>> decoded == mutation
    True
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter

from src.models.content import CourseHeader, Lesson
from src.models.progress import StudentProgress
from src.utils.datetime import utc_from_timestamp


class MutationType(str, Enum):
    """Kinds of queued local writes."""

    UPDATE_PROGRESS = "UPDATE_PROGRESS"
    SAVE_COURSE = "SAVE_COURSE"
    DELETE_COURSE = "DELETE_COURSE"
    SAVE_LESSON = "SAVE_LESSON"
    DELETE_LESSON = "DELETE_LESSON"


class EntityRef(BaseModel):
    """Reference to a row by primary key."""

    id: str


class QueuedLesson(Lesson):
    """A lesson together with the course it belongs to."""

    course_id: str


class _Mutation(BaseModel):
    def payload_json(self) -> dict[str, Any]:
        """Serialize the payload for storage in the queue."""
        payload: BaseModel = getattr(self, "payload")
        return payload.model_dump(mode="json", by_alias=True)


class UpdateProgressMutation(_Mutation):
    type: Literal["UPDATE_PROGRESS"] = "UPDATE_PROGRESS"
    payload: StudentProgress


class SaveCourseMutation(_Mutation):
    type: Literal["SAVE_COURSE"] = "SAVE_COURSE"
    payload: CourseHeader


class DeleteCourseMutation(_Mutation):
    type: Literal["DELETE_COURSE"] = "DELETE_COURSE"
    payload: EntityRef


class SaveLessonMutation(_Mutation):
    type: Literal["SAVE_LESSON"] = "SAVE_LESSON"
    payload: QueuedLesson


class DeleteLessonMutation(_Mutation):
    type: Literal["DELETE_LESSON"] = "DELETE_LESSON"
    payload: EntityRef


SyncMutation = Annotated[
    Union[
        UpdateProgressMutation,
        SaveCourseMutation,
        DeleteCourseMutation,
        SaveLessonMutation,
        DeleteLessonMutation,
    ],
    Field(discriminator="type"),
]

_mutation_adapter: TypeAdapter[SyncMutation] = TypeAdapter(SyncMutation)


def decode_mutation(mutation_type: str, payload: dict[str, Any]) -> SyncMutation:
    """Decode a stored queue payload into its typed mutation.

    Args:
        mutation_type: Stored mutation type tag.
        payload: Stored JSON payload.

    Returns:
        The typed mutation.

    Raises:
        pydantic.ValidationError: If the tag is unknown or the payload does
            not match the tag's shape.
    """
    return _mutation_adapter.validate_python({"type": mutation_type, "payload": payload})


@dataclass
class QueueEntry:
    """A raw mutation queue row as read from the local store.

    Attributes:
        id: Auto-assigned sequence id.
        mutation_type: Stored type tag.
        payload: Stored JSON payload (decoded lazily).
        timestamp: Creation time in epoch milliseconds.
        attempts: Failed replay attempts so far.
        last_error: Message of the most recent replay failure.
        dead_lettered: Whether replay skips this entry.
    """

    id: int
    mutation_type: str
    payload: dict[str, Any]
    timestamp: int
    attempts: int = 0
    last_error: str | None = None
    dead_lettered: bool = False

    @property
    def queued_at(self) -> datetime:
        """Creation time as a UTC datetime."""
        return utc_from_timestamp(self.timestamp / 1000)

    def decode(self) -> SyncMutation:
        """Decode this entry's payload into its typed mutation."""
        return decode_mutation(self.mutation_type, self.payload)
