# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Local replica tables.

Five collections live in the replica:
- courses: course documents with their lessons embedded as a JSON list
- student_progress: one aggregate document per student
- profiles: user profiles
- sync_queue: durable, ordered log of pending local writes
- videos: offline video payloads keyed by lesson id

``replica_metadata`` records the schema version the file was created with.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    DateTime,
    Integer,
    LargeBinary,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from src.infrastructure.database.models.base import Base, TimestampMixin
from src.utils.datetime import utc_now


class CourseRecord(Base, TimestampMixin):
    """A course document. Lesson order in ``lessons`` is authoritative."""

    __tablename__ = "courses"

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    icon: Mapped[str] = mapped_column(String(32), nullable=False)
    author_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    for_class: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    lessons: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)


class StudentProgressRecord(Base, TimestampMixin):
    """Progress aggregate of one student."""

    __tablename__ = "student_progress"

    student_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    student_name: Mapped[str] = mapped_column(Text, nullable=False)
    course_progress: Mapped[list[dict[str, Any]]] = mapped_column(
        JSON, nullable=False, default=list
    )
    score_history: Mapped[list[dict[str, Any]]] = mapped_column(
        JSON, nullable=False, default=list
    )


class ProfileRecord(Base, TimestampMixin):
    """User profile."""

    __tablename__ = "profiles"

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    username: Mapped[str] = mapped_column(Text, nullable=False)
    role: Mapped[str] = mapped_column(String(16), nullable=False)
    class_number: Mapped[int] = mapped_column("class", Integer, nullable=False, index=True)


class SyncQueueRecord(Base):
    """A pending local write awaiting remote confirmation."""

    __tablename__ = "sync_queue"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    mutation_type: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    timestamp: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    dead_lettered: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class VideoBlobRecord(Base):
    """Offline video payload of a lesson."""

    __tablename__ = "videos"

    lesson_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    data: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )


class ReplicaMetadata(Base):
    """Key/value metadata about the replica file."""

    __tablename__ = "replica_metadata"

    key: Mapped[str] = mapped_column(String(64), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
