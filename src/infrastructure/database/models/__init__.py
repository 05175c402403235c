# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""SQLAlchemy models of the local replica."""

from src.infrastructure.database.models.base import Base, TimestampMixin
from src.infrastructure.database.models.replica import (
    CourseRecord,
    ProfileRecord,
    ReplicaMetadata,
    StudentProgressRecord,
    SyncQueueRecord,
    VideoBlobRecord,
)

__all__ = [
    "Base",
    "TimestampMixin",
    "CourseRecord",
    "StudentProgressRecord",
    "ProfileRecord",
    "SyncQueueRecord",
    "VideoBlobRecord",
    "ReplicaMetadata",
]
