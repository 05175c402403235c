# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""User profile model."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class UserRole(str, Enum):
    """Role of an authenticated user."""

    STUDENT = "student"
    TEACHER = "teacher"


class Profile(BaseModel):
    """Public profile of a user.

    ``class_number`` maps to the remote ``class`` column.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str
    username: str
    role: UserRole
    class_number: int = Field(alias="class")
