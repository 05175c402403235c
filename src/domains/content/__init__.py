# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Content domain package.

This package provides course and lesson management against the local
replica, including offline videos and content search.
"""

from src.domains.content.errors import (
    ContentServiceError,
    CourseNotFoundError,
    LessonDownloadError,
    LessonNotFoundError,
)
from src.domains.content.service import ContentService

__all__ = [
    "ContentService",
    "ContentServiceError",
    "CourseNotFoundError",
    "LessonDownloadError",
    "LessonNotFoundError",
]
