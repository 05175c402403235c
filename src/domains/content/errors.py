# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Content domain exceptions."""


class ContentServiceError(Exception):
    """Base exception for content service errors."""

    pass


class CourseNotFoundError(ContentServiceError):
    """Raised when a course is not in the local replica."""

    pass


class LessonNotFoundError(ContentServiceError):
    """Raised when a lesson is not part of its course."""

    pass


class LessonDownloadError(ContentServiceError):
    """Raised when a lesson video cannot be downloaded."""

    pass
