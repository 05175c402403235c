# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Progress domain package.

This package provides:
- Quiz attempt recording with queued upload
- Progress aggregate rules (completion, mean score, score history)
- Progress reads per student and per class
"""

from src.domains.progress.service import (
    InvalidScoreError,
    ProgressService,
    ProgressServiceError,
)

__all__ = [
    "InvalidScoreError",
    "ProgressService",
    "ProgressServiceError",
]
