# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Profile domain package."""

from src.domains.profile.service import ProfileService

__all__ = ["ProfileService"]
