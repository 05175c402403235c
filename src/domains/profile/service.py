# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Profile reads from the local replica.

Profiles are read-mostly: they arrive with each downlink and are never
written locally.
"""

from src.infrastructure.database.store import LocalReplicaStore
from src.models.profile import Profile, UserRole


class ProfileService:
    """Service for profile lookups."""

    def __init__(self, store: LocalReplicaStore) -> None:
        self.store = store

    async def get_profile(self, profile_id: str) -> Profile | None:
        async with self.store.transaction() as tx:
            return await tx.get_profile(profile_id)

    async def get_students_by_class(self, class_number: int) -> list[Profile]:
        async with self.store.transaction() as tx:
            return await tx.list_profiles(
                class_number=class_number,
                role=UserRole.STUDENT.value,
            )
