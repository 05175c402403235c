# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Domain services layer.

Domains:
    content: Courses, lessons, offline videos and search.
    progress: Quiz attempts and progress aggregates.
    profile: Profile lookups.
    sync: Queue replay, downlink reconciliation and connectivity handling.
"""
