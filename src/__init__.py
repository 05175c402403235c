"""Vidyalehar offline sync engine.

Offline-first synchronization engine that keeps a local replica of courses,
lessons, student progress and profiles, queues writes made while offline and
reconciles them with the remote backend once connectivity returns.

Copyright (C) 2025 Global Digital Labs (gdlabs.io)
SPDX-License-Identifier: LGPL-3.0-or-later
"""

__version__ = "1.0.0"
