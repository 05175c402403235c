# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Infrastructure layer.

This package contains:
- database: SQLite local replica store (SQLAlchemy async)
- remote: HTTP client for the remote table backend (httpx)
- events: In-process event bus
"""
