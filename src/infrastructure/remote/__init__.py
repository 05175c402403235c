# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Remote backend access.

RemoteClient talks to the PostgREST-style table API over httpx; the wire
module translates between nested local documents and flat remote rows.
"""

from src.infrastructure.remote.client import (
    REMOTE_TABLES,
    RemoteClient,
    RemoteError,
    RemoteTable,
)

__all__ = [
    "REMOTE_TABLES",
    "RemoteClient",
    "RemoteError",
    "RemoteTable",
]
