# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Sync domain package.

This package provides:
- UplinkReplayer: replays queued local mutations to the remote
- DownlinkReconciler: refreshes the local replica from remote snapshots
- ConnectivityMediator: runs replay then reconciliation on signals
- SyncQueueService: queue inspection, requeue and discard
"""

from src.domains.sync.mediator import ConnectivityMediator, SyncCycleResult
from src.domains.sync.queue import SyncQueueService
from src.domains.sync.reconciler import (
    DownlinkReconciler,
    DownlinkResult,
    DownlinkSyncError,
)
from src.domains.sync.replayer import UplinkFailure, UplinkReplayer, UplinkResult

__all__ = [
    "ConnectivityMediator",
    "DownlinkReconciler",
    "DownlinkResult",
    "DownlinkSyncError",
    "SyncCycleResult",
    "SyncQueueService",
    "UplinkFailure",
    "UplinkReplayer",
    "UplinkResult",
]
