# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Event type constants.

Payloads:
- connectivity.online / connectivity.offline: {}
- session.login.succeeded: {"user_id": str}
- sync.uplink.completed: UplinkResult.to_dict()
- sync.downlink.completed: DownlinkResult.to_dict()
- sync.downlink.failed: {"error": str}
- sync.queue.item_failed: {"entry_id", "mutation_type", "attempts",
  "error", "dead_lettered"}
"""


class EventTypes:
    """All event types organized by domain."""

    class Connectivity:
        """Network reachability signals."""

        ONLINE = "connectivity.online"
        OFFLINE = "connectivity.offline"

    class Session:
        """Authentication signals."""

        LOGIN_SUCCEEDED = "session.login.succeeded"

    class Sync:
        """Sync outcomes."""

        UPLINK_COMPLETED = "sync.uplink.completed"
        DOWNLINK_COMPLETED = "sync.downlink.completed"
        DOWNLINK_FAILED = "sync.downlink.failed"
        QUEUE_ITEM_FAILED = "sync.queue.item_failed"


class EventPatterns:
    """Wildcard patterns for subscribing to groups of events."""

    ALL_CONNECTIVITY = "connectivity.*"
    ALL_SYNC = "sync.*"
    ALL = "*"
