# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Event infrastructure.

Components:
- EventBus: In-process pub/sub with pattern matching
- EventTypes: Event type constants
- EventPatterns: Wildcard subscription patterns

Quick Start:
    from src.infrastructure.events import EventBus, EventTypes

    bus = EventBus()
    bus.subscribe(EventTypes.Sync.DOWNLINK_FAILED, on_failure)
    await bus.publish(EventTypes.Connectivity.ONLINE)
"""

from src.infrastructure.events.bus import EventBus, EventData, EventHandler
from src.infrastructure.events.types import EventPatterns, EventTypes

__all__ = [
    "EventBus",
    "EventData",
    "EventHandler",
    "EventPatterns",
    "EventTypes",
]
