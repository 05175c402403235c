# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for the event bus."""

import pytest

from src.infrastructure.events import EventBus, EventData, EventPatterns, EventTypes


class TestPublish:
    """Tests for subscription matching and delivery."""

    @pytest.mark.asyncio
    async def test_exact_and_pattern_subscribers(self, event_bus: EventBus) -> None:
        """Test exact and wildcard handlers both receive matching events."""
        exact: list[EventData] = []
        pattern: list[EventData] = []

        async def on_exact(event: EventData) -> None:
            exact.append(event)

        async def on_pattern(event: EventData) -> None:
            pattern.append(event)

        event_bus.subscribe(EventTypes.Sync.UPLINK_COMPLETED, on_exact)
        event_bus.subscribe(EventPatterns.ALL_SYNC, on_pattern)

        await event_bus.publish(EventTypes.Sync.UPLINK_COMPLETED, {"processed": 2})
        await event_bus.publish(EventTypes.Sync.DOWNLINK_FAILED, {"error": "x"})
        await event_bus.publish(EventTypes.Connectivity.ONLINE)

        assert [e.payload for e in exact] == [{"processed": 2}]
        assert [e.event_type for e in pattern] == [
            EventTypes.Sync.UPLINK_COMPLETED,
            EventTypes.Sync.DOWNLINK_FAILED,
        ]

    @pytest.mark.asyncio
    async def test_failing_handler_is_isolated(self, event_bus: EventBus) -> None:
        """Test one handler raising does not stop the others or the publisher."""
        received: list[str] = []

        async def broken(event: EventData) -> None:
            raise RuntimeError("handler bug")

        async def healthy(event: EventData) -> None:
            received.append(event.event_type)

        event_bus.subscribe(EventTypes.Connectivity.ONLINE, broken)
        event_bus.subscribe(EventTypes.Connectivity.ONLINE, healthy)

        event = await event_bus.publish(EventTypes.Connectivity.ONLINE)

        assert received == [EventTypes.Connectivity.ONLINE]
        assert event.payload == {}

    @pytest.mark.asyncio
    async def test_unsubscribe(self, event_bus: EventBus) -> None:
        """Test unsubscribed handlers stop receiving events."""
        received: list[EventData] = []

        async def handler(event: EventData) -> None:
            received.append(event)

        event_bus.subscribe(EventPatterns.ALL, handler)

        assert event_bus.unsubscribe(EventPatterns.ALL, handler) is True
        assert event_bus.unsubscribe(EventPatterns.ALL, handler) is False
        await event_bus.publish(EventTypes.Connectivity.OFFLINE)
        assert received == []

    @pytest.mark.asyncio
    async def test_stats(self, event_bus: EventBus) -> None:
        """Test stats count handlers and published events."""

        async def handler(event: EventData) -> None:
            return None

        event_bus.subscribe(EventTypes.Connectivity.ONLINE, handler)
        event_bus.subscribe(EventPatterns.ALL_SYNC, handler)
        await event_bus.publish(EventTypes.Connectivity.ONLINE)

        stats = event_bus.get_stats()

        assert stats["total_handlers"] == 2
        assert stats["events_published"] == 1
        assert stats["patterns"] == [EventPatterns.ALL_SYNC]

        event_bus.clear()
        assert event_bus.get_stats()["total_handlers"] == 0
