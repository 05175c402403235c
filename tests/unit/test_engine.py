# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for engine wiring and lifecycle."""

from unittest.mock import patch

import httpx
import pytest

from src.core.config.settings import SyncSettings
from src.engine import OfflineSyncEngine
from src.infrastructure.events import EventData, EventPatterns


class TestOfflineSyncEngine:
    """Tests for OfflineSyncEngine."""

    @pytest.mark.asyncio
    async def test_lifecycle(self, settings, fake_remote) -> None:
        """Test the context manager opens and closes the replica."""
        engine = OfflineSyncEngine(settings, transport=httpx.MockTransport(fake_remote.handler), online=False)

        async with engine:
            assert engine.store.is_open
            assert engine.content.store is engine.store
            assert engine.replayer.remote is engine.remote

        assert not engine.store.is_open

    @pytest.mark.asyncio
    async def test_connectivity_events_drive_sync(self, settings, fake_remote) -> None:
        """Test set_online publishes an event that runs a full cycle."""
        received: list[str] = []

        async def capture(event: EventData) -> None:
            received.append(event.event_type)

        async with OfflineSyncEngine(
            settings, transport=httpx.MockTransport(fake_remote.handler), online=False
        ) as engine:
            engine.events.subscribe(EventPatterns.ALL, capture)

            await engine.set_online(True)
            await engine.set_online(False)

            assert not engine.mediator.is_online

        assert set(received) == {
            "connectivity.online",
            "sync.uplink.completed",
            "sync.downlink.completed",
            "connectivity.offline",
        }
        assert received.index("sync.uplink.completed") < received.index("sync.downlink.completed")
        assert received[-1] == "connectivity.offline"

    @pytest.mark.asyncio
    async def test_refresh_loop_started_and_stopped(self, settings, fake_remote) -> None:
        """Test a configured refresh interval starts the loop on open."""
        settings.sync = SyncSettings(refresh_interval_seconds=60)

        async with OfflineSyncEngine(settings, transport=httpx.MockTransport(fake_remote.handler)) as engine:
            assert engine.mediator._refresh_task is not None

        assert engine.mediator._refresh_task is None

    @pytest.mark.asyncio
    async def test_configure_logging_on_open(self, settings, fake_remote) -> None:
        """Test logging is only configured when requested."""
        transport = httpx.MockTransport(fake_remote.handler)

        with patch("src.engine.setup_logging") as mock_setup:
            async with OfflineSyncEngine(settings, transport=transport):
                pass
            async with OfflineSyncEngine(settings, transport=transport, configure_logging=True):
                pass

        mock_setup.assert_called_once_with(settings)
