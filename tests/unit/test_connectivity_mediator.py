# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for the connectivity mediator."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.domains.sync import (
    ConnectivityMediator,
    DownlinkResult,
    DownlinkSyncError,
    UplinkResult,
)
from src.infrastructure.events import EventBus, EventTypes


@pytest.fixture
def calls() -> list[str]:
    """Record of replay/reconcile invocations in order."""
    return []


@pytest.fixture
def replayer(calls: list[str]) -> MagicMock:
    """Create a mock uplink replayer."""
    mock = MagicMock()

    async def process() -> UplinkResult:
        calls.append("uplink")
        return UplinkResult()

    mock.process_sync_queue = AsyncMock(side_effect=process)
    return mock


@pytest.fixture
def reconciler(calls: list[str]) -> MagicMock:
    """Create a mock downlink reconciler."""
    mock = MagicMock()

    async def sync_down() -> DownlinkResult:
        calls.append("downlink")
        return DownlinkResult()

    mock.sync_down = AsyncMock(side_effect=sync_down)
    return mock


@pytest.fixture
def mediator(replayer: MagicMock, reconciler: MagicMock, event_bus: EventBus) -> ConnectivityMediator:
    """Create an attached mediator that starts offline."""
    instance = ConnectivityMediator(replayer, reconciler, event_bus, online=False)
    instance.attach()
    return instance


class TestTriggers:
    """Tests for what starts a cycle."""

    @pytest.mark.asyncio
    async def test_online_runs_uplink_then_downlink(
        self, mediator: ConnectivityMediator, event_bus: EventBus, calls: list[str]
    ) -> None:
        """Test going online replays before reconciling."""
        await event_bus.publish(EventTypes.Connectivity.ONLINE)

        assert mediator.is_online
        assert calls == ["uplink", "downlink"]

    @pytest.mark.asyncio
    async def test_repeated_online_is_not_a_transition(
        self, mediator: ConnectivityMediator, calls: list[str]
    ) -> None:
        """Test only the offline-to-online transition triggers."""
        await mediator.set_online(True)
        await mediator.set_online(True)

        assert calls == ["uplink", "downlink"]

    @pytest.mark.asyncio
    async def test_login_triggers_while_online(
        self, mediator: ConnectivityMediator, event_bus: EventBus, calls: list[str]
    ) -> None:
        """Test a login runs a cycle only while online."""
        await event_bus.publish(EventTypes.Session.LOGIN_SUCCEEDED, {"user_id": "t1"})
        assert calls == []

        await mediator.set_online(True)
        calls.clear()
        await event_bus.publish(EventTypes.Session.LOGIN_SUCCEEDED, {"user_id": "t1"})

        assert calls == ["uplink", "downlink"]

    @pytest.mark.asyncio
    async def test_offline_ignores_manual_cycle(self, mediator: ConnectivityMediator, calls: list[str]) -> None:
        """Test no remote work happens while offline."""
        assert await mediator.run_cycle() is None
        assert calls == []

    @pytest.mark.asyncio
    async def test_detach_stops_listening(
        self, mediator: ConnectivityMediator, event_bus: EventBus, calls: list[str]
    ) -> None:
        """Test a detached mediator ignores bus events."""
        mediator.detach()

        await event_bus.publish(EventTypes.Connectivity.ONLINE)

        assert calls == []
        assert not mediator.is_online


class TestSingleFlight:
    """Tests for overlapping triggers."""

    @pytest.mark.asyncio
    async def test_overlapping_triggers_fold_into_one_rerun(
        self, replayer: MagicMock, reconciler: MagicMock, calls: list[str]
    ) -> None:
        """Test triggers during a cycle cause exactly one more cycle."""
        release = asyncio.Event()
        started = asyncio.Event()

        async def slow_process() -> UplinkResult:
            calls.append("uplink")
            started.set()
            await release.wait()
            return UplinkResult()

        replayer.process_sync_queue = AsyncMock(side_effect=slow_process)
        mediator = ConnectivityMediator(replayer, reconciler, online=True)

        first = asyncio.create_task(mediator.run_cycle("first"))
        await started.wait()
        assert mediator.is_syncing

        assert await mediator.run_cycle("second") is None
        assert await mediator.run_cycle("third") is None
        release.set()
        result = await first

        assert calls == ["uplink", "downlink", "uplink", "downlink"]
        assert result.reason == "rerun"
        assert not mediator.is_syncing

    @pytest.mark.asyncio
    async def test_going_offline_cancels_pending_rerun(
        self, replayer: MagicMock, reconciler: MagicMock, calls: list[str]
    ) -> None:
        """Test a rerun scheduled before going offline is dropped."""
        release = asyncio.Event()
        started = asyncio.Event()

        async def slow_process() -> UplinkResult:
            calls.append("uplink")
            started.set()
            await release.wait()
            return UplinkResult()

        replayer.process_sync_queue = AsyncMock(side_effect=slow_process)
        mediator = ConnectivityMediator(replayer, reconciler, online=True)

        first = asyncio.create_task(mediator.run_cycle("first"))
        await started.wait()
        await mediator.run_cycle("second")
        await mediator.set_online(False)
        release.set()
        await first

        assert calls == ["uplink", "downlink"]


class TestFailures:
    """Tests for cycles that fail part way."""

    @pytest.mark.asyncio
    async def test_downlink_failure_is_reported(
        self, replayer: MagicMock, reconciler: MagicMock
    ) -> None:
        """Test a downlink error ends the cycle without raising."""
        reconciler.sync_down = AsyncMock(side_effect=DownlinkSyncError("Downlink sync aborted"))
        mediator = ConnectivityMediator(replayer, reconciler, online=True)

        result = await mediator.run_cycle()

        assert result.uplink is not None
        assert result.downlink is None
        assert result.error == "Downlink sync aborted"
        assert not result.success

    @pytest.mark.asyncio
    async def test_uplink_crash_skips_downlink(
        self, replayer: MagicMock, reconciler: MagicMock
    ) -> None:
        """Test the snapshot is not applied when the queue could not be replayed."""
        replayer.process_sync_queue = AsyncMock(side_effect=RuntimeError("disk I/O error"))
        mediator = ConnectivityMediator(replayer, reconciler, online=True)

        result = await mediator.run_cycle()

        assert result.error == "disk I/O error"
        reconciler.sync_down.assert_not_called()


class TestPeriodicRefresh:
    """Tests for the refresh loop."""

    @pytest.mark.asyncio
    async def test_refresh_runs_cycles(self, replayer: MagicMock, reconciler: MagicMock) -> None:
        """Test the loop triggers cycles while online and stops cleanly."""
        mediator = ConnectivityMediator(replayer, reconciler, refresh_interval=0.01, online=True)

        mediator.start()
        await asyncio.sleep(0.05)
        await mediator.stop()

        assert replayer.process_sync_queue.await_count >= 1
        count = replayer.process_sync_queue.await_count
        await asyncio.sleep(0.03)
        assert replayer.process_sync_queue.await_count == count

    @pytest.mark.asyncio
    async def test_no_interval_no_loop(self, replayer: MagicMock, reconciler: MagicMock) -> None:
        """Test start is a no-op without an interval."""
        mediator = ConnectivityMediator(replayer, reconciler, online=True)

        mediator.start()
        await mediator.stop()

        replayer.process_sync_queue.assert_not_called()
