# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Connectivity mediator: runs sync cycles on connectivity and login signals.

A sync cycle always replays the queue before reconciling the downlink, so
local writes reach the remote before the remote snapshot replaces the
replica.

Triggers:
- connectivity.online after being offline
- session.login.succeeded while online
- the optional periodic refresh while online

Cycles never overlap. A trigger arriving while a cycle runs schedules
exactly one more cycle after it. Triggers while offline are ignored.
"""

import asyncio
import contextlib
from dataclasses import dataclass

from src.domains.sync.reconciler import DownlinkReconciler, DownlinkResult
from src.domains.sync.replayer import UplinkReplayer, UplinkResult
from src.infrastructure.events import EventBus, EventData, EventTypes
from src.utils.logging import bind_context, clear_context, get_logger

logger = get_logger(__name__)


@dataclass
class SyncCycleResult:
    """Outcome of one replay + reconcile cycle.

    Attributes:
        reason: What triggered the cycle.
        uplink: Replay result, None if the replay raised.
        downlink: Reconciliation result, None if it raised or was skipped.
        error: Message of the error that ended the cycle early.
    """

    reason: str
    uplink: UplinkResult | None = None
    downlink: DownlinkResult | None = None
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.error is None and self.uplink is not None and self.downlink is not None


class ConnectivityMediator:
    """Sequences uplink replay and downlink reconciliation.

    Attributes:
        replayer: Uplink replayer.
        reconciler: Downlink reconciler.
    """

    def __init__(
        self,
        replayer: UplinkReplayer,
        reconciler: DownlinkReconciler,
        event_bus: EventBus | None = None,
        refresh_interval: float | None = None,
        online: bool = True,
    ) -> None:
        """Initialize the mediator.

        Args:
            replayer: Uplink replayer.
            reconciler: Downlink reconciler.
            event_bus: Bus delivering connectivity and login signals.
            refresh_interval: Seconds between periodic cycles, None to disable.
            online: Initial connectivity state.
        """
        self.replayer = replayer
        self.reconciler = reconciler
        self._event_bus = event_bus
        self._refresh_interval = refresh_interval
        self._online = online
        self._lock = asyncio.Lock()
        self._rerun = False
        self._refresh_task: asyncio.Task[None] | None = None
        self._attached = False

    @property
    def is_online(self) -> bool:
        return self._online

    @property
    def is_syncing(self) -> bool:
        return self._lock.locked()

    # =========================================================================
    # Event bus wiring
    # =========================================================================

    def attach(self) -> None:
        """Subscribe to connectivity and login events."""
        if self._event_bus is None or self._attached:
            return
        self._event_bus.subscribe(EventTypes.Connectivity.ONLINE, self._on_online)
        self._event_bus.subscribe(EventTypes.Connectivity.OFFLINE, self._on_offline)
        self._event_bus.subscribe(EventTypes.Session.LOGIN_SUCCEEDED, self._on_login)
        self._attached = True

    def detach(self) -> None:
        if self._event_bus is None or not self._attached:
            return
        self._event_bus.unsubscribe(EventTypes.Connectivity.ONLINE, self._on_online)
        self._event_bus.unsubscribe(EventTypes.Connectivity.OFFLINE, self._on_offline)
        self._event_bus.unsubscribe(EventTypes.Session.LOGIN_SUCCEEDED, self._on_login)
        self._attached = False

    async def _on_online(self, event: EventData) -> None:
        await self.set_online(True)

    async def _on_offline(self, event: EventData) -> None:
        await self.set_online(False)

    async def _on_login(self, event: EventData) -> None:
        await self.on_login(event.payload.get("user_id"))

    # =========================================================================
    # Signals
    # =========================================================================

    async def set_online(self, online: bool) -> SyncCycleResult | None:
        """Record a connectivity change. Going online starts a cycle."""
        was_online = self._online
        self._online = online
        if online and not was_online:
            logger.info("connectivity_restored")
            return await self.run_cycle("online")
        if not online and was_online:
            logger.info("connectivity_lost")
        return None

    async def on_login(self, user_id: str | None = None) -> SyncCycleResult | None:
        """Start a cycle after a successful login."""
        logger.info("login_succeeded", user_id=user_id)
        return await self.run_cycle("login")

    # =========================================================================
    # Cycles
    # =========================================================================

    async def run_cycle(self, reason: str = "manual") -> SyncCycleResult | None:
        """Run replay then reconciliation unless offline or already running.

        Returns:
            The result of the last cycle run by this call, None if the
            trigger was ignored or folded into a running cycle.
        """
        if not self._online:
            logger.debug("sync_trigger_ignored_offline", trigger=reason)
            return None
        if self._lock.locked():
            logger.debug("sync_rerun_scheduled", trigger=reason)
            self._rerun = True
            return None

        async with self._lock:
            result = await self._run_once(reason)
            while self._rerun and self._online:
                self._rerun = False
                result = await self._run_once("rerun")
            self._rerun = False
        return result

    async def _run_once(self, reason: str) -> SyncCycleResult:
        cycle = SyncCycleResult(reason=reason)
        bind_context(sync_trigger=reason)
        logger.info("sync_cycle_started")

        try:
            try:
                cycle.uplink = await self.replayer.process_sync_queue()
            except Exception as e:
                logger.exception("queue_replay_failed", error=str(e))
                cycle.error = str(e)
                return cycle

            try:
                cycle.downlink = await self.reconciler.sync_down()
            except Exception as e:
                logger.error("downlink_sync_failed", error=str(e))
                cycle.error = str(e)
                return cycle

            logger.info(
                "sync_cycle_finished",
                uplink_succeeded=cycle.uplink.succeeded,
                uplink_failed=cycle.uplink.failed,
                courses_synced=cycle.downlink.courses_synced,
            )
            return cycle
        finally:
            clear_context()

    # =========================================================================
    # Periodic refresh
    # =========================================================================

    def start(self) -> None:
        """Start the periodic refresh loop, if an interval is configured."""
        if self._refresh_interval is None or self._refresh_task is not None:
            return
        self._refresh_task = asyncio.create_task(self._refresh_loop())
        logger.info("periodic_sync_started", interval_seconds=self._refresh_interval)

    async def stop(self) -> None:
        """Stop the periodic refresh loop."""
        if self._refresh_task is None:
            return
        self._refresh_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._refresh_task
        self._refresh_task = None

    async def _refresh_loop(self) -> None:
        assert self._refresh_interval is not None
        while True:
            await asyncio.sleep(self._refresh_interval)
            if self._online:
                await self.run_cycle("refresh")
