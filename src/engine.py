# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Composition root for the offline sync engine.

OfflineSyncEngine builds the local replica store, the remote client, the
domain services and the sync components from Settings, and owns their
lifecycle.

Example:
    async with OfflineSyncEngine(get_settings()) as engine:
        course = await engine.content.save_course(draft, author_id="teacher_1")
        await engine.set_online(True)  # replays the queue, then refreshes
"""

import logging

import httpx

from src.core.config.settings import Settings, get_settings
from src.domains.content import ContentService
from src.domains.profile import ProfileService
from src.domains.progress import ProgressService
from src.domains.sync import (
    ConnectivityMediator,
    DownlinkReconciler,
    SyncCycleResult,
    SyncQueueService,
    UplinkReplayer,
)
from src.infrastructure.database import LocalReplicaStore
from src.infrastructure.events import EventBus, EventTypes
from src.infrastructure.remote import RemoteClient
from src.utils.logging import setup_logging

logger = logging.getLogger(__name__)


class OfflineSyncEngine:
    """Wires and owns every engine component.

    Attributes:
        settings: Engine settings.
        events: Event bus carrying connectivity, login and sync events.
        store: Local replica store.
        remote: Remote client.
        content: Course and lesson service.
        progress: Student progress service.
        profiles: Profile service.
        queue: Mutation queue inspection.
        replayer: Uplink replayer.
        reconciler: Downlink reconciler.
        mediator: Connectivity mediator.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        event_bus: EventBus | None = None,
        online: bool = True,
        configure_logging: bool = False,
    ) -> None:
        """Initialize the engine without opening anything.

        Args:
            settings: Engine settings, defaults to get_settings().
            transport: Optional httpx transport for the remote client.
            event_bus: Event bus to use, a new one if None.
            online: Initial connectivity state.
            configure_logging: Whether open() installs the structlog setup.
        """
        self.settings = settings or get_settings()
        self._configure_logging = configure_logging
        self.events = event_bus or EventBus()
        self.store = LocalReplicaStore.from_settings(self.settings.local_store)
        self.remote = RemoteClient(self.settings.remote, transport=transport)

        self.content = ContentService(self.store, self.remote)
        self.progress = ProgressService(self.store)
        self.profiles = ProfileService(self.store)
        self.queue = SyncQueueService(self.store)

        self.replayer = UplinkReplayer(
            self.store,
            self.remote,
            settings=self.settings.sync,
            event_bus=self.events,
        )
        self.reconciler = DownlinkReconciler(self.store, self.remote, event_bus=self.events)
        self.mediator = ConnectivityMediator(
            self.replayer,
            self.reconciler,
            event_bus=self.events,
            refresh_interval=self.settings.sync.refresh_interval_seconds,
            online=online,
        )

    async def open(self) -> None:
        """Open the local replica and start listening for signals."""
        if self._configure_logging:
            setup_logging(self.settings)
        await self.store.open()
        self.mediator.attach()
        self.mediator.start()
        logger.info("Offline sync engine started (%s)", self.settings.environment)

    async def close(self) -> None:
        """Stop background work and release every resource."""
        await self.mediator.stop()
        self.mediator.detach()
        await self.remote.close()
        await self.store.close()
        logger.info("Offline sync engine stopped")

    async def __aenter__(self) -> "OfflineSyncEngine":
        await self.open()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def set_online(self, online: bool) -> None:
        """Publish a connectivity change."""
        event_type = EventTypes.Connectivity.ONLINE if online else EventTypes.Connectivity.OFFLINE
        await self.events.publish(event_type, {})

    async def notify_login(self, user_id: str) -> None:
        """Publish a successful login."""
        await self.events.publish(EventTypes.Session.LOGIN_SUCCEEDED, {"user_id": user_id})

    async def sync_now(self) -> SyncCycleResult | None:
        """Run a sync cycle immediately (ignored while offline)."""
        return await self.mediator.run_cycle("manual")
