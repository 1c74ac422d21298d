"""Offline service lifecycle.

Owns the queue, the connectivity monitor and the processor for the life of
the process, and wires the offline-to-online edge to an automatic sync.
"""
import logging
from typing import Optional

from tillsync.config import TillConfig
from tillsync.offline.connectivity import ConnectivityMonitor, Probe
from tillsync.offline.processor import QueueProcessor, SyncReport
from tillsync.offline.queue import ActionQueue
from tillsync.remote.client import RemoteStore, RestRemoteStore
from tillsync.remote.probe import HttpProbe
from tillsync.remote.session import CachedSessionProvider, SessionProvider
from tillsync.storage import FileKeyValueStore, KeyValueStore

logger = logging.getLogger("tillsync.offline")


class OfflineService:
    """Initialized once at start-up, torn down only at shutdown."""

    def __init__(
        self,
        storage: KeyValueStore,
        remote: RemoteStore,
        sessions: SessionProvider,
        probe: Probe,
        config: Optional[TillConfig] = None,
    ):
        self.config = config or TillConfig()
        self.storage = storage
        self.remote = remote
        self.sessions = sessions

        tenant_id = self.config.tenant_id
        self.queue = ActionQueue(storage, tenant_id=tenant_id)
        self.monitor = ConnectivityMonitor(
            storage,
            probe,
            watchdog_interval_s=self.config.watchdog_interval_s,
            tenant_id=tenant_id,
        )
        self.processor = QueueProcessor(
            self.queue, remote, sessions, storage, tenant_id=tenant_id,
        )
        self._unsubscribe = None
        self._started = False

    @property
    def is_online(self) -> bool:
        return self.monitor.is_online

    @property
    def pending_count(self) -> int:
        return len(self.queue)

    async def start(self, auto_sync: bool = True) -> None:
        """Load the persisted queue, then start watching connectivity.

        Args:
            auto_sync: Drain the queue whenever connectivity comes back.
                One-shot tools pass False and sync explicitly.
        """
        if self._started:
            return
        await self.queue.load()
        await self.processor.ledger.load()
        if auto_sync:
            self._unsubscribe = self.monitor.subscribe(self._on_connectivity_change)
        self._started = True
        await self.monitor.start()

    async def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        await self.monitor.stop()
        self._started = False

    async def sync_now(self) -> SyncReport:
        """Manual sync from the pending-sales indicator."""
        return await self.processor.sync()

    def status(self) -> dict:
        return {
            "is_online": self.monitor.is_online,
            "is_manual_override_enabled": self.monitor.is_manual_override_enabled,
            "is_syncing": self.processor.is_syncing,
            "pending_count": self.pending_count,
            "stalled": self.processor.stalled_ids(),
        }

    def _on_connectivity_change(self, online: bool) -> None:
        # Edge-triggered: only the offline -> online flip drains the queue
        if online and len(self.queue) > 0:
            logger.info("Back online with %d pending actions, syncing", len(self.queue))
            self.processor.trigger()


def create_service(config: TillConfig) -> OfflineService:
    """Wire the production collaborators from configuration."""
    storage = FileKeyValueStore(config.data_dir)
    sessions = CachedSessionProvider(storage, config)
    remote = RestRemoteStore(config, token_provider=lambda: sessions.access_token)
    return OfflineService(storage, remote, sessions, HttpProbe(config), config)
