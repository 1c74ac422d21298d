"""Connectivity monitoring.

Produces one "usable network available" signal from two inputs:
- the live network state pushed by the platform's event source, confirmed
  by a reachability probe against the backend
- the operator's manual offline override, persisted across restarts

Listeners are notified only when the combined signal changes, so the
offline-to-online edge can trigger a queue drain exactly once.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from tillsync.core.constants import MANUAL_OFFLINE_KEY, WATCHDOG_INTERVAL_S
from tillsync.core.receipt import emit_receipt
from tillsync.storage import KeyValueStore

logger = logging.getLogger("tillsync.offline")

Probe = Callable[[], Awaitable[bool]]
OnlineListener = Callable[[bool], None]


@dataclass(frozen=True)
class NetworkState:
    """Platform network state. None means "unknown"."""
    is_connected: bool = True
    is_internet_reachable: Optional[bool] = None


class ConnectivityMonitor:
    """Combines the live network signal with the manual offline override."""

    def __init__(
        self,
        storage: KeyValueStore,
        probe: Probe,
        watchdog_interval_s: float = WATCHDOG_INTERVAL_S,
        tenant_id: str = "default",
    ):
        self.storage = storage
        self.probe = probe
        self.watchdog_interval_s = watchdog_interval_s
        self.tenant_id = tenant_id

        # Offline until the first check proves otherwise
        self._is_online = False
        self._manual_override = False
        self._network_state = NetworkState()
        self._listeners: list[OnlineListener] = []
        self._watchdog: Optional[asyncio.Task] = None
        # Bumped by every evaluation; a result from an older one is stale
        self._generation = 0

    @property
    def is_online(self) -> bool:
        return self._is_online

    @property
    def is_manual_override_enabled(self) -> bool:
        return self._manual_override

    @property
    def network_state(self) -> NetworkState:
        return self._network_state

    def subscribe(self, listener: OnlineListener) -> Callable[[], None]:
        """Register a listener called with the new value on every change.

        Returns:
            Function that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def start(self) -> None:
        """Load the persisted override, run the first check, start the watchdog."""
        stored = await self.storage.get(MANUAL_OFFLINE_KEY)
        self._manual_override = stored == "true"
        if self._manual_override:
            logger.info("Manual offline override is enabled")

        await self.refresh()

        if self._watchdog is None:
            self._watchdog = asyncio.create_task(self._watchdog_loop())

    async def stop(self) -> None:
        if self._watchdog is not None:
            self._watchdog.cancel()
            try:
                await self._watchdog
            except asyncio.CancelledError:
                pass
            self._watchdog = None

    async def handle_network_event(self, state: NetworkState) -> bool:
        """Callback for the platform event source."""
        logger.debug("Network event: connected=%s reachable=%s",
                     state.is_connected, state.is_internet_reachable)
        self._network_state = state
        return await self.refresh()

    async def refresh(self) -> bool:
        """Re-evaluate the combined signal.

        Returns:
            The new is_online value
        """
        self._generation += 1
        generation = self._generation
        online = await self._evaluate()
        if generation != self._generation:
            logger.debug("Dropping stale connectivity result: %s", online)
            return self._is_online
        self._set_online(online)
        return online

    async def set_manual_override(self, enabled: bool) -> None:
        """Force offline (or release). Persists the choice immediately.

        Releasing the override re-queries the live signal instead of
        assuming online.
        """
        await self.storage.set(MANUAL_OFFLINE_KEY, "true" if enabled else "false")
        self._manual_override = enabled

        emit_receipt("manual_override", {
            "tenant_id": self.tenant_id,
            "enabled": enabled,
        })

        if enabled:
            self._generation += 1
            self._set_online(False)
        else:
            await self.refresh()

    async def _evaluate(self) -> bool:
        if self._manual_override:
            return False

        state = self._network_state
        if not state.is_connected:
            return False
        if state.is_internet_reachable is False:
            return False

        reachable = await self.probe()
        # Override may have been switched on while the probe was in flight
        if self._manual_override:
            return False
        return reachable

    def _set_online(self, online: bool) -> None:
        if online == self._is_online:
            return

        self._is_online = online
        logger.info("Connectivity changed: %s", "online" if online else "offline")
        emit_receipt("connectivity_change", {
            "tenant_id": self.tenant_id,
            "is_online": online,
            "manual_override": self._manual_override,
        })

        for listener in list(self._listeners):
            listener(online)

    async def _watchdog_loop(self) -> None:
        # Catches "connected but no internet" transitions the event source misses
        while True:
            await asyncio.sleep(self.watchdog_interval_s)
            try:
                await self.refresh()
            except Exception as e:
                logger.error("Connectivity check failed: %s", e, exc_info=e)
