"""Durable action queue for offline operation.

Ordered, persisted list of pending remote writes. Entries are appended by
enqueue and leave only through remove/remove_many after the processor has
applied them remotely.

Invariants:
- Every mutation persists the full new list before memory is updated
- Mutations are serialized (read-modify-persist is one step)
- FIFO order is never changed
"""
import asyncio
import json
import logging
from typing import Callable, Iterable, Optional

from tillsync.core.constants import QUEUE_STORAGE_KEY
from tillsync.core.errors import QueuePersistenceError
from tillsync.core.receipt import emit_receipt, new_id, now_ms
from tillsync.offline.actions import Action, QueuedAction
from tillsync.storage import KeyValueStore

logger = logging.getLogger("tillsync.offline")

QueueListener = Callable[[tuple[QueuedAction, ...]], None]


class ActionQueue:
    """FIFO queue of QueuedAction persisted under a single storage key."""

    def __init__(self, storage: KeyValueStore, tenant_id: str = "default",
                 key: str = QUEUE_STORAGE_KEY):
        self.storage = storage
        self.tenant_id = tenant_id
        self.key = key
        self._actions: tuple[QueuedAction, ...] = ()
        self._lock = asyncio.Lock()
        self._listeners: list[QueueListener] = []
        self._loaded = False

    def __len__(self) -> int:
        return len(self._actions)

    @property
    def loaded(self) -> bool:
        return self._loaded

    def list(self) -> tuple[QueuedAction, ...]:
        """Current pending actions, oldest first."""
        return self._actions

    def get(self, action_id: str) -> Optional[QueuedAction]:
        for action in self._actions:
            if action.id == action_id:
                return action
        return None

    def subscribe(self, listener: QueueListener) -> Callable[[], None]:
        """Register a listener called with the new snapshot after each change.

        Returns:
            Function that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def load(self) -> tuple[QueuedAction, ...]:
        """Repopulate memory from durable storage. Empty if nothing stored.

        Raises:
            QueuePersistenceError: storage unreadable or contents corrupt
        """
        async with self._lock:
            try:
                raw = await self.storage.get(self.key)
            except OSError as e:
                raise QueuePersistenceError(f"Cannot read offline queue: {e}") from e

            if not raw:
                self._actions = ()
            else:
                try:
                    self._actions = tuple(QueuedAction.from_dict(d) for d in json.loads(raw))
                except (ValueError, KeyError, TypeError) as e:
                    raise QueuePersistenceError(f"Offline queue is corrupt: {e}") from e

            self._loaded = True
            logger.info("Loaded %d pending actions", len(self._actions))
            self._notify()
            return self._actions

    async def enqueue(self, action: Action) -> QueuedAction:
        """Append an action for later remote application.

        Assigns a fresh local id and timestamp and persists the full list
        before returning.

        Raises:
            QueuePersistenceError: the list could not be persisted; the
                action is NOT queued
        """
        queued = QueuedAction(id=new_id(), action=action, timestamp=now_ms())

        async with self._lock:
            updated = self._actions + (queued,)
            await self._persist(updated)
            self._actions = updated

        logger.info("Queued %s action %s (%d pending)", queued.type, queued.id, len(updated))
        emit_receipt("offline_enqueue", {
            "tenant_id": self.tenant_id,
            "action_id": queued.id,
            "action_type": queued.type,
            "queue_size": len(updated),
        })
        self._notify()
        return queued

    async def remove(self, action_id: str) -> bool:
        """Remove one action by id. Returns False if it was not queued."""
        return await self.remove_many([action_id]) == 1

    async def remove_many(self, action_ids: Iterable[str]) -> int:
        """Remove every listed action, keeping all others in order.

        Returns:
            Number of actions removed
        """
        ids = set(action_ids)
        if not ids:
            return 0

        async with self._lock:
            updated = tuple(a for a in self._actions if a.id not in ids)
            removed = len(self._actions) - len(updated)
            if removed == 0:
                return 0
            await self._persist(updated)
            self._actions = updated

        emit_receipt("offline_remove", {
            "tenant_id": self.tenant_id,
            "removed_count": removed,
            "queue_size": len(updated),
        })
        self._notify()
        return removed

    async def _persist(self, actions: tuple[QueuedAction, ...]) -> None:
        data = json.dumps([a.to_dict() for a in actions])
        try:
            await self.storage.set(self.key, data)
        except OSError as e:
            logger.error("Failed to persist offline queue: %s", e)
            raise QueuePersistenceError(f"Cannot persist offline queue: {e}") from e

    def _notify(self) -> None:
        snapshot = self._actions
        for listener in list(self._listeners):
            listener(snapshot)
