"""Queue processor: drains the offline queue against the remote store.

Sync pass:
1. Refuse to start if a pass is already running
2. Snapshot the queue (later arrivals wait for the next pass)
3. Apply each action in FIFO order; a failure is recorded and the pass
   moves on to the next action
4. Remove every applied action, keep everything else
5. Report how many were applied

Failed actions are retried on every later pass. They are never dropped;
ones that keep failing are reported as stalled.
"""
import asyncio
import json
import logging
from dataclasses import asdict, dataclass, field
from typing import Callable, Optional

from tillsync.core.constants import (
    RETRY_LEDGER_KEY,
    SELECTED_BRANCH_KEY,
    STALE_ATTEMPTS_THRESHOLD,
)
from tillsync.core.errors import UnknownActionError
from tillsync.core.receipt import emit_receipt, now_ms
from tillsync.offline.actions import InsertTransaction, QueuedAction
from tillsync.offline.queue import ActionQueue
from tillsync.remote.client import RemoteStore
from tillsync.remote.session import SessionProvider, resolve_user_id
from tillsync.storage import KeyValueStore

logger = logging.getLogger("tillsync.offline")

SyncingListener = Callable[[bool], None]


@dataclass
class SyncReport:
    """Outcome of one sync pass."""
    success: bool = True
    reason: str = "complete"
    skipped: bool = False
    attempted: int = 0
    synced_count: int = 0
    synced_ids: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)
    remaining: int = 0
    stalled: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


class RetryLedger:
    """Per-action failure bookkeeping, persisted beside the queue.

    Kept apart from the queue so queued actions stay immutable.
    """

    def __init__(self, storage: KeyValueStore, key: str = RETRY_LEDGER_KEY):
        self.storage = storage
        self.key = key
        self.entries: dict[str, dict] = {}
        self._loaded = False

    async def load(self) -> None:
        if self._loaded:
            return
        raw = await self.storage.get(self.key)
        try:
            self.entries = json.loads(raw) if raw else {}
        except ValueError:
            logger.warning("Retry ledger unreadable, starting fresh")
            self.entries = {}
        self._loaded = True

    def get(self, action_id: str) -> Optional[dict]:
        return self.entries.get(action_id)

    def attempts(self, action_id: str) -> int:
        return self.entries.get(action_id, {}).get("attempts", 0)

    def record_failure(self, action_id: str, error: str) -> int:
        entry = self.entries.setdefault(action_id, {"attempts": 0})
        entry["attempts"] += 1
        entry["last_error"] = error
        entry["last_attempt"] = now_ms()
        return entry["attempts"]

    def clear(self, action_ids) -> None:
        for action_id in action_ids:
            self.entries.pop(action_id, None)

    def prune(self, live_ids) -> None:
        """Drop entries for actions no longer queued."""
        live = set(live_ids)
        self.entries = {k: v for k, v in self.entries.items() if k in live}

    async def save(self) -> None:
        await self.storage.set(self.key, json.dumps(self.entries, sort_keys=True))


class QueueProcessor:
    """Applies queued actions remotely, one handler per action kind."""

    def __init__(
        self,
        queue: ActionQueue,
        remote: RemoteStore,
        sessions: SessionProvider,
        storage: KeyValueStore,
        tenant_id: str = "default",
    ):
        self.queue = queue
        self.remote = remote
        self.sessions = sessions
        self.storage = storage
        self.tenant_id = tenant_id
        self.ledger = RetryLedger(storage)
        self.last_report: Optional[SyncReport] = None

        self._syncing = False
        self._task: Optional[asyncio.Task] = None
        self._listeners: list[SyncingListener] = []
        self._handlers = {
            InsertTransaction: self._apply_insert_transaction,
        }

    @property
    def is_syncing(self) -> bool:
        return self._syncing

    def subscribe(self, listener: SyncingListener) -> Callable[[], None]:
        """Register a listener called with is_syncing whenever it flips."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def trigger(self) -> Optional[asyncio.Task]:
        """Start a background pass unless one is already running.

        Returns:
            The new task, or None when a pass is in progress
        """
        if self._syncing or (self._task is not None and not self._task.done()):
            logger.debug("Sync already in progress, trigger ignored")
            return None

        self._task = asyncio.create_task(self.sync())
        self._task.add_done_callback(self._log_task_failure)
        return self._task

    async def sync(self) -> SyncReport:
        """Run one sync pass over a snapshot of the queue."""
        if self._syncing:
            return SyncReport(
                skipped=True,
                reason="already_syncing",
                remaining=len(self.queue),
            )

        # Set before the first await: this flag is the only mutual exclusion
        self._set_syncing(True)
        snapshot = self.queue.list()
        synced: list[str] = []
        failed: dict[str, str] = {}

        try:
            if not snapshot:
                report = SyncReport(reason="queue_empty")
                self.last_report = report
                return report

            await self.ledger.load()
            logger.info("Processing %d offline actions", len(snapshot))

            for queued in snapshot:
                try:
                    await self._apply(queued)
                except Exception as e:
                    error = _describe(e)
                    attempts = self.ledger.record_failure(queued.id, error)
                    failed[queued.id] = error
                    logger.warning("Failed to sync action %s (attempt %d): %s",
                                   queued.id, attempts, error)
                else:
                    synced.append(queued.id)
                    logger.info("Synced %s action %s", queued.type, queued.id)
        finally:
            try:
                if synced:
                    await self.queue.remove_many(synced)
                    self.ledger.clear(synced)
                if synced or failed:
                    await self._save_ledger()
            finally:
                self._set_syncing(False)

        remaining_ids = [a.id for a in self.queue.list()]
        report = SyncReport(
            success=True,
            reason="partial" if failed else "complete",
            attempted=len(snapshot),
            synced_count=len(synced),
            synced_ids=synced,
            failed=failed,
            remaining=len(remaining_ids),
            stalled=self.stalled_ids(),
        )
        self.last_report = report

        emit_receipt("offline_sync", {
            "tenant_id": self.tenant_id,
            "attempted": report.attempted,
            "synced_count": report.synced_count,
            "failed_count": len(failed),
            "remaining": report.remaining,
            "stalled_count": len(report.stalled),
        })
        return report

    def stalled_ids(self) -> list[str]:
        """Queued actions that failed at least STALE_ATTEMPTS_THRESHOLD passes."""
        return [
            a.id for a in self.queue.list()
            if self.ledger.attempts(a.id) >= STALE_ATTEMPTS_THRESHOLD
        ]

    async def _apply(self, queued: QueuedAction) -> None:
        handler = self._handlers.get(type(queued.action))
        if handler is None:
            raise UnknownActionError(f"No handler for action type {queued.type}")
        await handler(queued.action)

    async def _apply_insert_transaction(self, action: InsertTransaction) -> None:
        header = action.header
        patches = {}

        # Sale queued before the session user was known
        if not header.user_id:
            user_id = await resolve_user_id(self.sessions)
            if user_id:
                logger.info("Patching missing user_id for sync: %s", user_id)
                patches["user_id"] = user_id

        if not header.branch_id:
            branch_id = await self.storage.get(SELECTED_BRANCH_KEY)
            if branch_id:
                logger.info("Patching missing branch_id for sync: %s", branch_id)
                patches["branch_id"] = branch_id

        if patches:
            action = action.with_header(**patches)

        await self.remote.insert_transaction(action.header.to_row())
        await self.remote.insert_transaction_items(
            [item.to_row(action.header.id) for item in action.items]
        )

    async def _save_ledger(self) -> None:
        self.ledger.prune(a.id for a in self.queue.list())
        try:
            await self.ledger.save()
        except OSError as e:
            # Bookkeeping only; the queue itself is already persisted
            logger.error("Failed to persist retry ledger: %s", e)

    def _set_syncing(self, value: bool) -> None:
        if value == self._syncing:
            return
        self._syncing = value
        for listener in list(self._listeners):
            listener(value)

    def _log_task_failure(self, task: asyncio.Task) -> None:
        if task.cancelled():
            logger.info("Sync pass cancelled")
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Sync pass failed: %s", exc, exc_info=exc)


def _describe(error: Exception) -> str:
    message = getattr(error, "message", None) or str(error) or type(error).__name__
    code = getattr(error, "code", None)
    return f"{code}: {message}" if code else message
