"""Offline mode: keep selling when the network does not.

Sales that cannot be written remotely are queued on the device and replayed
when connectivity returns.

Usage:
    from tillsync.offline import OfflineService

    service = OfflineService(storage, remote, sessions, probe, config)
    await service.start()

    # Pending badge
    service.pending_count

    # Manual sync
    report = await service.sync_now()
"""
from tillsync.offline.actions import (
    ACTION_TYPES,
    InsertTransaction,
    QueuedAction,
    RawAction,
    TransactionHeader,
    TransactionLineItem,
)
from tillsync.offline.queue import ActionQueue
from tillsync.offline.connectivity import ConnectivityMonitor, NetworkState
from tillsync.offline.processor import QueueProcessor, RetryLedger, SyncReport
from tillsync.offline.service import OfflineService

__all__ = [
    # Actions
    "ACTION_TYPES",
    "InsertTransaction",
    "QueuedAction",
    "RawAction",
    "TransactionHeader",
    "TransactionLineItem",
    # Queue
    "ActionQueue",
    # Connectivity
    "ConnectivityMonitor",
    "NetworkState",
    # Sync
    "QueueProcessor",
    "RetryLedger",
    "SyncReport",
    # Lifecycle
    "OfflineService",
]
