"""Test configuration and fixtures for the offline sale queue.

FakeRemote: in-memory remote store with failure injection
FakeSessions: session provider with a switchable user
FakeProbe: reachability probe with a switchable answer
Fixtures: pytest fixtures for unit and scenario tests
"""
import asyncio
from typing import Optional

import pytest

from tillsync.config import TillConfig
from tillsync.core import receipt
from tillsync.core.errors import RemoteError, RemoteUnavailableError
from tillsync.offline.actions import (
    InsertTransaction,
    TransactionHeader,
    TransactionLineItem,
)
from tillsync.offline.service import OfflineService
from tillsync.remote.session import Session, User
from tillsync.storage import MemoryKeyValueStore


class FakeRemote:
    """Remote store keyed by primary id; duplicate inserts are ignored."""

    def __init__(self):
        self.transactions: dict[str, dict] = {}
        self.items: dict[str, dict] = {}
        self.header_calls: list[str] = []
        self.item_calls: list[str] = []
        self.offline = False
        self.reject_headers: set[str] = set()
        self.reject_items_for: set[str] = set()
        self.gate: Optional[asyncio.Event] = None

    async def insert_transaction(self, header_row: dict) -> None:
        self.header_calls.append(header_row["id"])
        if self.gate is not None:
            await self.gate.wait()
        if self.offline:
            raise RemoteUnavailableError("network unreachable")
        if header_row["id"] in self.reject_headers:
            raise RemoteError("violates check constraint", code="23514", status=400)
        self.transactions.setdefault(header_row["id"], dict(header_row))

    async def insert_transaction_items(self, rows: list[dict]) -> None:
        if rows:
            self.item_calls.append(rows[0]["transaction_id"])
        if self.offline:
            raise RemoteUnavailableError("network unreachable")
        for row in rows:
            if row["transaction_id"] in self.reject_items_for:
                raise RemoteError("insert or update violates foreign key constraint",
                                  code="23503", status=409)
        for row in rows:
            self.items.setdefault(row["id"], dict(row))

    async def select(self, table: str, filters: Optional[dict] = None,
                     columns: str = "*") -> list[dict]:
        source = self.transactions if table == "transactions" else self.items
        rows = list(source.values())
        for column, value in (filters or {}).items():
            rows = [r for r in rows if r.get(column) == value]
        return rows

    def items_for(self, transaction_id: str) -> list[dict]:
        return [r for r in self.items.values() if r["transaction_id"] == transaction_id]


class FakeSessions:
    """Session provider; cached and live users can be switched independently."""

    def __init__(self, cached_user_id: Optional[str] = "user-1",
                 live_user_id: Optional[str] = None):
        self.cached_user_id = cached_user_id
        self.live_user_id = live_user_id
        self.live_calls = 0

    async def get_cached_session(self) -> Optional[Session]:
        if self.cached_user_id is None:
            return None
        return Session(user=User(id=self.cached_user_id), access_token="token")

    async def get_current_user(self) -> Optional[User]:
        self.live_calls += 1
        if self.live_user_id is None:
            return None
        return User(id=self.live_user_id)


class FakeProbe:
    def __init__(self, reachable: bool = True):
        self.reachable = reachable
        self.calls = 0

    async def __call__(self) -> bool:
        self.calls += 1
        return self.reachable


def make_action(total: float = 50000, user_id: Optional[str] = "user-1",
                header_id: str = "tx-1", n_items: int = 2) -> InsertTransaction:
    """Build an InsertTransaction with n_items equal lines summing to total."""
    price = total / n_items
    items = tuple(
        TransactionLineItem(
            id=f"{header_id}-item-{i}",
            product_id=f"prod-{i}",
            product_name=f"Product {i}",
            quantity=1,
            price=price,
            cost=price / 2,
        )
        for i in range(n_items)
    )
    header = TransactionHeader(
        id=header_id,
        user_id=user_id,
        total_amount=total,
        payment_method="cash",
    )
    return InsertTransaction(header=header, items=items)


@pytest.fixture(autouse=True)
def quiet_receipts(monkeypatch):
    """Keep receipts out of test output."""
    monkeypatch.setattr(receipt, "RECEIPTS_ENABLED", False)


@pytest.fixture
def storage() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


@pytest.fixture
def remote() -> FakeRemote:
    return FakeRemote()


@pytest.fixture
def sessions() -> FakeSessions:
    return FakeSessions()


@pytest.fixture
def probe() -> FakeProbe:
    return FakeProbe()


@pytest.fixture
def config(tmp_path) -> TillConfig:
    return TillConfig(
        data_dir=tmp_path,
        tenant_id="till-test",
        remote_url="https://pos.example.test",
        api_key="anon",
        watchdog_interval_s=3600,
    )


@pytest.fixture
def service(storage, remote, sessions, probe, config) -> OfflineService:
    return OfflineService(storage, remote, sessions, probe, config)
