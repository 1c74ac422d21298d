"""End-to-end scenarios for selling through a connectivity outage."""
import asyncio

from tillsync.checkout import Cart, Product, TransactionRecorder
from tillsync.offline.queue import ActionQueue
from tillsync.offline.service import OfflineService
from tillsync.storage import FileKeyValueStore

from conftest import FakeProbe, FakeRemote, FakeSessions


def two_items() -> Cart:
    cart = Cart()
    cart.add_item(Product(id="p-kopi", name="Kopi", price=15000, cost=5000))
    cart.add_item(Product(id="p-roti", name="Roti", price=35000, cost=20000))
    return cart


class TestOfflineCheckoutScenario:
    """Ring up while offline, reconnect, sync."""

    def test_sale_survives_outage(self, service, remote, probe):
        """2 items totaling 50,000 sold offline sync once the network returns."""
        synced_counts = []

        async def run():
            probe.reachable = False
            await service.start()
            recorder = TransactionRecorder(service)

            result = await recorder.record_sale(two_items(), "cash", received_amount=50000)
            assert result.success and result.queued
            assert service.pending_count == 1

            probe.reachable = True
            await service.monitor.refresh()
            report = await service.processor._task
            synced_counts.append(report.synced_count)
            await service.stop()
            return result

        result = asyncio.run(run())
        assert synced_counts == [1]
        assert service.pending_count == 0
        header = remote.transactions[result.transaction_id]
        assert header["total_amount"] == 50000
        assert len(remote.items_for(result.transaction_id)) == 2


class TestCrashDurability:
    """Queued sales survive a restart without connectivity."""

    def test_offline_sale_present_once_after_restart(self, tmp_path, config):
        async def before_crash():
            storage = FileKeyValueStore(tmp_path)
            service = OfflineService(storage, FakeRemote(), FakeSessions(),
                                     FakeProbe(False), config)
            await service.start()
            result = await TransactionRecorder(service).record_sale(two_items(), "cash")
            await service.stop()
            return result.transaction_id

        async def after_restart():
            queue = ActionQueue(FileKeyValueStore(tmp_path))
            return await queue.load()

        transaction_id = asyncio.run(before_crash())
        actions = asyncio.run(after_restart())

        assert [a.action.header.id for a in actions] == [transaction_id]


class TestIdentifierReuse:
    """A failed direct write replayed from the queue yields one header."""

    def test_single_header_after_fallback_and_sync(self, service, remote):
        async def run():
            await service.start(auto_sync=False)
            # Header lands, items fail: the direct write as a whole fails
            remote.reject_items_for = _Everything()
            result = await TransactionRecorder(service).record_sale(two_items(), "cash")
            assert result.queued

            remote.reject_items_for = set()
            report = await service.sync_now()
            await service.stop()
            return result, report

        result, report = asyncio.run(run())
        assert report.synced_count == 1
        assert remote.header_calls == [result.transaction_id, result.transaction_id]
        assert list(remote.transactions) == [result.transaction_id]
        assert len(remote.items_for(result.transaction_id)) == 2


class _Everything(set):
    def __contains__(self, item):
        return True
