"""Tests for durable key-value storage."""
import asyncio
import os
import threading

import pytest

from tillsync.storage import FileKeyValueStore, MemoryKeyValueStore


class TestFileKeyValueStore:
    """Test the file-backed store."""

    def test_missing_key_is_none(self, tmp_path):
        """Unknown keys read as None."""
        store = FileKeyValueStore(tmp_path / "state")
        assert asyncio.run(store.get("offline_queue")) is None

    def test_value_survives_new_instance(self, tmp_path):
        """A value written by one instance is read by the next."""
        asyncio.run(FileKeyValueStore(tmp_path).set("manual_offline_mode", "true"))
        assert asyncio.run(FileKeyValueStore(tmp_path).get("manual_offline_mode")) == "true"

    def test_overwrite_leaves_no_temp_files(self, tmp_path):
        """Atomic replace cleans up after itself."""
        store = FileKeyValueStore(tmp_path)

        async def run():
            await store.set("offline_queue", "[1]")
            await store.set("offline_queue", "[1, 2]")
            return await store.get("offline_queue")

        assert asyncio.run(run()) == "[1, 2]"
        assert sorted(p.name for p in tmp_path.iterdir()) == ["offline_queue.json"]

    def test_remove(self, tmp_path):
        """Removed keys read as None; removing twice is fine."""
        store = FileKeyValueStore(tmp_path)

        async def run():
            await store.set("k", "v")
            await store.remove("k")
            await store.remove("k")
            return await store.get("k")

        assert asyncio.run(run()) is None

    def test_rejects_path_like_keys(self, tmp_path):
        """Keys cannot escape the storage directory."""
        store = FileKeyValueStore(tmp_path)
        with pytest.raises(ValueError):
            asyncio.run(store.set("../evil", "x"))

    def test_disk_io_off_event_loop(self, tmp_path, monkeypatch):
        """Writes and fsync happen on a worker thread, not the loop thread."""
        store = FileKeyValueStore(tmp_path)
        fsync_threads = []
        real_fsync = os.fsync

        def recording_fsync(fd):
            fsync_threads.append(threading.get_ident())
            real_fsync(fd)

        monkeypatch.setattr(os, "fsync", recording_fsync)

        async def run():
            await store.set("offline_queue", "[]")
            return threading.get_ident()

        loop_thread = asyncio.run(run())
        assert len(fsync_threads) == 1
        assert fsync_threads[0] != loop_thread

    def test_write_failure_propagates(self, tmp_path, monkeypatch):
        """An OSError from the worker thread reaches the caller, temp file removed."""
        store = FileKeyValueStore(tmp_path)

        def failing_fsync(fd):
            raise OSError("disk full")

        monkeypatch.setattr(os, "fsync", failing_fsync)
        with pytest.raises(OSError):
            asyncio.run(store.set("offline_queue", "[]"))
        assert list(tmp_path.iterdir()) == []


class TestMemoryKeyValueStore:
    """Test the in-memory store."""

    def test_fail_writes(self):
        """fail_writes makes set raise OSError and keeps old data."""
        store = MemoryKeyValueStore({"k": "old"})
        store.fail_writes = True

        with pytest.raises(OSError):
            asyncio.run(store.set("k", "new"))
        assert store.data["k"] == "old"
