"""Durable key-value storage for offline state.

String keys, string values. Used for the serialized queue, the manual
offline override, the retry ledger and the cached session.

Design constraints:
- File-based only (no database required)
- Atomic replace on write for crash safety
- Works on constrained devices
"""
import asyncio
import os
import re
import tempfile
from pathlib import Path
from typing import Optional, Protocol

_SAFE_KEY = re.compile(r"^[A-Za-z0-9_.-]+$")


class KeyValueStore(Protocol):
    """Persisted string key-value store that survives restarts."""

    async def get(self, key: str) -> Optional[str]: ...

    async def set(self, key: str, value: str) -> None: ...

    async def remove(self, key: str) -> None: ...


class FileKeyValueStore:
    """One file per key under a directory.

    Writes go to a temp file in the same directory, are fsynced, then
    os.replace'd over the target, so a crash mid-write leaves the previous
    value intact. OSError propagates to the caller. Disk I/O runs in a
    worker thread.
    """

    def __init__(self, directory: Path):
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        if not _SAFE_KEY.match(key):
            raise ValueError(f"Invalid storage key: {key!r}")
        return self.directory / f"{key}.json"

    async def get(self, key: str) -> Optional[str]:
        return await asyncio.to_thread(self._read, self._path(key))

    async def set(self, key: str, value: str) -> None:
        await asyncio.to_thread(self._write, self._path(key), value)

    async def remove(self, key: str) -> None:
        await asyncio.to_thread(self._unlink, self._path(key))

    def _read(self, path: Path) -> Optional[str]:
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def _write(self, path: Path, value: str) -> None:
        key = path.stem
        self.directory.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=f".{key}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(value)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    def _unlink(self, path: Path) -> None:
        if path.exists():
            path.unlink()


class MemoryKeyValueStore:
    """In-process store for tests and embedding.

    Set fail_writes to make every set/remove raise OSError.
    """

    def __init__(self, initial: Optional[dict] = None):
        self.data: dict[str, str] = dict(initial or {})
        self.fail_writes = False
        self.write_count = 0

    async def get(self, key: str) -> Optional[str]:
        await asyncio.sleep(0)
        return self.data.get(key)

    async def set(self, key: str, value: str) -> None:
        await asyncio.sleep(0)
        if self.fail_writes:
            raise OSError(f"write refused for {key}")
        self.data[key] = value
        self.write_count += 1

    async def remove(self, key: str) -> None:
        await asyncio.sleep(0)
        if self.fail_writes:
            raise OSError(f"remove refused for {key}")
        self.data.pop(key, None)
