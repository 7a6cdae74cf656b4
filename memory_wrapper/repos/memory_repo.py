from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Protocol

from memory_wrapper.models.memory import Memory

logger = logging.getLogger(__name__)

MEMORY_FILE_NAME = "memories.json"


class MemoryRepo(Protocol):
    backend_name: str

    def add(self, memory: Memory) -> Memory: ...
    def search(
        self, query: str | None, tags: list[str] | None, limit: int
    ) -> list[Memory]: ...
    def list(self, limit: int, offset: int) -> tuple[list[Memory], int]: ...
    def delete(self, memory_id: str) -> bool: ...
    def count(self) -> int: ...


def _newest_first(memories: list[Memory]) -> list[Memory]:
    # Reverse first so records sharing a timestamp keep newest-inserted first.
    return sorted(reversed(memories), key=lambda m: m.created, reverse=True)


class InMemoryMemoryRepo:
    """Memories held in process memory only (test builds, MEMORY_BACKEND=memory).

    Every mutation runs under one re-entrant lock; subclasses extend the
    critical section to cover persistence.
    """

    backend_name = "memory"

    def __init__(self) -> None:
        self._memories: list[Memory] = []
        self._lock = threading.RLock()

    def add(self, memory: Memory) -> Memory:
        with self._lock:
            self._memories.append(memory)
            try:
                self._persist_locked()
            except OSError:
                self._memories.pop()
                raise
        return memory

    def search(
        self, query: str | None, tags: list[str] | None, limit: int
    ) -> list[Memory]:
        with self._lock:
            snapshot = list(self._memories)
        results = [m for m in snapshot if m.matches(query, tags)]
        return _newest_first(results)[:limit]

    def list(self, limit: int, offset: int) -> tuple[list[Memory], int]:
        with self._lock:
            snapshot = list(self._memories)
        return _newest_first(snapshot)[offset : offset + limit], len(snapshot)

    def delete(self, memory_id: str) -> bool:
        with self._lock:
            for index, memory in enumerate(self._memories):
                if memory.id == memory_id:
                    del self._memories[index]
                    try:
                        self._persist_locked()
                    except OSError:
                        self._memories.insert(index, memory)
                        raise
                    return True
        return False

    def count(self) -> int:
        with self._lock:
            return len(self._memories)

    def _persist_locked(self) -> None:
        """Hook for durable subclasses; called with the lock held."""


class JsonFileMemoryRepo(InMemoryMemoryRepo):
    """Memories mirrored to <data_dir>/memories.json after every mutation.

    The whole list is rewritten on each change.  The write goes to a temp
    file in the same directory and is renamed over the old one, so readers
    (and a crash mid-write) only ever see a complete file.  Mutation and
    write share the lock: concurrent stores cannot drop each other's record
    from the on-disk image.
    """

    backend_name = "json_file"

    def __init__(self, data_dir: str | Path) -> None:
        super().__init__()
        self.path = Path(data_dir) / MEMORY_FILE_NAME
        self._load()

    def _load(self) -> None:
        if not self.path.exists():
            logger.info("No existing memories at %s, starting fresh", self.path)
            return

        try:
            records = json.loads(self.path.read_text(encoding="utf-8"))
            self._memories = [Memory.from_dict(r) for r in records]
        # UnicodeDecodeError and JSONDecodeError are both ValueErrors.
        except (ValueError, KeyError, TypeError):
            # Keep the unreadable file for manual recovery instead of
            # overwriting it on the next store.
            backup = self.path.with_suffix(".json.corrupt")
            os.replace(self.path, backup)
            logger.error(
                "Could not parse %s, moved it to %s and starting fresh",
                self.path,
                backup,
                exc_info=True,
            )
            self._memories = []
            return
        logger.info("Loaded %d memories from %s", len(self._memories), self.path)

    def _persist_locked(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps([m.to_dict() for m in self._memories], indent=2)
        fd, tmp_name = tempfile.mkstemp(
            dir=self.path.parent, prefix=".memories-", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(payload)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
