"""Per-vault readers-writer locks.

Mutations to a vault (note writes, note deletes, reindex, vault deletion)
hold the write side; reads hold the read side. A reader therefore observes
either the state before a mutation or the state after it, never a mix.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator
    from contextlib import AbstractContextManager


class ReadWriteLock:
    """Writer-preferring readers-writer lock.

    Any number of readers may hold the lock at once; a writer holds it alone.
    Waiting writers block new readers so a steady read load cannot starve
    mutations. Not reentrant.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    def acquire_read(self) -> None:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1

    def release_read(self) -> None:
        with self._cond:
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    def acquire_write(self) -> None:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True

    def release_write(self) -> None:
        with self._cond:
            self._writer = False
            self._cond.notify_all()

    @contextmanager
    def read(self) -> Iterator[None]:
        self.acquire_read()
        try:
            yield
        finally:
            self.release_read()

    @contextmanager
    def write(self) -> Iterator[None]:
        self.acquire_write()
        try:
            yield
        finally:
            self.release_write()


class VaultLocks:
    """ReadWriteLock per vault name, kept only for registered vaults.

    With a *known* predicate, names it rejects get a fresh lock that nothing
    retains, so lookups of unknown vaults leave no trace. Deleted vaults are
    forgotten with `discard`.
    """

    def __init__(self, known: Callable[[str], bool] | None = None) -> None:
        self._locks: dict[str, ReadWriteLock] = {}
        self._known = known
        self._guard = threading.Lock()  # Protects _locks dict access

    def __contains__(self, vault: object) -> bool:
        with self._guard:
            return vault in self._locks

    def get(self, vault: str) -> ReadWriteLock:
        with self._guard:
            lock = self._locks.get(vault)
            if lock is None:
                lock = ReadWriteLock()
                if self._known is None or self._known(vault):
                    self._locks[vault] = lock
            return lock

    def discard(self, vault: str) -> None:
        with self._guard:
            self._locks.pop(vault, None)

    def read(self, vault: str) -> AbstractContextManager[None]:
        return self.get(vault).read()

    def write(self, vault: str) -> AbstractContextManager[None]:
        return self.get(vault).write()
