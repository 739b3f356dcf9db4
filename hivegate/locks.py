import asyncio
from collections import Counter
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Awaitable, Callable, TypeVar

from hivegate.config import UploadLockScope

T = TypeVar("T")

GLOBAL_KEY = ""


class KeyedLock:
    """
    A mutual exclusion domain per key. Locks are created on demand and forgotten
    once nobody holds or waits for them. With global scope, all keys share one lock.
    """

    def __init__(self, scope: UploadLockScope = UploadLockScope.per_key):
        self.scope = scope
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: Counter[str] = Counter()

    def _domain(self, key: str) -> str:
        return key if self.scope == UploadLockScope.per_key else GLOBAL_KEY

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncGenerator[None, None]:
        domain = self._domain(key)
        lock = self._locks.setdefault(domain, asyncio.Lock())
        self._users[domain] += 1
        try:
            async with lock:
                yield
        finally:
            self._users[domain] -= 1
            if not self._users[domain]:
                del self._users[domain]
                del self._locks[domain]

    def locked(self, key: str) -> bool:
        lock = self._locks.get(self._domain(key))
        return lock is not None and lock.locked()

    def __len__(self) -> int:
        return len(self._locks)


class SingleFlight:
    """Run at most one call per key at a time; concurrent callers for the same key share its outcome."""

    def __init__(self):
        self._calls: dict[str, asyncio.Task] = {}

    def in_flight(self, key: str) -> bool:
        return key in self._calls

    async def do(self, key: str, fn: Callable[[], Awaitable[T]]) -> T:
        task = self._calls.get(key)
        if task is None:
            task = asyncio.ensure_future(fn())
            self._calls[key] = task
            task.add_done_callback(lambda t: self._forget(key, t))
        # a cancelled caller must not cancel the call for the others
        return await asyncio.shield(task)

    def _forget(self, key: str, task: asyncio.Task) -> None:
        if self._calls.get(key) is task:
            del self._calls[key]
        if not task.cancelled():
            # mark the exception as retrieved, waiters may all have gone
            task.exception()
