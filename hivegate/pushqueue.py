"""
Push-on-write: replicate freshly written local objects to the remote tier.

Pushes are queued and handled by a small fixed pool of worker tasks, so a request never waits for
the remote tier. A failed push is logged and counted; the local object remains the object of record.
"""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path

from hivegate.errors import RemotePushFailed
from hivegate.locks import KeyedLock
from hivegate.remotetier import RemoteTier

logger = logging.getLogger("hivegate.pushqueue")


@dataclass(frozen=True)
class PushJob:
    key: str
    path: Path


@dataclass
class PushStats:
    submitted: int = 0
    pushed: int = 0
    failed: int = 0
    dropped: int = 0


class PushQueue:
    def __init__(
        self,
        remote: RemoteTier,
        lock: KeyedLock | None = None,
        workers: int = 2,
        maxsize: int = 1000,
        upload_timeout: float | None = 30.0,
    ):
        self.remote = remote
        self.lock = lock if lock is not None else KeyedLock()
        self.n_workers = workers
        self.upload_timeout = upload_timeout
        self.stats = PushStats()
        self.last_failure: RemotePushFailed | None = None
        self._queue: asyncio.Queue[PushJob] = asyncio.Queue(maxsize)
        self._workers: list[asyncio.Task] = []

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def start(self) -> None:
        if self._workers:
            return
        self._workers = [asyncio.create_task(self._work(), name=f"push-worker-{i}") for i in range(self.n_workers)]

    def submit(self, job: PushJob) -> bool:
        """Queue a push without waiting. Returns False if the queue is full and the push was dropped."""
        try:
            self._queue.put_nowait(job)
        except asyncio.QueueFull:
            self.stats.dropped += 1
            logger.warning(f"Push queue full ({self._queue.maxsize} pending), not pushing {job.key}")
            return False
        self.stats.submitted += 1
        return True

    async def drain(self) -> None:
        """Wait until every queued push has been handled"""
        await self._queue.join()

    async def close(self, timeout: float | None = None) -> None:
        """Drain pending pushes (for at most timeout seconds) and stop the workers"""
        try:
            if self._workers:
                await asyncio.wait_for(self.drain(), timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Stopping push workers with {self.pending} pushes still pending")
        finally:
            for task in self._workers:
                task.cancel()
            await asyncio.gather(*self._workers, return_exceptions=True)
            self._workers = []

    async def _work(self) -> None:
        while True:
            job = await self._queue.get()
            try:
                await self.push(job)
            finally:
                self._queue.task_done()

    async def push(self, job: PushJob) -> bool:
        logger.debug(f"Starting push of {job.key}")
        try:
            async with self.lock.hold(job.key):
                await asyncio.wait_for(self.remote.upload(job.key, job.path), self.upload_timeout)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.stats.failed += 1
            self.last_failure = RemotePushFailed(f"Push of {job.key} failed: {e!r}")
            logger.exception(self.last_failure.message)
            return False
        self.stats.pushed += 1
        logger.info(f"Pushed {job.key} to remote storage")
        return True
