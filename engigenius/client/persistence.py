"""
client/persistence.py

Background insert queue for answer / topic / note records.

Writes are best-effort: one worker task drains the queue, and a failed
insert goes to the error channel (`on_error`) instead of propagating.
The answer on screen is never touched by anything in here.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Callable, Optional

from engigenius.core.logger import get_logger
from engigenius.services.record_store import RecordStore

logger = get_logger(__name__)


@dataclass(frozen=True)
class PersistJob:
    table: str
    row: dict[str, Any]


ErrorHandler = Callable[[Exception, PersistJob], None]


class PersistenceQueue:
    def __init__(self, store: RecordStore, on_error: Optional[ErrorHandler] = None):
        self._store = store
        self._on_error = on_error
        self._queue: asyncio.Queue[Optional[PersistJob]] = asyncio.Queue()
        self._worker: Optional[asyncio.Task] = None
        self.written = 0
        self.failed = 0

    def start(self) -> None:
        if self._worker is None or self._worker.done():
            self._worker = asyncio.get_running_loop().create_task(self._run())

    def submit(self, table: str, row: dict[str, Any]) -> None:
        self.start()
        self._queue.put_nowait(PersistJob(table, row))

    async def join(self) -> None:
        """Wait until everything submitted so far has been attempted."""
        await self._queue.join()

    async def close(self) -> None:
        if self._worker is None:
            return
        await self._queue.put(None)
        await self._worker
        self._worker = None

    async def _run(self) -> None:
        while True:
            job = await self._queue.get()
            try:
                if job is None:
                    return
                await self._write(job)
            finally:
                self._queue.task_done()

    async def _write(self, job: PersistJob) -> None:
        try:
            await self._store.insert(job.table, job.row)
            self.written += 1
        except Exception as e:
            self.failed += 1
            logger.error(f"Persist to {job.table} failed: {e}")
            if self._on_error is not None:
                self._on_error(e, job)
