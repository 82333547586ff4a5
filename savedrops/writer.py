"""Telemetry writer - best-effort, non-blocking emission of readings.

The simulator hands every reading to a :class:`TelemetryWriter`, which
buffers it and appends it to the backend from a background task so the
tick loop never waits on the network.  The buffer is bounded and drops
the oldest readings when full.  Failed appends are not retried; they are
logged and counted in :class:`~savedrops.models.SyncHealth`.
"""

from __future__ import annotations

import asyncio
import collections
import contextlib
import logging

from savedrops.backends.base import DataBackend
from savedrops.models import Reading, SyncHealth

__all__ = ["READINGS_COLLECTION", "TelemetryWriter"]

logger = logging.getLogger("savedrops.writer")

READINGS_COLLECTION = "readings"


class TelemetryWriter:
    """Buffers readings and drains them to ``backend.append``.

    Parameters:
        backend: Connected :class:`DataBackend`.
        max_pending: Buffer size; older readings are dropped beyond it.
        collection: Target collection name.
    """

    def __init__(
        self,
        backend: DataBackend,
        *,
        max_pending: int = 32,
        collection: str = READINGS_COLLECTION,
    ) -> None:
        if max_pending < 1:
            raise ValueError("max_pending must be at least 1")
        self.backend = backend
        self.collection = collection
        self.max_pending = max_pending
        self._buffer: collections.deque[Reading] = collections.deque()
        self._wakeup = asyncio.Event()
        self._drain_task: asyncio.Task[None] | None = None
        self._stopped = True
        self._health = SyncHealth()

    # -- public interface used by Simulator --

    @property
    def health(self) -> SyncHealth:
        return self._health.model_copy(update={"pending": len(self._buffer)})

    @property
    def running(self) -> bool:
        return not self._stopped

    async def start(self) -> None:
        """Start the background drain loop."""
        if not self._stopped:
            return
        self._stopped = False
        self._drain_task = asyncio.create_task(self._drain_loop(), name="drain-telemetry")

    def submit(self, reading: Reading) -> None:
        """Queue *reading* for emission without waiting."""
        if self._stopped:
            logger.warning("Writer stopped - dropping reading at %.3f", reading.timestamp)
            self._record_drop()
            return
        if len(self._buffer) >= self.max_pending:
            oldest = self._buffer.popleft()
            logger.warning(
                "Telemetry buffer full (%d) - dropping oldest reading at %.3f",
                self.max_pending,
                oldest.timestamp,
            )
            self._record_drop()
        self._buffer.append(reading)
        self._wakeup.set()

    async def stop(self) -> None:
        """Stop the drain loop after writing whatever is still buffered.

        An append already in flight is allowed to finish.
        """
        self._stopped = True
        self._wakeup.set()
        if self._drain_task and not self._drain_task.done():
            with contextlib.suppress(asyncio.CancelledError):
                await self._drain_task
        self._drain_task = None
        await self._flush_buffer()

    # -- internal --

    async def _drain_loop(self) -> None:
        while not self._stopped:
            await self._wakeup.wait()
            self._wakeup.clear()
            await self._flush_buffer()

    async def _flush_buffer(self) -> None:
        while self._buffer:
            reading = self._buffer.popleft()
            try:
                await self.backend.append(self.collection, reading.to_document())
            except Exception as exc:
                logger.warning(
                    "Telemetry write failed: %s - reading at %.3f lost",
                    exc,
                    reading.timestamp,
                )
                self._health = self._health.model_copy(
                    update={
                        "failed": self._health.failed + 1,
                        "last_error": str(exc),
                        "degraded": True,
                    }
                )
            else:
                self._health = self._health.model_copy(
                    update={"written": self._health.written + 1, "degraded": False}
                )

    def _record_drop(self) -> None:
        self._health = self._health.model_copy(
            update={"dropped": self._health.dropped + 1, "degraded": True}
        )
