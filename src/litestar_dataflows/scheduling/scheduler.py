"""Scheduled-time bookkeeping for time-triggered dataflows.

The scheduler answers "when did this dataflow last run, and when should it
run next". It only stores timestamps: computing a next run time is the job of
the trigger step type, which hands the scheduler the result.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from litestar_dataflows.core.models import ScheduledTimes
from litestar_dataflows.scheduling.clock import SystemClock

if TYPE_CHECKING:
    from collections.abc import Callable

    from litestar_dataflows.core.protocols import Clock, KeyValueStore

__all__ = ["Scheduler"]

logger = logging.getLogger(__name__)


class Scheduler:
    """Persists last and next run times per dataflow.

    Every write is a single upsert of the whole record. Writes and the
    read-then-write of :meth:`claim_due_run` are serialized per dataflow with
    an :class:`asyncio.Lock`, so two dispatchers on the same loop can never both
    claim one run slot.

    Attributes:
        store: Storage for the scheduled-time records.
        clock: Source of "now".

    Example:
        >>> scheduler = Scheduler(InMemoryKeyValueStore())
        >>> _ = await scheduler.set_scheduled_times("nightly", nextruntime=1_700_006_400)
        >>> (await scheduler.get_scheduled_times("nightly")).nextruntime
        1700006400
    """

    def __init__(self, store: KeyValueStore, clock: Clock | None = None) -> None:
        """Initialize the scheduler.

        Args:
            store: Storage for the scheduled-time records.
            clock: Source of "now". Defaults to the system clock.
        """
        self.store = store
        self.clock = clock or SystemClock()
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock_for(self, dataflow_id: str) -> asyncio.Lock:
        lock = self._locks.get(dataflow_id)
        if lock is None:
            lock = self._locks[dataflow_id] = asyncio.Lock()
        return lock

    async def get_scheduled_times(self, dataflow_id: str) -> ScheduledTimes | None:
        """Return the scheduled times of a dataflow.

        Args:
            dataflow_id: The dataflow id.

        Returns:
            The stored times, or ``None`` if no record exists yet.
        """
        record = await self.store.get(dataflow_id)
        if record is None:
            return None
        return ScheduledTimes.from_record(dataflow_id, record)

    async def set_scheduled_times(
        self,
        dataflow_id: str,
        nextruntime: int,
        lastruntime: int | None = None,
    ) -> ScheduledTimes:
        """Store the next (and last) run time of a dataflow.

        Args:
            dataflow_id: The dataflow id.
            nextruntime: Epoch seconds of the next run.
            lastruntime: Epoch seconds of the last run. When omitted the
                current time is recorded, meaning "a run just happened".

        Returns:
            The stored times.
        """
        async with self._lock_for(dataflow_id):
            return await self._write(dataflow_id, nextruntime, lastruntime)

    async def _write(self, dataflow_id: str, nextruntime: int, lastruntime: int | None) -> ScheduledTimes:
        times = ScheduledTimes(
            dataflow_id=dataflow_id,
            lastruntime=self.clock.now() if lastruntime is None else int(lastruntime),
            nextruntime=int(nextruntime),
        )
        await self.store.upsert(dataflow_id, times.to_record())
        logger.debug(
            "Scheduled dataflow %s: last=%s next=%s", dataflow_id, times.lastruntime, times.nextruntime
        )
        return times

    async def delete_scheduled_times(self, dataflow_id: str) -> bool:
        """Remove the scheduled-time record of a dataflow.

        Args:
            dataflow_id: The dataflow id.

        Returns:
            True if a record was removed.
        """
        async with self._lock_for(dataflow_id):
            deleted = await self.store.delete(dataflow_id)
        self._locks.pop(dataflow_id, None)
        if deleted:
            logger.debug("Deleted schedule of dataflow %s", dataflow_id)
        return deleted

    async def claim_due_run(
        self,
        dataflow_id: str,
        compute_next: Callable[[int], int],
        now: int | None = None,
    ) -> ScheduledTimes | None:
        """Atomically claim the due run slot of a dataflow.

        If the stored next run time has been reached, the record is advanced in
        one upsert while the dataflow lock is held: the claimed slot becomes
        ``lastruntime`` (``now`` when no slot was set) and
        ``nextruntime = compute_next(now)``.

        Args:
            dataflow_id: The dataflow id.
            compute_next: Returns the next run time after a given epoch time.
            now: The reference time. Defaults to the clock.

        Returns:
            The updated times if the slot was claimed, ``None`` if the dataflow
            has no schedule or is not due.
        """
        now = self.clock.now() if now is None else now
        async with self._lock_for(dataflow_id):
            times = await self.get_scheduled_times(dataflow_id)
            if times is None or not times.is_due(now):
                return None
            return await self._write(dataflow_id, compute_next(now), times.nextruntime or now)

    async def list_due(self, now: int | None = None) -> list[ScheduledTimes]:
        """Return the scheduled times of every dataflow that is due.

        Args:
            now: The reference time. Defaults to the clock.

        Returns:
            Due records ordered by next run time.
        """
        now = self.clock.now() if now is None else now
        due = [
            ScheduledTimes.from_record(key, record)
            for key, record in await self.store.items()
        ]
        return sorted((t for t in due if t.is_due(now)), key=lambda t: (t.nextruntime, t.dataflow_id))
