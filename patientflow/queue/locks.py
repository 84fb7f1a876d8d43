"""
Per-lane mutual exclusion for queue operations.
"""

import asyncio
import logging
import time
from collections import defaultdict
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Iterable, List

from patientflow.core.errors import Busy
from patientflow.models.queue import LaneKey

logger = logging.getLogger(__name__)


def _lane_order(lane: LaneKey) -> tuple:
    department, status = lane
    return (department, status.value)


class LaneLockRegistry:
    """
    One asyncio.Lock per (department, status) lane.

    Operations touching several lanes acquire them in sorted order so two
    operations can never wait on each other in a cycle. Lanes that are not
    requested are never blocked.
    """

    def __init__(self, default_timeout: float = 5.0):
        self.default_timeout = default_timeout
        self._locks: Dict[LaneKey, asyncio.Lock] = defaultdict(asyncio.Lock)

    def lock_for(self, lane: LaneKey) -> asyncio.Lock:
        return self._locks[lane]

    def is_locked(self, lane: LaneKey) -> bool:
        return lane in self._locks and self._locks[lane].locked()

    @asynccontextmanager
    async def hold(self, lanes: Iterable[LaneKey], timeout: float = None) -> AsyncIterator[List[LaneKey]]:
        """
        Hold every lane in `lanes` for the duration of the block.

        Args:
            lanes: Lane keys to lock (duplicates are ignored)
            timeout: Seconds allowed for acquiring all lanes together

        Raises:
            Busy: if the lanes could not all be acquired within the timeout
        """
        timeout = self.default_timeout if timeout is None else timeout
        ordered = sorted(set(lanes), key=_lane_order)
        deadline = time.monotonic() + timeout
        acquired: List[asyncio.Lock] = []

        try:
            for lane in ordered:
                lock = self._locks[lane]
                remaining = max(0.01, deadline - time.monotonic())
                try:
                    await asyncio.wait_for(lock.acquire(), timeout=remaining)
                except asyncio.TimeoutError:
                    department, status = lane
                    logger.warning(f"Timed out waiting for lane {department}/{status.value}")
                    raise Busy(
                        f"Lane {department}/{status.value} is busy, retry later",
                        retry_after=1.0,
                        details={"department": department, "status": status.value}
                    )
                acquired.append(lock)

            yield ordered
        finally:
            for lock in reversed(acquired):
                lock.release()
