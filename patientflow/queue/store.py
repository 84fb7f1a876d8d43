"""
Queue Entry Store.

The store is the persistence collaborator of the queue manager. It offers
reads plus one atomic write (commit), and is only ever mutated through the
manager.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional

from patientflow.models.queue import QueueEntry, QueueStatus

logger = logging.getLogger(__name__)


class QueueStore(ABC):
    """Abstract queue row storage with atomic read-modify-write."""

    @abstractmethod
    async def get(self, entry_id: str) -> Optional[QueueEntry]:
        """Get an entry by id, or None."""

    @abstractmethod
    async def list_lane(self, department: str, status: QueueStatus) -> List[QueueEntry]:
        """Entries of one lane in position order."""

    @abstractmethod
    async def list_department(self, department: str) -> List[QueueEntry]:
        """All entries of a department, any status."""

    @abstractmethod
    async def commit(
        self,
        upserts: Iterable[QueueEntry] = (),
        deletes: Iterable[str] = ()
    ) -> None:
        """
        Write a batch of changes atomically.

        Either every upsert and delete is applied or none is.

        Raises:
            StoreUnavailable: when the backing storage fails
        """

    async def close(self) -> None:
        """Release any held resources."""


class InMemoryQueueStore(QueueStore):
    """
    Dict-backed store for tests and single-process deployments.

    Each call yields to the event loop once, like a real I/O round trip, so
    concurrent callers interleave between their reads and their commit.
    """

    def __init__(self):
        self._entries: Dict[str, QueueEntry] = {}
        logger.info("InMemoryQueueStore initialized")

    async def get(self, entry_id: str) -> Optional[QueueEntry]:
        await asyncio.sleep(0)
        entry = self._entries.get(entry_id)
        return entry.model_copy(deep=True) if entry else None

    async def list_lane(self, department: str, status: QueueStatus) -> List[QueueEntry]:
        await asyncio.sleep(0)
        lane = [
            e for e in self._entries.values()
            if e.department == department and e.status == status
        ]
        lane.sort(key=lambda e: e.position)
        return [e.model_copy(deep=True) for e in lane]

    async def list_department(self, department: str) -> List[QueueEntry]:
        await asyncio.sleep(0)
        return [
            e.model_copy(deep=True) for e in self._entries.values()
            if e.department == department
        ]

    async def commit(
        self,
        upserts: Iterable[QueueEntry] = (),
        deletes: Iterable[str] = ()
    ) -> None:
        await asyncio.sleep(0)
        # Build the new state first so a bad batch leaves nothing half-applied
        staged = dict(self._entries)
        for entry in upserts:
            staged[entry.id] = entry.model_copy(deep=True)
        for entry_id in deletes:
            staged.pop(entry_id, None)
        self._entries = staged

    def all_entries(self) -> List[QueueEntry]:
        """Snapshot of every stored entry (test helper)."""
        return [e.model_copy(deep=True) for e in self._entries.values()]
