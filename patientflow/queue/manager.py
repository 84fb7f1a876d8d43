"""
Department Queue Manager.

Sole owner of queue entry mutation: lane transitions, position renumbering,
priority edits. Every structural change runs under the locks of all lanes it
touches, reads current state, commits the new arrangement in one store commit
and only then publishes an event.
"""

import logging
import time
import uuid
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, Callable, Dict, Iterable, List, Optional, Sequence

from patientflow.core.errors import (
    Busy,
    CrossDepartmentMove,
    EntryNotFound,
    InvalidDepartment,
    InvalidState,
    InvalidTransition,
    StoreUnavailable,
    ValidationError,
)
from patientflow.core.event_bus import EventBus, create_event_id
from patientflow.models.events import EventType, QueueEvent
from patientflow.models.queue import (
    LaneKey,
    LanePlace,
    LaneSnapshot,
    QueueAction,
    QueueEntry,
    QueueStatus,
    SubjectRef,
)
from patientflow.models.triage import TriageCategory
from patientflow.queue.locks import LaneLockRegistry
from patientflow.queue.store import QueueStore

logger = logging.getLogger(__name__)


# action -> (allowed source statuses, target status)
_TRANSITIONS = {
    QueueAction.START: ({QueueStatus.WAITING}, QueueStatus.IN_SERVICE),
    QueueAction.COMPLETE: ({QueueStatus.IN_SERVICE}, QueueStatus.DONE),
    QueueAction.CANCEL: ({QueueStatus.WAITING, QueueStatus.IN_SERVICE}, QueueStatus.CANCELLED),
}


def create_entry_id() -> str:
    """Generate a unique queue entry ID."""
    return f"q_{uuid.uuid4().hex}"


def renumber(lane: List[QueueEntry]) -> List[QueueEntry]:
    """Assign dense 0-based positions in list order. Returns the entries that changed."""
    changed = []
    for index, entry in enumerate(lane):
        if entry.position != index:
            entry.position = index
            changed.append(entry)
    return changed


def _later(now: datetime, previous: Optional[datetime]) -> datetime:
    if previous is not None and previous > now:
        return previous
    return now


class DepartmentQueueManager:
    """
    Manages per-department queue lanes.

    Lanes are (department, status) pairs holding dense 0-based positions.
    Priority (lower = served sooner) is independent of position; only
    sort_by_priority() derives one from the other.
    """

    def __init__(
        self,
        store: QueueStore,
        locks: Optional[LaneLockRegistry] = None,
        event_bus: Optional[EventBus] = None,
        departments: Optional[Iterable[str]] = None,
        clock: Optional[Callable[[], datetime]] = None,
        lock_timeout: float = 5.0
    ):
        """
        Initialize the queue manager.

        Args:
            store: Persistence collaborator
            locks: Lane lock registry (one per process)
            event_bus: Optional bus receiving QueueEvents after each commit
            departments: Recognized department keys; None accepts any
            clock: Time source for transition stamps
            lock_timeout: Seconds to wait for lane locks before raising Busy
        """
        self.store = store
        self.locks = locks or LaneLockRegistry(default_timeout=lock_timeout)
        self.event_bus = event_bus
        self.departments = set(departments) if departments is not None else None
        self.clock = clock or datetime.now
        self.lock_timeout = lock_timeout

        logger.info(
            f"DepartmentQueueManager initialized "
            f"(departments={sorted(self.departments) if self.departments else 'any'})"
        )

    # ========================
    # Helpers
    # ========================

    def _check_department(self, department: str) -> None:
        if not department or (self.departments is not None and department not in self.departments):
            raise InvalidDepartment(department)

    @staticmethod
    def _check_priority(priority) -> int:
        if isinstance(priority, bool) or not isinstance(priority, int):
            raise ValidationError("Priority must be an integer", {"priority": priority})
        if priority < 0:
            raise ValidationError("Priority must not be negative", {"priority": priority})
        return priority

    async def _require(self, entry_id: str) -> QueueEntry:
        entry = await self.store.get(entry_id)
        if entry is None:
            raise EntryNotFound(entry_id)
        return entry

    async def _commit(
        self,
        upserts: Sequence[QueueEntry] = (),
        deletes: Sequence[str] = ()
    ) -> None:
        try:
            await self.store.commit(upserts=upserts, deletes=deletes)
        except StoreUnavailable as e:
            logger.error(f"Queue store commit failed: {e}")
            raise

    async def _publish(
        self,
        event_type: EventType,
        department: str,
        entry_id: Optional[str] = None,
        from_status: Optional[QueueStatus] = None,
        to_status: Optional[QueueStatus] = None,
        **payload
    ) -> None:
        if not self.event_bus:
            return
        await self.event_bus.publish(QueueEvent(
            id=create_event_id(),
            event_type=event_type,
            timestamp=self.clock(),
            entry_id=entry_id,
            department=department,
            from_status=from_status,
            to_status=to_status,
            payload=payload
        ))

    @asynccontextmanager
    async def _lock_entries(
        self,
        entry_ids: Sequence[str],
        extra_lanes: Optional[Callable[[List[QueueEntry]], Iterable[LaneKey]]] = None
    ) -> AsyncIterator[List[QueueEntry]]:
        """
        Lock the current lanes of the given entries (plus any extra lanes)
        and yield the entries as re-read under those locks.

        An entry can move to another lane between the unlocked read and the
        lock acquisition; in that case the locks are dropped and the lanes
        are recomputed, within the same overall timeout.
        """
        deadline = time.monotonic() + self.lock_timeout
        while True:
            entries = [await self._require(entry_id) for entry_id in entry_ids]
            lanes = {e.lane_key for e in entries}
            if extra_lanes:
                lanes.update(extra_lanes(entries))

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise Busy("Queue lanes kept changing, retry later", details={"entry_ids": list(entry_ids)})

            async with self.locks.hold(lanes, timeout=remaining):
                fresh = [await self._require(entry_id) for entry_id in entry_ids]
                if all(e.lane_key in lanes for e in fresh):
                    yield fresh
                    return
            logger.debug(f"Lane changed while locking {list(entry_ids)}, retrying")

    # ========================
    # Admission
    # ========================

    async def enqueue(
        self,
        department: str,
        subject: SubjectRef,
        priority: Optional[int] = None,
        category: Optional[TriageCategory] = None
    ) -> QueueEntry:
        """
        Add a patient to the tail of a department's Waiting lane.

        Args:
            department: Department key
            subject: Patient reference
            priority: Explicit priority; takes precedence over the category
            category: Triage category seeding the priority when none is given

        Returns:
            The new entry

        Raises:
            InvalidDepartment: for an unrecognized department
            ValidationError: for a negative or non-integer priority
        """
        self._check_department(department)
        if priority is not None:
            priority = self._check_priority(priority)
        elif category is not None:
            priority = TriageCategory(category).default_priority
        else:
            priority = TriageCategory.ROUTINE.default_priority

        async with self.locks.hold([(department, QueueStatus.WAITING)], timeout=self.lock_timeout):
            waiting = await self.store.list_lane(department, QueueStatus.WAITING)
            entry = QueueEntry(
                id=create_entry_id(),
                department=department,
                status=QueueStatus.WAITING,
                priority=priority,
                position=len(waiting),
                subject=subject,
                triage_category=category,
                entered_waiting_at=self.clock()
            )
            await self._commit([entry])

        logger.info(f"Enqueued {entry.id} ({subject.patient_id}) in {department} at position {entry.position}")
        await self._publish(
            EventType.ENTRY_CREATED, department, entry.id,
            to_status=QueueStatus.WAITING, priority=priority
        )
        return entry

    # ========================
    # Status transitions
    # ========================

    async def transition(self, entry_id: str, action: QueueAction) -> QueueEntry:
        """
        Move an entry to the tail of the lane its action leads to.

        Raises:
            EntryNotFound: if the entry does not exist
            InvalidTransition: if the action is not allowed from the current status
        """
        action = QueueAction(action)
        allowed, target = _TRANSITIONS[action]

        async with self._lock_entries(
            [entry_id],
            extra_lanes=lambda es: [(es[0].department, target)]
        ) as (entry,):
            if entry.status not in allowed:
                raise InvalidTransition(
                    f"Cannot {action.value} an entry that is {entry.status.value}",
                    {"entry_id": entry_id, "status": entry.status.value, "action": action.value}
                )

            previous = entry.status
            source = await self.store.list_lane(entry.department, previous)
            destination = await self.store.list_lane(entry.department, target)
            changed = renumber([e for e in source if e.id != entry.id])

            now = self.clock()
            if target == QueueStatus.IN_SERVICE:
                entry.entered_service_at = _later(now, entry.entered_waiting_at)
            else:
                entry.completed_at = _later(now, entry.entered_service_at or entry.entered_waiting_at)
            entry.status = target
            entry.position = len(destination)

            await self._commit(changed + [entry])

        logger.info(f"Entry {entry_id}: {previous.value} -> {target.value}")
        await self._publish(
            EventType.STATUS_CHANGED, entry.department, entry.id,
            from_status=previous, to_status=target, action=action.value
        )
        return entry

    async def start(self, entry_id: str) -> QueueEntry:
        """Waiting -> InService."""
        return await self.transition(entry_id, QueueAction.START)

    async def complete(self, entry_id: str) -> QueueEntry:
        """InService -> Done."""
        return await self.transition(entry_id, QueueAction.COMPLETE)

    async def cancel(self, entry_id: str) -> QueueEntry:
        """Waiting or InService -> Cancelled."""
        return await self.transition(entry_id, QueueAction.CANCEL)

    # ========================
    # Priority and ordering
    # ========================

    async def set_priority(self, entry_id: str, priority: int) -> QueueEntry:
        """Change an entry's priority without moving it."""
        priority = self._check_priority(priority)

        async with self._lock_entries([entry_id]) as (entry,):
            old_priority = entry.priority
            entry.priority = priority
            await self._commit([entry])

        logger.info(f"Entry {entry_id}: priority {old_priority} -> {priority}")
        await self._publish(
            EventType.PRIORITY_CHANGED, entry.department, entry.id,
            old_priority=old_priority, new_priority=priority
        )
        return entry

    async def sort_by_priority(self, department: str, status: QueueStatus) -> LaneSnapshot:
        """Stable-sort a lane by (priority, position) and renumber it."""
        self._check_department(department)
        status = QueueStatus(status)

        async with self.locks.hold([(department, status)], timeout=self.lock_timeout):
            lane = await self.store.list_lane(department, status)
            lane.sort(key=lambda e: (e.priority, e.position))
            changed = renumber(lane)
            if changed:
                await self._commit(changed)
            snapshot = LaneSnapshot(department=department, status=status, entries=lane, taken_at=self.clock())

        logger.info(f"Sorted {department}/{status.value} by priority ({len(changed)} moved)")
        if changed:
            await self._publish(
                EventType.LANE_REORDERED, department,
                to_status=status, operation="sort_by_priority", order=snapshot.ids()
            )
        return snapshot

    async def reorder(self, entry_id: str, anchor_id: str, place: LanePlace) -> LaneSnapshot:
        """
        Move an entry immediately before or after an anchor in the anchor's lane.

        Reordering never changes status: both entries must already share a lane.

        Raises:
            EntryNotFound: if either entry does not exist
            CrossDepartmentMove: if the entries belong to different departments
            InvalidState: if the entries are in different status lanes
        """
        place = LanePlace(place)
        if entry_id == anchor_id:
            entry = await self._require(entry_id)
            return await self.get_lane(entry.department, entry.status)

        async with self._lock_entries([entry_id, anchor_id]) as (entry, anchor):
            if entry.department != anchor.department:
                raise CrossDepartmentMove(
                    f"Cannot move an entry from {entry.department} next to one in {anchor.department}",
                    {"entry_id": entry_id, "anchor_id": anchor_id}
                )
            if entry.status != anchor.status:
                raise InvalidState(
                    f"Entry is {entry.status.value} but anchor is {anchor.status.value}; "
                    f"change its status before reordering",
                    {"entry_id": entry_id, "anchor_id": anchor_id}
                )

            lane = await self.store.list_lane(anchor.department, anchor.status)
            moved = next(e for e in lane if e.id == entry_id)
            lane = [e for e in lane if e.id != entry_id]
            anchor_index = next(i for i, e in enumerate(lane) if e.id == anchor_id)
            lane.insert(anchor_index if place == LanePlace.BEFORE else anchor_index + 1, moved)
            snapshot = await self._save_order(anchor.department, anchor.status, lane)

        await self._publish(
            EventType.LANE_REORDERED, snapshot.department, entry_id,
            to_status=snapshot.status, operation="reorder",
            anchor_id=anchor_id, place=place.value, order=snapshot.ids()
        )
        return snapshot

    async def move_to_top(self, entry_id: str) -> LaneSnapshot:
        """Move an entry to the head of its lane (reorder before the current head)."""
        return await self._move_within_lane(entry_id, to_end=False)

    async def move_to_end(self, entry_id: str) -> LaneSnapshot:
        """Move an entry to the tail of its lane."""
        return await self._move_within_lane(entry_id, to_end=True)

    async def _move_within_lane(self, entry_id: str, to_end: bool) -> LaneSnapshot:
        async with self._lock_entries([entry_id]) as (entry,):
            lane = await self.store.list_lane(entry.department, entry.status)
            moved = next(e for e in lane if e.id == entry_id)
            lane = [e for e in lane if e.id != entry_id]
            if to_end:
                lane.append(moved)
            else:
                lane.insert(0, moved)
            snapshot = await self._save_order(entry.department, entry.status, lane)

        await self._publish(
            EventType.LANE_REORDERED, snapshot.department, entry_id,
            to_status=snapshot.status,
            operation="move_to_end" if to_end else "move_to_top",
            order=snapshot.ids()
        )
        return snapshot

    async def _save_order(self, department: str, status: QueueStatus, lane: List[QueueEntry]) -> LaneSnapshot:
        """Renumber a lane in list order and commit. Caller holds the lane lock."""
        changed = renumber(lane)
        if changed:
            await self._commit(changed)
        logger.info(f"Reordered {department}/{status.value} ({len(changed)} positions changed)")
        return LaneSnapshot(department=department, status=status, entries=lane, taken_at=self.clock())

    # ========================
    # Removal
    # ========================

    async def delete(self, entry_id: str) -> None:
        """
        Permanently remove a Done or Cancelled entry.

        Raises:
            EntryNotFound: if the entry does not exist
            InvalidState: if the entry is still Waiting or InService
        """
        async with self._lock_entries([entry_id]) as (entry,):
            if not entry.status.is_terminal:
                raise InvalidState(
                    f"Only done or cancelled entries can be deleted (entry is {entry.status.value})",
                    {"entry_id": entry_id, "status": entry.status.value}
                )
            lane = await self.store.list_lane(entry.department, entry.status)
            changed = renumber([e for e in lane if e.id != entry_id])
            await self._commit(changed, deletes=[entry_id])

        logger.info(f"Deleted entry {entry_id} from {entry.department}/{entry.status.value}")
        await self._publish(
            EventType.ENTRY_DELETED, entry.department, entry_id,
            from_status=entry.status
        )

    # ========================
    # Reads
    # ========================

    async def get_entry(self, entry_id: str) -> QueueEntry:
        """Get an entry by id."""
        return await self._require(entry_id)

    async def get_lane(self, department: str, status: QueueStatus) -> LaneSnapshot:
        """
        Snapshot of one lane in position order.

        Reads take no lock: a single store read never observes a half-applied commit.
        """
        self._check_department(department)
        status = QueueStatus(status)
        entries = await self.store.list_lane(department, status)
        logger.debug(f"Read lane {department}/{status.value}: {len(entries)} entries")
        return LaneSnapshot(department=department, status=status, entries=entries, taken_at=self.clock())

    async def get_department_board(self, department: str) -> Dict[QueueStatus, LaneSnapshot]:
        """All four lanes of a department."""
        self._check_department(department)
        entries = await self.store.list_department(department)
        taken_at = self.clock()
        board = {}
        for status in QueueStatus:
            lane = sorted((e for e in entries if e.status == status), key=lambda e: e.position)
            board[status] = LaneSnapshot(department=department, status=status, entries=lane, taken_at=taken_at)
        return board
