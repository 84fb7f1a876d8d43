"""Tests for the Department Queue Manager."""

import asyncio

import pytest

from conftest import DEPARTMENTS, FakeClock, assert_dense, subject
from patientflow.core.errors import (
    Busy,
    CrossDepartmentMove,
    EntryNotFound,
    InvalidDepartment,
    InvalidState,
    InvalidTransition,
    ValidationError,
)
from patientflow.core.event_bus import EventBus
from patientflow.models.events import EventType
from patientflow.models.queue import LanePlace, QueueAction, QueueStatus
from patientflow.models.triage import TriageCategory
from patientflow.queue.manager import DepartmentQueueManager, renumber
from patientflow.queue.store import InMemoryQueueStore


def run(coro):
    return asyncio.run(coro)


async def enqueue_many(manager, count, department="General", **kwargs):
    return [await manager.enqueue(department, subject(n), **kwargs) for n in range(1, count + 1)]


async def lane_ids(manager, department="General", status=QueueStatus.WAITING):
    return (await manager.get_lane(department, status)).ids()


class TestEnqueue:

    def test_positions_follow_insertion_order(self, manager, store):
        async def scenario():
            entries = await enqueue_many(manager, 3)
            lane = await manager.get_lane("General", QueueStatus.WAITING)
            return entries, lane

        entries, lane = run(scenario())

        assert [e.position for e in entries] == [0, 1, 2]
        assert lane.ids() == [e.id for e in entries]
        assert lane.positions() == [0, 1, 2]
        assert all(e.status == QueueStatus.WAITING for e in entries)
        assert len({e.id for e in entries}) == 3

    def test_enqueue_stamps_waiting_time(self, manager, clock):
        entry = run(manager.enqueue("General", subject(1)))

        assert entry.entered_waiting_at == clock.now
        assert entry.entered_service_at is None
        assert entry.completed_at is None

    @pytest.mark.parametrize("category,priority", [
        (TriageCategory.EMERGENCY, 0),
        (TriageCategory.VERY_URGENT, 1),
        (TriageCategory.URGENT, 2),
        (TriageCategory.ROUTINE, 3),
    ])
    def test_priority_from_category(self, manager, category, priority):
        entry = run(manager.enqueue("General", subject(1), category=category))

        assert entry.priority == priority
        assert entry.triage_category == category

    def test_explicit_priority_wins_and_default_is_routine(self, manager):
        explicit = run(manager.enqueue("General", subject(1), priority=7, category=TriageCategory.EMERGENCY))
        default = run(manager.enqueue("General", subject(2)))

        assert explicit.priority == 7
        assert default.priority == 3

    def test_unknown_department(self, manager):
        with pytest.raises(InvalidDepartment):
            run(manager.enqueue("Cardiology", subject(1)))

    @pytest.mark.parametrize("priority", [-1, 1.5, True])
    def test_invalid_priority(self, manager, priority):
        with pytest.raises(ValidationError):
            run(manager.enqueue("General", subject(1), priority=priority))

    def test_departments_are_independent_lanes(self, manager):
        async def scenario():
            general = await enqueue_many(manager, 2, "General")
            surgery = await enqueue_many(manager, 2, "Surgery")
            return general, surgery

        general, surgery = run(scenario())
        assert [e.position for e in general] == [0, 1]
        assert [e.position for e in surgery] == [0, 1]


class TestTransitions:

    def test_start_moves_to_in_service_tail(self, manager, store, clock):
        async def scenario():
            first, second, third = await enqueue_many(manager, 3)
            clock.advance(minutes=12)
            started = await manager.start(second.id)
            return first, second, third, started

        first, second, third, started = run(scenario())

        assert started.status == QueueStatus.IN_SERVICE
        assert started.position == 0
        assert started.entered_service_at == clock.now
        assert started.entered_service_at >= started.entered_waiting_at
        assert run(lane_ids(manager)) == [first.id, third.id]
        assert run(manager.get_lane("General", QueueStatus.WAITING)).positions() == [0, 1]
        assert run(lane_ids(manager, status=QueueStatus.IN_SERVICE)) == [second.id]
        assert_dense(store.all_entries())

    def test_full_lifecycle_timestamps(self, manager, clock):
        async def scenario():
            entry = await manager.enqueue("General", subject(1))
            clock.advance(minutes=5)
            await manager.start(entry.id)
            clock.advance(minutes=20)
            return await manager.complete(entry.id)

        done = run(scenario())

        assert done.status == QueueStatus.DONE
        assert done.entered_waiting_at <= done.entered_service_at <= done.completed_at
        assert (done.completed_at - done.entered_service_at).total_seconds() == 20 * 60

    def test_timestamps_monotonic_when_clock_goes_backwards(self, manager, clock):
        async def scenario():
            entry = await manager.enqueue("General", subject(1))
            clock.advance(minutes=-3)
            started = await manager.start(entry.id)
            clock.advance(minutes=-3)
            done = await manager.complete(entry.id)
            return entry, started, done

        entry, started, done = run(scenario())

        assert started.entered_service_at == entry.entered_waiting_at
        assert done.completed_at == started.entered_service_at

    def test_cancel_from_waiting_and_in_service(self, manager, store):
        async def scenario():
            a, b = await enqueue_many(manager, 2)
            await manager.start(b.id)
            cancelled_a = await manager.cancel(a.id)
            cancelled_b = await manager.cancel(b.id)
            return cancelled_a, cancelled_b

        cancelled_a, cancelled_b = run(scenario())

        assert cancelled_a.status == cancelled_b.status == QueueStatus.CANCELLED
        assert cancelled_a.entered_service_at is None
        assert cancelled_a.completed_at is not None
        assert [cancelled_a.position, cancelled_b.position] == [0, 1]
        assert_dense(store.all_entries())

    def test_cancel_twice_is_invalid_transition(self, manager):
        async def scenario():
            entry = await manager.enqueue("General", subject(1))
            await manager.cancel(entry.id)
            await manager.cancel(entry.id)

        with pytest.raises(InvalidTransition):
            run(scenario())

    @pytest.mark.parametrize("setup,action", [
        ([], QueueAction.COMPLETE),
        (["start"], QueueAction.START),
        (["start", "complete"], QueueAction.CANCEL),
        (["start", "complete"], QueueAction.START),
        (["cancel"], QueueAction.COMPLETE),
    ])
    def test_disallowed_transitions(self, manager, setup, action):
        async def scenario():
            entry = await manager.enqueue("General", subject(1))
            for step in setup:
                await manager.transition(entry.id, QueueAction(step))
            await manager.transition(entry.id, action)

        with pytest.raises(InvalidTransition):
            run(scenario())

    def test_unknown_entry(self, manager):
        with pytest.raises(EntryNotFound):
            run(manager.start("q_missing"))


class TestPriorityAndSort:

    def test_set_priority_keeps_position(self, manager):
        async def scenario():
            entries = await enqueue_many(manager, 3)
            updated = await manager.set_priority(entries[2].id, 0)
            return entries, updated

        entries, updated = run(scenario())

        assert updated.priority == 0
        assert updated.position == 2
        assert run(lane_ids(manager)) == [e.id for e in entries]

    def test_set_negative_priority(self, manager):
        entry = run(manager.enqueue("General", subject(1)))
        with pytest.raises(ValidationError):
            run(manager.set_priority(entry.id, -2))

    def test_sort_is_stable(self, manager, store):
        async def scenario():
            a = await manager.enqueue("General", subject(1), priority=3)
            b = await manager.enqueue("General", subject(2), priority=1)
            c = await manager.enqueue("General", subject(3), priority=3)
            d = await manager.enqueue("General", subject(4), priority=1)
            snapshot = await manager.sort_by_priority("General", QueueStatus.WAITING)
            return [a, b, c, d], snapshot

        (a, b, c, d), snapshot = run(scenario())

        assert snapshot.ids() == [b.id, d.id, a.id, c.id]
        assert snapshot.positions() == [0, 1, 2, 3]
        assert run(lane_ids(manager)) == snapshot.ids()
        assert_dense(store.all_entries())

    def test_sort_unknown_department(self, manager):
        with pytest.raises(InvalidDepartment):
            run(manager.sort_by_priority("Nowhere", QueueStatus.WAITING))


class TestReorder:

    def test_move_to_top(self, manager):
        async def scenario():
            entries = await enqueue_many(manager, 3)
            snapshot = await manager.move_to_top(entries[2].id)
            return entries, snapshot

        (e1, e2, e3), snapshot = run(scenario())

        assert snapshot.ids() == [e3.id, e1.id, e2.id]
        assert snapshot.positions() == [0, 1, 2]

    def test_move_to_top_of_head_is_noop(self, manager):
        async def scenario():
            entries = await enqueue_many(manager, 2)
            return entries, await manager.move_to_top(entries[0].id)

        entries, snapshot = run(scenario())
        assert snapshot.ids() == [e.id for e in entries]

    def test_move_to_end(self, manager):
        async def scenario():
            entries = await enqueue_many(manager, 3)
            return entries, await manager.move_to_end(entries[0].id)

        (e1, e2, e3), snapshot = run(scenario())
        assert snapshot.ids() == [e2.id, e3.id, e1.id]

    @pytest.mark.parametrize("moved,anchor,place,expected", [
        (3, 0, LanePlace.BEFORE, [3, 0, 1, 2]),
        (3, 0, LanePlace.AFTER, [0, 3, 1, 2]),
        (0, 3, LanePlace.AFTER, [1, 2, 3, 0]),
        (0, 2, LanePlace.BEFORE, [1, 0, 2, 3]),
        (1, 2, LanePlace.AFTER, [0, 2, 1, 3]),
    ])
    def test_reorder_relative_to_anchor(self, manager, store, moved, anchor, place, expected):
        async def scenario():
            entries = await enqueue_many(manager, 4)
            snapshot = await manager.reorder(entries[moved].id, entries[anchor].id, place)
            return entries, snapshot

        entries, snapshot = run(scenario())

        assert snapshot.ids() == [entries[i].id for i in expected]
        assert snapshot.positions() == [0, 1, 2, 3]
        assert_dense(store.all_entries())

    def test_reorder_preserves_unmoved_relative_order(self, manager):
        async def scenario():
            entries = await enqueue_many(manager, 6)
            snapshot = await manager.reorder(entries[4].id, entries[1].id, LanePlace.BEFORE)
            return entries, snapshot

        entries, snapshot = run(scenario())
        unmoved = [i for i in snapshot.ids() if i != entries[4].id]
        assert unmoved == [e.id for i, e in enumerate(entries) if i != 4]

    def test_reorder_onto_itself_is_noop(self, manager):
        async def scenario():
            entries = await enqueue_many(manager, 3)
            return entries, await manager.reorder(entries[1].id, entries[1].id, LanePlace.AFTER)

        entries, snapshot = run(scenario())
        assert snapshot.ids() == [e.id for e in entries]

    def test_reorder_across_departments(self, manager):
        async def scenario():
            general = await manager.enqueue("General", subject(1))
            surgery = await manager.enqueue("Surgery", subject(2))
            await manager.reorder(general.id, surgery.id, LanePlace.BEFORE)

        with pytest.raises(CrossDepartmentMove):
            run(scenario())

    def test_reorder_across_status_lanes_keeps_status(self, manager):
        async def scenario():
            a, b = await enqueue_many(manager, 2)
            await manager.start(b.id)
            with pytest.raises(InvalidState):
                await manager.reorder(a.id, b.id, LanePlace.BEFORE)
            return await manager.get_entry(a.id)

        entry = run(scenario())
        assert entry.status == QueueStatus.WAITING

    def test_reorder_missing_anchor(self, manager):
        async def scenario():
            entry = await manager.enqueue("General", subject(1))
            await manager.reorder(entry.id, "q_missing", LanePlace.BEFORE)

        with pytest.raises(EntryNotFound):
            run(scenario())


class TestDelete:

    def test_delete_requires_terminal_status(self, manager):
        async def scenario():
            entry = await manager.enqueue("General", subject(1))
            await manager.start(entry.id)
            await manager.delete(entry.id)

        with pytest.raises(InvalidState):
            run(scenario())

    def test_delete_renumbers_lane(self, manager, store):
        async def scenario():
            entries = await enqueue_many(manager, 3)
            for entry in entries:
                await manager.cancel(entry.id)
            await manager.delete(entries[0].id)
            return entries

        entries = run(scenario())

        lane = run(manager.get_lane("General", QueueStatus.CANCELLED))
        assert lane.ids() == [entries[1].id, entries[2].id]
        assert lane.positions() == [0, 1]
        with pytest.raises(EntryNotFound):
            run(manager.get_entry(entries[0].id))

    def test_delete_done_entry(self, manager):
        async def scenario():
            entry = await manager.enqueue("General", subject(1))
            await manager.start(entry.id)
            await manager.complete(entry.id)
            await manager.delete(entry.id)
            return await manager.get_lane("General", QueueStatus.DONE)

        assert run(scenario()).size == 0


class TestLocking:

    def test_held_lane_times_out_as_busy(self, store, clock):
        manager = DepartmentQueueManager(store=store, departments=DEPARTMENTS, clock=clock, lock_timeout=0.05)

        async def scenario():
            entry = await manager.enqueue("General", subject(1))
            lock = manager.locks.lock_for(("General", QueueStatus.WAITING))
            await lock.acquire()
            try:
                with pytest.raises(Busy):
                    await manager.move_to_top(entry.id)
                # other departments are unaffected
                other = await manager.enqueue("Surgery", subject(2))
            finally:
                lock.release()
            snapshot = await manager.move_to_top(entry.id)
            return other, snapshot

        other, snapshot = run(scenario())
        assert other.position == 0
        assert snapshot.ids() and not manager.locks.is_locked(("General", QueueStatus.WAITING))


class TestEvents:

    def test_status_changes_are_published(self, store, clock):
        bus = EventBus()
        manager = DepartmentQueueManager(store=store, event_bus=bus, departments=DEPARTMENTS, clock=clock)

        async def scenario():
            entry = await manager.enqueue("General", subject(1))
            await manager.start(entry.id)
            await manager.complete(entry.id)
            await manager.delete(entry.id)
            return entry

        entry = run(scenario())
        history = list(reversed(bus.get_history(entry_id=entry.id)))

        assert [e.event_type for e in history] == [
            EventType.ENTRY_CREATED,
            EventType.STATUS_CHANGED,
            EventType.STATUS_CHANGED,
            EventType.ENTRY_DELETED,
        ]
        assert (history[1].from_status, history[1].to_status) == (QueueStatus.WAITING, QueueStatus.IN_SERVICE)
        assert (history[2].from_status, history[2].to_status) == (QueueStatus.IN_SERVICE, QueueStatus.DONE)

    def test_failed_operation_publishes_nothing(self, store, clock):
        bus = EventBus()
        manager = DepartmentQueueManager(store=store, event_bus=bus, departments=DEPARTMENTS, clock=clock)

        async def scenario():
            entry = await manager.enqueue("General", subject(1))
            with pytest.raises(InvalidTransition):
                await manager.complete(entry.id)

        run(scenario())
        assert [e.event_type for e in bus.get_history()] == [EventType.ENTRY_CREATED]


def test_renumber_reports_changed_entries(manager):
    entries = run(enqueue_many(manager, 3))
    entries.reverse()

    changed = renumber(entries)

    assert [e.position for e in entries] == [0, 1, 2]
    assert len(changed) == 2


def test_department_board(manager):
    async def scenario():
        a, b, c = await enqueue_many(manager, 3)
        await manager.start(a.id)
        await manager.cancel(b.id)
        return await manager.get_department_board("General")

    board = run(scenario())

    assert {status: lane.size for status, lane in board.items()} == {
        QueueStatus.WAITING: 1,
        QueueStatus.IN_SERVICE: 1,
        QueueStatus.DONE: 0,
        QueueStatus.CANCELLED: 1,
    }


def test_any_department_when_unrestricted():
    manager = DepartmentQueueManager(store=InMemoryQueueStore(), clock=FakeClock())
    entry = run(manager.enqueue("Dental", subject(1)))
    assert entry.department == "Dental"
