"""Shared fixtures for Patient Flow Engine tests."""

from collections import defaultdict
from datetime import datetime, timedelta
from typing import Iterable

import pytest

from patientflow.models.queue import QueueEntry, SubjectRef
from patientflow.queue.manager import DepartmentQueueManager
from patientflow.queue.store import InMemoryQueueStore

DEPARTMENTS = ["General", "Emergency", "Surgery"]


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, start: datetime = datetime(2026, 3, 2, 8, 0, 0)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, minutes: float = 0, seconds: float = 0) -> datetime:
        self.now += timedelta(minutes=minutes, seconds=seconds)
        return self.now


def subject(n: int) -> SubjectRef:
    return SubjectRef(patient_id=f"P-{n:03d}", display_name=f"Patient {n}")


def assert_dense(entries: Iterable[QueueEntry]) -> None:
    """Every (department, status) lane holds positions 0..n-1 exactly once."""
    lanes = defaultdict(list)
    for entry in entries:
        lanes[entry.lane_key].append(entry.position)
    for lane, positions in lanes.items():
        assert sorted(positions) == list(range(len(positions))), f"lane {lane} positions {sorted(positions)}"


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return InMemoryQueueStore()


@pytest.fixture
def manager(store, clock):
    return DepartmentQueueManager(store=store, departments=DEPARTMENTS, clock=clock, lock_timeout=2.0)
