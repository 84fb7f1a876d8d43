"""
ORM tables for queue rows and the queue event log.
"""

from sqlalchemy import BigInteger, Column, DateTime, Index, Integer, JSON, String

from patientflow.db.connection import Base
from patientflow.models.events import EventType, QueueEvent
from patientflow.models.queue import QueueEntry, QueueStatus, SubjectRef
from patientflow.models.triage import TriageCategory


class QueueEntryRow(Base):
    __tablename__ = "queues"

    id = Column(String(64), primary_key=True)
    department = Column(String(64), nullable=False)
    status = Column(String(20), nullable=False, default=QueueStatus.WAITING.value)
    priority = Column(Integer, nullable=False, default=3)
    position = Column(Integer, nullable=False)

    patient_id = Column(String(64), nullable=False)
    display_name = Column(String(200), nullable=False)
    patient_number = Column(String(64), nullable=True)
    triage_category = Column(String(20), nullable=True)

    entered_waiting_at = Column(DateTime, nullable=False)
    entered_service_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index("ix_queues_lane", "department", "status", "position"),
    )

    @classmethod
    def from_entry(cls, entry: QueueEntry) -> "QueueEntryRow":
        return cls(
            id=entry.id,
            department=entry.department,
            status=entry.status.value,
            priority=entry.priority,
            position=entry.position,
            patient_id=entry.subject.patient_id,
            display_name=entry.subject.display_name,
            patient_number=entry.subject.patient_number,
            triage_category=entry.triage_category.value if entry.triage_category else None,
            entered_waiting_at=entry.entered_waiting_at,
            entered_service_at=entry.entered_service_at,
            completed_at=entry.completed_at,
        )

    def to_entry(self) -> QueueEntry:
        return QueueEntry(
            id=self.id,
            department=self.department,
            status=QueueStatus(self.status),
            priority=self.priority,
            position=self.position,
            subject=SubjectRef(
                patient_id=self.patient_id,
                display_name=self.display_name,
                patient_number=self.patient_number
            ),
            triage_category=TriageCategory(self.triage_category) if self.triage_category else None,
            entered_waiting_at=self.entered_waiting_at,
            entered_service_at=self.entered_service_at,
            completed_at=self.completed_at,
        )


class QueueEventRow(Base):
    __tablename__ = "queue_events"

    id = Column(String(64), primary_key=True)
    event_type = Column(String(32), nullable=False)
    entry_id = Column(String(64), nullable=True, index=True)
    department = Column(String(64), nullable=False)
    from_status = Column(String(20), nullable=True)
    to_status = Column(String(20), nullable=True)
    payload = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime, nullable=False)
    # write order among events sharing a created_at
    recorded_ns = Column(BigInteger, nullable=False, default=0)

    @classmethod
    def from_event(cls, event: QueueEvent) -> "QueueEventRow":
        return cls(
            id=event.id,
            event_type=event.event_type.value,
            entry_id=event.entry_id,
            department=event.department,
            from_status=event.from_status.value if event.from_status else None,
            to_status=event.to_status.value if event.to_status else None,
            payload=event.payload,
            created_at=event.timestamp,
        )

    def to_event(self) -> QueueEvent:
        return QueueEvent(
            id=self.id,
            event_type=EventType(self.event_type),
            timestamp=self.created_at,
            entry_id=self.entry_id,
            department=self.department,
            from_status=QueueStatus(self.from_status) if self.from_status else None,
            to_status=QueueStatus(self.to_status) if self.to_status else None,
            payload=self.payload or {},
        )
