"""
Department queue models for the Patient Flow Engine.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional, Tuple

from pydantic import BaseModel, Field

from patientflow.models.triage import TriageCategory


class QueueStatus(str, Enum):
    """Lane a queue entry currently sits in."""
    WAITING = "waiting"
    IN_SERVICE = "in_service"
    DONE = "done"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (QueueStatus.DONE, QueueStatus.CANCELLED)


class QueueAction(str, Enum):
    """Status transitions an operator may request."""
    START = "start"
    COMPLETE = "complete"
    CANCEL = "cancel"


class LanePlace(str, Enum):
    """Where a moved entry lands relative to its anchor."""
    BEFORE = "before"
    AFTER = "after"


LaneKey = Tuple[str, QueueStatus]


class SubjectRef(BaseModel):
    """Reference to the queued patient plus display fields."""
    patient_id: str = Field(..., min_length=1)
    display_name: str = Field(..., min_length=1)
    patient_number: Optional[str] = None


class QueueEntry(BaseModel):
    """A patient's place in a department queue."""
    id: str
    department: str
    status: QueueStatus = QueueStatus.WAITING
    priority: int = Field(..., ge=0, description="Lower value = served sooner")
    position: int = Field(..., ge=0, description="Dense 0-based position within the lane")
    subject: SubjectRef
    triage_category: Optional[TriageCategory] = None

    entered_waiting_at: datetime
    entered_service_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def lane_key(self) -> LaneKey:
        return (self.department, self.status)


class LaneSnapshot(BaseModel):
    """Ordered view of one (department, status) lane."""
    department: str
    status: QueueStatus
    entries: List[QueueEntry] = Field(default_factory=list)
    taken_at: datetime = Field(default_factory=datetime.now)

    @property
    def size(self) -> int:
        return len(self.entries)

    def ids(self) -> List[str]:
        return [e.id for e in self.entries]

    def positions(self) -> List[int]:
        return [e.position for e in self.entries]
