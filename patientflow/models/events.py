"""
Queue event models. Published after every committed queue change and kept
as the transition audit trail.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from patientflow.models.queue import QueueStatus


class EventType(str, Enum):
    """Types of queue events."""
    ENTRY_CREATED = "entry_created"
    STATUS_CHANGED = "status_changed"
    PRIORITY_CHANGED = "priority_changed"
    LANE_REORDERED = "lane_reordered"
    ENTRY_DELETED = "entry_deleted"


class QueueEvent(BaseModel):
    """A single committed change to a department queue."""
    id: str = Field(..., description="Unique event ID")
    event_type: EventType
    timestamp: datetime = Field(default_factory=datetime.now)
    entry_id: Optional[str] = None
    department: str
    from_status: Optional[QueueStatus] = None
    to_status: Optional[QueueStatus] = None
    payload: Dict[str, Any] = Field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "event_type": self.event_type.value,
            "timestamp": self.timestamp.isoformat(),
            "entry_id": self.entry_id,
            "department": self.department,
            "from_status": self.from_status.value if self.from_status else None,
            "to_status": self.to_status.value if self.to_status else None,
            "payload": self.payload
        }
