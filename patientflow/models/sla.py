"""
SLA annotation models for queue display.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from patientflow.models.queue import QueueEntry, QueueStatus


class SLAState(str, Enum):
    """Visual state of an entry or lane average."""
    NORMAL = "normal"
    WARNING = "warning"
    CRITICAL = "critical"


class SLAAnnotation(BaseModel):
    """A queue entry with its elapsed time and SLA state."""
    entry: QueueEntry
    elapsed_minutes: Optional[float] = None
    state: SLAState = SLAState.NORMAL

    def to_dict(self) -> Dict[str, Any]:
        data = self.entry.model_dump(mode="json")
        data["elapsed_minutes"] = (
            round(self.elapsed_minutes, 1) if self.elapsed_minutes is not None else None
        )
        data["sla_state"] = self.state.value
        return data


class LaneSLAReport(BaseModel):
    """SLA view of a whole lane."""
    department: str
    status: QueueStatus
    evaluated_at: datetime
    entries: List[SLAAnnotation] = Field(default_factory=list)
    mean_elapsed_minutes: float = 0.0
    mean_state: SLAState = SLAState.NORMAL
    counts: Dict[SLAState, int] = Field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "department": self.department,
            "status": self.status.value,
            "evaluated_at": self.evaluated_at.isoformat(),
            "size": len(self.entries),
            "mean_elapsed_minutes": round(self.mean_elapsed_minutes, 1),
            "mean_state": self.mean_state.value,
            "counts": {state.value: self.counts.get(state, 0) for state in SLAState},
            "entries": [a.to_dict() for a in self.entries]
        }
