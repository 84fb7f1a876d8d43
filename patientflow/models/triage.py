"""
Triage category and result models.
"""

from enum import Enum
from typing import Any, Dict, Tuple

from pydantic import BaseModel, Field


class TriageCategory(str, Enum):
    """Urgency tier assigned by the classification engine."""
    EMERGENCY = "Emergency"
    VERY_URGENT = "VeryUrgent"
    URGENT = "Urgent"
    ROUTINE = "Routine"

    @property
    def label(self) -> str:
        """Human-readable label."""
        return _LABELS[self]

    @property
    def default_priority(self) -> int:
        """Initial queue priority (lower = served sooner)."""
        return _PRIORITIES[self]


_LABELS = {
    TriageCategory.EMERGENCY: "Emergency",
    TriageCategory.VERY_URGENT: "Very Urgent",
    TriageCategory.URGENT: "Urgent",
    TriageCategory.ROUTINE: "Routine",
}

_PRIORITIES = {
    TriageCategory.EMERGENCY: 0,
    TriageCategory.VERY_URGENT: 1,
    TriageCategory.URGENT: 2,
    TriageCategory.ROUTINE: 3,
}


class TriageResult(BaseModel):
    """Outcome of a single triage assessment."""
    category: TriageCategory
    reasons: Tuple[str, ...] = Field(default_factory=tuple)

    class Config:
        frozen = True

    @property
    def priority(self) -> int:
        return self.category.default_priority

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "category": self.category.value,
            "label": self.category.label,
            "priority": self.priority,
            "reasons": list(self.reasons)
        }
