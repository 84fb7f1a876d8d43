"""
Models package for the Patient Flow Engine.
"""

from .observation import (
    ClinicalObservation,
    SubjectMode,
    Consciousness,
    Mobility,
    TraumaType,
    PLAUSIBLE_RANGES
)

from .triage import (
    TriageCategory,
    TriageResult
)

from .queue import (
    QueueStatus,
    QueueAction,
    LanePlace,
    LaneKey,
    SubjectRef,
    QueueEntry,
    LaneSnapshot
)

from .sla import (
    SLAState,
    SLAAnnotation,
    LaneSLAReport
)

from .events import (
    EventType,
    QueueEvent
)

__all__ = [
    # Observation
    "ClinicalObservation",
    "SubjectMode",
    "Consciousness",
    "Mobility",
    "TraumaType",
    "PLAUSIBLE_RANGES",

    # Triage
    "TriageCategory",
    "TriageResult",

    # Queue
    "QueueStatus",
    "QueueAction",
    "LanePlace",
    "LaneKey",
    "SubjectRef",
    "QueueEntry",
    "LaneSnapshot",

    # SLA
    "SLAState",
    "SLAAnnotation",
    "LaneSLAReport",

    # Events
    "EventType",
    "QueueEvent"
]
