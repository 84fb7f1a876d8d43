"""
Core package for the Patient Flow Engine.
"""

from .config import Config, SLAThresholds, DEFAULT_DEPARTMENTS
from .errors import (
    PatientFlowError,
    ValidationError,
    InvalidTransition,
    EntryNotFound,
    InvalidDepartment,
    CrossDepartmentMove,
    InvalidState,
    Busy,
    StoreUnavailable
)
from .event_bus import EventBus, create_event_id

__all__ = [
    "Config",
    "SLAThresholds",
    "DEFAULT_DEPARTMENTS",
    "PatientFlowError",
    "ValidationError",
    "InvalidTransition",
    "EntryNotFound",
    "InvalidDepartment",
    "CrossDepartmentMove",
    "InvalidState",
    "Busy",
    "StoreUnavailable",
    "EventBus",
    "create_event_id"
]
