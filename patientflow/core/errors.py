"""
Error taxonomy for the Patient Flow Engine.

Every error raised by the engine is recoverable by the caller. The request
layer decides on user-facing messages and HTTP status mapping.
"""

from typing import Any, Dict, Optional


class PatientFlowError(Exception):
    """Base class for all engine errors."""

    code = "patient_flow_error"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details
        }


class ValidationError(PatientFlowError):
    """Malformed input, e.g. a negative priority."""
    code = "validation_error"


class InvalidTransition(PatientFlowError):
    """Status change not permitted from the entry's current status."""
    code = "invalid_transition"


class EntryNotFound(PatientFlowError):
    """No queue entry with the requested id."""
    code = "entry_not_found"

    def __init__(self, entry_id: str):
        super().__init__(f"Queue entry not found: {entry_id}", {"entry_id": entry_id})
        self.entry_id = entry_id


class InvalidDepartment(PatientFlowError):
    """Department key is not recognized."""
    code = "invalid_department"

    def __init__(self, department: str):
        super().__init__(f"Unknown department: {department}", {"department": department})
        self.department = department


class CrossDepartmentMove(PatientFlowError):
    """Reorder between entries of different departments."""
    code = "cross_department_move"


class InvalidState(PatientFlowError):
    """Operation not allowed in the entry's current state."""
    code = "invalid_state"


class Busy(PatientFlowError):
    """Lane lock could not be acquired in time. Safe to retry."""
    code = "busy"

    def __init__(self, message: str, retry_after: float = 1.0, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.retry_after = retry_after


class StoreUnavailable(PatientFlowError):
    """The persistence collaborator failed."""
    code = "store_unavailable"
