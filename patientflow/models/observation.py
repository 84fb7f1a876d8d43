"""
Clinical observation model captured once per triage assessment.
"""

from enum import Enum
from typing import Dict, Optional, Tuple

from pydantic import BaseModel, Field

from patientflow.core.errors import ValidationError


class SubjectMode(str, Enum):
    """Age mode of the assessed subject."""
    ADULT = "Adult"
    CHILD = "Child"


class Consciousness(str, Enum):
    """AVPU level of consciousness."""
    ALERT = "A"
    VOICE_RESPONSIVE = "V"
    PAIN_RESPONSIVE = "P"
    UNRESPONSIVE = "U"


class Mobility(str, Enum):
    """How the patient arrived / can move."""
    AMBULATORY = "ambulatory"
    WHEELCHAIR = "wheelchair"
    STRETCHER = "stretcher"


class TraumaType(str, Enum):
    """Trauma mechanism category."""
    BLUNT = "blunt"
    PENETRATING = "penetrating"
    BURNS = "burns"
    FALL = "fall"
    RTA = "rta"
    OTHER = "other"


# (low, high) inclusive bounds outside of which a reading is not physiologically plausible
PLAUSIBLE_RANGES: Dict[str, Tuple[float, float]] = {
    "systolic": (0, 300),
    "diastolic": (0, 200),
    "heart_rate": (0, 300),
    "respiratory_rate": (0, 100),
    "temperature": (25, 45),
    "spo2": (0, 100),
}


class ClinicalObservation(BaseModel):
    """Vitals and discriminators recorded during a triage assessment."""
    mode: SubjectMode = SubjectMode.ADULT

    # Vitals
    systolic: Optional[float] = Field(None, ge=0, le=300, description="mmHg")
    diastolic: Optional[float] = Field(None, ge=0, le=200, description="mmHg")
    heart_rate: Optional[float] = Field(None, ge=0, le=300, description="BPM")
    respiratory_rate: Optional[float] = Field(None, ge=0, le=100, description="Breaths/min")
    temperature: Optional[float] = Field(None, ge=25, le=45, description="Celsius")
    spo2: Optional[float] = Field(None, ge=0, le=100, description="Oxygen saturation %")

    consciousness: Optional[Consciousness] = None
    mobility: Optional[Mobility] = None
    pain_level: int = Field(0, ge=0, le=10)

    # Discriminators
    respiratory_distress: bool = False
    chest_pain: bool = False
    severe_bleeding: bool = False
    has_trauma: bool = False
    trauma_type: Optional[TraumaType] = None
    burn_percentage: Optional[float] = Field(None, ge=0, le=100)
    pregnant: bool = False
    gestation_weeks: Optional[int] = Field(None, ge=1, le=42)
    postpartum: bool = False
    postpartum_days: Optional[int] = Field(None, ge=0, le=42)

    chief_complaint: Optional[str] = Field(None, max_length=500)

    # Recorded alongside the assessment, never scored
    weight_kg: Optional[float] = Field(None, ge=1, le=200)
    height_cm: Optional[float] = Field(None, ge=30, le=230)
    blood_glucose: Optional[float] = Field(None, ge=1, le=40, description="mmol/L")
    capillary_refill: Optional[float] = Field(None, ge=0, le=10, description="Seconds")
    muac_cm: Optional[float] = Field(None, ge=5, le=30, description="Pediatric MUAC")
    notes: Optional[str] = Field(None, max_length=1000)

    def reading(self, name: str) -> Optional[float]:
        """Return a vital sign, or None when absent or outside plausible bounds."""
        value = getattr(self, name, None)
        if value is None:
            return None
        try:
            value = float(value)
        except (TypeError, ValueError):
            return None
        low, high = PLAUSIBLE_RANGES[name]
        if value < low or value > high:
            return None
        return value

    def require_chief_complaint(self) -> str:
        """Chief complaint is mandatory before an assessment is persisted."""
        complaint = (self.chief_complaint or "").strip()
        if len(complaint) < 3:
            raise ValidationError(
                "Chief complaint is required (at least 3 characters)",
                {"field": "chief_complaint"}
            )
        return complaint
