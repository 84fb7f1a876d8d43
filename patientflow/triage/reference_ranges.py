"""
Reference ranges for vital-sign display.

These ranges differ between adults and children and are shown next to the
recorded vitals. They are not used by the classification cascade.
"""

from typing import Dict, List, NamedTuple, Optional, Tuple

from patientflow.models.observation import ClinicalObservation, SubjectMode

Range = Tuple[Optional[float], Optional[float]]


REFERENCE_RANGES: Dict[SubjectMode, Dict[str, Range]] = {
    SubjectMode.ADULT: {
        "heart_rate": (40, 130),
        "respiratory_rate": (10, 30),
        "systolic": (90, 180),
        "temperature": (35.0, 38.5),
        "spo2": (94, None),
    },
    SubjectMode.CHILD: {
        "heart_rate": (60, 160),
        "respiratory_rate": (15, 40),
        "temperature": (35.0, 38.5),
        "spo2": (94, None),
    },
}


class VitalFlag(NamedTuple):
    """A vital sign outside its reference range."""
    name: str
    value: float
    low: Optional[float]
    high: Optional[float]
    status: str  # "low" or "high"

    def to_dict(self) -> Dict:
        return self._asdict()


def reference_ranges(mode: SubjectMode) -> Dict[str, Range]:
    """Reference ranges for a subject mode."""
    return dict(REFERENCE_RANGES[mode])


def flag_vitals(observation: ClinicalObservation) -> List[VitalFlag]:
    """Return the recorded vitals that fall outside the mode's reference range."""
    flags = []
    for name, (low, high) in REFERENCE_RANGES[observation.mode].items():
        value = observation.reading(name)
        if value is None:
            continue
        if low is not None and value < low:
            flags.append(VitalFlag(name, value, low, high, "low"))
        elif high is not None and value > high:
            flags.append(VitalFlag(name, value, low, high, "high"))
    return flags
