"""
Triage rule table.

Rules are grouped by category and evaluated tier by tier; the classifier
returns the first tier in which any rule fires.
"""

from typing import Callable, List, NamedTuple

from patientflow.models.observation import ClinicalObservation, Consciousness
from patientflow.models.triage import TriageCategory


class TriageRule(NamedTuple):
    """A single danger-sign check."""
    predicate: Callable[[ClinicalObservation], bool]
    category: TriageCategory
    reason: str


def _below(name: str, limit: float) -> Callable[[ClinicalObservation], bool]:
    def check(obs: ClinicalObservation) -> bool:
        value = obs.reading(name)
        return value is not None and value < limit
    return check


def _at_least(name: str, limit: float) -> Callable[[ClinicalObservation], bool]:
    def check(obs: ClinicalObservation) -> bool:
        value = obs.reading(name)
        return value is not None and value >= limit
    return check


def _outside(name: str, low: float, high: float) -> Callable[[ClinicalObservation], bool]:
    def check(obs: ClinicalObservation) -> bool:
        value = obs.reading(name)
        return value is not None and (value < low or value > high)
    return check


def _unresponsive(obs: ClinicalObservation) -> bool:
    return obs.consciousness == Consciousness.UNRESPONSIVE


def _major_burns(obs: ClinicalObservation) -> bool:
    burns = obs.burn_percentage
    return burns is not None and 0 <= burns <= 100 and burns > 20


def _pregnant_chest_pain(obs: ClinicalObservation) -> bool:
    return bool(obs.pregnant and obs.chest_pain)


def _severe_pain(obs: ClinicalObservation) -> bool:
    pain = obs.pain_level
    return pain is not None and 7 <= pain <= 10


EMERGENCY, VERY_URGENT, URGENT = (
    TriageCategory.EMERGENCY,
    TriageCategory.VERY_URGENT,
    TriageCategory.URGENT,
)

DEFAULT_RULES: List[TriageRule] = [
    TriageRule(_unresponsive, EMERGENCY, "consciousness: unresponsive (AVPU U)"),
    TriageRule(_below("spo2", 90), EMERGENCY, "SpO2 below 90%"),
    TriageRule(lambda o: bool(o.severe_bleeding), EMERGENCY, "severe bleeding"),
    TriageRule(_major_burns, EMERGENCY, "burns over 20% body surface"),

    TriageRule(_at_least("temperature", 40.0), VERY_URGENT, "temperature 40.0C or higher"),
    TriageRule(_outside("heart_rate", 40, 130), VERY_URGENT, "heart rate above 130 or below 40"),
    TriageRule(_below("systolic", 90), VERY_URGENT, "systolic pressure below 90 mmHg"),
    TriageRule(lambda o: bool(o.respiratory_distress), VERY_URGENT, "respiratory distress"),
    TriageRule(lambda o: bool(o.chest_pain), VERY_URGENT, "chest pain"),
    TriageRule(_pregnant_chest_pain, VERY_URGENT, "chest pain in pregnancy"),

    TriageRule(_severe_pain, URGENT, "pain level 7/10 or higher"),
]

ROUTINE_REASON = "no danger signs"

# Tier order of the cascade. Routine is the fallback, never a rule tier.
TIER_ORDER = [
    TriageCategory.EMERGENCY,
    TriageCategory.VERY_URGENT,
    TriageCategory.URGENT,
]
