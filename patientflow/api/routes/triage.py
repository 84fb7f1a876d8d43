"""
Triage routes.

Classifies clinical observations into urgency categories.
"""
from typing import Any, Dict

from fastapi import APIRouter, Depends

from patientflow.api.dependencies import get_classifier
from patientflow.models.observation import ClinicalObservation, SubjectMode
from patientflow.triage.classifier import TriageClassifier
from patientflow.triage.reference_ranges import flag_vitals, reference_ranges

router = APIRouter()


@router.post("/classify")
async def classify_triage(
    observation: ClinicalObservation,
    classifier: TriageClassifier = Depends(get_classifier)
) -> Dict[str, Any]:
    """Classify an observation and flag vitals outside reference ranges."""
    result = classifier.classify(observation)
    return {
        **result.to_dict(),
        "mode": observation.mode.value,
        "reference_flags": [flag.to_dict() for flag in flag_vitals(observation)]
    }


@router.get("/reference-ranges")
async def get_reference_ranges(mode: SubjectMode = SubjectMode.ADULT) -> Dict[str, Any]:
    """Display reference ranges for a subject mode."""
    return {
        "mode": mode.value,
        "ranges": {
            name: {"low": low, "high": high}
            for name, (low, high) in reference_ranges(mode).items()
        }
    }
