"""Tests for display reference ranges."""

from patientflow.models.observation import ClinicalObservation, SubjectMode
from patientflow.triage import flag_vitals, reference_ranges


def test_adult_tachycardia_flagged_high():
    flags = flag_vitals(ClinicalObservation(heart_rate=150))

    assert [(f.name, f.status) for f in flags] == [("heart_rate", "high")]
    assert flags[0].high == 130


def test_child_ranges_differ_from_adult():
    child = ClinicalObservation(mode=SubjectMode.CHILD, heart_rate=150, respiratory_rate=35)
    assert flag_vitals(child) == []

    bradycardic_child = ClinicalObservation(mode=SubjectMode.CHILD, heart_rate=50)
    assert [(f.name, f.status) for f in flag_vitals(bradycardic_child)] == [("heart_rate", "low")]


def test_open_ended_spo2_range():
    flags = flag_vitals(ClinicalObservation(spo2=91))
    assert flags[0].to_dict() == {"name": "spo2", "value": 91.0, "low": 94, "high": None, "status": "low"}

    assert flag_vitals(ClinicalObservation(spo2=100)) == []


def test_missing_vitals_not_flagged():
    assert flag_vitals(ClinicalObservation()) == []


def test_reference_ranges_returns_copy():
    ranges = reference_ranges(SubjectMode.ADULT)
    ranges["heart_rate"] = (0, 0)

    assert reference_ranges(SubjectMode.ADULT)["heart_rate"] == (40, 130)
