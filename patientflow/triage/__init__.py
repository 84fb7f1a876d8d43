"""
Triage classification package.
"""

from .rules import TriageRule, DEFAULT_RULES, ROUTINE_REASON
from .classifier import classify, TriageClassifier
from .reference_ranges import REFERENCE_RANGES, VitalFlag, flag_vitals, reference_ranges

__all__ = [
    "TriageRule",
    "DEFAULT_RULES",
    "ROUTINE_REASON",
    "classify",
    "TriageClassifier",
    "REFERENCE_RANGES",
    "VitalFlag",
    "flag_vitals",
    "reference_ranges"
]
