"""
Triage classification engine.

Converts a clinical observation into an urgency category with the list of
rules that placed it there. Pure and deterministic: no I/O, no shared state.
"""

import logging
from typing import Dict, List, Optional, Sequence

from patientflow.models.observation import ClinicalObservation
from patientflow.models.triage import TriageCategory, TriageResult
from patientflow.triage.rules import DEFAULT_RULES, ROUTINE_REASON, TIER_ORDER, TriageRule

logger = logging.getLogger(__name__)


def _group_by_tier(rules: Sequence[TriageRule]) -> Dict[TriageCategory, List[TriageRule]]:
    tiers: Dict[TriageCategory, List[TriageRule]] = {category: [] for category in TIER_ORDER}
    for rule in rules:
        if rule.category not in tiers:
            raise ValueError(f"Rule '{rule.reason}' targets non-tier category {rule.category}")
        tiers[rule.category].append(rule)
    return tiers


_DEFAULT_TIERS = _group_by_tier(DEFAULT_RULES)


def _evaluate(
    observation: ClinicalObservation,
    tiers: Dict[TriageCategory, List[TriageRule]]
) -> TriageResult:
    for category in TIER_ORDER:
        reasons = [rule.reason for rule in tiers[category] if rule.predicate(observation)]
        if reasons:
            return TriageResult(category=category, reasons=tuple(reasons))
    return TriageResult(category=TriageCategory.ROUTINE, reasons=(ROUTINE_REASON,))


def classify(observation: ClinicalObservation) -> TriageResult:
    """
    Classify an observation with the default rule table.

    Tiers are checked Emergency -> Very Urgent -> Urgent; the first tier with a
    firing rule wins and every rule that fired in that tier is named in the
    reasons. Absent vitals never fire a rule, so an empty observation is
    Routine.

    Args:
        observation: Vitals and discriminators from one assessment

    Returns:
        Immutable TriageResult
    """
    return _evaluate(observation, _DEFAULT_TIERS)


class TriageClassifier:
    """
    Classifier bound to a rule table.

    The module-level classify() covers normal use; this class exists for the
    request layer (logging) and for alternative rule tables.
    """

    def __init__(self, rules: Optional[Sequence[TriageRule]] = None):
        self.rules = list(rules) if rules is not None else list(DEFAULT_RULES)
        self._tiers = _group_by_tier(self.rules)
        logger.info(f"TriageClassifier initialized with {len(self.rules)} rules")

    def classify(self, observation: ClinicalObservation) -> TriageResult:
        result = _evaluate(observation, self._tiers)
        logger.debug(f"Classified {observation.mode.value} observation as {result.category.value}: {list(result.reasons)}")
        return result
