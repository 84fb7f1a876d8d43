"""
SLA Monitor.

Colors queue entries by how long they have been waiting or in service, and
computes lane averages for display. Pure functions over snapshots.
"""

from datetime import datetime
from typing import Dict, Iterable, Optional

from patientflow.core.config import SLAThresholds
from patientflow.models.queue import LaneSnapshot, QueueEntry, QueueStatus
from patientflow.models.sla import LaneSLAReport, SLAAnnotation, SLAState


def elapsed_minutes(entry: QueueEntry, now: datetime) -> Optional[float]:
    """
    Minutes spent in the current stage.

    Waiting entries count from entered_waiting_at, InService entries from
    entered_service_at. Terminal entries have no running clock (None).
    Clock skew never yields a negative value.
    """
    if entry.status == QueueStatus.WAITING:
        started = entry.entered_waiting_at
    elif entry.status == QueueStatus.IN_SERVICE:
        started = entry.entered_service_at
    else:
        return None
    if started is None:
        return None
    return max(0.0, (now - started).total_seconds() / 60.0)


def classify_elapsed(minutes: Optional[float], warn: float, crit: float) -> SLAState:
    """>= crit is Critical, >= warn is Warning, anything else (or unknown) is Normal."""
    if minutes is None:
        return SLAState.NORMAL
    if minutes >= crit:
        return SLAState.CRITICAL
    if minutes >= warn:
        return SLAState.WARNING
    return SLAState.NORMAL


def _limits(status: QueueStatus, thresholds: SLAThresholds):
    if status == QueueStatus.WAITING:
        return thresholds.wait_warn, thresholds.wait_crit
    if status == QueueStatus.IN_SERVICE:
        return thresholds.service_warn, thresholds.service_crit
    return None


def evaluate_entry(entry: QueueEntry, thresholds: SLAThresholds, now: datetime) -> SLAAnnotation:
    """Annotate one entry with elapsed minutes and SLA state."""
    minutes = elapsed_minutes(entry, now)
    limits = _limits(entry.status, thresholds)
    state = classify_elapsed(minutes, *limits) if limits else SLAState.NORMAL
    return SLAAnnotation(entry=entry, elapsed_minutes=minutes, state=state)


def mean_elapsed(annotations: Iterable[SLAAnnotation]) -> float:
    values = [a.elapsed_minutes for a in annotations if a.elapsed_minutes is not None]
    if not values:
        return 0.0
    return sum(values) / len(values)


def evaluate_lane(
    snapshot: LaneSnapshot,
    thresholds: SLAThresholds,
    now: Optional[datetime] = None
) -> LaneSLAReport:
    """
    Annotate every entry of a lane and compute the lane's mean elapsed time.

    Args:
        snapshot: Lane snapshot from the queue manager
        thresholds: Warn/crit minutes for waiting and service
        now: Evaluation time (defaults to the current time)

    Returns:
        LaneSLAReport; an empty lane reports a mean of 0
    """
    now = now or datetime.now()
    annotations = [evaluate_entry(entry, thresholds, now) for entry in snapshot.entries]
    mean = mean_elapsed(annotations)
    limits = _limits(snapshot.status, thresholds)
    mean_state = classify_elapsed(mean, *limits) if limits and annotations else SLAState.NORMAL

    counts: Dict[SLAState, int] = {state: 0 for state in SLAState}
    for annotation in annotations:
        counts[annotation.state] += 1

    return LaneSLAReport(
        department=snapshot.department,
        status=snapshot.status,
        evaluated_at=now,
        entries=annotations,
        mean_elapsed_minutes=mean,
        mean_state=mean_state,
        counts=counts
    )
