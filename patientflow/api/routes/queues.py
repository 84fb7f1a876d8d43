"""
Department queue routes.

Thin adapters over the DepartmentQueueManager. Every lane returned to the
client is annotated by the SLA monitor.
"""
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel

from patientflow.api.dependencies import get_classifier, get_event_bus, get_manager, get_thresholds
from patientflow.core.config import SLAThresholds
from patientflow.core.event_bus import EventBus
from patientflow.models.observation import ClinicalObservation
from patientflow.models.queue import LanePlace, LaneSnapshot, QueueAction, QueueStatus, SubjectRef
from patientflow.models.triage import TriageCategory
from patientflow.queue.manager import DepartmentQueueManager
from patientflow.sla.monitor import evaluate_entry, evaluate_lane
from patientflow.triage.classifier import TriageClassifier

router = APIRouter()


# ========================
# Request Models
# ========================

class EnqueueRequest(BaseModel):
    department: str
    subject: SubjectRef
    priority: Optional[int] = None
    category: Optional[TriageCategory] = None
    observation: Optional[ClinicalObservation] = None


class TransitionRequest(BaseModel):
    action: QueueAction


class PriorityRequest(BaseModel):
    priority: int


class ReorderRequest(BaseModel):
    anchor_id: str
    place: LanePlace = LanePlace.BEFORE


class SortRequest(BaseModel):
    department: str
    status: QueueStatus = QueueStatus.WAITING


def _lane_response(request: Request, snapshot: LaneSnapshot, thresholds: SLAThresholds) -> Dict[str, Any]:
    manager = get_manager(request)
    return evaluate_lane(snapshot, thresholds, now=manager.clock()).to_dict()


# ========================
# Lane reads
# ========================

@router.get("/lane")
async def get_lane(
    request: Request,
    department: str = Query(..., min_length=1),
    status: QueueStatus = QueueStatus.WAITING,
    manager: DepartmentQueueManager = Depends(get_manager),
    thresholds: SLAThresholds = Depends(get_thresholds)
):
    """Get one lane with SLA annotations and the lane average."""
    snapshot = await manager.get_lane(department, status)
    return _lane_response(request, snapshot, thresholds)


@router.get("/board/{department}")
async def get_board(
    request: Request,
    department: str,
    manager: DepartmentQueueManager = Depends(get_manager),
    thresholds: SLAThresholds = Depends(get_thresholds)
):
    """Get all lanes of a department."""
    board = await manager.get_department_board(department)
    return {
        "department": department,
        "lanes": {
            status.value: _lane_response(request, snapshot, thresholds)
            for status, snapshot in board.items()
        }
    }


# ========================
# Admission
# ========================

@router.post("", status_code=201)
async def enqueue(
    body: EnqueueRequest,
    manager: DepartmentQueueManager = Depends(get_manager),
    classifier: TriageClassifier = Depends(get_classifier)
):
    """
    Add a patient to a department's waiting lane.

    An attached observation is an assessment being accepted, so it must
    carry a chief complaint; it is classified when no category is given.
    """
    if body.observation is not None:
        body.observation.require_chief_complaint()

    category = body.category
    triage = None
    if category is None and body.observation is not None:
        triage = classifier.classify(body.observation)
        category = triage.category

    entry = await manager.enqueue(body.department, body.subject, priority=body.priority, category=category)
    return {
        "entry": entry.model_dump(mode="json"),
        "triage": triage.to_dict() if triage else None
    }


# ========================
# Entry operations
# ========================

@router.get("/{entry_id}")
async def get_entry(
    entry_id: str,
    manager: DepartmentQueueManager = Depends(get_manager),
    thresholds: SLAThresholds = Depends(get_thresholds)
):
    """Get one entry with its SLA annotation."""
    entry = await manager.get_entry(entry_id)
    return evaluate_entry(entry, thresholds, manager.clock()).to_dict()


@router.get("/{entry_id}/events")
async def get_entry_events(
    entry_id: str,
    limit: int = Query(50, ge=1, le=500),
    manager: DepartmentQueueManager = Depends(get_manager),
    event_bus: EventBus = Depends(get_event_bus)
):
    """
    Recent queue events for an entry, most recent first.

    Served from the store's persisted event log when it keeps one, so the
    trail survives restarts and history eviction; otherwise from the bus.
    """
    list_events = getattr(manager.store, "list_events", None)
    if list_events:
        events = await list_events(entry_id, limit=limit)
    else:
        events = event_bus.get_history(entry_id=entry_id, limit=limit)
    return {
        "entry_id": entry_id,
        "events": [e.to_dict() for e in events]
    }


@router.patch("/{entry_id}/transition")
async def transition(
    entry_id: str,
    body: TransitionRequest,
    manager: DepartmentQueueManager = Depends(get_manager)
):
    """Start, complete or cancel an entry."""
    entry = await manager.transition(entry_id, body.action)
    return entry.model_dump(mode="json")


@router.patch("/{entry_id}/priority")
async def set_priority(
    entry_id: str,
    body: PriorityRequest,
    manager: DepartmentQueueManager = Depends(get_manager)
):
    """Change an entry's priority; its position is unchanged."""
    entry = await manager.set_priority(entry_id, body.priority)
    return entry.model_dump(mode="json")


@router.patch("/{entry_id}/reorder")
async def reorder(
    request: Request,
    entry_id: str,
    body: ReorderRequest,
    manager: DepartmentQueueManager = Depends(get_manager),
    thresholds: SLAThresholds = Depends(get_thresholds)
):
    """Move an entry before or after another entry of the same lane."""
    snapshot = await manager.reorder(entry_id, body.anchor_id, body.place)
    return _lane_response(request, snapshot, thresholds)


@router.patch("/{entry_id}/top")
async def move_to_top(
    request: Request,
    entry_id: str,
    manager: DepartmentQueueManager = Depends(get_manager),
    thresholds: SLAThresholds = Depends(get_thresholds)
):
    """Move an entry to the head of its lane."""
    snapshot = await manager.move_to_top(entry_id)
    return _lane_response(request, snapshot, thresholds)


@router.patch("/{entry_id}/end")
async def move_to_end(
    request: Request,
    entry_id: str,
    manager: DepartmentQueueManager = Depends(get_manager),
    thresholds: SLAThresholds = Depends(get_thresholds)
):
    """Move an entry to the tail of its lane."""
    snapshot = await manager.move_to_end(entry_id)
    return _lane_response(request, snapshot, thresholds)


@router.post("/sort")
async def sort_by_priority(
    request: Request,
    body: SortRequest,
    manager: DepartmentQueueManager = Depends(get_manager),
    thresholds: SLAThresholds = Depends(get_thresholds)
):
    """Renumber a lane by priority, keeping the current order among equal priorities."""
    snapshot = await manager.sort_by_priority(body.department, body.status)
    return _lane_response(request, snapshot, thresholds)


@router.delete("/{entry_id}")
async def delete_entry(
    entry_id: str,
    manager: DepartmentQueueManager = Depends(get_manager)
):
    """Permanently remove a done or cancelled entry."""
    await manager.delete(entry_id)
    return {"status": "deleted", "entry_id": entry_id}
