"""
Request-scoped access to the engine components wired up in the app lifespan.
"""

from fastapi import Request

from patientflow.core.config import Config, SLAThresholds
from patientflow.core.event_bus import EventBus
from patientflow.queue.manager import DepartmentQueueManager
from patientflow.triage.classifier import TriageClassifier


def get_manager(request: Request) -> DepartmentQueueManager:
    return request.app.state.manager


def get_event_bus(request: Request) -> EventBus:
    return request.app.state.event_bus


def get_classifier(request: Request) -> TriageClassifier:
    return request.app.state.classifier


def get_thresholds(request: Request) -> SLAThresholds:
    """Fixed thresholds if the app was built with them, else the live configuration."""
    thresholds = getattr(request.app.state, "sla_thresholds", None)
    return thresholds or Config.get_sla_thresholds()
