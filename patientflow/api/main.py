"""
FastAPI application for the Patient Flow Engine.

Authentication and permission checks happen upstream; requests reaching this
app are already authorized.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Callable, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from patientflow.api.routes import queues, triage
from patientflow.core.config import Config, SLAThresholds
from patientflow.core.errors import (
    Busy,
    CrossDepartmentMove,
    EntryNotFound,
    InvalidDepartment,
    InvalidState,
    InvalidTransition,
    PatientFlowError,
    StoreUnavailable,
    ValidationError,
)
from patientflow.core.event_bus import EventBus
from patientflow.queue.locks import LaneLockRegistry
from patientflow.queue.manager import DepartmentQueueManager
from patientflow.queue.store import InMemoryQueueStore, QueueStore
from patientflow.triage.classifier import TriageClassifier

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if Config.DEBUG else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


STATUS_CODES = {
    ValidationError: 400,
    EntryNotFound: 404,
    InvalidDepartment: 404,
    InvalidTransition: 409,
    InvalidState: 409,
    CrossDepartmentMove: 409,
    Busy: 503,
    StoreUnavailable: 503,
}


def _build_store() -> QueueStore:
    """Queue store selected by STORE_BACKEND."""
    if Config.STORE_BACKEND == "sql":
        from patientflow.db.connection import get_session_factory
        from patientflow.db.sql_store import SqlQueueStore
        return SqlQueueStore(get_session_factory())
    return InMemoryQueueStore()


def create_app(
    store: Optional[QueueStore] = None,
    clock: Optional[Callable[[], datetime]] = None,
    sla_thresholds: Optional[SLAThresholds] = None,
    lock_timeout: Optional[float] = None
) -> FastAPI:
    """
    Build the API application.

    Args:
        store: Queue store; defaults to the configured backend
        clock: Time source shared by the queue manager and the SLA monitor
        sla_thresholds: Fixed thresholds; defaults to reading Config per request
        lock_timeout: Lane lock timeout in seconds
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting Patient Flow API...")

        queue_store = store or _build_store()
        event_bus = EventBus(max_history=Config.EVENT_HISTORY_SIZE)
        timeout = lock_timeout if lock_timeout is not None else Config.LANE_LOCK_TIMEOUT_SECONDS

        record_event = getattr(queue_store, "record_event", None)
        if record_event:
            event_bus.subscribe_all(record_event)

        app.state.event_bus = event_bus
        app.state.classifier = TriageClassifier()
        app.state.sla_thresholds = sla_thresholds
        app.state.manager = DepartmentQueueManager(
            store=queue_store,
            locks=LaneLockRegistry(default_timeout=timeout),
            event_bus=event_bus,
            departments=Config.DEPARTMENTS,
            clock=clock,
            lock_timeout=timeout
        )

        logger.info("Patient Flow API started successfully")

        yield

        logger.info("Shutting down Patient Flow API...")
        event_bus.stop()
        await queue_store.close()
        logger.info("Shutdown complete")

    app = FastAPI(
        title="Patient Flow API",
        description="Triage classification and department queue management",
        version="1.0.0",
        lifespan=lifespan
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=Config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(PatientFlowError)
    async def handle_engine_error(request: Request, exc: PatientFlowError):
        status_code = next(
            (code for error_type, code in STATUS_CODES.items() if isinstance(exc, error_type)),
            500
        )
        headers = {"Retry-After": str(int(max(1, exc.retry_after)))} if isinstance(exc, Busy) else None
        if status_code >= 500:
            logger.warning(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
        return JSONResponse(status_code=status_code, content=exc.to_dict(), headers=headers)

    @app.get("/")
    async def root():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "service": "Patient Flow API",
            "version": "1.0.0",
            "timestamp": datetime.now().isoformat()
        }

    @app.get("/api/health")
    async def health_check(request: Request):
        """Detailed health check."""
        manager = getattr(request.app.state, "manager", None)
        return {
            "status": "healthy",
            "components": {
                "queue_manager": "running" if manager else "not initialized",
                "store": type(manager.store).__name__ if manager else None
            },
            "config": {
                "debug": Config.DEBUG,
                "store_backend": Config.STORE_BACKEND
            }
        }

    @app.get("/api/departments")
    async def list_departments():
        """Recognized department keys."""
        return {"departments": Config.DEPARTMENTS, "count": len(Config.DEPARTMENTS)}

    app.include_router(triage.router, prefix="/api/triage", tags=["triage"])
    app.include_router(queues.router, prefix="/api/queues", tags=["queues"])

    return app


app = create_app()
