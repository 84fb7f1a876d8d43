"""
Configuration for the Patient Flow Engine.
Values are read from the environment (and a local .env file).
"""

import logging
import os
from typing import List

from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator

load_dotenv()

logger = logging.getLogger(__name__)


DEFAULT_DEPARTMENTS = [
    "General",
    "Emergency",
    "Pediatrics",
    "Surgery",
    "Radiology",
    "Laboratory",
]


class SLAThresholds(BaseModel):
    """Wait/service time thresholds in minutes."""
    wait_warn: float = Field(30, ge=0)
    wait_crit: float = Field(60, ge=0)
    service_warn: float = Field(30, ge=0)
    service_crit: float = Field(60, ge=0)

    @model_validator(mode="after")
    def check_ordering(self) -> "SLAThresholds":
        if self.wait_warn > self.wait_crit:
            raise ValueError("wait_warn must not exceed wait_crit")
        if self.service_warn > self.service_crit:
            raise ValueError("service_warn must not exceed service_crit")
        return self


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_list(name: str, default: List[str]) -> List[str]:
    value = os.getenv(name)
    if not value:
        return list(default)
    return [item.strip() for item in value.split(",") if item.strip()]


def _env_minutes(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        minutes = float(value)
    except ValueError:
        logger.warning(f"Ignoring non-numeric {name}={value!r}, using {default}")
        return default
    if minutes < 0:
        logger.warning(f"Ignoring negative {name}={value!r}, using {default}")
        return default
    return minutes


class Config:
    """Application configuration."""

    # Server
    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = int(os.getenv("PORT", "8000"))
    DEBUG: bool = _env_bool("DEBUG")
    CORS_ORIGINS: List[str] = _env_list("CORS_ORIGINS", ["http://localhost:3000"])

    # Storage
    STORE_BACKEND: str = os.getenv("STORE_BACKEND", "memory")
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./patientflow.db")

    # Queues
    DEPARTMENTS: List[str] = _env_list("DEPARTMENTS", DEFAULT_DEPARTMENTS)
    LANE_LOCK_TIMEOUT_SECONDS: float = float(os.getenv("LANE_LOCK_TIMEOUT_SECONDS", "5"))
    EVENT_HISTORY_SIZE: int = int(os.getenv("EVENT_HISTORY_SIZE", "1000"))

    @classmethod
    def get_sla_thresholds(cls) -> SLAThresholds:
        """
        Read SLA thresholds at call time so edited settings apply to the next read.

        Falls back to 30/60/30/60 for unset values. A warn threshold above its
        critical partner is clamped down to the critical value.
        """
        wait_crit = _env_minutes("QUEUE_WAIT_CRIT", 60)
        service_crit = _env_minutes("SERVICE_CRIT", 60)
        return SLAThresholds(
            wait_warn=min(_env_minutes("QUEUE_WAIT_WARN", 30), wait_crit),
            wait_crit=wait_crit,
            service_warn=min(_env_minutes("SERVICE_WARN", 30), service_crit),
            service_crit=service_crit
        )
