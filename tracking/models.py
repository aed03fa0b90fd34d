"""Pydantic models for live ride tracking."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from core.constants import MPS_TO_KMH
from core.date_utils import ensure_utc, format_duration, get_current_utc_time


class SessionState(str, Enum):
    """Ride lifecycle state."""

    IDLE = "idle"
    ACTIVE = "active"
    ENDING = "ending"
    CLOSED = "closed"


class PermissionState(str, Enum):
    """Location permission as reported by the location source."""

    GRANTED = "granted"
    DENIED = "denied"
    PROMPT = "prompt"


class Fix(BaseModel):
    """
    One raw positional sample from the location source.

    ``speed_mps``, ``altitude_m`` and ``accuracy_m`` are optional because
    receivers routinely omit them; a negative speed is kept as reported and
    treated as "no speed" downstream.
    """

    latitude: float = Field(ge=-90.0, le=90.0)
    longitude: float = Field(ge=-180.0, le=180.0)
    speed_mps: float | None = None
    altitude_m: float | None = None
    accuracy_m: float | None = Field(default=None, ge=0.0)
    timestamp: datetime = Field(default_factory=get_current_utc_time)

    model_config = ConfigDict(frozen=True)

    @field_validator("timestamp")
    @classmethod
    def _timestamp_is_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @property
    def coordinate(self) -> tuple[float, float]:
        return (self.latitude, self.longitude)


class AcceptedFix(BaseModel):
    """A fix that passed filtering, tagged with its deltas to the previous one."""

    fix: Fix
    distance_delta_m: float = 0.0
    elevation_delta_m: float = 0.0

    model_config = ConfigDict(frozen=True)

    @property
    def coordinate(self) -> tuple[float, float]:
        return self.fix.coordinate

    @property
    def speed_kmh(self) -> float | None:
        """Reported speed in km/h, or None when the fix carried no usable speed."""
        speed = self.fix.speed_mps
        if speed is None or speed < 0:
            return None
        return speed * MPS_TO_KMH


class FixRejection(BaseModel):
    """A fix the filter refused, with the reason it was refused."""

    fix: Fix
    reason: str
    distance_m: float

    model_config = ConfigDict(frozen=True)


class RideMetrics(BaseModel):
    """Running aggregate of an active ride."""

    distance_meters: float = 0.0
    elevation_gain_meters: float = 0.0
    max_speed_kmh: float = 0.0
    average_speed_kmh: float = 0.0
    current_speed_kmh: float = 0.0
    duration_seconds: int = 0
    points_recorded: int = 0

    @property
    def duration_display(self) -> str:
        return format_duration(self.duration_seconds)


class RideSummary(BaseModel):
    """Final, immutable record of a finished ride handed to persistence."""

    session_id: str
    title: str
    description: str
    started_at: datetime
    ended_at: datetime
    metrics: RideMetrics
    path: tuple[tuple[float, float], ...]

    model_config = ConfigDict(frozen=True)


class RemoteRideRecord(BaseModel):
    """What the remote ride authority knows about one ride."""

    session_id: str
    is_open: bool
    started_at: datetime | None = None
    path: list[tuple[float, float]] = Field(default_factory=list)
    elevation_gain_meters: float | None = None
    max_speed_kmh: float | None = None

    model_config = ConfigDict(extra="ignore")


class LocalSessionRecord(BaseModel):
    """The session identity persisted locally so a restart can recover it."""

    session_id: str
    started_at: datetime
    state: SessionState = SessionState.ACTIVE
    updated_at: datetime = Field(default_factory=get_current_utc_time)

    model_config = ConfigDict(extra="ignore")


class RideEvent(BaseModel):
    """Lifecycle or metrics update delivered to presentation listeners."""

    event_type: Literal["state", "metrics"]
    state: SessionState
    session_id: str | None = None
    metrics: RideMetrics = Field(default_factory=RideMetrics)
    timestamp: datetime = Field(default_factory=get_current_utc_time)


__all__ = [
    "AcceptedFix",
    "Fix",
    "FixRejection",
    "LocalSessionRecord",
    "PermissionState",
    "RemoteRideRecord",
    "RideEvent",
    "RideMetrics",
    "RideSummary",
    "SessionState",
]
