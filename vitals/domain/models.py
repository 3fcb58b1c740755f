"""
Domain models for the foot-care vital-signs simulator.

These models represent the core business concepts and are framework-agnostic.
Outward-facing models serialise with camelCase aliases so the JSON shape
matches what the mobile client already consumes.
"""

import uuid
from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# Seed values the simulated stream starts from on every process start
INITIAL_HEART_RATE = 72.0
INITIAL_FOOT_PRESSURE = 85.0
INITIAL_BATTERY_LEVEL = 85


class VitalsError(Exception):
    """Base class for errors raised by the vitals package."""


class PersistenceError(VitalsError):
    """Writing or reading a health metric sample through storage failed."""


class SimulatorState(BaseModel):
    """
    Mutable state of the simulated telemetry stream.

    Bounds are enforced by the simulator through clamping, so assignments are
    not validated here. A single instance is shared by every caller of a
    simulator; there is no per-user partitioning.
    """

    heart_rate: float = INITIAL_HEART_RATE
    foot_pressure: float = INITIAL_FOOT_PRESSURE
    bluetooth_connected: bool = True
    battery_level: int = INITIAL_BATTERY_LEVEL
    anomalies_detected: int = 0
    last_update_ms: float = Field(description="Epoch ms of the last random-walk update")

    @classmethod
    def initial(cls, now_ms: float) -> "SimulatorState":
        return cls(last_update_ms=now_ms)


class _CamelModel(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)


class VitalsSample(_CamelModel):
    """Point-in-time snapshot of the simulated stream."""

    heart_rate: int
    foot_pressure: float
    bluetooth_connected: bool
    battery_level: int = Field(ge=0, le=100)
    anomalies_detected: int = Field(ge=0, le=10)
    timestamp: int = Field(description="Epoch milliseconds")


class HealthMetricCreate(_CamelModel):
    """Insert payload for a persisted health metric sample."""

    user_id: str = Field(min_length=1)
    heart_rate: int
    foot_pressure: float
    bluetooth_connected: bool = False
    battery_level: int = Field(default=0, ge=0, le=100)
    anomalies_detected: int = Field(default=0, ge=0, le=10)


class HealthMetricRecord(HealthMetricCreate):
    """Stored health metric sample. Append-only."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    recorded_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class UnsavedSample(_CamelModel):
    """Sample returned by a push that had no user to persist against."""

    user_id: str | None = None
    heart_rate: int
    foot_pressure: float
    bluetooth_connected: bool
    battery_level: int
    anomalies_detected: int
    timestamp: int


class PushResult(_CamelModel):
    """Outcome of pushing a sample: either the stored record or the unsaved payload."""

    saved: bool
    metrics: HealthMetricRecord | None = None
    record: UnsavedSample | None = None

    def to_json_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
