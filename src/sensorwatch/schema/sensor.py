"""Sensor descriptors and readings."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, field_validator, model_validator


class SensorKind(str, Enum):
    """What a sensor measures."""

    TEMPERATURE = "temperature"
    FUEL = "fuel"

    @property
    def unit(self) -> str:
        return "°C" if self is SensorKind.TEMPERATURE else "%"


_KIND_ALIASES = {
    "temperature": SensorKind.TEMPERATURE,
    "temperatura": SensorKind.TEMPERATURE,
    "fuel": SensorKind.FUEL,
    "combustible": SensorKind.FUEL,
}


class SensorDescriptor(BaseModel):
    """
    A sensor assigned to a user.

    Accepts both the Python field names and the backend's wire names
    (nombre, tipo, umbral, umbralMax).
    """

    id: str
    name: str = Field(..., alias="nombre", min_length=1)
    kind: SensorKind = Field(..., alias="tipo")
    min_threshold: float = Field(..., alias="umbral")
    max_threshold: float = Field(..., alias="umbralMax")

    model_config = {"frozen": True, "populate_by_name": True}

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: object) -> str:
        return str(value)

    @field_validator("kind", mode="before")
    @classmethod
    def _coerce_kind(cls, value: object) -> SensorKind:
        if isinstance(value, SensorKind):
            return value
        kind = _KIND_ALIASES.get(str(value).strip().lower())
        if kind is None:
            raise ValueError(f"Unknown sensor kind: {value!r}")
        return kind

    @model_validator(mode="after")
    def _check_bounds(self) -> "SensorDescriptor":
        if self.min_threshold > self.max_threshold:
            raise ValueError(
                f"min_threshold {self.min_threshold} exceeds max_threshold {self.max_threshold}"
            )
        return self

    def is_out_of_range(self, value: float) -> bool:
        """Strict comparison: values equal to a bound are in range."""
        return value < self.min_threshold or value > self.max_threshold


class SensorReading(BaseModel):
    """Latest value observed for a sensor."""

    sensor_name: str
    value: float
    observed_at: datetime

    @field_validator("observed_at")
    @classmethod
    def _require_timezone(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            raise ValueError("observed_at must be timezone-aware")
        return value

    def age_minutes(self, now: datetime) -> float:
        """Minutes elapsed between the observation and now."""
        return (now - self.observed_at).total_seconds() / 60


class SensorHistory(BaseModel):
    """Recent readings of one sensor with the thresholds currently set."""

    sensor_name: str
    kind: SensorKind | None = None
    min_threshold: float | None = None
    max_threshold: float | None = None
    readings: list[SensorReading] = Field(default_factory=list)

    @property
    def unit(self) -> str:
        return self.kind.unit if self.kind else ""

    def out_of_range(self) -> list[SensorReading]:
        """Readings strictly outside the current thresholds."""
        return [
            r
            for r in self.readings
            if (self.min_threshold is not None and r.value < self.min_threshold)
            or (self.max_threshold is not None and r.value > self.max_threshold)
        ]
