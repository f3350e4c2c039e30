"""Alert events produced by a sweep, prior to mute filtering."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from sensorwatch.schema.sensor import SensorDescriptor


class AlertKind(Enum):
    """Type of alert."""

    OFFLINE = "offline"
    THRESHOLD = "threshold"


@dataclass(frozen=True)
class AlertEvent:
    """An out-of-bounds or offline condition detected for a sensor."""

    user_id: str
    sensor: SensorDescriptor
    detected_at: datetime

    kind = AlertKind.THRESHOLD
    title = "Sensor alert"

    @property
    def sensor_name(self) -> str:
        return self.sensor.name

    @property
    def message(self) -> str:
        raise NotImplementedError


@dataclass(frozen=True)
class OfflineAlert(AlertEvent):
    """The sensor has not reported within the offline window."""

    age_minutes: float

    kind = AlertKind.OFFLINE
    title = "Sensor offline"

    @property
    def message(self) -> str:
        return f"Sensor {self.sensor.name} is offline. Last reading {self.age_minutes:.0f} minutes ago."


@dataclass(frozen=True)
class ThresholdAlert(AlertEvent):
    """The latest value lies strictly outside the sensor's bounds."""

    value: float
    unit: str

    kind = AlertKind.THRESHOLD
    title = "Sensor out of range"

    @property
    def below_minimum(self) -> bool:
        return self.value < self.sensor.min_threshold

    @property
    def message(self) -> str:
        side = "below minimum" if self.below_minimum else "above maximum"
        return f"Sensor {self.sensor.name} is out of range ({side}): {self.value:g}{self.unit}"
