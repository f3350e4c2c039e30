"""
Alert decision rules.

Evaluated in order for each sensor; the first match wins:

1. Reading older than the offline window -> OfflineAlert
2. Value strictly outside [min_threshold, max_threshold] -> ThresholdAlert
3. Otherwise no alert
"""

from __future__ import annotations

from datetime import datetime

from sensorwatch.schema import AlertEvent, OfflineAlert, SensorDescriptor, SensorReading, ThresholdAlert

OFFLINE_AFTER_MINUTES = 15.0


def evaluate(
    user_id: str,
    sensor: SensorDescriptor,
    reading: SensorReading,
    now: datetime,
    offline_after_minutes: float = OFFLINE_AFTER_MINUTES,
) -> AlertEvent | None:
    """Decide whether a reading raises an alert."""
    age = reading.age_minutes(now)
    if age > offline_after_minutes:
        return OfflineAlert(user_id=user_id, sensor=sensor, detected_at=now, age_minutes=age)

    if sensor.is_out_of_range(reading.value):
        return ThresholdAlert(
            user_id=user_id,
            sensor=sensor,
            detected_at=now,
            value=reading.value,
            unit=sensor.kind.unit,
        )

    return None
