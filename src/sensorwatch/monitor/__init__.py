"""Sensor polling and alert rules."""

from sensorwatch.monitor.poller import SensorPoller, SweepResult
from sensorwatch.monitor.rules import OFFLINE_AFTER_MINUTES, evaluate

__all__ = [
    "SensorPoller",
    "SweepResult",
    "evaluate",
    "OFFLINE_AFTER_MINUTES",
]
