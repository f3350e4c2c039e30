"""Data model for the sensorwatch client."""

from sensorwatch.schema.alerts import AlertEvent, AlertKind, OfflineAlert, ThresholdAlert
from sensorwatch.schema.notification import NotificationRecord
from sensorwatch.schema.sensor import SensorDescriptor, SensorHistory, SensorKind, SensorReading
from sensorwatch.schema.session import Credentials, Session, UserRole, parse_role

__all__ = [
    # Session
    "Session",
    "Credentials",
    "UserRole",
    "parse_role",
    # Sensors
    "SensorDescriptor",
    "SensorKind",
    "SensorReading",
    "SensorHistory",
    # Alerts
    "AlertEvent",
    "AlertKind",
    "OfflineAlert",
    "ThresholdAlert",
    # Notifications
    "NotificationRecord",
]
