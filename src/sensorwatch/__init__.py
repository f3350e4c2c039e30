"""
Sensorwatch

Client core for a temperature and fuel sensor monitoring service.

The system provides:
- Session management with durable restore across restarts
- Point-in-time sweeps raising offline and out-of-range alerts
- Global and per-sensor mute preferences mirrored from the backend
- Local and remote notification history

Quick Start:
    from sensorwatch import MonitorClient

    client = MonitorClient()
    await client.start(sweep=True)

    await client.login("ops@example.com", "secret")

    # Sweep every assigned sensor
    result = await client.sweep()
    for alert in result.delivered:
        print(alert.message)
"""

__version__ = "0.1.0"

# High-level API
from sensorwatch.auth import SessionManager
from sensorwatch.client import MonitorClient
from sensorwatch.config import ClientConfig, load_config

# Errors
from sensorwatch.errors import (
    ConfigError,
    InvalidCredentials,
    LogoutFailed,
    MalformedResponse,
    NetworkError,
    NotAuthenticated,
    OperationInProgress,
    RemoteSyncFailed,
    SensorUnreachable,
    SensorwatchError,
)
from sensorwatch.monitor import SensorPoller, SweepResult
from sensorwatch.mute import MuteApplied, MuteStateStore, MuteWriteResult
from sensorwatch.notifications import NotificationCoordinator, NotificationPage, NotificationPager, NotificationView
from sensorwatch.scheduler import SweepScheduler

# Schema
from sensorwatch.schema import (
    AlertEvent,
    AlertKind,
    Credentials,
    NotificationRecord,
    OfflineAlert,
    SensorDescriptor,
    SensorHistory,
    SensorKind,
    SensorReading,
    Session,
    ThresholdAlert,
    UserRole,
)

# Storage
from sensorwatch.storage import DictStore, KeyValueStore, SQLiteStore

__all__ = [
    # Version
    "__version__",
    # API
    "MonitorClient",
    "ClientConfig",
    "load_config",
    # Components
    "SessionManager",
    "SensorPoller",
    "SweepResult",
    "MuteStateStore",
    "MuteWriteResult",
    "MuteApplied",
    "NotificationCoordinator",
    "NotificationPage",
    "NotificationPager",
    "NotificationView",
    "SweepScheduler",
    # Schema
    "Session",
    "Credentials",
    "UserRole",
    "SensorDescriptor",
    "SensorHistory",
    "SensorKind",
    "SensorReading",
    "AlertEvent",
    "AlertKind",
    "OfflineAlert",
    "ThresholdAlert",
    "NotificationRecord",
    # Storage
    "KeyValueStore",
    "DictStore",
    "SQLiteStore",
    # Errors
    "SensorwatchError",
    "ConfigError",
    "InvalidCredentials",
    "NetworkError",
    "MalformedResponse",
    "NotAuthenticated",
    "OperationInProgress",
    "SensorUnreachable",
    "RemoteSyncFailed",
    "LogoutFailed",
]
