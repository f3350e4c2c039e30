"""Error taxonomy for the sensorwatch client."""

from __future__ import annotations


class SensorwatchError(Exception):
    """Base class for every error raised by sensorwatch."""


class ConfigError(SensorwatchError):
    """Configuration value could not be parsed."""


class InvalidCredentials(SensorwatchError):
    """The backend rejected the supplied email/password."""


class NetworkError(SensorwatchError):
    """Transient transport failure talking to the backend. Safe to retry."""


class MalformedResponse(SensorwatchError):
    """The backend answered, but the body could not be understood."""


class NotAuthenticated(SensorwatchError):
    """An operation needed a session and none is established."""


class OperationInProgress(SensorwatchError):
    """A login is already in flight."""


class SensorUnreachable(SensorwatchError):
    """Per-sensor diagnostic: the latest reading could not be obtained."""

    def __init__(self, sensor_name: str, reason: str):
        super().__init__(f"Sensor {sensor_name!r} unreachable: {reason}")
        self.sensor_name = sensor_name
        self.reason = reason


class RemoteSyncFailed(SensorwatchError):
    """A mute write was applied locally but not on the backend."""

    def __init__(self, key: str, cause: Exception | None = None):
        super().__init__(f"Remote sync failed for {key}: {cause}")
        self.key = key
        self.cause = cause


class LogoutFailed(SensorwatchError):
    """Remote push-token invalidation failed. Local state was still cleared."""

    def __init__(self, user_id: str, cause: Exception | None = None):
        super().__init__(f"Logout for user {user_id} was local-only: {cause}")
        self.user_id = user_id
        self.cause = cause
