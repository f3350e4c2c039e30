"""Remote collaborators: interfaces and the HTTP backend implementation."""

from sensorwatch.remote.base import (
    AuthPayload,
    LocalAlertPresenter,
    PushTokenProvider,
    RemoteMuteService,
    RemoteNotificationLog,
    RemoteSensorService,
    RemoteSessionService,
)
from sensorwatch.remote.http import (
    BackendClient,
    HttpMuteService,
    HttpNotificationLog,
    HttpSensorService,
    HttpSessionService,
)

__all__ = [
    # Interfaces
    "AuthPayload",
    "RemoteSessionService",
    "RemoteSensorService",
    "RemoteMuteService",
    "RemoteNotificationLog",
    "LocalAlertPresenter",
    "PushTokenProvider",
    # HTTP
    "BackendClient",
    "HttpSessionService",
    "HttpSensorService",
    "HttpMuteService",
    "HttpNotificationLog",
]
