"""
Interfaces of the remote collaborators the core depends on.

The backend itself is opaque; these are the only calls the core makes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date

from pydantic import BaseModel, Field, field_validator

from sensorwatch.schema import (
    NotificationRecord,
    SensorDescriptor,
    SensorHistory,
    SensorReading,
    UserRole,
    parse_role,
)


class AuthPayload(BaseModel):
    """What the backend returns for a successful authentication."""

    token: str = Field(..., min_length=1)
    user_id: str = Field(..., alias="userId")
    role: UserRole = Field(..., alias="rol")

    model_config = {"populate_by_name": True}

    @field_validator("user_id", mode="before")
    @classmethod
    def _coerce_user_id(cls, value: object) -> str:
        return str(value)

    @field_validator("role", mode="before")
    @classmethod
    def _coerce_role(cls, value: object) -> UserRole:
        return parse_role(value)


class RemoteSessionService(ABC):
    """Authentication and push-token bookkeeping."""

    @abstractmethod
    async def authenticate(self, email: str, password: str) -> AuthPayload:
        """Raises InvalidCredentials or NetworkError."""
        pass

    @abstractmethod
    async def invalidate_token(self, user_id: str, push_token: str) -> None:
        """Deactivate the device push token on logout."""
        pass

    @abstractmethod
    async def register_push_token(self, user_id: str, push_token: str) -> None:
        """Associate a device push token with the user."""
        pass


class RemoteSensorService(ABC):
    """Sensor assignments and readings."""

    @abstractmethod
    async def list_assigned_sensors(self, user_id: str) -> list[SensorDescriptor]:
        pass

    @abstractmethod
    async def latest_reading(self, sensor_name: str) -> SensorReading:
        pass

    @abstractmethod
    async def reading_history(
        self,
        sensor_name: str,
        limit: int = 25,
        start: date | None = None,
        end: date | None = None,
    ) -> SensorHistory:
        """Up to limit readings, optionally within [start, end] (inclusive dates)."""
        pass

    @abstractmethod
    async def update_thresholds(
        self,
        sensor_name: str,
        min_threshold: float | None = None,
        max_threshold: float | None = None,
    ) -> None:
        """Change one or both bounds. None leaves a bound unchanged."""
        pass


class RemoteMuteService(ABC):
    """Authoritative mute preferences."""

    @abstractmethod
    async def get_global_mute(self, user_id: str) -> bool:
        pass

    @abstractmethod
    async def set_global_mute(self, user_id: str, muted: bool) -> None:
        pass

    @abstractmethod
    async def get_sensor_mute(self, user_id: str, sensor_name: str) -> bool:
        pass

    @abstractmethod
    async def set_sensor_mute(self, user_id: str, sensor_name: str, muted: bool) -> None:
        pass


class RemoteNotificationLog(ABC):
    """Server-side paginated notification history."""

    @abstractmethod
    async def fetch_page(self, user_id: str, page: int, page_size: int) -> list[NotificationRecord]:
        """Records for a 1-based page, newest first."""
        pass

    async def send_notification(self, user_id: str, message: str) -> None:
        """Ask the backend to deliver a push notification."""
        raise NotImplementedError


class LocalAlertPresenter(ABC):
    """Displays an alert to the user. Fire-and-forget."""

    @abstractmethod
    async def present(self, title: str, body: str) -> None:
        pass


class PushTokenProvider(ABC):
    """Source of the device's push-notification token."""

    @abstractmethod
    async def get_token(self) -> str | None:
        """Return a token, or None when push is unavailable."""
        pass
