"""
HTTP implementation of the remote collaborators.

Talks to the monitoring backend's PHP endpoints with httpx. Wire
quirks (form bodies, Spanish field names, 0/1 booleans, naive
timestamps in server local time) stay in this module.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone, tzinfo
from typing import Any

import httpx
from pydantic import ValidationError

from sensorwatch.errors import InvalidCredentials, MalformedResponse, NetworkError
from sensorwatch.remote.base import (
    AuthPayload,
    RemoteMuteService,
    RemoteNotificationLog,
    RemoteSensorService,
    RemoteSessionService,
)
from sensorwatch.schema import NotificationRecord, SensorDescriptor, SensorHistory, SensorKind, SensorReading
from sensorwatch.storage import KeyValueStore, keys

logger = logging.getLogger(__name__)

# Endpoints, relative to the backend base URL
LOGIN = "login.php"
LOGOUT = "logout.php"
REGISTER_PUSH_TOKEN = "register_push_token.php"
ASSIGNED_SENSORS = "sensoresUsuario.php"
LATEST_READING = "ultimaLectura.php"
GET_GLOBAL_MUTE = "get_global_notifications.php"
SET_GLOBAL_MUTE = "mute_global_notifications.php"
GET_SENSOR_MUTE = "get_sensor_mute_state.php"
SET_SENSOR_MUTE = "mute_sensor_notifications.php"
USER_NOTIFICATIONS = "getUserNotifications.php"
SEND_NOTIFICATION = "send_notification.php"

# Endpoints served from the site root rather than the backend directory
SENSOR_HISTORY = "sensorDetalle.php"
UPDATE_THRESHOLDS = "actualizarUmbral.php"

LOGOUT_OK_MARKER = "Token desactivado exitosamente"

# Reading fields, by sensor kind
READING_FIELDS = ("Temperatura", "nivel_combustible", "value")

# History "tipo" values
HISTORY_KINDS = {
    "temperatura": SensorKind.TEMPERATURE,
    "temperature": SensorKind.TEMPERATURE,
    "nivel_combustible": SensorKind.FUEL,
    "combustible": SensorKind.FUEL,
    "fuel": SensorKind.FUEL,
}


def parse_timestamp(value: Any, server_timezone: tzinfo) -> datetime:
    """Parse a backend timestamp. Naive values are in server local time."""
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value).strip())
        except ValueError:
            raise MalformedResponse(f"Unparseable timestamp: {value!r}") from None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=server_timezone)
    return parsed.astimezone(timezone.utc)


def _flag(value: bool) -> str:
    return "true" if value else "false"


def _optional_float(value: Any) -> float | None:
    if value is None or value == "":
        return None
    return float(value)


class BackendClient:
    """
    Shared httpx client for every backend service.

    Cookies set by the backend at login are kept by the underlying
    httpx.AsyncClient; the session token is also sent as a bearer header.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        server_timezone: tzinfo = timezone.utc,
        transport: httpx.AsyncBaseTransport | None = None,
        site_url: str | None = None,
    ):
        self.base_url = base_url.rstrip("/") + "/"
        # Site root; defaults to the origin of base_url
        self.site_url = httpx.URL(site_url.rstrip("/") + "/") if site_url else httpx.URL(self.base_url).join("/")
        self.server_timezone = server_timezone
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
        )

    def set_token(self, token: str | None) -> None:
        """Attach (or drop) the session token on subsequent requests."""
        if token:
            self._client.headers["Authorization"] = f"Bearer {token}"
        else:
            self._client.headers.pop("Authorization", None)

    def clear_auth(self) -> None:
        """Drop the session token and every cookie the backend set."""
        self.set_token(None)
        self._client.cookies.clear()

    def site(self, path: str) -> str:
        """Absolute URL of an endpoint under the site root."""
        return str(self.site_url.join(path))

    async def close(self) -> None:
        await self._client.aclose()

    async def request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """Send a request, mapping transport failures to NetworkError."""
        try:
            return await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise NetworkError(f"{method} {path} failed: {e}") from e

    async def request_json(self, method: str, path: str, **kwargs: Any) -> Any:
        """Send a request and decode a JSON body from a 2xx response."""
        response = await self.request(method, path, **kwargs)
        if response.is_error:
            raise NetworkError(f"{method} {path} returned HTTP {response.status_code}")
        try:
            return response.json()
        except ValueError:
            raise MalformedResponse(f"{method} {path} returned a non-JSON body") from None


class HttpSessionService(RemoteSessionService):
    """Login, logout and push-token registration."""

    def __init__(self, backend: BackendClient):
        self.backend = backend

    async def authenticate(self, email: str, password: str) -> AuthPayload:
        response = await self.backend.request("POST", LOGIN, data={"email": email, "password": password})

        if response.status_code in (401, 403):
            raise InvalidCredentials("Invalid email or password")

        try:
            body = response.json()
        except ValueError:
            body = None

        if not isinstance(body, dict):
            if response.is_error:
                raise NetworkError(f"POST {LOGIN} returned HTTP {response.status_code}")
            raise MalformedResponse(f"POST {LOGIN} returned an unexpected body")

        if response.is_success and body.get("token"):
            try:
                payload = AuthPayload.model_validate(body)
            except ValidationError as e:
                raise MalformedResponse(f"Invalid login payload: {e}") from e
            self.backend.set_token(payload.token)
            return payload

        if body.get("error"):
            raise InvalidCredentials(str(body["error"]))
        if response.is_error:
            raise NetworkError(f"POST {LOGIN} returned HTTP {response.status_code}")
        raise InvalidCredentials("Login rejected")

    async def invalidate_token(self, user_id: str, push_token: str) -> None:
        response = await self.backend.request(
            "POST",
            LOGOUT,
            data={"user_id": user_id, "token": push_token},
        )
        if response.is_error or LOGOUT_OK_MARKER not in response.text:
            raise NetworkError(f"Backend did not confirm token invalidation: {response.text[:200]!r}")

    async def register_push_token(self, user_id: str, push_token: str) -> None:
        response = await self.backend.request(
            "POST",
            REGISTER_PUSH_TOKEN,
            json={"userId": user_id, "token": push_token},
        )
        if response.is_error:
            raise NetworkError(f"POST {REGISTER_PUSH_TOKEN} returned HTTP {response.status_code}")


class HttpSensorService(RemoteSensorService):
    """Assigned sensors and latest readings."""

    def __init__(self, backend: BackendClient):
        self.backend = backend

    async def list_assigned_sensors(self, user_id: str) -> list[SensorDescriptor]:
        body = await self.backend.request_json("GET", ASSIGNED_SENSORS, params={"user_id": user_id})

        # {"message": "..."} means no sensors are assigned
        if isinstance(body, dict) and "message" in body:
            return []
        if not isinstance(body, list):
            raise MalformedResponse(f"GET {ASSIGNED_SENSORS} did not return a list")

        try:
            return [SensorDescriptor.model_validate(item) for item in body]
        except ValidationError as e:
            raise MalformedResponse(f"Invalid sensor descriptor: {e}") from e

    async def latest_reading(self, sensor_name: str) -> SensorReading:
        body = await self.backend.request_json("GET", LATEST_READING, params={"sensor_name": sensor_name})

        if not isinstance(body, dict):
            raise MalformedResponse(f"GET {LATEST_READING} did not return an object")
        if body.get("error"):
            raise NetworkError(f"Backend error for sensor {sensor_name}: {body['error']}")
        return self._reading(sensor_name, body)

    async def reading_history(
        self,
        sensor_name: str,
        limit: int = 25,
        start: date | None = None,
        end: date | None = None,
    ) -> SensorHistory:
        params: dict[str, Any] = {"sensor_name": sensor_name, "limit": limit}
        if start is not None:
            params["start_date"] = start.isoformat()
        if end is not None:
            params["end_date"] = end.isoformat()

        body = await self.backend.request_json("GET", self.backend.site(SENSOR_HISTORY), params=params)
        if not isinstance(body, dict):
            raise MalformedResponse(f"GET {SENSOR_HISTORY} did not return an object")

        data = body.get("data")
        if not isinstance(data, list):
            # No readings in range; thresholds may still be present
            logger.debug("No history for sensor %s: %s", sensor_name, body.get("error", "no data"))
            data = []

        try:
            return SensorHistory(
                sensor_name=sensor_name,
                kind=HISTORY_KINDS.get(str(body.get("tipo", "")).strip().lower()),
                min_threshold=_optional_float(body.get("umbral_actual")),
                max_threshold=_optional_float(body.get("umbral_max_actual")),
                readings=[self._reading(sensor_name, item) for item in data],
            )
        except (TypeError, ValueError) as e:
            raise MalformedResponse(f"Invalid history for sensor {sensor_name}: {e}") from e

    async def update_thresholds(
        self,
        sensor_name: str,
        min_threshold: float | None = None,
        max_threshold: float | None = None,
    ) -> None:
        data = {"sensor_name": sensor_name}
        if min_threshold is not None:
            data["nuevo_umbral"] = f"{min_threshold:g}"
        if max_threshold is not None:
            data["nuevo_umbral_max"] = f"{max_threshold:g}"

        body = await self.backend.request_json("POST", self.backend.site(UPDATE_THRESHOLDS), data=data)
        if not isinstance(body, dict):
            raise MalformedResponse(f"POST {UPDATE_THRESHOLDS} did not return an object")
        if not body.get("mensaje"):
            raise NetworkError(f"Threshold update for sensor {sensor_name} failed: {body.get('error', 'no message')}")

    def _reading(self, sensor_name: str, item: Any) -> SensorReading:
        if not isinstance(item, dict):
            raise MalformedResponse(f"Reading for sensor {sensor_name} is not an object")

        raw_value = next((item[f] for f in READING_FIELDS if item.get(f) is not None), None)
        if raw_value is None or "fecha_actual" not in item:
            raise MalformedResponse(f"Reading for sensor {sensor_name} is missing fields")

        try:
            return SensorReading(
                sensor_name=sensor_name,
                value=float(raw_value),
                observed_at=parse_timestamp(item["fecha_actual"], self.backend.server_timezone),
            )
        except (TypeError, ValueError) as e:
            raise MalformedResponse(f"Invalid reading for sensor {sensor_name}: {e}") from e


class HttpMuteService(RemoteMuteService):
    """
    Global and per-sensor mute flags.

    The backend addresses sensors by id and wants the device push token
    on every call. Both are read from the local store: the sensor cache
    written by the poller and the token written at login.
    """

    def __init__(self, backend: BackendClient, store: KeyValueStore):
        self.backend = backend
        self.store = store

    async def _post(self, path: str, data: dict[str, str]) -> dict[str, Any]:
        body = await self.backend.request_json("POST", path, data=data)
        if not isinstance(body, dict):
            raise MalformedResponse(f"POST {path} did not return an object")
        if not body.get("success"):
            raise NetworkError(f"POST {path} failed: {body.get('message', 'no message')}")
        return body

    @staticmethod
    def _muted(body: dict[str, Any], path: str) -> bool:
        try:
            return int(body["muteado"]) == 1
        except (KeyError, TypeError, ValueError):
            raise MalformedResponse(f"POST {path} returned no usable 'muteado' flag") from None

    async def _push_token(self) -> str:
        token = await self.store.get(keys.PUSH_TOKEN)
        if not token:
            raise NetworkError("No push token stored; mute state cannot be addressed")
        return token

    async def _sensor_id(self, user_id: str, sensor_name: str) -> str:
        for item in await self.store.get_json(keys.sensor_cache(user_id), []):
            if isinstance(item, dict) and item.get("name") == sensor_name and item.get("id") is not None:
                return str(item["id"])
        raise NetworkError(f"Sensor {sensor_name} is not in the loaded sensor set")

    async def get_global_mute(self, user_id: str) -> bool:
        body = await self._post(GET_GLOBAL_MUTE, {"usuario_id": user_id, "token": await self._push_token()})
        return self._muted(body, GET_GLOBAL_MUTE)

    async def set_global_mute(self, user_id: str, muted: bool) -> None:
        await self._post(
            SET_GLOBAL_MUTE,
            {"usuario_id": user_id, "muteado": _flag(muted), "pushToken": await self._push_token()},
        )

    async def get_sensor_mute(self, user_id: str, sensor_name: str) -> bool:
        body = await self._post(
            GET_SENSOR_MUTE,
            {
                "usuario_id": user_id,
                "sensor_id": await self._sensor_id(user_id, sensor_name),
                "token": await self._push_token(),
            },
        )
        return self._muted(body, GET_SENSOR_MUTE)

    async def set_sensor_mute(self, user_id: str, sensor_name: str, muted: bool) -> None:
        await self._post(
            SET_SENSOR_MUTE,
            {
                "usuario_id": user_id,
                "sensor_id": await self._sensor_id(user_id, sensor_name),
                "muteado": _flag(muted),
                "token": await self._push_token(),
            },
        )


class HttpNotificationLog(RemoteNotificationLog):
    """Paginated notification history and push relay."""

    def __init__(self, backend: BackendClient):
        self.backend = backend

    async def fetch_page(self, user_id: str, page: int, page_size: int) -> list[NotificationRecord]:
        body = await self.backend.request_json(
            "GET",
            USER_NOTIFICATIONS,
            params={"user_id": user_id, "page": page, "limit": page_size},
        )
        if not isinstance(body, list):
            raise MalformedResponse(f"GET {USER_NOTIFICATIONS} did not return a list")

        records = []
        for item in body:
            if not isinstance(item, dict):
                raise MalformedResponse(f"GET {USER_NOTIFICATIONS} returned a non-object item")
            try:
                records.append(
                    NotificationRecord(
                        message=item["mensaje"],
                        sensor_name=item.get("sensor_nombre"),
                        created_at=parse_timestamp(item["fecha"], self.backend.server_timezone),
                    )
                )
            except (KeyError, ValidationError) as e:
                raise MalformedResponse(f"Invalid notification record: {e}") from e
        return records

    async def send_notification(self, user_id: str, message: str) -> None:
        response = await self.backend.request(
            "POST",
            SEND_NOTIFICATION,
            json={"userId": user_id, "message": message},
        )
        if response.is_error:
            raise NetworkError(f"POST {SEND_NOTIFICATION} returned HTTP {response.status_code}")
        logger.debug("Push relay accepted for user %s", user_id)
