"""
Pytest configuration and shared fixtures for sensorwatch tests.
"""

import asyncio
import tempfile
from collections.abc import AsyncGenerator, Generator
from datetime import date, datetime, timedelta, timezone
from pathlib import Path

import pytest

from sensorwatch.errors import InvalidCredentials, NetworkError
from sensorwatch.remote.base import (
    AuthPayload,
    RemoteMuteService,
    RemoteNotificationLog,
    RemoteSensorService,
    RemoteSessionService,
)
from sensorwatch.schema import NotificationRecord, SensorDescriptor, SensorHistory, SensorKind, SensorReading

NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


def minutes_ago(minutes: float) -> datetime:
    return NOW - timedelta(minutes=minutes)


# Fake remote collaborators


class FakeSessionService(RemoteSessionService):
    """In-memory accounts. Set gate to hold authenticate() open."""

    def __init__(self):
        self.accounts: dict[str, tuple[str, AuthPayload]] = {}
        self.gate: asyncio.Event | None = None
        self.fail_invalidate = False
        self.fail_register = False
        self.invalidated: list[tuple[str, str]] = []
        self.registered: list[tuple[str, str]] = []

    def add_account(self, email: str, password: str, user_id: str = "7", role: str = "cliente") -> None:
        payload = AuthPayload.model_validate({"token": f"token-{user_id}", "userId": user_id, "rol": role})
        self.accounts[email] = (password, payload)

    async def authenticate(self, email: str, password: str) -> AuthPayload:
        if self.gate is not None:
            await self.gate.wait()
        account = self.accounts.get(email)
        if account is None or account[0] != password:
            raise InvalidCredentials("Invalid email or password")
        return account[1]

    async def invalidate_token(self, user_id: str, push_token: str) -> None:
        if self.fail_invalidate:
            raise NetworkError("logout endpoint unreachable")
        self.invalidated.append((user_id, push_token))

    async def register_push_token(self, user_id: str, push_token: str) -> None:
        if self.fail_register:
            raise NetworkError("push registration unreachable")
        self.registered.append((user_id, push_token))


class FakeSensorService(RemoteSensorService):
    """Assigned sensors per user and a latest reading (or error) per sensor."""

    def __init__(self):
        self.assigned: dict[str, list[SensorDescriptor]] = {}
        self.readings: dict[str, SensorReading | Exception] = {}
        self.delays: dict[str, float] = {}
        self.fail_listing = False
        self.fetched: list[str] = []
        self.list_calls = 0
        self.history: dict[str, SensorHistory] = {}
        self.history_requests: list[tuple[str, int, date | None, date | None]] = []
        self.threshold_updates: list[tuple[str, float | None, float | None]] = []
        self.fail_updates = False

    def set_reading(self, name: str, value: float, age_minutes: float) -> None:
        self.readings[name] = SensorReading(sensor_name=name, value=value, observed_at=minutes_ago(age_minutes))

    async def list_assigned_sensors(self, user_id: str) -> list[SensorDescriptor]:
        self.list_calls += 1
        if self.fail_listing:
            raise NetworkError("sensor listing unreachable")
        return list(self.assigned.get(user_id, []))

    async def latest_reading(self, sensor_name: str) -> SensorReading:
        if sensor_name in self.delays:
            await asyncio.sleep(self.delays[sensor_name])
        self.fetched.append(sensor_name)
        outcome = self.readings.get(sensor_name)
        if outcome is None:
            raise NetworkError(f"no reading for {sensor_name}")
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    async def reading_history(
        self,
        sensor_name: str,
        limit: int = 25,
        start: date | None = None,
        end: date | None = None,
    ) -> SensorHistory:
        self.history_requests.append((sensor_name, limit, start, end))
        return self.history.get(sensor_name, SensorHistory(sensor_name=sensor_name))

    async def update_thresholds(
        self,
        sensor_name: str,
        min_threshold: float | None = None,
        max_threshold: float | None = None,
    ) -> None:
        if self.fail_updates:
            raise NetworkError("threshold update unreachable")
        self.threshold_updates.append((sensor_name, min_threshold, max_threshold))


class FakeMuteService(RemoteMuteService):
    """Authoritative mute flags. fail_reads / fail_writes simulate outages."""

    def __init__(self):
        self.global_muted: dict[str, bool] = {}
        self.sensor_muted: dict[tuple[str, str], bool] = {}
        self.fail_reads = False
        self.fail_writes = False
        self.writes: list[tuple[str, str | None, bool]] = []

    async def get_global_mute(self, user_id: str) -> bool:
        if self.fail_reads:
            raise NetworkError("mute service unreachable")
        return self.global_muted.get(user_id, False)

    async def set_global_mute(self, user_id: str, muted: bool) -> None:
        if self.fail_writes:
            raise NetworkError("mute service unreachable")
        self.global_muted[user_id] = muted
        self.writes.append((user_id, None, muted))

    async def get_sensor_mute(self, user_id: str, sensor_name: str) -> bool:
        if self.fail_reads:
            raise NetworkError("mute service unreachable")
        return self.sensor_muted.get((user_id, sensor_name), False)

    async def set_sensor_mute(self, user_id: str, sensor_name: str, muted: bool) -> None:
        if self.fail_writes:
            raise NetworkError("mute service unreachable")
        self.sensor_muted[(user_id, sensor_name)] = muted
        self.writes.append((user_id, sensor_name, muted))


class FakeNotificationLog(RemoteNotificationLog):
    """Remote history held newest first."""

    def __init__(self):
        self.records: list[NotificationRecord] = []
        self.sent: list[tuple[str, str]] = []
        self.fail = False

    def seed(self, count: int) -> None:
        self.records = [
            NotificationRecord(
                message=f"Notification {i}",
                sensor_name=f"Sensor-{i % 3}",
                created_at=minutes_ago(i),
            )
            for i in range(count)
        ]

    async def fetch_page(self, user_id: str, page: int, page_size: int) -> list[NotificationRecord]:
        if self.fail:
            raise NetworkError("notification log unreachable")
        start = (page - 1) * page_size
        return self.records[start : start + page_size]

    async def send_notification(self, user_id: str, message: str) -> None:
        self.sent.append((user_id, message))


# Fixtures


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def clock():
    """Fixed wall clock."""
    return lambda: NOW


@pytest.fixture
def dict_store():
    """Create a DictStore instance for testing."""
    from sensorwatch.storage import DictStore

    return DictStore()


@pytest.fixture
async def sqlite_store(temp_dir: Path) -> AsyncGenerator:
    """Create a SQLiteStore instance for testing."""
    from sensorwatch.storage import SQLiteStore

    store = SQLiteStore(temp_dir / "state.db")
    await store.initialize()
    yield store
    await store.close()


@pytest.fixture
def session_service():
    service = FakeSessionService()
    service.add_account("ops@example.com", "secret", user_id="7", role="cliente")
    service.add_account("admin@example.com", "root", user_id="1", role="admin")
    return service


@pytest.fixture
def sensor_service():
    return FakeSensorService()


@pytest.fixture
def mute_service():
    return FakeMuteService()


@pytest.fixture
def notification_log():
    return FakeNotificationLog()


@pytest.fixture
def presenter():
    from sensorwatch.notifications import CollectingAlertPresenter

    return CollectingAlertPresenter()


@pytest.fixture
def tank_sensor():
    """Fuel sensor, in range between 20 and 90 percent."""
    return SensorDescriptor(id="1", name="Tank-1", kind=SensorKind.FUEL, min_threshold=20, max_threshold=90)


@pytest.fixture
def temp_sensor():
    """Temperature sensor, in range between -5 and 8 degrees."""
    return SensorDescriptor(id="2", name="Temp-A", kind=SensorKind.TEMPERATURE, min_threshold=-5, max_threshold=8)


@pytest.fixture
def session_manager(dict_store, session_service, clock):
    from sensorwatch.auth import SessionManager, StaticPushTokenProvider

    return SessionManager(dict_store, session_service, StaticPushTokenProvider("push-abc"), clock=clock)


@pytest.fixture
def mute_store(dict_store, mute_service):
    from sensorwatch.mute import MuteStateStore

    return MuteStateStore(dict_store, mute_service)


@pytest.fixture
def coordinator(dict_store, notification_log, presenter, clock):
    from sensorwatch.notifications import NotificationCoordinator

    return NotificationCoordinator(dict_store, notification_log, presenter, page_size=15, clock=clock)


@pytest.fixture
def poller(dict_store, sensor_service, mute_store, coordinator, clock):
    from sensorwatch.monitor import SensorPoller

    return SensorPoller(dict_store, sensor_service, mute_store, coordinator, clock=clock)
