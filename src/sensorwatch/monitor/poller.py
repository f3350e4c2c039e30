"""
Sensor Poller.

One sweep fetches the latest reading of every sensor concurrently, then
evaluates the readings in sensor order. A sensor whose fetch fails is
reported as SensorUnreachable and skipped; it never affects the others.
Alerts that pass the mute gate are handed to the notification
coordinator in detection order.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date, datetime, timezone

from pydantic import ValidationError

from sensorwatch.errors import MalformedResponse, NetworkError, SensorUnreachable
from sensorwatch.monitor.rules import OFFLINE_AFTER_MINUTES, evaluate
from sensorwatch.mute.store import MuteStateStore
from sensorwatch.notifications.coordinator import NotificationCoordinator
from sensorwatch.remote.base import RemoteSensorService
from sensorwatch.schema import AlertEvent, SensorDescriptor, SensorHistory, SensorReading
from sensorwatch.storage import KeyValueStore, keys

logger = logging.getLogger(__name__)


@dataclass
class SweepResult:
    """Outcome of one sweep."""

    user_id: str
    started_at: datetime
    alerts: list[AlertEvent] = field(default_factory=list)
    delivered: list[AlertEvent] = field(default_factory=list)
    suppressed: list[AlertEvent] = field(default_factory=list)
    unreachable: list[SensorUnreachable] = field(default_factory=list)
    readings: dict[str, SensorReading] = field(default_factory=dict)

    def __iter__(self):
        return iter(self.alerts)

    def __len__(self) -> int:
        return len(self.alerts)


class SensorPoller:
    """Fetches readings, applies the decision rules and the mute gate."""

    def __init__(
        self,
        store: KeyValueStore,
        remote: RemoteSensorService,
        mute: MuteStateStore,
        notifications: NotificationCoordinator,
        offline_after_minutes: float = OFFLINE_AFTER_MINUTES,
        clock: Callable[[], datetime] | None = None,
    ):
        self.store = store
        self.remote = remote
        self.mute = mute
        self.notifications = notifications
        self.offline_after_minutes = offline_after_minutes
        self._clock = clock or (lambda: datetime.now(timezone.utc))

        # Most recent reading per sensor, for comparison only
        self.last_readings: dict[str, SensorReading] = {}

    # Sensor set

    async def load_sensors(self, user_id: str) -> list[SensorDescriptor]:
        """
        Fetch the assigned sensors and replace the cached set.

        Falls back to the cached set when the backend is unreachable.
        """
        try:
            sensors = await self.remote.list_assigned_sensors(user_id)
        except (NetworkError, MalformedResponse) as e:
            logger.warning("Could not list sensors for user %s, using cache: %s", user_id, e)
            return await self.cached_sensors(user_id)

        await self.store.set_json(
            keys.sensor_cache(user_id),
            [s.model_dump(mode="json") for s in sensors],
        )
        if not sensors:
            logger.info("No sensors assigned to user %s", user_id)
        return sensors

    async def cached_sensors(self, user_id: str) -> list[SensorDescriptor]:
        raw = await self.store.get_json(keys.sensor_cache(user_id), [])
        if not isinstance(raw, list):
            logger.warning("Sensor cache for user %s is not a list, ignoring", user_id)
            return []
        try:
            return [SensorDescriptor.model_validate(item) for item in raw]
        except ValidationError as e:
            logger.warning("Sensor cache for user %s is unreadable, ignoring: %s", user_id, e)
            return []

    async def clear(self, user_id: str) -> None:
        await self.store.delete(keys.sensor_cache(user_id))
        self.last_readings.clear()

    # Detail

    async def history(
        self,
        sensor_name: str,
        limit: int = 25,
        start: date | None = None,
        end: date | None = None,
    ) -> SensorHistory:
        """Recent readings of one sensor, optionally within [start, end]."""
        if limit < 1:
            raise ValueError(f"limit must be positive, got {limit}")
        if start is not None and end is not None and start > end:
            raise ValueError(f"start {start} is after end {end}")
        return await self.remote.reading_history(sensor_name, limit=limit, start=start, end=end)

    async def update_thresholds(
        self,
        user_id: str,
        sensor_name: str,
        min_threshold: float | None = None,
        max_threshold: float | None = None,
    ) -> SensorDescriptor:
        """
        Change a sensor's thresholds and patch the cached descriptor.

        A bound left as None keeps its current value. The resulting range
        is checked before anything is sent.
        """
        if min_threshold is None and max_threshold is None:
            raise ValueError("Nothing to update: give min_threshold, max_threshold or both")

        sensors = await self.cached_sensors(user_id)
        current = next((s for s in sensors if s.name == sensor_name), None)
        if current is None:
            raise ValueError(f"Sensor {sensor_name} is not assigned to user {user_id}")

        low = current.min_threshold if min_threshold is None else min_threshold
        high = current.max_threshold if max_threshold is None else max_threshold
        if low > high:
            raise ValueError(f"min_threshold {low:g} exceeds max_threshold {high:g}")

        await self.remote.update_thresholds(sensor_name, min_threshold=min_threshold, max_threshold=max_threshold)
        logger.info("Thresholds of sensor %s set to %g..%g", sensor_name, low, high)

        updated = current.model_copy(update={"min_threshold": low, "max_threshold": high})
        await self.store.set_json(
            keys.sensor_cache(user_id),
            [(updated if s.name == sensor_name else s).model_dump(mode="json") for s in sensors],
        )
        return updated

    # Sweep

    async def sync_once(self, user_id: str, sensors: list[SensorDescriptor]) -> SweepResult:
        """Run one sweep over sensors and deliver unmuted alerts."""
        now = self._clock()
        result = SweepResult(user_id=user_id, started_at=now)

        fetched = await asyncio.gather(*(self._fetch(sensor) for sensor in sensors))

        for sensor, outcome in zip(sensors, fetched):
            if isinstance(outcome, SensorUnreachable):
                result.unreachable.append(outcome)
                continue

            self.last_readings[sensor.name] = outcome
            result.readings[sensor.name] = outcome

            alert = evaluate(user_id, sensor, outcome, now, self.offline_after_minutes)
            if alert is None:
                continue
            result.alerts.append(alert)

            if await self.mute.is_suppressed(user_id, sensor.name):
                logger.debug("Suppressed %s alert for muted sensor %s", alert.kind.value, sensor.name)
                result.suppressed.append(alert)
                continue

            await self.notifications.record(alert)
            result.delivered.append(alert)

        logger.info(
            "Sweep for user %s: %d sensors, %d alerts, %d delivered, %d unreachable",
            user_id,
            len(sensors),
            len(result.alerts),
            len(result.delivered),
            len(result.unreachable),
        )
        return result

    async def _fetch(self, sensor: SensorDescriptor) -> SensorReading | SensorUnreachable:
        try:
            return await self.remote.latest_reading(sensor.name)
        except (NetworkError, MalformedResponse, ValidationError) as e:
            logger.warning("Sensor %s unreachable: %s", sensor.name, e)
            return SensorUnreachable(sensor.name, str(e))
