"""Tests for the Sweep Scheduler."""

import pytest

from sensorwatch.errors import NotAuthenticated
from sensorwatch.schema import Credentials

CREDS = Credentials(email="ops@example.com", password="secret")


@pytest.fixture
def scheduler(session_manager, poller, mute_store):
    from sensorwatch.scheduler import SweepScheduler

    return SweepScheduler(session_manager, poller, mute_store)


@pytest.fixture
def assigned(sensor_service, tank_sensor):
    sensor_service.assigned["7"] = [tank_sensor]
    sensor_service.set_reading("Tank-1", 15, age_minutes=5)


class TestColdStart:
    """Tests for the once-per-session cold-start sweep."""

    @pytest.mark.asyncio
    async def test_runs_once(self, scheduler, session_manager, coordinator, assigned):
        """Test a second cold start in the same session does not sweep again."""
        await session_manager.login(CREDS)

        first = await scheduler.on_cold_start()
        second = await scheduler.on_cold_start()

        assert first is not None
        assert len(first.delivered) == 1
        assert second is None
        assert scheduler.has_cold_started("7")
        assert len(await coordinator.local_log("7")) == 1

    @pytest.mark.asyncio
    async def test_without_session(self, scheduler):
        assert await scheduler.on_cold_start() is None

    @pytest.mark.asyncio
    async def test_reset_allows_next_session(self, scheduler, session_manager, assigned):
        await session_manager.login(CREDS)
        await scheduler.on_cold_start()

        await scheduler.reset("7")

        assert not scheduler.has_cold_started("7")
        assert await scheduler.on_cold_start() is not None

    @pytest.mark.asyncio
    async def test_without_reload_uses_cached_set(self, scheduler, session_manager, sensor_service, assigned):
        """Test a cold start after a load sweeps the cached set without listing again."""
        await session_manager.login(CREDS)
        await scheduler.poller.load_sensors("7")
        sensor_service.assigned["7"] = []
        sensor_service.list_calls = 0

        result = await scheduler.on_cold_start(reload=False)

        assert sensor_service.list_calls == 0
        assert list(result.readings) == ["Tank-1"]

    @pytest.mark.asyncio
    async def test_reload_lists_sensors(self, scheduler, session_manager, sensor_service, assigned):
        await session_manager.login(CREDS)
        sensor_service.list_calls = 0

        await scheduler.on_cold_start()

        assert sensor_service.list_calls == 1


class TestManualRefresh:
    """Tests for user-initiated refresh."""

    @pytest.mark.asyncio
    async def test_always_sweeps(self, scheduler, session_manager, coordinator, assigned):
        await session_manager.login(CREDS)
        await scheduler.on_cold_start()

        result = await scheduler.on_manual_refresh()

        assert len(result.delivered) == 1
        assert len(await coordinator.local_log("7")) == 2

    @pytest.mark.asyncio
    async def test_reloads_sensor_set(self, scheduler, session_manager, sensor_service, assigned, temp_sensor):
        await session_manager.login(CREDS)
        sensor_service.assigned["7"] = [temp_sensor]
        sensor_service.set_reading("Temp-A", 0, age_minutes=1)

        result = await scheduler.on_manual_refresh()

        assert list(result.readings) == ["Temp-A"]

    @pytest.mark.asyncio
    async def test_requires_session(self, scheduler):
        with pytest.raises(NotAuthenticated):
            await scheduler.on_manual_refresh()


class TestForeground:
    """Tests for the foreground mute refresh."""

    @pytest.mark.asyncio
    async def test_retries_pending_writes(self, scheduler, session_manager, poller, mute_store, mute_service, assigned):
        await session_manager.login(CREDS)
        await poller.load_sensors("7")
        mute_service.fail_writes = True
        await mute_store.set_sensor_muted("7", "Tank-1", True)
        mute_service.fail_writes = False

        result = await scheduler.on_foreground()

        assert result.retried
        assert mute_service.sensor_muted[("7", "Tank-1")] is True
        assert mute_store.is_confirmed("7", "Tank-1")

    @pytest.mark.asyncio
    async def test_without_session(self, scheduler):
        assert await scheduler.on_foreground() is None
