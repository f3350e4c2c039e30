"""Tests for the Notification Coordinator."""

import pytest

from conftest import NOW
from sensorwatch.errors import NetworkError
from sensorwatch.schema import OfflineAlert, ThresholdAlert


@pytest.fixture
def threshold_alert(tank_sensor):
    return ThresholdAlert(user_id="7", sensor=tank_sensor, detected_at=NOW, value=15, unit="%")


class TestRecord:
    """Tests for recording delivered alerts."""

    @pytest.mark.asyncio
    async def test_record_appends_and_presents(self, coordinator, presenter, threshold_alert):
        """Test record() writes the local log and asks the presenter."""
        record = await coordinator.record(threshold_alert)

        assert record.message == threshold_alert.message
        assert record.sensor_name == "Tank-1"
        assert record.created_at == NOW
        assert await coordinator.local_log("7") == [record]
        assert presenter.presented == [("Sensor out of range", threshold_alert.message)]

    @pytest.mark.asyncio
    async def test_log_preserves_append_order(self, coordinator, threshold_alert, temp_sensor):
        offline = OfflineAlert(user_id="7", sensor=temp_sensor, detected_at=NOW, age_minutes=20)

        await coordinator.record(threshold_alert)
        await coordinator.record(offline)

        log = await coordinator.local_log("7")
        assert [r.sensor_name for r in log] == ["Tank-1", "Temp-A"]

    @pytest.mark.asyncio
    async def test_presenter_failure_is_contained(self, dict_store, notification_log, threshold_alert, clock):
        """Test a failing presenter does not lose the record."""
        from sensorwatch.notifications import NotificationCoordinator
        from sensorwatch.remote.base import LocalAlertPresenter

        class BrokenPresenter(LocalAlertPresenter):
            async def present(self, title, body):
                raise RuntimeError("display unavailable")

        coordinator = NotificationCoordinator(dict_store, notification_log, BrokenPresenter(), clock=clock)
        await coordinator.record(threshold_alert)

        assert len(await coordinator.local_log("7")) == 1
        assert coordinator.unread_count("7") == 1


class TestUnread:
    """Tests for the unread counter."""

    @pytest.mark.asyncio
    async def test_counts_and_resets(self, coordinator, threshold_alert):
        await coordinator.record(threshold_alert)
        await coordinator.record(threshold_alert)
        assert coordinator.unread_count("7") == 2

        coordinator.mark_all_seen("7")

        assert coordinator.unread_count("7") == 0
        assert len(await coordinator.local_log("7")) == 2

    @pytest.mark.asyncio
    async def test_counter_is_not_persisted(self, coordinator, dict_store, notification_log, presenter, threshold_alert):
        """Test a fresh coordinator starts at zero over the same store."""
        from sensorwatch.notifications import NotificationCoordinator

        await coordinator.record(threshold_alert)
        restarted = NotificationCoordinator(dict_store, notification_log, presenter)

        assert restarted.unread_count("7") == 0
        assert len(await restarted.local_log("7")) == 1


class TestPush:
    """Tests for externally delivered pushes."""

    @pytest.mark.asyncio
    async def test_foreground_push(self, coordinator, presenter):
        record = await coordinator.on_push_received("7", "Tank-1 low", title="Alert", sensor_name="Tank-1")

        assert record.sensor_name == "Tank-1"
        assert coordinator.unread_count("7") == 1
        assert presenter.presented == [("Alert", "Tank-1 low")]

    @pytest.mark.asyncio
    async def test_background_push(self, coordinator, presenter):
        """Test a push received in the background is logged but not counted."""
        await coordinator.on_push_received("7", "Tank-1 low", foreground=False)

        assert coordinator.unread_count("7") == 0
        assert presenter.presented == []
        assert len(await coordinator.local_log("7")) == 1

    @pytest.mark.asyncio
    async def test_empty_push_ignored(self, coordinator):
        assert await coordinator.on_push_received("7", "") is None
        assert await coordinator.local_log("7") == []


class TestRemoteList:
    """Tests for the paginated remote log."""

    @pytest.mark.asyncio
    async def test_pagination_completeness(self, coordinator, notification_log):
        """Test paging until a short page yields every record once, newest first."""
        notification_log.seed(37)

        collected = []
        page = 1
        while True:
            result = await coordinator.list("7", page, 15)
            collected.extend(result.records)
            if result.end_of_data:
                break
            page += 1

        assert page == 3
        assert collected == notification_log.records
        assert len({r.message for r in collected}) == 37
        assert all(a.created_at >= b.created_at for a, b in zip(collected, collected[1:]))

    @pytest.mark.asyncio
    async def test_exact_multiple_ends_on_empty_page(self, coordinator, notification_log):
        notification_log.seed(30)

        assert not (await coordinator.list("7", 2, 15)).end_of_data
        last = await coordinator.list("7", 3, 15)
        assert last.end_of_data
        assert len(last) == 0

    @pytest.mark.asyncio
    async def test_invalid_page(self, coordinator):
        with pytest.raises(ValueError):
            await coordinator.list("7", 0)

    @pytest.mark.asyncio
    async def test_zero_page_size_rejected(self, coordinator, notification_log):
        """Test an explicit page size of zero is an error, not the default."""
        notification_log.seed(3)
        with pytest.raises(ValueError):
            await coordinator.list("7", 1, page_size=0)
        with pytest.raises(ValueError):
            coordinator.pager("7", page_size=0)

    @pytest.mark.asyncio
    async def test_network_error_propagates(self, coordinator, notification_log):
        notification_log.fail = True
        with pytest.raises(NetworkError):
            await coordinator.list("7", 1)

    @pytest.mark.asyncio
    async def test_remote_list_ignores_local_log(self, coordinator, threshold_alert):
        """Test the two tiers are not merged."""
        await coordinator.record(threshold_alert)
        assert (await coordinator.list("7", 1)).records == []


class TestOpenList:
    """Tests for opening the notification list."""

    @pytest.mark.asyncio
    async def test_open_resets_unread_and_shows_both_tiers(self, coordinator, notification_log, threshold_alert):
        notification_log.seed(4)
        await coordinator.record(threshold_alert)
        assert coordinator.unread_count("7") == 1

        view = await coordinator.open_list("7", page_size=3)

        assert coordinator.unread_count("7") == 0
        assert [r.sensor_name for r in view.local] == ["Tank-1"]
        assert view.remote.records == notification_log.records[:3]
        assert view.remote_error is None

    @pytest.mark.asyncio
    async def test_remote_failure_keeps_local(self, coordinator, notification_log, threshold_alert):
        """Test an unreachable remote log still shows local records and resets unread."""
        await coordinator.record(threshold_alert)
        notification_log.fail = True

        view = await coordinator.open_list("7")

        assert coordinator.unread_count("7") == 0
        assert len(view.local) == 1
        assert view.remote is None
        assert isinstance(view.remote_error, NetworkError)


class TestPager:
    """Tests for the stateful pager."""

    @pytest.mark.asyncio
    async def test_load_all(self, coordinator, notification_log):
        notification_log.seed(20)
        pager = coordinator.pager("7")

        records = await pager.load_all()

        assert records == notification_log.records
        assert not pager.has_more
        assert await pager.next_page() == []

    @pytest.mark.asyncio
    async def test_refresh_starts_over(self, coordinator, notification_log):
        notification_log.seed(20)
        pager = coordinator.pager("7", page_size=5)
        await pager.next_page()
        await pager.next_page()

        first_page = await pager.refresh()

        assert first_page == notification_log.records[:5]
        assert pager.records == first_page
        assert pager.has_more


class TestClear:
    """Tests for logout cleanup."""

    @pytest.mark.asyncio
    async def test_clear(self, coordinator, dict_store, threshold_alert):
        await coordinator.record(threshold_alert)

        await coordinator.clear("7")

        assert dict_store.keys() == []
        assert coordinator.unread_count("7") == 0


class TestPresenters:
    """Tests for alert presenters."""

    @pytest.mark.asyncio
    async def test_remote_push_presenter(self, notification_log):
        from sensorwatch.notifications import RemotePushPresenter

        presenter = RemotePushPresenter(notification_log, lambda: "7")
        await presenter.present("Sensor offline", "Temp-A is offline")

        assert notification_log.sent == [("7", "Temp-A is offline")]

    @pytest.mark.asyncio
    async def test_remote_push_presenter_without_user(self, notification_log):
        from sensorwatch.notifications import RemotePushPresenter

        presenter = RemotePushPresenter(notification_log, lambda: None)
        await presenter.present("Sensor offline", "Temp-A is offline")

        assert notification_log.sent == []

    @pytest.mark.asyncio
    async def test_logging_presenter(self, caplog):
        import logging

        from sensorwatch.notifications import LoggingAlertPresenter

        with caplog.at_level(logging.WARNING):
            await LoggingAlertPresenter().present("Sensor offline", "Temp-A is offline")

        assert "Temp-A is offline" in caplog.text
