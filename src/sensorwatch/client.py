"""
High-level monitoring client.

This is the main entry point for using sensorwatch. It builds every
component from a ClientConfig and keeps them in step with the session.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import date, datetime

import httpx

from sensorwatch.auth import GeneratedPushTokenProvider, SessionManager
from sensorwatch.config import ClientConfig, load_config
from sensorwatch.monitor import SensorPoller, SweepResult
from sensorwatch.mute import MuteStateStore, MuteWriteResult, RefreshResult
from sensorwatch.notifications import (
    LoggingAlertPresenter,
    NotificationCoordinator,
    NotificationPage,
    NotificationView,
    RemotePushPresenter,
)
from sensorwatch.remote import (
    BackendClient,
    HttpMuteService,
    HttpNotificationLog,
    HttpSensorService,
    HttpSessionService,
    LocalAlertPresenter,
    PushTokenProvider,
    RemoteMuteService,
    RemoteNotificationLog,
    RemoteSensorService,
    RemoteSessionService,
)
from sensorwatch.scheduler import SweepScheduler
from sensorwatch.schema import Credentials, SensorDescriptor, SensorHistory, Session
from sensorwatch.storage import KeyValueStore, SQLiteStore

logger = logging.getLogger(__name__)


class MonitorClient:
    """
    Unified client for sensor monitoring.

    Usage:
        client = MonitorClient()
        await client.start()

        # Log in (skipped when a session was restored)
        await client.login("ops@example.com", "secret")

        # Sweep all assigned sensors
        result = await client.sweep()

        # Mute one sensor
        await client.set_muted(True, sensor_name="Tank-1")

        await client.close()

    Remote collaborators default to the HTTP backend at config.base_url;
    any of them can be replaced.
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        store: KeyValueStore | None = None,
        *,
        session_service: RemoteSessionService | None = None,
        sensor_service: RemoteSensorService | None = None,
        mute_service: RemoteMuteService | None = None,
        notification_log: RemoteNotificationLog | None = None,
        presenter: LocalAlertPresenter | None = None,
        push_tokens: PushTokenProvider | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.config = config or load_config()
        self.store = store or SQLiteStore(self.config.state_path)
        self.backend = BackendClient(
            self.config.base_url,
            timeout=self.config.request_timeout,
            server_timezone=self.config.server_timezone,
            transport=transport,
            site_url=self.config.site_url,
        )

        self.sessions = SessionManager(
            self.store,
            session_service or HttpSessionService(self.backend),
            push_tokens=push_tokens or GeneratedPushTokenProvider(),
            clock=clock,
        )
        self.mute = MuteStateStore(self.store, mute_service or HttpMuteService(self.backend, self.store))

        notification_log = notification_log or HttpNotificationLog(self.backend)
        self.notifications = NotificationCoordinator(
            self.store,
            notification_log,
            presenter or self._default_presenter(notification_log),
            page_size=self.config.page_size,
            clock=clock,
        )
        self.poller = SensorPoller(
            self.store,
            sensor_service or HttpSensorService(self.backend),
            self.mute,
            self.notifications,
            offline_after_minutes=self.config.offline_after_minutes,
            clock=clock,
        )
        self.scheduler = SweepScheduler(self.sessions, self.poller, self.mute)

        self.sessions.on_session_established(self._session_established)
        self.sessions.on_session_cleared(self._session_cleared)
        self._started = False

    async def __aenter__(self) -> MonitorClient:
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def start(self, sweep: bool = False) -> Session | None:
        """
        Open local state and restore the persisted session.

        With sweep=True and a restored session, the cold-start sweep runs
        over the sensor set loaded during the restore. Callers that sweep
        explicitly afterwards should leave it off.
        """
        if not self._started:
            await self.store.initialize()
            self._started = True

        session = await self.sessions.restore_session()
        if session is not None and sweep:
            await self.cold_start()
        return session

    async def close(self) -> None:
        """Close all connections."""
        await self.backend.close()
        if self._started:
            await self.store.close()
        self._started = False

    # === Session ===

    @property
    def session(self) -> Session | None:
        return self.sessions.session

    async def login(self, email: str, password: str) -> Session:
        return await self.sessions.login(Credentials(email=email, password=password))

    async def logout(self) -> None:
        """Raises LogoutFailed when the logout was local-only."""
        try:
            await self.sessions.logout()
        finally:
            self.backend.clear_auth()

    async def invalidate(self) -> None:
        """Drop the session locally, e.g. after the backend rejected the token."""
        try:
            await self.sessions.invalidate()
        finally:
            self.backend.clear_auth()

    # === Monitoring ===

    async def sensors(self) -> list[SensorDescriptor]:
        """Cached sensor set of the current user."""
        session = self.sessions.require_session()
        return await self.poller.cached_sensors(session.user_id)

    async def cold_start(self) -> SweepResult | None:
        """Run the once-per-session sweep over the already loaded sensor set."""
        return await self.scheduler.on_cold_start(reload=False)

    async def sweep(self) -> SweepResult:
        """Reload the sensor set and run one sweep."""
        return await self.scheduler.on_manual_refresh()

    async def foreground(self) -> RefreshResult | None:
        return await self.scheduler.on_foreground()

    async def history(
        self,
        sensor_name: str,
        limit: int = 25,
        start: date | None = None,
        end: date | None = None,
    ) -> SensorHistory:
        self.sessions.require_session()
        return await self.poller.history(sensor_name, limit=limit, start=start, end=end)

    async def update_thresholds(
        self,
        sensor_name: str,
        min_threshold: float | None = None,
        max_threshold: float | None = None,
    ) -> SensorDescriptor:
        """Change one sensor's range. Raises ValueError when min exceeds max."""
        session = self.sessions.require_session()
        return await self.poller.update_thresholds(
            session.user_id, sensor_name, min_threshold=min_threshold, max_threshold=max_threshold
        )

    # === Mute ===

    async def set_muted(self, muted: bool, sensor_name: str | None = None) -> MuteWriteResult:
        """Mute or unmute all notifications, or one sensor's."""
        session = self.sessions.require_session()
        if sensor_name is None:
            return await self.mute.set_global_muted(session.user_id, muted)
        return await self.mute.set_sensor_muted(session.user_id, sensor_name, muted)

    # === Notifications ===

    async def notification_page(self, page: int = 1) -> NotificationPage:
        session = self.sessions.require_session()
        return await self.notifications.list(session.user_id, page)

    async def open_notifications(self, page: int = 1) -> NotificationView:
        """Show the notification list: marks everything seen, local and remote."""
        session = self.sessions.require_session()
        return await self.notifications.open_list(session.user_id, page)

    def unread_count(self) -> int:
        session = self.sessions.session
        return self.notifications.unread_count(session.user_id) if session else 0

    # Private methods

    def _default_presenter(self, notification_log: RemoteNotificationLog) -> LocalAlertPresenter:
        if self.config.presenter == "remote":
            return RemotePushPresenter(notification_log, self._current_user_id)
        return LoggingAlertPresenter()

    def _current_user_id(self) -> str | None:
        session = self.sessions.session
        return session.user_id if session else None

    async def _session_established(self, session: Session) -> None:
        self.backend.set_token(session.token)

        sensors = await self.poller.load_sensors(session.user_id)
        self.mute.forget_confirmations(session.user_id)
        result = await self.mute.refresh(session.user_id, [s.name for s in sensors])
        if result.failed:
            logger.warning(
                "Mute flags for user %s not confirmed by the backend: %s",
                session.user_id,
                ", ".join(result.failed),
            )

    async def _session_cleared(self, user_id: str) -> None:
        # Backend auth is left alone: a replacing login has already set it
        await self.poller.clear(user_id)
        await self.mute.clear(user_id)
        await self.notifications.clear(user_id)
        await self.scheduler.reset(user_id)
