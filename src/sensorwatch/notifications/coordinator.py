"""
Notification Coordinator.

Two tiers of notification history:

- a local append-only log per user, written as alerts fire and cleared
  only on logout;
- the remote paginated log, the durable history shown beyond the
  current session.

The two are shown side by side and never merged.

The unread counter lives in memory only and starts at zero on every
process start.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone

from pydantic import ValidationError

from sensorwatch.errors import MalformedResponse, NetworkError
from sensorwatch.remote.base import LocalAlertPresenter, RemoteNotificationLog
from sensorwatch.schema import AlertEvent, NotificationRecord
from sensorwatch.storage import KeyValueStore, keys

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 15
DEFAULT_PUSH_TITLE = "New notification"


@dataclass
class NotificationPage:
    """One page of the remote log, newest first."""

    page: int
    page_size: int
    records: list[NotificationRecord] = field(default_factory=list)

    @property
    def end_of_data(self) -> bool:
        """A short page means there is nothing after it."""
        return len(self.records) < self.page_size

    def __iter__(self):
        return iter(self.records)

    def __len__(self) -> int:
        return len(self.records)


@dataclass
class NotificationView:
    """What the notification list shows: local records and one remote page."""

    local: list[NotificationRecord] = field(default_factory=list)
    remote: NotificationPage | None = None
    remote_error: Exception | None = None


class NotificationPager:
    """
    Incremental reader over the remote log.

    Tracks the next page to load and stops after the first short page.
    """

    def __init__(self, coordinator: NotificationCoordinator, user_id: str, page_size: int):
        self.coordinator = coordinator
        self.user_id = user_id
        self.page_size = page_size

        self.records: list[NotificationRecord] = []
        self.next_page_number = 1
        self.has_more = True
        self._loading = False

    async def next_page(self) -> list[NotificationRecord]:
        """Load the next page. Returns its records, empty when exhausted."""
        if not self.has_more or self._loading:
            return []

        self._loading = True
        try:
            page = await self.coordinator.list(self.user_id, self.next_page_number, self.page_size)
        finally:
            self._loading = False

        self.records.extend(page.records)
        self.next_page_number += 1
        self.has_more = not page.end_of_data
        return page.records

    async def refresh(self) -> list[NotificationRecord]:
        """Start over from the first page."""
        self.records = []
        self.next_page_number = 1
        self.has_more = True
        return await self.next_page()

    async def load_all(self) -> list[NotificationRecord]:
        """Page until the end of the log."""
        while self.has_more:
            await self.next_page()
        return self.records


class NotificationCoordinator:
    """Records delivered alerts and serves notification history."""

    def __init__(
        self,
        store: KeyValueStore,
        remote: RemoteNotificationLog,
        presenter: LocalAlertPresenter,
        page_size: int = DEFAULT_PAGE_SIZE,
        clock: Callable[[], datetime] | None = None,
    ):
        self.store = store
        self.remote = remote
        self.presenter = presenter
        self.page_size = page_size
        self._clock = clock or (lambda: datetime.now(timezone.utc))

        self._unread: dict[str, int] = {}
        # Serializes appends to the local log
        self._log_lock = asyncio.Lock()

    # Recording

    async def record(self, alert: AlertEvent) -> NotificationRecord:
        """Append the alert to the local log and present it."""
        record = NotificationRecord(
            message=alert.message,
            sensor_name=alert.sensor_name,
            created_at=self._clock(),
        )
        await self._append(alert.user_id, record)
        self._unread[alert.user_id] = self.unread_count(alert.user_id) + 1
        await self._present(alert.title, alert.message)
        return record

    async def on_push_received(
        self,
        user_id: str,
        body: str,
        title: str | None = None,
        sensor_name: str | None = None,
        foreground: bool = True,
    ) -> NotificationRecord | None:
        """
        Handle a push notification delivered by the platform.

        Pushes without a body are ignored. While foregrounded the push is
        presented and counted as unread.
        """
        if not body:
            return None

        record = NotificationRecord(message=body, sensor_name=sensor_name, created_at=self._clock())
        await self._append(user_id, record)

        if foreground:
            self._unread[user_id] = self.unread_count(user_id) + 1
            await self._present(title or DEFAULT_PUSH_TITLE, body)
        return record

    # Reading

    async def local_log(self, user_id: str) -> list[NotificationRecord]:
        """Local records in append order."""
        raw = await self.store.get_json(keys.notification_log(user_id), [])
        records = []
        for item in raw if isinstance(raw, list) else []:
            try:
                records.append(NotificationRecord.model_validate(item))
            except ValidationError as e:
                logger.warning("Skipping unreadable local notification for user %s: %s", user_id, e)
        return records

    async def list(self, user_id: str, page: int = 1, page_size: int | None = None) -> NotificationPage:
        """
        Fetch one page of the remote log, newest first.

        Pages are 1-based. NetworkError and MalformedResponse propagate.
        """
        if page_size is None:
            page_size = self.page_size
        if page < 1:
            raise ValueError(f"page must be >= 1, got {page}")
        if page_size < 1:
            raise ValueError(f"page_size must be >= 1, got {page_size}")

        records = await self.remote.fetch_page(user_id, page, page_size)
        return NotificationPage(page=page, page_size=page_size, records=records[:page_size])

    def pager(self, user_id: str, page_size: int | None = None) -> NotificationPager:
        if page_size is None:
            page_size = self.page_size
        if page_size < 1:
            raise ValueError(f"page_size must be >= 1, got {page_size}")
        return NotificationPager(self, user_id, page_size)

    async def open_list(self, user_id: str, page: int = 1, page_size: int | None = None) -> NotificationView:
        """
        The user opened the notification list.

        Resets the unread counter and returns both tiers. When the remote
        log cannot be fetched the local records are still returned.
        """
        self.mark_all_seen(user_id)
        view = NotificationView(local=await self.local_log(user_id))
        try:
            view.remote = await self.list(user_id, page, page_size)
        except (NetworkError, MalformedResponse) as e:
            logger.warning("Remote notification log unavailable for user %s: %s", user_id, e)
            view.remote_error = e
        return view

    # Unread counter

    def unread_count(self, user_id: str) -> int:
        return self._unread.get(user_id, 0)

    def mark_all_seen(self, user_id: str) -> None:
        """Reset the unread counter. The logs are untouched."""
        self._unread[user_id] = 0

    # Session teardown

    async def clear(self, user_id: str) -> None:
        """Delete the local log. Only called on logout."""
        async with self._log_lock:
            await self.store.delete(keys.notification_log(user_id))
        self._unread.pop(user_id, None)

    # Private methods

    async def _append(self, user_id: str, record: NotificationRecord) -> None:
        async with self._log_lock:
            log = await self.store.get_json(keys.notification_log(user_id), [])
            if not isinstance(log, list):
                logger.warning("Local notification log for user %s was corrupt, starting over", user_id)
                log = []
            log.append(record.model_dump(mode="json"))
            await self.store.set_json(keys.notification_log(user_id), log)

    async def _present(self, title: str, body: str) -> None:
        try:
            await self.presenter.present(title, body)
        except Exception:
            logger.exception("Alert presenter failed for %r", title)
