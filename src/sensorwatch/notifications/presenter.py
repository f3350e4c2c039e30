"""Local alert presenters."""

from __future__ import annotations

import logging
from collections.abc import Callable

from sensorwatch.remote.base import LocalAlertPresenter, RemoteNotificationLog

logger = logging.getLogger(__name__)


class LoggingAlertPresenter(LocalAlertPresenter):
    """Writes alerts to the log. For headless runs."""

    def __init__(self, level: int = logging.WARNING):
        self.level = level

    async def present(self, title: str, body: str) -> None:
        logger.log(self.level, "%s: %s", title, body)


class RemotePushPresenter(LocalAlertPresenter):
    """
    Asks the backend to deliver the alert as a push notification.

    The current user is looked up at send time; alerts raised with no
    user are dropped with a warning.
    """

    def __init__(self, remote: RemoteNotificationLog, user_id: Callable[[], str | None]):
        self.remote = remote
        self._user_id = user_id

    async def present(self, title: str, body: str) -> None:
        user_id = self._user_id()
        if user_id is None:
            logger.warning("Dropping alert %r: no authenticated user", title)
            return
        await self.remote.send_notification(user_id, body)


class CollectingAlertPresenter(LocalAlertPresenter):
    """Keeps presented alerts in memory."""

    def __init__(self):
        self.presented: list[tuple[str, str]] = []

    async def present(self, title: str, body: str) -> None:
        self.presented.append((title, body))
