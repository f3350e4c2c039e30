"""Notification recording, history and presentation."""

from sensorwatch.notifications.coordinator import (
    NotificationCoordinator,
    NotificationPage,
    NotificationPager,
    NotificationView,
)
from sensorwatch.notifications.presenter import (
    CollectingAlertPresenter,
    LoggingAlertPresenter,
    RemotePushPresenter,
)

__all__ = [
    "NotificationCoordinator",
    "NotificationPage",
    "NotificationPager",
    "NotificationView",
    "LoggingAlertPresenter",
    "RemotePushPresenter",
    "CollectingAlertPresenter",
]
