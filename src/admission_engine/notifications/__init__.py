"""Notifications - user inbox events emitted after state changes."""

from admission_engine.notifications.models import NotificationType
from admission_engine.notifications.sink import (
    NotificationSink,
    StoreNotificationSink,
    notify_safely,
    render,
)

__all__ = [
    "NotificationSink",
    "NotificationType",
    "StoreNotificationSink",
    "notify_safely",
    "render",
]
