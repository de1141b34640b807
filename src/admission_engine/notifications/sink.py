"""Notification sinks.

Notifications are fire-and-forget: they are sent after the transaction that
caused them has committed, and a failed delivery is logged, never raised.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Protocol

from admission_engine.logging import redact_for_log
from admission_engine.notifications.models import NotificationType

if TYPE_CHECKING:
    from admission_engine.state_store import Notification, StateStore

logger = logging.getLogger(__name__)


class NotificationSink(Protocol):
    """Anything that can deliver a notification to a user."""

    def notify(self, user_id: str, event_type: str, payload: dict[str, Any]) -> Any: ...


def render(event_type: str, payload: dict[str, Any]) -> tuple[str, str]:
    """Build the title and message shown for a notification.

    Args:
        event_type: A NotificationType value.
        payload: Event data. Missing keys render as empty text.

    Returns:
        (title, message) tuple.
    """
    course = payload.get("course_name", "")
    notes = payload.get("reason") or ""

    match event_type:
        case NotificationType.APPLICATION_SUBMITTED:
            return (
                "Application Submitted",
                f"Your application for {course} has been submitted successfully.",
            )
        case NotificationType.APPLICATION_RECEIVED:
            return (
                "New Application",
                f"A new application for {course} has been received.",
            )
        case NotificationType.ADMISSION_OFFER:
            return (
                "Admission Offer!",
                f"Congratulations! You've been admitted to {course}.",
            )
        case NotificationType.APPLICATION_STATUS_CHANGED:
            status = str(payload.get("status", ""))
            message = f"Your application for {course} has been {status.replace('_', ' ')}."
            if payload.get("waitlist_position") is not None:
                message += f" Your waitlist position is {payload['waitlist_position']}."
            if notes:
                message += f" Notes: {notes}"
            return f"Application {status.replace('_', ' ').title()}", message
        case NotificationType.OFFER_ACCEPTED:
            return (
                "Offer Accepted",
                f"A student has accepted their offer for {course}.",
            )
        case NotificationType.JOB_MATCH:
            return (
                "New Job Match!",
                f"A new job \"{payload.get('job_title', '')}\" matches your profile.",
            )
        case NotificationType.JOB_APPLICATION_RECEIVED:
            return (
                "New Job Application",
                f"A new application for \"{payload.get('job_title', '')}\" has been received.",
            )
        case NotificationType.JOB_APPLICATION_STATUS_CHANGED:
            status = str(payload.get("status", ""))
            return (
                f"Job Application {status.title()}",
                f"Your application for \"{payload.get('job_title', '')}\" has been {status}.",
            )
        case _:
            return event_type.replace("_", " ").title(), ""


class StoreNotificationSink:
    """Stores notifications in the user's inbox."""

    def __init__(self, state_store: StateStore) -> None:
        self.state_store = state_store

    def notify(self, user_id: str, event_type: str, payload: dict[str, Any]) -> Notification:
        event_value = NotificationType(event_type).value
        title, message = render(event_value, payload)
        notification = self.state_store.create_notification(
            user_id=user_id,
            event_type=event_value,
            title=title,
            message=message,
            payload=payload,
        )
        logger.info("Notification created for user %s: %s", user_id, event_value)
        return notification


def notify_safely(
    sink: NotificationSink | None,
    user_id: str,
    event_type: NotificationType,
    payload: dict[str, Any],
) -> bool:
    """Deliver a notification, logging instead of raising on failure.

    Returns:
        True if the sink accepted the notification.
    """
    if sink is None:
        return False
    try:
        sink.notify(user_id, event_type.value, payload)
    except Exception:
        logger.exception(
            "Failed to deliver %s notification to %s (payload=%s)",
            event_type.value,
            user_id,
            redact_for_log(payload),
        )
        return False
    return True
