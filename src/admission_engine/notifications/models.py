"""Notification event types."""

from enum import Enum


class NotificationType(str, Enum):
    """Types of notifications the engine emits."""

    APPLICATION_SUBMITTED = "application_submitted"
    APPLICATION_RECEIVED = "application_received"
    APPLICATION_STATUS_CHANGED = "application_status_changed"
    ADMISSION_OFFER = "admission_offer"
    OFFER_ACCEPTED = "offer_accepted"
    JOB_MATCH = "job_match"
    JOB_APPLICATION_RECEIVED = "job_application_received"
    JOB_APPLICATION_STATUS_CHANGED = "job_application_status_changed"
