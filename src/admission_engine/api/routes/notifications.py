"""Notification inbox endpoints."""

from fastapi import APIRouter, Query

from admission_engine.api.dependencies import ActorDep, StateStoreDep
from admission_engine.api.models import (
    APIResponse,
    MarkedReadResponse,
    NotificationResponse,
    UnreadCountResponse,
    notification_to_response,
)

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=APIResponse[list[NotificationResponse]])
def list_notifications(
    store: StateStoreDep,
    actor: ActorDep,
    unread_only: bool = Query(default=False, description="Only unread notifications"),
    limit: int = Query(default=20, ge=1, le=100, description="Max results"),
) -> APIResponse[list[NotificationResponse]]:
    """The actor's notifications, newest first."""
    notifications = store.list_notifications(actor.actor_id, unread_only=unread_only, limit=limit)
    return APIResponse(data=[notification_to_response(n) for n in notifications])


@router.get("/unread-count", response_model=APIResponse[UnreadCountResponse])
def unread_count(store: StateStoreDep, actor: ActorDep) -> APIResponse[UnreadCountResponse]:
    """Number of unread notifications."""
    return APIResponse(
        data=UnreadCountResponse(unread=store.count_unread_notifications(actor.actor_id))
    )


@router.post("/read-all", response_model=APIResponse[MarkedReadResponse])
def mark_all_read(store: StateStoreDep, actor: ActorDep) -> APIResponse[MarkedReadResponse]:
    """Mark every notification as read."""
    updated = store.mark_all_notifications_read(actor.actor_id)
    return APIResponse(data=MarkedReadResponse(updated=updated))


@router.post("/{notification_id}/read", response_model=APIResponse[NotificationResponse])
def mark_read(
    notification_id: str, store: StateStoreDep, actor: ActorDep
) -> APIResponse[NotificationResponse]:
    """Mark one notification as read."""
    notification = store.mark_notification_read(notification_id, actor.actor_id)
    return APIResponse(data=notification_to_response(notification))
