"""
Notifications API Router
========================

Push notifications go out over Firebase Cloud Messaging. Every farmer has
their own alert topic; the mobile app subscribes its device token to it and
breaches on the farmer's farms are pushed there. All endpoints only see the
caller's own devices, sends and notifications.

ALL ENDPOINTS:
-------------
POST   /api/notifications/subscribe              - Subscribe a push token
POST   /api/notifications/unsubscribe            - Unsubscribe a push token
POST   /api/notifications/send                   - Send to your alert topic
POST   /api/notifications/send-to-device         - Send to one of your devices
POST   /api/notifications/test                   - Send a test message
GET    /api/notifications/logs                   - Your recent manual sends
GET    /api/notifications/subscriptions          - Your active subscriptions
DELETE /api/notifications/subscriptions/{token}  - Remove a subscription
GET    /api/notifications/stats                  - Your sends in the last 24 hours
GET    /api/notifications/inbox                  - Your alert notifications
PUT    /api/notifications/inbox/{id}/read        - Mark one as read
"""

from fastapi import APIRouter, Depends, Query

from zonealert.dependencies import get_container, get_current_user
from zonealert.models import (
    ApiResponse,
    PingNotificationRequest,
    SendNotificationRequest,
    SendToDeviceRequest,
    SubscribeRequest,
    UnsubscribeRequest,
)
from zonealert.services import ServiceContainer
from zonealert.utils import require_doc_id


router = APIRouter(prefix="/api/notifications", tags=["notifications"])


# =============================================================================
# SUBSCRIPTIONS
# =============================================================================

@router.post("/subscribe", response_model=ApiResponse)
async def subscribe(
    request: SubscribeRequest,
    farmer: dict = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    result = await container.notifications.subscribe(request, farmer["id"])
    return ApiResponse(message=f"Subscribed to {result['topic']}", data=result)


@router.post("/unsubscribe", response_model=ApiResponse)
async def unsubscribe(
    request: UnsubscribeRequest,
    farmer: dict = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    result = await container.notifications.unsubscribe(request, farmer["id"])
    return ApiResponse(message=f"Unsubscribed from {result['topic']}", data=result)


@router.get("/subscriptions", response_model=ApiResponse)
async def list_subscriptions(
    active_only: bool = True,
    farmer: dict = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    subs = await container.notifications.subscriptions(farmer["id"], active_only)
    return ApiResponse(message=f"Found {len(subs)} subscriptions", data=subs)


@router.delete("/subscriptions/{token}", response_model=ApiResponse)
async def delete_subscription(
    token: str,
    farmer: dict = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    await container.notifications.delete_subscription(token, farmer["id"])
    return ApiResponse(message="Subscription deleted")


# =============================================================================
# SENDING
# =============================================================================

@router.post("/send", response_model=ApiResponse)
async def send_to_topic(
    request: SendNotificationRequest,
    farmer: dict = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    result = await container.notifications.send_to_topic(request, farmer["id"])
    return ApiResponse(message="Notification sent", data=result)


@router.post("/send-to-device", response_model=ApiResponse)
async def send_to_device(
    request: SendToDeviceRequest,
    farmer: dict = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    result = await container.notifications.send_to_device(request, farmer["id"])
    return ApiResponse(message="Notification sent", data=result)


@router.post("/test", response_model=ApiResponse)
async def send_test(
    request: PingNotificationRequest,
    farmer: dict = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    """Send a test push to one of your devices, or to your alert topic if no token is given."""
    result = await container.notifications.ping(request, farmer["id"])
    return ApiResponse(message="Test notification sent", data=result)


# =============================================================================
# VIEWS
# =============================================================================

@router.get("/logs", response_model=ApiResponse)
async def notification_logs(
    limit: int = Query(50, ge=1, le=500),
    farmer: dict = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    logs = await container.notifications.logs(farmer["id"], limit)
    return ApiResponse(message=f"Found {len(logs)} log entries", data=logs)


@router.get("/stats", response_model=ApiResponse)
async def notification_stats(
    farmer: dict = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    stats = await container.notifications.stats(farmer["id"])
    return ApiResponse(message="Notification statistics", data=stats)


# =============================================================================
# INBOX
# =============================================================================

@router.get("/inbox", response_model=ApiResponse)
async def inbox(
    unread_only: bool = False,
    limit: int = Query(50, ge=1, le=500),
    farmer: dict = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    result = await container.notifications.inbox(farmer["id"], unread_only=unread_only, limit=limit)
    return ApiResponse(message=f"{result['unread']} unread", data=result)


@router.put("/inbox/{notification_id}/read", response_model=ApiResponse)
async def mark_read(
    notification_id: str,
    farmer: dict = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    require_doc_id(notification_id, "notification_id")
    result = await container.notifications.mark_read(notification_id, farmer["id"])
    return ApiResponse(message="Marked as read", data=result)
