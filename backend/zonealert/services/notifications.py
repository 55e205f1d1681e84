"""
Notification Service
====================

Push subscriptions, manual sends, and the farmer's alert inbox.

WHAT IT DOES:
------------
1. subscribe / unsubscribe  - register a device push token on the farmer's
                              topic, persisted in notification_subscriptions
2. send_to_topic / send_to_device - manual messages, each logged in
                              notification_logs with its outcome
3. logs / subscriptions / stats - views over those collections
4. inbox / mark_read        - the alert notifications written by
                              AlertRecorder

Everything is scoped to one farmer. Each farmer has their own alert topic
(see farmer_topic()), so a device only ever receives its owner's breaches,
and tokens, logs and sends of other farmers are never visible.

Subscriptions are keyed by a hash of the token so re-subscribing the same
device overwrites its row instead of adding a new one.
"""

import hashlib
import logging
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from zonealert.errors import NotFoundError, PermissionDeniedError, ValidationError, ZoneAlertError
from zonealert.models import (
    DeliveryStatus,
    PingNotificationRequest,
    SendNotificationRequest,
    SendToDeviceRequest,
    SubscribeRequest,
    UnsubscribeRequest,
)
from zonealert.storage.base import Document, DocumentStore, Messenger, utcnow

logger = logging.getLogger(__name__)

MAX_LOGS_LIMIT = 500


def subscription_id(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()[:32]


def farmer_topic(base_topic: str, farmer_id: str) -> str:
    """The push topic carrying one farmer's alerts."""
    return f"{base_topic}_{farmer_id}"


class NotificationService:
    def __init__(self, store: DocumentStore, messenger: Messenger, topic: str = "livestock_alerts"):
        self.store = store
        self.messenger = messenger
        self.topic = topic

    def own_topic(self, farmer_id: str, requested: Optional[str] = None) -> str:
        """
        The farmer's topic, checking an explicitly requested one against it.

        Raises:
            PermissionDeniedError: if `requested` is another topic
        """
        topic = farmer_topic(self.topic, farmer_id)
        if requested and requested != topic:
            raise PermissionDeniedError("You can only use your own alert topic")
        return topic

    async def _owned_subscription(self, token: str, farmer_id: str) -> Optional[Document]:
        """
        The token's subscription row, None if there is none.

        Raises:
            PermissionDeniedError: if the token is registered to another farmer
        """
        doc = await self.store.get("notification_subscriptions", subscription_id(token))
        if doc is not None and doc.data.get("farmer_id") != farmer_id:
            raise PermissionDeniedError("You do not have access to this device")
        return doc

    # =========================================================================
    # SUBSCRIPTIONS
    # =========================================================================

    async def subscribe(self, request: SubscribeRequest, farmer_id: str) -> dict[str, Any]:
        topic = self.own_topic(farmer_id, request.topic)
        await self._owned_subscription(request.token, farmer_id)
        await self.messenger.subscribe(request.token, topic)

        now = utcnow()
        record = {
            "token": request.token,
            "device_id": request.device_id,
            "farmer_id": farmer_id,
            "topic": topic,
            "is_active": True,
            "subscribed_at": now,
            "updated_at": now,
        }
        await self.store.set("notification_subscriptions", subscription_id(request.token), record)
        logger.info(f"[notifications] device {request.device_id or '?'} subscribed to {topic}")
        return {"subscription_id": subscription_id(request.token), "topic": topic}

    async def unsubscribe(self, request: UnsubscribeRequest, farmer_id: str) -> dict[str, Any]:
        topic = self.own_topic(farmer_id, request.topic)
        doc = await self._owned_subscription(request.token, farmer_id)
        await self.messenger.unsubscribe(request.token, topic)

        sub_id = subscription_id(request.token)
        if doc is not None:
            await self.store.update("notification_subscriptions", sub_id, {
                "is_active": False,
                "unsubscribed_at": utcnow(),
            })
        return {"subscription_id": sub_id, "topic": topic}

    async def subscriptions(self, farmer_id: str, active_only: bool = True) -> list[dict[str, Any]]:
        filters = [("farmer_id", "==", farmer_id)]
        if active_only:
            filters.append(("is_active", "==", True))
        docs = await self.store.query("notification_subscriptions", filters)
        return [d.to_dict("subscription_id") for d in docs]

    async def delete_subscription(self, token: str, farmer_id: str) -> None:
        doc = await self._owned_subscription(token, farmer_id)
        if doc is None:
            raise NotFoundError("Subscription not found")
        if doc.data.get("is_active"):
            await self.messenger.unsubscribe(token, doc.data.get("topic") or self.own_topic(farmer_id))
        await self.store.delete("notification_subscriptions", doc.id)

    # =========================================================================
    # SENDING
    # =========================================================================

    async def _send_logged(self, title: str, body: str, data: dict, sent_by: str,
                           topic: Optional[str] = None, token: Optional[str] = None) -> dict[str, Any]:
        """Send one message and write its outcome to notification_logs."""
        log = {
            "title": title,
            "body": body,
            "data": data,
            "topic": topic,
            "token": token,
            "sent_by": sent_by,
            "sent_at": utcnow(),
        }
        try:
            message_id = await self.messenger.send(title, body, data=data, topic=topic, token=token)
        except ZoneAlertError as e:
            log.update({"status": DeliveryStatus.FAILED.value, "error": e.message})
            await self.store.add("notification_logs", log)
            raise

        log.update({"status": DeliveryStatus.SENT.value, "message_id": message_id})
        log_id = await self.store.add("notification_logs", log)
        return {"log_id": log_id, "message_id": message_id}

    async def _registered_token(self, token: str, farmer_id: str) -> str:
        if await self._owned_subscription(token, farmer_id) is None:
            raise NotFoundError("Device token is not registered")
        return token

    async def send_to_topic(self, request: SendNotificationRequest, farmer_id: str) -> dict:
        topic = self.own_topic(farmer_id, request.topic)
        return await self._send_logged(request.title, request.body, request.data, farmer_id, topic=topic)

    async def send_to_device(self, request: SendToDeviceRequest, farmer_id: str) -> dict:
        token = await self._registered_token(request.token, farmer_id)
        return await self._send_logged(request.title, request.body, request.data, farmer_id, token=token)

    async def ping(self, request: PingNotificationRequest, farmer_id: str) -> dict:
        """Test message to one of the farmer's devices, or to their alert topic."""
        if request.token:
            token, topic = await self._registered_token(request.token, farmer_id), None
        else:
            token, topic = None, self.own_topic(farmer_id, request.topic)
        return await self._send_logged(
            "ZoneAlert test",
            "If you can read this, push notifications are working.",
            {"type": "test"},
            farmer_id,
            topic=topic,
            token=token,
        )

    # =========================================================================
    # VIEWS
    # =========================================================================

    async def logs(self, farmer_id: str, limit: int = 50) -> list[dict[str, Any]]:
        if not 1 <= limit <= MAX_LOGS_LIMIT:
            raise ValidationError(f"limit must be between 1 and {MAX_LOGS_LIMIT}")
        docs = await self.store.query(
            "notification_logs", [("sent_by", "==", farmer_id)],
            order_by="sent_at", descending=True, limit=limit,
        )
        return [d.to_dict("log_id") for d in docs]

    async def stats(self, farmer_id: str, now: Optional[datetime] = None) -> dict[str, Any]:
        """The farmer's send counts over the last 24 hours plus their active subscriptions."""
        now = now or datetime.now(timezone.utc)
        since = now - timedelta(hours=24)
        logs = await self.store.query("notification_logs", [
            ("sent_by", "==", farmer_id),
            ("sent_at", ">=", since),
        ])
        statuses = Counter(d.data.get("status") for d in logs)
        active = await self.store.count("notification_subscriptions", [
            ("farmer_id", "==", farmer_id),
            ("is_active", "==", True),
        ])
        return {
            "period_hours": 24,
            "total_sent": statuses.get(DeliveryStatus.SENT.value, 0),
            "total_failed": statuses.get(DeliveryStatus.FAILED.value, 0),
            "active_subscriptions": active,
        }

    # =========================================================================
    # INBOX
    # =========================================================================

    async def inbox(self, farmer_id: str, unread_only: bool = False, limit: int = 50) -> dict[str, Any]:
        docs = await self.store.query("notifications", [("farmer_id", "==", farmer_id)])
        docs.sort(key=lambda d: d.data.get("sent_at") or since_epoch(), reverse=True)
        unread = sum(1 for d in docs if not d.data.get("is_read"))
        if unread_only:
            docs = [d for d in docs if not d.data.get("is_read")]
        return {
            "unread": unread,
            "notifications": [d.to_dict("notification_id") for d in docs[:limit]],
        }

    async def mark_read(self, notification_id: str, farmer_id: str) -> dict[str, Any]:
        doc = await self.store.get("notifications", notification_id)
        if doc is None:
            raise NotFoundError("Notification not found")
        if doc.data.get("farmer_id") != farmer_id:
            raise PermissionDeniedError("You do not have access to this notification")

        changes = {"is_read": True, "read_at": utcnow()}
        await self.store.update("notifications", notification_id, changes)
        return {"notification_id": notification_id, **doc.data, **changes}


def since_epoch() -> datetime:
    return datetime.fromtimestamp(0, tz=timezone.utc)
