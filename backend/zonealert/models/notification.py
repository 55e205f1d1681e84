"""
Notification Models
===================
Push subscription and messaging requests.
"""

from typing import Optional

from pydantic import AliasChoices, BaseModel, Field


class SubscribeRequest(BaseModel):
    """
    Register a device push token for the farmer's alert topic.

    Example Request:
        POST /api/notifications/subscribe
        {"token": "fcm-token...", "deviceId": "phone-1"}
    """
    token: str = Field(..., min_length=1)
    device_id: Optional[str] = Field(
        None, validation_alias=AliasChoices("device_id", "deviceId")
    )
    topic: Optional[str] = Field(None, description="Defaults to your alert topic; no other topic is accepted")


class UnsubscribeRequest(BaseModel):
    token: str = Field(..., min_length=1)
    topic: Optional[str] = None


class SendNotificationRequest(BaseModel):
    """Broadcast to the farmer's alert topic."""
    title: str = Field(..., min_length=1, max_length=200)
    body: str = Field(..., min_length=1, max_length=1000)
    topic: Optional[str] = None
    data: dict[str, str] = Field(default_factory=dict)


class SendToDeviceRequest(BaseModel):
    token: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1, max_length=200)
    body: str = Field(..., min_length=1, max_length=1000)
    data: dict[str, str] = Field(default_factory=dict)


class PingNotificationRequest(BaseModel):
    """Either one of the farmer's tokens or their topic; the topic is used when both are empty."""
    token: Optional[str] = None
    topic: Optional[str] = None
