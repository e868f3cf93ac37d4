"""
Request and response models for token registration and dispatch.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from notifier.models.campaign import CampaignStatus


class AndroidNotificationOptions(BaseModel):
    """Android notification styling."""
    icon: str | None = None
    color: str | None = None


class AndroidOptions(BaseModel):
    """Android delivery hints."""
    priority: Literal["normal", "high"] = "high"
    notification: AndroidNotificationOptions | None = None


class IosOptions(BaseModel):
    """APNs delivery hints."""
    sound: bool = False
    badge: int | None = Field(default=None, ge=0)


class NotificationRequest(BaseModel):
    """A notification to deliver.

    The destination is either a single raw token (``to``) or an identity
    (``user_id``) resolved against the token registry. ``to`` wins when both
    are present.
    """

    to: str | None = None
    user_id: str | None = None
    title: str = ""
    body: str = ""
    android: AndroidOptions = Field(default_factory=AndroidOptions)
    ios: IosOptions = Field(default_factory=IosOptions)
    data: dict[str, str] | None = None


class SendNotificationBody(BaseModel):
    """Dispatch endpoint envelope: ``{"message": {...}}``."""
    message: NotificationRequest


class TokenRegistrationRequest(BaseModel):
    """Register a device token for the calling identity."""
    token: str = Field(min_length=1, max_length=4096)
    platform: Literal["web", "android", "ios"] | None = None


class CampaignCreateRequest(BaseModel):
    """Compose form of the dashboard's push notification screen."""
    name: str | None = Field(default=None, max_length=200)
    title: str = Field(min_length=1, max_length=200)
    body: str = Field(min_length=1)
    image_url: str | None = None
    android_enabled: bool = True
    ios_enabled: bool = True
    send_now: bool = True


class CampaignResponse(BaseModel):
    """Campaign log entry."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str | None = None
    title: str
    body: str
    image_url: str | None = None
    android_enabled: bool
    ios_enabled: bool
    status: CampaignStatus
    target_count: int
    sent_count: int
    failed_count: int
    created_at: datetime
