"""
Notification campaign model - the log of notifications composed in the dashboard.
"""

from enum import Enum

from sqlalchemy import Boolean, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from notifier.db import Base
from notifier.models.base import TimestampMixin


class CampaignStatus(str, Enum):
    DRAFT = "draft"
    SENT = "sent"
    FAILED = "failed"  # Every delivery attempt failed


class NotificationCampaign(Base, TimestampMixin):
    """A notification composed by an administrator and broadcast to all devices."""

    __tablename__ = "notification_campaigns"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str | None] = mapped_column(String(200), nullable=True)  # Internal label
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    image_url: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Platform toggles from the compose form
    android_enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    ios_enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    status: Mapped[CampaignStatus] = mapped_column(
        String(20),
        default=CampaignStatus.DRAFT,
        nullable=False,
    )

    # Delivery counters
    target_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    sent_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    failed_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    def __repr__(self) -> str:
        return f"<NotificationCampaign {self.id} {self.status}>"
