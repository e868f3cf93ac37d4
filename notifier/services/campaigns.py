"""
Dashboard notification campaigns: compose, broadcast to every device, and log.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Literal

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from notifier.errors import NoDestinationError, StorageError
from notifier.models.campaign import CampaignStatus, NotificationCampaign
from notifier.schemas import (
    AndroidNotificationOptions,
    AndroidOptions,
    CampaignCreateRequest,
    IosOptions,
    NotificationRequest,
)
from notifier.services.dispatcher import NotificationDispatcher

logger = logging.getLogger(__name__)

ANDROID_ICON = "notification-icon"
ANDROID_COLOR = "#2c3e50"
COMPOSE_DATA_TAG = "compose"

HistoryWindow = Literal["all", "7d", "30d"]
WINDOW_DAYS = {"7d": 7, "30d": 30}


def build_campaign_request(campaign: CampaignCreateRequest) -> NotificationRequest:
    """Translate the compose form toggles into a notification request."""
    data = {"someData": COMPOSE_DATA_TAG}
    if campaign.image_url:
        data["thumbnailUrl"] = campaign.image_url

    android = AndroidOptions()
    if campaign.android_enabled:
        android.notification = AndroidNotificationOptions(icon=ANDROID_ICON, color=ANDROID_COLOR)

    if campaign.ios_enabled:
        ios = IosOptions(sound=True, badge=1)
    else:
        ios = IosOptions(sound=False, badge=0)

    return NotificationRequest(
        title=campaign.title,
        body=campaign.body,
        android=android,
        ios=ios,
        data=data,
    )


class CampaignService:
    """Creates campaign log entries and broadcasts them through the dispatcher."""

    def __init__(
        self,
        dispatcher: NotificationDispatcher,
        session_maker: async_sessionmaker[AsyncSession] | None = None,
    ):
        if session_maker is None:
            from notifier.db import async_session_maker
            session_maker = async_session_maker
        self.dispatcher = dispatcher
        self._session_maker = session_maker

    async def create(self, form: CampaignCreateRequest) -> NotificationCampaign:
        """Log a campaign and, unless it is a draft, send it to every device.

        Raises NoDestinationError when no device has registered a token.
        """
        tokens = await self.dispatcher.registry.all_tokens()
        if not tokens:
            raise NoDestinationError("No push tokens found")

        campaign = NotificationCampaign(
            name=form.name or None,
            title=form.title,
            body=form.body,
            image_url=form.image_url,
            android_enabled=form.android_enabled,
            ios_enabled=form.ios_enabled,
            status=CampaignStatus.DRAFT,
            target_count=len(tokens),
            sent_count=0,
            failed_count=0,
        )
        # Stays a draft until the broadcast report is in
        await self._save(campaign)

        if not form.send_now:
            logger.info("Saved draft campaign %s for %d devices", campaign.id, len(tokens))
            return campaign

        report = await self.dispatcher.dispatch_many(tokens, build_campaign_request(form))
        campaign.sent_count = report.success_count
        campaign.failed_count = len(report.failures)
        campaign.status = CampaignStatus.SENT if report.success_count else CampaignStatus.FAILED
        await self._save(campaign)

        logger.info(
            "Campaign %s broadcast: %d sent, %d failed",
            campaign.id, campaign.sent_count, campaign.failed_count,
        )
        return campaign

    async def history(self, window: HistoryWindow = "all") -> list[NotificationCampaign]:
        """Campaigns newest first, optionally limited to the last 7 or 30 days."""
        stmt = select(NotificationCampaign).order_by(
            NotificationCampaign.created_at.desc(),
            NotificationCampaign.id.desc(),
        )
        if window in WINDOW_DAYS:
            since = datetime.now(timezone.utc) - timedelta(days=WINDOW_DAYS[window])
            stmt = stmt.where(NotificationCampaign.created_at >= since)

        try:
            async with self._session_maker() as session:
                result = await session.execute(stmt)
                return list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error("Campaign history lookup failed: %s", e)
            raise StorageError("Campaign log unavailable") from e

    async def _save(self, campaign: NotificationCampaign) -> None:
        try:
            async with self._session_maker() as session:
                merged = await session.merge(campaign)
                await session.commit()
                await session.refresh(merged)
        except SQLAlchemyError as e:
            logger.error("Campaign save failed: %s", e)
            raise StorageError("Campaign log unavailable") from e

        campaign.id = merged.id
        campaign.created_at = merged.created_at
        campaign.updated_at = merged.updated_at
