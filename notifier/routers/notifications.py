"""
Notification dispatch and campaign endpoints used by the admin dashboard.
"""

import logging

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse

from notifier.deps import Campaigns, DispatchAuthorized, Dispatcher
from notifier.schemas import CampaignCreateRequest, CampaignResponse, SendNotificationBody
from notifier.services.campaigns import HistoryWindow

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["notifications"], dependencies=[DispatchAuthorized])


@router.post("/send-notification")
async def send_notification(body: SendNotificationBody, dispatcher: Dispatcher):
    """Send one notification to a token, or to every device of a user.

    Returns ``{"success": true}``, or ``{"success": false, "error": ...}``
    with 400 for a missing destination and 500 for provider failures.
    """
    report = await dispatcher.dispatch(body.message)
    if not report.success:
        logger.info("Notification not delivered (%s): %s", report.status_code, report.error)
    return JSONResponse(report.to_response(), status_code=report.status_code)


@router.post("/notifications", response_model=CampaignResponse, status_code=201)
async def create_campaign(form: CampaignCreateRequest, campaigns: Campaigns):
    """Log a campaign and broadcast it to all devices (or save it as a draft)."""
    campaign = await campaigns.create(form)
    return CampaignResponse.model_validate(campaign)


@router.get("/notifications", response_model=list[CampaignResponse])
async def list_campaigns(
    campaigns: Campaigns,
    window: HistoryWindow = Query("all"),
):
    """Campaign log, newest first."""
    return [CampaignResponse.model_validate(c) for c in await campaigns.history(window)]
