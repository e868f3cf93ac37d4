# Models package
from notifier.db import Base
from notifier.models.campaign import CampaignStatus, NotificationCampaign
from notifier.models.push_token import PushToken

__all__ = [
    "Base",
    "CampaignStatus",
    "NotificationCampaign",
    "PushToken",
]
