"""
FastAPI dependencies for identity, shared services and dispatch authorization.
"""

import logging
import secrets
from typing import Annotated

from fastapi import Depends, HTTPException, Request, Security, status
from fastapi.security import APIKeyHeader

from notifier.services.campaigns import CampaignService
from notifier.services.dispatcher import NotificationDispatcher
from notifier.services.registry import TokenRegistry
from notifier.settings import settings

logger = logging.getLogger(__name__)

api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


def get_current_identity(request: Request) -> str:
    """Identity of the caller, as forwarded by the identity provider's gateway.

    The value is opaque; it is only used as the registry key.
    """
    identity = (request.headers.get(settings.identity_header) or "").strip()
    if not identity:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )
    request.state.identity = identity
    return identity


CurrentIdentity = Annotated[str, Depends(get_current_identity)]


def require_dispatch_key(api_key: str | None = Security(api_key_header)) -> None:
    """Guard the dispatch endpoints with a shared secret when one is configured."""
    if not settings.dispatch_api_key:
        return
    if not api_key or not secrets.compare_digest(api_key, settings.dispatch_api_key):
        logger.warning("Rejected dispatch request with missing or invalid API key")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid API key",
        )


DispatchAuthorized = Depends(require_dispatch_key)


# Services are built once in the application lifespan and live on app.state

def get_registry(request: Request) -> TokenRegistry:
    return request.app.state.registry


def get_dispatcher(request: Request) -> NotificationDispatcher:
    return request.app.state.dispatcher


def get_campaigns(request: Request) -> CampaignService:
    return request.app.state.campaigns


Registry = Annotated[TokenRegistry, Depends(get_registry)]
Dispatcher = Annotated[NotificationDispatcher, Depends(get_dispatcher)]
Campaigns = Annotated[CampaignService, Depends(get_campaigns)]

