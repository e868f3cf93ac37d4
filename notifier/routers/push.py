"""
Push router: device token registry, client configuration and the background
service worker.
"""

import logging

from fastapi import APIRouter, HTTPException, Request, status
from fastapi.responses import JSONResponse

from notifier.deps import CurrentIdentity, Dispatcher, Registry
from notifier.schemas import TokenRegistrationRequest
from notifier.settings import settings
from notifier.templates_config import templates

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/push", tags=["push"])
worker_router = APIRouter(tags=["push"])


@router.get("/vapid-public-key")
async def get_vapid_public_key():
    """Application server key browsers pass when requesting a token."""
    if not settings.web_push_configured:
        raise HTTPException(
            status_code=status.HTTP_501_NOT_IMPLEMENTED,
            detail="Web push not configured",
        )
    return JSONResponse({"publicKey": settings.vapid_public_key})


@router.post("/tokens")
async def register_token(
    request: Request,
    identity: CurrentIdentity,
    registry: Registry,
    registration: TokenRegistrationRequest,
):
    """Add a device token to the caller's token set (idempotent)."""
    try:
        created = await registry.register(
            identity,
            registration.token,
            platform=registration.platform,
            user_agent=request.headers.get("User-Agent"),
        )
    except ValueError as e:
        logger.info("Rejected token registration for user %s: %s", identity, e)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    return JSONResponse({"status": "registered", "created": created})


@router.get("/tokens")
async def list_tokens(identity: CurrentIdentity, registry: Registry):
    """The caller's registry document."""
    return JSONResponse(await registry.document(identity))


@router.get("/status")
async def get_push_status(identity: CurrentIdentity, registry: Registry, dispatcher: Dispatcher):
    """Get push notification status for debugging."""
    return JSONResponse({
        "provider_configured": dispatcher.provider is not None,
        "web_push_configured": settings.web_push_configured,
        "token_count": await registry.count(identity),
    })


@worker_router.get("/firebase-messaging-sw.js")
async def messaging_service_worker(request: Request):
    """Background delivery listener, served from root for full scope coverage."""
    return templates.TemplateResponse(
        request,
        "firebase-messaging-sw.js",
        media_type="application/javascript",
        headers={
            "Cache-Control": "no-cache, no-store, must-revalidate",
            "Service-Worker-Allowed": "/",
        },
    )
