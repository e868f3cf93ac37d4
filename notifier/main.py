"""
FastAPI application entry point.
"""

import logging
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from starlette.exceptions import HTTPException as StarletteHTTPException

from notifier.db import close_db, init_db
from notifier.errors import InvalidNotificationError, NoDestinationError, PushError
from notifier.services.campaigns import CampaignService
from notifier.services.dispatcher import NotificationDispatcher
from notifier.services.provider import FirebasePushProvider, PushProvider
from notifier.services.registry import TokenRegistry
from notifier.settings import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

API_PREFIX = "/api/"
SEND_NOTIFICATION_PATH = "/api/send-notification"

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format=LOG_FORMAT,
)
logger = logging.getLogger(__name__)


def configure_services(
    app: FastAPI,
    provider: PushProvider | None,
    session_maker: async_sessionmaker[AsyncSession] | None = None,
) -> None:
    """Wire the registry, dispatcher and campaign service onto app.state.

    The provider handle is shared by reference; it is never rebuilt per request.
    """
    registry = TokenRegistry(session_maker)
    dispatcher = NotificationDispatcher(
        provider,
        registry,
        remove_stale_tokens=settings.push_remove_stale_tokens,
    )
    app.state.registry = registry
    app.state.dispatcher = dispatcher
    app.state.campaigns = CampaignService(dispatcher, session_maker)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    logger.info("Starting %s...", settings.app_name)
    await init_db()

    provider = None
    if settings.push_enabled:
        provider = FirebasePushProvider.from_settings(settings)
    else:
        logger.warning("Push notifications disabled - Firebase admin credentials not configured")
    configure_services(app, provider)

    yield
    logger.info("Shutting down %s...", settings.app_name)
    await close_db()


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    debug=settings.debug,
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Request ID middleware
@app.middleware("http")
async def add_request_id(request: Request, call_next):
    """Add request ID to all requests for logging."""
    request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
    request.state.request_id = request_id
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


# Health check endpoint
@app.get("/healthz", tags=["health"])
@app.get("/health", tags=["health"])
async def healthz():
    """Health check endpoint for load balancers."""
    return {"status": "healthy"}


@app.get("/version", tags=["meta"])
async def version():
    """Return app version for service worker cache invalidation."""
    return {
        "version": settings.app_version,
        "build_sha": settings.build_sha,
    }


# Import and include routers
from notifier.routers import notifications, push

app.include_router(push.router)
app.include_router(push.worker_router)
app.include_router(notifications.router)


def _is_api_request(request: Request) -> bool:
    return request.url.path.startswith(API_PREFIX)


def _error_envelope(message: str, status_code: int, headers: dict | None = None) -> JSONResponse:
    return JSONResponse({"success": False, "error": message}, status_code=status_code, headers=headers)


def _is_destination_error(error: dict) -> bool:
    """True for a missing or unparseable body, message or destination field."""
    loc = tuple(error.get("loc", ()))
    if loc[:1] != ("body",):
        return False
    if len(loc) == 1 or isinstance(loc[1], int):
        return True
    if loc[1] != "message":
        return False
    return len(loc) == 2 or loc[2] in ("to", "user_id")


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """API routes answer malformed requests in the `{success: false, error}` envelope."""
    if not _is_api_request(request):
        return await request_validation_exception_handler(request, exc)

    errors = exc.errors()
    if request.url.path != SEND_NOTIFICATION_PATH:
        first = errors[0]
        field = ".".join(str(part) for part in first["loc"][1:])
        return _error_envelope(f"Invalid request: {field}: {first['msg']}", 422)

    if any(_is_destination_error(e) for e in errors):
        error: PushError = NoDestinationError("Missing FCM token")
    else:
        first = errors[0]
        field = ".".join(str(part) for part in first["loc"][2:])
        error = InvalidNotificationError(f"Invalid notification payload: {field}: {first['msg']}")
    logger.info("Rejected notification request: %s", error.message)
    return _error_envelope(error.message, error.status_code)


@app.exception_handler(PushError)
async def push_error_handler(request: Request, exc: PushError):
    """Registry, provider and validation failures as ``{success: false, error}``."""
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)
    return _error_envelope(exc.message, exc.status_code)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code >= 500:
        logger.error("Server error %s: %s", exc.status_code, exc.detail)
    headers = getattr(exc, "headers", None)
    if _is_api_request(request):
        return _error_envelope(str(exc.detail), exc.status_code, headers=headers)
    return JSONResponse(
        {"detail": exc.detail},
        status_code=exc.status_code,
        headers=headers,
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    """Handle unhandled exceptions with a JSON 500."""
    logger.error("Unhandled exception on %s %s: %s", request.method, request.url.path, exc, exc_info=exc)
    if _is_api_request(request):
        return _error_envelope("Internal server error", 500)
    return JSONResponse({"detail": "Internal server error"}, status_code=500)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "notifier.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
