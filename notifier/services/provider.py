"""
Push provider adapters.

The provider handle is created once by the application lifespan and shared by
reference; nothing else initializes Firebase.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any

import firebase_admin
from firebase_admin import credentials, exceptions, messaging

from notifier.errors import ProviderError, ProviderErrorReason
from notifier.settings import Settings

logger = logging.getLogger(__name__)

FIREBASE_APP_NAME = "course-push-notifier"


class PushProvider(ABC):
    """Submits a single-token message to a push service."""

    name: str = "base"

    @abstractmethod
    async def send(self, payload: dict[str, Any]) -> str:
        """Send one message and return the provider's message id.

        Raises ProviderError on rejection or failure.
        """
        raise NotImplementedError


def classify_firebase_error(exc: exceptions.FirebaseError) -> ProviderErrorReason:
    """Map a Firebase Admin SDK error onto a ProviderErrorReason."""
    if isinstance(exc, messaging.UnregisteredError):
        return ProviderErrorReason.UNREGISTERED
    if isinstance(exc, messaging.SenderIdMismatchError):
        # Token belongs to another project
        return ProviderErrorReason.INVALID_TOKEN
    if isinstance(exc, messaging.QuotaExceededError):
        return ProviderErrorReason.QUOTA_EXCEEDED
    if isinstance(exc, exceptions.InvalidArgumentError):
        # FCM reports a malformed registration token as INVALID_ARGUMENT
        if "registration token" in str(exc).lower():
            return ProviderErrorReason.INVALID_TOKEN
        return ProviderErrorReason.INVALID_ARGUMENT
    if isinstance(exc, (exceptions.UnavailableError, exceptions.DeadlineExceededError)):
        return ProviderErrorReason.UNAVAILABLE
    return ProviderErrorReason.INTERNAL


def build_firebase_message(payload: dict[str, Any]) -> messaging.Message:
    """Convert the dispatcher's payload dict into an SDK Message."""
    notification = payload.get("notification") or {}

    android = payload.get("android") or {}
    android_notification = None
    if android.get("notification"):
        android_notification = messaging.AndroidNotification(
            icon=android["notification"].get("icon"),
            color=android["notification"].get("color"),
        )

    apns = payload.get("apns") or {}
    aps = (apns.get("payload") or {}).get("aps") or {}

    return messaging.Message(
        token=payload["token"],
        notification=messaging.Notification(
            title=notification.get("title"),
            body=notification.get("body"),
        ),
        android=messaging.AndroidConfig(
            priority=android.get("priority"),
            notification=android_notification,
        ),
        apns=messaging.APNSConfig(
            headers=apns.get("headers"),
            payload=messaging.APNSPayload(
                aps=messaging.Aps(sound=aps.get("sound"), badge=aps.get("badge")),
            ),
        ),
        data=payload.get("data"),
    )


class FirebasePushProvider(PushProvider):
    """Firebase Cloud Messaging through the Admin SDK."""

    name = "fcm"

    def __init__(self, app: firebase_admin.App, timeout_seconds: float = 5.0):
        self.app = app
        self.timeout_seconds = timeout_seconds

    @classmethod
    def from_settings(cls, settings: Settings) -> "FirebasePushProvider":
        """Initialize the Firebase app from service account settings.

        An app already initialized under our name is reused.
        """
        if not settings.push_enabled:
            raise ProviderError(
                "Missing Firebase admin credentials",
                reason=ProviderErrorReason.NOT_CONFIGURED,
            )

        try:
            app = firebase_admin.get_app(FIREBASE_APP_NAME)
        except ValueError:
            cred = credentials.Certificate({
                "type": "service_account",
                "project_id": settings.firebase_project_id,
                "client_email": settings.firebase_client_email,
                "private_key": settings.firebase_private_key,
                "token_uri": "https://oauth2.googleapis.com/token",
            })
            app = firebase_admin.initialize_app(cred, name=FIREBASE_APP_NAME)
            logger.info("Firebase messaging initialized for project %s", settings.firebase_project_id)

        return cls(app, timeout_seconds=settings.push_provider_timeout_seconds)

    async def send(self, payload: dict[str, Any]) -> str:
        message = build_firebase_message(payload)
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(messaging.send, message, app=self.app),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise ProviderError(
                f"Push provider did not respond within {self.timeout_seconds}s",
                reason=ProviderErrorReason.TIMEOUT,
            ) from e
        except exceptions.FirebaseError as e:
            raise ProviderError(
                str(e) or "FCM error",
                reason=classify_firebase_error(e),
                detail={
                    "code": e.code,
                    "message": str(e),
                    "cause": repr(e.cause) if e.cause else None,
                    "http_status": getattr(e.http_response, "status_code", None),
                },
            ) from e
        except ValueError as e:
            # SDK-side payload validation
            raise ProviderError(
                str(e),
                reason=ProviderErrorReason.INVALID_ARGUMENT,
            ) from e
