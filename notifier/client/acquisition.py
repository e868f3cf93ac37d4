"""
Token acquisition: obtain a delivery token from the push provider once the
user is known and hand it to the token registry.

Runs on the end-user device. Everything here is best-effort background work:
permission refusals and storage failures end the attempt quietly (with a
logged reason) and never surface to the user.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from notifier.errors import NotificationPermissionError, StorageError

logger = logging.getLogger(__name__)

IdentityCallback = Callable[[str | None], Awaitable[None]]


class IdentitySource(Protocol):
    """Identity provider session (sign-in state)."""

    def on_identity_changed(self, callback: IdentityCallback) -> Callable[[], None]:
        """Subscribe to sign-in/sign-out; returns an unsubscribe function."""
        ...


class TokenSource(Protocol):
    """Client side of the push provider."""

    async def get_token(self, app_key: str) -> str | None:
        """Request a delivery token.

        Returns None when the environment cannot receive pushes; raises
        NotificationPermissionError when the user declined.
        """
        ...


class RegistrationSink(Protocol):
    async def register(self, identity: str, token: str) -> bool:
        ...


class AcquisitionStatus(str, Enum):
    REGISTERED = "registered"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class AcquisitionResult:
    status: AcquisitionStatus
    reason: str | None = None
    token: str | None = None


def _skipped(reason: str) -> AcquisitionResult:
    logger.info("Push registration skipped: %s", reason)
    return AcquisitionResult(AcquisitionStatus.SKIPPED, reason=reason)


class TokenAcquisitionClient:
    """Registers this device's delivery token whenever a user signs in."""

    def __init__(
        self,
        identity_source: IdentitySource,
        token_source: TokenSource,
        registry: RegistrationSink,
        app_key: str,
    ):
        self.identity_source = identity_source
        self.token_source = token_source
        self.registry = registry
        self.app_key = app_key
        self._unsubscribe: Callable[[], None] | None = None
        self._identity: str | None = None

    @property
    def started(self) -> bool:
        return self._unsubscribe is not None

    def start(self) -> None:
        """Listen for identity changes. Calling twice keeps one listener."""
        if self.started:
            logger.debug("Token acquisition already listening")
            return
        self._unsubscribe = self.identity_source.on_identity_changed(self.handle_identity)

    def stop(self) -> None:
        """Stop listening (logout / teardown) and forget the current identity."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._identity = None

    async def handle_identity(self, identity: str | None) -> AcquisitionResult:
        if not self.started:
            return _skipped("stopped")

        self._identity = identity
        if not identity:
            return _skipped("no_identity")

        try:
            token = await self.token_source.get_token(self.app_key)
        except NotificationPermissionError:
            return _skipped("permission_denied")

        if not token:
            return _skipped("no_token")

        # The user may have signed out or switched while the token request was in flight
        if self._identity != identity:
            return _skipped("identity_changed")

        return await self._register(identity, token)

    async def handle_token_refresh(self, token: str | None) -> AcquisitionResult:
        """Provider rotated the token: register the new one for the current user."""
        if not self.started:
            return _skipped("stopped")
        if not self._identity:
            return _skipped("no_identity")
        if not token:
            return _skipped("no_token")
        return await self._register(self._identity, token)

    async def _register(self, identity: str, token: str) -> AcquisitionResult:
        try:
            await self.registry.register(identity, token)
        except StorageError as e:
            # Retried naturally at the next sign-in or app start
            logger.warning("Push registration failed: %s", e)
            return AcquisitionResult(AcquisitionStatus.FAILED, reason="storage_error", token=token)

        logger.info("Push token registered for user %s", identity)
        return AcquisitionResult(AcquisitionStatus.REGISTERED, token=token)
