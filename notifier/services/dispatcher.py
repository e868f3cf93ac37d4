"""
Notification dispatch: payload shaping, destination resolution and fan-out.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

from notifier.errors import (
    NoDestinationError,
    ProviderError,
    ProviderErrorReason,
    STALE_TOKEN_REASONS,
    StorageError,
)
from notifier.schemas import NotificationRequest
from notifier.services.provider import PushProvider
from notifier.services.registry import TokenRegistry

logger = logging.getLogger(__name__)

APNS_IMMEDIATE_PRIORITY = "10"


@dataclass
class DeliveryOutcome:
    """Result of one provider call for one token.

    Success means the provider accepted the message, not that the device
    received it.
    """

    token: str
    success: bool
    message_id: str | None = None
    error: str | None = None
    reason: ProviderErrorReason | None = None


@dataclass
class DispatchReport:
    """Composite result of a dispatch call."""

    outcomes: list[DeliveryOutcome] = field(default_factory=list)
    error: str | None = None
    status_code: int = 200
    identity: str | None = None

    @property
    def success_count(self) -> int:
        return sum(1 for o in self.outcomes if o.success)

    @property
    def failures(self) -> list[DeliveryOutcome]:
        return [o for o in self.outcomes if not o.success]

    @property
    def success(self) -> bool:
        return self.error is None and self.success_count > 0

    @classmethod
    def rejected(cls, exc: NoDestinationError, identity: str | None = None) -> "DispatchReport":
        return cls(error=exc.message, status_code=exc.status_code, identity=identity)

    def finalize(self) -> "DispatchReport":
        """Set the overall error and status once every outcome is in."""
        if self.outcomes and self.success_count == 0:
            self.error = self.failures[0].error or "FCM error"
            self.status_code = ProviderError.status_code
        return self

    def to_response(self) -> dict[str, Any]:
        """JSON body for the dispatch endpoint."""
        if not self.success:
            body: dict[str, Any] = {"success": False, "error": self.error or "FCM error"}
        else:
            body = {"success": True}
        if self.identity is not None:
            body["sent"] = self.success_count
            body["failed"] = [
                {"token": o.token, "error": o.error, "reason": o.reason.value if o.reason else None}
                for o in self.failures
            ]
        return body


def build_payload(token: str, request: NotificationRequest) -> dict[str, Any]:
    """Shape a provider payload for one token.

    ``aps.sound`` is present only when sound is requested, and ``badge``
    only when a count is given: providers treat an explicit false/null
    differently from an absent key.
    """
    android: dict[str, Any] = {"priority": request.android.priority}
    if request.android.notification is not None:
        styling = request.android.notification.model_dump(exclude_none=True)
        if styling:
            android["notification"] = styling

    aps: dict[str, Any] = {}
    if request.ios.sound:
        aps["sound"] = "default"
    if request.ios.badge is not None:
        aps["badge"] = request.ios.badge

    payload: dict[str, Any] = {
        "token": token,
        "notification": {"title": request.title, "body": request.body},
        "android": android,
        "apns": {
            "headers": {"apns-priority": APNS_IMMEDIATE_PRIORITY},
            "payload": {"aps": aps},
        },
    }
    if request.data is not None:
        payload["data"] = dict(request.data)
    return payload


class NotificationDispatcher:
    """Accepts notification requests and submits them to the push provider.

    At most one delivery attempt is made per token per call; there are no
    retries. Tokens the provider reports as unregistered or invalid are
    removed from the registry when ``remove_stale_tokens`` is set.
    """

    def __init__(
        self,
        provider: PushProvider | None,
        registry: TokenRegistry,
        remove_stale_tokens: bool = True,
    ):
        self.provider = provider
        self.registry = registry
        self.remove_stale_tokens = remove_stale_tokens

    async def dispatch(self, request: NotificationRequest) -> DispatchReport:
        """Deliver a request to its destination. Never raises."""
        if request.to is not None:
            return await self.send_to_token(request.to, request)
        if request.user_id is not None:
            return await self.send_to_identity(request.user_id, request)
        return DispatchReport.rejected(NoDestinationError("Missing FCM token"))

    async def send_to_token(self, token: str, request: NotificationRequest) -> DispatchReport:
        token = (token or "").strip()
        if not token:
            logger.info("Dispatch rejected: empty destination token")
            return DispatchReport.rejected(NoDestinationError("Missing FCM token"))

        outcome = await self._deliver(token, request)
        report = DispatchReport(outcomes=[outcome]).finalize()
        await self._prune_stale_tokens(report)
        return report

    async def send_to_identity(self, identity: str, request: NotificationRequest) -> DispatchReport:
        """Fan out to every token registered for an identity."""
        identity = (identity or "").strip()
        if not identity:
            return DispatchReport.rejected(NoDestinationError("Missing user id"))

        try:
            tokens = await self.registry.resolve(identity)
        except StorageError as e:
            logger.error("Cannot resolve tokens for user %s: %s", identity, e)
            return DispatchReport(error=e.message, status_code=500, identity=identity)

        if not tokens:
            logger.info("Dispatch rejected: no registered tokens for user %s", identity)
            return DispatchReport.rejected(
                NoDestinationError(f"No push tokens registered for user {identity}"),
                identity=identity,
            )

        report = await self.dispatch_many(sorted(tokens), request, identity=identity)
        logger.info(
            "Dispatched to user %s: %d/%d tokens accepted",
            identity, report.success_count, len(report.outcomes),
        )
        return report

    async def dispatch_many(
        self,
        tokens: list[str],
        request: NotificationRequest,
        identity: str | None = None,
    ) -> DispatchReport:
        """Deliver to each token independently and aggregate the outcomes.

        One stale token never fails the whole request; the report carries
        the success count and the list of failures.
        """
        if not tokens:
            return DispatchReport.rejected(NoDestinationError("No push tokens found"), identity=identity)

        outcomes = await asyncio.gather(*(self._deliver(t, request) for t in tokens))
        report = DispatchReport(outcomes=list(outcomes), identity=identity).finalize()
        await self._prune_stale_tokens(report)
        return report

    async def _deliver(self, token: str, request: NotificationRequest) -> DeliveryOutcome:
        if self.provider is None:
            logger.warning("Push provider not configured, skipping delivery")
            return DeliveryOutcome(
                token=token,
                success=False,
                error="Push provider not configured",
                reason=ProviderErrorReason.NOT_CONFIGURED,
            )

        payload = build_payload(token, request)
        try:
            message_id = await self.provider.send(payload)
        except ProviderError as e:
            logger.error(
                "Push delivery failed (%s): %s; detail: %r",
                e.reason.value, e.message, e.detail,
            )
            return DeliveryOutcome(token=token, success=False, error=e.message, reason=e.reason)
        except Exception as e:
            logger.exception("Push delivery error")
            return DeliveryOutcome(
                token=token,
                success=False,
                error=str(e) or "FCM error",
                reason=ProviderErrorReason.INTERNAL,
            )

        logger.debug("Push accepted by %s: %s", self.provider.name, message_id)
        return DeliveryOutcome(token=token, success=True, message_id=message_id)

    async def _prune_stale_tokens(self, report: DispatchReport) -> None:
        """Drop tokens the provider reported as dead so they stop being targeted."""
        if not self.remove_stale_tokens:
            return

        for outcome in report.failures:
            if outcome.reason not in STALE_TOKEN_REASONS:
                continue
            try:
                if report.identity is not None:
                    await self.registry.remove(report.identity, outcome.token)
                else:
                    await self.registry.discard(outcome.token)
            except StorageError as e:
                logger.warning("Could not remove stale push token: %s", e)
