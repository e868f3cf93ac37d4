"""
Foreground message handling.

While the app has focus the push provider hands messages to the app instead
of showing them, so the app shows them itself.
"""

import logging
from collections.abc import Callable
from typing import Any, Protocol

logger = logging.getLogger(__name__)

MessageHandler = Callable[[dict[str, Any]], None]

DEFAULT_TITLE = "New message"
DEFAULT_ICON = "/icon-192x192.png"


class MessageChannel(Protocol):
    """The provider's client-side foreground message channel."""

    def on_message(self, handler: MessageHandler) -> Callable[[], None]:
        """Register a handler; returns a function that removes it."""
        ...


class NotificationSurface(Protocol):
    """Platform notification UI (e.g. the browser Notification API)."""

    def show(self, title: str, *, body: str | None = None, icon: str | None = None) -> None:
        ...


class ForegroundReceiver:
    """Shows a local notification for each message received in the foreground."""

    def __init__(
        self,
        channel: MessageChannel,
        surface: NotificationSurface,
        default_title: str = DEFAULT_TITLE,
        icon: str = DEFAULT_ICON,
    ):
        self.channel = channel
        self.surface = surface
        self.default_title = default_title
        self.icon = icon
        self._detach: Callable[[], None] | None = None

    @property
    def attached(self) -> bool:
        return self._detach is not None

    def attach(self) -> None:
        """Register the handler. Repeated mounts keep a single registration."""
        if self.attached:
            logger.debug("Foreground receiver already attached")
            return
        self._detach = self.channel.on_message(self.handle_message)

    def detach(self) -> None:
        if self._detach is not None:
            self._detach()
            self._detach = None

    def handle_message(self, message: dict[str, Any]) -> None:
        notification = message.get("notification") or {}
        self.surface.show(
            notification.get("title") or self.default_title,
            body=notification.get("body"),
            icon=self.icon,
        )
