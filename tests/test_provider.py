"""Tests for the Firebase push provider adapter."""

import time

import pytest
from firebase_admin import exceptions, messaging

from notifier.errors import ProviderError, ProviderErrorReason
from notifier.services.provider import (
    FirebasePushProvider,
    build_firebase_message,
    classify_firebase_error,
)
from notifier.settings import settings


def sample_payload(**aps):
    return {
        "token": "T1",
        "notification": {"title": "Hi", "body": "There"},
        "android": {"priority": "high", "notification": {"icon": "notification-icon", "color": "#2c3e50"}},
        "apns": {"headers": {"apns-priority": "10"}, "payload": {"aps": aps}},
        "data": {"someData": "compose"},
    }


class TestBuildMessage:

    def test_message_fields(self):
        message = build_firebase_message(sample_payload(sound="default", badge=1))

        assert message.token == "T1"
        assert message.notification.title == "Hi"
        assert message.notification.body == "There"
        assert message.android.priority == "high"
        assert message.android.notification.icon == "notification-icon"
        assert message.apns.headers == {"apns-priority": "10"}
        assert message.apns.payload.aps.sound == "default"
        assert message.apns.payload.aps.badge == 1
        assert message.data == {"someData": "compose"}

    def test_absent_sound_is_not_sent(self):
        message = build_firebase_message(sample_payload())

        assert message.apns.payload.aps.sound is None
        assert message.apns.payload.aps.badge is None


class TestClassifyError:

    @pytest.mark.parametrize(
        "error, reason",
        [
            (messaging.UnregisteredError("Requested entity was not found."), ProviderErrorReason.UNREGISTERED),
            (messaging.SenderIdMismatchError("SenderId mismatch"), ProviderErrorReason.INVALID_TOKEN),
            (messaging.QuotaExceededError("Quota exceeded"), ProviderErrorReason.QUOTA_EXCEEDED),
            (
                exceptions.InvalidArgumentError("The registration token is not a valid FCM registration token"),
                ProviderErrorReason.INVALID_TOKEN,
            ),
            (exceptions.InvalidArgumentError("Invalid JSON payload"), ProviderErrorReason.INVALID_ARGUMENT),
            (exceptions.UnavailableError("Service unavailable"), ProviderErrorReason.UNAVAILABLE),
            (exceptions.DeadlineExceededError("Deadline exceeded"), ProviderErrorReason.UNAVAILABLE),
            (exceptions.InternalError("Boom"), ProviderErrorReason.INTERNAL),
        ],
    )
    def test_reason(self, error, reason):
        assert classify_firebase_error(error) == reason


class TestFirebaseSend:

    @pytest.mark.asyncio
    async def test_returns_message_id(self, monkeypatch):
        sent = []

        def fake_send(message, app=None):
            sent.append(message)
            return "projects/demo/messages/1"

        monkeypatch.setattr(messaging, "send", fake_send)
        provider = FirebasePushProvider(app=None)

        assert await provider.send(sample_payload()) == "projects/demo/messages/1"
        assert sent[0].token == "T1"

    @pytest.mark.asyncio
    async def test_slow_provider_times_out(self, monkeypatch):
        def slow_send(message, app=None):
            time.sleep(0.5)
            return "late"

        monkeypatch.setattr(messaging, "send", slow_send)
        provider = FirebasePushProvider(app=None, timeout_seconds=0.05)

        with pytest.raises(ProviderError) as exc_info:
            await provider.send(sample_payload())

        assert exc_info.value.reason == ProviderErrorReason.TIMEOUT

    @pytest.mark.asyncio
    async def test_firebase_error_is_classified(self, monkeypatch):
        def failing_send(message, app=None):
            raise messaging.UnregisteredError("Requested entity was not found.")

        monkeypatch.setattr(messaging, "send", failing_send)
        provider = FirebasePushProvider(app=None)

        with pytest.raises(ProviderError) as exc_info:
            await provider.send(sample_payload())

        error = exc_info.value
        assert error.reason == ProviderErrorReason.UNREGISTERED
        assert error.message == "Requested entity was not found."
        assert error.detail["code"] == exceptions.NOT_FOUND

    @pytest.mark.asyncio
    async def test_payload_validation_error(self, monkeypatch):
        def rejecting_send(message, app=None):
            raise ValueError("Message.data must not contain non-string values.")

        monkeypatch.setattr(messaging, "send", rejecting_send)
        provider = FirebasePushProvider(app=None)

        with pytest.raises(ProviderError) as exc_info:
            await provider.send(sample_payload())

        assert exc_info.value.reason == ProviderErrorReason.INVALID_ARGUMENT


def test_from_settings_requires_credentials():
    unconfigured = settings.model_copy(update={"firebase_project_id": None})

    with pytest.raises(ProviderError) as exc_info:
        FirebasePushProvider.from_settings(unconfigured)

    assert exc_info.value.reason == ProviderErrorReason.NOT_CONFIGURED
