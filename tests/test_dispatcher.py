"""Tests for payload shaping and notification dispatch."""

import pytest

from notifier.errors import ProviderError, ProviderErrorReason
from notifier.schemas import NotificationRequest
from notifier.services.dispatcher import NotificationDispatcher, build_payload


def make_request(**overrides) -> NotificationRequest:
    fields = {"title": "Hi", "body": "There"}
    fields.update(overrides)
    return NotificationRequest.model_validate(fields)


class TestBuildPayload:

    def test_sound_flag_true_sets_default_sound(self):
        payload = build_payload("T1", make_request(ios={"sound": True}))
        assert payload["apns"]["payload"]["aps"]["sound"] == "default"

    def test_sound_flag_false_omits_sound(self):
        payload = build_payload("T1", make_request(ios={"sound": False}))
        assert "sound" not in payload["apns"]["payload"]["aps"]

    def test_badge_passed_through_when_given(self):
        payload = build_payload("T1", make_request(ios={"sound": False, "badge": 3}))
        assert payload["apns"]["payload"]["aps"] == {"badge": 3}

    def test_badge_zero_is_kept(self):
        payload = build_payload("T1", make_request(ios={"badge": 0}))
        assert payload["apns"]["payload"]["aps"]["badge"] == 0

    def test_badge_absent_when_not_given(self):
        payload = build_payload("T1", make_request())
        assert "badge" not in payload["apns"]["payload"]["aps"]

    def test_priorities(self):
        payload = build_payload("T1", make_request())
        assert payload["android"] == {"priority": "high"}
        assert payload["apns"]["headers"] == {"apns-priority": "10"}

    def test_data_passed_through_unchanged(self):
        data = {"courseId": "42", "kind": "quiz"}
        payload = build_payload("T1", make_request(data=data))
        assert payload["data"] == data

    def test_data_absent_when_not_given(self):
        assert "data" not in build_payload("T1", make_request())

    def test_android_styling(self):
        request = make_request(android={"notification": {"icon": "notification-icon", "color": "#2c3e50"}})
        payload = build_payload("T1", request)
        assert payload["android"]["notification"] == {"icon": "notification-icon", "color": "#2c3e50"}


class TestDispatchToToken:

    @pytest.mark.asyncio
    async def test_single_token_dispatch(self, dispatcher, provider):
        request = make_request(to="T1", ios={"sound": True})

        report = await dispatcher.dispatch(request)

        assert report.success is True
        assert report.to_response() == {"success": True}
        assert len(provider.calls) == 1
        call = provider.calls[0]
        assert call["token"] == "T1"
        assert call["notification"] == {"title": "Hi", "body": "There"}
        assert call["android"]["priority"] == "high"
        assert call["apns"]["headers"]["apns-priority"] == "10"
        assert call["apns"]["payload"]["aps"]["sound"] == "default"

    @pytest.mark.asyncio
    async def test_destination_is_trimmed(self, dispatcher, provider):
        await dispatcher.dispatch(make_request(to="  T1 \n"))
        assert provider.calls[0]["token"] == "T1"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("to", ["", "   ", "\t\n"])
    async def test_empty_destination_is_rejected_without_provider_call(self, dispatcher, provider, to):
        report = await dispatcher.dispatch(make_request(to=to))

        assert report.success is False
        assert report.status_code == 400
        assert report.error == "Missing FCM token"
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_missing_destination_is_rejected(self, dispatcher, provider):
        report = await dispatcher.dispatch(make_request())

        assert report.status_code == 400
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_provider_exception_becomes_failure(self, dispatcher, provider):
        provider.errors["T1"] = RuntimeError("connection reset")

        report = await dispatcher.dispatch(make_request(to="T1"))

        assert report.success is False
        assert report.status_code == 500
        assert report.to_response() == {"success": False, "error": "connection reset"}

    @pytest.mark.asyncio
    async def test_provider_error_keeps_short_message(self, dispatcher, provider):
        provider.errors["T1"] = ProviderError(
            "Requested entity was not found.",
            reason=ProviderErrorReason.UNREGISTERED,
            detail={"code": "NOT_FOUND", "http_status": 404},
        )

        report = await dispatcher.dispatch(make_request(to="T1"))

        assert report.status_code == 500
        assert report.error == "Requested entity was not found."
        assert report.failures[0].reason == ProviderErrorReason.UNREGISTERED

    @pytest.mark.asyncio
    async def test_no_provider_is_reported_not_raised(self, registry):
        dispatcher = NotificationDispatcher(None, registry)

        report = await dispatcher.dispatch(make_request(to="T1"))

        assert report.success is False
        assert report.status_code == 500
        assert report.failures[0].reason == ProviderErrorReason.NOT_CONFIGURED

    @pytest.mark.asyncio
    async def test_stale_raw_token_is_discarded(self, dispatcher, provider, registry):
        await registry.register("U1", "T1")
        provider.errors["T1"] = ProviderError("gone", reason=ProviderErrorReason.UNREGISTERED)

        await dispatcher.dispatch(make_request(to="T1"))

        assert await registry.resolve("U1") == set()


class TestDispatchToIdentity:

    @pytest.mark.asyncio
    async def test_fans_out_to_every_token(self, dispatcher, provider, registry):
        await registry.register("U1", "T1")
        await registry.register("U1", "T2")

        report = await dispatcher.dispatch(make_request(user_id="U1"))

        assert report.success is True
        assert sorted(c["token"] for c in provider.calls) == ["T1", "T2"]
        assert report.to_response() == {"success": True, "sent": 2, "failed": []}

    @pytest.mark.asyncio
    async def test_partial_failure_is_aggregated(self, dispatcher, provider, registry):
        await registry.register("U1", "T1")
        await registry.register("U1", "T2")
        provider.errors["T2"] = ProviderError("quota", reason=ProviderErrorReason.QUOTA_EXCEEDED)

        report = await dispatcher.dispatch(make_request(user_id="U1"))

        assert report.success is True
        assert report.success_count == 1
        assert report.to_response()["failed"] == [
            {"token": "T2", "error": "quota", "reason": "quota_exceeded"},
        ]
        # Quota errors say nothing about the token itself
        assert await registry.resolve("U1") == {"T1", "T2"}

    @pytest.mark.asyncio
    async def test_unregistered_tokens_are_removed(self, dispatcher, provider, registry):
        await registry.register("U1", "T1")
        await registry.register("U1", "dead")
        provider.errors["dead"] = ProviderError("gone", reason=ProviderErrorReason.UNREGISTERED)

        await dispatcher.dispatch(make_request(user_id="U1"))

        assert await registry.resolve("U1") == {"T1"}

    @pytest.mark.asyncio
    async def test_stale_tokens_kept_when_cleanup_disabled(self, provider, registry):
        dispatcher = NotificationDispatcher(provider, registry, remove_stale_tokens=False)
        await registry.register("U1", "dead")
        provider.errors["dead"] = ProviderError("bad token", reason=ProviderErrorReason.INVALID_TOKEN)

        report = await dispatcher.dispatch(make_request(user_id="U1"))

        assert report.success is False
        assert report.status_code == 500
        assert await registry.resolve("U1") == {"dead"}

    @pytest.mark.asyncio
    async def test_identity_without_tokens_is_rejected(self, dispatcher, provider):
        report = await dispatcher.dispatch(make_request(user_id="nobody"))

        assert report.status_code == 400
        assert report.success is False
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_explicit_token_wins_over_identity(self, dispatcher, provider, registry):
        await registry.register("U1", "T1")

        await dispatcher.dispatch(make_request(to="T9", user_id="U1"))

        assert [c["token"] for c in provider.calls] == ["T9"]
