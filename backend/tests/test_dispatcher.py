from __future__ import annotations

from unittest.mock import AsyncMock

import httpx
import pytest
from sqlalchemy import select

from shiftpush.errors import NotificationValidationError
from shiftpush.models import PushNotificationAttempt
from shiftpush.services.dispatcher import DispatchRequest, DispatchService
from shiftpush.services.providers import ADDRESS_USERS, SendResult

TOKEN = "ExponentPushToken[abc]"


def _request(*user_ids: str, **kwargs) -> DispatchRequest:
    return DispatchRequest(recipient_user_ids=list(user_ids), title="Shift Reminder", body="Starts in 1 hour", **kwargs)


async def _attempts(session):
    result = await session.execute(select(PushNotificationAttempt))
    return list(result.scalars().all())


@pytest.mark.anyio
async def test_dispatch_to_registered_device(session, registry, stub_provider):
    await registry.register_token(session, "U1", TOKEN, "ios")
    service = DispatchService(registry, stub_provider)

    summary = await service.dispatch(session, _request("U1"))

    assert (summary.sent, summary.failed) == (1, 0)
    attempts = await _attempts(session)
    assert len(attempts) == 1
    assert attempts[0].id == summary.attempt_id
    assert attempts[0].recipient_user_ids == ["U1"]
    assert attempts[0].outcome[0]["status"] == "ok"
    assert attempts[0].outcome[0]["provider_ticket_id"] == f"ticket-{TOKEN}"


@pytest.mark.anyio
async def test_device_not_registered_invalidates_token(session, registry, make_provider):
    device = await registry.register_token(session, "U1", TOKEN, "ios")
    provider = make_provider(lambda m: SendResult(token=m.to, ok=False, error_reason="DeviceNotRegistered", permanently_invalid=True))
    service = DispatchService(registry, provider)

    summary = await service.dispatch(session, _request("U1"))

    assert (summary.sent, summary.failed) == (0, 1)
    assert summary.invalidated == 1
    stored = await registry.get_token(session, device.id)
    assert stored.status == "invalid"
    assert await registry.list_active_tokens(session, "U1") == []


@pytest.mark.anyio
async def test_transport_failure_is_counted_not_raised(session, registry, make_provider):
    for name in ("a", "b", "c"):
        await registry.register_token(session, "U1", f"ExponentPushToken[{name}]", "ios")

    def _unreachable(message):
        raise httpx.ConnectError("vendor down")

    service = DispatchService(registry, make_provider(_unreachable))

    summary = await service.dispatch(session, _request("U1"))

    assert (summary.sent, summary.failed) == (0, 3)
    attempt = (await _attempts(session))[0]
    assert len(attempt.outcome) == 3
    assert all(o["status"] == "error" and o["error_reason"] == "transport" for o in attempt.outcome)
    assert len(await registry.list_active_tokens(session, "U1")) == 3


@pytest.mark.anyio
async def test_unconfigured_provider_fails_every_token_without_invalidating(session, registry, make_provider):
    await registry.register_token(session, "U1", "ExponentPushToken[a]", "ios")
    await registry.register_token(session, "U2", "ExponentPushToken[b]", "android")
    provider = make_provider(configured=False)
    service = DispatchService(registry, provider)

    summary = await service.dispatch(session, _request("U1", "U2"))

    assert (summary.sent, summary.failed) == (0, 2)
    assert provider.calls == []
    assert len(await registry.list_active_tokens(session, "U1")) == 1
    assert len(await registry.list_active_tokens(session, "U2")) == 1


@pytest.mark.anyio
async def test_unconfigured_provider_with_no_tokens(session, registry, make_provider):
    service = DispatchService(registry, make_provider(configured=False))

    summary = await service.dispatch(session, _request("U1"))

    assert (summary.sent, summary.failed) == (0, 0)


@pytest.mark.anyio
async def test_user_without_devices_still_records_attempt(session, registry, stub_provider):
    service = DispatchService(registry, stub_provider)

    summary = await service.dispatch(session, _request("nobody"))

    assert (summary.sent, summary.failed) == (0, 0)
    assert summary.uncovered_user_ids == ["nobody"]
    assert stub_provider.calls == []
    attempts = await _attempts(session)
    assert len(attempts) == 1
    assert attempts[0].outcome == []
    assert attempts[0].recipient_user_ids == ["nobody"]


@pytest.mark.anyio
async def test_mixed_results_are_processed_independently(session, registry, make_provider):
    tokens = ["ExponentPushToken[ok]", "ExponentPushToken[gone1]", "ExponentPushToken[slow]", "ExponentPushToken[gone2]"]
    for token in tokens:
        await registry.register_token(session, "U1", token, "ios")

    def _respond(message):
        if "gone" in message.to:
            return SendResult(token=message.to, ok=False, error_reason="DeviceNotRegistered", permanently_invalid=True)
        if "slow" in message.to:
            return SendResult(token=message.to, ok=False, error_reason="MessageRateExceeded")
        return SendResult(token=message.to, ok=True, provider_id="t")

    service = DispatchService(registry, make_provider(_respond))
    summary = await service.dispatch(session, _request("U1"))

    assert (summary.sent, summary.failed, summary.invalidated) == (1, 3, 2)
    active = {d.token for d in await registry.list_active_tokens(session, "U1")}
    assert active == {"ExponentPushToken[ok]", "ExponentPushToken[slow]"}


@pytest.mark.anyio
async def test_invalidation_error_does_not_stop_remaining_bookkeeping(session, registry, make_provider):
    await registry.register_token(session, "U1", "ExponentPushToken[a]", "ios")
    await registry.register_token(session, "U1", "ExponentPushToken[b]", "ios")
    provider = make_provider(lambda m: SendResult(token=m.to, ok=False, error_reason="DeviceNotRegistered", permanently_invalid=True))
    service = DispatchService(registry, provider)

    real_mark_invalid = registry.mark_invalid
    calls = []

    async def _flaky_mark_invalid(db, token_id, reason=None):
        calls.append(token_id)
        if len(calls) == 1:
            raise RuntimeError("database hiccup")
        return await real_mark_invalid(db, token_id, reason)

    registry.mark_invalid = _flaky_mark_invalid

    summary = await service.dispatch(session, _request("U1"))

    assert len(calls) == 2
    assert summary.failed == 2
    assert summary.invalidated == 1
    assert len(await _attempts(session)) == 1


@pytest.mark.anyio
async def test_successful_sends_update_last_used(session, registry, stub_provider):
    device = await registry.register_token(session, "U1", TOKEN, "ios")
    service = DispatchService(registry, stub_provider)

    await service.dispatch(session, _request("U1"))

    stored = await registry.get_token(session, device.id)
    assert stored.last_used_at is not None


@pytest.mark.anyio
async def test_fan_out_sends_one_message_per_token_across_users(session, registry, stub_provider):
    await registry.register_token(session, "U1", "ExponentPushToken[a]", "ios")
    await registry.register_token(session, "U1", "ExponentPushToken[b]", "android")
    await registry.register_token(session, "U2", "ExponentPushToken[c]", "ios")
    service = DispatchService(registry, stub_provider)

    summary = await service.dispatch(session, _request("U1", "U2", "U1", data={"shiftId": 42}))

    assert (summary.sent, summary.users_reached) == (3, 2)
    sent = [m for call in stub_provider.calls for m in call]
    assert sorted(m.to for m in sent) == ["ExponentPushToken[a]", "ExponentPushToken[b]", "ExponentPushToken[c]"]
    assert all(m.data == {"shiftId": "42"} for m in sent)
    attempt = (await _attempts(session))[0]
    assert attempt.recipient_user_ids == ["U1", "U2"]


@pytest.mark.anyio
async def test_user_addressed_provider_skips_registry(session, make_provider):
    registry = AsyncMock()
    provider = make_provider(addressing=ADDRESS_USERS)
    provider.is_valid_recipient = lambda address: True
    service = DispatchService(registry, provider)

    summary = await service.dispatch(session, _request("U1", "U2"))

    registry.list_active_tokens_for_users.assert_not_awaited()
    assert [m.to for m in provider.calls[0]] == ["U1", "U2"]
    assert summary.sent == 2
    attempt = (await _attempts(session))[0]
    assert [o["user_id"] for o in attempt.outcome] == ["U1", "U2"]
    assert all(o["token_id"] is None for o in attempt.outcome)


@pytest.mark.anyio
@pytest.mark.parametrize(
    "request_kwargs, reason",
    [
        ({"recipient_user_ids": ["U1"], "title": "", "body": "b"}, "missing_title"),
        ({"recipient_user_ids": ["U1"], "title": "t", "body": "  "}, "missing_body"),
        ({"recipient_user_ids": [], "title": "t", "body": "b"}, "missing_recipients"),
        ({"recipient_user_ids": ["U1"], "title": "t", "body": "b", "notification_type": "marketing"}, "invalid_type"),
    ],
)
async def test_malformed_requests_fail_before_provider_call(session, registry, stub_provider, request_kwargs, reason):
    service = DispatchService(registry, stub_provider)

    with pytest.raises(NotificationValidationError) as exc_info:
        await service.dispatch(session, DispatchRequest(**request_kwargs))

    assert exc_info.value.reason == reason
    assert stub_provider.calls == []
    assert await _attempts(session) == []


@pytest.mark.anyio
async def test_check_receipts_delegates_and_swallows_failures(registry, stub_provider):
    stub_provider.receipts = {"t1": "ok"}
    service = DispatchService(registry, stub_provider)

    assert await service.check_receipts(["t1", "t2"]) == {"t1": "ok"}
    assert await service.check_receipts([]) == {}

    stub_provider.check_receipts = AsyncMock(side_effect=RuntimeError("boom"))
    assert await service.check_receipts(["t1"]) == {}
