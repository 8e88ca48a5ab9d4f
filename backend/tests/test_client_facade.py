from __future__ import annotations

import asyncio
import json
from typing import Dict, List, Optional

import httpx
import pytest

from shiftpush.client import (
    DevicePlatform,
    NotificationClient,
    PermissionStatus,
    PushApiClient,
    RegistrationStatus,
)
from shiftpush.client.helpers import notify_clock_out, notify_new_shift, notify_timesheet_approved


class FakePlatform(DevicePlatform):
    """In-memory device used in place of the OS binding."""

    def __init__(self, os_name="ios", physical=True, status=PermissionStatus.GRANTED, prompt_result=None, token="ExponentPushToken[device]"):
        self.os_name = os_name
        self._physical = physical
        self.status = status
        self.prompt_result = prompt_result or status
        self.token = token
        self.prompts = 0
        self.channels = []
        self.scheduled: Dict[str, tuple] = {}
        self.badge = 0

    @property
    def is_physical_device(self) -> bool:
        return self._physical

    async def get_permission_status(self):
        return self.status

    async def request_permission(self):
        self.prompts += 1
        self.status = self.prompt_result
        return self.status

    async def get_push_token(self):
        if isinstance(self.token, Exception):
            raise self.token
        return self.token

    async def set_notification_channel(self, channel):
        await asyncio.sleep(0)
        self.channels.append(channel.id)

    async def schedule_local(self, title, body, delay_seconds, data=None):
        notification_id = f"local-{len(self.scheduled) + 1}"
        self.scheduled[notification_id] = (title, body, delay_seconds, data)
        return notification_id

    async def cancel_local(self, notification_id):
        del self.scheduled[notification_id]

    async def cancel_all_local(self):
        self.scheduled.clear()

    async def get_badge_count(self):
        return self.badge

    async def set_badge_count(self, count):
        self.badge = count


class Backend:
    """Records requests and answers like the push endpoints."""

    def __init__(self, status_code: int = 200, body: Optional[dict] = None):
        self.status_code = status_code
        self.body = body if body is not None else {"success": True, "sent": 1, "failed": 0, "attemptId": "a1", "message": "Sent"}
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, json=self.body)

    def payload(self, index: int = -1) -> dict:
        return json.loads(self.requests[index].content)


def _client(platform: FakePlatform, backend: Backend) -> NotificationClient:
    api = PushApiClient("http://backend", access_token=lambda: "jwt", transport=httpx.MockTransport(backend))
    return NotificationClient(platform, api)


@pytest.mark.anyio
async def test_initialize_creates_android_channels_once_even_when_concurrent():
    platform = FakePlatform(os_name="android")
    client = _client(platform, Backend())

    await asyncio.gather(client.initialize(), client.initialize(), client.initialize())
    await client.initialize()

    assert client.initialized
    assert platform.channels == ["default", "shifts", "documents"]


@pytest.mark.anyio
async def test_initialize_on_ios_creates_no_channels():
    platform = FakePlatform(os_name="ios")
    client = _client(platform, Backend())

    await client.initialize()

    assert platform.channels == []


@pytest.mark.anyio
async def test_register_device_posts_token_with_auth_header():
    platform = FakePlatform(os_name="android")
    backend = Backend()
    client = _client(platform, backend)

    status = await client.register_device("U1")

    assert status == RegistrationStatus.REGISTERED
    assert platform.prompts == 0
    assert backend.requests[0].url.path == "/api/push-notifications/register"
    assert backend.requests[0].headers["authorization"] == "Bearer jwt"
    assert backend.payload() == {"userId": "U1", "token": "ExponentPushToken[device]", "platform": "android"}
    assert client.last_token == "ExponentPushToken[device]"


@pytest.mark.anyio
async def test_register_device_prompts_when_undetermined():
    platform = FakePlatform(status=PermissionStatus.UNDETERMINED, prompt_result=PermissionStatus.GRANTED)
    client = _client(platform, Backend())

    assert await client.register_device("U1") == RegistrationStatus.REGISTERED
    assert platform.prompts == 1


@pytest.mark.anyio
async def test_register_device_permission_denied():
    platform = FakePlatform(status=PermissionStatus.UNDETERMINED, prompt_result=PermissionStatus.DENIED)
    backend = Backend()
    client = _client(platform, backend)

    assert await client.register_device("U1") == RegistrationStatus.PERMISSION_DENIED
    assert backend.requests == []


@pytest.mark.anyio
async def test_simulator_has_no_token():
    platform = FakePlatform(physical=False)
    backend = Backend()
    client = _client(platform, backend)

    assert not client.is_supported()
    assert await client.acquire_token() is None
    assert await client.register_device("U1") == RegistrationStatus.UNAVAILABLE
    assert backend.requests == []


@pytest.mark.anyio
async def test_token_error_is_reported_as_unavailable():
    platform = FakePlatform(token=RuntimeError("vendor unreachable"))
    client = _client(platform, Backend())

    assert await client.acquire_token() is None
    assert await client.register_device("U1") == RegistrationStatus.UNAVAILABLE


@pytest.mark.anyio
async def test_backend_rejection_is_failed_not_raised():
    client = _client(FakePlatform(), Backend(status_code=400, body={"error": "invalid_token_format"}))

    assert await client.register_device("U1") == RegistrationStatus.FAILED


@pytest.mark.anyio
async def test_permission_status_is_read_fresh_each_time():
    platform = FakePlatform()
    client = _client(platform, Backend())

    assert await client.permission_status() == PermissionStatus.GRANTED
    platform.status = PermissionStatus.DENIED
    assert await client.permission_status() == PermissionStatus.DENIED


@pytest.mark.anyio
async def test_listener_subscription_can_be_removed():
    client = _client(FakePlatform(), Backend())
    seen = []

    subscription = client.on_notification_received(seen.append)
    assert await client.deliver_received({"title": "first"}) == 1

    subscription()
    subscription.remove()
    assert await client.deliver_received({"title": "second"}) == 0

    assert seen == [{"title": "first"}]


@pytest.mark.anyio
async def test_failing_listener_does_not_block_others():
    client = _client(FakePlatform(), Backend())
    seen = []

    def _broken(event):
        raise ValueError("bad handler")

    async def _async_handler(event):
        seen.append(event)

    client.on_notification_response(_broken)
    client.on_notification_response(_async_handler)

    assert await client.deliver_response("tap") == 1
    assert seen == ["tap"]


@pytest.mark.anyio
async def test_send_notification_reports_backend_success_flag():
    backend = Backend()
    client = _client(FakePlatform(), backend)

    assert await client.send_notification("U1", "Hi", "There", "general", {"k": "v"}) is True
    assert backend.payload() == {"userId": "U1", "title": "Hi", "message": "There", "type": "general", "data": {"k": "v"}}

    backend.body = {"success": False, "sent": 0, "failed": 0, "attemptId": "a2", "message": "No registered devices for the recipient(s)"}
    assert await client.send_notification("U1", "Hi", "There") is False


@pytest.mark.anyio
async def test_send_returns_false_when_backend_unreachable():
    def _down(request):
        raise httpx.ConnectError("refused", request=request)

    api = PushApiClient("http://backend", access_token=lambda: None, transport=httpx.MockTransport(_down))
    client = NotificationClient(FakePlatform(), api)

    assert await client.send_bulk_notification(["U1", "U2"], "Roster", "Published") is False


@pytest.mark.anyio
async def test_local_notifications_schedule_and_cancel():
    platform = FakePlatform()
    client = _client(platform, Backend())

    first = await client.schedule_local_notification("Break", "Take a break", 900)
    second = await client.schedule_local_notification("Hydrate", "Drink water", 1800, {"kind": "wellbeing"})
    assert set(platform.scheduled) == {first, second}

    await client.cancel_local_notification(first)
    assert set(platform.scheduled) == {second}

    await client.cancel_local_notification("unknown")
    await client.cancel_all_local_notifications()
    assert platform.scheduled == {}


@pytest.mark.anyio
async def test_badge_count_is_ios_only():
    ios = FakePlatform(os_name="ios")
    android = FakePlatform(os_name="android")
    ios_client = _client(ios, Backend())
    android_client = _client(android, Backend())

    await ios_client.set_badge_count(5)
    await android_client.set_badge_count(5)

    assert await ios_client.get_badge_count() == 5
    assert await android_client.get_badge_count() == 0
    assert android.badge == 0

    await ios_client.clear_badge_count()
    assert ios.badge == 0


@pytest.mark.anyio
async def test_shift_helper_posts_to_send_shift():
    backend = Backend()
    client = _client(FakePlatform(), backend)

    assert await notify_new_shift(client, "shift-1", "U1", "Morning care", "09:00") is True
    assert backend.requests[0].url.path == "/api/push-notifications/send-shift"
    assert backend.payload()["notificationType"] == "new"


@pytest.mark.anyio
async def test_content_helpers_send_templated_text():
    backend = Backend()
    client = _client(FakePlatform(), backend)

    assert await notify_timesheet_approved(client, "U1", "ts-1", "Morning care", 7.5) is True
    payload = backend.payload()
    assert payload["title"] == "Timesheet Approved"
    assert payload["type"] == "timesheet"
    assert payload["data"]["timesheetId"] == "ts-1"

    backend.status_code = 500
    assert await notify_clock_out(client, "P1", "shift-1", "Morning care", "Sam", 8) is False


class FailingOsPlatform(FakePlatform):
    """Device whose channel and badge APIs fail until told otherwise."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.broken = True

    async def set_notification_channel(self, channel):
        if self.broken and channel.id == "shifts":
            raise RuntimeError("channel API unavailable")
        await super().set_notification_channel(channel)

    async def get_badge_count(self):
        raise RuntimeError("badge API unavailable")

    async def set_badge_count(self, count):
        raise RuntimeError("badge API unavailable")


@pytest.mark.anyio
async def test_channel_failure_does_not_raise_and_is_retried():
    platform = FailingOsPlatform(os_name="android")
    client = _client(platform, Backend())

    await client.initialize()
    assert not client.initialized
    assert platform.channels == ["default"]

    platform.broken = False
    await client.initialize()
    assert client.initialized
    assert platform.channels == ["default", "shifts", "documents"]


@pytest.mark.anyio
async def test_badge_failures_do_not_raise():
    client = _client(FailingOsPlatform(os_name="ios"), Backend())

    assert await client.get_badge_count() == 0
    await client.set_badge_count(3)
    await client.clear_badge_count()
