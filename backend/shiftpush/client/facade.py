"""On-device half of push notifications.

Push problems never interrupt the app: every public coroutine here logs
failures and reports them as a status or ``False``/``None`` instead of
raising.
"""
import asyncio
import logging
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Set

from .api import PushApiClient, PushApiError
from .listeners import ListenerRegistry, Subscription
from .platform import DEFAULT_CHANNELS, DevicePlatform, NotificationChannel, PermissionStatus

logger = logging.getLogger(__name__)


class RegistrationStatus(str, Enum):
    """Coarse outcome of registering this device with the backend."""
    REGISTERED = "registered"
    PERMISSION_DENIED = "permission_denied"
    UNAVAILABLE = "unavailable"  # simulator, or no token issued
    FAILED = "failed"


class NotificationClient:
    """Permission handling, token acquisition, listeners and backend calls."""

    def __init__(
        self,
        platform: DevicePlatform,
        api: PushApiClient,
        channels: Optional[List[NotificationChannel]] = None,
    ):
        self._platform = platform
        self._api = api
        self._channels = channels if channels is not None else DEFAULT_CHANNELS
        self._created_channels: Set[str] = set()
        self._initialized = False
        self._init_lock = asyncio.Lock()
        self._received = ListenerRegistry("notification received")
        self._responses = ListenerRegistry("notification response")
        self.last_token: Optional[str] = None

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def initialize(self):
        """Create notification channels once per process."""
        async with self._init_lock:
            if self._initialized:
                return

            if self._platform.os_name == "android":
                try:
                    for channel in self._channels:
                        if channel.id in self._created_channels:
                            continue
                        await self._platform.set_notification_channel(channel)
                        self._created_channels.add(channel.id)
                except Exception:
                    # Left uninitialized so the next call retries the missing channels
                    logger.exception("Error creating notification channels")
                    return

            self._initialized = True
            logger.info("Push notifications initialized")

    def is_supported(self) -> bool:
        """Remote push needs a physical device."""
        return self._platform.is_physical_device

    async def permission_status(self) -> PermissionStatus:
        """Current OS permission.

        Never cached: the user can revoke permission from OS settings
        while the app is in the background.
        """
        try:
            return await self._platform.get_permission_status()
        except Exception:
            logger.exception("Could not read notification permission")
            return PermissionStatus.UNDETERMINED

    async def request_permission(self) -> bool:
        """Prompt for permission unless it is already granted."""
        if not self.is_supported():
            logger.info("Push notifications not supported on this device")
            return False

        try:
            status = await self._platform.get_permission_status()
            if status != PermissionStatus.GRANTED:
                status = await self._platform.request_permission()
        except Exception:
            logger.exception("Notification permission request failed")
            return False

        if status != PermissionStatus.GRANTED:
            logger.info("Notification permission denied")
            return False
        return True

    async def acquire_token(self) -> Optional[str]:
        """Get this device's push token, or None when push is unavailable here."""
        if not self.is_supported():
            logger.info("Not a physical device, cannot get push token")
            return None

        if await self.permission_status() != PermissionStatus.GRANTED:
            return None

        try:
            token = await self._platform.get_push_token()
        except Exception:
            logger.exception("Error getting push token")
            return None

        self.last_token = token or None
        return self.last_token

    async def register_device(self, user_id: str) -> RegistrationStatus:
        """Send this device's token to the backend."""
        try:
            if not await self.request_permission():
                if not self.is_supported():
                    return RegistrationStatus.UNAVAILABLE
                return RegistrationStatus.PERMISSION_DENIED

            token = await self.acquire_token()
            if not token:
                return RegistrationStatus.UNAVAILABLE

            await self._api.register(user_id, token, self._platform.os_name)
        except PushApiError as e:
            logger.error(f"Failed to register device: {e}")
            return RegistrationStatus.FAILED
        except Exception:
            logger.exception("Error registering device")
            return RegistrationStatus.FAILED

        logger.info("Device registered successfully")
        return RegistrationStatus.REGISTERED

    def on_notification_received(self, handler: Callable[[Any], Any]) -> Subscription:
        """Subscribe to notifications arriving while the app is in the foreground."""
        return self._received.subscribe(handler)

    def on_notification_response(self, handler: Callable[[Any], Any]) -> Subscription:
        """Subscribe to the user tapping a notification."""
        return self._responses.subscribe(handler)

    async def deliver_received(self, notification: Any) -> int:
        """Called by the OS binding when a notification arrives."""
        return await self._received.emit(notification)

    async def deliver_response(self, response: Any) -> int:
        """Called by the OS binding when a notification is tapped."""
        return await self._responses.emit(response)

    async def _call_backend(self, description: str, call) -> bool:
        try:
            response = await call
        except PushApiError as e:
            logger.error(f"Failed to send {description}: {e}")
            return False
        except Exception:
            logger.exception(f"Error sending {description}")
            return False

        if not response.get("success"):
            logger.warning(f"{description} not delivered: {response.get('message')}")
            return False
        return True

    async def send_notification(
        self,
        user_id: str,
        title: str,
        message: str,
        notification_type: str = "general",
        data: Optional[Dict[str, Any]] = None,
    ) -> bool:
        return await self._call_backend(
            "notification",
            self._api.send(user_id, title, message, notification_type, data),
        )

    async def send_bulk_notification(
        self,
        user_ids: List[str],
        title: str,
        message: str,
        notification_type: str = "general",
        data: Optional[Dict[str, Any]] = None,
    ) -> bool:
        return await self._call_backend(
            "bulk notification",
            self._api.send_bulk(user_ids, title, message, notification_type, data),
        )

    async def send_shift_notification(
        self,
        user_id: str,
        shift_id: str,
        notification_type: str,
        shift_title: str,
        start_time: str,
    ) -> bool:
        return await self._call_backend(
            "shift notification",
            self._api.send_shift(user_id, shift_id, notification_type, shift_title, start_time),
        )

    async def send_document_expiry_notification(
        self,
        user_id: str,
        document_name: str,
        days_remaining: int,
        document_type: Optional[str] = None,
    ) -> bool:
        return await self._call_backend(
            "document expiry notification",
            self._api.send_document_expiry(user_id, document_name, days_remaining, document_type),
        )

    async def schedule_local_notification(
        self,
        title: str,
        body: str,
        delay_seconds: float,
        data: Optional[Dict[str, str]] = None,
    ) -> Optional[str]:
        """Schedule an on-device reminder. Not recorded by the backend."""
        try:
            notification_id = await self._platform.schedule_local(title, body, delay_seconds, data)
        except Exception:
            logger.exception("Error scheduling local notification")
            return None
        logger.info(f"Local notification scheduled: {notification_id}")
        return notification_id

    async def cancel_local_notification(self, notification_id: str):
        try:
            await self._platform.cancel_local(notification_id)
        except Exception:
            logger.exception(f"Error cancelling local notification {notification_id}")

    async def cancel_all_local_notifications(self):
        try:
            await self._platform.cancel_all_local()
        except Exception:
            logger.exception("Error cancelling local notifications")

    async def get_badge_count(self) -> int:
        """Badge count on iOS, 0 elsewhere."""
        if self._platform.os_name != "ios":
            return 0
        try:
            return await self._platform.get_badge_count()
        except Exception:
            logger.exception("Error reading badge count")
            return 0

    async def set_badge_count(self, count: int):
        if self._platform.os_name != "ios":
            return
        try:
            await self._platform.set_badge_count(count)
        except Exception:
            logger.exception("Error setting badge count")

    async def clear_badge_count(self):
        await self.set_badge_count(0)
