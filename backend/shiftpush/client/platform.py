"""Device-side notification primitives the app runs on top of.

``DevicePlatform`` is implemented by the mobile OS binding; the notification
client only talks to the device through it.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional


class PermissionStatus(str, Enum):
    """OS notification permission.

    ``undetermined`` moves to ``granted`` or ``denied`` after the prompt; a
    user can also revoke a grant from OS settings at any time.
    """
    UNDETERMINED = "undetermined"
    GRANTED = "granted"
    DENIED = "denied"


class Importance(int, Enum):
    DEFAULT = 3
    HIGH = 4
    MAX = 5


@dataclass(frozen=True)
class NotificationChannel:
    """Android notification channel."""
    id: str
    name: str
    importance: Importance = Importance.DEFAULT
    vibration_pattern: tuple = (0, 250, 250, 250)
    light_color: str = "#FF231F7C"
    sound: Optional[str] = "default"


DEFAULT_CHANNELS: List[NotificationChannel] = [
    NotificationChannel(id="default", name="Default", importance=Importance.MAX),
    NotificationChannel(id="shifts", name="Shifts", importance=Importance.HIGH, light_color="#4CAF50"),
    NotificationChannel(
        id="documents",
        name="Documents",
        importance=Importance.DEFAULT,
        vibration_pattern=(0, 250),
        light_color="#2196F3",
    ),
]


class DevicePlatform(ABC):
    """OS notification API as seen by the app."""

    #: ios, android or web
    os_name: str = "ios"

    @property
    def is_physical_device(self) -> bool:
        """False on simulators and emulators, which cannot receive remote push."""
        return True

    @abstractmethod
    async def get_permission_status(self) -> PermissionStatus:
        """Current OS permission, read fresh every time."""

    @abstractmethod
    async def request_permission(self) -> PermissionStatus:
        """Show the OS permission prompt and return the resulting status."""

    @abstractmethod
    async def get_push_token(self) -> Optional[str]:
        """Ask the push vendor for this installation's token."""

    async def set_notification_channel(self, channel: NotificationChannel):
        """Create or update an Android channel. No-op elsewhere."""

    @abstractmethod
    async def schedule_local(
        self,
        title: str,
        body: str,
        delay_seconds: float,
        data: Optional[Dict[str, str]] = None,
    ) -> str:
        """Schedule an on-device notification and return its id."""

    @abstractmethod
    async def cancel_local(self, notification_id: str):
        """Cancel one scheduled notification."""

    @abstractmethod
    async def cancel_all_local(self):
        """Cancel every scheduled notification."""

    async def get_badge_count(self) -> int:
        return 0

    async def set_badge_count(self, count: int):
        """Set the app icon badge."""
