"""Client-side notification support used by the mobile app."""
from .api import PushApiClient, PushApiError
from .facade import NotificationClient, RegistrationStatus
from .listeners import ListenerRegistry, Subscription
from .platform import DEFAULT_CHANNELS, DevicePlatform, NotificationChannel, PermissionStatus

__all__ = [
    "PushApiClient",
    "PushApiError",
    "NotificationClient",
    "RegistrationStatus",
    "ListenerRegistry",
    "Subscription",
    "DEFAULT_CHANNELS",
    "DevicePlatform",
    "NotificationChannel",
    "PermissionStatus",
]
