"""Push vendor adapters."""
from .base import (
    ADDRESS_TOKENS,
    ADDRESS_USERS,
    ERROR_INVALID_FORMAT,
    ERROR_NOT_CONFIGURED,
    ERROR_TRANSPORT,
    PushMessage,
    PushProvider,
    SendResult,
)
from .expo import ExpoPushProvider, is_expo_push_token
from .onesignal import OneSignalPushProvider
from .factory import build_provider, get_push_provider, reset_push_provider, set_push_provider

__all__ = [
    "ADDRESS_TOKENS",
    "ADDRESS_USERS",
    "ERROR_INVALID_FORMAT",
    "ERROR_NOT_CONFIGURED",
    "ERROR_TRANSPORT",
    "PushMessage",
    "PushProvider",
    "SendResult",
    "ExpoPushProvider",
    "OneSignalPushProvider",
    "is_expo_push_token",
    "build_provider",
    "get_push_provider",
    "reset_push_provider",
    "set_push_provider",
]
