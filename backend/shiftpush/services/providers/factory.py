"""Selects and holds the process-wide push provider."""
import logging
from typing import Optional

from ...config import Settings, settings
from .base import PushProvider
from .expo import ExpoPushProvider
from .onesignal import OneSignalPushProvider

logger = logging.getLogger(__name__)

_provider: Optional[PushProvider] = None


def build_provider(config: Settings = settings) -> PushProvider:
    """Build the adapter named by PUSH_PROVIDER."""
    name = (config.push_provider or "expo").strip().lower()

    if name == "onesignal":
        return OneSignalPushProvider(
            app_id=config.onesignal_app_id,
            api_key=config.onesignal_api_key,
            api_url=config.onesignal_api_url,
            timeout=config.push_request_timeout_seconds,
        )

    if name != "expo":
        logger.error(f"Unknown PUSH_PROVIDER '{config.push_provider}', using expo")

    return ExpoPushProvider(
        api_url=config.expo_api_url,
        access_token=config.expo_access_token,
        timeout=config.push_request_timeout_seconds,
    )


def get_push_provider() -> PushProvider:
    """Get the provider, building it on first use."""
    global _provider
    if _provider is None:
        _provider = build_provider()
    return _provider


def set_push_provider(provider: Optional[PushProvider]):
    """Replace the process-wide provider (startup wiring and tests)."""
    global _provider
    _provider = provider


async def reset_push_provider():
    """Close and forget the current provider."""
    global _provider
    if _provider is not None:
        await _provider.aclose()
    _provider = None
