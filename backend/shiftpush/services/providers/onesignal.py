"""OneSignal adapter (addressed by external user id)."""
import json
import logging
import re
from typing import Dict, Hashable, List, Optional

import httpx

from .base import (
    ADDRESS_USERS,
    PushMessage,
    PushProvider,
    SendResult,
    failed_results,
)

logger = logging.getLogger(__name__)

ONESIGNAL_API_URL = "https://onesignal.com/api/v1"

# OneSignal caps include_external_user_ids at 2000 per notification
SEND_CHUNK_SIZE = 2000

_PLAYER_ID_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE
)

_INVALID_RECIPIENT_KEYS = ("invalid_external_user_ids", "invalid_player_ids")


class OneSignalPushProvider(PushProvider):
    """Sends through the OneSignal REST API.

    Recipients are external user ids; OneSignal resolves them to the
    devices it knows about, so the token registry is not consulted.
    """

    name = "onesignal"
    addressing = ADDRESS_USERS
    max_batch_size = SEND_CHUNK_SIZE

    def __init__(
        self,
        app_id: Optional[str] = None,
        api_key: Optional[str] = None,
        api_url: str = ONESIGNAL_API_URL,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(timeout=timeout, transport=transport)
        self._app_id = app_id
        self._api_key = api_key
        self._api_url = api_url.rstrip("/")
        if not self.configured:
            logger.warning("OneSignal credentials not configured. Push notifications will not be sent.")
        else:
            logger.info("OneSignal push notification client initialized")

    @property
    def configured(self) -> bool:
        return bool(self._app_id and self._api_key)

    def is_valid_token(self, token: str) -> bool:
        """Registered tokens are OneSignal player ids."""
        return bool(token) and bool(_PLAYER_ID_RE.match(token))

    def is_valid_recipient(self, address: str) -> bool:
        return bool(address and address.strip())

    def batch_key(self, message: PushMessage) -> Hashable:
        return (
            message.title,
            message.body,
            json.dumps(message.data or {}, sort_keys=True),
            message.priority,
        )

    def _build_payload(self, chunk: List[PushMessage]) -> dict:
        first = chunk[0]
        payload = {
            "app_id": self._app_id,
            "headings": {"en": first.title},
            "contents": {"en": first.body},
            "include_external_user_ids": [m.to for m in chunk],
        }
        if first.data:
            payload["data"] = first.data
        if first.priority == "high":
            payload["priority"] = 10
        return payload

    async def _send_chunk(self, chunk: List[PushMessage]) -> List[SendResult]:
        client = self._get_client()
        response = await client.post(
            f"{self._api_url}/notifications",
            json=self._build_payload(chunk),
            headers={
                "Authorization": f"Basic {self._api_key}",
                "Content-Type": "application/json; charset=utf-8",
            },
        )

        if response.status_code >= 500:
            response.raise_for_status()

        body = response.json()
        errors = body.get("errors")

        # A list of messages means nothing was delivered
        if response.status_code >= 400 or isinstance(errors, list):
            reason = errors[0] if isinstance(errors, list) and errors else f"http_{response.status_code}"
            logger.warning(f"OneSignal rejected {len(chunk)} recipient(s): {reason}")
            return failed_results(chunk, str(reason))

        invalid = set()
        if isinstance(errors, dict):
            for key in _INVALID_RECIPIENT_KEYS:
                invalid.update(errors.get(key) or [])

        notification_id = body.get("id") or None
        results = []
        for message in chunk:
            if message.to in invalid:
                results.append(SendResult(
                    token=message.to,
                    ok=False,
                    error_reason="not_subscribed",
                    permanently_invalid=True,
                ))
            else:
                results.append(SendResult(token=message.to, ok=True, provider_id=notification_id))
        return results
