"""Expo push service adapter (token-addressed)."""
import logging
import re
from typing import Dict, List, Optional, Sequence

import httpx

from .base import (
    ADDRESS_TOKENS,
    PushMessage,
    PushProvider,
    SendResult,
    chunked,
    failed_results,
)

logger = logging.getLogger(__name__)

EXPO_API_URL = "https://exp.host/--/api/v2/push"

# Expo accepts at most 100 messages per send and 300 ids per receipt lookup
SEND_CHUNK_SIZE = 100
RECEIPT_CHUNK_SIZE = 300

DEVICE_NOT_REGISTERED = "DeviceNotRegistered"

_LEGACY_TOKEN_RE = re.compile(
    r"^[a-z\d]{8}-[a-z\d]{4}-[a-z\d]{4}-[a-z\d]{4}-[a-z\d]{12}$", re.IGNORECASE
)


def is_expo_push_token(token: str) -> bool:
    """Check for ``ExponentPushToken[...]``, ``ExpoPushToken[...]`` or a legacy UUID token."""
    if not isinstance(token, str) or not token:
        return False
    if (token.startswith("ExponentPushToken[") or token.startswith("ExpoPushToken[")) and token.endswith("]"):
        return True
    return bool(_LEGACY_TOKEN_RE.match(token))


class ExpoPushProvider(PushProvider):
    """Sends through the Expo push API. No credentials are required."""

    name = "expo"
    addressing = ADDRESS_TOKENS
    max_batch_size = SEND_CHUNK_SIZE

    def __init__(
        self,
        api_url: str = EXPO_API_URL,
        access_token: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(timeout=timeout, transport=transport)
        self._api_url = api_url.rstrip("/")
        self._access_token = access_token
        logger.info("Expo push notification client initialized")

    def is_valid_token(self, token: str) -> bool:
        return is_expo_push_token(token)

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Accept": "application/json",
            "Accept-Encoding": "gzip, deflate",
            "Content-Type": "application/json",
        }
        if self._access_token:
            headers["Authorization"] = f"Bearer {self._access_token}"
        return headers

    @staticmethod
    def _to_expo_message(message: PushMessage) -> dict:
        payload = {
            "to": message.to,
            "title": message.title,
            "body": message.body,
            "data": message.data or {},
        }
        if message.sound:
            payload["sound"] = message.sound
        # Only high priority is sent explicitly, Expo picks the default otherwise
        if message.priority == "high":
            payload["priority"] = "high"
        if message.channel_id:
            payload["channelId"] = message.channel_id
        return payload

    @staticmethod
    def _interpret_ticket(token: str, ticket: dict) -> SendResult:
        if ticket.get("status") == "ok":
            return SendResult(token=token, ok=True, provider_id=ticket.get("id"))

        details = ticket.get("details") or {}
        error_code = details.get("error")
        message = ticket.get("message") or ""
        permanently_invalid = (
            error_code == DEVICE_NOT_REGISTERED or "not registered" in message.lower()
        )
        return SendResult(
            token=token,
            ok=False,
            error_reason=error_code or message or "unknown_error",
            permanently_invalid=permanently_invalid,
        )

    async def _send_chunk(self, chunk: List[PushMessage]) -> List[SendResult]:
        client = self._get_client()
        response = await client.post(
            f"{self._api_url}/send",
            json=[self._to_expo_message(m) for m in chunk],
            headers=self._headers(),
        )

        if response.status_code >= 500:
            response.raise_for_status()

        body = response.json()

        # Request-level errors reject the whole chunk
        if response.status_code >= 400 or (body.get("errors") and not body.get("data")):
            errors = body.get("errors") or []
            reason = errors[0].get("code") if errors and isinstance(errors[0], dict) else None
            reason = reason or f"http_{response.status_code}"
            logger.warning(f"Expo rejected {len(chunk)} message(s): {reason}")
            return failed_results(chunk, reason)

        tickets = body.get("data") or []
        return [
            self._interpret_ticket(message.to, ticket)
            for message, ticket in zip(chunk, tickets)
        ]

    async def check_receipts(self, ticket_ids: Sequence[str]) -> Dict[str, str]:
        """Fetch receipt status for tickets returned by earlier sends.

        Returns ``{ticket_id: "ok" | <error code>}``. Tickets Expo has no
        receipt for yet are left out. Any failure returns an empty mapping.
        """
        ticket_ids = [t for t in ticket_ids if t]
        if not ticket_ids:
            return {}

        receipts: Dict[str, str] = {}
        try:
            client = self._get_client()
            for chunk in chunked(ticket_ids, RECEIPT_CHUNK_SIZE):
                response = await client.post(
                    f"{self._api_url}/getReceipts",
                    json={"ids": chunk},
                    headers=self._headers(),
                )
                response.raise_for_status()
                data = response.json().get("data") or {}
                for ticket_id, receipt in data.items():
                    if receipt.get("status") == "ok":
                        receipts[ticket_id] = "ok"
                    else:
                        details = receipt.get("details") or {}
                        receipts[ticket_id] = details.get("error") or receipt.get("message") or "error"
        except Exception as e:
            logger.error(f"Error checking push notification receipts: {e}")
            return {}

        return receipts
