"""HTTP client for the push notification endpoints."""
import logging
from typing import Any, Callable, Dict, List, Optional

import httpx

logger = logging.getLogger(__name__)

API_PREFIX = "/api/push-notifications"


class PushApiError(Exception):
    """The backend rejected a request or could not be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class PushApiClient:
    """Calls the backend on behalf of the signed-in user."""

    def __init__(
        self,
        base_url: str,
        access_token: Callable[[], Optional[str]],
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._access_token = access_token
        self._timeout = timeout
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        token = self._access_token()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self._base_url}{API_PREFIX}{path}"
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(url, json=payload, headers=self._headers())
        except httpx.HTTPError as e:
            raise PushApiError(f"Request to {path} failed: {e}") from e

        if response.status_code >= 400:
            raise PushApiError(
                f"{path} returned {response.status_code}: {response.text}",
                status_code=response.status_code,
            )
        return response.json()

    async def register(self, user_id: str, token: str, platform: str) -> Dict[str, Any]:
        return await self._post("/register", {"userId": user_id, "token": token, "platform": platform})

    async def send(
        self,
        user_id: str,
        title: str,
        message: str,
        notification_type: str = "general",
        data: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        return await self._post("/send", {
            "userId": user_id,
            "title": title,
            "message": message,
            "type": notification_type,
            "data": data,
        })

    async def send_bulk(
        self,
        user_ids: List[str],
        title: str,
        message: str,
        notification_type: str = "general",
        data: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        return await self._post("/send-bulk", {
            "userIds": user_ids,
            "title": title,
            "message": message,
            "type": notification_type,
            "data": data,
        })

    async def send_shift(
        self,
        user_id: str,
        shift_id: str,
        notification_type: str,
        shift_title: str,
        start_time: str,
    ) -> Dict[str, Any]:
        return await self._post("/send-shift", {
            "userId": user_id,
            "shiftId": shift_id,
            "notificationType": notification_type,
            "shiftTitle": shift_title,
            "startTime": start_time,
        })

    async def send_document_expiry(
        self,
        user_id: str,
        document_name: str,
        days_remaining: int,
        document_type: Optional[str] = None,
    ) -> Dict[str, Any]:
        return await self._post("/send-document-expiry", {
            "userId": user_id,
            "documentName": document_name,
            "daysRemaining": days_remaining,
            "documentType": document_type,
        })
