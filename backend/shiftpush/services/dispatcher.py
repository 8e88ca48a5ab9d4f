"""Dispatch service - turns a logical notification into provider sends."""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from ..errors import NotificationValidationError
from ..models.push_attempt import NOTIFICATION_TYPES, PushNotificationAttempt
from ..utils.db_utils import retry_on_lock
from .providers import ADDRESS_USERS, PushMessage, PushProvider, SendResult, get_push_provider
from .token_registry import TokenRegistry, token_prefix

logger = logging.getLogger(__name__)


@dataclass
class DispatchRequest:
    """A notification addressed to users rather than devices."""
    recipient_user_ids: List[str]
    title: str
    body: str
    data: Optional[Dict[str, Any]] = None
    notification_type: str = "general"
    priority: str = "default"  # default, high
    sound: Optional[str] = "default"
    channel_id: Optional[str] = None


@dataclass
class DispatchSummary:
    """What a dispatch call achieved."""
    sent: int
    failed: int
    attempt_id: str
    users_reached: int = 0
    invalidated: int = 0
    uncovered_user_ids: List[str] = field(default_factory=list)


def normalize_data(data: Optional[Dict[str, Any]]) -> Dict[str, str]:
    """Payload values are forwarded to the device as strings."""
    if not data:
        return {}
    return {str(key): "" if value is None else str(value) for key, value in data.items()}


class DispatchService:
    """Fans a notification out to every active device of its recipients.

    Partial failures are counted, never raised: one bad token or one failed
    vendor chunk does not stop the rest of the fan-out.
    """

    def __init__(self, registry: TokenRegistry, provider: PushProvider):
        self._registry = registry
        self._provider = provider

    @property
    def provider(self) -> PushProvider:
        return self._provider

    @staticmethod
    def _validate(request: DispatchRequest):
        if not request.title or not request.title.strip():
            raise NotificationValidationError("title is required", reason="missing_title")
        if not request.body or not request.body.strip():
            raise NotificationValidationError("message body is required", reason="missing_body")
        if not request.recipient_user_ids or not any(request.recipient_user_ids):
            raise NotificationValidationError(
                "at least one recipient is required", reason="missing_recipients"
            )
        if request.notification_type not in NOTIFICATION_TYPES:
            raise NotificationValidationError(
                f"type must be one of: {', '.join(NOTIFICATION_TYPES)}",
                reason="invalid_type",
            )
        if request.priority not in ("default", "high"):
            raise NotificationValidationError(
                "priority must be 'default' or 'high'", reason="invalid_priority"
            )

    @staticmethod
    def _build_message(address: str, request: DispatchRequest, data: Dict[str, str]) -> PushMessage:
        return PushMessage(
            to=address,
            title=request.title,
            body=request.body,
            data=data,
            sound=request.sound,
            priority=request.priority,
            channel_id=request.channel_id,
        )

    async def _resolve_targets(
        self, session: AsyncSession, recipients: List[str]
    ) -> Tuple[List[Tuple[Optional[str], str, str]], List[str]]:
        """Return (token_id, address, user_id) targets and users with no devices."""
        if self._provider.addressing == ADDRESS_USERS:
            return [(None, user_id, user_id) for user_id in recipients], []

        tokens_by_user = await self._registry.list_active_tokens_for_users(session, recipients)
        uncovered = [user_id for user_id, devices in tokens_by_user.items() if not devices]
        targets = [
            (device.id, device.token, device.user_id)
            for devices in tokens_by_user.values()
            for device in devices
        ]
        return targets, uncovered

    async def dispatch(self, session: AsyncSession, request: DispatchRequest) -> DispatchSummary:
        """Send a notification to every active device of the recipients.

        Raises NotificationValidationError for malformed requests before any
        provider call; otherwise always returns a summary.
        """
        self._validate(request)

        recipients = list(dict.fromkeys(u for u in request.recipient_user_ids if u))
        data = normalize_data(request.data)

        targets, uncovered = await self._resolve_targets(session, recipients)
        if uncovered:
            logger.info(
                f"No registered devices for {len(uncovered)} of {len(recipients)} recipient(s)"
            )

        messages = [self._build_message(address, request, data) for _, address, _ in targets]
        results: Sequence[SendResult] = await self._provider.send(messages) if messages else []

        sent = 0
        failed = 0
        invalidated = 0
        reached = set()
        used_token_ids = []
        outcome = []

        for (token_id, address, user_id), result in zip(targets, results):
            outcome.append({
                "token_id": token_id,
                "token": address,
                "user_id": user_id,
                "status": "ok" if result.ok else "error",
                "provider_ticket_id": result.provider_id,
                "error_reason": result.error_reason,
            })

            if result.ok:
                sent += 1
                reached.add(user_id)
                if token_id:
                    used_token_ids.append(token_id)
                continue

            failed += 1
            if not result.permanently_invalid:
                continue
            if token_id is None:
                logger.info(f"{self._provider.name} reports recipient {user_id} as unreachable")
                continue

            try:
                if await self._registry.mark_invalid(session, token_id, result.error_reason):
                    invalidated += 1
            except Exception:
                logger.exception(f"Failed to mark token {token_prefix(address)} invalid")
                await session.rollback()

        if used_token_ids:
            try:
                await self._registry.mark_used(session, used_token_ids)
            except Exception:
                logger.exception("Failed to update last used time for delivered tokens")
                await session.rollback()

        attempt = PushNotificationAttempt(
            recipient_user_ids=recipients,
            title=request.title,
            body=request.body,
            notification_type=request.notification_type,
            data_payload=data,
            provider=self._provider.name,
            outcome=outcome,
            sent_count=sent,
            failed_count=failed,
        )
        session.add(attempt)
        await retry_on_lock(session.commit)

        logger.info(
            f"Push notifications sent: {sent} success, {failed} failed"
            f"{f', {invalidated} invalid token(s) marked' if invalidated else ''}"
        )
        return DispatchSummary(
            sent=sent,
            failed=failed,
            attempt_id=attempt.id,
            users_reached=len(reached),
            invalidated=invalidated,
            uncovered_user_ids=uncovered,
        )

    async def check_receipts(self, ticket_ids: Sequence[str]) -> Dict[str, str]:
        """Advisory receipt lookup; never fails and never touches attempts."""
        ticket_ids = [t for t in ticket_ids if t]
        if not ticket_ids:
            return {}
        try:
            return await self._provider.check_receipts(ticket_ids)
        except Exception as e:
            logger.warning(f"Receipt check failed: {e}")
            return {}


def get_dispatch_service() -> DispatchService:
    """Build a dispatch service bound to the process-wide provider."""
    provider = get_push_provider()
    return DispatchService(TokenRegistry(provider.is_valid_token), provider)


def get_token_registry() -> TokenRegistry:
    """Build a registry that validates tokens for the configured provider."""
    return TokenRegistry(get_push_provider().is_valid_token)
