"""Token registry - durable store of device push tokens."""
import logging
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..errors import InvalidTokenFormat, NotificationValidationError
from ..models.push_token import (
    PLATFORMS,
    TOKEN_ACTIVE,
    TOKEN_INVALID,
    PushNotificationToken,
)
from ..utils.db_utils import retry_on_lock

logger = logging.getLogger(__name__)


def token_prefix(token: str) -> str:
    """Shorten a token for log lines."""
    return f"{token[:16]}..." if token else "<empty>"


class TokenRegistry:
    """Registers, lists and invalidates device tokens.

    Rows are keyed by (user_id, token). Re-registering the same pair
    refreshes the existing row instead of adding a new one, and is the only
    way an invalid token becomes active again.
    """

    def __init__(self, token_validator: Optional[Callable[[str], bool]] = None):
        self._token_validator = token_validator

    async def find_token(
        self, session: AsyncSession, user_id: str, token: str
    ) -> Optional[PushNotificationToken]:
        """Look up the row for a (user_id, token) pair in any status."""
        result = await session.execute(
            select(PushNotificationToken).where(
                PushNotificationToken.user_id == user_id,
                PushNotificationToken.token == token,
            )
        )
        return result.scalar_one_or_none()

    @staticmethod
    def _reactivate(device: PushNotificationToken, platform: str):
        device.platform = platform
        device.status = TOKEN_ACTIVE
        device.last_seen_at = datetime.utcnow()
        device.invalidated_at = None
        device.invalid_reason = None

    def _validate(self, user_id: str, token: str, platform: str):
        if not user_id:
            raise NotificationValidationError("userId is required", reason="missing_user")
        if not token:
            raise InvalidTokenFormat("Push token is required")
        if platform not in PLATFORMS:
            raise NotificationValidationError(
                f"platform must be one of: {', '.join(PLATFORMS)}",
                reason="invalid_platform",
            )
        if self._token_validator is not None and not self._token_validator(token):
            raise InvalidTokenFormat("Invalid push token format")

    async def register_token(
        self,
        session: AsyncSession,
        user_id: str,
        token: str,
        platform: str,
    ) -> PushNotificationToken:
        """Insert a token or refresh the existing (user_id, token) row."""
        token = (token or "").strip()
        self._validate(user_id, token, platform)

        existing = await self.find_token(session, user_id, token)
        if existing:
            self._reactivate(existing, platform)
            await retry_on_lock(session.commit)
            logger.info(f"Device token updated: {token_prefix(token)}")
            return existing

        device = PushNotificationToken(
            user_id=user_id,
            token=token,
            platform=platform,
            status=TOKEN_ACTIVE,
        )
        session.add(device)

        try:
            await retry_on_lock(session.commit)
        except IntegrityError:
            # A concurrent registration inserted the same pair first
            await session.rollback()
            existing = await self.find_token(session, user_id, token)
            if existing is None:
                raise
            self._reactivate(existing, platform)
            await retry_on_lock(session.commit)
            logger.info(f"Device token updated after concurrent insert: {token_prefix(token)}")
            return existing

        await session.refresh(device)
        logger.info(f"New device registered: {token_prefix(token)}")
        return device

    async def get_token(self, session: AsyncSession, token_id: str) -> Optional[PushNotificationToken]:
        result = await session.execute(
            select(PushNotificationToken).where(PushNotificationToken.id == token_id)
        )
        return result.scalar_one_or_none()

    async def list_tokens(self, session: AsyncSession, user_id: str) -> List[PushNotificationToken]:
        """All tokens for a user regardless of status."""
        result = await session.execute(
            select(PushNotificationToken)
            .where(PushNotificationToken.user_id == user_id)
            .order_by(PushNotificationToken.last_seen_at.desc())
        )
        return list(result.scalars().all())

    async def list_active_tokens(self, session: AsyncSession, user_id: str) -> List[PushNotificationToken]:
        """Active tokens for a user, most recently seen device first."""
        result = await session.execute(
            select(PushNotificationToken)
            .where(
                PushNotificationToken.user_id == user_id,
                PushNotificationToken.status == TOKEN_ACTIVE,
            )
            .order_by(PushNotificationToken.last_seen_at.desc())
        )
        return list(result.scalars().all())

    async def list_active_tokens_for_users(
        self, session: AsyncSession, user_ids: Iterable[str]
    ) -> Dict[str, List[PushNotificationToken]]:
        """Active tokens grouped by user.

        Every requested user is a key in the result, users without devices
        map to an empty list.
        """
        tokens_by_user: Dict[str, List[PushNotificationToken]] = {
            user_id: [] for user_id in user_ids
        }
        if not tokens_by_user:
            return tokens_by_user

        result = await session.execute(
            select(PushNotificationToken)
            .where(
                PushNotificationToken.user_id.in_(list(tokens_by_user)),
                PushNotificationToken.status == TOKEN_ACTIVE,
            )
            .order_by(PushNotificationToken.last_seen_at.desc())
        )
        for device in result.scalars().all():
            tokens_by_user[device.user_id].append(device)
        return tokens_by_user

    async def mark_invalid(
        self, session: AsyncSession, token_id: str, reason: Optional[str] = None
    ) -> bool:
        """Flag an active token as invalid.

        Returns False without raising when the token is already invalid or
        has been deleted.
        """
        result = await session.execute(
            update(PushNotificationToken)
            .where(
                PushNotificationToken.id == token_id,
                PushNotificationToken.status == TOKEN_ACTIVE,
            )
            .values(
                status=TOKEN_INVALID,
                invalidated_at=datetime.utcnow(),
                invalid_reason=reason,
            )
        )
        await retry_on_lock(session.commit)

        changed = result.rowcount > 0
        if changed:
            logger.info(f"Device token {token_id} marked invalid ({reason or 'no reason'})")
        return changed

    async def mark_used(self, session: AsyncSession, token_ids: Iterable[str]):
        """Record a successful send on each token."""
        token_ids = list(token_ids)
        if not token_ids:
            return
        await session.execute(
            update(PushNotificationToken)
            .where(PushNotificationToken.id.in_(token_ids))
            .values(last_used_at=datetime.utcnow())
        )
        await retry_on_lock(session.commit)

    async def remove_token(self, session: AsyncSession, token_id: str) -> bool:
        """Hard delete a token. Returns False if it did not exist."""
        result = await session.execute(
            delete(PushNotificationToken).where(PushNotificationToken.id == token_id)
        )
        await retry_on_lock(session.commit)

        removed = result.rowcount > 0
        if removed:
            logger.info(f"Device token {token_id} removed")
        return removed

    async def remove_tokens_for_user(self, session: AsyncSession, user_id: str) -> int:
        """Hard delete every token a user has registered."""
        result = await session.execute(
            delete(PushNotificationToken).where(PushNotificationToken.user_id == user_id)
        )
        await retry_on_lock(session.commit)
        logger.info(f"Removed {result.rowcount} device token(s) for user {user_id}")
        return result.rowcount
