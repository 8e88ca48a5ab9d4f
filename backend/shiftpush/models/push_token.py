"""PushNotificationToken model - device tokens registered for push notifications."""
import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, UniqueConstraint

from ..database import Base

PLATFORMS = ("ios", "android", "web")

TOKEN_ACTIVE = "active"
TOKEN_INVALID = "invalid"


def _new_id() -> str:
    return str(uuid.uuid4())


class PushNotificationToken(Base):
    """A push token issued to one app installation of one user."""

    __tablename__ = "push_notification_tokens"
    __table_args__ = (
        UniqueConstraint("user_id", "token", name="uq_push_token_user_token"),
    )

    id = Column(String, primary_key=True, default=_new_id)
    user_id = Column(String, nullable=False, index=True)
    token = Column(String, nullable=False, index=True)
    platform = Column(String, nullable=False)  # ios, android, web
    status = Column(String, nullable=False, default=TOKEN_ACTIVE)  # active, invalid
    created_at = Column(DateTime, default=datetime.utcnow)
    last_seen_at = Column(DateTime, default=datetime.utcnow)
    last_used_at = Column(DateTime, nullable=True)  # last successful send
    invalidated_at = Column(DateTime, nullable=True)
    invalid_reason = Column(String, nullable=True)  # provider error, e.g. DeviceNotRegistered

    @property
    def is_active(self) -> bool:
        return self.status == TOKEN_ACTIVE
