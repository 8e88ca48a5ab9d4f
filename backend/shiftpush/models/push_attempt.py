"""PushNotificationAttempt model - append-only log of dispatch calls."""
import uuid
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, JSON

from ..database import Base

NOTIFICATION_TYPES = ("shift", "document", "timesheet", "reminder", "general")


def _new_id() -> str:
    return str(uuid.uuid4())


class PushNotificationAttempt(Base):
    """Record of one dispatch call and what happened to each token.

    Rows are written once and never updated.
    """

    __tablename__ = "push_notification_attempts"

    id = Column(String, primary_key=True, default=_new_id)
    created_at = Column(DateTime, default=datetime.utcnow)
    recipient_user_ids = Column(JSON, nullable=False, default=list)
    title = Column(String, nullable=False)
    body = Column(String, nullable=False)
    notification_type = Column(String, nullable=False, default="general")
    data_payload = Column(JSON, nullable=False, default=dict)
    provider = Column(String, nullable=False)  # expo, onesignal
    # [{token_id, token, user_id, status: ok|error, provider_ticket_id, error_reason}]
    outcome = Column(JSON, nullable=False, default=list)
    sent_count = Column(Integer, default=0)
    failed_count = Column(Integer, default=0)
