"""Push notification schemas for API request/response models."""
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """JSON bodies use camelCase, Python code uses snake_case."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class DeviceRegisterRequest(CamelModel):
    """Request to register a device for push notifications."""
    user_id: Optional[str] = None  # defaults to the caller
    token: str
    platform: Literal["ios", "android", "web"]


class DeviceTokenResponse(CamelModel):
    """A registered device token."""
    id: str
    user_id: str
    token: str
    platform: str
    status: str
    created_at: Optional[datetime] = None
    last_seen_at: Optional[datetime] = None
    last_used_at: Optional[datetime] = None

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


class SendNotificationRequest(CamelModel):
    """Send to every device of one user."""
    user_id: str
    title: str
    message: str
    type: str = "general"
    data: Optional[Dict[str, Any]] = None
    priority: Literal["default", "high"] = "default"


class BulkSendNotificationRequest(CamelModel):
    """Send to every device of several users."""
    user_ids: List[str]
    title: str
    message: str
    type: str = "general"
    data: Optional[Dict[str, Any]] = None
    priority: Literal["default", "high"] = "default"


class ShiftNotificationRequest(CamelModel):
    """Shift assigned, updated, or starting soon."""
    user_id: str
    shift_id: str
    notification_type: Literal["new", "update", "reminder"]
    shift_title: str
    start_time: str


class DocumentExpiryRequest(CamelModel):
    """Compliance document nearing or past expiry."""
    user_id: str
    document_name: str = Field(..., min_length=1)
    days_remaining: int
    document_type: Optional[str] = None


class SendNotificationResponse(CamelModel):
    """Outcome of a send request."""
    success: bool
    sent: int
    failed: int
    attempt_id: str
    users_reached: int = 0
    message: str


class ReceiptsRequest(CamelModel):
    """Provider ticket ids returned by earlier sends."""
    ticket_ids: List[str]


class ReceiptsResponse(CamelModel):
    """Receipt status per ticket id."""
    receipts: Dict[str, str]


class UnregisterResponse(CamelModel):
    """Result of removing all of a user's devices."""
    success: bool
    removed: int
    message: str
