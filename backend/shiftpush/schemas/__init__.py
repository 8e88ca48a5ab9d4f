"""Pydantic schemas for API request/response models."""
from .push import (
    DeviceRegisterRequest,
    DeviceTokenResponse,
    SendNotificationRequest,
    BulkSendNotificationRequest,
    ShiftNotificationRequest,
    DocumentExpiryRequest,
    SendNotificationResponse,
    ReceiptsRequest,
    ReceiptsResponse,
    UnregisterResponse,
)

__all__ = [
    "DeviceRegisterRequest",
    "DeviceTokenResponse",
    "SendNotificationRequest",
    "BulkSendNotificationRequest",
    "ShiftNotificationRequest",
    "DocumentExpiryRequest",
    "SendNotificationResponse",
    "ReceiptsRequest",
    "ReceiptsResponse",
    "UnregisterResponse",
]
