"""Push notification API endpoints: device registration and sending."""
import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..deps import CurrentUser, get_current_user, require_service_provider
from ..schemas.push import (
    BulkSendNotificationRequest,
    DeviceRegisterRequest,
    DeviceTokenResponse,
    DocumentExpiryRequest,
    ReceiptsRequest,
    ReceiptsResponse,
    SendNotificationRequest,
    SendNotificationResponse,
    ShiftNotificationRequest,
    UnregisterResponse,
)
from ..services.dispatcher import (
    DispatchRequest,
    DispatchService,
    DispatchSummary,
    get_dispatch_service,
    get_token_registry,
)
from ..services.templates import NotificationContent, document_expiry_notification, shift_notification
from ..services.token_registry import TokenRegistry

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/push-notifications", tags=["push-notifications"])


def _summary_response(summary: DispatchSummary, label: str = "Sent") -> SendNotificationResponse:
    if summary.sent == 0 and summary.failed == 0:
        message = "No registered devices for the recipient(s)"
    else:
        message = f"{label} to {summary.sent} device(s)"
        if summary.users_reached:
            message += f" across {summary.users_reached} user(s)"
        if summary.invalidated:
            message += f", {summary.invalidated} invalid token(s) marked"

    return SendNotificationResponse(
        success=summary.sent > 0,
        sent=summary.sent,
        failed=summary.failed,
        attempt_id=summary.attempt_id,
        users_reached=summary.users_reached,
        message=message,
    )


async def _dispatch_content(
    db: AsyncSession,
    dispatcher: DispatchService,
    user_id: str,
    content: NotificationContent,
) -> DispatchSummary:
    return await dispatcher.dispatch(db, DispatchRequest(
        recipient_user_ids=[user_id],
        title=content.title,
        body=content.body,
        data=content.data,
        notification_type=content.notification_type,
        priority=content.priority,
        channel_id=content.channel_id,
    ))


@router.post("/register", response_model=DeviceTokenResponse)
async def register_device(
    request: DeviceRegisterRequest,
    response: Response,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    registry: TokenRegistry = Depends(get_token_registry),
):
    """Register a device token for push notifications.

    The app should call this on every launch so the token stays current.
    Registering an already known token refreshes it and reactivates it.
    """
    user_id = request.user_id or user.id
    if user_id != user.id and not user.is_service_provider:
        raise HTTPException(status_code=403, detail="Cannot register devices for another user")

    known = await registry.find_token(db, user_id, request.token.strip())
    device = await registry.register_token(db, user_id, request.token, request.platform)
    if known is None:
        response.status_code = 201
    return DeviceTokenResponse.model_validate(device)


@router.post("/send", response_model=SendNotificationResponse)
async def send_notification(
    request: SendNotificationRequest,
    user: CurrentUser = Depends(require_service_provider),
    db: AsyncSession = Depends(get_db),
    dispatcher: DispatchService = Depends(get_dispatch_service),
):
    """Send a push notification to every device of one user."""
    summary = await dispatcher.dispatch(db, DispatchRequest(
        recipient_user_ids=[request.user_id],
        title=request.title,
        body=request.message,
        data=request.data,
        notification_type=request.type,
        priority=request.priority,
    ))
    return _summary_response(summary)


@router.post("/send-bulk", response_model=SendNotificationResponse)
async def send_bulk_notification(
    request: BulkSendNotificationRequest,
    user: CurrentUser = Depends(require_service_provider),
    db: AsyncSession = Depends(get_db),
    dispatcher: DispatchService = Depends(get_dispatch_service),
):
    """Send the same push notification to several users."""
    summary = await dispatcher.dispatch(db, DispatchRequest(
        recipient_user_ids=request.user_ids,
        title=request.title,
        body=request.message,
        data=request.data,
        notification_type=request.type,
        priority=request.priority,
    ))
    return _summary_response(summary)


@router.post("/send-shift", response_model=SendNotificationResponse)
async def send_shift_notification(
    request: ShiftNotificationRequest,
    user: CurrentUser = Depends(require_service_provider),
    db: AsyncSession = Depends(get_db),
    dispatcher: DispatchService = Depends(get_dispatch_service),
):
    """Notify a support worker about a new, changed, or upcoming shift."""
    content = shift_notification(
        request.notification_type,
        request.shift_title,
        request.start_time,
        request.shift_id,
    )
    summary = await _dispatch_content(db, dispatcher, request.user_id, content)
    return _summary_response(summary, label="Shift notification sent")


@router.post("/send-document-expiry", response_model=SendNotificationResponse)
async def send_document_expiry(
    request: DocumentExpiryRequest,
    user: CurrentUser = Depends(require_service_provider),
    db: AsyncSession = Depends(get_db),
    dispatcher: DispatchService = Depends(get_dispatch_service),
):
    """Warn a support worker that a compliance document is expiring."""
    content = document_expiry_notification(
        request.document_name,
        request.days_remaining,
        request.document_type,
    )
    summary = await _dispatch_content(db, dispatcher, request.user_id, content)
    return _summary_response(summary, label="Document expiry alert sent")


@router.post("/receipts", response_model=ReceiptsResponse)
async def check_receipts(
    request: ReceiptsRequest,
    user: CurrentUser = Depends(require_service_provider),
    dispatcher: DispatchService = Depends(get_dispatch_service),
):
    """Look up delivery receipts for earlier sends (advisory only)."""
    receipts = await dispatcher.check_receipts(request.ticket_ids)
    return ReceiptsResponse(receipts=receipts)


@router.get("/tokens/{user_id}", response_model=List[DeviceTokenResponse])
async def list_tokens(
    user_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    registry: TokenRegistry = Depends(get_token_registry),
):
    """List a user's active device tokens."""
    if user_id != user.id and not user.is_service_provider:
        raise HTTPException(status_code=403, detail="Cannot view another user's devices")

    devices = await registry.list_active_tokens(db, user_id)
    return [DeviceTokenResponse.model_validate(d) for d in devices]


@router.delete("/tokens/{token_id}", status_code=204)
async def delete_token(
    token_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    registry: TokenRegistry = Depends(get_token_registry),
):
    """Forget a device. This is a hard delete."""
    device = await registry.get_token(db, token_id)
    if not device:
        raise HTTPException(status_code=404, detail="Token not found")
    if device.user_id != user.id and not user.is_service_provider:
        raise HTTPException(status_code=403, detail="Cannot delete another user's device")

    await registry.remove_token(db, token_id)
    return Response(status_code=204)


@router.delete("/unregister/{user_id}", response_model=UnregisterResponse)
async def unregister_user_devices(
    user_id: str,
    user: CurrentUser = Depends(require_service_provider),
    db: AsyncSession = Depends(get_db),
    registry: TokenRegistry = Depends(get_token_registry),
):
    """Remove every device token a user has registered."""
    removed = await registry.remove_tokens_for_user(db, user_id)
    return UnregisterResponse(
        success=True,
        removed=removed,
        message=f"Removed {removed} device token(s)",
    )
