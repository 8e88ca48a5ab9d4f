"""Notification content for application events."""
from dataclasses import dataclass, field
from typing import Dict, Optional

SHIFT_KINDS = ("new", "update", "reminder")

CHANNEL_DEFAULT = "default"
CHANNEL_SHIFTS = "shifts"
CHANNEL_DOCUMENTS = "documents"


@dataclass
class NotificationContent:
    """Title, body and routing hints for one notification."""
    title: str
    body: str
    notification_type: str = "general"
    priority: str = "default"
    data: Dict[str, str] = field(default_factory=dict)
    channel_id: Optional[str] = CHANNEL_DEFAULT


def shift_notification(kind: str, shift_title: str, start_time: str, shift_id: str) -> NotificationContent:
    """Content for a shift being assigned, changed, or about to start."""
    data = {"shiftId": shift_id, "notificationType": kind}

    if kind == "new":
        return NotificationContent(
            title="New Shift Assigned",
            body=f"You have been assigned to: {shift_title}",
            notification_type="shift",
            data=data,
            channel_id=CHANNEL_SHIFTS,
        )
    if kind == "update":
        return NotificationContent(
            title="Shift Updated",
            body=f'Your shift "{shift_title}" has been updated',
            notification_type="shift",
            priority="high",
            data=data,
            channel_id=CHANNEL_SHIFTS,
        )
    if kind == "reminder":
        return NotificationContent(
            title="Shift Reminder",
            body=f"Reminder: {shift_title} starting at {start_time}",
            notification_type="reminder",
            priority="high",
            data=data,
            channel_id=CHANNEL_SHIFTS,
        )
    raise ValueError(f"Unknown shift notification kind: {kind}")


def document_expiry_notification(
    document_name: str,
    days_remaining: int,
    document_type: Optional[str] = None,
) -> NotificationContent:
    """Content for a compliance document nearing or past expiry.

    Expired and within-a-week documents are sent at high priority.
    """
    if days_remaining <= 0:
        title = "Document Expired"
        body = f"{document_name} has expired. Please renew immediately."
        priority = "high"
    elif days_remaining <= 7:
        title = "Document Expiring Soon"
        body = f"{document_name} expires in {days_remaining} day(s). Please renew soon."
        priority = "high"
    elif days_remaining <= 30:
        title = "Document Expiry Notice"
        body = f"{document_name} expires in {days_remaining} days."
        priority = "default"
    else:
        title = "Document Expiry Reminder"
        body = f"Reminder: {document_name} expires in {days_remaining} days."
        priority = "default"

    return NotificationContent(
        title=title,
        body=body,
        notification_type="document",
        priority=priority,
        data={
            "documentName": document_name,
            "daysRemaining": str(days_remaining),
            "documentType": document_type or "",
        },
        channel_id=CHANNEL_DOCUMENTS,
    )


def timesheet_approved(timesheet_id: str, shift_title: str, total_hours: float) -> NotificationContent:
    return NotificationContent(
        title="Timesheet Approved",
        body=f'Your timesheet for "{shift_title}" ({total_hours} hours) has been approved.',
        notification_type="timesheet",
        data={"timesheetId": timesheet_id, "shiftTitle": shift_title, "totalHours": str(total_hours)},
    )


def shift_note_added(shift_id: str, shift_title: str, worker_name: str) -> NotificationContent:
    return NotificationContent(
        title="New Shift Note",
        body=f"{worker_name} added a note to shift: {shift_title}",
        notification_type="shift",
        data={"shiftId": shift_id, "shiftTitle": shift_title, "workerName": worker_name},
        channel_id=CHANNEL_SHIFTS,
    )


def clock_in(shift_id: str, shift_title: str, worker_name: str) -> NotificationContent:
    return NotificationContent(
        title="Worker Clocked In",
        body=f"{worker_name} has clocked in for: {shift_title}",
        notification_type="shift",
        data={"shiftId": shift_id, "shiftTitle": shift_title, "workerName": worker_name},
        channel_id=CHANNEL_SHIFTS,
    )


def clock_out(shift_id: str, shift_title: str, worker_name: str, total_hours: float) -> NotificationContent:
    return NotificationContent(
        title="Worker Clocked Out",
        body=f"{worker_name} has clocked out from: {shift_title} ({total_hours} hours)",
        notification_type="shift",
        data={
            "shiftId": shift_id,
            "shiftTitle": shift_title,
            "workerName": worker_name,
            "totalHours": str(total_hours),
        },
        channel_id=CHANNEL_SHIFTS,
    )
