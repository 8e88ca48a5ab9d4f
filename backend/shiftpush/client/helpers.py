"""Notification triggers for app events.

Each helper returns True when the backend reports at least one device was
reached and False otherwise; none of them raise.
"""
from ..services.templates import clock_in, clock_out, shift_note_added, timesheet_approved
from .facade import NotificationClient


async def notify_new_shift(
    client: NotificationClient, shift_id: str, support_worker_id: str, shift_title: str, shift_time: str
) -> bool:
    return await client.send_shift_notification(support_worker_id, shift_id, "new", shift_title, shift_time)


async def notify_shift_update(
    client: NotificationClient, shift_id: str, support_worker_id: str, shift_title: str, shift_time: str
) -> bool:
    return await client.send_shift_notification(support_worker_id, shift_id, "update", shift_title, shift_time)


async def notify_shift_reminder(
    client: NotificationClient, shift_id: str, support_worker_id: str, shift_title: str, shift_time: str
) -> bool:
    return await client.send_shift_notification(support_worker_id, shift_id, "reminder", shift_title, shift_time)


async def notify_document_expiry(
    client: NotificationClient, support_worker_id: str, document_name: str, days_until_expiry: int
) -> bool:
    return await client.send_document_expiry_notification(support_worker_id, document_name, days_until_expiry)


async def notify_timesheet_approved(
    client: NotificationClient, support_worker_id: str, timesheet_id: str, shift_title: str, total_hours: float
) -> bool:
    content = timesheet_approved(timesheet_id, shift_title, total_hours)
    return await client.send_notification(
        support_worker_id, content.title, content.body, content.notification_type, content.data
    )


async def notify_shift_note_added(
    client: NotificationClient, service_provider_id: str, shift_id: str, shift_title: str, worker_name: str
) -> bool:
    content = shift_note_added(shift_id, shift_title, worker_name)
    return await client.send_notification(
        service_provider_id, content.title, content.body, content.notification_type, content.data
    )


async def notify_clock_in(
    client: NotificationClient, service_provider_id: str, shift_id: str, shift_title: str, worker_name: str
) -> bool:
    content = clock_in(shift_id, shift_title, worker_name)
    return await client.send_notification(
        service_provider_id, content.title, content.body, content.notification_type, content.data
    )


async def notify_clock_out(
    client: NotificationClient,
    service_provider_id: str,
    shift_id: str,
    shift_title: str,
    worker_name: str,
    total_hours: float,
) -> bool:
    content = clock_out(shift_id, shift_title, worker_name, total_hours)
    return await client.send_notification(
        service_provider_id, content.title, content.body, content.notification_type, content.data
    )
