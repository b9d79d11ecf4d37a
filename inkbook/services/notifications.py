"""
Booking notifications: one inbox entry per party for every lifecycle event,
plus the inbox operations behind /notifications.
"""
import logging
from typing import Any

from inkbook import db
from inkbook.config import get_settings
from inkbook.errors import ExternalServiceError, NotFoundError
from inkbook.models.bookings import Booking
from inkbook.models.notifications import Notification, NotificationPage
from inkbook.producers.booking_producer import publish_notifications
from inkbook.services.common import db_errors

logger = logging.getLogger(__name__)

# event -> (notification type, title, message template)
TEMPLATES: dict[str, tuple[str, str, str]] = {
    "created": ("booking_update", "New booking request", "A booking was requested for {date} at {start_time}."),
    "updated": ("booking_update", "Booking updated", "The booking on {date} at {start_time} was updated."),
    "rescheduled": (
        "booking_update",
        "Booking rescheduled",
        "The booking now takes place on {date} from {start_time} to {end_time}.",
    ),
    "accepted": ("booking_update", "Booking accepted", "The booking on {date} at {start_time} was accepted."),
    "declined": ("booking_update", "Booking declined", "The booking on {date} at {start_time} was declined."),
    "in_progress": ("booking_update", "Session started", "The session on {date} is in progress."),
    "completed": ("booking_update", "Booking completed", "The session on {date} is complete."),
    "cancelled": ("booking_update", "Booking cancelled", "The booking on {date} at {start_time} was cancelled."),
    "deleted": ("booking_update", "Booking removed", "The booking request for {date} at {start_time} was removed."),
    "message": ("booking_update", "New message", "There is a new message on the booking for {date}."),
    "rated": ("booking_update", "New rating", "The session on {date} was rated."),
    "deposit_paid": ("payment_update", "Deposit paid", "The deposit of {deposit:.2f} for {date} was paid."),
}


def render(booking: Booking, event: str) -> tuple[str, str, str]:
    """Return (type, title, message) for a booking event."""
    try:
        kind, title, template = TEMPLATES[event]
    except KeyError:
        raise ValueError(f"Unknown booking event: {event}") from None
    return kind, title, template.format(**booking.model_dump())


def build_notifications(booking: Booking, event: str) -> list[dict[str, Any]]:
    kind, title, message = render(booking, event)
    data = {"booking_id": booking.id, "event": event, "status": booking.status.value}
    return [
        {"user_id": user_id, "type": kind, "title": title, "message": message, "data": data}
        for user_id in dict.fromkeys(booking.parties)
    ]


async def dispatch_booking_event(booking: Booking, event: str) -> list[Notification]:
    """Notify both parties of a booking change.

    Runs after the booking change has committed, so a failure here must not
    be mistaken for the change itself failing.
    """
    items = build_notifications(booking, event)
    try:
        rows = await db.notifications_insert_many(items)
    except Exception as e:
        logger.error("Failed to notify parties of %s on booking %s: %s", event, booking.id, e)
        raise ExternalServiceError(
            detail="Booking was saved but notifications could not be delivered",
            booking_id=booking.id,
            event=event,
            committed=True,
        ) from e
    notifications = [Notification.model_validate(r) for r in rows]
    await publish_notifications(notifications)
    return notifications


async def list_notifications(user_id: str, before: str | None = None, limit: int | None = None) -> NotificationPage:
    page_size = limit or get_settings().booking.notifications_page_size
    with db_errors("list notifications"):
        rows = await db.notifications_fetch(user_id, before, page_size)
    notifications = [Notification.model_validate(r) for r in rows]
    next_before = notifications[-1].created_at if len(notifications) == page_size else None
    return NotificationPage(notifications=notifications, next_before=next_before)


async def unread_count(user_id: str) -> int:
    with db_errors("count notifications"):
        return await db.notifications_unread_count(user_id)


async def mark_read(user_id: str, notification_id: int) -> None:
    with db_errors("update notification"):
        found = await db.notifications_mark_read(user_id, notification_id)
    if not found:
        raise NotFoundError(detail="Notification not found", notification_id=notification_id)


async def mark_all_read(user_id: str) -> int:
    with db_errors("update notifications"):
        return await db.notifications_mark_all_read(user_id)


async def delete_notification(user_id: str, notification_id: int) -> None:
    with db_errors("delete notification"):
        found = await db.notifications_delete(user_id, notification_id)
    if not found:
        raise NotFoundError(detail="Notification not found", notification_id=notification_id)


async def delete_all_notifications(user_id: str) -> int:
    with db_errors("delete notifications"):
        return await db.notifications_delete_all(user_id)
