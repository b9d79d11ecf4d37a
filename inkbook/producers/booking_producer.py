import logging
from datetime import datetime, timezone

from inkbook import state
from inkbook.events import BookingChangedEvent, NotificationEvent
from inkbook.models.bookings import Booking
from inkbook.models.notifications import Notification

logger = logging.getLogger(__name__)


def build_booking_event(booking: Booking, event: str, include_booking: bool = True) -> BookingChangedEvent:
    return {
        "type": "booking_changed",
        "event": event,
        "booking_id": booking.id,
        "artist_id": booking.artist_id,
        "client_id": booking.client_id,
        "status": booking.status.value if include_booking else None,
        "booking": booking.model_dump(mode="json") if include_booking else None,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


async def publish_booking_change(booking: Booking, event: str) -> None:
    bus = state.event_bus
    if bus is None:
        return
    payload = build_booking_event(booking, event, include_booking=event != "deleted")
    try:
        await bus.publish_booking(booking.artist_id, payload)
    except Exception:
        # Feed subscribers re-read on reconnect; a lost push is not fatal
        logger.warning("Failed to publish %s for booking %s", event, booking.id, exc_info=True)


async def publish_notifications(notifications: list[Notification]) -> None:
    bus = state.event_bus
    if bus is None:
        return
    for n in notifications:
        event: NotificationEvent = {"type": "notification", "notification": n.model_dump(mode="json")}
        try:
            await bus.publish_notification(n.user_id, event)
        except Exception:
            logger.warning("Failed to publish notification %s", n.id, exc_info=True)
