from typing import Any, Literal, TypedDict


class BookingChangedEvent(TypedDict):
    type: Literal["booking_changed"]
    event: str
    booking_id: str
    artist_id: str
    client_id: str
    status: str | None
    booking: dict[str, Any] | None
    timestamp: str


class NotificationEvent(TypedDict):
    type: Literal["notification"]
    notification: dict[str, Any]


class PingEvent(TypedDict):
    type: Literal["ping"]
