from typing import Any, Literal

from pydantic import BaseModel

NotificationType = Literal["booking_update", "payment_update", "system_message"]


class Notification(BaseModel):
    id: int
    user_id: str
    type: NotificationType
    title: str
    message: str
    data: dict[str, Any] | None = None
    read: bool = False
    created_at: str


class NotificationPage(BaseModel):
    notifications: list[Notification]
    next_before: str | None = None


class UnreadCount(BaseModel):
    unread: int
