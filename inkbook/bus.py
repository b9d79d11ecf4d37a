"""
Event bus for the real-time booking and notification feeds, backed by Redis.
"""
import json
from typing import Final

import redis.asyncio as redis

from inkbook.events import BookingChangedEvent, NotificationEvent

CHANNEL_BOOKINGS_PREFIX: Final[str] = "bookings:"
CHANNEL_NOTIFICATIONS_PREFIX: Final[str] = "notifications:"


class EventBus:
    def __init__(self, redis_client: redis.Redis):
        self.redis_client = redis_client

    @staticmethod
    def bookings_channel(artist_id: str) -> str:
        return f"{CHANNEL_BOOKINGS_PREFIX}{artist_id}"

    @staticmethod
    def notifications_channel(user_id: str) -> str:
        return f"{CHANNEL_NOTIFICATIONS_PREFIX}{user_id}"

    async def publish_booking(self, artist_id: str, event: BookingChangedEvent) -> None:
        await self.redis_client.publish(self.bookings_channel(artist_id), json.dumps(event))

    async def publish_notification(self, user_id: str, event: NotificationEvent) -> None:
        await self.redis_client.publish(self.notifications_channel(user_id), json.dumps(event))
