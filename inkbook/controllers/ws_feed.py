import asyncio
import json
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status

from inkbook import state
from inkbook.bus import EventBus
from inkbook.events import PingEvent

router = APIRouter()
logger = logging.getLogger("inkbook.ws")

HEARTBEAT_SEC = 25


async def _forward(websocket: WebSocket, channel: str) -> None:
    """Relay every message published on ``channel`` until the client leaves."""
    pubsub = state.redis_client.pubsub()
    await pubsub.subscribe(channel)
    logger.debug("ws subscribe channel=%s", channel)

    async def send_updates():
        try:
            async for message in pubsub.listen():
                if message["type"] == "message":
                    await websocket.send_text(message["data"])
        except Exception:
            logger.debug("ws relay stopped channel=%s", channel, exc_info=True)

    async def heartbeat():
        try:
            while True:
                await asyncio.sleep(HEARTBEAT_SEC)
                ping: PingEvent = {"type": "ping"}
                await websocket.send_text(json.dumps(ping))
        except Exception:
            logger.debug("ws heartbeat stopped channel=%s", channel, exc_info=True)

    update_task = asyncio.create_task(send_updates())
    heartbeat_task = asyncio.create_task(heartbeat())

    try:
        while True:
            # Feeds are one-way; inbound frames only keep the socket alive
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        update_task.cancel()
        heartbeat_task.cancel()
        await pubsub.unsubscribe(channel)
        if hasattr(pubsub, "aclose"):
            await pubsub.aclose()
        else:
            await pubsub.close()
        logger.debug("ws unsubscribe channel=%s", channel)


def _may_subscribe(websocket: WebSocket, owner_id: str) -> bool:
    user_id = websocket.headers.get("x-user-id")
    role = (websocket.headers.get("x-user-role") or "").lower()
    return bool(user_id) and (user_id == owner_id or role == "admin")


@router.websocket("/ws/bookings/{artist_id}")
async def websocket_bookings(websocket: WebSocket, artist_id: str):
    if state.redis_client is None or not _may_subscribe(websocket, artist_id):
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    await websocket.accept()
    await _forward(websocket, EventBus.bookings_channel(artist_id))


@router.websocket("/ws/notifications/{user_id}")
async def websocket_notifications(websocket: WebSocket, user_id: str):
    if state.redis_client is None or not _may_subscribe(websocket, user_id):
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    await websocket.accept()
    await _forward(websocket, EventBus.notifications_channel(user_id))
