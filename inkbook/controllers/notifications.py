from fastapi import APIRouter, Query

from inkbook.dependencies import CurrentSession
from inkbook.models.notifications import NotificationPage, UnreadCount
from inkbook.services import notifications

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=NotificationPage)
async def list_notifications(
    session: CurrentSession,
    before: str | None = Query(None, description="ISO timestamp cursor from next_before"),
    limit: int | None = Query(None, ge=1, le=100),
) -> NotificationPage:
    return await notifications.list_notifications(session.user_id, before, limit)


@router.get("/unread-count", response_model=UnreadCount)
async def unread_count(session: CurrentSession) -> UnreadCount:
    return UnreadCount(unread=await notifications.unread_count(session.user_id))


@router.post("/read-all")
async def mark_all_read(session: CurrentSession) -> dict[str, int]:
    return {"updated": await notifications.mark_all_read(session.user_id)}


@router.post("/{notification_id}/read")
async def mark_read(notification_id: int, session: CurrentSession) -> dict[str, bool]:
    await notifications.mark_read(session.user_id, notification_id)
    return {"ok": True}


@router.delete("/{notification_id}")
async def delete_notification(notification_id: int, session: CurrentSession) -> dict[str, bool]:
    await notifications.delete_notification(session.user_id, notification_id)
    return {"ok": True}


@router.delete("")
async def delete_all(session: CurrentSession) -> dict[str, int]:
    return {"deleted": await notifications.delete_all_notifications(session.user_id)}
