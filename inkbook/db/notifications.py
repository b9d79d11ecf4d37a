from datetime import UTC, datetime
from typing import Any

import psycopg
from psycopg.types.json import Json

from inkbook.db.core import _use_connection

_COLUMNS = "id, user_id, type, title, message, data, read, created_at"


def _row_to_notification(row) -> dict[str, Any]:
    return {
        "id": row[0],
        "user_id": row[1],
        "type": row[2],
        "title": row[3],
        "message": row[4],
        "data": row[5],
        "read": row[6],
        "created_at": row[7].astimezone(UTC).isoformat(),
    }


async def notifications_insert_many(
    items: list[dict[str, Any]],
    conn: psycopg.AsyncConnection | None = None,
) -> list[dict[str, Any]]:
    """Insert several notifications atomically and return them."""
    now = datetime.now(UTC)
    out: list[dict[str, Any]] = []
    async with _use_connection(conn) as c:
        async with c.transaction():
            for item in items:
                row = await (
                    await c.execute(
                        f"""INSERT INTO notifications (user_id, type, title, message, data, read, created_at)
                            VALUES (%s, %s, %s, %s, %s, FALSE, %s)
                            RETURNING {_COLUMNS}""",
                        (
                            item["user_id"],
                            item["type"],
                            item["title"],
                            item["message"],
                            Json(item.get("data")) if item.get("data") is not None else None,
                            now,
                        ),
                    )
                ).fetchone()
                out.append(_row_to_notification(row))
    return out


async def notifications_fetch(
    user_id: str,
    before_iso: str | None,
    limit: int,
) -> list[dict[str, Any]]:
    before_ts = (
        datetime.fromisoformat(before_iso.replace("Z", "+00:00"))
        if before_iso
        else datetime.now(UTC)
    )
    async with _use_connection() as c:
        rows = await c.execute(
            f"""SELECT {_COLUMNS} FROM notifications
                WHERE user_id = %s AND created_at < %s
                ORDER BY created_at DESC, id DESC LIMIT %s""",
            (user_id, before_ts, limit),
        )
        return [_row_to_notification(row) async for row in rows]


async def notifications_unread_count(user_id: str) -> int:
    async with _use_connection() as c:
        row = await (
            await c.execute(
                "SELECT COUNT(*) FROM notifications WHERE user_id = %s AND NOT read",
                (user_id,),
            )
        ).fetchone()
        return int(row[0]) if row else 0


async def notifications_mark_read(user_id: str, notification_id: int) -> bool:
    async with _use_connection() as c:
        cur = await c.execute(
            "UPDATE notifications SET read = TRUE WHERE id = %s AND user_id = %s",
            (notification_id, user_id),
        )
        return cur.rowcount > 0


async def notifications_mark_all_read(user_id: str) -> int:
    async with _use_connection() as c:
        cur = await c.execute(
            "UPDATE notifications SET read = TRUE WHERE user_id = %s AND NOT read",
            (user_id,),
        )
        return cur.rowcount


async def notifications_delete(user_id: str, notification_id: int) -> bool:
    async with _use_connection() as c:
        cur = await c.execute(
            "DELETE FROM notifications WHERE id = %s AND user_id = %s",
            (notification_id, user_id),
        )
        return cur.rowcount > 0


async def notifications_delete_all(user_id: str) -> int:
    async with _use_connection() as c:
        cur = await c.execute("DELETE FROM notifications WHERE user_id = %s", (user_id,))
        return cur.rowcount
