import secrets
import string
from contextlib import asynccontextmanager
from datetime import UTC, date, datetime
from typing import Any

import psycopg
from psycopg.types.json import Json

from inkbook.db.core import _use_connection, transaction

ACTIVE_STATUS_VALUES = ("pending", "accepted", "in_progress")

_COLUMNS = (
    "id, artist_id, client_id, date, start_time, end_time, duration, status, price, deposit, "
    "deposit_paid, deposit_transaction_id, design_details, messages, rating, cancel_reason, "
    "created_at, updated_at"
)


def _generate_booking_id(length: int = 20) -> str:
    chars = string.ascii_letters + string.digits
    return "".join(secrets.choice(chars) for _ in range(length))


def _row_to_booking(row) -> dict[str, Any]:
    return {
        "id": row[0],
        "artist_id": row[1],
        "client_id": row[2],
        "date": row[3].isoformat(),
        "start_time": row[4],
        "end_time": row[5],
        "duration": row[6],
        "status": row[7],
        "price": row[8],
        "deposit": row[9],
        "deposit_paid": row[10],
        "deposit_transaction_id": row[11],
        "design_details": row[12] or {},
        "messages": row[13] or [],
        "rating": row[14],
        "cancel_reason": row[15],
        "created_at": row[16].astimezone(UTC).isoformat(),
        "updated_at": row[17].astimezone(UTC).isoformat(),
    }


@asynccontextmanager
async def artist_day_lock(artist_id: str, day: str):
    """Open a transaction serialised against other writers of the same artist/day.

    Everything read and written through the yielded connection commits
    together, so an availability check and the write it guards cannot be
    interleaved with a competing booking for the same slot.
    """
    async with transaction() as conn:
        await conn.execute(
            "SELECT pg_advisory_xact_lock(hashtext(%s))",
            (f"booking:{artist_id}:{day}",),
        )
        yield conn


async def bookings_insert(
    artist_id: str,
    client_id: str,
    day: str,
    start_time: str,
    end_time: str,
    duration: float,
    price: float,
    deposit: float,
    design_details: dict[str, Any],
    conn: psycopg.AsyncConnection | None = None,
) -> dict[str, Any]:
    now = datetime.now(UTC)
    async with _use_connection(conn) as c:
        row = await (
            await c.execute(
                f"""INSERT INTO bookings (id, artist_id, client_id, date, start_time, end_time, duration,
                                          status, price, deposit, design_details, created_at, updated_at)
                    VALUES (%s, %s, %s, %s, %s, %s, %s, 'pending', %s, %s, %s, %s, %s)
                    RETURNING {_COLUMNS}""",
                (
                    _generate_booking_id(),
                    artist_id,
                    client_id,
                    date.fromisoformat(day),
                    start_time,
                    end_time,
                    duration,
                    price,
                    deposit,
                    Json(design_details),
                    now,
                    now,
                ),
            )
        ).fetchone()
        return _row_to_booking(row)


async def bookings_get(
    booking_id: str,
    conn: psycopg.AsyncConnection | None = None,
    for_update: bool = False,
) -> dict[str, Any] | None:
    sql = f"SELECT {_COLUMNS} FROM bookings WHERE id = %s"
    if for_update:
        sql += " FOR UPDATE"
    async with _use_connection(conn) as c:
        row = await (await c.execute(sql, (booking_id,))).fetchone()
        return _row_to_booking(row) if row else None


async def bookings_fetch_for_day(
    artist_id: str,
    day: str,
    conn: psycopg.AsyncConnection | None = None,
) -> list[dict[str, Any]]:
    """Active bookings of an artist on one date."""
    return await bookings_fetch_range(artist_id, day, day, conn=conn)


async def bookings_fetch_range(
    artist_id: str,
    start_day: str,
    end_day: str,
    conn: psycopg.AsyncConnection | None = None,
) -> list[dict[str, Any]]:
    async with _use_connection(conn) as c:
        rows = await c.execute(
            f"""SELECT {_COLUMNS} FROM bookings
                WHERE artist_id = %s AND date >= %s AND date <= %s AND status = ANY(%s)
                ORDER BY date, start_time""",
            (artist_id, date.fromisoformat(start_day), date.fromisoformat(end_day), list(ACTIVE_STATUS_VALUES)),
        )
        return [_row_to_booking(row) async for row in rows]


async def bookings_list(
    party_column: str,
    user_id: str,
    statuses: list[str] | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[dict[str, Any]]:
    if party_column not in ("artist_id", "client_id"):
        raise ValueError(f"unsupported party column: {party_column}")
    clauses = [f"{party_column} = %s"]
    params: list[Any] = [user_id]
    if statuses:
        clauses.append("status = ANY(%s)")
        params.append(statuses)
    params.extend([limit, offset])
    sql = (
        f"SELECT {_COLUMNS} FROM bookings WHERE {' AND '.join(clauses)} "
        "ORDER BY date DESC, start_time DESC LIMIT %s OFFSET %s"
    )
    async with _use_connection() as c:
        rows = await c.execute(sql, tuple(params))
        return [_row_to_booking(row) async for row in rows]


_UPDATABLE = (
    "date",
    "start_time",
    "end_time",
    "duration",
    "status",
    "price",
    "deposit",
    "deposit_paid",
    "deposit_pending",
    "deposit_transaction_id",
    "design_details",
    "rating",
    "cancel_reason",
)
_JSON_FIELDS = ("design_details", "rating")


async def bookings_update(
    booking_id: str,
    updates: dict[str, Any],
    conn: psycopg.AsyncConnection | None = None,
) -> dict[str, Any] | None:
    sets = []
    params: list[Any] = []
    for key in _UPDATABLE:
        if key not in updates:
            continue
        value = updates[key]
        if key == "date":
            value = date.fromisoformat(value)
        elif key in _JSON_FIELDS and value is not None:
            value = Json(value)
        sets.append(f"{key} = %s")
        params.append(value)
    sets.append("updated_at = %s")
    params.append(datetime.now(UTC))
    params.append(booking_id)
    async with _use_connection(conn) as c:
        row = await (
            await c.execute(
                f"UPDATE bookings SET {', '.join(sets)} WHERE id = %s RETURNING {_COLUMNS}",
                tuple(params),
            )
        ).fetchone()
        return _row_to_booking(row) if row else None


async def bookings_claim_deposit(booking_id: str, conn: psycopg.AsyncConnection | None = None) -> bool:
    """Mark the deposit of an open booking as being charged.

    Succeeds for exactly one caller while the deposit is unpaid, non-zero
    and not already claimed; everyone else gets False.
    """
    async with _use_connection(conn) as c:
        cur = await c.execute(
            """UPDATE bookings SET deposit_pending = TRUE, updated_at = %s
               WHERE id = %s AND NOT deposit_paid AND NOT deposit_pending
                 AND deposit > 0 AND status = ANY(%s)""",
            (datetime.now(UTC), booking_id, list(ACTIVE_STATUS_VALUES)),
        )
        return cur.rowcount > 0


async def bookings_release_deposit(booking_id: str, conn: psycopg.AsyncConnection | None = None) -> None:
    async with _use_connection(conn) as c:
        await c.execute(
            "UPDATE bookings SET deposit_pending = FALSE, updated_at = %s WHERE id = %s AND NOT deposit_paid",
            (datetime.now(UTC), booking_id),
        )


async def bookings_append_message(
    booking_id: str,
    message: dict[str, Any],
    conn: psycopg.AsyncConnection | None = None,
) -> bool:
    async with _use_connection(conn) as c:
        cur = await c.execute(
            "UPDATE bookings SET messages = messages || %s::jsonb, updated_at = %s WHERE id = %s",
            (Json([message]), datetime.now(UTC), booking_id),
        )
        return cur.rowcount > 0


async def bookings_delete(booking_id: str, conn: psycopg.AsyncConnection | None = None) -> bool:
    async with _use_connection(conn) as c:
        cur = await c.execute("DELETE FROM bookings WHERE id = %s", (booking_id,))
        return cur.rowcount > 0


async def bookings_fetch_for_stats(
    artist_id: str | None = None,
    start_day: str | None = None,
    end_day: str | None = None,
) -> list[dict[str, Any]]:
    clauses: list[str] = []
    params: list[Any] = []
    if artist_id:
        clauses.append("artist_id = %s")
        params.append(artist_id)
    if start_day:
        clauses.append("date >= %s")
        params.append(date.fromisoformat(start_day))
    if end_day:
        clauses.append("date <= %s")
        params.append(date.fromisoformat(end_day))
    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
    async with _use_connection() as c:
        rows = await c.execute(
            f"SELECT date, status, price FROM bookings {where} ORDER BY date",
            tuple(params),
        )
        out: list[dict[str, Any]] = []
        async for day, status, price in rows:
            out.append({"date": day.isoformat(), "status": status, "price": price})
        return out
