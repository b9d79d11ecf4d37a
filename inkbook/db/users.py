from datetime import UTC, datetime
from typing import Any

import psycopg
from psycopg.types.json import Json

from inkbook.db.core import _use_connection

_USER_COLUMNS = "id, email, name, role, credits, created_at, updated_at"
_ARTIST_COLUMNS = (
    "id, display_name, bio, specialties, hourly_rate, deposit_percentage, "
    "availability, average_rating, total_ratings, created_at, updated_at"
)


def _user_row(row) -> dict[str, Any]:
    return {
        "id": row[0],
        "email": row[1],
        "name": row[2],
        "role": row[3],
        "credits": row[4],
        "created_at": row[5].astimezone(UTC).isoformat(),
        "updated_at": row[6].astimezone(UTC).isoformat(),
    }


def _artist_row(row) -> dict[str, Any]:
    return {
        "id": row[0],
        "display_name": row[1],
        "bio": row[2],
        "specialties": row[3] or [],
        "hourly_rate": row[4],
        "deposit_percentage": row[5],
        "availability": row[6] or {},
        "average_rating": row[7],
        "total_ratings": row[8],
        "created_at": row[9].astimezone(UTC).isoformat(),
        "updated_at": row[10].astimezone(UTC).isoformat(),
    }


async def users_upsert(
    user_id: str,
    email: str,
    name: str,
    role: str,
    conn: psycopg.AsyncConnection | None = None,
) -> dict[str, Any]:
    now = datetime.now(UTC)
    async with _use_connection(conn) as c:
        row = await (
            await c.execute(
                f"""INSERT INTO users (id, email, name, role, credits, created_at, updated_at)
                    VALUES (%s, %s, %s, %s, 0, %s, %s)
                    ON CONFLICT (id) DO UPDATE SET
                        email = EXCLUDED.email,
                        name = CASE WHEN EXCLUDED.name = '' THEN users.name ELSE EXCLUDED.name END,
                        updated_at = EXCLUDED.updated_at
                    RETURNING {_USER_COLUMNS}""",
                (user_id, email, name, role, now, now),
            )
        ).fetchone()
        return _user_row(row)


async def users_get(user_id: str, conn: psycopg.AsyncConnection | None = None) -> dict[str, Any] | None:
    async with _use_connection(conn) as c:
        row = await (
            await c.execute(f"SELECT {_USER_COLUMNS} FROM users WHERE id = %s", (user_id,))
        ).fetchone()
        return _user_row(row) if row else None


async def users_set_role(user_id: str, role: str, conn: psycopg.AsyncConnection | None = None) -> None:
    async with _use_connection(conn) as c:
        await c.execute(
            "UPDATE users SET role = %s, updated_at = %s WHERE id = %s",
            (role, datetime.now(UTC), user_id),
        )


async def users_add_credits(
    user_id: str,
    amount: int,
    conn: psycopg.AsyncConnection | None = None,
) -> int | None:
    """Add (or, with a negative amount, spend) credits.

    Spending never takes the balance below zero: returns None when the
    user is missing or cannot afford it, else the new balance.
    """
    async with _use_connection(conn) as c:
        row = await (
            await c.execute(
                """UPDATE users SET credits = credits + %s, updated_at = %s
                   WHERE id = %s AND credits + %s >= 0
                   RETURNING credits""",
                (amount, datetime.now(UTC), user_id, amount),
            )
        ).fetchone()
        return row[0] if row else None


async def artists_insert(
    artist_id: str,
    display_name: str,
    bio: str,
    specialties: list[str],
    hourly_rate: float,
    deposit_percentage: float,
    availability: dict[str, Any],
    conn: psycopg.AsyncConnection | None = None,
) -> dict[str, Any]:
    now = datetime.now(UTC)
    async with _use_connection(conn) as c:
        row = await (
            await c.execute(
                f"""INSERT INTO artists (id, display_name, bio, specialties, hourly_rate,
                                         deposit_percentage, availability, created_at, updated_at)
                    VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
                    ON CONFLICT (id) DO UPDATE SET updated_at = EXCLUDED.updated_at
                    RETURNING {_ARTIST_COLUMNS}""",
                (
                    artist_id,
                    display_name,
                    bio,
                    Json(specialties),
                    hourly_rate,
                    deposit_percentage,
                    Json(availability),
                    now,
                    now,
                ),
            )
        ).fetchone()
        return _artist_row(row)


async def artists_get(
    artist_id: str,
    conn: psycopg.AsyncConnection | None = None,
    for_update: bool = False,
) -> dict[str, Any] | None:
    sql = f"SELECT {_ARTIST_COLUMNS} FROM artists WHERE id = %s"
    if for_update:
        sql += " FOR UPDATE"
    async with _use_connection(conn) as c:
        row = await (await c.execute(sql, (artist_id,))).fetchone()
        return _artist_row(row) if row else None


_ARTIST_UPDATABLE = ("display_name", "bio", "specialties", "hourly_rate", "deposit_percentage")


async def artists_update_profile(
    artist_id: str,
    updates: dict[str, Any],
    conn: psycopg.AsyncConnection | None = None,
) -> dict[str, Any] | None:
    sets = []
    params: list[Any] = []
    for key in _ARTIST_UPDATABLE:
        if key in updates:
            sets.append(f"{key} = %s")
            params.append(Json(updates[key]) if key == "specialties" else updates[key])
    sets.append("updated_at = %s")
    params.append(datetime.now(UTC))
    params.append(artist_id)
    async with _use_connection(conn) as c:
        row = await (
            await c.execute(
                f"UPDATE artists SET {', '.join(sets)} WHERE id = %s RETURNING {_ARTIST_COLUMNS}",
                tuple(params),
            )
        ).fetchone()
        return _artist_row(row) if row else None


async def artists_set_availability(
    artist_id: str,
    availability: dict[str, Any],
    conn: psycopg.AsyncConnection | None = None,
) -> bool:
    async with _use_connection(conn) as c:
        cur = await c.execute(
            "UPDATE artists SET availability = %s, updated_at = %s WHERE id = %s",
            (Json(availability), datetime.now(UTC), artist_id),
        )
        return cur.rowcount > 0


async def artists_set_rating(
    artist_id: str,
    average_rating: float,
    total_ratings: int,
    conn: psycopg.AsyncConnection | None = None,
) -> None:
    async with _use_connection(conn) as c:
        await c.execute(
            "UPDATE artists SET average_rating = %s, total_ratings = %s, updated_at = %s WHERE id = %s",
            (average_rating, total_ratings, datetime.now(UTC), artist_id),
        )
