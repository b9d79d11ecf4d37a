from datetime import UTC, datetime

import psycopg

from inkbook.db.core import _use_connection


async def payments_record(
    user_id: str,
    kind: str,
    amount: float,
    currency: str,
    status: str,
    transaction_id: str | None = None,
    booking_id: str | None = None,
    conn: psycopg.AsyncConnection | None = None,
) -> int:
    async with _use_connection(conn) as c:
        row = await (
            await c.execute(
                """INSERT INTO payments (user_id, booking_id, kind, amount, currency, status, transaction_id, created_at)
                   VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
                   RETURNING id""",
                (user_id, booking_id, kind, amount, currency, status, transaction_id, datetime.now(UTC)),
            )
        ).fetchone()
        return row[0]
