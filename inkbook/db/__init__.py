"""Persistence layer: PostgreSQL via psycopg, one module per table family."""

from inkbook.db.bookings import (
    artist_day_lock,
    bookings_append_message,
    bookings_claim_deposit,
    bookings_delete,
    bookings_fetch_for_day,
    bookings_fetch_for_stats,
    bookings_fetch_range,
    bookings_get,
    bookings_insert,
    bookings_list,
    bookings_release_deposit,
    bookings_update,
)
from inkbook.db.core import close_pool, get_pool, get_pool_stats, init_pool, transaction
from inkbook.db.notifications import (
    notifications_delete,
    notifications_delete_all,
    notifications_fetch,
    notifications_insert_many,
    notifications_mark_all_read,
    notifications_mark_read,
    notifications_unread_count,
)
from inkbook.db.payments import payments_record
from inkbook.db.users import (
    artists_get,
    artists_insert,
    artists_set_availability,
    artists_set_rating,
    artists_update_profile,
    users_add_credits,
    users_get,
    users_set_role,
    users_upsert,
)

__all__ = [
    "artist_day_lock",
    "artists_get",
    "artists_insert",
    "artists_set_availability",
    "artists_set_rating",
    "artists_update_profile",
    "bookings_append_message",
    "bookings_claim_deposit",
    "bookings_delete",
    "bookings_fetch_for_day",
    "bookings_fetch_for_stats",
    "bookings_fetch_range",
    "bookings_get",
    "bookings_insert",
    "bookings_list",
    "bookings_release_deposit",
    "bookings_update",
    "close_pool",
    "get_pool",
    "get_pool_stats",
    "init_pool",
    "notifications_delete",
    "notifications_delete_all",
    "notifications_fetch",
    "notifications_insert_many",
    "notifications_mark_all_read",
    "notifications_mark_read",
    "notifications_unread_count",
    "payments_record",
    "transaction",
    "users_add_credits",
    "users_get",
    "users_set_role",
    "users_upsert",
]
