import os
import sys
REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))
if REPO_ROOT not in sys.path:
    sys.path.insert(0, REPO_ROOT)

import asyncio
from collections import defaultdict
from contextlib import ExitStack, asynccontextmanager
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient
import fakeredis.aioredis as fakeredis

from inkbook.config import clear_settings_cache
from inkbook.models.users import Role, Session
import inkbook.lifespan as lifespan
import inkbook.main as main


class _AwaitableRedis:
    def __init__(self, client):
        self._client = client

    def __await__(self):
        async def _coro():
            return self._client

        return _coro().__await__()


@pytest.fixture
def client(monkeypatch):
    def fake_redis_constructor(*_args, **_kwargs):
        fake = fakeredis.FakeRedis(decode_responses=True)
        return _AwaitableRedis(fake)

    monkeypatch.setattr(lifespan.redis, "Redis", fake_redis_constructor)
    monkeypatch.setenv("ENABLE_DB", "0")
    clear_settings_cache()

    with TestClient(main.app) as c:
        yield c

    clear_settings_cache()


class FakeDB:
    """In-memory stand-in for ``inkbook.db`` used by the service tests."""

    ACTIVE = ("pending", "accepted", "in_progress")

    def __init__(self):
        self.users: dict[str, dict] = {}
        self.artists: dict[str, dict] = {}
        self.bookings: dict[str, dict] = {}
        self.notifications: list[dict] = []
        self.payments: list[dict] = []
        self.fail_notifications = False
        self.day_locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._seq = 0

    def _next(self) -> int:
        self._seq += 1
        return self._seq

    def add_artist(self, artist_id="artist-1", availability=None, deposit_percentage=20.0, **extra):
        row = {
            "id": artist_id,
            "display_name": "Ink Artist",
            "bio": "",
            "specialties": [],
            "hourly_rate": 100.0,
            "deposit_percentage": deposit_percentage,
            "availability": availability if availability is not None else {
                "weekly_schedule": {"Monday": [{"start": "09:00", "end": "17:00"}]},
            },
            "average_rating": 0.0,
            "total_ratings": 0,
            "created_at": "2024-01-01T00:00:00+00:00",
            "updated_at": "2024-01-01T00:00:00+00:00",
        }
        row.update(extra)
        self.artists[artist_id] = row
        return row

    def add_user(self, user_id, credits=0, role="user"):
        self.users[user_id] = {
            "id": user_id,
            "email": f"{user_id}@example.com",
            "name": user_id,
            "role": role,
            "credits": credits,
            "created_at": "2024-01-01T00:00:00+00:00",
            "updated_at": "2024-01-01T00:00:00+00:00",
        }
        return self.users[user_id]

    @asynccontextmanager
    async def artist_day_lock(self, artist_id, day):
        async with self.day_locks[f"booking:{artist_id}:{day}"]:
            yield "conn"

    @asynccontextmanager
    async def transaction(self):
        yield "conn"

    async def users_get(self, user_id, conn=None):
        row = self.users.get(user_id)
        return dict(row) if row else None

    async def users_upsert(self, user_id, email, name, role, conn=None):
        if user_id in self.users:
            self.users[user_id]["email"] = email
            if name:
                self.users[user_id]["name"] = name
        else:
            self.add_user(user_id, role=role)
            self.users[user_id].update(email=email, name=name)
        return dict(self.users[user_id])

    async def users_set_role(self, user_id, role, conn=None):
        self.users[user_id]["role"] = role

    async def users_add_credits(self, user_id, amount, conn=None):
        user = self.users.get(user_id)
        if user is None or user["credits"] + amount < 0:
            return None
        user["credits"] += amount
        return user["credits"]

    async def artists_get(self, artist_id, conn=None, for_update=False):
        row = self.artists.get(artist_id)
        return dict(row) if row else None

    async def artists_insert(self, artist_id, display_name, bio, specialties, hourly_rate,
                             deposit_percentage, availability, conn=None):
        return dict(self.add_artist(artist_id, availability=availability, deposit_percentage=deposit_percentage,
                                    display_name=display_name, bio=bio, specialties=specialties,
                                    hourly_rate=hourly_rate))

    async def artists_update_profile(self, artist_id, updates, conn=None):
        if artist_id not in self.artists:
            return None
        self.artists[artist_id].update(updates)
        return dict(self.artists[artist_id])

    async def artists_set_availability(self, artist_id, availability, conn=None):
        if artist_id not in self.artists:
            return False
        self.artists[artist_id]["availability"] = availability
        return True

    async def artists_set_rating(self, artist_id, average_rating, total_ratings, conn=None):
        self.artists[artist_id].update(average_rating=average_rating, total_ratings=total_ratings)

    async def bookings_insert(self, artist_id, client_id, day, start_time, end_time, duration,
                              price, deposit, design_details, conn=None):
        booking_id = f"bk{self._next()}"
        self.bookings[booking_id] = {
            "id": booking_id,
            "artist_id": artist_id,
            "client_id": client_id,
            "date": day,
            "start_time": start_time,
            "end_time": end_time,
            "duration": duration,
            "status": "pending",
            "price": price,
            "deposit": deposit,
            "deposit_paid": False,
            "deposit_pending": False,
            "deposit_transaction_id": None,
            "design_details": design_details,
            "messages": [],
            "rating": None,
            "cancel_reason": None,
            "created_at": "2024-01-01T00:00:00+00:00",
            "updated_at": "2024-01-01T00:00:00+00:00",
        }
        return dict(self.bookings[booking_id])

    async def bookings_get(self, booking_id, conn=None, for_update=False):
        await asyncio.sleep(0)
        row = self.bookings.get(booking_id)
        return dict(row) if row else None

    async def bookings_fetch_for_day(self, artist_id, day, conn=None):
        return await self.bookings_fetch_range(artist_id, day, day, conn=conn)

    async def bookings_fetch_range(self, artist_id, start_day, end_day, conn=None):
        await asyncio.sleep(0)
        return [
            dict(b) for b in self.bookings.values()
            if b["artist_id"] == artist_id and start_day <= b["date"] <= end_day and b["status"] in self.ACTIVE
        ]

    async def bookings_list(self, party_column, user_id, statuses=None, limit=50, offset=0):
        rows = [b for b in self.bookings.values() if b[party_column] == user_id]
        if statuses:
            rows = [b for b in rows if b["status"] in statuses]
        rows.sort(key=lambda b: (b["date"], b["start_time"]), reverse=True)
        return [dict(b) for b in rows[offset:offset + limit]]

    async def bookings_update(self, booking_id, updates, conn=None):
        if booking_id not in self.bookings:
            return None
        self.bookings[booking_id].update(updates)
        return dict(self.bookings[booking_id])

    async def bookings_claim_deposit(self, booking_id, conn=None):
        row = self.bookings.get(booking_id)
        if (row is None or row["deposit_paid"] or row["deposit_pending"]
                or row["deposit"] <= 0 or row["status"] not in self.ACTIVE):
            return False
        row["deposit_pending"] = True
        return True

    async def bookings_release_deposit(self, booking_id, conn=None):
        row = self.bookings.get(booking_id)
        if row is not None and not row["deposit_paid"]:
            row["deposit_pending"] = False

    async def bookings_append_message(self, booking_id, message, conn=None):
        if booking_id not in self.bookings:
            return False
        self.bookings[booking_id]["messages"].append(message)
        return True

    async def bookings_delete(self, booking_id, conn=None):
        return self.bookings.pop(booking_id, None) is not None

    async def bookings_fetch_for_stats(self, artist_id=None, start_day=None, end_day=None):
        return [
            {"date": b["date"], "status": b["status"], "price": b["price"]}
            for b in self.bookings.values()
            if (not artist_id or b["artist_id"] == artist_id)
            and (not start_day or b["date"] >= start_day)
            and (not end_day or b["date"] <= end_day)
        ]

    async def notifications_insert_many(self, items, conn=None):
        if self.fail_notifications:
            raise RuntimeError("notifications table unavailable")
        out = []
        for item in items:
            row = {
                "id": self._next(),
                "read": False,
                "created_at": "2024-01-01T00:00:00+00:00",
                "data": None,
                **item,
            }
            self.notifications.append(row)
            out.append(dict(row))
        return out

    async def payments_record(self, user_id, kind, amount, currency, status, transaction_id=None,
                              booking_id=None, conn=None):
        self.payments.append({
            "user_id": user_id,
            "kind": kind,
            "amount": amount,
            "currency": currency,
            "status": status,
            "transaction_id": transaction_id,
            "booking_id": booking_id,
        })
        return len(self.payments)


@pytest.fixture
def fake_db():
    fake = FakeDB()
    targets = [
        "inkbook.services.availability.db",
        "inkbook.services.bookings.db",
        "inkbook.services.notifications.db",
        "inkbook.services.artists.db",
        "inkbook.services.credits.db",
    ]
    with ExitStack() as stack:
        for target in targets:
            stack.enter_context(patch(target, fake))
        yield fake


@pytest.fixture
def client_session():
    return Session(user_id="client-1", email="client@example.com", role=Role.USER)


@pytest.fixture
def artist_session():
    return Session(user_id="artist-1", email="artist@example.com", role=Role.ARTIST)


@pytest.fixture
def admin_session():
    return Session(user_id="admin-1", email="admin@example.com", role=Role.ADMIN)
