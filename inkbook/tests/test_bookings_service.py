"""Tests for the booking lifecycle service against an in-memory store."""

import asyncio
import itertools
from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, patch

import pytest

from inkbook.errors import (
    AlreadyRatedError,
    ExternalServiceError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    PaymentRequiredError,
    SchedulingConflictError,
)
from inkbook.models.bookings import (
    BookingStatus,
    CreateBookingRequest,
    UpdateBookingRequest,
)
from inkbook.models.credits import PaymentResult
from inkbook.services import bookings


def _request(start="10:00", end="11:00", day="2024-01-15", **kwargs):
    return CreateBookingRequest(artist_id="artist-1", date=day, start_time=start, end_time=end, price=500, **kwargs)


async def _completed_booking(fake_db, client_session, artist_session):
    booking = await bookings.create_booking(client_session, _request())
    await bookings.update_booking(artist_session, booking.id, UpdateBookingRequest(status=BookingStatus.ACCEPTED))
    await bookings.update_booking(artist_session, booking.id, UpdateBookingRequest(status=BookingStatus.COMPLETED))
    return booking


class TestCreateBooking:
    """Creating bookings under the availability rules."""

    @pytest.mark.asyncio
    async def test_creates_pending_booking_with_default_deposit(self, fake_db, client_session):
        fake_db.add_artist(deposit_percentage=20)

        booking = await bookings.create_booking(client_session, _request())

        assert booking.status is BookingStatus.PENDING
        assert booking.client_id == "client-1"
        assert booking.duration == 1.0
        assert booking.deposit == 100.0
        assert {n["user_id"] for n in fake_db.notifications} == {"artist-1", "client-1"}
        assert all(n["title"] == "New booking request" for n in fake_db.notifications)

    @pytest.mark.asyncio
    async def test_explicit_deposit_kept(self, fake_db, client_session):
        fake_db.add_artist(deposit_percentage=20)
        booking = await bookings.create_booking(client_session, _request(deposit=50))
        assert booking.deposit == 50

    @pytest.mark.asyncio
    async def test_no_double_booking(self, fake_db, client_session):
        fake_db.add_artist()
        await bookings.create_booking(client_session, _request("10:00", "11:00"))

        with pytest.raises(SchedulingConflictError):
            await bookings.create_booking(client_session, _request("10:30", "11:30"))
        assert len(fake_db.bookings) == 1

    @pytest.mark.asyncio
    async def test_concurrent_overlapping_creates(self, fake_db, client_session):
        fake_db.add_artist()

        results = await asyncio.gather(
            bookings.create_booking(client_session, _request("10:00", "11:00")),
            bookings.create_booking(client_session, _request("10:30", "11:30")),
            return_exceptions=True,
        )

        conflicts = [r for r in results if isinstance(r, SchedulingConflictError)]
        assert len(conflicts) == 1
        assert len(fake_db.bookings) == 1

    @pytest.mark.asyncio
    async def test_adjacent_booking_allowed(self, fake_db, client_session):
        fake_db.add_artist()
        await bookings.create_booking(client_session, _request("10:00", "11:00"))
        await bookings.create_booking(client_session, _request("11:00", "12:00"))
        assert len(fake_db.bookings) == 2

    @pytest.mark.asyncio
    async def test_outside_hours_rejected(self, fake_db, client_session):
        fake_db.add_artist()
        with pytest.raises(SchedulingConflictError):
            await bookings.create_booking(client_session, _request("18:00", "19:00"))

    @pytest.mark.asyncio
    async def test_unknown_artist(self, fake_db, client_session):
        with pytest.raises(NotFoundError):
            await bookings.create_booking(client_session, _request())

    @pytest.mark.asyncio
    async def test_cancelled_booking_frees_the_slot(self, fake_db, client_session):
        fake_db.add_artist()
        first = await bookings.create_booking(client_session, _request())
        await bookings.cancel_booking(client_session, first.id, "changed my mind")
        second = await bookings.create_booking(client_session, _request())
        assert second.id != first.id


class TestUpdateBooking:
    """Rescheduling and the status state machine."""

    @pytest.mark.asyncio
    async def test_reschedule_onto_own_interval(self, fake_db, client_session):
        fake_db.add_artist()
        booking = await bookings.create_booking(client_session, _request("10:00", "11:00"))

        updated = await bookings.update_booking(
            client_session,
            booking.id,
            UpdateBookingRequest(date="2024-01-15", start_time="10:00", end_time="11:00"),
        )
        assert updated.start_time == "10:00"

    @pytest.mark.asyncio
    async def test_reschedule_shifting_within_own_interval(self, fake_db, client_session):
        fake_db.add_artist()
        booking = await bookings.create_booking(client_session, _request("10:00", "11:00"))

        updated = await bookings.update_booking(
            client_session, booking.id, UpdateBookingRequest(start_time="10:30", end_time="11:30")
        )
        assert (updated.start_time, updated.end_time) == ("10:30", "11:30")
        assert fake_db.notifications[-1]["title"] == "Booking rescheduled"

    @pytest.mark.asyncio
    async def test_reschedule_into_other_booking(self, fake_db, client_session):
        fake_db.add_artist()
        await bookings.create_booking(client_session, _request("10:00", "11:00"))
        other = await bookings.create_booking(client_session, _request("12:00", "13:00"))

        with pytest.raises(SchedulingConflictError):
            await bookings.update_booking(
                client_session, other.id, UpdateBookingRequest(start_time="10:30", end_time="11:30")
            )

    @pytest.mark.asyncio
    async def test_artist_accepts(self, fake_db, client_session, artist_session):
        fake_db.add_artist()
        booking = await bookings.create_booking(client_session, _request())

        updated = await bookings.update_booking(
            artist_session, booking.id, UpdateBookingRequest(status=BookingStatus.ACCEPTED)
        )
        assert updated.status is BookingStatus.ACCEPTED
        assert fake_db.notifications[-1]["title"] == "Booking accepted"

    @pytest.mark.asyncio
    async def test_confirmed_alias_accepts(self, fake_db, client_session, artist_session):
        fake_db.add_artist()
        booking = await bookings.create_booking(client_session, _request())
        updated = await bookings.update_booking(
            artist_session, booking.id, UpdateBookingRequest.model_validate({"status": "confirmed"})
        )
        assert updated.status is BookingStatus.ACCEPTED

    @pytest.mark.asyncio
    async def test_client_cannot_accept(self, fake_db, client_session):
        fake_db.add_artist()
        booking = await bookings.create_booking(client_session, _request())
        with pytest.raises(ForbiddenError):
            await bookings.update_booking(
                client_session, booking.id, UpdateBookingRequest(status=BookingStatus.ACCEPTED)
            )

    @pytest.mark.asyncio
    async def test_admin_may_accept(self, fake_db, client_session, admin_session):
        fake_db.add_artist()
        booking = await bookings.create_booking(client_session, _request())
        updated = await bookings.update_booking(
            admin_session, booking.id, UpdateBookingRequest(status=BookingStatus.ACCEPTED)
        )
        assert updated.status is BookingStatus.ACCEPTED

    @pytest.mark.asyncio
    async def test_pending_cannot_complete(self, fake_db, client_session, artist_session):
        fake_db.add_artist()
        booking = await bookings.create_booking(client_session, _request())
        with pytest.raises(InvalidStateError):
            await bookings.update_booking(
                artist_session, booking.id, UpdateBookingRequest(status=BookingStatus.COMPLETED)
            )

    @pytest.mark.asyncio
    async def test_outsider_forbidden(self, fake_db, client_session):
        from inkbook.models.users import Role, Session

        fake_db.add_artist()
        booking = await bookings.create_booking(client_session, _request())
        stranger = Session(user_id="stranger", email="s@example.com", role=Role.USER)
        with pytest.raises(ForbiddenError):
            await bookings.update_booking(stranger, booking.id, UpdateBookingRequest(price=10))
        with pytest.raises(ForbiddenError):
            await bookings.get_booking(stranger, booking.id)

    @pytest.mark.asyncio
    async def test_client_cannot_change_price(self, fake_db, client_session):
        fake_db.add_artist()
        booking = await bookings.create_booking(client_session, _request())
        with pytest.raises(ForbiddenError):
            await bookings.update_booking(client_session, booking.id, UpdateBookingRequest(price=1))

    @pytest.mark.asyncio
    async def test_terminal_booking_is_frozen(self, fake_db, client_session, artist_session):
        fake_db.add_artist()
        booking = await bookings.create_booking(client_session, _request())
        await bookings.update_booking(artist_session, booking.id, UpdateBookingRequest(status=BookingStatus.DECLINED))

        with pytest.raises(InvalidStateError):
            await bookings.update_booking(artist_session, booking.id, UpdateBookingRequest(price=900))

    @pytest.mark.asyncio
    async def test_cancel_stores_reason(self, fake_db, client_session, artist_session):
        fake_db.add_artist()
        booking = await bookings.create_booking(client_session, _request())
        await bookings.update_booking(artist_session, booking.id, UpdateBookingRequest(status=BookingStatus.ACCEPTED))

        cancelled = await bookings.cancel_booking(client_session, booking.id, "sick")
        assert cancelled.status is BookingStatus.CANCELLED
        assert cancelled.cancel_reason == "sick"

    @pytest.mark.asyncio
    async def test_missing_booking(self, fake_db, client_session):
        with pytest.raises(NotFoundError):
            await bookings.update_booking(client_session, "nope", UpdateBookingRequest(price=1))

    @pytest.mark.asyncio
    async def test_time_change_refused_when_booking_moved_meanwhile(self, fake_db, client_session):
        fake_db.add_artist()
        booking = await bookings.create_booking(client_session, _request("10:00", "11:00"))
        day_lock = fake_db.artist_day_lock

        @asynccontextmanager
        async def moved_before_lock(artist_id, day):
            # another request reschedules the booking to the next Monday first
            fake_db.bookings[booking.id]["date"] = "2024-01-22"
            async with day_lock(artist_id, day) as conn:
                yield conn

        fake_db.artist_day_lock = moved_before_lock
        with pytest.raises(InvalidStateError):
            await bookings.update_booking(
                client_session, booking.id, UpdateBookingRequest(start_time="12:00", end_time="13:00")
            )

        stored = fake_db.bookings[booking.id]
        assert (stored["date"], stored["start_time"]) == ("2024-01-22", "10:00")


class TestDeleteBooking:
    """Only pending bookings can be removed outright."""

    @pytest.mark.asyncio
    async def test_delete_pending(self, fake_db, client_session):
        fake_db.add_artist()
        booking = await bookings.create_booking(client_session, _request())

        await bookings.delete_booking(client_session, booking.id)

        assert booking.id not in fake_db.bookings
        assert fake_db.notifications[-1]["title"] == "Booking removed"

    @pytest.mark.asyncio
    async def test_delete_accepted_rejected(self, fake_db, client_session, artist_session):
        fake_db.add_artist()
        booking = await bookings.create_booking(client_session, _request())
        await bookings.update_booking(artist_session, booking.id, UpdateBookingRequest(status=BookingStatus.ACCEPTED))

        with pytest.raises(InvalidStateError):
            await bookings.delete_booking(client_session, booking.id)
        assert booking.id in fake_db.bookings

    @pytest.mark.asyncio
    async def test_delete_missing(self, fake_db, client_session):
        with pytest.raises(NotFoundError):
            await bookings.delete_booking(client_session, "missing")


class TestRatings:
    """Ratings update the artist's running average."""

    @pytest.mark.asyncio
    async def test_first_rating_sets_average(self, fake_db, client_session, artist_session):
        fake_db.add_artist()
        booking = await _completed_booking(fake_db, client_session, artist_session)

        rating = await bookings.add_booking_rating(client_session, booking.id, 4, "great lines")

        assert rating.rating == 4
        assert fake_db.artists["artist-1"]["average_rating"] == 4
        assert fake_db.artists["artist-1"]["total_ratings"] == 1

    @pytest.mark.asyncio
    async def test_second_rating_rejected(self, fake_db, client_session, artist_session):
        fake_db.add_artist()
        booking = await _completed_booking(fake_db, client_session, artist_session)
        await bookings.add_booking_rating(client_session, booking.id, 5)

        with pytest.raises(AlreadyRatedError):
            await bookings.add_booking_rating(client_session, booking.id, 3)
        assert fake_db.artists["artist-1"]["total_ratings"] == 1

    @pytest.mark.asyncio
    async def test_only_completed_can_be_rated(self, fake_db, client_session):
        fake_db.add_artist()
        booking = await bookings.create_booking(client_session, _request())
        with pytest.raises(InvalidStateError):
            await bookings.add_booking_rating(client_session, booking.id, 5)

    @pytest.mark.asyncio
    async def test_only_client_can_rate(self, fake_db, client_session, artist_session):
        fake_db.add_artist()
        booking = await _completed_booking(fake_db, client_session, artist_session)
        with pytest.raises(ForbiddenError):
            await bookings.add_booking_rating(artist_session, booking.id, 5)

    def test_running_average_matches_mean_in_any_order(self):
        values = [5, 3, 4, 1, 2]
        for order in itertools.permutations(values):
            avg, count = 0.0, 0
            for v in order:
                avg = bookings.running_average(avg, count, v)
                count += 1
            assert avg == pytest.approx(sum(values) / len(values))


class TestMessagesAndNotifications:
    """Messages and post-commit notification failures."""

    @pytest.mark.asyncio
    async def test_party_can_message(self, fake_db, client_session, artist_session):
        fake_db.add_artist()
        booking = await bookings.create_booking(client_session, _request())

        message = await bookings.add_booking_message(artist_session, booking.id, "See you then")

        assert message.author_id == "artist-1"
        assert fake_db.bookings[booking.id]["messages"][0]["text"] == "See you then"
        assert fake_db.notifications[-1]["title"] == "New message"

    @pytest.mark.asyncio
    async def test_notification_failure_reports_committed_booking(self, fake_db, client_session):
        fake_db.add_artist()
        fake_db.fail_notifications = True

        with pytest.raises(ExternalServiceError) as exc_info:
            await bookings.create_booking(client_session, _request())

        assert exc_info.value.context["committed"] is True
        booking_id = exc_info.value.context["booking_id"]
        assert booking_id in fake_db.bookings


class TestDeposit:
    """Deposit payments through the gateway."""

    @pytest.mark.asyncio
    async def test_successful_deposit(self, fake_db, client_session):
        fake_db.add_artist(deposit_percentage=20)
        booking = await bookings.create_booking(client_session, _request())

        charge = AsyncMock(return_value=PaymentResult(success=True, transaction_id="tx-1"))
        with patch("inkbook.services.bookings.process_payment", charge):
            paid = await bookings.pay_deposit(client_session, booking.id)

        assert paid.deposit_paid is True
        assert paid.deposit_transaction_id == "tx-1"
        assert paid.status is BookingStatus.PENDING
        charge.assert_awaited_once()
        assert charge.await_args.args[0] == 100.0
        assert fake_db.payments[-1]["status"] == "succeeded"

    @pytest.mark.asyncio
    async def test_declined_deposit(self, fake_db, client_session):
        fake_db.add_artist(deposit_percentage=20)
        booking = await bookings.create_booking(client_session, _request())

        charge = AsyncMock(return_value=PaymentResult(success=False, error="card declined"))
        with patch("inkbook.services.bookings.process_payment", charge):
            with pytest.raises(PaymentRequiredError) as exc_info:
                await bookings.pay_deposit(client_session, booking.id)

        assert exc_info.value.detail == "card declined"
        assert fake_db.bookings[booking.id]["deposit_paid"] is False
        assert fake_db.payments[-1]["status"] == "failed"

    @pytest.mark.asyncio
    async def test_retry_after_decline(self, fake_db, client_session):
        fake_db.add_artist(deposit_percentage=20)
        booking = await bookings.create_booking(client_session, _request())

        declined = AsyncMock(return_value=PaymentResult(success=False, error="card declined"))
        with patch("inkbook.services.bookings.process_payment", declined):
            with pytest.raises(PaymentRequiredError):
                await bookings.pay_deposit(client_session, booking.id)

        approved = AsyncMock(return_value=PaymentResult(success=True, transaction_id="tx-2"))
        with patch("inkbook.services.bookings.process_payment", approved):
            paid = await bookings.pay_deposit(client_session, booking.id)
        assert paid.deposit_paid is True

    @pytest.mark.asyncio
    async def test_concurrent_payments_charge_once(self, fake_db, client_session):
        fake_db.add_artist(deposit_percentage=20)
        booking = await bookings.create_booking(client_session, _request())
        charges = []

        async def slow_charge(amount, email, description):
            charges.append(amount)
            await asyncio.sleep(0.01)
            return PaymentResult(success=True, transaction_id=f"tx-{len(charges)}")

        with patch("inkbook.services.bookings.process_payment", slow_charge):
            results = await asyncio.gather(
                bookings.pay_deposit(client_session, booking.id),
                bookings.pay_deposit(client_session, booking.id),
                return_exceptions=True,
            )

        assert charges == [100.0]
        assert sum(isinstance(r, InvalidStateError) for r in results) == 1
        assert [p["status"] for p in fake_db.payments] == ["succeeded"]
        assert fake_db.bookings[booking.id]["deposit_pending"] is False

    @pytest.mark.asyncio
    async def test_gateway_crash_releases_claim(self, fake_db, client_session):
        fake_db.add_artist(deposit_percentage=20)
        booking = await bookings.create_booking(client_session, _request())

        with patch("inkbook.services.bookings.process_payment", AsyncMock(side_effect=RuntimeError("boom"))):
            with pytest.raises(RuntimeError):
                await bookings.pay_deposit(client_session, booking.id)
        assert fake_db.bookings[booking.id]["deposit_pending"] is False

    @pytest.mark.asyncio
    async def test_no_deposit_due(self, fake_db, client_session):
        fake_db.add_artist(deposit_percentage=0)
        booking = await bookings.create_booking(client_session, _request())
        with pytest.raises(InvalidStateError):
            await bookings.pay_deposit(client_session, booking.id)


class TestStats:
    """Aggregated booking statistics."""

    def test_compute_stats(self):
        rows = [
            {"date": "2024-01-15", "status": "completed", "price": 200},
            {"date": "2024-01-20", "status": "cancelled", "price": 100},
            {"date": "2024-02-03", "status": "completed", "price": 300},
            {"date": "2024-02-04", "status": "confirmed", "price": 50},
        ]
        stats = bookings.compute_stats(rows)

        assert stats.total_bookings == 4
        assert stats.completed_bookings == 2
        assert stats.cancelled_bookings == 1
        assert stats.total_revenue == 500
        assert stats.bookings_by_status["accepted"] == 1
        assert [(m.month, m.bookings, m.revenue) for m in stats.bookings_by_month] == [
            ("2024-01", 2, 200),
            ("2024-02", 2, 300),
        ]

    @pytest.mark.asyncio
    async def test_client_cannot_view_stats(self, fake_db, client_session):
        with pytest.raises(ForbiddenError):
            await bookings.booking_stats(client_session)

    @pytest.mark.asyncio
    async def test_artist_sees_own_stats(self, fake_db, client_session, artist_session):
        fake_db.add_artist()
        await bookings.create_booking(client_session, _request())
        stats = await bookings.booking_stats(artist_session)
        assert stats.total_bookings == 1
        assert stats.bookings_by_status == {"pending": 1}
