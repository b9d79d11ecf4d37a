"""
Booking lifecycle: creation, edits and rescheduling, the status state
machine, messages, ratings, deposits and statistics.

Every write that depends on an artist's calendar runs inside
``db.artist_day_lock`` so the availability check and the write it guards
see the same set of bookings.
"""
import logging
import secrets
from collections import Counter
from typing import Any, Iterable, Literal

from inkbook import db
from inkbook.availability import resolve_availability, to_minutes
from inkbook.config import get_settings
from inkbook.errors import (
    AlreadyRatedError,
    BadRequestError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    PaymentRequiredError,
    SchedulingConflictError,
)
from inkbook.models.bookings import (
    TERMINAL_STATUSES,
    Booking,
    BookingMessage,
    BookingRating,
    BookingStats,
    BookingStatus,
    CreateBookingRequest,
    MonthStats,
    UpdateBookingRequest,
)
from inkbook.models.users import Role, Session
from inkbook.producers.booking_producer import publish_booking_change
from inkbook.services.availability import get_artist_or_404, load_schedule, parse_day
from inkbook.services.common import db_errors, now_iso
from inkbook.services.notifications import dispatch_booking_event
from inkbook.services.payments import process_payment

logger = logging.getLogger(__name__)

Party = Literal["artist", "client"]

ARTIST_ONLY: frozenset[Party] = frozenset({"artist"})
EITHER_PARTY: frozenset[Party] = frozenset({"artist", "client"})

# current status -> {target status -> parties allowed to make the move}
TRANSITIONS: dict[BookingStatus, dict[BookingStatus, frozenset[Party]]] = {
    BookingStatus.PENDING: {
        BookingStatus.ACCEPTED: ARTIST_ONLY,
        BookingStatus.DECLINED: ARTIST_ONLY,
        BookingStatus.CANCELLED: EITHER_PARTY,
    },
    BookingStatus.ACCEPTED: {
        BookingStatus.IN_PROGRESS: ARTIST_ONLY,
        BookingStatus.COMPLETED: ARTIST_ONLY,
        BookingStatus.CANCELLED: EITHER_PARTY,
    },
    BookingStatus.IN_PROGRESS: {
        BookingStatus.COMPLETED: ARTIST_ONLY,
    },
}


def party_of(session: Session, booking: Booking) -> Party | None:
    if session.user_id == booking.artist_id:
        return "artist"
    if session.user_id == booking.client_id:
        return "client"
    return None


def require_party(session: Session, booking: Booking) -> Party | None:
    party = party_of(session, booking)
    if party is None and not session.is_admin:
        raise ForbiddenError(detail="Not a party to this booking", booking_id=booking.id)
    return party


def check_transition(
    current: BookingStatus,
    target: BookingStatus,
    party: Party | None,
    is_admin: bool = False,
) -> None:
    allowed = TRANSITIONS.get(current, {}).get(target)
    if allowed is None:
        raise InvalidStateError(
            detail=f"Cannot move a booking from {current.value} to {target.value}",
            current=current.value,
            target=target.value,
        )
    if not is_admin and party not in allowed:
        raise ForbiddenError(
            detail=f"Only the {' or '.join(sorted(allowed))} may move a booking to {target.value}",
            target=target.value,
        )


def duration_hours(start_time: str, end_time: str) -> float:
    return (to_minutes(end_time) - to_minutes(start_time)) / 60


def running_average(average: float, count: int, new_value: float) -> float:
    return (average * count + new_value) / (count + 1)


def compute_stats(rows: Iterable[dict[str, Any]]) -> BookingStats:
    """Aggregate ``{date, status, price}`` rows; revenue counts completed bookings only."""
    by_status: Counter[str] = Counter()
    months: dict[str, list[float]] = {}
    revenue = 0.0
    total = 0
    for row in rows:
        total += 1
        status = BookingStatus(row["status"]).value
        by_status[status] += 1
        month = months.setdefault(row["date"][:7], [0, 0.0])
        month[0] += 1
        if status == BookingStatus.COMPLETED.value:
            price = float(row["price"] or 0)
            revenue += price
            month[1] += price
    return BookingStats(
        total_bookings=total,
        completed_bookings=by_status[BookingStatus.COMPLETED.value],
        cancelled_bookings=by_status[BookingStatus.CANCELLED.value],
        declined_bookings=by_status[BookingStatus.DECLINED.value],
        total_revenue=round(revenue, 2),
        bookings_by_status=dict(by_status),
        bookings_by_month=[
            MonthStats(month=m, bookings=int(v[0]), revenue=round(v[1], 2)) for m, v in sorted(months.items())
        ],
    )


async def _load(booking_id: str, conn=None, for_update: bool = False) -> Booking:
    row = await db.bookings_get(booking_id, conn=conn, for_update=for_update)
    if row is None:
        raise NotFoundError(detail="Booking not found", resource_type="booking", resource_id=booking_id)
    return Booking.model_validate(row)


async def _announce(booking: Booking, event: str) -> None:
    await publish_booking_change(booking, event)
    await dispatch_booking_event(booking, event)


async def create_booking(session: Session, req: CreateBookingRequest) -> Booking:
    with db_errors("create booking"):
        async with db.artist_day_lock(req.artist_id, req.date) as conn:
            artist = await get_artist_or_404(req.artist_id, conn=conn)
            existing = await db.bookings_fetch_for_day(req.artist_id, req.date, conn=conn)
            if not resolve_availability(
                load_schedule(artist), parse_day(req.date), req.start_time, req.end_time, existing
            ):
                raise SchedulingConflictError(
                    detail="The artist is not available at that time",
                    artist_id=req.artist_id,
                    date=req.date,
                    start_time=req.start_time,
                    end_time=req.end_time,
                )
            deposit = req.deposit
            if deposit is None:
                deposit = round(req.price * float(artist.get("deposit_percentage") or 0) / 100, 2)
            row = await db.bookings_insert(
                req.artist_id,
                session.user_id,
                req.date,
                req.start_time,
                req.end_time,
                duration_hours(req.start_time, req.end_time),
                req.price,
                deposit,
                req.design_details.model_dump(),
                conn=conn,
            )
    booking = Booking.model_validate(row)
    logger.info("Booking %s created for artist %s on %s %s-%s", booking.id, booking.artist_id,
                booking.date, booking.start_time, booking.end_time)
    await _announce(booking, "created")
    return booking


async def get_booking(session: Session, booking_id: str) -> Booking:
    with db_errors("load booking"):
        booking = await _load(booking_id)
    require_party(session, booking)
    return booking


async def list_bookings(
    session: Session,
    as_role: Party = "client",
    statuses: list[BookingStatus] | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[Booking]:
    column = "artist_id" if as_role == "artist" else "client_id"
    with db_errors("list bookings"):
        rows = await db.bookings_list(
            column,
            session.user_id,
            statuses=[s.value for s in statuses] if statuses else None,
            limit=limit,
            offset=offset,
        )
    return [Booking.model_validate(r) for r in rows]


async def update_booking(
    session: Session,
    booking_id: str,
    req: UpdateBookingRequest,
    cancel_reason: str | None = None,
) -> Booking:
    with db_errors("load booking"):
        snapshot = await _load(booking_id)
    require_party(session, snapshot)

    target_day = req.date or snapshot.date
    lock = db.artist_day_lock(snapshot.artist_id, target_day) if req.reschedules else db.transaction()
    with db_errors("update booking"):
        async with lock as conn:
            current = await _load(booking_id, conn=conn, for_update=True)
            party = require_party(session, current)
            if current.status in TERMINAL_STATUSES:
                raise InvalidStateError(
                    detail=f"Booking is {current.status.value} and can no longer change",
                    booking_id=booking_id,
                    status=current.status.value,
                )
            if req.reschedules and current.date != target_day and req.date is None:
                # The lock is held for the snapshot's day; the booking has since moved off it.
                raise InvalidStateError(
                    detail="Booking was rescheduled by someone else; reload and try again",
                    booking_id=booking_id,
                    date=current.date,
                )

            updates: dict[str, Any] = {}
            event = "updated"

            if req.status is not None and req.status != current.status:
                check_transition(current.status, req.status, party, session.is_admin)
                updates["status"] = req.status.value
                if req.status is BookingStatus.CANCELLED:
                    updates["cancel_reason"] = cancel_reason or ""
                event = req.status.value

            if req.price is not None or req.deposit is not None:
                if party != "artist" and not session.is_admin:
                    raise ForbiddenError(detail="Only the artist may change pricing", booking_id=booking_id)
                if req.price is not None:
                    updates["price"] = req.price
                if req.deposit is not None:
                    updates["deposit"] = req.deposit

            if req.design_details is not None:
                updates["design_details"] = req.design_details.model_dump()

            if req.reschedules:
                start_time = req.start_time or current.start_time
                end_time = req.end_time or current.end_time
                if to_minutes(start_time) >= to_minutes(end_time):
                    raise BadRequestError(detail="start_time must be before end_time")
                artist = await get_artist_or_404(current.artist_id, conn=conn)
                existing = await db.bookings_fetch_for_day(current.artist_id, target_day, conn=conn)
                if not resolve_availability(
                    load_schedule(artist), parse_day(target_day), start_time, end_time, existing,
                    exclude_id=booking_id,
                ):
                    raise SchedulingConflictError(
                        detail="The artist is not available at that time",
                        artist_id=current.artist_id,
                        date=target_day,
                        start_time=start_time,
                        end_time=end_time,
                    )
                updates.update(
                    date=target_day,
                    start_time=start_time,
                    end_time=end_time,
                    duration=duration_hours(start_time, end_time),
                )
                if "status" not in updates:
                    event = "rescheduled"

            if not updates:
                return current
            row = await db.bookings_update(booking_id, updates, conn=conn)

    booking = Booking.model_validate(row)
    logger.info("Booking %s %s by %s", booking_id, event, session.user_id)
    await _announce(booking, event)
    return booking


async def cancel_booking(session: Session, booking_id: str, reason: str = "") -> Booking:
    return await update_booking(
        session,
        booking_id,
        UpdateBookingRequest(status=BookingStatus.CANCELLED),
        cancel_reason=reason,
    )


async def delete_booking(session: Session, booking_id: str) -> None:
    with db_errors("delete booking"):
        async with db.transaction() as conn:
            booking = await _load(booking_id, conn=conn, for_update=True)
            require_party(session, booking)
            if booking.status is not BookingStatus.PENDING:
                raise InvalidStateError(
                    detail="Only pending bookings can be deleted; cancel it instead",
                    booking_id=booking_id,
                    status=booking.status.value,
                )
            await db.bookings_delete(booking_id, conn=conn)
    logger.info("Booking %s deleted by %s", booking_id, session.user_id)
    await _announce(booking, "deleted")


async def add_booking_message(session: Session, booking_id: str, text: str) -> BookingMessage:
    with db_errors("load booking"):
        booking = await _load(booking_id)
    require_party(session, booking)
    message = BookingMessage(id=secrets.token_hex(8), author_id=session.user_id, text=text, created_at=now_iso())
    with db_errors("add message"):
        found = await db.bookings_append_message(booking_id, message.model_dump())
    if not found:
        raise NotFoundError(detail="Booking not found", resource_type="booking", resource_id=booking_id)
    await _announce(booking, "message")
    return message


async def add_booking_rating(session: Session, booking_id: str, rating: int, review: str = "") -> BookingRating:
    with db_errors("rate booking"):
        async with db.transaction() as conn:
            booking = await _load(booking_id, conn=conn, for_update=True)
            if session.user_id != booking.client_id:
                raise ForbiddenError(detail="Only the client can rate a booking", booking_id=booking_id)
            if booking.status is not BookingStatus.COMPLETED:
                raise InvalidStateError(
                    detail="Only completed bookings can be rated",
                    booking_id=booking_id,
                    status=booking.status.value,
                )
            if booking.rating is not None:
                raise AlreadyRatedError(detail="Booking has already been rated", booking_id=booking_id)

            artist = await get_artist_or_404(booking.artist_id, conn=conn, for_update=True)
            total = int(artist.get("total_ratings") or 0)
            average = running_average(float(artist.get("average_rating") or 0), total, rating)

            result = BookingRating(rating=rating, review=review, created_at=now_iso())
            row = await db.bookings_update(booking_id, {"rating": result.model_dump()}, conn=conn)
            await db.artists_set_rating(booking.artist_id, average, total + 1, conn=conn)

    logger.info("Booking %s rated %d; artist %s now %.2f over %d", booking_id, rating,
                booking.artist_id, average, total + 1)
    await _announce(Booking.model_validate(row), "rated")
    return result


async def pay_deposit(session: Session, booking_id: str) -> Booking:
    with db_errors("load booking"):
        booking = await _load(booking_id)
    if session.user_id != booking.client_id:
        raise ForbiddenError(detail="Only the client can pay the deposit", booking_id=booking_id)
    if booking.status in TERMINAL_STATUSES:
        raise InvalidStateError(detail=f"Booking is {booking.status.value}", booking_id=booking_id)
    if booking.deposit_paid:
        raise InvalidStateError(detail="Deposit already paid", booking_id=booking_id)
    if booking.deposit <= 0:
        raise InvalidStateError(detail="No deposit is due for this booking", booking_id=booking_id)

    # Only the caller holding the claim may charge the gateway.
    with db_errors("claim deposit"):
        claimed = await db.bookings_claim_deposit(booking_id)
    if not claimed:
        raise InvalidStateError(detail="Deposit is already paid or being processed", booking_id=booking_id)

    try:
        result = await process_payment(booking.deposit, session.email, f"Deposit for booking {booking_id}")
    except Exception:
        await db.bookings_release_deposit(booking_id)
        raise

    currency = get_settings().payment.currency
    with db_errors("record payment"):
        if not result.success:
            await db.bookings_release_deposit(booking_id)
            await db.payments_record(session.user_id, "deposit", booking.deposit, currency, "failed",
                                     booking_id=booking_id)
            raise PaymentRequiredError(detail=result.error or "Payment declined", booking_id=booking_id)
        async with db.transaction() as conn:
            row = await db.bookings_update(
                booking_id,
                {
                    "deposit_paid": True,
                    "deposit_pending": False,
                    "deposit_transaction_id": result.transaction_id,
                },
                conn=conn,
            )
            await db.payments_record(session.user_id, "deposit", booking.deposit, currency, "succeeded",
                                     transaction_id=result.transaction_id, booking_id=booking_id, conn=conn)
    if row is None:
        raise NotFoundError(detail="Booking not found", resource_type="booking", resource_id=booking_id)

    updated = Booking.model_validate(row)
    logger.info("Deposit paid for booking %s tx=%s", booking_id, result.transaction_id)
    await _announce(updated, "deposit_paid")
    return updated


async def booking_stats(
    session: Session,
    artist_id: str | None = None,
    start_date: str | None = None,
    end_date: str | None = None,
) -> BookingStats:
    if not session.is_admin:
        if session.role is not Role.ARTIST:
            raise ForbiddenError(detail="Only artists and admins can view booking statistics")
        if artist_id and artist_id != session.user_id:
            raise ForbiddenError(detail="Artists can only view their own statistics")
        artist_id = session.user_id
    for value, field in ((start_date, "start_date"), (end_date, "end_date")):
        if value:
            parse_day(value, field)
    with db_errors("compute booking statistics"):
        rows = await db.bookings_fetch_for_stats(artist_id, start_date, end_date)
    return compute_stats(rows)
