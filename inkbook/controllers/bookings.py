from typing import Literal

from fastapi import APIRouter, Query, Response

from inkbook.dependencies import CurrentSession
from inkbook.models.bookings import (
    Booking,
    BookingListResponse,
    BookingMessage,
    BookingRating,
    BookingStats,
    BookingStatus,
    CancelBookingRequest,
    CreateBookingRequest,
    MessageRequest,
    RatingRequest,
    UpdateBookingRequest,
)
from inkbook.services import bookings

router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.post("", response_model=Booking, status_code=201)
async def create_booking(body: CreateBookingRequest, session: CurrentSession) -> Booking:
    return await bookings.create_booking(session, body)


@router.get("", response_model=BookingListResponse)
async def list_bookings(
    session: CurrentSession,
    as_role: Literal["artist", "client"] = Query("client", description="List bookings as artist or client"),
    status: list[BookingStatus] | None = Query(None, description="Filter by status (repeatable)"),
    limit: int = Query(50, ge=1, le=200, description="Maximum number of bookings to return"),
    offset: int = Query(0, ge=0, description="Number of bookings to skip"),
) -> BookingListResponse:
    items = await bookings.list_bookings(session, as_role, status, limit=limit, offset=offset)
    return BookingListResponse(bookings=items, limit=limit, offset=offset)


@router.get("/stats", response_model=BookingStats)
async def read_stats(
    session: CurrentSession,
    artist_id: str | None = Query(None),
    start_date: str | None = Query(None),
    end_date: str | None = Query(None),
) -> BookingStats:
    return await bookings.booking_stats(session, artist_id, start_date, end_date)


@router.get("/{booking_id}", response_model=Booking)
async def read_booking(booking_id: str, session: CurrentSession) -> Booking:
    return await bookings.get_booking(session, booking_id)


@router.patch("/{booking_id}", response_model=Booking)
async def update_booking(booking_id: str, body: UpdateBookingRequest, session: CurrentSession) -> Booking:
    return await bookings.update_booking(session, booking_id, body)


@router.delete("/{booking_id}", status_code=204)
async def delete_booking(booking_id: str, session: CurrentSession) -> Response:
    await bookings.delete_booking(session, booking_id)
    return Response(status_code=204)


@router.post("/{booking_id}/cancel", response_model=Booking)
async def cancel_booking(booking_id: str, session: CurrentSession, body: CancelBookingRequest | None = None) -> Booking:
    return await bookings.cancel_booking(session, booking_id, body.reason if body else "")


@router.post("/{booking_id}/messages", response_model=BookingMessage, status_code=201)
async def add_message(booking_id: str, body: MessageRequest, session: CurrentSession) -> BookingMessage:
    return await bookings.add_booking_message(session, booking_id, body.text)


@router.post("/{booking_id}/rating", response_model=BookingRating, status_code=201)
async def add_rating(booking_id: str, body: RatingRequest, session: CurrentSession) -> BookingRating:
    return await bookings.add_booking_rating(session, booking_id, body.rating, body.review)


@router.post("/{booking_id}/deposit", response_model=Booking)
async def pay_deposit(booking_id: str, session: CurrentSession) -> Booking:
    return await bookings.pay_deposit(session, booking_id)
