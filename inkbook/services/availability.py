import logging
from datetime import date

from pydantic import ValidationError

from inkbook import db
from inkbook.availability import build_day_schedules, resolve_availability, validate_schedule
from inkbook.config import get_settings
from inkbook.errors import BadRequestError, NotFoundError
from inkbook.models.availability import AvailabilityCheck, AvailabilitySchedule, DaySchedule
from inkbook.services.common import db_errors

logger = logging.getLogger(__name__)


def load_schedule(artist: dict) -> AvailabilitySchedule:
    """Parse the stored availability document of an artist row.

    A document that no longer validates leaves the artist with no open
    time rather than failing every request that touches them.
    """
    try:
        return validate_schedule(artist.get("availability") or {})
    except ValidationError:
        logger.warning("Stored availability for artist %s is invalid; treating as closed", artist.get("id"))
        return AvailabilitySchedule()


def parse_day(value: str, field: str = "date") -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise BadRequestError(detail=f"{field} must be an ISO date (YYYY-MM-DD)", **{field: value}) from None


async def get_artist_or_404(artist_id: str, conn=None, for_update: bool = False) -> dict:
    artist = await db.artists_get(artist_id, conn=conn, for_update=for_update)
    if artist is None:
        raise NotFoundError(detail="Artist not found", resource_type="artist", resource_id=artist_id)
    return artist


async def is_artist_available(
    artist_id: str,
    day: str,
    start_time: str,
    end_time: str,
    exclude_booking_id: str | None = None,
) -> bool:
    d = parse_day(day)
    with db_errors("check availability"):
        artist = await get_artist_or_404(artist_id)
        bookings = await db.bookings_fetch_for_day(artist_id, day)
    return resolve_availability(load_schedule(artist), d, start_time, end_time, bookings, exclude_booking_id)


async def check_availability(artist_id: str, day: str, start_time: str, end_time: str) -> AvailabilityCheck:
    available = await is_artist_available(artist_id, day, start_time, end_time)
    return AvailabilityCheck(
        artist_id=artist_id,
        date=day,
        start_time=start_time,
        end_time=end_time,
        available=available,
    )


async def get_day_schedules(artist_id: str, start_day: str, end_day: str) -> list[DaySchedule]:
    start, end = parse_day(start_day, "start_date"), parse_day(end_day, "end_date")
    if end < start:
        raise BadRequestError(detail="end_date must not be before start_date")
    max_days = get_settings().booking.max_range_days
    if (end - start).days + 1 > max_days:
        raise BadRequestError(detail=f"Range may span at most {max_days} days")
    with db_errors("load schedule"):
        artist = await get_artist_or_404(artist_id)
        bookings = await db.bookings_fetch_range(artist_id, start_day, end_day)
    return build_day_schedules(
        load_schedule(artist),
        start,
        end,
        bookings,
        slot_minutes=get_settings().booking.slot_minutes,
    )
