from fastapi import APIRouter, Query

from inkbook.dependencies import CurrentSession
from inkbook.models.availability import AvailabilityCheck, AvailabilitySchedule, DaySchedule
from inkbook.models.users import ArtistProfile, ArtistProfileUpdate, ArtistStats
from inkbook.services import artists, availability

router = APIRouter(prefix="/artists", tags=["artists"])

HHMM = r"^([01]\d|2[0-3]):[0-5]\d$"


@router.get("/{artist_id}", response_model=ArtistProfile)
async def read_artist(artist_id: str) -> ArtistProfile:
    return await artists.get_artist(artist_id)


@router.patch("/{artist_id}", response_model=ArtistProfile)
async def update_artist(artist_id: str, body: ArtistProfileUpdate, session: CurrentSession) -> ArtistProfile:
    return await artists.update_artist_profile(session, artist_id, body)


@router.get("/{artist_id}/availability", response_model=AvailabilitySchedule)
async def read_availability(artist_id: str) -> AvailabilitySchedule:
    return await artists.get_availability(artist_id)


@router.put("/{artist_id}/availability", response_model=AvailabilitySchedule)
async def replace_availability(
    artist_id: str,
    body: AvailabilitySchedule,
    session: CurrentSession,
) -> AvailabilitySchedule:
    return await artists.replace_availability(session, artist_id, body)


@router.get("/{artist_id}/availability/check", response_model=AvailabilityCheck)
async def check_availability(
    artist_id: str,
    date: str = Query(..., description="Day to check (YYYY-MM-DD)"),
    start_time: str = Query(..., pattern=HHMM),
    end_time: str = Query(..., pattern=HHMM),
) -> AvailabilityCheck:
    return await availability.check_availability(artist_id, date, start_time, end_time)


@router.get("/{artist_id}/schedule", response_model=list[DaySchedule])
async def read_schedule(
    artist_id: str,
    start_date: str = Query(..., description="First day (YYYY-MM-DD)"),
    end_date: str = Query(..., description="Last day, inclusive (YYYY-MM-DD)"),
) -> list[DaySchedule]:
    return await availability.get_day_schedules(artist_id, start_date, end_date)


@router.get("/{artist_id}/stats", response_model=ArtistStats)
async def read_artist_stats(artist_id: str) -> ArtistStats:
    return await artists.artist_stats(artist_id)
