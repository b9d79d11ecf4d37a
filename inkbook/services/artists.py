import logging

from inkbook import db
from inkbook.errors import InvalidStateError, NotFoundError
from inkbook.models.availability import AvailabilitySchedule
from inkbook.models.bookings import BookingStatus
from inkbook.models.users import (
    ArtistProfile,
    ArtistProfileRequest,
    ArtistProfileUpdate,
    ArtistStats,
    Role,
    Session,
    User,
)
from inkbook.services.availability import get_artist_or_404, load_schedule
from inkbook.services.common import db_errors, require_self_or_admin

logger = logging.getLogger(__name__)


def _profile(artist: dict) -> ArtistProfile:
    return ArtistProfile.model_validate({**artist, "availability": load_schedule(artist)})


async def ensure_user(session: Session, name: str = "") -> User:
    with db_errors("save user"):
        row = await db.users_upsert(session.user_id, session.email, name, session.role.value)
    return User.model_validate(row)


async def get_user(session: Session) -> User:
    with db_errors("load user"):
        row = await db.users_get(session.user_id)
    if row is None:
        raise NotFoundError(detail="User not found", resource_type="user", resource_id=session.user_id)
    return User.model_validate(row)


async def become_artist(session: Session, req: ArtistProfileRequest) -> ArtistProfile:
    with db_errors("create artist profile"):
        async with db.transaction() as conn:
            if await db.artists_get(session.user_id, conn=conn) is not None:
                raise InvalidStateError(detail="Artist profile already exists", artist_id=session.user_id)
            if await db.users_get(session.user_id, conn=conn) is None:
                await db.users_upsert(session.user_id, session.email, req.display_name, Role.USER.value, conn=conn)
            row = await db.artists_insert(
                session.user_id,
                req.display_name,
                req.bio,
                req.specialties,
                req.hourly_rate,
                req.deposit_percentage,
                AvailabilitySchedule().model_dump(mode="json"),
                conn=conn,
            )
            if not session.is_admin:
                await db.users_set_role(session.user_id, Role.ARTIST.value, conn=conn)
    logger.info("User %s became an artist", session.user_id)
    return _profile(row)


async def get_artist(artist_id: str) -> ArtistProfile:
    with db_errors("load artist"):
        return _profile(await get_artist_or_404(artist_id))


async def update_artist_profile(session: Session, artist_id: str, req: ArtistProfileUpdate) -> ArtistProfile:
    require_self_or_admin(session, artist_id)
    updates = req.model_dump(exclude_none=True)
    with db_errors("update artist"):
        row = await db.artists_update_profile(artist_id, updates)
    if row is None:
        raise NotFoundError(detail="Artist not found", resource_type="artist", resource_id=artist_id)
    return _profile(row)


async def get_availability(artist_id: str) -> AvailabilitySchedule:
    with db_errors("load availability"):
        return load_schedule(await get_artist_or_404(artist_id))


async def replace_availability(
    session: Session,
    artist_id: str,
    schedule: AvailabilitySchedule,
) -> AvailabilitySchedule:
    require_self_or_admin(session, artist_id)
    with db_errors("save availability"):
        found = await db.artists_set_availability(artist_id, schedule.model_dump(mode="json"))
    if not found:
        raise NotFoundError(detail="Artist not found", resource_type="artist", resource_id=artist_id)
    logger.info("Availability replaced for artist %s", artist_id)
    return schedule


async def artist_stats(artist_id: str) -> ArtistStats:
    with db_errors("compute artist statistics"):
        artist = await get_artist_or_404(artist_id)
        rows = await db.bookings_fetch_for_stats(artist_id)
    completed = [r for r in rows if r["status"] == BookingStatus.COMPLETED.value]
    return ArtistStats(
        artist_id=artist_id,
        average_rating=round(float(artist.get("average_rating") or 0), 2),
        total_ratings=int(artist.get("total_ratings") or 0),
        total_bookings=len(rows),
        completed_bookings=len(completed),
        total_earnings=round(sum(float(r["price"] or 0) for r in completed), 2),
    )
