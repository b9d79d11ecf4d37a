from fastapi import APIRouter

from inkbook.dependencies import CurrentSession
from inkbook.models.users import ArtistProfile, ArtistProfileRequest, EnsureUserRequest, User
from inkbook.services import artists

router = APIRouter(prefix="/users", tags=["users"])


@router.post("/me", response_model=User)
async def ensure_me(session: CurrentSession, body: EnsureUserRequest | None = None) -> User:
    return await artists.ensure_user(session, body.name if body else "")


@router.get("/me", response_model=User)
async def read_me(session: CurrentSession) -> User:
    return await artists.get_user(session)


@router.post("/me/artist", response_model=ArtistProfile, status_code=201)
async def become_artist(body: ArtistProfileRequest, session: CurrentSession) -> ArtistProfile:
    return await artists.become_artist(session, body)
