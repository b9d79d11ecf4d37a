from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, Field, field_validator

from inkbook.models.availability import AvailabilitySchedule


class Role(str, Enum):
    USER = "user"
    ARTIST = "artist"
    ADMIN = "admin"


@dataclass(frozen=True)
class Session:
    """Identity of the caller, as vouched for by the auth provider."""

    user_id: str
    email: str
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN


class User(BaseModel):
    id: str
    email: str
    name: str
    role: Role
    credits: int
    created_at: str
    updated_at: str


class EnsureUserRequest(BaseModel):
    name: str = ""

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if len(v) > 200:
            raise ValueError("name must be at most 200 characters")
        return v


class ArtistProfile(BaseModel):
    id: str
    display_name: str
    bio: str = ""
    specialties: list[str] = Field(default_factory=list)
    hourly_rate: float = 0.0
    deposit_percentage: float = 0.0
    availability: AvailabilitySchedule = Field(default_factory=AvailabilitySchedule)
    average_rating: float = 0.0
    total_ratings: int = 0
    created_at: str
    updated_at: str


class ArtistProfileRequest(BaseModel):
    display_name: str
    bio: str = ""
    specialties: list[str] = Field(default_factory=list)
    hourly_rate: float = Field(default=0.0, ge=0)
    deposit_percentage: float = Field(default=0.0, ge=0, le=100)

    @field_validator("display_name")
    @classmethod
    def validate_display_name(cls, v: str) -> str:
        v = v.strip()
        if not v or len(v) > 200:
            raise ValueError("display_name must be 1-200 characters")
        return v


class ArtistProfileUpdate(BaseModel):
    display_name: str | None = None
    bio: str | None = None
    specialties: list[str] | None = None
    hourly_rate: float | None = Field(default=None, ge=0)
    deposit_percentage: float | None = Field(default=None, ge=0, le=100)


class ArtistStats(BaseModel):
    artist_id: str
    average_rating: float
    total_ratings: int
    total_bookings: int
    completed_bookings: int
    total_earnings: float
