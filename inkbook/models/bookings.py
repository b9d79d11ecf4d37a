from datetime import date as date_type
from enum import Enum

from pydantic import BaseModel, Field, field_validator, model_validator

from inkbook.models.availability import validate_hhmm


class BookingStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @classmethod
    def _missing_(cls, value):
        # "confirmed" is what clients of the older booking screens send
        if isinstance(value, str) and value.lower() == "confirmed":
            return cls.ACCEPTED
        return None


ACTIVE_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.ACCEPTED, BookingStatus.IN_PROGRESS})
TERMINAL_STATUSES = frozenset({BookingStatus.COMPLETED, BookingStatus.CANCELLED, BookingStatus.DECLINED})


class DesignDetails(BaseModel):
    description: str = ""
    size: str | None = None
    placement: str | None = None
    style: str | None = None
    colors: bool = False
    reference_images: list[str] = Field(default_factory=list)


class BookingMessage(BaseModel):
    id: str
    author_id: str
    text: str
    created_at: str


class BookingRating(BaseModel):
    rating: int
    review: str = ""
    created_at: str


class Booking(BaseModel):
    id: str
    artist_id: str
    client_id: str
    date: str
    start_time: str
    end_time: str
    duration: float
    status: BookingStatus
    price: float = 0.0
    deposit: float = 0.0
    deposit_paid: bool = False
    deposit_transaction_id: str | None = None
    design_details: DesignDetails = Field(default_factory=DesignDetails)
    messages: list[BookingMessage] = Field(default_factory=list)
    rating: BookingRating | None = None
    cancel_reason: str | None = None
    created_at: str
    updated_at: str

    @property
    def parties(self) -> tuple[str, str]:
        return (self.artist_id, self.client_id)


class CreateBookingRequest(BaseModel):
    artist_id: str
    date: str
    start_time: str
    end_time: str
    price: float = Field(default=0.0, ge=0)
    deposit: float | None = Field(default=None, ge=0)
    design_details: DesignDetails = Field(default_factory=DesignDetails)

    @field_validator("date")
    @classmethod
    def validate_date(cls, v: str) -> str:
        date_type.fromisoformat(v)
        return v

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_time(cls, v: str) -> str:
        return validate_hhmm(v)

    @model_validator(mode="after")
    def validate_interval(self) -> "CreateBookingRequest":
        if self.start_time >= self.end_time:
            raise ValueError("start_time must be before end_time")
        return self


class UpdateBookingRequest(BaseModel):
    date: str | None = None
    start_time: str | None = None
    end_time: str | None = None
    status: BookingStatus | None = None
    price: float | None = Field(default=None, ge=0)
    deposit: float | None = Field(default=None, ge=0)
    design_details: DesignDetails | None = None

    @field_validator("date")
    @classmethod
    def validate_date(cls, v: str | None) -> str | None:
        if v is not None:
            date_type.fromisoformat(v)
        return v

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_time(cls, v: str | None) -> str | None:
        if v is not None:
            validate_hhmm(v)
        return v

    @property
    def reschedules(self) -> bool:
        return any(v is not None for v in (self.date, self.start_time, self.end_time))


class CancelBookingRequest(BaseModel):
    reason: str = ""

    @field_validator("reason")
    @classmethod
    def validate_reason(cls, v: str) -> str:
        v = v.strip()
        if len(v) > 1000:
            raise ValueError("reason must be at most 1000 characters")
        return v


class MessageRequest(BaseModel):
    text: str

    @field_validator("text")
    @classmethod
    def validate_text(cls, v: str) -> str:
        v = v.strip()
        if not v or len(v) > 4000:
            raise ValueError("text must be 1-4000 characters")
        return v


class RatingRequest(BaseModel):
    rating: int = Field(ge=1, le=5)
    review: str = ""


class BookingListResponse(BaseModel):
    bookings: list[Booking]
    limit: int
    offset: int


class MonthStats(BaseModel):
    month: str
    bookings: int
    revenue: float


class BookingStats(BaseModel):
    total_bookings: int
    completed_bookings: int
    cancelled_bookings: int
    declined_bookings: int
    total_revenue: float
    bookings_by_status: dict[str, int]
    bookings_by_month: list[MonthStats]
