import re
from datetime import date

from pydantic import BaseModel, Field, field_validator, model_validator

TIME_RE = re.compile(r"^(?:[01]\d|2[0-3]):[0-5]\d$")

WEEKDAYS = (
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
)


def validate_hhmm(value: str) -> str:
    if not TIME_RE.match(value):
        raise ValueError(f"invalid time format: {value}")
    return value


def _check_day(label: str, slots: list["TimeSlot"]) -> None:
    ordered = sorted(slots, key=lambda s: s.start)
    for prev, cur in zip(ordered, ordered[1:]):
        if cur.start < prev.end:
            raise ValueError(
                f"overlapping slots on {label}: {prev.start}-{prev.end} and {cur.start}-{cur.end}"
            )


class TimeSlot(BaseModel):
    start: str
    end: str
    is_booked: bool = False
    booking_id: str | None = None

    @field_validator("start", "end")
    @classmethod
    def check_format(cls, v: str) -> str:
        return validate_hhmm(v)

    @model_validator(mode="after")
    def check_order(self) -> "TimeSlot":
        if self.start >= self.end:
            raise ValueError(f"slot start {self.start} must be before end {self.end}")
        return self


class AvailabilitySchedule(BaseModel):
    """Recurring weekly hours, per-date overrides and blocked dates."""

    model_config = {"populate_by_name": True}

    weekly_schedule: dict[str, list[TimeSlot]] = Field(default_factory=dict)
    special_dates: dict[str, list[TimeSlot]] = Field(
        default_factory=dict,
        validation_alias="customAvailability",
    )
    blocked_dates: list[str] = Field(default_factory=list)
    timezone: str = "UTC"

    @field_validator("weekly_schedule", mode="before")
    @classmethod
    def normalise_weekdays(cls, v):
        if not isinstance(v, dict):
            return v
        out = {}
        for name, slots in v.items():
            canonical = str(name).strip().capitalize()
            if canonical not in WEEKDAYS:
                raise ValueError(f"invalid weekday: {name}")
            out[canonical] = slots
        return out

    @field_validator("special_dates")
    @classmethod
    def check_special_dates(cls, v: dict[str, list[TimeSlot]]) -> dict[str, list[TimeSlot]]:
        for d in v:
            date.fromisoformat(d)
        return v

    @field_validator("blocked_dates")
    @classmethod
    def check_blocked_dates(cls, v: list[str]) -> list[str]:
        seen: list[str] = []
        for d in v:
            date.fromisoformat(d)
            if d not in seen:
                seen.append(d)
        return seen

    @model_validator(mode="after")
    def check_no_overlaps(self) -> "AvailabilitySchedule":
        for day, slots in self.weekly_schedule.items():
            _check_day(day, slots)
        for d, slots in self.special_dates.items():
            _check_day(d, slots)
        return self


class SlotView(BaseModel):
    start_time: str
    end_time: str
    available: bool
    booking_id: str | None = None


class DaySchedule(BaseModel):
    date: str
    is_available: bool
    slots: list[SlotView]
    total_bookings: int


class AvailabilityCheck(BaseModel):
    artist_id: str
    date: str
    start_time: str
    end_time: str
    available: bool
