"""Schedule windows, derived slots and day availability models."""

import datetime as dt
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from clinic_scheduler.config import settings
from clinic_scheduler.schemas.appointment_schema import Appointment
from clinic_scheduler.utils import generate_id, minutes_between


class DayOfWeek(str, Enum):
    MONDAY = "MONDAY"
    TUESDAY = "TUESDAY"
    WEDNESDAY = "WEDNESDAY"
    THURSDAY = "THURSDAY"
    FRIDAY = "FRIDAY"
    SATURDAY = "SATURDAY"
    SUNDAY = "SUNDAY"

    @classmethod
    def from_date(cls, day: dt.date) -> "DayOfWeek":
        return list(cls)[day.weekday()]


class ScheduleWindow(BaseModel):
    """A provider's recurring weekly interval of availability on one day."""
    id: str = Field(default_factory=lambda: generate_id("win"))
    provider_id: str
    day_of_week: DayOfWeek
    start_time: dt.time
    end_time: dt.time
    slot_duration_minutes: int = Field(
        default_factory=lambda: settings.scheduling.default_slot_minutes
    )
    max_concurrent_bookings: int = Field(
        default_factory=lambda: settings.scheduling.default_max_concurrent
    )
    active: bool = True
    created_at: dt.datetime = Field(
        default_factory=lambda: dt.datetime.now(dt.timezone.utc)
    )

    @model_validator(mode="after")
    def _check_bounds(self) -> "ScheduleWindow":
        sched = settings.scheduling
        if self.start_time >= self.end_time:
            raise ValueError("start_time must be before end_time")
        if not sched.min_slot_minutes <= self.slot_duration_minutes <= sched.max_slot_minutes:
            raise ValueError(
                f"slot_duration_minutes must be between {sched.min_slot_minutes} "
                f"and {sched.max_slot_minutes}"
            )
        if not 1 <= self.max_concurrent_bookings <= sched.max_concurrent_limit:
            raise ValueError(
                f"max_concurrent_bookings must be between 1 and {sched.max_concurrent_limit}"
            )
        if minutes_between(self.start_time, self.end_time) < self.slot_duration_minutes:
            raise ValueError("window is shorter than a single slot")
        return self


class WindowRequest(BaseModel):
    """Schedule-management payload for a new window."""
    day_of_week: DayOfWeek
    start_time: dt.time
    end_time: dt.time
    slot_duration_minutes: Optional[int] = None
    max_concurrent_bookings: Optional[int] = None


class Slot(BaseModel):
    """Discrete bookable unit derived from a window. Never stored."""
    time: dt.time
    duration_minutes: int
    available: bool = True
    reason_unavailable: Optional[str] = None


class DayAvailability(BaseModel):
    """A provider's windows, computed slots and occupying appointments for one date."""
    provider_id: str
    date: dt.date
    day_of_week: DayOfWeek
    windows: list[ScheduleWindow] = Field(default_factory=list)
    slots: list[Slot] = Field(default_factory=list)
    appointments: list[Appointment] = Field(default_factory=list)
