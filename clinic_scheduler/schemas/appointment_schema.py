"""Appointment data models and the per-request validation context."""

import datetime as dt
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class AppointmentState(str, Enum):
    """All possible states in an appointment lifecycle."""
    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    ATTENDED = "attended"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


class CallerRole(str, Enum):
    """Roles a caller may act under."""
    ADMIN = "admin"
    RECEPTIONIST = "receptionist"
    VETERINARIAN = "veterinarian"
    OWNER = "owner"
    ASSISTANT = "assistant"


class Caller(BaseModel):
    """Identity of whoever is asking for the booking or state change."""
    user_id: str = "anonymous"
    role: CallerRole
    owner_id: Optional[str] = None
    provider_id: Optional[str] = None

    @classmethod
    def system(cls) -> "Caller":
        """Internal caller used by background tasks and the console demo."""
        return cls(user_id="system", role=CallerRole.ADMIN)


class AppointmentRequest(BaseModel):
    """Candidate booking as submitted by a client.

    Every field is optional at the model level so that missing data is
    reported by the validation pipeline rather than by request parsing.
    """
    provider_id: str = ""
    patient_id: str = ""
    service_id: str = ""
    date: Optional[dt.date] = None
    time: Optional[dt.time] = None
    motive: str = ""
    is_emergency: bool = False
    observations: Optional[str] = None
    duration_minutes: Optional[int] = None


class RescheduleRequest(BaseModel):
    """New date and/or time; an omitted field keeps its current value."""
    date: Optional[dt.date] = None
    time: Optional[dt.time] = None


class CancelRequest(BaseModel):
    reason: str = ""


class Appointment(BaseModel):
    """Booked appointment.

    ``date``, ``time`` and ``duration_minutes`` are only optional while the
    appointment is a candidate; anything persisted has all three.
    """
    id: Optional[str] = None
    provider_id: str
    patient_id: str
    service_id: str
    date: Optional[dt.date] = None
    time: Optional[dt.time] = None
    duration_minutes: Optional[int] = None
    is_emergency: bool = False
    motive: str = ""
    observations: Optional[str] = None
    final_price: Optional[Decimal] = None
    state: AppointmentState = AppointmentState.SCHEDULED
    cancellation_reason: Optional[str] = None
    created_at: dt.datetime = Field(default_factory=_utcnow)
    updated_at: Optional[dt.datetime] = None

    @property
    def starts_at(self) -> Optional[dt.datetime]:
        if self.date is None or self.time is None:
            return None
        return dt.datetime.combine(self.date, self.time)


class ValidationContext(BaseModel):
    """Everything the validation pipeline needs for one request. Never persisted."""
    candidate: Appointment
    caller: Caller
    stock: dict[str, int] = Field(default_factory=dict)
    exclude_appointment_id: Optional[str] = None
    now: dt.datetime = Field(default_factory=dt.datetime.now)
