"""Lifecycle events handed to the notification dispatcher."""

import datetime as dt
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from clinic_scheduler.schemas.appointment_schema import Appointment


class NotificationKind(str, Enum):
    CREATED = "created"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    ATTENDED = "attended"
    REMINDER = "reminder"


class NotificationEvent(BaseModel):
    """Snapshot of an appointment at the moment something happened to it."""
    kind: NotificationKind
    appointment_id: str
    provider_id: str
    patient_id: str
    date: Optional[dt.date] = None
    time: Optional[dt.time] = None
    reason: Optional[str] = None
    lead_hours: Optional[int] = None
    created_at: dt.datetime = Field(
        default_factory=lambda: dt.datetime.now(dt.timezone.utc)
    )

    @classmethod
    def for_appointment(
        cls,
        kind: NotificationKind,
        appointment: Appointment,
        reason: Optional[str] = None,
        lead_hours: Optional[int] = None,
    ) -> "NotificationEvent":
        return cls(
            kind=kind,
            appointment_id=appointment.id or "",
            provider_id=appointment.provider_id,
            patient_id=appointment.patient_id,
            date=appointment.date,
            time=appointment.time,
            reason=reason,
            lead_hours=lead_hours,
        )
