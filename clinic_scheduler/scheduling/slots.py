"""
Slot generation from a provider's windows for one day.

A slot is occupied only when a non-cancelled appointment starts exactly at
the slot's start time. A longer appointment does not shadow the slots that
follow it.
"""

from collections.abc import Iterable, Iterator
from datetime import time
from typing import Optional

from clinic_scheduler.schemas.appointment_schema import Appointment, AppointmentState
from clinic_scheduler.schemas.schedule_schema import ScheduleWindow, Slot
from clinic_scheduler.utils import from_minutes, to_minutes

BOOKED = "BOOKED"


class SlotGenerator:
    """Turns windows plus existing bookings into an ordered slot sequence."""

    def generate(
        self,
        windows: Iterable[ScheduleWindow],
        appointments: Iterable[Appointment],
    ) -> Iterator[Slot]:
        """Yield slots in ascending time across all windows of the day.

        ``windows`` must be the day's active, non-overlapping windows.
        Cancelled appointments in ``appointments`` are ignored.
        """
        taken = {
            appt.time for appt in appointments
            if appt.state != AppointmentState.CANCELLED and appt.time is not None
        }
        for window in sorted(windows, key=lambda w: w.start_time):
            duration = window.slot_duration_minutes
            start = to_minutes(window.start_time)
            end = to_minutes(window.end_time)
            while start + duration <= end:
                slot_time = from_minutes(start)
                if slot_time in taken:
                    yield Slot(time=slot_time, duration_minutes=duration,
                               available=False, reason_unavailable=BOOKED)
                else:
                    yield Slot(time=slot_time, duration_minutes=duration)
                start += duration


def find_slot(slots: Iterable[Slot], at: time) -> Optional[Slot]:
    """Return the slot starting at ``at``, or None if no slot starts then."""
    for slot in slots:
        if slot.time == at:
            return slot
        if slot.time > at:
            return None
    return None
