"""
Appointment persistence boundary.

The store is where the double-booking rule is finally enforced: at most
one non-cancelled appointment per (provider_id, date, time). Validators
check the same thing earlier, but two concurrent requests can both pass
validation against the same read, so the store must reject the loser.
"""

import logging
import threading
from datetime import date
from typing import Optional, Protocol

from clinic_scheduler.errors import NotFoundError, StaleStateError, UniqueViolationError
from clinic_scheduler.schemas.appointment_schema import Appointment, AppointmentState
from clinic_scheduler.utils import generate_id

logger = logging.getLogger(__name__)


class PersistenceStore(Protocol):
    """What the scheduling core needs from appointment storage."""

    def save(
        self,
        appointment: Appointment,
        expected_state: Optional[AppointmentState] = None,
    ) -> Appointment:
        """Insert (no id) or update (with id) an appointment.

        Raises:
            UniqueViolationError: If the write would double-book a slot.
            StaleStateError: If ``expected_state`` no longer matches storage.
            PersistenceError: For any other storage failure.
        """
        ...

    def find_by_id(self, appointment_id: str) -> Optional[Appointment]:
        ...

    def find_by_provider_and_date_range(
        self, provider_id: str, start: date, end: date
    ) -> list[Appointment]:
        """Appointments of one provider with ``start <= date <= end``, any state."""
        ...

    def find_by_date_range(self, start: date, end: date) -> list[Appointment]:
        ...


def slot_key(appointment: Appointment) -> tuple[str, Optional[date], object]:
    return appointment.provider_id, appointment.date, appointment.time


class InMemoryAppointmentStore:
    """Dict-backed store; a single lock serializes the uniqueness check and the write."""

    def __init__(self) -> None:
        self._appointments: dict[str, Appointment] = {}
        self._lock = threading.Lock()

    def save(
        self,
        appointment: Appointment,
        expected_state: Optional[AppointmentState] = None,
    ) -> Appointment:
        with self._lock:
            if appointment.id is None:
                appointment = appointment.model_copy(update={"id": generate_id("apt")})
            elif expected_state is not None:
                stored = self._appointments.get(appointment.id)
                if stored is None:
                    raise NotFoundError("Appointment", appointment.id)
                if stored.state != expected_state:
                    raise StaleStateError(
                        appointment.id, expected_state.value, stored.state.value
                    )

            if appointment.state != AppointmentState.CANCELLED:
                key = slot_key(appointment)
                for other in self._appointments.values():
                    if (
                        other.id != appointment.id
                        and other.state != AppointmentState.CANCELLED
                        and slot_key(other) == key
                    ):
                        raise UniqueViolationError(
                            f"Provider '{appointment.provider_id}' already has an appointment "
                            f"on {appointment.date} at {appointment.time}"
                        )

            self._appointments[appointment.id] = appointment
        logger.debug("Appointment saved: %s (%s)", appointment.id, appointment.state.value)
        return appointment

    def find_by_id(self, appointment_id: str) -> Optional[Appointment]:
        with self._lock:
            return self._appointments.get(appointment_id)

    def find_by_provider_and_date_range(
        self, provider_id: str, start: date, end: date
    ) -> list[Appointment]:
        with self._lock:
            found = [
                a for a in self._appointments.values()
                if a.provider_id == provider_id and a.date is not None and start <= a.date <= end
            ]
        return sorted(found, key=lambda a: (a.date, a.time))

    def find_by_date_range(self, start: date, end: date) -> list[Appointment]:
        with self._lock:
            found = [
                a for a in self._appointments.values()
                if a.date is not None and start <= a.date <= end
            ]
        return sorted(found, key=lambda a: (a.date, a.time))

    def reset(self) -> None:
        """Clear all appointments. Used by test fixtures for isolation."""
        with self._lock:
            self._appointments.clear()
