"""Shared test fixtures and helpers."""

from datetime import date, datetime, time
from typing import Optional

import pytest

from clinic_scheduler.schemas.appointment_schema import (
    AppointmentRequest,
    Caller,
    CallerRole,
)
from clinic_scheduler.schemas.notification_schema import NotificationEvent
from clinic_scheduler.schemas.schedule_schema import DayOfWeek, ScheduleWindow
from clinic_scheduler.scheduling.calendar import ScheduleCalendar
from clinic_scheduler.scheduling.coordinator import AppointmentCoordinator
from clinic_scheduler.scheduling.state_machine import AppointmentStateMachine
from clinic_scheduler.scheduling.validation import ValidationPipeline
from clinic_scheduler.store.appointment_store import InMemoryAppointmentStore
from clinic_scheduler.store.directory import ClinicDirectory, seed_demo_directory
from clinic_scheduler.store.sqlite_store import SQLiteAppointmentStore

# A Monday far enough ahead that "not in the past" never trips.
MONDAY = date(2030, 1, 7)
TUESDAY = date(2030, 1, 8)
# Fixed "now" for the coordinator: the Sunday before, at noon.
NOW = datetime(2030, 1, 6, 12, 0)


class RecordingDispatcher:
    """Synchronous dispatcher that keeps every event it is handed."""

    def __init__(self) -> None:
        self.events: list[NotificationEvent] = []

    def notify(self, event: NotificationEvent) -> None:
        self.events.append(event)

    def kinds(self) -> list[str]:
        return [e.kind.value for e in self.events]


class FailingDispatcher:
    """Dispatcher whose handoff always blows up."""

    def __init__(self) -> None:
        self.calls = 0

    def notify(self, event: NotificationEvent) -> None:
        self.calls += 1
        raise RuntimeError("notification queue unavailable")


def make_window(
    provider_id: str = "vet-1",
    day: DayOfWeek = DayOfWeek.MONDAY,
    start: time = time(9, 0),
    end: time = time(12, 0),
    slot_minutes: int = 30,
    **kwargs,
) -> ScheduleWindow:
    """Helper to create a ScheduleWindow."""
    return ScheduleWindow(
        provider_id=provider_id,
        day_of_week=day,
        start_time=start,
        end_time=end,
        slot_duration_minutes=slot_minutes,
        **kwargs,
    )


def make_request(
    provider_id: str = "vet-1",
    patient_id: str = "pet-1",
    service_id: str = "svc-consult",
    day: Optional[date] = MONDAY,
    at: Optional[time] = time(9, 0),
    motive: str = "Annual check-up",
    is_emergency: bool = False,
    **kwargs,
) -> AppointmentRequest:
    """Helper to create an AppointmentRequest with sensible defaults."""
    return AppointmentRequest(
        provider_id=provider_id,
        patient_id=patient_id,
        service_id=service_id,
        date=day,
        time=at,
        motive=motive,
        is_emergency=is_emergency,
        **kwargs,
    )


@pytest.fixture
def receptionist() -> Caller:
    return Caller(user_id="desk-1", role=CallerRole.RECEPTIONIST)


@pytest.fixture
def directory() -> ClinicDirectory:
    return seed_demo_directory()


@pytest.fixture
def calendar() -> ScheduleCalendar:
    cal = ScheduleCalendar()
    cal.add_window(make_window("vet-1"))
    cal.add_window(make_window("vet-1", start=time(14, 0), end=time(17, 0), slot_minutes=60))
    cal.add_window(make_window("vet-2"))
    return cal


@pytest.fixture
def store() -> InMemoryAppointmentStore:
    return InMemoryAppointmentStore()


@pytest.fixture
def sqlite_store():
    db = SQLiteAppointmentStore(":memory:")
    db.init_schema()
    yield db
    db.close()


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
def state_machine() -> AppointmentStateMachine:
    return AppointmentStateMachine()


@pytest.fixture
def pipeline(directory, calendar, store) -> ValidationPipeline:
    return ValidationPipeline(directory, calendar, store)


@pytest.fixture
def coordinator(store, dispatcher, directory, calendar) -> AppointmentCoordinator:
    return AppointmentCoordinator(
        store=store,
        dispatcher=dispatcher,
        directory=directory,
        calendar=calendar,
        clock=lambda: NOW,
    )
