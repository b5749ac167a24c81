"""
Offline console demo: walks appointments through the scheduling engine.

Uses the real calendar, validation pipeline, state machine and
coordinator with an in-memory store and the demo clinic directory.
No server, no database. Designed for live demo walkthroughs.

Usage:
    python console_demo.py
    python console_demo.py --scenario conflict
    python console_demo.py --scenario emergency
"""

import argparse
import sys
from datetime import date, datetime, time, timedelta

from clinic_scheduler.errors import SchedulingError
from clinic_scheduler.notifications.dispatcher import ThreadPoolDispatcher
from clinic_scheduler.schemas.appointment_schema import AppointmentRequest, Caller, CallerRole
from clinic_scheduler.schemas.notification_schema import NotificationEvent
from clinic_scheduler.schemas.schedule_schema import DayOfWeek, ScheduleWindow
from clinic_scheduler.scheduling.calendar import ScheduleCalendar
from clinic_scheduler.scheduling.coordinator import AppointmentCoordinator
from clinic_scheduler.scheduling.state_machine import AppointmentEvent
from clinic_scheduler.store.appointment_store import InMemoryAppointmentStore
from clinic_scheduler.store.directory import seed_demo_directory

BLUE = "\033[94m"
GREEN = "\033[92m"
YELLOW = "\033[93m"
RED = "\033[91m"
DIM = "\033[2m"
RESET = "\033[0m"
BOLD = "\033[1m"


def _next_weekday(weekday: int) -> date:
    today = date.today()
    days_ahead = (weekday - today.weekday()) % 7 or 7
    return today + timedelta(days=days_ahead)


def _print_notification(channel: str, subject: str, body: str, event: NotificationEvent) -> None:
    print(f"{DIM}  >> [{channel}] {subject}: {body.splitlines()[0]}{RESET}")


class ConsoleSession:
    """Runs scripted scheduling scenarios in the terminal."""

    def __init__(self) -> None:
        self.dispatcher = ThreadPoolDispatcher(
            sender=_print_notification, channels=["email"], max_workers=1
        )
        self.calendar = ScheduleCalendar()
        self.coordinator = AppointmentCoordinator(
            store=InMemoryAppointmentStore(),
            dispatcher=self.dispatcher,
            directory=seed_demo_directory(),
            calendar=self.calendar,
        )
        self.reception = Caller(user_id="front-desk", role=CallerRole.RECEPTIONIST)
        self.monday = _next_weekday(0)
        self._seed_windows()

    def _seed_windows(self) -> None:
        for provider_id in ("vet-1", "vet-2"):
            self.calendar.add_window(ScheduleWindow(
                provider_id=provider_id, day_of_week=DayOfWeek.MONDAY,
                start_time=time(9, 0), end_time=time(12, 0),
            ))
            self.calendar.add_window(ScheduleWindow(
                provider_id=provider_id, day_of_week=DayOfWeek.MONDAY,
                start_time=time(14, 0), end_time=time(17, 0), slot_duration_minutes=60,
            ))

    def say(self, text: str) -> None:
        print(f"{BLUE}{BOLD}[reception]{RESET} {BLUE}{text}{RESET}")

    def ok(self, text: str) -> None:
        print(f"{GREEN}  ✓ {text}{RESET}")

    def fail(self, text: str) -> None:
        print(f"{RED}  ✗ {text}{RESET}")

    def show_availability(self, provider_id: str) -> None:
        day = self.coordinator.availability(provider_id, self.monday)
        free = [s.time.strftime("%H:%M") for s in day.slots if s.available]
        taken = [s.time.strftime("%H:%M") for s in day.slots if not s.available]
        print(f"{YELLOW}  {provider_id} on {day.date} ({day.day_of_week.value}){RESET}")
        print(f"{YELLOW}    free:  {', '.join(free) or '-'}{RESET}")
        print(f"{YELLOW}    taken: {', '.join(taken) or '-'}{RESET}")

    def book(self, patient_id: str, service_id: str, at: time, **kwargs):
        request = AppointmentRequest(
            provider_id=kwargs.pop("provider_id", "vet-1"),
            patient_id=patient_id,
            service_id=service_id,
            date=kwargs.pop("day", self.monday),
            time=at,
            motive=kwargs.pop("motive", "Routine check"),
            **kwargs,
        )
        self.say(f"Booking {patient_id} for {service_id} at {at.strftime('%H:%M')}")
        try:
            appt = self.coordinator.create_appointment(request, self.reception)
        except SchedulingError as exc:
            self.fail(f"{type(exc).__name__}: {exc.message}")
            return None
        self.ok(f"{appt.id} {appt.state.value} price={appt.final_price}")
        return appt

    def move(self, appointment_id: str, event: AppointmentEvent, **payload) -> None:
        self.say(f"{event.value} {appointment_id}")
        try:
            appt = self.coordinator.change_state(appointment_id, event, payload or None)
        except SchedulingError as exc:
            self.fail(f"{type(exc).__name__}: {exc.message}")
            return
        self.ok(f"{appt.id} is now {appt.state.value}")

    # --- Scenarios ---

    def scenario_booking(self) -> None:
        self.show_availability("vet-1")
        appt = self.book("pet-1", "svc-consult", time(9, 30))
        if appt is None:
            return
        self.show_availability("vet-1")
        self.move(appt.id, AppointmentEvent.CONFIRM)
        self.move(appt.id, AppointmentEvent.START)
        self.move(appt.id, AppointmentEvent.FINISH)
        self.move(appt.id, AppointmentEvent.CONFIRM)

    def scenario_conflict(self) -> None:
        first = self.book("pet-1", "svc-consult", time(10, 0))
        self.book("pet-3", "svc-vaccine", time(10, 0))
        self.book("pet-3", "svc-vaccine", time(10, 15))
        if first is None:
            return
        self.move(first.id, AppointmentEvent.CANCEL, reason="")
        self.move(first.id, AppointmentEvent.CANCEL, reason="Owner travelling")
        self.book("pet-3", "svc-vaccine", time(10, 0))
        self.show_availability("vet-1")

    def scenario_emergency(self) -> None:
        appt = self.book(
            "pet-2", "svc-emergency", time(14, 0),
            is_emergency=True, motive="Ate chocolate",
        )
        if appt is not None:
            self.move(appt.id, AppointmentEvent.MARK_ATTENDED)
        surgery = self.book("pet-3", "svc-surgery", time(15, 0), motive="Lump removal")
        if surgery is not None:
            self.move(surgery.id, AppointmentEvent.MARK_ATTENDED)
            self.move(surgery.id, AppointmentEvent.CONFIRM)
            self.move(surgery.id, AppointmentEvent.MARK_ATTENDED)

    SCENARIOS = {
        "booking": scenario_booking,
        "conflict": scenario_conflict,
        "emergency": scenario_emergency,
    }

    def run(self, scenario: str = "booking") -> None:
        print(f"{BOLD}Clinic scheduling demo: {scenario} "
              f"({datetime.now():%Y-%m-%d %H:%M}){RESET}\n")
        self.SCENARIOS[scenario](self)
        self.dispatcher.shutdown(wait=True)


def main() -> int:
    parser = argparse.ArgumentParser(description="Offline scheduling demo")
    parser.add_argument(
        "--scenario", choices=sorted(ConsoleSession.SCENARIOS), default="booking",
    )
    args = parser.parse_args()
    ConsoleSession().run(args.scenario)
    return 0


if __name__ == "__main__":
    sys.exit(main())
