"""Tests for notification rendering and the background dispatcher."""

import logging
import threading
from datetime import time

import pytest

from clinic_scheduler.notifications.dispatcher import ThreadPoolDispatcher
from clinic_scheduler.notifications.templates import build_subject, render_message
from clinic_scheduler.schemas.appointment_schema import Appointment
from clinic_scheduler.schemas.notification_schema import NotificationEvent, NotificationKind
from tests.conftest import MONDAY


@pytest.fixture
def appointment() -> Appointment:
    return Appointment(
        id="apt_1234abcd", provider_id="vet-1", patient_id="pet-1",
        service_id="svc-consult", date=MONDAY, time=time(9, 30), duration_minutes=30,
    )


class _RecordingSender:
    def __init__(self, failures: int = 0) -> None:
        self.failures = failures
        self.calls: list[tuple[str, str, str]] = []
        self._lock = threading.Lock()

    def __call__(self, channel, subject, body, event) -> None:
        with self._lock:
            self.calls.append((channel, subject, body))
            if self.failures > 0:
                self.failures -= 1
                raise ConnectionError("gateway timeout")


class TestTemplates:
    def test_subject_names_kind_and_id(self, appointment):
        event = NotificationEvent.for_appointment(NotificationKind.CONFIRMED, appointment)
        assert build_subject(event) == "Appointment confirmed (apt_1234abcd)"

    def test_created_body_has_date_and_time(self, appointment):
        event = NotificationEvent.for_appointment(NotificationKind.CREATED, appointment)
        assert "2030-01-07 at 09:30" in render_message(event)

    def test_cancel_body_includes_reason(self, appointment):
        event = NotificationEvent.for_appointment(
            NotificationKind.CANCELLED, appointment, reason="Clinic closed"
        )
        body = render_message(event)
        assert "cancelled" in body
        assert body.endswith("Reason: Clinic closed")

    def test_reminder_body_pluralizes_hours(self, appointment):
        one = NotificationEvent.for_appointment(NotificationKind.REMINDER, appointment, lead_hours=1)
        many = NotificationEvent.for_appointment(
            NotificationKind.REMINDER, appointment, lead_hours=24
        )
        assert "in 1 hour," in render_message(one)
        assert "in 24 hours," in render_message(many)

    def test_event_snapshot_fields(self, appointment):
        event = NotificationEvent.for_appointment(NotificationKind.ATTENDED, appointment)
        assert event.appointment_id == "apt_1234abcd"
        assert event.patient_id == "pet-1"
        assert event.time == time(9, 30)


class TestThreadPoolDispatcher:
    def test_delivers_to_every_channel(self, appointment):
        sender = _RecordingSender()
        dispatcher = ThreadPoolDispatcher(sender=sender, channels=["email", "sms"], max_workers=2)
        dispatcher.notify(NotificationEvent.for_appointment(NotificationKind.CREATED, appointment))
        dispatcher.shutdown(wait=True)
        assert sorted(c[0] for c in sender.calls) == ["email", "sms"]
        assert all(c[1] == "Appointment booked (apt_1234abcd)" for c in sender.calls)

    def test_retries_then_succeeds(self, appointment):
        sender = _RecordingSender(failures=1)
        dispatcher = ThreadPoolDispatcher(sender=sender, channels=["email"], max_retries=2)
        dispatcher.notify(NotificationEvent.for_appointment(NotificationKind.CREATED, appointment))
        dispatcher.shutdown(wait=True)
        assert len(sender.calls) == 2

    def test_gives_up_and_logs(self, appointment, caplog):
        sender = _RecordingSender(failures=10)
        dispatcher = ThreadPoolDispatcher(sender=sender, channels=["sms"], max_retries=1)
        with caplog.at_level(logging.ERROR, logger="clinic_scheduler.notifications.dispatcher"):
            dispatcher.notify(
                NotificationEvent.for_appointment(NotificationKind.CANCELLED, appointment)
            )
            dispatcher.shutdown(wait=True)
        assert len(sender.calls) == 2
        assert "failed after 2 attempts" in caplog.text

    def test_notify_returns_without_waiting(self, appointment):
        release = threading.Event()

        def slow_sender(channel, subject, body, event):
            release.wait(timeout=5)

        dispatcher = ThreadPoolDispatcher(sender=slow_sender, channels=["email"], max_workers=1)
        dispatcher.notify(NotificationEvent.for_appointment(NotificationKind.CREATED, appointment))
        # notify() came back while delivery is still blocked.
        release.set()
        dispatcher.shutdown(wait=True)

    def test_notify_after_shutdown_does_not_raise(self, appointment, caplog):
        dispatcher = ThreadPoolDispatcher(sender=_RecordingSender(), channels=["email"])
        dispatcher.shutdown()
        with caplog.at_level(logging.ERROR, logger="clinic_scheduler.notifications.dispatcher"):
            dispatcher.notify(
                NotificationEvent.for_appointment(NotificationKind.CREATED, appointment)
            )
        assert "shut down" in caplog.text

    def test_default_channels_from_config(self, appointment):
        sender = _RecordingSender()
        dispatcher = ThreadPoolDispatcher(sender=sender)
        dispatcher.notify(NotificationEvent.for_appointment(NotificationKind.CREATED, appointment))
        dispatcher.shutdown(wait=True)
        assert {c[0] for c in sender.calls} == {"email", "sms"}
