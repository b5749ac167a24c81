"""
Periodic reminder scan.

Runs outside the request path, alongside live bookings. It only reads
appointments and forwards REMINDER events to the dispatcher; which
reminders were already sent is tracked here, never on the appointment.
"""

import logging
import threading
from datetime import datetime, timedelta
from typing import Callable, Optional, Sequence

from clinic_scheduler.config import settings
from clinic_scheduler.notifications.dispatcher import NotificationDispatcher
from clinic_scheduler.schemas.appointment_schema import AppointmentState
from clinic_scheduler.schemas.notification_schema import NotificationEvent, NotificationKind
from clinic_scheduler.store.appointment_store import PersistenceStore

logger = logging.getLogger(__name__)


def default_lead_hours() -> tuple[int, ...]:
    """Configured first lead plus the fixed 2h and 1h reminders."""
    return tuple(sorted({settings.reminders.first_lead_hours, 2, 1}, reverse=True))


class ReminderScanner:
    """Finds confirmed appointments entering a reminder lead window."""

    def __init__(
        self,
        store: PersistenceStore,
        dispatcher: NotificationDispatcher,
        lead_hours: Optional[Sequence[int]] = None,
        scan_interval_seconds: Optional[int] = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._store = store
        self._dispatcher = dispatcher
        self._leads = tuple(lead_hours) if lead_hours else default_lead_hours()
        self._interval = scan_interval_seconds or settings.reminders.scan_interval_seconds
        self._clock = clock
        self._sent: dict[tuple[str, int], datetime] = {}
        self._lock = threading.Lock()

    def scan(self, now: Optional[datetime] = None) -> list[NotificationEvent]:
        """Send every reminder that came due in the last scan interval.

        An appointment is due for lead ``h`` when it starts within
        ``(now + h - interval, now + h]``.
        """
        now = now or self._clock()
        self._prune(now)
        interval = timedelta(seconds=self._interval)
        horizon = now + timedelta(hours=max(self._leads))
        candidates = [
            a for a in self._store.find_by_date_range(now.date(), horizon.date())
            if a.state == AppointmentState.CONFIRMED and a.starts_at is not None
        ]

        sent: list[NotificationEvent] = []
        for appointment in candidates:
            for lead in self._leads:
                due_at = now + timedelta(hours=lead)
                if not due_at - interval < appointment.starts_at <= due_at:
                    continue
                key = (appointment.id or "", lead)
                with self._lock:
                    if key in self._sent:
                        continue
                    self._sent[key] = appointment.starts_at
                event = NotificationEvent.for_appointment(
                    NotificationKind.REMINDER, appointment, lead_hours=lead
                )
                self._dispatcher.notify(event)
                sent.append(event)

        if sent:
            logger.info("Reminder scan sent %d reminder(s)", len(sent))
        return sent

    def _prune(self, now: datetime) -> None:
        """Forget reminders for appointments that have already started."""
        with self._lock:
            expired = [k for k, starts_at in self._sent.items() if starts_at < now]
            for key in expired:
                del self._sent[key]
        if expired:
            logger.debug("Pruned %d sent-reminder key(s)", len(expired))

    def run(self, stop_event: threading.Event) -> None:
        """Scan every interval until ``stop_event`` is set."""
        logger.info(
            "Reminder scanner started (leads=%s, interval=%ds)", list(self._leads), self._interval
        )
        while not stop_event.is_set():
            try:
                self.scan()
            except Exception:
                logger.exception("Reminder scan failed; retrying next interval")
            stop_event.wait(self._interval)
        logger.info("Reminder scanner stopped")
