"""
Provider weekly availability with overlap detection.

Windows are never edited in place or removed. Deactivation flips the
``active`` flag, and an update deactivates the old version and appends a
new one, so every booking can still be explained against the window that
was active when it was made.

Usage:
    calendar = ScheduleCalendar()
    calendar.add_window(ScheduleWindow(provider_id="vet-1", day_of_week=DayOfWeek.MONDAY,
                                       start_time=time(9), end_time=time(12)))
    calendar.windows_for("vet-1", DayOfWeek.MONDAY)
"""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import ValidationError as ModelValidationError

from clinic_scheduler.errors import NotFoundError, OverlapError, ValidationError
from clinic_scheduler.schemas.schedule_schema import DayOfWeek, ScheduleWindow
from clinic_scheduler.utils import intervals_overlap

logger = logging.getLogger(__name__)


class WindowAction(str, Enum):
    ADDED = "added"
    DEACTIVATED = "deactivated"
    REACTIVATED = "reactivated"


@dataclass
class WindowChange:
    """Append-only record of something that happened to a window."""
    window_id: str
    provider_id: str
    action: WindowAction
    at: datetime
    replaces: Optional[str] = None


def build_window(provider_id: str, **fields: Any) -> ScheduleWindow:
    """Construct a window, reporting bad bounds as a ValidationError."""
    values = {k: v for k, v in fields.items() if v is not None}
    try:
        return ScheduleWindow(provider_id=provider_id, **values)
    except ModelValidationError as exc:
        first = exc.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ())) or None
        raise ValidationError(first.get("msg", str(exc)), field=field) from None


class ScheduleCalendar:
    """Owns every provider's schedule windows and guards them against overlap."""

    def __init__(self) -> None:
        self._windows: dict[str, ScheduleWindow] = {}
        self._changes: list[WindowChange] = []
        self._lock = threading.Lock()

    def add_window(self, window: ScheduleWindow) -> ScheduleWindow:
        """
        Register a new active window.

        Raises:
            OverlapError: If it intersects another active window of the
                same provider on the same day.
        """
        with self._lock:
            return self._add(window)

    def update_window(self, window_id: str, **changes: Any) -> ScheduleWindow:
        """Replace a window with a new version carrying ``changes``.

        The old version is deactivated, not modified. Overlap is checked
        against every other active window of the provider.
        """
        with self._lock:
            current = self._get(window_id)
            fields = current.model_dump(
                include={
                    "day_of_week", "start_time", "end_time",
                    "slot_duration_minutes", "max_concurrent_bookings",
                }
            )
            fields.update({k: v for k, v in changes.items() if v is not None})
            replacement = build_window(current.provider_id, **fields)
            self._add(replacement, ignore_id=window_id, replaces=window_id)
            if current.active:
                self._set_active(current, False)
            return replacement

    def deactivate(self, window_id: str) -> ScheduleWindow:
        """Deactivate a window. No-op if already inactive."""
        with self._lock:
            window = self._get(window_id)
            if window.active:
                window = self._set_active(window, False)
            return window

    def reactivate(self, window_id: str) -> ScheduleWindow:
        """Reactivate a window. No-op if already active.

        Overlap is not re-checked against windows added while this one
        was inactive.
        """
        with self._lock:
            window = self._get(window_id)
            if not window.active:
                window = self._set_active(window, True)
            return window

    def get_window(self, window_id: str) -> ScheduleWindow:
        with self._lock:
            return self._get(window_id)

    def windows_for(self, provider_id: str, day_of_week: DayOfWeek) -> list[ScheduleWindow]:
        """Active windows for a provider and weekday, ordered by start time."""
        with self._lock:
            windows = [
                w for w in self._windows.values()
                if w.provider_id == provider_id and w.day_of_week == day_of_week and w.active
            ]
        return sorted(windows, key=lambda w: w.start_time)

    def history(self, provider_id: str) -> list[ScheduleWindow]:
        """Every window ever registered for a provider, active or not."""
        with self._lock:
            windows = [w for w in self._windows.values() if w.provider_id == provider_id]
        return sorted(windows, key=lambda w: (list(DayOfWeek).index(w.day_of_week), w.start_time))

    def changes(self) -> list[WindowChange]:
        """Return the full append-only change log."""
        with self._lock:
            return list(self._changes)

    def _add(
        self,
        window: ScheduleWindow,
        ignore_id: Optional[str] = None,
        replaces: Optional[str] = None,
    ) -> ScheduleWindow:
        if window.id in self._windows:
            raise ValidationError(f"Window '{window.id}' already exists", field="id")
        for other in self._windows.values():
            if (
                other.id == ignore_id
                or not other.active
                or other.provider_id != window.provider_id
                or other.day_of_week != window.day_of_week
            ):
                continue
            if intervals_overlap(window.start_time, window.end_time,
                                 other.start_time, other.end_time):
                raise OverlapError(
                    f"Window {window.start_time}-{window.end_time} overlaps "
                    f"{other.start_time}-{other.end_time} on {window.day_of_week.value} "
                    f"for provider '{window.provider_id}'"
                )
        window = window.model_copy(update={"active": True})
        self._windows[window.id] = window
        self._record(window, WindowAction.ADDED, replaces=replaces)
        logger.info(
            "Window added: %s %s %s-%s for %s",
            window.id, window.day_of_week.value, window.start_time, window.end_time,
            window.provider_id,
        )
        return window

    def _get(self, window_id: str) -> ScheduleWindow:
        window = self._windows.get(window_id)
        if window is None:
            raise NotFoundError("Window", window_id)
        return window

    def _set_active(self, window: ScheduleWindow, active: bool) -> ScheduleWindow:
        updated = window.model_copy(update={"active": active})
        self._windows[window.id] = updated
        action = WindowAction.REACTIVATED if active else WindowAction.DEACTIVATED
        self._record(updated, action)
        logger.info("Window %s: %s", action.value, window.id)
        return updated

    def _record(
        self, window: ScheduleWindow, action: WindowAction, replaces: Optional[str] = None
    ) -> None:
        self._changes.append(WindowChange(
            window_id=window.id,
            provider_id=window.provider_id,
            action=action,
            at=datetime.now(timezone.utc),
            replaces=replaces,
        ))
