"""
Finite state machine for the appointment lifecycle.

Every legal move is a row in TRANSITIONS; anything else is rejected with
InvalidTransitionError. Appointments are never mutated in place: a
transition returns an updated copy, so a failed step leaves the original
untouched.

    SCHEDULED -> CONFIRMED -> IN_PROGRESS -> ATTENDED
    SCHEDULED | CONFIRMED | IN_PROGRESS -> CANCELLED   (reason required)
    CONFIRMED -> NO_SHOW
    SCHEDULED | CONFIRMED -> ATTENDED                  (via attention flow)

Usage:
    sm = AppointmentStateMachine()
    confirmed = sm.apply(appointment, AppointmentEvent.CONFIRM)
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from enum import Enum
from typing import Any, Callable, Optional

from clinic_scheduler.errors import AppointmentLockedError, InvalidTransitionError, ValidationError
from clinic_scheduler.schemas.appointment_schema import Appointment, AppointmentState

logger = logging.getLogger(__name__)


class AppointmentEvent(str, Enum):
    """Events that cause state transitions."""
    CONFIRM = "confirm"
    START = "start"
    FINISH = "finish"
    CANCEL = "cancel"
    NO_SHOW = "no_show"
    MARK_ATTENDED = "mark_attended"


def _require_reason(payload: dict[str, Any]) -> None:
    reason = payload.get("reason")
    if not isinstance(reason, str) or not reason.strip():
        raise ValidationError("Cancellation reason is required", field="reason")


@dataclass
class Transition:
    """A single valid state transition."""
    from_state: AppointmentState
    to_state: AppointmentState
    event: AppointmentEvent
    guard: Optional[Callable[[dict[str, Any]], None]] = None


TERMINAL_STATES = frozenset({
    AppointmentState.ATTENDED,
    AppointmentState.CANCELLED,
    AppointmentState.NO_SHOW,
})

RESCHEDULABLE_STATES = frozenset({AppointmentState.SCHEDULED, AppointmentState.CONFIRMED})


class AppointmentStateMachine:
    """
    Central authority on appointment state changes.

    Stateless: the current state lives on the appointment, so one
    instance is shared by every request.
    """

    TRANSITIONS: list[Transition] = [
        # --- Happy path ---
        Transition(AppointmentState.SCHEDULED, AppointmentState.CONFIRMED,
                   AppointmentEvent.CONFIRM),
        Transition(AppointmentState.CONFIRMED, AppointmentState.IN_PROGRESS,
                   AppointmentEvent.START),
        Transition(AppointmentState.IN_PROGRESS, AppointmentState.ATTENDED,
                   AppointmentEvent.FINISH),

        # --- Cancellation ---
        Transition(AppointmentState.SCHEDULED, AppointmentState.CANCELLED,
                   AppointmentEvent.CANCEL, _require_reason),
        Transition(AppointmentState.CONFIRMED, AppointmentState.CANCELLED,
                   AppointmentEvent.CANCEL, _require_reason),
        Transition(AppointmentState.IN_PROGRESS, AppointmentState.CANCELLED,
                   AppointmentEvent.CANCEL, _require_reason),

        # --- No-show ---
        Transition(AppointmentState.CONFIRMED, AppointmentState.NO_SHOW,
                   AppointmentEvent.NO_SHOW),

        # --- Direct attention (category flow runs before this) ---
        Transition(AppointmentState.SCHEDULED, AppointmentState.ATTENDED,
                   AppointmentEvent.MARK_ATTENDED),
        Transition(AppointmentState.CONFIRMED, AppointmentState.ATTENDED,
                   AppointmentEvent.MARK_ATTENDED),
    ]

    def next_state(
        self,
        state: AppointmentState,
        event: AppointmentEvent,
        payload: Optional[dict[str, Any]] = None,
    ) -> AppointmentState:
        """
        Resolve the target state for ``event`` from ``state``.

        Raises:
            InvalidTransitionError: If no transition exists.
            ValidationError: If the transition's guard rejects the payload.
        """
        for t in self.TRANSITIONS:
            if t.from_state == state and t.event == event:
                if t.guard is not None:
                    t.guard(payload or {})
                return t.to_state

        raise InvalidTransitionError(
            state.value,
            event.value,
            f"No valid transition from '{state.value}' with event '{event.value}'. "
            f"Valid events: {[e.value for e in self.valid_events(state)]}",
        )

    def apply(
        self,
        appointment: Appointment,
        event: AppointmentEvent,
        payload: Optional[dict[str, Any]] = None,
    ) -> Appointment:
        """Return a copy of ``appointment`` moved to its next state."""
        new_state = self.next_state(appointment.state, event, payload)
        update: dict[str, Any] = {
            "state": new_state,
            "updated_at": datetime.now(timezone.utc),
        }
        if event == AppointmentEvent.CANCEL:
            update["cancellation_reason"] = (payload or {})["reason"].strip()

        logger.debug(
            "Appointment %s: %s -> %s (event: %s)",
            appointment.id, appointment.state.value, new_state.value, event.value,
        )
        return appointment.model_copy(update=update)

    def reschedule(
        self,
        appointment: Appointment,
        new_date: Optional[date],
        new_time: Optional[time],
    ) -> Appointment:
        """Return a copy of ``appointment`` moved to a new date/time.

        Raises:
            AppointmentLockedError: If the appointment is attended or cancelled.
            InvalidTransitionError: If it is in progress or a no-show.
            ValidationError: If the new date and time equal the current ones.
        """
        if appointment.state in (AppointmentState.ATTENDED, AppointmentState.CANCELLED):
            raise AppointmentLockedError(appointment.state.value)
        if appointment.state not in RESCHEDULABLE_STATES:
            raise InvalidTransitionError(
                appointment.state.value,
                "reschedule",
                f"Appointments in '{appointment.state.value}' cannot be rescheduled",
            )

        target_date = new_date or appointment.date
        target_time = new_time or appointment.time
        if target_date == appointment.date and target_time == appointment.time:
            raise ValidationError(
                "New date and time must differ from the current ones", field="date"
            )
        return appointment.model_copy(update={
            "date": target_date,
            "time": target_time,
            "updated_at": datetime.now(timezone.utc),
        })

    def valid_events(self, state: AppointmentState) -> list[AppointmentEvent]:
        """Return all events valid from ``state``."""
        return [t.event for t in self.TRANSITIONS if t.from_state == state]

    def is_terminal(self, state: AppointmentState) -> bool:
        return state in TERMINAL_STATES
