"""Tests for the appointment state machine."""

from datetime import time, timedelta

import pytest

from clinic_scheduler.errors import AppointmentLockedError, InvalidTransitionError, ValidationError
from clinic_scheduler.schemas.appointment_schema import Appointment, AppointmentState
from clinic_scheduler.scheduling.state_machine import AppointmentEvent
from tests.conftest import MONDAY


def _appointment(state: AppointmentState = AppointmentState.SCHEDULED) -> Appointment:
    return Appointment(
        id="apt-1",
        provider_id="vet-1",
        patient_id="pet-1",
        service_id="svc-consult",
        date=MONDAY,
        time=time(9),
        duration_minutes=30,
        state=state,
    )


class TestHappyPath:
    def test_confirm(self, state_machine):
        result = state_machine.apply(_appointment(), AppointmentEvent.CONFIRM)
        assert result.state == AppointmentState.CONFIRMED

    def test_start(self, state_machine):
        result = state_machine.apply(_appointment(AppointmentState.CONFIRMED), AppointmentEvent.START)
        assert result.state == AppointmentState.IN_PROGRESS

    def test_finish(self, state_machine):
        result = state_machine.apply(
            _appointment(AppointmentState.IN_PROGRESS), AppointmentEvent.FINISH
        )
        assert result.state == AppointmentState.ATTENDED

    def test_full_walk(self, state_machine):
        appt = _appointment()
        for event in (AppointmentEvent.CONFIRM, AppointmentEvent.START, AppointmentEvent.FINISH):
            appt = state_machine.apply(appt, event)
        assert appt.state == AppointmentState.ATTENDED
        assert state_machine.is_terminal(appt.state)

    def test_apply_returns_copy(self, state_machine):
        original = _appointment()
        state_machine.apply(original, AppointmentEvent.CONFIRM)
        assert original.state == AppointmentState.SCHEDULED

    def test_apply_stamps_updated_at(self, state_machine):
        result = state_machine.apply(_appointment(), AppointmentEvent.CONFIRM)
        assert result.updated_at is not None


class TestCancel:
    @pytest.mark.parametrize("state", [
        AppointmentState.SCHEDULED, AppointmentState.CONFIRMED, AppointmentState.IN_PROGRESS,
    ])
    def test_cancel_from_open_states(self, state_machine, state):
        result = state_machine.apply(
            _appointment(state), AppointmentEvent.CANCEL, {"reason": "patient request"}
        )
        assert result.state == AppointmentState.CANCELLED
        assert result.cancellation_reason == "patient request"

    @pytest.mark.parametrize("reason", ["", "   ", None])
    def test_blank_reason_rejected(self, state_machine, reason):
        with pytest.raises(ValidationError, match="reason"):
            state_machine.apply(_appointment(), AppointmentEvent.CANCEL, {"reason": reason})

    def test_missing_payload_rejected(self, state_machine):
        with pytest.raises(ValidationError):
            state_machine.apply(_appointment(), AppointmentEvent.CANCEL)

    def test_cannot_cancel_attended(self, state_machine):
        with pytest.raises(InvalidTransitionError):
            state_machine.apply(
                _appointment(AppointmentState.ATTENDED), AppointmentEvent.CANCEL,
                {"reason": "too late"},
            )


class TestInvalidTransitions:
    def test_confirm_attended_fails(self, state_machine):
        with pytest.raises(InvalidTransitionError) as exc_info:
            state_machine.apply(_appointment(AppointmentState.ATTENDED), AppointmentEvent.CONFIRM)
        assert exc_info.value.from_state == "attended"
        assert exc_info.value.event == "confirm"

    def test_start_from_scheduled_fails(self, state_machine):
        with pytest.raises(InvalidTransitionError):
            state_machine.apply(_appointment(), AppointmentEvent.START)

    def test_no_show_only_from_confirmed(self, state_machine):
        with pytest.raises(InvalidTransitionError):
            state_machine.apply(_appointment(), AppointmentEvent.NO_SHOW)
        result = state_machine.apply(
            _appointment(AppointmentState.CONFIRMED), AppointmentEvent.NO_SHOW
        )
        assert result.state == AppointmentState.NO_SHOW

    def test_mark_attended_not_from_in_progress(self, state_machine):
        with pytest.raises(InvalidTransitionError):
            state_machine.apply(
                _appointment(AppointmentState.IN_PROGRESS), AppointmentEvent.MARK_ATTENDED
            )

    def test_terminal_states_have_no_events(self, state_machine):
        for state in (AppointmentState.ATTENDED, AppointmentState.CANCELLED):
            assert state_machine.valid_events(state) == []
            assert state_machine.is_terminal(state)

    def test_valid_events_from_scheduled(self, state_machine):
        assert set(state_machine.valid_events(AppointmentState.SCHEDULED)) == {
            AppointmentEvent.CONFIRM, AppointmentEvent.CANCEL, AppointmentEvent.MARK_ATTENDED,
        }


class TestReschedule:
    def test_moves_date_and_time(self, state_machine):
        result = state_machine.reschedule(
            _appointment(), MONDAY + timedelta(days=7), time(10)
        )
        assert result.date == MONDAY + timedelta(days=7)
        assert result.time == time(10)

    def test_omitted_fields_keep_current_values(self, state_machine):
        result = state_machine.reschedule(_appointment(), None, time(10, 30))
        assert result.date == MONDAY
        assert result.time == time(10, 30)

    def test_same_date_and_time_rejected(self, state_machine):
        with pytest.raises(ValidationError, match="must differ"):
            state_machine.reschedule(_appointment(), MONDAY, time(9))

    def test_allowed_when_confirmed(self, state_machine):
        result = state_machine.reschedule(
            _appointment(AppointmentState.CONFIRMED), None, time(11)
        )
        assert result.state == AppointmentState.CONFIRMED

    @pytest.mark.parametrize("state", [AppointmentState.ATTENDED, AppointmentState.CANCELLED])
    def test_locked_states(self, state_machine, state):
        with pytest.raises(AppointmentLockedError, match="already attended or cancelled"):
            state_machine.reschedule(_appointment(state), None, time(11))

    @pytest.mark.parametrize("state", [AppointmentState.IN_PROGRESS, AppointmentState.NO_SHOW])
    def test_other_states_rejected(self, state_machine, state):
        with pytest.raises(InvalidTransitionError):
            state_machine.reschedule(_appointment(state), None, time(11))
