"""
Appointment coordinator: the single entry point for booking and state changes.

Each operation is one unit of work:

    validate -> (price | transition) -> persist -> notify

Nothing is written until every validator has passed, the store performs
one atomic write per operation, and notification is handed off without
waiting. A failed handoff is logged and never undoes the write.
"""

import threading
from datetime import date, datetime, time
from typing import Any, Callable, Optional, Union

from clinic_scheduler.config import settings
from clinic_scheduler.errors import (
    InvalidTransitionError,
    NotFoundError,
    OperationCancelledError,
    OverlapError,
    PersistenceError,
    SchedulingError,
    StaleStateError,
    UniqueViolationError,
)
from clinic_scheduler.logging_context import get_request_logger
from clinic_scheduler.notifications.dispatcher import NotificationDispatcher
from clinic_scheduler.schemas.appointment_schema import (
    Appointment,
    AppointmentRequest,
    AppointmentState,
    Caller,
    ValidationContext,
)
from clinic_scheduler.schemas.clinic_schema import ServiceCategory
from clinic_scheduler.schemas.notification_schema import NotificationEvent, NotificationKind
from clinic_scheduler.schemas.schedule_schema import DayAvailability, DayOfWeek
from clinic_scheduler.scheduling.attention import AttentionFlow, AttentionRecord, create_flow
from clinic_scheduler.scheduling.calendar import ScheduleCalendar
from clinic_scheduler.scheduling.pricing import calculate_final_price
from clinic_scheduler.scheduling.slots import SlotGenerator
from clinic_scheduler.scheduling.state_machine import AppointmentEvent, AppointmentStateMachine
from clinic_scheduler.scheduling.validation import ValidationPipeline
from clinic_scheduler.store.appointment_store import PersistenceStore
from clinic_scheduler.store.directory import ClinicDirectory

logger = get_request_logger(__name__)

_EVENT_NOTIFICATIONS: dict[AppointmentEvent, NotificationKind] = {
    AppointmentEvent.CONFIRM: NotificationKind.CONFIRMED,
    AppointmentEvent.CANCEL: NotificationKind.CANCELLED,
    AppointmentEvent.FINISH: NotificationKind.ATTENDED,
    AppointmentEvent.MARK_ATTENDED: NotificationKind.ATTENDED,
}


class AppointmentCoordinator:
    """Sequences validation, state change, persistence and notification."""

    def __init__(
        self,
        store: PersistenceStore,
        dispatcher: NotificationDispatcher,
        directory: ClinicDirectory,
        calendar: ScheduleCalendar,
        pipeline: Optional[ValidationPipeline] = None,
        state_machine: Optional[AppointmentStateMachine] = None,
        slot_generator: Optional[SlotGenerator] = None,
        clock: Callable[[], datetime] = datetime.now,
        flow_factory: Callable[..., AttentionFlow] = create_flow,
    ) -> None:
        self._store = store
        self._dispatcher = dispatcher
        self._directory = directory
        self._calendar = calendar
        self._slots = slot_generator or SlotGenerator()
        self._pipeline = pipeline or ValidationPipeline(directory, calendar, store, self._slots)
        self._state_machine = state_machine or AppointmentStateMachine()
        self._clock = clock
        self._flow_factory = flow_factory

    @property
    def calendar(self) -> ScheduleCalendar:
        return self._calendar

    @property
    def directory(self) -> ClinicDirectory:
        return self._directory

    def create_appointment(
        self,
        request: AppointmentRequest,
        caller: Caller,
        cancel_token: Optional[threading.Event] = None,
    ) -> Appointment:
        """
        Validate, price and persist a new appointment in SCHEDULED.

        Raises:
            ValidationError, NotFoundError, OverlapError, PermissionDeniedError:
                From the validation pipeline, or OverlapError from a lost race
                at the store.
            OperationCancelledError: If ``cancel_token`` is set before the write.
            PersistenceError: If the store fails for any other reason.
        """
        service = self._directory.get_service(request.service_id)
        duration = request.duration_minutes
        if duration is None:
            duration = (
                service.duration_minutes if service is not None
                else settings.scheduling.default_slot_minutes
            )

        candidate = Appointment(
            provider_id=request.provider_id,
            patient_id=request.patient_id,
            service_id=request.service_id,
            date=request.date,
            time=request.time,
            duration_minutes=duration,
            is_emergency=request.is_emergency,
            motive=request.motive.strip(),
            observations=request.observations,
            state=AppointmentState.SCHEDULED,
        )
        self._validate(candidate, caller, cancel_token)

        if service is None:
            raise NotFoundError("Service", request.service_id)
        candidate = candidate.model_copy(update={
            "final_price": calculate_final_price(service, candidate.is_emergency),
        })
        self._check_cancelled(cancel_token)

        saved = self._persist(candidate, event="create")
        logger.info(
            "Appointment created: %s for patient %s with %s on %s at %s (price %s)",
            saved.id, saved.patient_id, saved.provider_id, saved.date, saved.time,
            saved.final_price,
        )
        self._notify(NotificationKind.CREATED, saved)
        return saved

    def change_state(
        self,
        appointment_id: str,
        event: Union[AppointmentEvent, str],
        payload: Optional[dict[str, Any]] = None,
        caller: Optional[Caller] = None,
    ) -> Appointment:
        """
        Apply a lifecycle event to a stored appointment.

        Raises:
            NotFoundError: If the appointment does not exist.
            InvalidTransitionError: If the event is not legal from the current
                state, or the state changed concurrently.
            ValidationError: If a guard or attention-flow check fails.
        """
        appointment = self.get_appointment(appointment_id)
        try:
            event = AppointmentEvent(event)
        except ValueError:
            raise InvalidTransitionError(appointment.state.value, str(event)) from None

        if event == AppointmentEvent.MARK_ATTENDED:
            self._state_machine.next_state(appointment.state, event, payload)
            self._run_attention(appointment)

        updated = self._state_machine.apply(appointment, event, payload)
        saved = self._persist(updated, expected_state=appointment.state, event=event.value)
        logger.info(
            "Appointment %s: %s -> %s%s",
            saved.id, appointment.state.value, saved.state.value,
            f" by {caller.user_id}" if caller else "",
        )

        kind = _EVENT_NOTIFICATIONS.get(event)
        if kind is not None:
            self._notify(kind, saved, reason=saved.cancellation_reason)
        return saved

    def reschedule(
        self,
        appointment_id: str,
        new_date: Optional[date],
        new_time: Optional[time],
        caller: Caller,
        cancel_token: Optional[threading.Event] = None,
    ) -> Appointment:
        """
        Move an appointment to another date and/or time.

        Raises:
            AppointmentLockedError: If it is already attended or cancelled.
            InvalidTransitionError: If it is in progress or a no-show.
            ValidationError: If nothing changes or the new slot is invalid.
            OverlapError: If the new slot is taken.
        """
        appointment = self.get_appointment(appointment_id)
        moved = self._state_machine.reschedule(appointment, new_date, new_time)
        self._validate(moved, caller, cancel_token, exclude_id=appointment.id)
        self._check_cancelled(cancel_token)

        saved = self._persist(moved, expected_state=appointment.state, event="reschedule")
        logger.info(
            "Appointment rescheduled: %s from %s %s to %s %s",
            saved.id, appointment.date, appointment.time, saved.date, saved.time,
        )
        return saved

    def get_appointment(self, appointment_id: str) -> Appointment:
        appointment = self._call_store(self._store.find_by_id, appointment_id)
        if appointment is None:
            raise NotFoundError("Appointment", appointment_id)
        return appointment

    def availability(self, provider_id: str, day: date) -> DayAvailability:
        """Windows, freshly computed slots and live appointments for one day."""
        if self._directory.get_provider(provider_id) is None:
            raise NotFoundError("Provider", provider_id)
        weekday = DayOfWeek.from_date(day)
        windows = self._calendar.windows_for(provider_id, weekday)
        appointments = [
            a for a in self._call_store(
                self._store.find_by_provider_and_date_range, provider_id, day, day
            )
            if a.state != AppointmentState.CANCELLED
        ]
        return DayAvailability(
            provider_id=provider_id,
            date=day,
            day_of_week=weekday,
            windows=windows,
            slots=list(self._slots.generate(windows, appointments)),
            appointments=appointments,
        )

    def _validate(
        self,
        candidate: Appointment,
        caller: Caller,
        cancel_token: Optional[threading.Event],
        exclude_id: Optional[str] = None,
    ) -> None:
        context = ValidationContext(
            candidate=candidate,
            caller=caller,
            stock=self._directory.stock_snapshot(),
            exclude_appointment_id=exclude_id,
            now=self._clock(),
        )
        self._pipeline.validate(context, cancel_token)

    def _run_attention(self, appointment: Appointment) -> AttentionRecord:
        service = self._directory.get_service(appointment.service_id)
        if service is None:
            raise NotFoundError("Service", appointment.service_id)
        category = ServiceCategory.EMERGENCY if appointment.is_emergency else service.category
        flow = self._flow_factory(category, directory=self._directory)
        record = flow.process_attention(appointment, service)
        logger.info(
            "Attention flow %s completed for %s: %s",
            record.category.value, record.appointment_id, ", ".join(record.steps),
        )
        return record

    def _persist(
        self,
        appointment: Appointment,
        expected_state: Optional[AppointmentState] = None,
        event: str = "save",
    ) -> Appointment:
        try:
            return self._store.save(appointment, expected_state)
        except UniqueViolationError as exc:
            raise OverlapError(exc.message) from exc
        except StaleStateError as exc:
            raise InvalidTransitionError(
                exc.actual,
                event,
                f"Appointment '{exc.appointment_id}' changed concurrently "
                f"and is now '{exc.actual}'",
            ) from exc
        except SchedulingError:
            raise
        except Exception as exc:
            raise PersistenceError(f"Appointment store failure: {exc}") from exc

    def _call_store(self, fn: Callable[..., Any], *args: Any) -> Any:
        try:
            return fn(*args)
        except SchedulingError:
            raise
        except Exception as exc:
            raise PersistenceError(f"Appointment store failure: {exc}") from exc

    def _notify(
        self,
        kind: NotificationKind,
        appointment: Appointment,
        reason: Optional[str] = None,
    ) -> None:
        event = NotificationEvent.for_appointment(kind, appointment, reason=reason)
        try:
            self._dispatcher.notify(event)
        except Exception:
            logger.exception(
                "Notification handoff failed for %s (%s); state change kept",
                appointment.id, kind.value,
            )

    @staticmethod
    def _check_cancelled(cancel_token: Optional[threading.Event]) -> None:
        if cancel_token is not None and cancel_token.is_set():
            raise OperationCancelledError("Request cancelled before the appointment was saved")
