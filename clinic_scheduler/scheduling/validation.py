"""
Booking validation pipeline.

Four independent validators, run in a fixed order:
1. DataValidator          required fields, references, not in the past
2. AvailabilityValidator  falls on a free slot of the provider's schedule
3. PermissionValidator    caller may book this provider/patient pair
4. ResourceValidator      service active and supplies in stock

The first failure stops the pipeline and is raised as a single typed
error. Validators hold no per-request state, so one pipeline instance is
shared by every request.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Optional, Protocol

from clinic_scheduler.errors import (
    InsufficientStockError,
    NotFoundError,
    OperationCancelledError,
    OverlapError,
    PermissionDeniedError,
    SchedulingError,
    ValidationError,
)
from clinic_scheduler.schemas.appointment_schema import CallerRole, ValidationContext
from clinic_scheduler.schemas.schedule_schema import DayOfWeek
from clinic_scheduler.scheduling.calendar import ScheduleCalendar
from clinic_scheduler.scheduling.slots import SlotGenerator, find_slot
from clinic_scheduler.store.appointment_store import PersistenceStore
from clinic_scheduler.store.directory import ClinicDirectory

logger = logging.getLogger(__name__)


@dataclass
class ValidationResult:
    """Outcome of a single validator."""
    passed: bool
    validator: str = ""
    error: Optional[SchedulingError] = None


class Validator(Protocol):
    name: str

    def check(self, context: ValidationContext) -> ValidationResult:
        ...


class DataValidator:
    """Required fields present, references resolvable, date not in the past."""

    name = "data"

    def __init__(self, directory: ClinicDirectory) -> None:
        self._directory = directory

    def check(self, context: ValidationContext) -> ValidationResult:
        c = context.candidate
        missing = [
            field_name
            for field_name, value in [
                ("provider_id", c.provider_id),
                ("patient_id", c.patient_id),
                ("service_id", c.service_id),
                ("date", c.date),
                ("time", c.time),
            ]
            if value is None or (isinstance(value, str) and not value.strip())
        ]
        if missing:
            return self._fail(ValidationError(
                f"Missing required fields: {', '.join(missing)}", field=missing[0]
            ))
        if not c.motive or not c.motive.strip():
            return self._fail(ValidationError("Motive for the visit is required", field="motive"))
        if c.duration_minutes is None or c.duration_minutes <= 0:
            return self._fail(ValidationError("Duration must be positive", field="duration_minutes"))

        if self._directory.get_provider(c.provider_id) is None:
            return self._fail(NotFoundError("Provider", c.provider_id))
        if self._directory.get_patient(c.patient_id) is None:
            return self._fail(NotFoundError("Patient", c.patient_id))
        if self._directory.get_service(c.service_id) is None:
            return self._fail(NotFoundError("Service", c.service_id))

        today = context.now.date()
        if c.date < today:
            return self._fail(ValidationError(
                "Appointments cannot be booked in the past", field="date"
            ))
        if c.date == today and c.time < context.now.time() and not c.is_emergency:
            return self._fail(ValidationError(
                "Appointment time has already passed", field="time"
            ))
        return ValidationResult(passed=True, validator=self.name)

    def _fail(self, error: SchedulingError) -> ValidationResult:
        return ValidationResult(passed=False, validator=self.name, error=error)


class AvailabilityValidator:
    """Candidate must start on a free slot generated from the provider's windows."""

    name = "availability"

    def __init__(
        self,
        directory: ClinicDirectory,
        calendar: ScheduleCalendar,
        store: PersistenceStore,
        slot_generator: Optional[SlotGenerator] = None,
    ) -> None:
        self._directory = directory
        self._calendar = calendar
        self._store = store
        self._slots = slot_generator or SlotGenerator()

    def check(self, context: ValidationContext) -> ValidationResult:
        c = context.candidate
        provider = self._directory.get_provider(c.provider_id)
        if provider is not None and not provider.active:
            return self._fail(ValidationError(
                f"Provider '{c.provider_id}' is not active", field="provider_id"
            ))

        day = DayOfWeek.from_date(c.date)
        windows = self._calendar.windows_for(c.provider_id, day)
        if not windows:
            return self._fail(ValidationError(
                f"Provider '{c.provider_id}' has no schedule on {day.value}", field="time"
            ))

        booked = [
            a for a in self._store.find_by_provider_and_date_range(c.provider_id, c.date, c.date)
            if a.id != context.exclude_appointment_id
        ]
        slot = find_slot(self._slots.generate(windows, booked), c.time)
        if slot is None:
            ranges = ", ".join(
                f"{w.start_time.strftime('%H:%M')}-{w.end_time.strftime('%H:%M')} "
                f"every {w.slot_duration_minutes} min"
                for w in windows
            )
            return self._fail(ValidationError(
                f"{c.time.strftime('%H:%M')} is not a slot start. Available windows: {ranges}",
                field="time",
            ))
        if not slot.available:
            return self._fail(OverlapError(
                f"Provider '{c.provider_id}' already has an appointment on "
                f"{c.date} at {c.time.strftime('%H:%M')}"
            ))
        return ValidationResult(passed=True, validator=self.name)

    def _fail(self, error: SchedulingError) -> ValidationResult:
        return ValidationResult(passed=False, validator=self.name, error=error)


class PermissionValidator:
    """Role-based predicate over the provider/patient pair."""

    name = "permission"

    STAFF_ROLES = frozenset({CallerRole.ADMIN, CallerRole.RECEPTIONIST})

    def __init__(self, directory: ClinicDirectory) -> None:
        self._directory = directory

    def check(self, context: ValidationContext) -> ValidationResult:
        caller = context.caller
        c = context.candidate

        if caller.role in self.STAFF_ROLES:
            return ValidationResult(passed=True, validator=self.name)

        if caller.role == CallerRole.VETERINARIAN:
            if caller.provider_id and caller.provider_id == c.provider_id:
                return ValidationResult(passed=True, validator=self.name)
            return self._fail(PermissionDeniedError(
                "Veterinarians may only book appointments on their own schedule"
            ))

        if caller.role == CallerRole.OWNER:
            patient = self._directory.get_patient(c.patient_id)
            if patient is not None and caller.owner_id and patient.owner_id == caller.owner_id:
                return ValidationResult(passed=True, validator=self.name)
            return self._fail(PermissionDeniedError(
                "Owners may only book appointments for their own patients"
            ))

        return self._fail(PermissionDeniedError(
            f"Role '{caller.role.value}' is not allowed to book appointments"
        ))

    def _fail(self, error: SchedulingError) -> ValidationResult:
        return ValidationResult(passed=False, validator=self.name, error=error)


class ResourceValidator:
    """Service is offered and its tracked supplies are in stock."""

    name = "resource"

    def __init__(self, directory: ClinicDirectory) -> None:
        self._directory = directory

    def check(self, context: ValidationContext) -> ValidationResult:
        service = self._directory.get_service(context.candidate.service_id)
        if service is None:
            return self._fail(NotFoundError("Service", context.candidate.service_id))
        if not service.active:
            return self._fail(ValidationError(
                f"Service '{service.id}' is not currently offered", field="service_id"
            ))
        for supply_id, required in service.required_supplies.items():
            available = context.stock.get(supply_id, 0)
            if available < required:
                return self._fail(InsufficientStockError(supply_id, required, available))
        return ValidationResult(passed=True, validator=self.name)

    def _fail(self, error: SchedulingError) -> ValidationResult:
        return ValidationResult(passed=False, validator=self.name, error=error)


class ValidationPipeline:
    """Composes the validators into one ordered, short-circuiting check."""

    def __init__(
        self,
        directory: ClinicDirectory,
        calendar: ScheduleCalendar,
        store: PersistenceStore,
        slot_generator: Optional[SlotGenerator] = None,
    ) -> None:
        self.data = DataValidator(directory)
        self.availability = AvailabilityValidator(directory, calendar, store, slot_generator)
        self.permission = PermissionValidator(directory)
        self.resource = ResourceValidator(directory)
        self.validators: tuple[Validator, ...] = (
            self.data, self.availability, self.permission, self.resource,
        )

    def evaluate(
        self,
        context: ValidationContext,
        cancel_token: Optional[threading.Event] = None,
    ) -> ValidationResult:
        """Run validators in order and return the first failure, or a pass."""
        for validator in self.validators:
            if cancel_token is not None and cancel_token.is_set():
                raise OperationCancelledError(
                    f"Request cancelled before '{validator.name}' validation"
                )
            result = validator.check(context)
            if not result.passed:
                logger.info(
                    "Validation failed at %s: %s", validator.name,
                    result.error.message if result.error else "unknown",
                )
                return result
        return ValidationResult(passed=True, validator="pipeline")

    def validate(
        self,
        context: ValidationContext,
        cancel_token: Optional[threading.Event] = None,
    ) -> None:
        """Raise the first violated rule's error; return None when all pass."""
        result = self.evaluate(context, cancel_token)
        if not result.passed and result.error is not None:
            raise result.error
