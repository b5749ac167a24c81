"""
Error taxonomy for the scheduling core.

Every rejection the core can produce is a SchedulingError subclass, so
the HTTP layer maps them to status codes in one place:

    ValidationError         400  malformed input, fix and retry
    OverlapError            409  schedule conflict, pick another slot
    PermissionDeniedError   403  caller not authorized
    InvalidTransitionError  400  state-machine violation (stale client state)
    AppointmentLockedError  422  edit of an attended/cancelled appointment
    NotFoundError           404  unknown appointment/provider/patient/service
    PersistenceError        500  store failure
    OperationCancelledError 503  caller aborted the request mid-pipeline
"""

from typing import Optional


class SchedulingError(Exception):
    """Base class for all errors raised by the scheduling core."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(SchedulingError):
    """Input rejected by a validation rule."""

    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.field = field


class InsufficientStockError(ValidationError):
    """A service requires supplies that are not in stock."""

    def __init__(self, supply_id: str, required: int, available: int) -> None:
        super().__init__(
            f"Insufficient stock for supply '{supply_id}': "
            f"required {required}, available {available}",
            field="service_id",
        )
        self.supply_id = supply_id
        self.required = required
        self.available = available


class OverlapError(SchedulingError):
    """Two windows or appointments would occupy the same time."""

    status_code = 409


class PermissionDeniedError(SchedulingError):
    """Caller is not allowed to act on the provider/patient combination."""

    status_code = 403


class InvalidTransitionError(SchedulingError):
    """No transition exists from the current state for the given event."""

    status_code = 400

    def __init__(self, from_state: str, event: str, message: Optional[str] = None) -> None:
        super().__init__(
            message or f"No valid transition from '{from_state}' with event '{event}'"
        )
        self.from_state = from_state
        self.event = event


class AppointmentLockedError(InvalidTransitionError):
    """Attended or cancelled appointments cannot be edited."""

    status_code = 422

    def __init__(self, from_state: str, event: str = "reschedule") -> None:
        super().__init__(
            from_state,
            event,
            "cannot modify an appointment already attended or cancelled",
        )


class NotFoundError(SchedulingError):
    """Referenced entity does not exist."""

    status_code = 404

    def __init__(self, entity: str, entity_id: object) -> None:
        super().__init__(f"{entity} '{entity_id}' not found")
        self.entity = entity
        self.entity_id = entity_id


class PersistenceError(SchedulingError):
    """The appointment store failed to read or write."""

    status_code = 500


class UniqueViolationError(PersistenceError):
    """Store rejected a write that would double-book a provider slot."""


class StaleStateError(PersistenceError):
    """Store rejected a write because the stored state changed underneath it."""

    def __init__(self, appointment_id: str, expected: str, actual: str) -> None:
        super().__init__(
            f"Appointment '{appointment_id}' is '{actual}', expected '{expected}'"
        )
        self.appointment_id = appointment_id
        self.expected = expected
        self.actual = actual


class OperationCancelledError(SchedulingError):
    """Caller cancelled the request before any write happened."""

    status_code = 503
