"""
Attention flows: category-specific checks run before an appointment is
marked attended directly from SCHEDULED or CONFIRMED.

Every flow walks the same five steps (prepare, pre-validate, execute,
finish, record) but decides for itself what each step checks. Flows are
looked up by service category through a registry instead of a class
hierarchy, so adding a category means registering one more factory.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Protocol

from clinic_scheduler.errors import ValidationError
from clinic_scheduler.schemas.appointment_schema import Appointment, AppointmentState
from clinic_scheduler.schemas.clinic_schema import Service, ServiceCategory
from clinic_scheduler.store.directory import ClinicDirectory

logger = logging.getLogger(__name__)


@dataclass
class AttentionRecord:
    """Trace of a completed attention flow."""
    appointment_id: str
    category: ServiceCategory
    steps: list[str] = field(default_factory=list)


class AttentionFlow(Protocol):
    category: ServiceCategory

    def process_attention(self, appointment: Appointment, service: Service) -> AttentionRecord:
        ...


def _require_patient(appointment: Appointment, directory: ClinicDirectory) -> None:
    if not appointment.patient_id or directory.get_patient(appointment.patient_id) is None:
        raise ValidationError("Appointment must have a patient", field="patient_id")


def _require_provider(appointment: Appointment, directory: ClinicDirectory) -> None:
    if not appointment.provider_id or directory.get_provider(appointment.provider_id) is None:
        raise ValidationError("Appointment must have an assigned provider", field="provider_id")


class GeneralAttention:
    """Consultations, vaccinations and anything without special handling."""

    category = ServiceCategory.GENERAL

    def __init__(self, directory: ClinicDirectory) -> None:
        self._directory = directory

    def process_attention(self, appointment: Appointment, service: Service) -> AttentionRecord:
        record = AttentionRecord(appointment.id or "", self.category)
        logger.info("Preparing consultation for appointment %s", appointment.id)
        record.steps.append("prepare")

        _require_patient(appointment, self._directory)
        _require_provider(appointment, self._directory)
        record.steps.append("pre_validate")

        record.steps.append("execute")
        record.steps.append("finish")

        logger.info("Attention recorded for appointment %s (%s)", appointment.id, service.id)
        record.steps.append("record")
        return record


class SurgicalAttention:
    """Surgery: confirmed bookings only, qualified surgeon, supplies on hand."""

    category = ServiceCategory.SURGICAL

    def __init__(self, directory: ClinicDirectory) -> None:
        self._directory = directory

    def process_attention(self, appointment: Appointment, service: Service) -> AttentionRecord:
        record = AttentionRecord(appointment.id or "", self.category)
        logger.info("Preparing surgery for appointment %s", appointment.id)
        record.steps.append("prepare")

        _require_patient(appointment, self._directory)
        _require_provider(appointment, self._directory)
        if appointment.state != AppointmentState.CONFIRMED:
            raise ValidationError(
                "Surgery requires a confirmed appointment", field="state"
            )
        provider = self._directory.get_provider(appointment.provider_id)
        if provider is not None and not provider.surgical:
            raise ValidationError(
                f"Provider '{provider.id}' is not qualified for surgery", field="provider_id"
            )
        stock = self._directory.stock_snapshot()
        for supply_id, required in service.required_supplies.items():
            if stock.get(supply_id, 0) < required:
                raise ValidationError(
                    f"Surgery supply '{supply_id}' is not available", field="service_id"
                )
        record.steps.append("pre_validate")

        logger.info("Surgery performed for appointment %s", appointment.id)
        record.steps.append("execute")

        logger.info("Surgery finished for appointment %s; starting recovery", appointment.id)
        record.steps.append("finish")

        logger.info("Attention recorded for appointment %s (%s)", appointment.id, service.id)
        record.steps.append("record")
        return record


class EmergencyAttention:
    """Emergencies skip everything but the patient check."""

    category = ServiceCategory.EMERGENCY

    def __init__(self, directory: ClinicDirectory) -> None:
        self._directory = directory

    def process_attention(self, appointment: Appointment, service: Service) -> AttentionRecord:
        record = AttentionRecord(appointment.id or "", self.category)
        logger.warning("Emergency attention for appointment %s", appointment.id)
        record.steps.append("prepare")

        _require_patient(appointment, self._directory)
        record.steps.append("pre_validate")

        record.steps.append("execute")
        record.steps.append("finish")

        logger.info("Attention recorded for appointment %s (%s)", appointment.id, service.id)
        record.steps.append("record")
        return record


_FLOW_REGISTRY: dict[ServiceCategory, Callable[..., AttentionFlow]] = {}


def register_flow(category: ServiceCategory, factory: Callable[..., AttentionFlow]) -> None:
    """Register an attention flow factory for a service category."""
    _FLOW_REGISTRY[category] = factory
    logger.debug("Attention flow registered: %s", category.value)


def create_flow(category: ServiceCategory, **kwargs: Any) -> AttentionFlow:
    """Create the attention flow for a category.

    Raises:
        KeyError: If no flow is registered for the category.
    """
    if category not in _FLOW_REGISTRY:
        registered = [c.value for c in _FLOW_REGISTRY]
        raise KeyError(f"No attention flow for '{category.value}'. Available: {registered}")
    return _FLOW_REGISTRY[category](**kwargs)


def get_registered_categories() -> list[ServiceCategory]:
    return list(_FLOW_REGISTRY.keys())


def _auto_register() -> None:
    register_flow(ServiceCategory.GENERAL, GeneralAttention)
    register_flow(ServiceCategory.AESTHETIC, GeneralAttention)
    register_flow(ServiceCategory.SURGICAL, SurgicalAttention)
    register_flow(ServiceCategory.EMERGENCY, EmergencyAttention)


_auto_register()
