"""
In-memory clinic directory: providers, patients, services and supply stock.

In production these records come from the clinic's CRUD services; the
scheduling core only reads them.
"""

import logging
import threading
from decimal import Decimal
from typing import Optional

from clinic_scheduler.schemas.clinic_schema import Patient, Provider, Service, ServiceCategory

logger = logging.getLogger(__name__)


class ClinicDirectory:
    """Lookup tables the validators and attention flows resolve references against."""

    def __init__(self) -> None:
        self._providers: dict[str, Provider] = {}
        self._patients: dict[str, Patient] = {}
        self._services: dict[str, Service] = {}
        self._stock: dict[str, int] = {}
        self._lock = threading.Lock()

    def add_provider(self, provider: Provider) -> Provider:
        with self._lock:
            self._providers[provider.id] = provider
        return provider

    def add_patient(self, patient: Patient) -> Patient:
        with self._lock:
            self._patients[patient.id] = patient
        return patient

    def add_service(self, service: Service) -> Service:
        with self._lock:
            self._services[service.id] = service
        return service

    def set_stock(self, supply_id: str, quantity: int) -> None:
        with self._lock:
            self._stock[supply_id] = quantity
        logger.debug("Stock set: %s = %d", supply_id, quantity)

    def get_provider(self, provider_id: str) -> Optional[Provider]:
        return self._providers.get(provider_id)

    def get_patient(self, patient_id: str) -> Optional[Patient]:
        return self._patients.get(patient_id)

    def get_service(self, service_id: str) -> Optional[Service]:
        return self._services.get(service_id)

    def stock_snapshot(self) -> dict[str, int]:
        """Point-in-time copy of supply levels for one request."""
        with self._lock:
            return dict(self._stock)

    def reset(self) -> None:
        """Clear all records. Used by test fixtures for isolation."""
        with self._lock:
            self._providers.clear()
            self._patients.clear()
            self._services.clear()
            self._stock.clear()


def seed_demo_directory(directory: Optional[ClinicDirectory] = None) -> ClinicDirectory:
    """Populate a directory with a small sample clinic."""
    directory = directory or ClinicDirectory()

    directory.add_provider(Provider(id="vet-1", name="Dr. Laura Gomez", surgical=True))
    directory.add_provider(Provider(id="vet-2", name="Dr. Andres Rojas"))
    directory.add_provider(Provider(id="vet-3", name="Dr. Marta Ruiz", active=False))

    directory.add_patient(Patient(id="pet-1", name="Luna", owner_id="owner-1"))
    directory.add_patient(Patient(id="pet-2", name="Max", owner_id="owner-1"))
    directory.add_patient(Patient(id="pet-3", name="Kira", owner_id="owner-2"))

    directory.add_service(Service(
        id="svc-consult", name="General Consultation",
        category=ServiceCategory.GENERAL, base_price=Decimal("40.00"),
    ))
    directory.add_service(Service(
        id="svc-vaccine", name="Vaccination",
        category=ServiceCategory.GENERAL, base_price=Decimal("25.00"),
        required_supplies={"vaccine-dose": 1},
    ))
    directory.add_service(Service(
        id="svc-surgery", name="Minor Surgery",
        category=ServiceCategory.SURGICAL, base_price=Decimal("250.00"),
        duration_minutes=90, required_supplies={"suture-kit": 1, "anesthetic": 2},
    ))
    directory.add_service(Service(
        id="svc-emergency", name="Emergency Care",
        category=ServiceCategory.EMERGENCY, base_price=Decimal("80.00"),
    ))
    directory.add_service(Service(
        id="svc-grooming", name="Grooming",
        category=ServiceCategory.AESTHETIC, base_price=Decimal("30.00"),
    ))

    directory.set_stock("vaccine-dose", 20)
    directory.set_stock("suture-kit", 5)
    directory.set_stock("anesthetic", 10)

    logger.info("Demo directory seeded")
    return directory
