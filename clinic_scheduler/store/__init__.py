from clinic_scheduler.store.appointment_store import InMemoryAppointmentStore, PersistenceStore
from clinic_scheduler.store.directory import ClinicDirectory, seed_demo_directory
from clinic_scheduler.store.sqlite_store import SQLiteAppointmentStore

__all__ = [
    "PersistenceStore",
    "InMemoryAppointmentStore",
    "SQLiteAppointmentStore",
    "ClinicDirectory",
    "seed_demo_directory",
]
