"""SQLite appointment store.

The double-booking rule is a partial UNIQUE index over
(provider_id, date, time) that skips cancelled rows, so a cancelled
appointment frees its slot while the row itself is kept.
"""

import logging
import os
import sqlite3
import threading
from datetime import date, datetime, time
from decimal import Decimal
from typing import Optional

from clinic_scheduler.errors import (
    NotFoundError,
    PersistenceError,
    StaleStateError,
    UniqueViolationError,
)
from clinic_scheduler.schemas.appointment_schema import Appointment, AppointmentState
from clinic_scheduler.utils import generate_id

logger = logging.getLogger(__name__)

_COLUMNS = (
    "id", "provider_id", "patient_id", "service_id", "date", "time",
    "duration_minutes", "is_emergency", "motive", "observations", "final_price",
    "state", "cancellation_reason", "created_at", "updated_at",
)


class SQLiteAppointmentStore:
    """SQLite-backed PersistenceStore."""

    def __init__(self, db_path: Optional[str] = None):
        """Open the database.

        Args:
            db_path: Path to SQLite file, or ":memory:" for in-memory.
                     Defaults to the SQLITE_PATH env var or "./clinic_scheduler.db".
        """
        self.db_path = db_path or os.environ.get("SQLITE_PATH", "./clinic_scheduler.db")
        self.conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self._lock = threading.Lock()

    def init_schema(self) -> None:
        """Create tables and indexes if they don't exist."""
        with self._lock:
            self.conn.executescript("""
                CREATE TABLE IF NOT EXISTS appointments (
                    id TEXT PRIMARY KEY,
                    provider_id TEXT NOT NULL,
                    patient_id TEXT NOT NULL,
                    service_id TEXT NOT NULL,
                    date TEXT NOT NULL,
                    time TEXT NOT NULL,
                    duration_minutes INTEGER NOT NULL,
                    is_emergency INTEGER NOT NULL DEFAULT 0,
                    motive TEXT NOT NULL DEFAULT '',
                    observations TEXT,
                    final_price TEXT,
                    state TEXT NOT NULL CHECK(state IN (
                        'scheduled', 'confirmed', 'in_progress',
                        'attended', 'cancelled', 'no_show'
                    )),
                    cancellation_reason TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT
                );

                -- One live appointment per provider slot
                CREATE UNIQUE INDEX IF NOT EXISTS ux_appointments_slot
                    ON appointments(provider_id, date, time)
                    WHERE state != 'cancelled';

                CREATE INDEX IF NOT EXISTS idx_appointments_provider_date
                    ON appointments(provider_id, date);
            """)
            self.conn.commit()

    def close(self) -> None:
        """Close database connection."""
        self.conn.close()

    def save(
        self,
        appointment: Appointment,
        expected_state: Optional[AppointmentState] = None,
    ) -> Appointment:
        if appointment.id is None:
            appointment = appointment.model_copy(update={"id": generate_id("apt")})
            self._insert(appointment)
        else:
            self._update(appointment, expected_state)
        logger.debug("Appointment saved: %s (%s)", appointment.id, appointment.state.value)
        return appointment

    def find_by_id(self, appointment_id: str) -> Optional[Appointment]:
        rows = self._query("SELECT * FROM appointments WHERE id = ?", (appointment_id,))
        return _row_to_appointment(rows[0]) if rows else None

    def find_by_provider_and_date_range(
        self, provider_id: str, start: date, end: date
    ) -> list[Appointment]:
        rows = self._query(
            "SELECT * FROM appointments WHERE provider_id = ? AND date BETWEEN ? AND ? "
            "ORDER BY date, time",
            (provider_id, start.isoformat(), end.isoformat()),
        )
        return [_row_to_appointment(row) for row in rows]

    def find_by_date_range(self, start: date, end: date) -> list[Appointment]:
        rows = self._query(
            "SELECT * FROM appointments WHERE date BETWEEN ? AND ? ORDER BY date, time",
            (start.isoformat(), end.isoformat()),
        )
        return [_row_to_appointment(row) for row in rows]

    def _insert(self, appointment: Appointment) -> None:
        values = _appointment_to_row(appointment)
        placeholders = ", ".join("?" for _ in _COLUMNS)
        sql = f"INSERT INTO appointments ({', '.join(_COLUMNS)}) VALUES ({placeholders})"
        with self._lock:
            try:
                self.conn.execute(sql, values)
                self.conn.commit()
            except sqlite3.IntegrityError as exc:
                self.conn.rollback()
                raise _translate_integrity_error(appointment, exc) from exc
            except sqlite3.Error as exc:
                self.conn.rollback()
                raise PersistenceError(f"Failed to insert appointment: {exc}") from exc

    def _update(
        self, appointment: Appointment, expected_state: Optional[AppointmentState]
    ) -> None:
        row = dict(zip(_COLUMNS, _appointment_to_row(appointment)))
        assignments = ", ".join(f"{col} = :{col}" for col in _COLUMNS if col != "id")
        sql = f"UPDATE appointments SET {assignments} WHERE id = :id"
        if expected_state is not None:
            sql += " AND state = :expected_state"
            row["expected_state"] = expected_state.value

        with self._lock:
            try:
                cursor = self.conn.execute(sql, row)
                if cursor.rowcount == 0:
                    self.conn.rollback()
                    current = self.conn.execute(
                        "SELECT state FROM appointments WHERE id = ?", (appointment.id,)
                    ).fetchone()
                    if current is None:
                        raise NotFoundError("Appointment", appointment.id)
                    raise StaleStateError(
                        appointment.id or "",
                        expected_state.value if expected_state else "",
                        current["state"],
                    )
                self.conn.commit()
            except sqlite3.IntegrityError as exc:
                self.conn.rollback()
                raise _translate_integrity_error(appointment, exc) from exc
            except sqlite3.Error as exc:
                self.conn.rollback()
                raise PersistenceError(f"Failed to update appointment: {exc}") from exc

    def _query(self, sql: str, params: tuple) -> list[sqlite3.Row]:
        with self._lock:
            try:
                return self.conn.execute(sql, params).fetchall()
            except sqlite3.Error as exc:
                raise PersistenceError(f"Failed to read appointments: {exc}") from exc


def _translate_integrity_error(
    appointment: Appointment, exc: sqlite3.IntegrityError
) -> PersistenceError:
    if "UNIQUE" in str(exc) and "appointments.id" not in str(exc):
        return UniqueViolationError(
            f"Provider '{appointment.provider_id}' already has an appointment "
            f"on {appointment.date} at {appointment.time}"
        )
    return PersistenceError(f"Integrity error: {exc}")


def _appointment_to_row(appointment: Appointment) -> tuple:
    return (
        appointment.id,
        appointment.provider_id,
        appointment.patient_id,
        appointment.service_id,
        appointment.date.isoformat() if appointment.date else None,
        appointment.time.isoformat() if appointment.time else None,
        appointment.duration_minutes,
        int(appointment.is_emergency),
        appointment.motive,
        appointment.observations,
        str(appointment.final_price) if appointment.final_price is not None else None,
        appointment.state.value,
        appointment.cancellation_reason,
        appointment.created_at.isoformat(),
        appointment.updated_at.isoformat() if appointment.updated_at else None,
    )


def _row_to_appointment(row: sqlite3.Row) -> Appointment:
    return Appointment(
        id=row["id"],
        provider_id=row["provider_id"],
        patient_id=row["patient_id"],
        service_id=row["service_id"],
        date=date.fromisoformat(row["date"]),
        time=time.fromisoformat(row["time"]),
        duration_minutes=row["duration_minutes"],
        is_emergency=bool(row["is_emergency"]),
        motive=row["motive"],
        observations=row["observations"],
        final_price=Decimal(row["final_price"]) if row["final_price"] is not None else None,
        state=AppointmentState(row["state"]),
        cancellation_reason=row["cancellation_reason"],
        created_at=datetime.fromisoformat(row["created_at"]),
        updated_at=datetime.fromisoformat(row["updated_at"]) if row["updated_at"] else None,
    )
