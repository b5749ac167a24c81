"""FastAPI application factory for the scheduling API."""

import logging
from datetime import date
from typing import Optional

from fastapi import Depends, FastAPI, Header, Query, Request
from fastapi.responses import JSONResponse

from clinic_scheduler.config import settings
from clinic_scheduler.errors import NotFoundError, SchedulingError
from clinic_scheduler.logging_context import request_scope
from clinic_scheduler.notifications.dispatcher import NotificationDispatcher, ThreadPoolDispatcher
from clinic_scheduler.schemas.appointment_schema import (
    Appointment,
    AppointmentRequest,
    CancelRequest,
    Caller,
    CallerRole,
    RescheduleRequest,
)
from clinic_scheduler.schemas.schedule_schema import DayAvailability, ScheduleWindow, WindowRequest
from clinic_scheduler.scheduling.calendar import ScheduleCalendar, build_window
from clinic_scheduler.scheduling.coordinator import AppointmentCoordinator
from clinic_scheduler.scheduling.state_machine import AppointmentEvent
from clinic_scheduler.store.appointment_store import InMemoryAppointmentStore, PersistenceStore
from clinic_scheduler.store.directory import seed_demo_directory
from clinic_scheduler.store.sqlite_store import SQLiteAppointmentStore

logger = logging.getLogger(__name__)


def build_store() -> PersistenceStore:
    """Create the store selected by STORE_BACKEND."""
    if settings.storage.backend == "sqlite":
        store = SQLiteAppointmentStore(settings.storage.sqlite_path)
        store.init_schema()
        logger.info("Using SQLite store at %s", settings.storage.sqlite_path)
        return store
    logger.info("Using in-memory store")
    return InMemoryAppointmentStore()


def build_coordinator(dispatcher: Optional[NotificationDispatcher] = None) -> AppointmentCoordinator:
    """Wire a coordinator from configuration with the demo clinic directory."""
    return AppointmentCoordinator(
        store=build_store(),
        dispatcher=dispatcher or ThreadPoolDispatcher(),
        directory=seed_demo_directory(),
        calendar=ScheduleCalendar(),
    )


def get_caller(
    x_caller_role: CallerRole = Header(...),
    x_caller_id: str = Header("anonymous"),
    x_owner_id: Optional[str] = Header(None),
    x_provider_id: Optional[str] = Header(None),
) -> Caller:
    """Caller identity from request headers. Authentication happens upstream."""
    return Caller(
        user_id=x_caller_id,
        role=x_caller_role,
        owner_id=x_owner_id,
        provider_id=x_provider_id,
    )


def create_app(coordinator: Optional[AppointmentCoordinator] = None) -> FastAPI:
    """Create FastAPI app with optional coordinator injection.

    Args:
        coordinator: Fully wired coordinator. If None, one is built from
            configuration with a demo clinic directory.

    Returns:
        Configured FastAPI application.
    """
    if coordinator is None:
        coordinator = build_coordinator()

    app = FastAPI(title="Clinic Scheduling API", version="0.1.0")
    app.state.coordinator = coordinator

    @app.middleware("http")
    async def request_context(request: Request, call_next):
        with request_scope(request.headers.get("X-Request-ID")) as request_id:
            response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response

    @app.exception_handler(SchedulingError)
    async def scheduling_error_handler(request: Request, exc: SchedulingError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        else:
            logger.info(
                "%s %s rejected (%d): %s",
                request.method, request.url.path, exc.status_code, exc.message,
            )
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.message, "error": type(exc).__name__},
        )

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok", "service": settings.service_name}

    # --- Appointment Routes ---

    @app.post("/appointments", response_model=Appointment, status_code=201)
    def create_appointment(
        data: AppointmentRequest, caller: Caller = Depends(get_caller)
    ) -> Appointment:
        """Book a new appointment."""
        return app.state.coordinator.create_appointment(data, caller)

    @app.get("/appointments/{appointment_id}", response_model=Appointment)
    def get_appointment(appointment_id: str) -> Appointment:
        return app.state.coordinator.get_appointment(appointment_id)

    @app.put("/appointments/{appointment_id}", response_model=Appointment)
    def reschedule_appointment(
        appointment_id: str,
        data: RescheduleRequest,
        caller: Caller = Depends(get_caller),
    ) -> Appointment:
        """Move an appointment to a new date and/or time."""
        return app.state.coordinator.reschedule(appointment_id, data.date, data.time, caller)

    def _transition(
        appointment_id: str,
        event: AppointmentEvent,
        caller: Caller,
        reason: Optional[str] = None,
    ) -> Appointment:
        payload = {"reason": reason} if event == AppointmentEvent.CANCEL else None
        return app.state.coordinator.change_state(appointment_id, event, payload, caller)

    @app.put("/appointments/{appointment_id}/confirm", response_model=Appointment)
    def confirm_appointment(
        appointment_id: str, caller: Caller = Depends(get_caller)
    ) -> Appointment:
        return _transition(appointment_id, AppointmentEvent.CONFIRM, caller)

    @app.put("/appointments/{appointment_id}/cancel", response_model=Appointment)
    def cancel_appointment(
        appointment_id: str,
        data: Optional[CancelRequest] = None,
        caller: Caller = Depends(get_caller),
    ) -> Appointment:
        reason = data.reason if data is not None else ""
        return _transition(appointment_id, AppointmentEvent.CANCEL, caller, reason)

    @app.put("/appointments/{appointment_id}/attend", response_model=Appointment)
    def attend_appointment(
        appointment_id: str, caller: Caller = Depends(get_caller)
    ) -> Appointment:
        """Mark attended directly, running the service category's attention flow."""
        return _transition(appointment_id, AppointmentEvent.MARK_ATTENDED, caller)

    @app.put("/appointments/{appointment_id}/start-attention", response_model=Appointment)
    def start_attention(
        appointment_id: str, caller: Caller = Depends(get_caller)
    ) -> Appointment:
        return _transition(appointment_id, AppointmentEvent.START, caller)

    @app.put("/appointments/{appointment_id}/finish-attention", response_model=Appointment)
    def finish_attention(
        appointment_id: str, caller: Caller = Depends(get_caller)
    ) -> Appointment:
        return _transition(appointment_id, AppointmentEvent.FINISH, caller)

    @app.put("/appointments/{appointment_id}/no-show", response_model=Appointment)
    def mark_no_show(
        appointment_id: str, caller: Caller = Depends(get_caller)
    ) -> Appointment:
        return _transition(appointment_id, AppointmentEvent.NO_SHOW, caller)

    # --- Provider Schedule Routes ---

    @app.get("/providers/{provider_id}/availability", response_model=DayAvailability)
    def provider_availability(
        provider_id: str, day: date = Query(..., alias="date")
    ) -> DayAvailability:
        """Windows, computed slots and booked appointments for one date."""
        return app.state.coordinator.availability(provider_id, day)

    @app.post("/providers/{provider_id}/windows", response_model=ScheduleWindow, status_code=201)
    def create_window(provider_id: str, data: WindowRequest) -> ScheduleWindow:
        """Add a weekly availability window for a provider."""
        if app.state.coordinator.directory.get_provider(provider_id) is None:
            raise NotFoundError("Provider", provider_id)
        window = build_window(provider_id, **data.model_dump())
        return app.state.coordinator.calendar.add_window(window)

    @app.get("/providers/{provider_id}/windows", response_model=list[ScheduleWindow])
    def list_windows(provider_id: str, include_inactive: bool = False) -> list[ScheduleWindow]:
        calendar: ScheduleCalendar = app.state.coordinator.calendar
        windows = calendar.history(provider_id)
        if not include_inactive:
            windows = [w for w in windows if w.active]
        return windows

    @app.put("/windows/{window_id}/deactivate", response_model=ScheduleWindow)
    def deactivate_window(window_id: str) -> ScheduleWindow:
        return app.state.coordinator.calendar.deactivate(window_id)

    @app.put("/windows/{window_id}/reactivate", response_model=ScheduleWindow)
    def reactivate_window(window_id: str) -> ScheduleWindow:
        return app.state.coordinator.calendar.reactivate(window_id)

    return app
