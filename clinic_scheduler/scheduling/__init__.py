from clinic_scheduler.scheduling.attention import create_flow, get_registered_categories, register_flow
from clinic_scheduler.scheduling.calendar import ScheduleCalendar
from clinic_scheduler.scheduling.coordinator import AppointmentCoordinator
from clinic_scheduler.scheduling.reminders import ReminderScanner
from clinic_scheduler.scheduling.slots import SlotGenerator
from clinic_scheduler.scheduling.state_machine import AppointmentEvent, AppointmentStateMachine
from clinic_scheduler.scheduling.validation import ValidationPipeline

__all__ = [
    "ScheduleCalendar",
    "SlotGenerator",
    "AppointmentStateMachine",
    "AppointmentEvent",
    "ValidationPipeline",
    "AppointmentCoordinator",
    "ReminderScanner",
    "create_flow",
    "register_flow",
    "get_registered_categories",
]
