from clinic_scheduler.notifications.dispatcher import (
    NotificationDispatcher,
    ThreadPoolDispatcher,
    log_sender,
)
from clinic_scheduler.notifications.templates import build_subject, render_message

__all__ = [
    "NotificationDispatcher",
    "ThreadPoolDispatcher",
    "log_sender",
    "build_subject",
    "render_message",
]
