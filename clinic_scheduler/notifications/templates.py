"""Message rendering for appointment lifecycle notifications."""

from clinic_scheduler.schemas.notification_schema import NotificationEvent, NotificationKind


def _when(event: NotificationEvent) -> str:
    if event.date is None or event.time is None:
        return "the scheduled time"
    return f"{event.date.isoformat()} at {event.time.strftime('%H:%M')}"


def build_subject(event: NotificationEvent) -> str:
    """Short subject line for channels that have one."""
    subjects = {
        NotificationKind.CREATED: "Appointment booked",
        NotificationKind.CONFIRMED: "Appointment confirmed",
        NotificationKind.CANCELLED: "Appointment cancelled",
        NotificationKind.ATTENDED: "Appointment completed",
        NotificationKind.REMINDER: "Appointment reminder",
    }
    return f"{subjects[event.kind]} ({event.appointment_id})"


def render_message(event: NotificationEvent) -> str:
    """Build the body text for a lifecycle event."""
    when = _when(event)
    if event.kind == NotificationKind.CREATED:
        return f"Your appointment {event.appointment_id} has been booked for {when}."
    if event.kind == NotificationKind.CONFIRMED:
        return f"Your appointment {event.appointment_id} on {when} is confirmed."
    if event.kind == NotificationKind.CANCELLED:
        lines = [f"Your appointment {event.appointment_id} on {when} has been cancelled."]
        if event.reason:
            lines.append(f"Reason: {event.reason}")
        return "\n".join(lines)
    if event.kind == NotificationKind.ATTENDED:
        return f"Your appointment {event.appointment_id} on {when} has been completed. Thank you."
    hours = event.lead_hours or 0
    unit = "hour" if hours == 1 else "hours"
    return f"Reminder: appointment {event.appointment_id} in {hours} {unit}, on {when}."
