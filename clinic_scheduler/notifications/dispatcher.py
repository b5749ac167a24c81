"""
Fire-and-forget notification dispatch.

The scheduling core hands a NotificationEvent to ``notify`` and moves on.
Delivery runs on a worker pool; every failure is retried and then logged,
never raised back to the booking or state-change request.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional, Protocol, Sequence

from clinic_scheduler.config import settings
from clinic_scheduler.notifications.templates import build_subject, render_message
from clinic_scheduler.schemas.notification_schema import NotificationEvent

logger = logging.getLogger(__name__)

# (channel, subject, body, event)
ChannelSender = Callable[[str, str, str, NotificationEvent], None]


class NotificationDispatcher(Protocol):
    """What the coordinator and reminder task need from notifications."""

    def notify(self, event: NotificationEvent) -> None:
        """Hand off an event. Must return promptly and never raise."""
        ...


def log_sender(channel: str, subject: str, body: str, event: NotificationEvent) -> None:
    """Default transport: write the rendered message to the log."""
    logger.info(
        "[%s] to patient %s / provider %s: %s | %s",
        channel, event.patient_id, event.provider_id, subject, body.replace("\n", " "),
    )


class ThreadPoolDispatcher:
    """Delivers each event to every configured channel on a background pool."""

    def __init__(
        self,
        sender: Optional[ChannelSender] = None,
        channels: Optional[Sequence[str]] = None,
        max_workers: Optional[int] = None,
        max_retries: Optional[int] = None,
    ) -> None:
        cfg = settings.notifications
        self._sender = sender or log_sender
        self._channels = tuple(channels if channels is not None else cfg.channels)
        self._max_retries = cfg.max_retries if max_retries is None else max_retries
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers or cfg.max_workers,
            thread_name_prefix="notify",
        )

    def notify(self, event: NotificationEvent) -> None:
        try:
            self._executor.submit(self._deliver, event)
        except RuntimeError:
            logger.error(
                "Dispatcher is shut down; dropped %s notification for %s",
                event.kind.value, event.appointment_id,
            )

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting events; optionally wait for queued deliveries."""
        self._executor.shutdown(wait=wait)

    def _deliver(self, event: NotificationEvent) -> None:
        subject = build_subject(event)
        body = render_message(event)
        for channel in self._channels:
            self._send_with_retry(channel, subject, body, event)

    def _send_with_retry(
        self, channel: str, subject: str, body: str, event: NotificationEvent
    ) -> None:
        attempts = self._max_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                self._sender(channel, subject, body, event)
                return
            except Exception:
                if attempt < attempts:
                    logger.warning(
                        "Notification %s via %s failed (attempt %d/%d), retrying",
                        event.kind.value, channel, attempt, attempts,
                    )
                else:
                    logger.exception(
                        "Notification %s via %s for %s failed after %d attempts",
                        event.kind.value, channel, event.appointment_id, attempts,
                    )
