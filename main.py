"""
Clinic scheduling entry point.

Serves the HTTP API, runs the reminder scanner, or starts the offline
console demo.

Usage:
    API server:     python main.py serve
    Reminder task:  python main.py reminders
    Console mode:   python main.py console
"""

import logging
import signal
import sys
import threading

from clinic_scheduler.config import settings

logger = logging.getLogger(__name__)


def _run_api_mode() -> None:
    """Start the FastAPI app under uvicorn."""
    import uvicorn

    from clinic_scheduler.api.app import build_coordinator, create_app
    from clinic_scheduler.notifications.dispatcher import ThreadPoolDispatcher

    dispatcher = ThreadPoolDispatcher()
    app = create_app(build_coordinator(dispatcher))
    logger.info("Starting API on %s:%d", settings.api.host, settings.api.port)
    try:
        uvicorn.run(app, host=settings.api.host, port=settings.api.port)
    finally:
        dispatcher.shutdown(wait=True)


def _run_reminder_mode() -> None:
    """Scan the configured store for due reminders until interrupted."""
    from clinic_scheduler.api.app import build_store
    from clinic_scheduler.notifications.dispatcher import ThreadPoolDispatcher
    from clinic_scheduler.scheduling.reminders import ReminderScanner

    dispatcher = ThreadPoolDispatcher()
    scanner = ReminderScanner(build_store(), dispatcher)
    stop = threading.Event()
    signal.signal(signal.SIGINT, lambda *_: stop.set())
    signal.signal(signal.SIGTERM, lambda *_: stop.set())
    try:
        scanner.run(stop)
    finally:
        dispatcher.shutdown(wait=True)


def _run_console_mode() -> None:
    """Start the offline console demo."""
    from console_demo import ConsoleSession

    ConsoleSession().run()


if __name__ == "__main__":
    mode = sys.argv[1] if len(sys.argv) > 1 else "serve"
    if mode == "console":
        _run_console_mode()
    elif mode == "reminders":
        _run_reminder_mode()
    else:
        _run_api_mode()
