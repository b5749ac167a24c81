from clinic_scheduler.api.app import build_coordinator, create_app

__all__ = ["create_app", "build_coordinator"]
