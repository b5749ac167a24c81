"""Tests for configuration loading and validation."""

from dataclasses import FrozenInstanceError, replace

import pytest

from clinic_scheduler.config import (
    ApiConfig,
    AppConfig,
    NotificationConfig,
    ReminderConfig,
    SchedulingConfig,
    StorageConfig,
    _csv,
    _safe_float,
    _safe_int,
    _validate_config,
    settings,
)


class TestConfigValidation:
    def test_default_config_passes_validation(self):
        _validate_config(AppConfig())  # should not raise

    def test_defaults(self):
        config = AppConfig()
        assert config.scheduling.default_slot_minutes == 30
        assert config.scheduling.emergency_surcharge == 0.50
        assert config.reminders.first_lead_hours == 24

    def test_min_slot_must_be_positive(self):
        config = replace(AppConfig(), scheduling=SchedulingConfig(min_slot_minutes=0))
        with pytest.raises(ValueError, match="MIN_SLOT_MINUTES"):
            _validate_config(config)

    def test_max_slot_below_min(self):
        config = replace(
            AppConfig(), scheduling=SchedulingConfig(min_slot_minutes=60, max_slot_minutes=30)
        )
        with pytest.raises(ValueError, match="MAX_SLOT_MINUTES"):
            _validate_config(config)

    def test_default_slot_out_of_range(self):
        config = replace(AppConfig(), scheduling=SchedulingConfig(default_slot_minutes=5))
        with pytest.raises(ValueError, match="DEFAULT_SLOT_MINUTES"):
            _validate_config(config)

    def test_default_concurrency_above_limit(self):
        config = replace(AppConfig(), scheduling=SchedulingConfig(default_max_concurrent=11))
        with pytest.raises(ValueError, match="DEFAULT_MAX_CONCURRENT"):
            _validate_config(config)

    def test_negative_surcharge(self):
        config = replace(AppConfig(), scheduling=SchedulingConfig(emergency_surcharge=-0.1))
        with pytest.raises(ValueError, match="EMERGENCY_SURCHARGE"):
            _validate_config(config)

    def test_no_notification_workers(self):
        config = replace(AppConfig(), notifications=NotificationConfig(max_workers=0))
        with pytest.raises(ValueError, match="NOTIFY_MAX_WORKERS"):
            _validate_config(config)

    def test_negative_retries(self):
        config = replace(AppConfig(), notifications=NotificationConfig(max_retries=-1))
        with pytest.raises(ValueError, match="NOTIFY_MAX_RETRIES"):
            _validate_config(config)

    def test_reminder_interval(self):
        config = replace(AppConfig(), reminders=ReminderConfig(scan_interval_seconds=0))
        with pytest.raises(ValueError, match="REMINDER_SCAN_INTERVAL"):
            _validate_config(config)

    def test_unknown_backend(self):
        config = replace(AppConfig(), storage=StorageConfig(backend="postgres"))
        with pytest.raises(ValueError, match="STORE_BACKEND"):
            _validate_config(config)

    def test_port_range(self):
        config = replace(AppConfig(), api=ApiConfig(port=70000))
        with pytest.raises(ValueError, match="API_PORT"):
            _validate_config(config)


class TestEnvParsing:
    def test_safe_int_reads_env(self, monkeypatch):
        monkeypatch.setenv("TEST_SLOT", "45")
        assert _safe_int("TEST_SLOT", "30") == 45

    def test_safe_int_default(self, monkeypatch):
        monkeypatch.delenv("TEST_SLOT", raising=False)
        assert _safe_int("TEST_SLOT", "30") == 30

    def test_safe_int_invalid(self, monkeypatch):
        monkeypatch.setenv("TEST_SLOT", "thirty")
        with pytest.raises(ValueError, match="TEST_SLOT"):
            _safe_int("TEST_SLOT", "30")

    def test_safe_float_invalid(self, monkeypatch):
        monkeypatch.setenv("TEST_RATE", "half")
        with pytest.raises(ValueError, match="TEST_RATE"):
            _safe_float("TEST_RATE", "0.5")

    def test_csv_strips_blanks(self, monkeypatch):
        monkeypatch.setenv("TEST_CHANNELS", " email, ,sms ")
        assert _csv("TEST_CHANNELS", "email") == ("email", "sms")


class TestSettingsSingleton:
    def test_settings_is_app_config(self):
        assert isinstance(settings, AppConfig)

    def test_config_is_frozen(self):
        with pytest.raises(FrozenInstanceError):
            settings.log_level = "DEBUG"  # type: ignore[misc]
