"""Tests for settings defaults and environment overrides."""

from decimal import Decimal

from rsi_monitor.config import AppSettings, MonitorSettings, TrackerSettings


class TestMonitorSettings:

    def test_defaults(self) -> None:
        settings = MonitorSettings()

        assert settings.rsi_threshold == Decimal("85")
        assert settings.reset_threshold == Decimal("80")
        assert settings.window_size == 24
        assert settings.timeframes == ["4h", "1h", "15m", "1m"]
        assert settings.composite_priority == ["4h", "1h", "15m"]
        assert "ELXUSDT" in settings.blacklist

    def test_poll_interval_per_timeframe(self) -> None:
        settings = MonitorSettings()

        assert settings.poll_interval_for("1m") == 10
        assert settings.poll_interval_for("4h") == 30
        assert settings.poll_interval_for("1d") == settings.default_poll_interval

    def test_env_override(self, monkeypatch) -> None:
        monkeypatch.setenv("MONITOR_RSI_THRESHOLD", "80")
        monkeypatch.setenv("MONITOR_RESET_MARGIN", "10")

        settings = MonitorSettings()

        assert settings.rsi_threshold == Decimal("80")
        assert settings.reset_threshold == Decimal("70")


class TestTrackerSettings:

    def test_defaults(self) -> None:
        settings = TrackerSettings()

        assert settings.target_percent == Decimal("-1")
        assert settings.expiry_hours == 24.0
        assert settings.store_path == "data/alerts_history.json"


def test_app_settings_compose() -> None:
    settings = AppSettings()

    assert settings.liquidity.min_volume_24h == Decimal("5000000")
    assert settings.liquidity.min_open_interest == Decimal("2000000")
    assert settings.dashboard.enabled is False
