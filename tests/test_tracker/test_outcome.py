"""Tests for AlertTracker: target, excursion, success/expiry, statistics."""

from decimal import Decimal

import pytest

from rsi_monitor.config import TrackerSettings
from rsi_monitor.models import AlertStatus
from rsi_monitor.tracker.outcome import AlertTracker
from rsi_monitor.tracker.store import AlertStore

HOUR = 3600.0


class TestRecord:

    def test_target_is_one_percent_below_entry(self, tracker: AlertTracker) -> None:
        alert = tracker.record("BTCUSDT", Decimal("90"), "1h", Decimal("100"))

        assert alert.target_price == Decimal("99")
        assert alert.status == AlertStatus.PENDING
        assert alert.target_reached is None
        assert alert.max_price == alert.min_price == alert.current_price == Decimal("100")
        assert alert.max_excursion_pct == Decimal("0")

    def test_id_format(self, tracker: AlertTracker, clock) -> None:
        alert = tracker.record("BTCUSDT", Decimal("90"), "4h", Decimal("100"))
        assert alert.id == f"BTCUSDT_4h_{int(clock.now * 1000)}"

    def test_ids_unique_within_same_millisecond(self, tracker: AlertTracker) -> None:
        first = tracker.record("BTCUSDT", Decimal("90"), "4h", Decimal("100"))
        second = tracker.record("BTCUSDT", Decimal("91"), "4h", Decimal("100"))
        assert first.id != second.id

    def test_non_positive_entry_rejected(self, tracker: AlertTracker) -> None:
        with pytest.raises(ValueError):
            tracker.record("BTCUSDT", Decimal("90"), "1h", Decimal("0"))
        assert tracker.alerts == []

    def test_custom_target_percent(self, tmp_path, clock) -> None:
        settings = TrackerSettings(target_percent=Decimal("-2.5"), store_path=str(tmp_path / "a.json"))
        tracker = AlertTracker(settings, clock=clock)

        alert = tracker.record("ETHUSDT", Decimal("88"), "15m", Decimal("200"))

        assert alert.target_price == Decimal("195")


class TestObserve:

    def test_unknown_id_is_noop(self, tracker: AlertTracker) -> None:
        assert tracker.observe("missing", Decimal("1")) is None

    def test_tracks_extremes_and_max_excursion(self, tracker: AlertTracker, clock) -> None:
        alert = tracker.record("BTCUSDT", Decimal("90"), "1h", Decimal("100"))

        clock.advance(60)
        tracker.observe(alert.id, Decimal("101"))
        clock.advance(60)
        tracker.observe(alert.id, Decimal("99.5"))
        max_at = clock.now
        clock.advance(60)
        tracker.observe(alert.id, Decimal("99.8"))

        assert alert.max_price == Decimal("101")
        assert alert.min_price == Decimal("99.5")
        assert alert.current_price == Decimal("99.8")
        assert alert.max_excursion_pct == Decimal("0.5000")
        assert alert.max_excursion_price == Decimal("99.5")
        assert alert.max_excursion_at == max_at
        assert alert.status == AlertStatus.PENDING

    def test_reaching_target_is_success(self, tracker: AlertTracker, clock) -> None:
        alert = tracker.record("BTCUSDT", Decimal("90"), "1h", Decimal("100"))
        clock.advance(30 * 60)

        tracker.observe(alert.id, Decimal("99"))

        assert alert.status == AlertStatus.SUCCESS
        assert alert.target_reached is True
        assert alert.target_reached_at == clock.now
        assert alert.time_to_target_minutes == Decimal("30.00")

    def test_success_is_final(self, tracker: AlertTracker, clock) -> None:
        alert = tracker.record("BTCUSDT", Decimal("90"), "1h", Decimal("100"))
        tracker.observe(alert.id, Decimal("98"))
        clock.advance(25 * HOUR)

        tracker.observe(alert.id, Decimal("105"))

        assert alert.status == AlertStatus.SUCCESS
        assert alert.current_price == Decimal("105")

    def test_expires_after_window(self, tracker: AlertTracker, clock) -> None:
        alert = tracker.record("BTCUSDT", Decimal("90"), "1h", Decimal("100"))
        clock.advance(23 * HOUR)
        tracker.observe(alert.id, Decimal("99.6"))
        assert alert.status == AlertStatus.PENDING

        clock.advance(1 * HOUR)
        tracker.observe(alert.id, Decimal("100.2"))

        assert alert.status == AlertStatus.EXPIRED
        assert alert.target_reached is False
        assert alert.final_excursion_pct == Decimal("-0.2000")
        assert alert.max_excursion_pct == Decimal("0.4000")

    def test_target_checked_before_expiry(self, tracker: AlertTracker, clock) -> None:
        alert = tracker.record("BTCUSDT", Decimal("90"), "1h", Decimal("100"))
        clock.advance(30 * HOUR)

        tracker.observe(alert.id, Decimal("98.9"))

        assert alert.status == AlertStatus.SUCCESS

    def test_observations_persisted(self, tracker: AlertTracker, tracker_settings, clock) -> None:
        alert = tracker.record("BTCUSDT", Decimal("90"), "1h", Decimal("100"))
        tracker.observe(alert.id, Decimal("99"))

        reloaded = AlertTracker(tracker_settings, clock=clock)

        (restored,) = reloaded.alerts
        assert restored.status == AlertStatus.SUCCESS
        assert restored.current_price == Decimal("99")
        assert isinstance(restored.entry_price, Decimal)


class TestStatistics:

    def test_empty_log_all_zero(self, tracker: AlertTracker) -> None:
        stats = tracker.statistics()

        assert stats.total == 0
        assert stats.success_rate == Decimal("0")
        assert stats.avg_time_to_target == Decimal("0")
        assert stats.avg_max_excursion == Decimal("0")
        assert stats.avg_final_excursion == Decimal("0")
        assert stats.best_excursion == Decimal("0")
        assert stats.worst_excursion == Decimal("0")
        assert stats.target_percent == Decimal("-1")

    def test_success_rate_excludes_pending(self, tracker: AlertTracker, clock) -> None:
        a = tracker.record("AAAUSDT", Decimal("90"), "1h", Decimal("100"))
        b = tracker.record("BBBUSDT", Decimal("90"), "4h", Decimal("100"))
        c = tracker.record("CCCUSDT", Decimal("90"), "1h", Decimal("100"))
        tracker.record("DDDUSDT", Decimal("90"), "1m", Decimal("100"))

        clock.advance(10 * 60)
        tracker.observe(a.id, Decimal("99"))
        clock.advance(10 * 60)
        tracker.observe(b.id, Decimal("98"))
        clock.advance(24 * HOUR)
        tracker.observe(c.id, Decimal("99.5"))

        stats = tracker.statistics()

        assert (stats.success, stats.expired, stats.pending, stats.failed) == (2, 1, 1, 0)
        assert stats.success_rate == Decimal("66.67")
        assert stats.avg_time_to_target == Decimal("15.00")
        # max excursions: a 1.0, b 2.0, c 0.5
        assert stats.avg_max_excursion == Decimal("1.1667")
        assert stats.best_excursion == Decimal("2.0000")
        assert stats.worst_excursion == Decimal("0.5000")
        # finals: a 1.0, b 2.0, c (expired) 0.5
        assert stats.avg_final_excursion == Decimal("1.1667")

    def test_negative_final_excursion_dropped(self, tracker: AlertTracker, clock) -> None:
        a = tracker.record("AAAUSDT", Decimal("90"), "1h", Decimal("100"))
        b = tracker.record("BBBUSDT", Decimal("90"), "1h", Decimal("100"))
        tracker.observe(a.id, Decimal("99"))
        clock.advance(24 * HOUR)
        tracker.observe(b.id, Decimal("103"))

        stats = tracker.statistics()

        assert stats.expired == 1
        assert stats.avg_final_excursion == Decimal("1.0000")


class TestQueries:

    def test_filters_and_recent(self, tracker: AlertTracker, clock) -> None:
        first = tracker.record("BTCUSDT", Decimal("90"), "1h", Decimal("100"))
        clock.advance(1)
        second = tracker.record("ETHUSDT", Decimal("91"), "4h", Decimal("10"))
        clock.advance(1)
        third = tracker.record("BTCUSDT", Decimal("92"), "1m", Decimal("101"))
        tracker.observe(second.id, Decimal("9.9"))

        assert [a.id for a in tracker.by_symbol("BTCUSDT")] == [first.id, third.id]
        assert [a.id for a in tracker.by_status("success")] == [second.id]
        assert [a.id for a in tracker.pending()] == [first.id, third.id]
        assert [a.id for a in tracker.recent(2)] == [third.id, second.id]
        assert tracker.get(second.id) is second

    def test_timeframe_breakdown(self, tracker: AlertTracker, clock) -> None:
        a = tracker.record("AAAUSDT", Decimal("90"), "1h", Decimal("100"))
        tracker.record("BBBUSDT", Decimal("90"), "1h", Decimal("100"))
        tracker.record("CCCUSDT", Decimal("90"), "4h+1m", Decimal("100"))
        tracker.observe(a.id, Decimal("99"))

        rows = tracker.timeframe_breakdown(["4h", "1h", "15m", "1m", "4h+1m"])

        assert rows == [
            {"timeframe": "1h", "alerts": 2, "success": 1, "completed": 1, "success_rate": Decimal("100.00")},
            {"timeframe": "4h+1m", "alerts": 1, "success": 0, "completed": 0, "success_rate": Decimal("0")},
        ]

    def test_store_failure_keeps_memory_state(self, tracker_settings, clock, tmp_path) -> None:
        blocked = tmp_path / "blocked"
        blocked.mkdir()
        tracker = AlertTracker(tracker_settings, store=AlertStore(blocked), clock=clock)

        alert = tracker.record("BTCUSDT", Decimal("90"), "1h", Decimal("100"))

        assert tracker.get(alert.id) is alert
