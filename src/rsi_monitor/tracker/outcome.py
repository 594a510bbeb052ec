"""Alert outcome tracking against a fixed price target.

Every delivered alert becomes an AlertRecord with a target price derived from
the entry price and a fixed (negative, short-bias) target percentage. Later
price observations extend the record's running extremes and favorable
excursion, and move it from PENDING to SUCCESS (target hit) or EXPIRED
(observation window elapsed). Records are never deleted.

Excursion convention: ``(entry - price) / entry * 100``, positive when the
price fell, i.e. favorable for the assumed short.
"""

import time
from collections.abc import Callable, Iterable
from decimal import ROUND_HALF_UP, Decimal

from rsi_monitor.config import TrackerSettings
from rsi_monitor.exceptions import AlertStoreError
from rsi_monitor.logging import get_logger
from rsi_monitor.models import AlertRecord, AlertStatistics, AlertStatus
from rsi_monitor.tracker.store import AlertStore

logger = get_logger(__name__)

_PRICE_Q = Decimal("0.00000001")
_PCT_Q = Decimal("0.0001")
_RATE_Q = Decimal("0.000001")
_TWO_DP = Decimal("0.01")


def _q(value: Decimal, quantum: Decimal) -> Decimal:
    return value.quantize(quantum, rounding=ROUND_HALF_UP)


def _mean(values: list[Decimal]) -> Decimal:
    if not values:
        return Decimal("0")
    return sum(values, Decimal("0")) / len(values)


class AlertTracker:
    """Append-only alert log with outcome classification and statistics.

    Args:
        settings: Target percentage, expiry window and store location.
        store: Persistence backend. Defaults to a JSON store at
            ``settings.store_path``.
        clock: Returns the current Unix time in seconds.
    """

    def __init__(
        self,
        settings: TrackerSettings,
        store: AlertStore | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._settings = settings
        self._store = store or AlertStore(settings.store_path)
        self._clock = clock
        self._alerts: list[AlertRecord] = self._store.load()
        self._index: dict[str, AlertRecord] = {a.id: a for a in self._alerts}

    @property
    def alerts(self) -> list[AlertRecord]:
        """All records in insertion order."""
        return list(self._alerts)

    @property
    def target_percent(self) -> Decimal:
        return self._settings.target_percent

    def get(self, alert_id: str) -> AlertRecord | None:
        return self._index.get(alert_id)

    def _persist(self) -> None:
        try:
            self._store.save(self._alerts)
        except AlertStoreError as e:
            logger.error("alert_store_save_failed", error=str(e))

    # ──────────────────────────────────────────────
    # Mutations
    # ──────────────────────────────────────────────

    def record(
        self,
        symbol: str,
        signal: Decimal,
        timeframe: str,
        entry_price: Decimal,
        funding_rate: Decimal | None = None,
    ) -> AlertRecord:
        """Create and persist a new PENDING alert.

        Raises:
            ValueError: If ``entry_price`` is not positive.
        """
        if entry_price <= 0:
            raise ValueError(f"entry price must be positive, got {entry_price}")

        now = self._clock()
        entry = _q(entry_price, _PRICE_Q)
        target = _q(entry * (1 + self._settings.target_percent / 100), _PRICE_Q)
        alert_id = f"{symbol}_{timeframe}_{int(now * 1000)}"
        # Two alerts for the same key within one millisecond
        suffix = 1
        while alert_id in self._index:
            suffix += 1
            alert_id = f"{symbol}_{timeframe}_{int(now * 1000)}_{suffix}"

        alert = AlertRecord(
            id=alert_id,
            symbol=symbol,
            signal=_q(signal, _TWO_DP),
            timeframe=timeframe,
            entry_price=entry,
            target_price=target,
            funding_rate=_q(funding_rate, _RATE_Q) if funding_rate is not None else None,
            created_at=now,
            max_price=entry,
            min_price=entry,
            current_price=entry,
            last_update=now,
            max_excursion_price=entry,
        )
        self._alerts.append(alert)
        self._index[alert.id] = alert
        self._persist()

        logger.info(
            "alert_recorded",
            alert_id=alert.id,
            symbol=symbol,
            timeframe=timeframe,
            signal=str(alert.signal),
            entry_price=str(entry),
            target_price=str(target),
        )
        return alert

    def observe(self, alert_id: str, current_price: Decimal) -> AlertRecord | None:
        """Apply one price observation to an alert.

        Updates latest price, running extremes and maximum favorable
        excursion; then checks the target (PENDING -> SUCCESS) and, if still
        pending, the expiry window (PENDING -> EXPIRED). Unknown ids are a
        no-op returning None.
        """
        alert = self._index.get(alert_id)
        if alert is None:
            return None

        now = self._clock()
        price = _q(current_price, _PRICE_Q)
        alert.current_price = price
        alert.last_update = now

        if price > alert.max_price:
            alert.max_price = price
        if price < alert.min_price:
            alert.min_price = price

        excursion = alert.excursion_pct(price)
        if excursion is not None and excursion > alert.max_excursion_pct:
            alert.max_excursion_pct = _q(excursion, _PCT_Q)
            alert.max_excursion_price = price
            alert.max_excursion_at = now

        if alert.status == AlertStatus.PENDING and price <= alert.target_price:
            alert.status = AlertStatus.SUCCESS
            alert.target_reached = True
            alert.target_reached_at = now
            minutes = Decimal(str(now - alert.created_at)) / 60
            alert.time_to_target_minutes = _q(minutes, _TWO_DP)
            logger.info(
                "alert_target_reached",
                alert_id=alert.id,
                symbol=alert.symbol,
                minutes=str(alert.time_to_target_minutes),
            )

        hours_since = (now - alert.created_at) / 3600
        if alert.status == AlertStatus.PENDING and hours_since >= self._settings.expiry_hours:
            alert.status = AlertStatus.EXPIRED
            alert.target_reached = False
            if excursion is not None:
                alert.final_excursion_pct = _q(excursion, _PCT_Q)
            logger.info(
                "alert_expired",
                alert_id=alert.id,
                symbol=alert.symbol,
                final_excursion=str(alert.final_excursion_pct),
            )

        self._persist()
        return alert

    # ──────────────────────────────────────────────
    # Queries
    # ──────────────────────────────────────────────

    def by_status(self, status: AlertStatus | str) -> list[AlertRecord]:
        status = AlertStatus(status)
        return [a for a in self._alerts if a.status == status]

    def by_symbol(self, symbol: str) -> list[AlertRecord]:
        return [a for a in self._alerts if a.symbol == symbol]

    def pending(self) -> list[AlertRecord]:
        return self.by_status(AlertStatus.PENDING)

    def recent(self, limit: int = 20) -> list[AlertRecord]:
        """Most recent alerts first."""
        return sorted(self._alerts, key=lambda a: a.created_at, reverse=True)[:limit]

    def statistics(self) -> AlertStatistics:
        """Aggregate outcome statistics over the whole log.

        - success_rate: success / (success + failed + expired), pending excluded
        - avg_time_to_target: mean over successful alerts
        - avg_max_excursion / best / worst: over alerts with a positive max excursion
        - avg_final_excursion: over completed alerts, using the stored final
          excursion for expired alerts, else the max excursion if positive,
          else the excursion at the latest price; negatives are dropped
        """
        stats = AlertStatistics(target_percent=self._settings.target_percent)
        stats.total = len(self._alerts)
        if stats.total == 0:
            return stats

        stats.success = len(self.by_status(AlertStatus.SUCCESS))
        stats.failed = len(self.by_status(AlertStatus.FAILED))
        stats.pending = len(self.by_status(AlertStatus.PENDING))
        stats.expired = len(self.by_status(AlertStatus.EXPIRED))

        completed = stats.success + stats.failed + stats.expired
        if completed > 0:
            stats.success_rate = _q(
                Decimal(stats.success) / completed * 100, _TWO_DP
            )

        times = [
            a.time_to_target_minutes or Decimal("0")
            for a in self._alerts
            if a.status == AlertStatus.SUCCESS
        ]
        stats.avg_time_to_target = _q(_mean(times), _TWO_DP)

        max_excursions = [a.max_excursion_pct for a in self._alerts if a.max_excursion_pct > 0]
        stats.avg_max_excursion = _q(_mean(max_excursions), _PCT_Q)
        if max_excursions:
            stats.best_excursion = _q(max(max_excursions), _PCT_Q)
            stats.worst_excursion = _q(min(max_excursions), _PCT_Q)

        finals = [
            value
            for value in (self._final_excursion(a) for a in self._alerts if a.status != AlertStatus.PENDING)
            if value is not None and value.is_finite() and value >= 0
        ]
        stats.avg_final_excursion = _q(_mean(finals), _PCT_Q)
        return stats

    @staticmethod
    def _final_excursion(alert: AlertRecord) -> Decimal | None:
        if alert.status == AlertStatus.EXPIRED and alert.final_excursion_pct is not None:
            return alert.final_excursion_pct
        if alert.max_excursion_pct > 0:
            return alert.max_excursion_pct
        return alert.excursion_pct()

    def timeframe_breakdown(self, timeframes: Iterable[str] | None = None) -> list[dict]:
        """Per-timeframe alert counts and success rate over completed alerts.

        Timeframes without alerts are omitted. Defaults to every timeframe label
        present in the log, in first-seen order.
        """
        if timeframes is None:
            timeframes = dict.fromkeys(a.timeframe for a in self._alerts)

        rows = []
        for timeframe in timeframes:
            alerts = [a for a in self._alerts if a.timeframe == timeframe]
            if not alerts:
                continue
            success = sum(1 for a in alerts if a.status == AlertStatus.SUCCESS)
            completed = sum(1 for a in alerts if a.status != AlertStatus.PENDING)
            rate = (
                _q(Decimal(success) / completed * 100, _TWO_DP)
                if completed
                else Decimal("0")
            )
            rows.append(
                {
                    "timeframe": timeframe,
                    "alerts": len(alerts),
                    "success": success,
                    "completed": completed,
                    "success_rate": rate,
                }
            )
        return rows
