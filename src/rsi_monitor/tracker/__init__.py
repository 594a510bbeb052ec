"""Alert outcome tracking and the JSON alert log."""

from rsi_monitor.tracker.outcome import AlertTracker
from rsi_monitor.tracker.store import AlertStore

__all__ = ["AlertStore", "AlertTracker"]
