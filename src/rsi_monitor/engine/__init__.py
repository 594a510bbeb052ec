"""Alert deduplication and trigger decisions."""

from rsi_monitor.engine.trigger import TriggerEngine

__all__ = ["TriggerEngine"]
