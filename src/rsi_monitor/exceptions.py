"""Custom exceptions for the RSI overbought monitor.

Most failure modes (network errors, missing metrics, failed deliveries) are
absorbed at the component that sees them and never reach this hierarchy.
Only conditions that callers must act on are modelled here.
"""


class MonitorError(Exception):
    """Base exception for all monitor errors."""


class NoSymbolsError(MonitorError):
    """Raised when no tradable symbols can be retrieved at startup."""


class AlertStoreError(MonitorError):
    """Raised when the alert record store cannot be read or written."""
