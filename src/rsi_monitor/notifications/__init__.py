"""Outbound alert delivery."""

from rsi_monitor.notifications.base import NotificationSink
from rsi_monitor.notifications.discord import DiscordNotifier

__all__ = ["DiscordNotifier", "NotificationSink"]
