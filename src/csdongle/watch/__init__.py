"""Notification slot registry and watch coordination."""

from .coordinator import WatchCoordinator
from .registry import NotificationSlot, SlotRegistry

__all__ = [
    "NotificationSlot",
    "SlotRegistry",
    "WatchCoordinator",
]
