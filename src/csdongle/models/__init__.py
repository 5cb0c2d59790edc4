"""Data models for the dongle driver."""

from .dongle_info import DongleInfo
from .enums import ConnectionState
from .limits import DongleLimits
from .messages import MessageResponse
from .watcher import WatchCallback, Watcher

__all__ = [
    "ConnectionState",
    "DongleInfo",
    "DongleLimits",
    "MessageResponse",
    "WatchCallback",
    "Watcher",
]
