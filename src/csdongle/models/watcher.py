"""Watch requests for remote variables."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

WatchCallback = Callable[[bytes], None]


@dataclass(frozen=True, slots=True)
class Watcher:
    """Request to observe a remote variable through a notification slot.

    Attributes:
        slot: Notification slot to claim
        unit: Remote device identifier behind the dongle
        address: 16-bit address (high byte = page, low byte = offset)
        callback: Called with each notification payload for the slot
        length: Number of bytes to watch (default: 1)
    """

    slot: int
    unit: int
    address: int
    callback: WatchCallback
    length: int = 1

    def __post_init__(self) -> None:
        if not 0 <= self.address <= 0xFFFF:
            raise ValueError(f"address out of range: 0x{self.address:x} (must be 0x0000-0xFFFF)")
        if not 1 <= self.length <= 0xFF:
            raise ValueError(f"length out of range: {self.length} (must be 1-255)")
        if not callable(self.callback):
            raise ValueError("callback must be callable")

    def as_entry(self) -> tuple[int, int, int, int]:
        """(slot, unit, address, length) as carried by the WATCH command."""
        return self.slot, self.unit, self.address, self.length
