"""Fixed-size table of notification slots."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from ..exceptions import InvalidSlotError, SlotUnavailableError
from ..protocol.commands import SLOT_SUPERWATCH

if TYPE_CHECKING:
    from bleak.backends.characteristic import BleakGATTCharacteristic

    from ..models.watcher import WatchCallback

_LOGGER = logging.getLogger(__name__)


@dataclass(eq=False)
class NotificationSlot:
    """One hardware notification channel and the callback that owns it.

    A claimed slot holds a callback but is only armed (eligible to receive
    notifications) once the dongle has confirmed the watch configuration.
    """

    index: int
    characteristic: BleakGATTCharacteristic | None = None
    callback: WatchCallback | None = None
    subscribed: bool = False
    armed: bool = False
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

    @property
    def available(self) -> bool:
        """True if the device exposes a characteristic for this slot."""
        return self.characteristic is not None

    def claim(self, callback: WatchCallback) -> None:
        """Install callback, replacing any previous owner."""
        self.callback = callback
        self.armed = False

    def release(self) -> None:
        """Remove the callback."""
        self.callback = None
        self.armed = False

    def dispatch(self, data: bytes) -> bool:
        """Deliver a notification payload to the owning callback.

        Returns:
            True if a callback was invoked, False if the payload was dropped
        """
        callback = self.callback
        if callback is None or not self.armed:
            _LOGGER.debug("Dropping notification for slot %d: no watcher", self.index)
            return False

        try:
            callback(data)
        except Exception:
            _LOGGER.exception("Watch callback for slot %d failed", self.index)
        return True


class SlotRegistry:
    """Ordinary watch slots plus the reserved superwatch slot."""

    def __init__(self, slot_count: int):
        self.slot_count = slot_count
        self._slots = [NotificationSlot(index) for index in range(slot_count)]
        self.superwatch = NotificationSlot(SLOT_SUPERWATCH)

    def __len__(self) -> int:
        return self.slot_count

    def __iter__(self) -> Iterator[NotificationSlot]:
        return iter(self._slots)

    def get(self, index: int) -> NotificationSlot:
        """Look up an ordinary slot.

        Raises:
            InvalidSlotError: If index is outside 0..slot_count-1
            SlotUnavailableError: If the device has no characteristic for the slot
        """
        if not 0 <= index < self.slot_count:
            raise InvalidSlotError(
                f"Invalid slot {index} (must be 0-{self.slot_count - 1})"
            )

        slot = self._slots[index]
        if not slot.available:
            raise SlotUnavailableError(f"Slot {index} is not supported by this device")
        return slot

    def bind(self, index: int, characteristic: BleakGATTCharacteristic | None) -> None:
        """Attach the characteristic discovered for an ordinary slot."""
        self._slots[index].characteristic = characteristic

    def reset(self) -> None:
        """Forget all callbacks, subscriptions and characteristics."""
        for slot in (*self._slots, self.superwatch):
            slot.release()
            slot.subscribed = False
            slot.characteristic = None
