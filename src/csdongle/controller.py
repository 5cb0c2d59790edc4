"""A motor controller reached through the dongle."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .device import Dongle
    from .models.watcher import WatchCallback


class MotorController:
    """One unit behind the dongle, addressed by its unit id."""

    def __init__(self, unit: int, dongle: Dongle):
        self.unit = unit
        self.dongle = dongle

    async def read_memory(self, address: int, length: int) -> bytes:
        """Read length bytes starting at address."""
        return await self.dongle.read_memory(self.unit, address, length)

    async def write_memory(self, address: int, data: bytes) -> None:
        """Write data starting at address."""
        await self.dongle.write_memory(self.unit, address, data)

    async def watch(
            self,
            slot: int,
            address: int,
            callback: WatchCallback,
            length: int = 1,
    ) -> None:
        await self.dongle.watch(slot, self.unit, address, length, callback)

    async def unwatch(self, slot: int) -> None:
        await self.dongle.unwatch(slot)
