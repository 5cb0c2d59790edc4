"""Hardware-reported limits of the dongle."""

from __future__ import annotations

from dataclasses import dataclass

from ..protocol.commands import (
    DEFAULT_SLOT_COUNT,
    MAX_SUPERWATCH_ADDRESSES,
    UART_CHUNK_SIZE,
)
from ..protocol.gatt import STATUS_CHAR_UUIDS


@dataclass(frozen=True, slots=True)
class DongleLimits:
    """Slot and transport limits for one dongle revision.

    Attributes:
        slot_count: Number of ordinary watch slots
        max_superwatch_addresses: Maximum addresses in one superwatch
        chunk_size: Maximum bytes per UART characteristic write
    """

    slot_count: int = DEFAULT_SLOT_COUNT
    max_superwatch_addresses: int = MAX_SUPERWATCH_ADDRESSES
    chunk_size: int = UART_CHUNK_SIZE

    def __post_init__(self) -> None:
        if not 0 <= self.slot_count <= len(STATUS_CHAR_UUIDS):
            raise ValueError(
                f"slot_count out of range: {self.slot_count} "
                f"(must be 0-{len(STATUS_CHAR_UUIDS)})"
            )
        if self.max_superwatch_addresses < 0:
            raise ValueError(
                f"max_superwatch_addresses must not be negative: {self.max_superwatch_addresses}"
            )
        if self.chunk_size < 1:
            raise ValueError(f"chunk_size must be at least 1: {self.chunk_size}")
