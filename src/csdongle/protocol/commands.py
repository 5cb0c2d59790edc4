"""Dongle command op-codes and request payload builders."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from enum import IntEnum


class OpCode(IntEnum):
    """Commands understood by the dongle itself (sent with FunctionCode.COMMAND)."""

    CONFIGURE = 0
    KEYSWITCH = 1
    WATCH = 2
    UNWATCH = 3
    UNWATCH_ALL = 4
    SUPERWATCH = 5


class FunctionCode(IntEnum):
    """Function codes handed to the messaging client."""

    READ_OBJECT = 0x43
    WRITE_OBJECT = 0x44
    READ_MEMORY = 0x45
    WRITE_MEMORY = 0x46
    COMMAND = 0x47


# Unit id used to address the dongle itself (hardcoded in the dongle)
DONGLE_UNIT_ID = 254

# Slot number the dongle uses for the super-watcher
SLOT_SUPERWATCH = 0x10

# Flash info object holding the cloud access key
OBJECT_INFO = 0
OBJECT_INFO_SIZE = 128

# Transparent UART characteristic accepts at most this many bytes per write
UART_CHUNK_SIZE = 20

# Hardware-reported defaults
DEFAULT_SLOT_COUNT = 20
MAX_SUPERWATCH_ADDRESSES = 25

MAX_ADDRESS = 0xFFFF


def _check_address(address: int) -> None:
    if not 0 <= address <= MAX_ADDRESS:
        raise ValueError(f"Address out of range: 0x{address:x} (must be 0x0000-0xFFFF)")


def _check_u8(name: str, value: int) -> None:
    if not 0 <= value <= 0xFF:
        raise ValueError(f"{name} out of range: {value} (must be 0-255)")


def _address_bytes(address: int) -> bytes:
    """Split a 16-bit address into [page, offset]."""
    _check_address(address)
    return address.to_bytes(2, byteorder="big")


def build_command_payload(op: int, values: bytes = b"") -> bytes:
    """Build a dongle command payload.

    Format:
        [op:1][values:variable]
    """
    _check_u8("op", op)
    return bytes([op]) + bytes(values)


def build_keyswitch_values(state: bool) -> bytes:
    """Values for OpCode.KEYSWITCH: 1 = on, 0 = off."""
    return bytes([1 if state else 0])


def build_watch_values(entries: Iterable[tuple[int, int, int, int]]) -> bytes:
    """Build values for OpCode.WATCH.

    Args:
        entries: (slot, unit, address, length) tuples

    Returns:
        Concatenation of [slot][unit][addrHi][addrLo][length] per entry
    """
    out = bytearray()
    for slot, unit, address, length in entries:
        _check_u8("slot", slot)
        _check_u8("unit", unit)
        if not 1 <= length <= 0xFF:
            raise ValueError(f"length out of range: {length} (must be 1-255)")
        out.append(slot)
        out.append(unit)
        out += _address_bytes(address)
        out.append(length)
    return bytes(out)


def build_unwatch_values(slots: Iterable[int]) -> bytes:
    """Values for OpCode.UNWATCH: one byte per slot."""
    out = bytearray()
    for slot in slots:
        _check_u8("slot", slot)
        out.append(slot)
    return bytes(out)


def build_superwatch_values(unit: int, addresses: Sequence[int]) -> bytes:
    """Build values for OpCode.SUPERWATCH.

    Each address is watched with an implied length of 1.

    Format:
        [SLOT_SUPERWATCH][unit][addrHi][addrLo]...
    """
    _check_u8("unit", unit)
    out = bytearray([SLOT_SUPERWATCH, unit])
    for address in addresses:
        out += _address_bytes(address)
    return bytes(out)


def build_read_memory_payload(address: int, length: int) -> bytes:
    """Payload for FunctionCode.READ_MEMORY: [addrHi][addrLo][length]."""
    if not 1 <= length <= 0xFF:
        raise ValueError(f"length out of range: {length} (must be 1-255)")
    if address + length > MAX_ADDRESS + 1:
        raise ValueError(
            f"Read of {length} bytes at 0x{address:04x} runs past the end of the address space"
        )
    return _address_bytes(address) + bytes([length])


def build_write_memory_payload(address: int, data: bytes) -> bytes:
    """Payload for FunctionCode.WRITE_MEMORY: [addrHi][addrLo][length][data]."""
    if not 1 <= len(data) <= 0xFF:
        raise ValueError(f"data length out of range: {len(data)} (must be 1-255)")
    if address + len(data) > MAX_ADDRESS + 1:
        raise ValueError(
            f"Write of {len(data)} bytes at 0x{address:04x} runs past the end of the address space"
        )
    return _address_bytes(address) + bytes([len(data)]) + bytes(data)


def build_read_object_payload(object_id: int) -> bytes:
    """Payload for FunctionCode.READ_OBJECT: [objectId]."""
    _check_u8("object_id", object_id)
    return bytes([object_id])


def build_write_object_payload(object_id: int, data: bytes) -> bytes:
    """Payload for FunctionCode.WRITE_OBJECT: [objectId][data]."""
    _check_u8("object_id", object_id)
    return bytes([object_id]) + bytes(data)
