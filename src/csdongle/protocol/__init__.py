"""Dongle protocol constants, payload builders and response parsing."""

from .commands import (
    DEFAULT_SLOT_COUNT,
    DONGLE_UNIT_ID,
    MAX_SUPERWATCH_ADDRESSES,
    OBJECT_INFO,
    OBJECT_INFO_SIZE,
    SLOT_SUPERWATCH,
    UART_CHUNK_SIZE,
    FunctionCode,
    OpCode,
    build_command_payload,
    build_keyswitch_values,
    build_read_memory_payload,
    build_read_object_payload,
    build_superwatch_values,
    build_unwatch_values,
    build_watch_values,
    build_write_memory_payload,
    build_write_object_payload,
)
from .gatt import SERVICE_UUID
from .responses import check_response, parse_command_response

__all__ = [
    "OpCode",
    "FunctionCode",
    "SERVICE_UUID",
    "DONGLE_UNIT_ID",
    "SLOT_SUPERWATCH",
    "OBJECT_INFO",
    "OBJECT_INFO_SIZE",
    "UART_CHUNK_SIZE",
    "DEFAULT_SLOT_COUNT",
    "MAX_SUPERWATCH_ADDRESSES",
    "build_command_payload",
    "build_keyswitch_values",
    "build_watch_values",
    "build_unwatch_values",
    "build_superwatch_values",
    "build_read_memory_payload",
    "build_write_memory_payload",
    "build_read_object_payload",
    "build_write_object_payload",
    "check_response",
    "parse_command_response",
]
