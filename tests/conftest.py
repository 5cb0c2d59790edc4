"""Shared fakes for dongle tests.

FakeConnection stands in for BLEConnection and FakeMessagingClient for the
external messaging client; neither touches real hardware.
"""

from __future__ import annotations

import asyncio

import pytest

from csdongle import Dongle
from csdongle.exceptions import BLEConnectionError
from csdongle.models.messages import MessageResponse
from csdongle.protocol.commands import FunctionCode
from csdongle.protocol.gatt import (
    COMMAND_CHAR_UUID,
    DONGLE_INFO_CHAR_UUIDS,
    FAULT_CHAR_UUID,
    FIRMWARE_REVISION_CHAR_UUID,
    HARDWARE_REVISION_CHAR_UUID,
    MANDATORY_CHAR_UUIDS,
    MANUFACTURER_NAME_CHAR_UUID,
    MODEL_NUMBER_CHAR_UUID,
    PRODUCT_CHAR_UUID,
    RESPONSE_CHAR_UUID,
    SERIAL_CHAR_UUID,
    SERIAL_NUMBER_CHAR_UUID,
    SERVICE_UUID,
    SOFTWARE_REVISION_CHAR_UUID,
    STATUS_CHAR_UUIDS,
    SUPERWATCH_CHAR_UUID,
    SYSTEM_ID_CHAR_UUID,
)

MAC = "AA:BB:CC:DD:EE:FF"


class FakeCharacteristic:
    def __init__(self, uuid: str):
        self.uuid = uuid

    def __repr__(self) -> str:
        return f"FakeCharacteristic({self.uuid})"


class FakeConnection:
    """In-memory BLEConnection replacement recording every operation."""

    def __init__(self, uuids: set[str], values: dict[str, bytes]):
        self.chars = {uuid: FakeCharacteristic(uuid) for uuid in uuids}
        self.values = dict(values)
        self.services = {SERVICE_UUID}
        self.handlers: dict[str, object] = {}
        self.log: list[tuple[str, str]] = []
        self.writes: list[tuple[str, bytes]] = []
        self.fail_subscribe: set[str] = set()
        self.fail_unsubscribe: set[str] = set()
        self.fail_connect: Exception | None = None
        self.on_write = None
        self.on_read = None
        self.connect_delay = 0.0
        self.disconnected_callback = None
        self.connected = False

    async def connect(self) -> None:
        if self.connect_delay:
            await asyncio.sleep(self.connect_delay)
        if self.fail_connect:
            raise self.fail_connect
        self.connected = True

    async def disconnect(self) -> None:
        was_connected = self.connected
        self.connected = False
        self.handlers.clear()
        if was_connected and self.disconnected_callback:
            self.disconnected_callback()

    def drop_link(self) -> None:
        """Simulate the hardware dropping the link."""
        self.connected = False
        self.handlers.clear()
        if self.disconnected_callback:
            self.disconnected_callback()

    def has_service(self, uuid: str) -> bool:
        return uuid in self.services

    def get_characteristic(self, uuid: str):
        return self.chars.get(uuid)

    async def read(self, characteristic) -> bytes:
        self.log.append(("read", characteristic.uuid))
        if self.on_read:
            self.on_read(characteristic.uuid)
        return self.values.get(characteristic.uuid, b"")

    async def write(self, characteristic, data: bytes, response: bool = True) -> None:
        await asyncio.sleep(0)
        self.log.append(("write", characteristic.uuid))
        self.writes.append((characteristic.uuid, bytes(data)))
        if self.on_write:
            self.on_write(characteristic.uuid, bytes(data))

    async def subscribe(self, characteristic, handler) -> None:
        if characteristic.uuid in self.handlers:
            return
        if characteristic.uuid in self.fail_subscribe:
            raise BLEConnectionError(f"Failed to subscribe to {characteristic.uuid}")
        self.handlers[characteristic.uuid] = handler
        self.log.append(("subscribe", characteristic.uuid))

    async def unsubscribe(self, characteristic) -> None:
        if characteristic.uuid not in self.handlers:
            return
        if characteristic.uuid in self.fail_unsubscribe:
            raise BLEConnectionError(f"Failed to unsubscribe from {characteristic.uuid}")
        del self.handlers[characteristic.uuid]
        self.log.append(("unsubscribe", characteristic.uuid))

    def is_subscribed(self, characteristic) -> bool:
        return characteristic.uuid in self.handlers

    def notify(self, uuid: str, data: bytes) -> None:
        """Push a notification as the hardware would."""
        handler = self.handlers.get(uuid)
        if handler:
            handler(data)

    @property
    def is_connected(self) -> bool:
        return self.connected


class FakeMessagingClient:
    """Messaging client simulating a faithful remote device.

    Each request is written through the UART writer as [unit][function][payload].
    """

    def __init__(self, writer):
        self.writer = writer
        self.requests: list[tuple[int, int, bytes]] = []
        self.received = bytearray()
        self.memory: dict[tuple[int, int], int] = {}
        self.objects: dict[tuple[int, int], bytes] = {}
        self.command_status: dict[int, int] = {}
        self.hang = False
        self.lost: Exception | None = None

    async def request(self, unit, function_code, payload, timeout) -> MessageResponse:
        self.requests.append((unit, function_code, bytes(payload)))
        await self.writer.send(bytes([unit, function_code]) + bytes(payload))

        if self.hang:
            await asyncio.Event().wait()

        if function_code == FunctionCode.COMMAND:
            return MessageResponse(status=self.command_status.get(payload[0], 0))

        if function_code == FunctionCode.READ_MEMORY:
            address = (payload[0] << 8) | payload[1]
            values = bytes(self.memory.get((unit, address + i), 0) for i in range(payload[2]))
            return MessageResponse(values=values)

        if function_code == FunctionCode.WRITE_MEMORY:
            address = (payload[0] << 8) | payload[1]
            for i, value in enumerate(payload[3:3 + payload[2]]):
                self.memory[(unit, address + i)] = value
            return MessageResponse(status=0)

        if function_code == FunctionCode.READ_OBJECT:
            return MessageResponse(values=self.objects.get((unit, payload[0]), b""))

        if function_code == FunctionCode.WRITE_OBJECT:
            self.objects[(unit, payload[0])] = bytes(payload[1:])
            return MessageResponse(status=0)

        return MessageResponse(exception_code=0x01)

    def data_received(self, data: bytes) -> None:
        self.received += data

    def connection_lost(self, exc: Exception) -> None:
        self.lost = exc

    def commands(self) -> list[bytes]:
        """Payloads of COMMAND requests sent so far ([op][values...])."""
        return [p for _, f, p in self.requests if f == FunctionCode.COMMAND]


DEVICE_VALUES = {
    PRODUCT_CHAR_UUID: b"CS1108",
    SERIAL_CHAR_UUID: b"00001234",
    FAULT_CHAR_UUID: b"\x00",
    SYSTEM_ID_CHAR_UUID: b"\x01\x02\x03\x04\x05\x06\x07\x08",
    MODEL_NUMBER_CHAR_UUID: b"CS1816",
    SERIAL_NUMBER_CHAR_UUID: b"A0001",
    FIRMWARE_REVISION_CHAR_UUID: b"1.2.0",
    HARDWARE_REVISION_CHAR_UUID: b"B",
    SOFTWARE_REVISION_CHAR_UUID: b"3.1",
    MANUFACTURER_NAME_CHAR_UUID: b"Control Solutions\x00",
}


def dongle_uuids() -> set[str]:
    """Characteristics of a fully featured UART dongle."""
    return {
        *MANDATORY_CHAR_UUIDS.values(),
        *STATUS_CHAR_UUIDS,
        SUPERWATCH_CHAR_UUID,
        *DONGLE_INFO_CHAR_UUIDS.values(),
    }


@pytest.fixture
def fake_connection() -> FakeConnection:
    return FakeConnection(dongle_uuids(), DEVICE_VALUES)


@pytest.fixture
def messaging() -> list[FakeMessagingClient]:
    """Messaging clients created by the dongle, in creation order."""
    return []


@pytest.fixture
def dongle(fake_connection, messaging) -> Dongle:
    def factory(writer):
        client = FakeMessagingClient(writer)
        messaging.append(client)
        return client

    device = Dongle(mac_address=MAC, messaging_factory=factory, default_timeout=1.0)
    device._connection = fake_connection  # Inject fake connection
    fake_connection.disconnected_callback = device._handle_link_lost
    return device


class CommandResponder:
    """Answers frames written to the command characteristic.

    Responses are notified on the response characteristic on the next loop
    iteration, as [seq][status][values]. READ_MEMORY is answered with 0xAB bytes.
    """

    def __init__(self, connection: FakeConnection):
        self.connection = connection
        self.status = 0
        self.silent = False
        self.frames: list[bytes] = []

    def __call__(self, uuid: str, data: bytes) -> None:
        if uuid != COMMAND_CHAR_UUID:
            return
        self.frames.append(data)
        if self.silent:
            return

        sequence, function_code = data[0], data[1]
        values = b""
        if function_code == FunctionCode.READ_MEMORY:
            values = b"\xab" * data[5]
        response = bytes([sequence, self.status]) + values
        asyncio.get_running_loop().call_soon(self.connection.notify, RESPONSE_CHAR_UUID, response)


@pytest.fixture
def command_dongle(fake_connection) -> Dongle:
    """Dongle whose device exposes the command/response characteristic pair."""
    for uuid in (COMMAND_CHAR_UUID, RESPONSE_CHAR_UUID):
        fake_connection.chars[uuid] = FakeCharacteristic(uuid)
    fake_connection.on_write = CommandResponder(fake_connection)

    device = Dongle(mac_address=MAC, default_timeout=1.0)
    device._connection = fake_connection  # Inject fake connection
    fake_connection.disconnected_callback = device._handle_link_lost
    return device
