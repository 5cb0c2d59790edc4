"""Main dongle session class."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable, Sequence
from functools import partial
from typing import TYPE_CHECKING

from .exceptions import (
    BLEConnectionError,
    DisconnectedError,
    IncompatibleDeviceError,
    NotConnectedError,
)
from .models.dongle_info import DongleInfo, _decode_text
from .models.enums import ConnectionState
from .models.limits import DongleLimits
from .protocol import (
    DONGLE_UNIT_ID,
    OBJECT_INFO,
    OBJECT_INFO_SIZE,
    FunctionCode,
    OpCode,
    build_command_payload,
    build_keyswitch_values,
    build_read_memory_payload,
    build_read_object_payload,
    build_write_memory_payload,
    build_write_object_payload,
    check_response,
)
from .protocol.gatt import (
    COMMAND_CHAR_UUID,
    DONGLE_INFO_CHAR_UUIDS,
    MANDATORY_CHAR_UUIDS,
    RESPONSE_CHAR_UUID,
    SERVICE_UUID,
    STATUS_CHAR_UUIDS,
    SUPERWATCH_CHAR_UUID,
)
from .transport import (
    BLEConnection,
    ChunkedWriter,
    CommandChannel,
    CommandCorrelator,
    UartChannel,
)
from .watch import SlotRegistry, WatchCoordinator

if TYPE_CHECKING:
    from bleak.backends.device import BLEDevice

    from .models.messages import MessageResponse
    from .models.watcher import WatchCallback, Watcher
    from .transport import MessagingFactory, RequestChannel

_LOGGER = logging.getLogger(__name__)


class Dongle:
    """BLE dongle bridging to controllers behind it.

    Main API for talking to the dongle and the units attached to it.

    Usage:
        async with Dongle("AA:BB:CC:DD:EE:FF", messaging_factory=factory) as dongle:
            info = await dongle.read_dongle_info()
            await dongle.configure()
            await dongle.watch(0, 1, 0x005F, 1, on_change)

    Requests go through the command/response characteristic pair when the
    device exposes it, otherwise through the messaging client created by
    messaging_factory on top of the transparent UART.
    """

    def __init__(
            self,
            mac_address: str,
            ble_device: BLEDevice | None = None,
            messaging_factory: MessagingFactory | None = None,
            limits: DongleLimits | None = None,
            timeout: float = 10.0,
            max_attempts: int = 4,
            use_services_cache: bool = True,
            default_timeout: float = 5.0,
            max_concurrent_requests: int = 2,
            write_with_response: bool = True,
            on_open: Callable[[], None] | None = None,
            on_disconnected: Callable[[], None] | None = None,
            on_fault: Callable[[bytes], None] | None = None,
            on_status: Callable[[int, bytes], None] | None = None,
    ):
        """Initialize dongle.

        Args:
            mac_address: Device MAC address
            ble_device: Optional BLEDevice from a scanner
            messaging_factory: Creates the messaging client for the UART path
            limits: Slot and transport limits (default: DongleLimits())
            timeout: BLE connection timeout in seconds (default: 10)
            max_attempts: Connection attempts (default: 4)
            use_services_cache: Enable GATT service caching (default: True)
            default_timeout: Request timeout in seconds (default: 5)
            max_concurrent_requests: Messaging client concurrency limit (default: 2)
            write_with_response: Use confirmed writes (default: True)
            on_open: Called when the session becomes ready
            on_disconnected: Called when the session ends
            on_fault: Called with each fault characteristic notification
            on_status: Called with (slot, data) for each slot notification
        """
        self.mac_address = mac_address
        self.messaging_factory = messaging_factory
        self.limits = limits or DongleLimits()
        self.default_timeout = default_timeout
        self.max_concurrent_requests = max_concurrent_requests
        self.write_with_response = write_with_response
        self.on_open = on_open
        self.on_disconnected = on_disconnected
        self.on_fault = on_fault
        self.on_status = on_status

        # Unit id used for commands directed at the dongle itself
        self.unit_id = DONGLE_UNIT_ID

        self._connection = BLEConnection(
            mac_address,
            ble_device,
            timeout,
            max_attempts=max_attempts,
            use_services_cache=use_services_cache,
            disconnected_callback=self._handle_link_lost,
        )
        self._state = ConnectionState.DISCONNECTED

        # Session state, dropped on disconnect
        self._channel: RequestChannel | None = None
        self._registry: SlotRegistry | None = None
        self._watches: WatchCoordinator | None = None
        self._dongle_info: DongleInfo | None = None
        self.device_type: str | None = None
        self.serial: str | None = None
        self.fault: bytes | None = None

    async def __aenter__(self) -> Dongle:
        """Connect and inspect the dongle."""
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Disconnect from the dongle."""
        await self.disconnect()

    @property
    def state(self) -> ConnectionState:
        """Current session state."""
        return self._state

    @property
    def is_connected(self) -> bool:
        """True once the dongle is inspected and ready for requests."""
        return self._state is ConnectionState.READY

    @property
    def dongle_info(self) -> DongleInfo | None:
        """Identity read on entry to ready, if the device exposes it."""
        return self._dongle_info

    @property
    def slots(self) -> SlotRegistry:
        """Notification slot table of the current session."""
        self._require_ready()
        return self._registry

    async def connect(self) -> None:
        """Connect to the dongle and validate its characteristics.

        Raises:
            BLEConnectionError: If the BLE connection fails
            BLETimeoutError: If the BLE connection times out
            IncompatibleDeviceError: If mandatory characteristics are missing
            DisconnectedError: If disconnected or the link drops before the session is ready
        """
        if self._state is ConnectionState.READY:
            return
        if self._state is not ConnectionState.DISCONNECTED:
            raise BLEConnectionError(f"Connect already in progress ({self._state.value})")

        self._set_state(ConnectionState.CONNECTING)
        try:
            await self._connection.connect()
        except Exception:
            if self._state is ConnectionState.CONNECTING:
                self._set_state(ConnectionState.DISCONNECTED)
            raise

        if self._state is not ConnectionState.CONNECTING:
            await self._connection.disconnect()
            raise DisconnectedError("Disconnected while connecting")

        self._set_state(ConnectionState.INSPECTING)
        try:
            await self._inspect()
        except Exception:
            self._teardown(DisconnectedError("Inspection failed"))
            await self._connection.disconnect()
            raise

        self._set_state(ConnectionState.READY)
        _LOGGER.info(
            "Dongle %s ready: product=%s serial=%s",
            self.mac_address,
            self.device_type,
            self.serial,
        )
        if self.on_open:
            self.on_open()

    async def disconnect(self) -> None:
        """Disconnect from the dongle.

        Outstanding requests fail with DisconnectedError and all watches are dropped.
        """
        if self._state is ConnectionState.DISCONNECTED:
            return

        self._teardown(DisconnectedError("Disconnected by host"))
        await self._connection.disconnect()

    def _handle_link_lost(self) -> None:
        """Link dropped underneath us (or our own disconnect completed)."""
        if self._state is not ConnectionState.DISCONNECTED:
            _LOGGER.info("Link to %s lost", self.mac_address)
        self._teardown(DisconnectedError("Link to dongle lost"))

    def _teardown(self, exc: Exception) -> None:
        if self._state is ConnectionState.DISCONNECTED:
            return

        self._set_state(ConnectionState.DISCONNECTED)

        if self._channel:
            self._channel.close(exc)
        if self._registry:
            self._registry.reset()

        self._channel = None
        self._registry = None
        self._watches = None
        self._dongle_info = None
        self.device_type = None
        self.serial = None
        self.fault = None

        if self.on_disconnected:
            self.on_disconnected()

    def _set_state(self, state: ConnectionState) -> None:
        _LOGGER.debug("%s: %s -> %s", self.mac_address, self._state.value, state.value)
        self._state = state

    def _require_ready(self) -> None:
        if self._state is not ConnectionState.READY:
            raise NotConnectedError(f"Dongle {self.mac_address} is not connected")

    async def _inspect(self) -> None:
        """Resolve characteristics, read identity and set up notifications.

        Raises:
            IncompatibleDeviceError: If mandatory characteristics are missing
            DisconnectedError: If the session ends while inspecting
        """
        _LOGGER.debug("Inspecting %s", self.mac_address)
        connection = self._connection

        if not connection.has_service(SERVICE_UUID):
            raise IncompatibleDeviceError(f"Controller service {SERVICE_UUID} not found")

        chars = {
            name: connection.get_characteristic(uuid)
            for name, uuid in MANDATORY_CHAR_UUIDS.items()
        }
        missing = sorted(name for name, char in chars.items() if char is None)
        if missing:
            raise IncompatibleDeviceError(
                f"Device services/characteristics are not compatible: missing {', '.join(missing)}"
            )

        # Optional per-slot characteristics
        registry = SlotRegistry(self.limits.slot_count)
        for slot in range(self.limits.slot_count):
            registry.bind(slot, connection.get_characteristic(STATUS_CHAR_UUIDS[slot]))
        registry.superwatch.characteristic = connection.get_characteristic(SUPERWATCH_CHAR_UUID)

        command_char = connection.get_characteristic(COMMAND_CHAR_UUID)
        response_char = connection.get_characteristic(RESPONSE_CHAR_UUID)
        if command_char and response_char:
            _LOGGER.debug("Using command/response characteristics")
            correlator = CommandCorrelator(
                partial(connection.write, command_char, response=self.write_with_response),
                default_timeout=self.default_timeout,
            )
            channel = CommandChannel(correlator)
            inbound_char = response_char
        elif self.messaging_factory:
            _LOGGER.debug("Using transparent UART")
            writer = ChunkedWriter(
                partial(connection.write, chars["uart_tx"], response=self.write_with_response),
                chunk_size=self.limits.chunk_size,
            )
            channel = UartChannel(self.messaging_factory(writer), self.max_concurrent_requests)
            inbound_char = chars["uart_rx"]
        else:
            raise IncompatibleDeviceError(
                "No request channel: device has no command characteristic "
                "and no messaging_factory was given"
            )

        try:
            device_type = _decode_text(await connection.read(chars["product"]))
            self._ensure_inspecting()
            if not device_type:
                raise IncompatibleDeviceError("Unknown device type")
            serial = _decode_text(await connection.read(chars["serial"]))
            self._ensure_inspecting()
            fault = await connection.read(chars["fault"])
            self._ensure_inspecting()

            watches = WatchCoordinator(
                connection,
                registry,
                self._send_dongle_command,
                self.limits.max_superwatch_addresses,
                on_status=self.on_status,
            )

            await connection.subscribe(chars["fault"], self._handle_fault)
            self._ensure_inspecting()
            await connection.subscribe(chars["uart_control"], self._handle_uart_control)
            self._ensure_inspecting()
            await connection.subscribe(inbound_char, channel.data_received)
            self._ensure_inspecting()

            dongle_info = None
            if all(connection.get_characteristic(uuid) for uuid in DONGLE_INFO_CHAR_UUIDS.values()):
                dongle_info = await self._read_dongle_info()
                self._ensure_inspecting()
        except Exception:
            channel.close(DisconnectedError("Inspection aborted"))
            raise

        # Published only once the whole inspection succeeded on a live link
        self._channel = channel
        self._registry = registry
        self._watches = watches
        self._dongle_info = dongle_info
        self.device_type = device_type
        self.serial = serial
        self.fault = fault

    def _ensure_inspecting(self) -> None:
        if self._state is not ConnectionState.INSPECTING:
            raise DisconnectedError("Link lost during inspection")

    def _handle_fault(self, data: bytes) -> None:
        _LOGGER.debug("Fault: %s", data.hex())
        self.fault = data
        if self.on_fault:
            self.on_fault(data)

    def _handle_uart_control(self, data: bytes) -> None:
        _LOGGER.debug("UART control: %s", data.hex())

    async def read_dongle_info(self) -> DongleInfo:
        """Read the dongle's Device Information characteristics.

        Returns:
            DongleInfo with system id, model, serial, revisions and manufacturer

        Raises:
            NotConnectedError: If not ready
            IncompatibleDeviceError: If a Device Information characteristic is missing
        """
        self._require_ready()
        self._dongle_info = await self._read_dongle_info()
        return self._dongle_info

    async def _read_dongle_info(self) -> DongleInfo:
        chars = {}
        for name, uuid in DONGLE_INFO_CHAR_UUIDS.items():
            char = self._connection.get_characteristic(uuid)
            if char is None:
                raise IncompatibleDeviceError(f"Device information characteristic {uuid} not found")
            chars[name] = char

        values = await asyncio.gather(*(self._connection.read(char) for char in chars.values()))
        info = DongleInfo.from_characteristics(dict(zip(chars, values)))

        _LOGGER.info(
            "Dongle %s: model=%s fw=%s hw=%s sw=%s",
            info.serial_number,
            info.model_number,
            info.firmware_revision,
            info.hardware_revision,
            info.software_revision,
        )
        return info

    async def _request(
            self,
            unit: int,
            function_code: FunctionCode,
            payload: bytes,
            timeout: float | None,
    ) -> MessageResponse:
        self._require_ready()
        return await self._channel.request(
            unit,
            function_code,
            payload,
            self.default_timeout if timeout is None else timeout,
        )

    async def command(
            self,
            unit: int,
            op: int,
            values: bytes = b"",
            timeout: float | None = None,
    ) -> None:
        """Send a command and wait for a zero status.

        Raises:
            NotConnectedError: If not ready
            BLETimeoutError: If no response arrives in time
            RemoteExceptionError: If the remote end reports a failure
        """
        payload = build_command_payload(op, values)
        _LOGGER.debug("Command %d to unit %d: %s", op, unit, bytes(values).hex())
        response = await self._request(unit, FunctionCode.COMMAND, payload, timeout)
        check_response(response, f"Command {op}")

    async def _send_dongle_command(self, op: OpCode, values: bytes) -> None:
        await self.command(self.unit_id, op, values)

    async def configure(self, options: bytes = b"") -> None:
        """Send the CONFIGURE command to the dongle.

        Args:
            options: Raw configuration bytes appended to the command (default: none)
        """
        await self._send_dongle_command(OpCode.CONFIGURE, options)

    async def keyswitch(self, state: bool) -> None:
        """Turn the controller keyswitch on or off."""
        await self._send_dongle_command(OpCode.KEYSWITCH, build_keyswitch_values(state))

    async def read_memory(
            self,
            unit: int,
            address: int,
            length: int,
            timeout: float | None = None,
    ) -> bytes:
        """Read bytes from a unit's 16-bit memory space."""
        payload = build_read_memory_payload(address, length)
        response = await self._request(unit, FunctionCode.READ_MEMORY, payload, timeout)
        check_response(response, f"Read of 0x{address:04x}")
        return response.values

    async def write_memory(
            self,
            unit: int,
            address: int,
            data: bytes,
            timeout: float | None = None,
    ) -> None:
        """Write bytes into a unit's 16-bit memory space."""
        payload = build_write_memory_payload(address, data)
        response = await self._request(unit, FunctionCode.WRITE_MEMORY, payload, timeout)
        check_response(response, f"Write of 0x{address:04x}")

    async def read_object(self, unit: int, object_id: int, timeout: float | None = None) -> bytes:
        """Read a data object from a unit."""
        payload = build_read_object_payload(object_id)
        response = await self._request(unit, FunctionCode.READ_OBJECT, payload, timeout)
        check_response(response, f"Read of object {object_id}")
        return response.values

    async def write_object(
            self,
            unit: int,
            object_id: int,
            data: bytes,
            timeout: float | None = None,
    ) -> None:
        """Write a data object in a unit."""
        payload = build_write_object_payload(object_id, data)
        response = await self._request(unit, FunctionCode.WRITE_OBJECT, payload, timeout)
        check_response(response, f"Write of object {object_id}")

    async def read_access_key(self) -> bytes:
        """Read the cloud access key from the dongle's info object."""
        return await self.read_object(self.unit_id, OBJECT_INFO)

    async def write_access_key(self, key: bytes) -> None:
        """Store a cloud access key in the dongle's info object.

        The key is padded with 0xFF to the object size.
        """
        if len(key) > OBJECT_INFO_SIZE:
            raise ValueError(f"Key too long: {len(key)} bytes (max {OBJECT_INFO_SIZE})")
        page = bytes(key) + b"\xff" * (OBJECT_INFO_SIZE - len(key))
        await self.write_object(self.unit_id, OBJECT_INFO, page)

    async def watch(
            self,
            slot: int,
            unit: int,
            address: int,
            length: int = 1,
            callback: WatchCallback | None = None,
    ) -> None:
        """Watch a remote address through a notification slot.

        Any previous watcher on the slot is replaced.

        Raises:
            NotConnectedError: If not ready
            InvalidSlotError: If the slot is out of range
            RemoteExceptionError: If the dongle rejects the watch
        """
        self._require_ready()
        await self._watches.watch(slot, unit, address, length, callback)

    async def set_watchers(self, watchers: Watcher | Iterable[Watcher]) -> None:
        """Apply a batch of watchers with one WATCH command."""
        self._require_ready()
        await self._watches.set_watchers(watchers)

    async def superwatch(
            self,
            unit: int,
            addresses: Sequence[int],
            callback: WatchCallback | None = None,
    ) -> None:
        """Watch up to limits.max_superwatch_addresses addresses through one slot.

        Pass an empty address list to clear the superwatch.
        """
        self._require_ready()
        await self._watches.superwatch(unit, addresses, callback)

    async def unwatch(self, slot: int) -> None:
        """Stop watching a slot."""
        self._require_ready()
        await self._watches.unwatch(slot)

    async def clear_watchers(self, slots: Iterable[int]) -> None:
        """Stop watching several slots with one UNWATCH command."""
        self._require_ready()
        await self._watches.clear_watchers(slots)

    async def unwatch_all(self) -> None:
        """Stop watching every slot."""
        self._require_ready()
        await self._watches.unwatch_all()
