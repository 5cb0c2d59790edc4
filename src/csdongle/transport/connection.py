"""BLE connection management."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

from bleak import BleakClient, BleakScanner
from bleak_retry_connector import BleakClientWithServiceCache, establish_connection

from ..exceptions import BLEConnectionError, BLETimeoutError

if TYPE_CHECKING:
    from bleak.backends.characteristic import BleakGATTCharacteristic
    from bleak.backends.device import BLEDevice

_LOGGER = logging.getLogger(__name__)

NotificationHandler = Callable[[bytes], None]


class BLEConnection:
    """Manages the BLE link to one dongle.

    Features:
    - Automatic retry logic with bleak-retry-connector
    - Service caching for faster reconnections
    - Idempotent subscribe/unsubscribe bookkeeping per characteristic
    - Link-loss reporting through a plain callback
    """

    def __init__(
            self,
            mac_address: str,
            ble_device: BLEDevice | None = None,
            timeout: float = 10.0,
            max_attempts: int = 4,
            use_services_cache: bool = True,
            disconnected_callback: Callable[[], None] | None = None,
    ):
        """Initialize BLE connection manager.

        Args:
            mac_address: Device MAC address
            ble_device: Optional BLEDevice from a scanner or Home Assistant
            timeout: Connection timeout in seconds (default: 10)
            max_attempts: Maximum connection attempts for bleak-retry-connector (default: 4)
            use_services_cache: Enable GATT service caching for faster reconnections (default: True)
            disconnected_callback: Called when the link drops, voluntarily or not
        """
        self.mac_address = mac_address
        self.ble_device = ble_device
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.use_services_cache = use_services_cache
        self.disconnected_callback = disconnected_callback

        self._client: BleakClient | None = None
        self._subscriptions: set[str] = set()

    async def connect(self) -> None:
        """Establish BLE connection and discover services.

        Raises:
            BLEConnectionError: If connection fails
            BLETimeoutError: If connection times out
        """
        if self._client and self._client.is_connected:
            return  # Already connected

        try:
            _LOGGER.debug(
                "Connecting to %s with bleak-retry-connector (max_attempts=%d)",
                self.mac_address,
                self.max_attempts
            )

            if self.ble_device:
                device = self.ble_device
            else:
                device = await BleakScanner.find_device_by_address(
                    self.mac_address,
                    timeout=self.timeout
                )
                if device is None:
                    raise BLEConnectionError(
                        f"Device {self.mac_address} not found during scan"
                    )

            self._client = await establish_connection(
                client_class=BleakClientWithServiceCache,
                device=device,
                name=device.name or self.mac_address,
                disconnected_callback=self._on_disconnect,
                max_attempts=self.max_attempts,
                use_services_cache=self.use_services_cache,
                timeout=self.timeout,
            )

            _LOGGER.debug("Connected to %s", self.mac_address)

        except BLEConnectionError:
            raise
        except asyncio.TimeoutError as e:
            raise BLETimeoutError(
                f"Connection timeout after {self.timeout}s"
            ) from e
        except Exception as e:
            raise BLEConnectionError(
                f"Failed to connect: {e}"
            ) from e

    async def disconnect(self) -> None:
        """Disconnect from device."""
        if self._client and self._client.is_connected:
            try:
                _LOGGER.debug("Disconnecting from %s", self.mac_address)
                await self._client.disconnect()
            except Exception as e:
                _LOGGER.warning("Error during disconnect: %s", e)
            finally:
                self._client = None
        self._subscriptions.clear()

    def _on_disconnect(self, client: BleakClient) -> None:
        """Bleak callback fired whenever the link drops."""
        _LOGGER.debug("Link to %s lost", self.mac_address)
        self._client = None
        self._subscriptions.clear()
        if self.disconnected_callback:
            self.disconnected_callback()

    def has_service(self, uuid: str) -> bool:
        """Check whether the device exposes a service."""
        if not self._client:
            raise BLEConnectionError("Not connected")
        return self._client.services.get_service(uuid) is not None

    def get_characteristic(self, uuid: str) -> BleakGATTCharacteristic | None:
        """Look up a discovered characteristic by UUID.

        Returns:
            The characteristic, or None if the device does not expose it
        """
        if not self._client:
            raise BLEConnectionError("Not connected")
        return self._client.services.get_characteristic(uuid)

    async def read(self, characteristic: BleakGATTCharacteristic) -> bytes:
        """Read a characteristic value.

        Raises:
            BLEConnectionError: If not connected or read fails
        """
        if not self.is_connected:
            raise BLEConnectionError("Not connected")

        try:
            return bytes(await self._client.read_gatt_char(characteristic))
        except Exception as e:
            raise BLEConnectionError(f"Read of {characteristic.uuid} failed: {e}") from e

    async def write(
            self,
            characteristic: BleakGATTCharacteristic,
            data: bytes,
            response: bool = True,
    ) -> None:
        """Write a characteristic value.

        Args:
            characteristic: Target characteristic
            data: Bytes to write (must fit in one ATT write)
            response: Wait for write confirmation (default: True)

        Raises:
            BLEConnectionError: If not connected or write fails
        """
        if not self.is_connected:
            raise BLEConnectionError("Not connected")

        try:
            await self._client.write_gatt_char(characteristic, data, response=response)
        except Exception as e:
            raise BLEConnectionError(f"Write to {characteristic.uuid} failed: {e}") from e

    async def subscribe(
            self,
            characteristic: BleakGATTCharacteristic,
            handler: NotificationHandler,
    ) -> None:
        """Start notifications on a characteristic.

        No-op if already subscribed.

        Raises:
            BLEConnectionError: If not connected or the subscription fails
        """
        if characteristic.uuid in self._subscriptions:
            return
        if not self.is_connected:
            raise BLEConnectionError("Not connected")

        def _callback(sender, data: bytearray) -> None:
            handler(bytes(data))

        try:
            await self._client.start_notify(characteristic, _callback)
        except Exception as e:
            raise BLEConnectionError(
                f"Failed to subscribe to {characteristic.uuid}: {e}"
            ) from e

        self._subscriptions.add(characteristic.uuid)
        _LOGGER.debug("Subscribed to %s", characteristic.uuid)

    async def unsubscribe(self, characteristic: BleakGATTCharacteristic) -> None:
        """Stop notifications on a characteristic.

        No-op if not subscribed.

        Raises:
            BLEConnectionError: If the unsubscription fails
        """
        if characteristic.uuid not in self._subscriptions:
            return

        if not self.is_connected:
            self._subscriptions.discard(characteristic.uuid)
            raise BLEConnectionError("Not connected")

        try:
            await self._client.stop_notify(characteristic)
        except Exception as e:
            raise BLEConnectionError(
                f"Failed to unsubscribe from {characteristic.uuid}: {e}"
            ) from e

        self._subscriptions.discard(characteristic.uuid)
        _LOGGER.debug("Unsubscribed from %s", characteristic.uuid)

    def is_subscribed(self, characteristic: BleakGATTCharacteristic) -> bool:
        """Check whether notifications are active for a characteristic."""
        return characteristic.uuid in self._subscriptions

    @property
    def is_connected(self) -> bool:
        """Check if currently connected to device."""
        return self._client is not None and self._client.is_connected
