"""GATT service and characteristic UUIDs exposed by the dongle."""

from __future__ import annotations

from typing import Final


def _controller_uuid(short: int) -> str:
    """Expand a controller-service characteristic number to its 128-bit UUID."""
    return f"6765ed1f-4de1-49e1-4771-a14380c9{short:04x}"


def _sig_uuid(short: int) -> str:
    """Expand a Bluetooth SIG 16-bit UUID."""
    return f"0000{short:04x}-0000-1000-8000-00805f9b34fb"


# Private controller service (advertised, used to find the dongle)
SERVICE_UUID: Final = _controller_uuid(0x0000)

COMMAND_CHAR_UUID: Final = _controller_uuid(0x0001)
RESPONSE_CHAR_UUID: Final = _controller_uuid(0x0002)
PRODUCT_CHAR_UUID: Final = _controller_uuid(0x0003)
SERIAL_CHAR_UUID: Final = _controller_uuid(0x0004)
FAULT_CHAR_UUID: Final = _controller_uuid(0x0005)

# One notification characteristic per watch slot (0x0006 - 0x0019)
STATUS_CHAR_UUIDS: Final[tuple[str, ...]] = tuple(
    _controller_uuid(0x0006 + slot) for slot in range(20)
)
SUPERWATCH_CHAR_UUID: Final = _controller_uuid(0x001A)

# Transparent UART service
UART_SERVICE_UUID: Final = "49535343-fe7d-4ae5-8fa9-9fafd205e455"
UART_RX_CHAR_UUID: Final = "49535343-1e4d-4bd9-ba61-23c647249616"
UART_TX_CHAR_UUID: Final = "49535343-8841-43f4-a8d4-ecbe34729bb3"
UART_CONTROL_CHAR_UUID: Final = "49535343-4c8a-39b3-2f49-511cff073b7e"

# Device Information Service
DEVICE_INFORMATION_SERVICE_UUID: Final = _sig_uuid(0x180A)
SYSTEM_ID_CHAR_UUID: Final = _sig_uuid(0x2A23)
MODEL_NUMBER_CHAR_UUID: Final = _sig_uuid(0x2A24)
SERIAL_NUMBER_CHAR_UUID: Final = _sig_uuid(0x2A25)
FIRMWARE_REVISION_CHAR_UUID: Final = _sig_uuid(0x2A26)
HARDWARE_REVISION_CHAR_UUID: Final = _sig_uuid(0x2A27)
SOFTWARE_REVISION_CHAR_UUID: Final = _sig_uuid(0x2A28)
MANUFACTURER_NAME_CHAR_UUID: Final = _sig_uuid(0x2A29)

# Characteristics without which the dongle cannot be used at all
MANDATORY_CHAR_UUIDS: Final[dict[str, str]] = {
    "product": PRODUCT_CHAR_UUID,
    "serial": SERIAL_CHAR_UUID,
    "fault": FAULT_CHAR_UUID,
    "uart_rx": UART_RX_CHAR_UUID,
    "uart_tx": UART_TX_CHAR_UUID,
    "uart_control": UART_CONTROL_CHAR_UUID,
}

# Field name -> characteristic for readDongleInfo(), in report order
DONGLE_INFO_CHAR_UUIDS: Final[dict[str, str]] = {
    "system_id": SYSTEM_ID_CHAR_UUID,
    "model_number": MODEL_NUMBER_CHAR_UUID,
    "serial_number": SERIAL_NUMBER_CHAR_UUID,
    "firmware_revision": FIRMWARE_REVISION_CHAR_UUID,
    "hardware_revision": HARDWARE_REVISION_CHAR_UUID,
    "software_revision": SOFTWARE_REVISION_CHAR_UUID,
    "manufacturer_name": MANUFACTURER_NAME_CHAR_UUID,
}
