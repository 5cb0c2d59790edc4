"""Client driver for CS BLE controller dongles.

Talks to controllers behind a BLE dongle: memory and object requests,
dongle commands and hardware-pushed watch notifications.
"""

from .controller import MotorController
from .device import Dongle
from .exceptions import (
    BLEConnectionError,
    BLETimeoutError,
    DisconnectedError,
    DongleError,
    IncompatibleDeviceError,
    InvalidSlotError,
    NotConnectedError,
    ProtocolError,
    RemoteExceptionError,
    SlotUnavailableError,
    TooManyAddressesError,
)
from .models import (
    ConnectionState,
    DongleInfo,
    DongleLimits,
    MessageResponse,
    Watcher,
)
from .protocol import DONGLE_UNIT_ID, SERVICE_UUID, FunctionCode, OpCode
from .transport import ChunkedWriter, MessagingClient, MessagingFactory

__version__ = "0.1.0"

__all__ = [
    # Main API
    "Dongle",
    "MotorController",
    # Exceptions
    "DongleError",
    "BLEConnectionError",
    "BLETimeoutError",
    "IncompatibleDeviceError",
    "NotConnectedError",
    "InvalidSlotError",
    "SlotUnavailableError",
    "TooManyAddressesError",
    "RemoteExceptionError",
    "DisconnectedError",
    "ProtocolError",
    # Models
    "ConnectionState",
    "DongleInfo",
    "DongleLimits",
    "MessageResponse",
    "Watcher",
    # Messaging collaborator
    "ChunkedWriter",
    "MessagingClient",
    "MessagingFactory",
    # Constants
    "DONGLE_UNIT_ID",
    "SERVICE_UUID",
    "FunctionCode",
    "OpCode",
]
