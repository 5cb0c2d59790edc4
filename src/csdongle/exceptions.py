"""Exceptions raised by the dongle driver."""

from __future__ import annotations


class DongleError(Exception):
    """Base exception for all dongle errors."""


class BLEConnectionError(DongleError):
    """BLE connection could not be established or a BLE operation failed."""


class BLETimeoutError(DongleError):
    """No (correlated) response within the deadline."""


class IncompatibleDeviceError(DongleError):
    """Peripheral lacks a mandatory service or characteristic."""


class NotConnectedError(DongleError):
    """Operation attempted while the session is not ready."""


class InvalidSlotError(DongleError, ValueError):
    """Notification slot index out of range."""


class SlotUnavailableError(InvalidSlotError):
    """Slot exists but its characteristic was not found on the device."""


class TooManyAddressesError(DongleError, ValueError):
    """Superwatch address list exceeds the hardware maximum."""


class ProtocolError(DongleError):
    """Malformed frame received from the device."""


class RemoteExceptionError(DongleError):
    """Device rejected a request.

    Attributes:
        exception_code: Exception code reported by the remote end, if any
        status: Non-zero status byte returned for a command or write, if any
    """

    def __init__(
            self,
            message: str,
            exception_code: int | None = None,
            status: int | None = None,
    ):
        super().__init__(message)
        self.exception_code = exception_code
        self.status = status


class DisconnectedError(DongleError):
    """In-flight operation aborted because the link went down."""
