"""Response frame parsing and status validation."""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..exceptions import ProtocolError, RemoteExceptionError

if TYPE_CHECKING:
    from ..models.messages import MessageResponse


def parse_command_response(data: bytes) -> tuple[int, int, bytes]:
    """Parse a frame received on the response characteristic.

    Format: [sequence:1][status:1][values:variable]

    Args:
        data: Raw notification data

    Returns:
        Tuple of (sequence, status, values)

    Raises:
        ProtocolError: If the frame is too short
    """
    if len(data) < 2:
        raise ProtocolError(f"Response too short: {len(data)} bytes (need at least 2)")

    return data[0], data[1], bytes(data[2:])


def check_response(response: MessageResponse, description: str) -> None:
    """Raise if the remote end reported an exception or a non-zero status.

    Args:
        response: Decoded response from the request channel
        description: What was requested, used in the error message

    Raises:
        RemoteExceptionError: If the request was rejected
    """
    if response.exception_code:
        raise RemoteExceptionError(
            f"{description} failed: exception 0x{response.exception_code:02x}",
            exception_code=response.exception_code,
        )

    if response.status is not None and response.status != 0:
        raise RemoteExceptionError(
            f"{description} failed: status 0x{response.status:02x}",
            status=response.status,
        )
