"""Request channels: the UART messaging path and the command characteristic path."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Protocol

from ..exceptions import BLETimeoutError, DisconnectedError
from ..models.messages import MessageResponse
from ..protocol.responses import parse_command_response
from .chunking import ChunkedWriter
from .correlator import CommandCorrelator

_LOGGER = logging.getLogger(__name__)


class MessagingClient(Protocol):
    """Framed request/response client running over the UART byte stream.

    Supplied by the application; it owns PDU framing, checksums and its own
    retry policy, and writes outbound frames through the ChunkedWriter it
    was created with.
    """

    async def request(
            self,
            unit: int,
            function_code: int,
            payload: bytes,
            timeout: float,
    ) -> MessageResponse:
        """Send one request and return its decoded response."""

    def data_received(self, data: bytes) -> None:
        """Feed bytes received on the UART RX characteristic."""

    def connection_lost(self, exc: Exception) -> None:
        """Abort all outstanding requests."""


MessagingFactory = Callable[[ChunkedWriter], MessagingClient]


class RequestChannel(Protocol):
    """Submit a request, get the correlated response."""

    async def request(
            self,
            unit: int,
            function_code: int,
            payload: bytes,
            timeout: float,
    ) -> MessageResponse:
        ...

    def data_received(self, data: bytes) -> None:
        ...

    def close(self, exc: Exception) -> None:
        ...


class UartChannel:
    """Requests through the external messaging client over transparent UART.

    Limits the number of outstanding requests, enforces the per-request
    timeout and fails outstanding requests with DisconnectedError on close.
    """

    def __init__(self, client: MessagingClient, max_concurrent_requests: int = 2):
        """Initialize channel.

        Args:
            client: Messaging client bound to the UART ChunkedWriter
            max_concurrent_requests: Requests allowed in flight at once (default: 2)
        """
        if max_concurrent_requests < 1:
            raise ValueError(
                f"max_concurrent_requests must be at least 1: {max_concurrent_requests}"
            )

        self.client = client
        self._semaphore = asyncio.Semaphore(max_concurrent_requests)
        self._in_flight: dict[asyncio.Future, None] = {}
        self._close_exc: Exception | None = None

    async def request(
            self,
            unit: int,
            function_code: int,
            payload: bytes,
            timeout: float,
    ) -> MessageResponse:
        """Send a request through the messaging client.

        Raises:
            BLETimeoutError: If no response arrives within timeout
            DisconnectedError: If the channel closes while waiting
        """
        async with self._semaphore:
            if self._close_exc is not None:
                raise DisconnectedError("Request channel closed") from self._close_exc

            task = asyncio.ensure_future(
                self.client.request(unit, function_code, payload, timeout)
            )
            self._in_flight[task] = None
            try:
                return await asyncio.wait_for(task, timeout=timeout)
            except asyncio.TimeoutError as e:
                raise BLETimeoutError(
                    f"No response received within {timeout}s"
                ) from e
            except asyncio.CancelledError:
                if self._close_exc is not None and task.cancelled():
                    raise DisconnectedError(
                        "Link lost while waiting for response"
                    ) from self._close_exc
                raise
            except DisconnectedError:
                raise
            except Exception as e:
                if self._close_exc is not None:
                    raise DisconnectedError(
                        "Link lost while waiting for response"
                    ) from e
                raise
            finally:
                self._in_flight.pop(task, None)

    def data_received(self, data: bytes) -> None:
        _LOGGER.debug("RX %s", data.hex())
        self.client.data_received(data)

    def close(self, exc: Exception) -> None:
        """Fail all outstanding requests."""
        self._close_exc = exc
        self.client.connection_lost(exc)
        for task in list(self._in_flight):
            task.cancel()


class CommandChannel:
    """Requests through the command/response characteristic pair.

    Request frame:  [seq][function_code][unit][payload...]
    Response frame: [seq][status][values...]
    """

    def __init__(self, correlator: CommandCorrelator):
        self.correlator = correlator

    async def request(
            self,
            unit: int,
            function_code: int,
            payload: bytes,
            timeout: float,
    ) -> MessageResponse:
        frame = bytes([function_code, unit]) + bytes(payload)
        response = await self.correlator.request(frame, timeout)
        _, status, values = parse_command_response(response)
        return MessageResponse(values=values, status=status)

    def data_received(self, data: bytes) -> None:
        self.correlator.handle_response(data)

    def close(self, exc: Exception) -> None:
        self.correlator.fail_all(exc)
