"""Single-flight command/response correlation over a characteristic pair."""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from ..exceptions import BLETimeoutError

_LOGGER = logging.getLogger(__name__)


@dataclass
class PendingRequest:
    """One queued request awaiting its correlated response."""

    sequence: int
    frame: bytes
    timeout: float
    future: asyncio.Future[bytes]
    sent: bool = False
    timer: asyncio.TimerHandle | None = field(default=None, repr=False)


class CommandCorrelator:
    """Serializes requests to a device that handles one request at a time.

    Each request is prefixed with a sequence number (modulo 256). Requests
    are written in FIFO order, one at a time; the next is started when the
    current one receives a response whose first byte matches its sequence
    number, fails to write, or times out. Responses with any other sequence
    number are dropped.
    """

    def __init__(
            self,
            write: Callable[[bytes], Awaitable[None]],
            default_timeout: float = 5.0,
    ):
        """Initialize correlator.

        Args:
            write: Coroutine function writing a frame to the command characteristic
            default_timeout: Response timeout in seconds when none is given (default: 5)
        """
        self.default_timeout = default_timeout
        self._write = write
        self._queue: deque[PendingRequest] = deque()
        self._sequence = 0
        self._send_task: asyncio.Task | None = None

    def enqueue(self, payload: bytes, timeout: float | None = None) -> asyncio.Future[bytes]:
        """Queue a request.

        Args:
            payload: Request body; the sequence number is prepended
            timeout: Response timeout in seconds (default: default_timeout)

        Returns:
            Future resolving with the raw response frame
        """
        loop = asyncio.get_running_loop()
        pending = PendingRequest(
            sequence=self._sequence,
            frame=bytes([self._sequence]) + bytes(payload),
            timeout=self.default_timeout if timeout is None else timeout,
            future=loop.create_future(),
        )
        self._sequence = (self._sequence + 1) & 0xFF
        self._queue.append(pending)

        if len(self._queue) == 1:
            self._start_next()

        return pending.future

    async def request(self, payload: bytes, timeout: float | None = None) -> bytes:
        """Queue a request and wait for its response."""
        return await self.enqueue(payload, timeout)

    def handle_response(self, data: bytes) -> None:
        """Complete the in-flight request if the response matches it."""
        _LOGGER.debug("RX %s", data.hex())

        if not data:
            return

        if not self._queue or not self._queue[0].sent:
            _LOGGER.debug("Dropping response 0x%02x: no request in flight", data[0])
            return

        pending = self._queue[0]
        if data[0] != pending.sequence:
            _LOGGER.debug(
                "Dropping response 0x%02x: expected sequence 0x%02x",
                data[0],
                pending.sequence,
            )
            return

        self._finish(pending)
        if not pending.future.done():
            pending.future.set_result(bytes(data))
        self._start_next()

    def fail_all(self, exc: Exception) -> None:
        """Fail every queued request with exc, in FIFO order, and empty the queue."""
        if self._send_task and not self._send_task.done():
            self._send_task.cancel()
        self._send_task = None

        while self._queue:
            pending = self._queue.popleft()
            if pending.timer:
                pending.timer.cancel()
            if not pending.future.done():
                pending.future.set_exception(exc)

    @property
    def pending_count(self) -> int:
        """Number of requests queued, including the one in flight."""
        return len(self._queue)

    def _start_next(self) -> None:
        if self._queue:
            self._send_task = asyncio.ensure_future(self._transmit(self._queue[0]))

    async def _transmit(self, pending: PendingRequest) -> None:
        pending.sent = True
        _LOGGER.debug("TX %s", pending.frame.hex())
        try:
            await self._write(pending.frame)
        except Exception as e:
            if self._queue and self._queue[0] is pending:
                self._finish(pending)
                if not pending.future.done():
                    pending.future.set_exception(e)
                self._start_next()
            return

        if self._queue and self._queue[0] is pending:
            loop = asyncio.get_running_loop()
            pending.timer = loop.call_later(pending.timeout, self._on_timeout, pending)

    def _on_timeout(self, pending: PendingRequest) -> None:
        if not self._queue or self._queue[0] is not pending:
            return

        _LOGGER.debug("Request 0x%02x timed out after %ss", pending.sequence, pending.timeout)
        self._finish(pending)
        if not pending.future.done():
            pending.future.set_exception(
                BLETimeoutError(f"No response received within {pending.timeout}s")
            )
        self._start_next()

    def _finish(self, pending: PendingRequest) -> None:
        self._queue.popleft()
        if pending.timer:
            pending.timer.cancel()
