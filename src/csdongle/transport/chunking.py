"""Chunked writes onto the transparent UART characteristic."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterator

from ..protocol.commands import UART_CHUNK_SIZE

_LOGGER = logging.getLogger(__name__)


def iter_chunks(data: bytes, chunk_size: int = UART_CHUNK_SIZE) -> Iterator[bytes]:
    """Split data into consecutive chunks of at most chunk_size bytes.

    Args:
        data: Buffer to split
        chunk_size: Maximum bytes per chunk

    Yields:
        ceil(len(data) / chunk_size) chunks, in order
    """
    if chunk_size < 1:
        raise ValueError(f"chunk_size must be at least 1: {chunk_size}")

    for start in range(0, len(data), chunk_size):
        yield bytes(data[start:start + chunk_size])


class ChunkedWriter:
    """Byte sink that delivers frames to a size-limited write primitive.

    Frames submitted by overlapping send() calls are written one after the
    other; chunks of different frames never interleave. Framing is left to
    the messaging client at the other end, which reassembles the stream.
    """

    def __init__(
            self,
            write: Callable[[bytes], Awaitable[None]],
            chunk_size: int = UART_CHUNK_SIZE,
    ):
        """Initialize writer.

        Args:
            write: Coroutine function writing one chunk to the characteristic
            chunk_size: Maximum bytes per write (default: 20)
        """
        if chunk_size < 1:
            raise ValueError(f"chunk_size must be at least 1: {chunk_size}")

        self.chunk_size = chunk_size
        self._write = write
        self._lock = asyncio.Lock()

    async def send(self, data: bytes) -> None:
        """Write a whole frame, chunk by chunk.

        Completes once every chunk write has completed. The first failing
        write aborts the send and its error propagates; already-written
        chunks are not retried.
        """
        async with self._lock:
            for chunk in iter_chunks(data, self.chunk_size):
                _LOGGER.debug("TX %s", chunk.hex())
                await self._write(chunk)
