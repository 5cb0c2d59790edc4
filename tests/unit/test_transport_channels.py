"""Test the UART and command request channels."""

from __future__ import annotations

import asyncio

import pytest

from csdongle.exceptions import BLETimeoutError, DisconnectedError, ProtocolError
from csdongle.models.messages import MessageResponse
from csdongle.transport.channels import CommandChannel, UartChannel
from csdongle.transport.correlator import CommandCorrelator


class _BlockingClient:
    """Messaging client whose requests complete only when released."""

    def __init__(self):
        self.started: list[int] = []
        self.release = asyncio.Event()
        self.lost: Exception | None = None
        self.received: list[bytes] = []

    async def request(self, unit, function_code, payload, timeout):
        self.started.append(unit)
        await self.release.wait()
        return MessageResponse(values=bytes([unit]))

    def data_received(self, data):
        self.received.append(data)

    def connection_lost(self, exc):
        self.lost = exc


async def _settle() -> None:
    for _ in range(5):
        await asyncio.sleep(0)


class TestUartChannel:
    """Test pass-through to the messaging client."""

    @pytest.mark.asyncio
    async def test_respects_concurrency_limit(self):
        client = _BlockingClient()
        channel = UartChannel(client, max_concurrent_requests=2)

        tasks = [
            asyncio.ensure_future(channel.request(unit, 0x47, b"", 1.0))
            for unit in range(3)
        ]
        await _settle()
        assert client.started == [0, 1]

        client.release.set()
        results = await asyncio.gather(*tasks)

        assert client.started == [0, 1, 2]
        assert [r.values for r in results] == [b"\x00", b"\x01", b"\x02"]

    @pytest.mark.asyncio
    async def test_timeout(self):
        channel = UartChannel(_BlockingClient())

        with pytest.raises(BLETimeoutError):
            await channel.request(1, 0x45, b"\x00\x00\x01", 0.05)

    @pytest.mark.asyncio
    async def test_close_fails_in_flight_and_queued(self):
        client = _BlockingClient()
        channel = UartChannel(client, max_concurrent_requests=1)

        tasks = [
            asyncio.ensure_future(channel.request(unit, 0x47, b"", 5.0))
            for unit in range(3)
        ]
        await _settle()

        exc = DisconnectedError("link lost")
        channel.close(exc)
        results = await asyncio.gather(*tasks, return_exceptions=True)

        assert client.lost is exc
        assert all(isinstance(r, DisconnectedError) for r in results)

    @pytest.mark.asyncio
    async def test_request_after_close(self):
        channel = UartChannel(_BlockingClient())
        channel.close(DisconnectedError("gone"))

        with pytest.raises(DisconnectedError):
            await channel.request(1, 0x47, b"", 1.0)

    def test_data_forwarded_to_client(self):
        client = _BlockingClient()
        UartChannel(client).data_received(b"\x01\x02")
        assert client.received == [b"\x01\x02"]

    def test_invalid_concurrency(self):
        with pytest.raises(ValueError):
            UartChannel(_BlockingClient(), max_concurrent_requests=0)


class TestCommandChannel:
    """Test framing over the command/response characteristics."""

    @pytest.mark.asyncio
    async def test_request_frame_and_response(self):
        frames: list[bytes] = []

        async def write(frame: bytes) -> None:
            frames.append(frame)

        channel = CommandChannel(CommandCorrelator(write))
        task = asyncio.ensure_future(channel.request(254, 0x47, b"\x01\x01", 1.0))
        await _settle()

        assert frames == [b"\x00\x47\xfe\x01\x01"]

        channel.data_received(b"\x00\x00\xaa\xbb")
        response = await task

        assert response.status == 0
        assert response.values == b"\xaa\xbb"

    @pytest.mark.asyncio
    async def test_short_response_raises(self):
        async def write(frame: bytes) -> None:
            pass

        channel = CommandChannel(CommandCorrelator(write))
        task = asyncio.ensure_future(channel.request(1, 0x45, b"", 1.0))
        await _settle()
        channel.data_received(b"\x00")

        with pytest.raises(ProtocolError, match="too short"):
            await task

    @pytest.mark.asyncio
    async def test_close_fails_pending(self):
        async def write(frame: bytes) -> None:
            pass

        channel = CommandChannel(CommandCorrelator(write))
        task = asyncio.ensure_future(channel.request(1, 0x45, b"", 1.0))
        await _settle()
        channel.close(DisconnectedError("gone"))

        with pytest.raises(DisconnectedError):
            await task
