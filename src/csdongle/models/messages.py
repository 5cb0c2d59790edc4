"""Decoded responses returned by request channels."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class MessageResponse:
    """Response to one request.

    Attributes:
        values: Data returned by the remote end (read results)
        status: Status byte for commands and writes (0 = success), None for reads
        exception_code: Exception code if the remote end rejected the request
    """

    values: bytes = b""
    status: int | None = None
    exception_code: int | None = None
