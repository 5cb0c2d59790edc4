"""BLE transport layer."""

from .channels import (
    CommandChannel,
    MessagingClient,
    MessagingFactory,
    RequestChannel,
    UartChannel,
)
from .chunking import ChunkedWriter, iter_chunks
from .connection import BLEConnection
from .correlator import CommandCorrelator, PendingRequest

__all__ = [
    "BLEConnection",
    "ChunkedWriter",
    "CommandChannel",
    "CommandCorrelator",
    "MessagingClient",
    "MessagingFactory",
    "PendingRequest",
    "RequestChannel",
    "UartChannel",
    "iter_chunks",
]
