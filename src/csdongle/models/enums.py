from __future__ import annotations

from enum import Enum


class ConnectionState(Enum):
    """Session lifecycle.

    DISCONNECTED -> CONNECTING -> INSPECTING -> READY, and back to
    DISCONNECTED from any state on disconnect or link loss.
    """
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    INSPECTING = "inspecting"
    READY = "ready"
