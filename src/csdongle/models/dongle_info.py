"""Dongle identity read from the Device Information service."""

from __future__ import annotations

from dataclasses import dataclass


def _decode_text(data: bytes) -> str:
    return data.decode("utf-8", errors="replace").rstrip("\x00")


@dataclass(frozen=True)
class DongleInfo:
    """Static identity of the BLE dongle."""

    system_id: bytes
    model_number: str
    serial_number: str
    firmware_revision: str
    hardware_revision: str
    software_revision: str
    manufacturer_name: str

    @classmethod
    def from_characteristics(cls, values: dict[str, bytes]) -> DongleInfo:
        """Build from raw characteristic values keyed by field name."""
        return cls(
            system_id=bytes(values["system_id"]),
            model_number=_decode_text(values["model_number"]),
            serial_number=_decode_text(values["serial_number"]),
            firmware_revision=_decode_text(values["firmware_revision"]),
            hardware_revision=_decode_text(values["hardware_revision"]),
            software_revision=_decode_text(values["software_revision"]),
            manufacturer_name=_decode_text(values["manufacturer_name"]),
        )
