"""Connect to a dongle and print changes of one remote address.

Works with dongles exposing the command/response characteristic pair; UART-only
dongles need a messaging client (see csdongle.MessagingClient).

Usage:
    uv run python examples/watch_address.py --scan
    uv run python examples/watch_address.py AA:BB:CC:DD:EE:FF --unit 1 --address 0x005F
"""

from __future__ import annotations

import argparse
import asyncio
from datetime import datetime

from bleak import BleakScanner

from csdongle import SERVICE_UUID, Dongle, DongleError


def _timestamp() -> str:
    return datetime.now().strftime("%H:%M:%S")


async def scan(duration: float) -> None:
    """Print devices advertising the controller service."""
    print(f"Scanning for {duration:.1f}s...")
    devices = await BleakScanner.discover(timeout=duration, service_uuids=[SERVICE_UUID])
    for device in devices:
        print(f"  {device.address} {device.name or 'Unknown'}")
    if not devices:
        print("  no dongles found")


async def watch(mac: str, unit: int, address: int, length: int, duration: float) -> None:
    """Watch one address and print each notification."""

    def on_change(data: bytes) -> None:
        print(f"[{_timestamp()}] unit={unit} 0x{address:04x} = {data.hex()}")

    async with Dongle(mac) as dongle:
        print(f"Connected to {dongle.device_type} (serial {dongle.serial})")
        if dongle.dongle_info:
            info = dongle.dongle_info
            print(f"  model={info.model_number} fw={info.firmware_revision}")

        await dongle.configure()
        await dongle.watch(0, unit, address, length, on_change)
        try:
            await asyncio.sleep(duration)
        finally:
            await dongle.unwatch(0)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Watch a controller address through a BLE dongle.")
    parser.add_argument("mac", nargs="?", help="Dongle MAC address")
    parser.add_argument("--scan", action="store_true", help="List nearby dongles and exit.")
    parser.add_argument("--unit", type=int, default=1, help="Unit id behind the dongle. Default: 1")
    parser.add_argument(
        "--address",
        type=lambda value: int(value, 0),
        default=0x005F,
        help="16-bit address to watch. Default: 0x005F",
    )
    parser.add_argument("--length", type=int, default=1, help="Bytes to watch. Default: 1")
    parser.add_argument(
        "--duration",
        type=float,
        default=30.0,
        help="Seconds to scan or watch. Default: 30",
    )
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    try:
        if args.scan or not args.mac:
            asyncio.run(scan(args.duration))
        else:
            asyncio.run(watch(args.mac, args.unit, args.address, args.length, args.duration))
    except DongleError as err:
        print(f"Error: {err}")
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
