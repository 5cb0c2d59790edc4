"""Keeps dongle watch configuration, BLE subscriptions and callbacks in step."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable, Sequence
from contextlib import AsyncExitStack
from functools import partial
from typing import TYPE_CHECKING

from ..exceptions import SlotUnavailableError, TooManyAddressesError
from ..models.watcher import Watcher
from ..protocol.commands import (
    OpCode,
    build_superwatch_values,
    build_unwatch_values,
    build_watch_values,
)
from .registry import NotificationSlot, SlotRegistry

if TYPE_CHECKING:
    from ..models.watcher import WatchCallback
    from ..transport.connection import BLEConnection

_LOGGER = logging.getLogger(__name__)

SendCommand = Callable[[OpCode, bytes], Awaitable[None]]


class WatchCoordinator:
    """Applies watch, superwatch and unwatch requests.

    Every reconfiguration of a slot follows unsubscribe -> configure ->
    resubscribe, holding the slot's lock for the whole sequence. Calls on
    disjoint slots run concurrently.
    """

    def __init__(
            self,
            connection: BLEConnection,
            registry: SlotRegistry,
            send_command: SendCommand,
            max_superwatch_addresses: int,
            on_status: Callable[[int, bytes], None] | None = None,
    ):
        """Initialize coordinator.

        Args:
            connection: BLE connection used for (un)subscribing slot characteristics
            registry: Slot table owned by the session
            send_command: Coroutine sending a dongle command (raises on failure)
            max_superwatch_addresses: Hardware limit on superwatch addresses
            on_status: Optional listener called with (slot, data) for ordinary slot notifications
        """
        self.connection = connection
        self.registry = registry
        self.max_superwatch_addresses = max_superwatch_addresses
        self.on_status = on_status
        self._send_command = send_command

    async def watch(
            self,
            slot: int,
            unit: int,
            address: int,
            length: int,
            callback: WatchCallback,
    ) -> None:
        """Bind a slot to a remote address.

        Raises:
            InvalidSlotError: If the slot does not exist (no I/O performed)
            RemoteExceptionError: If the dongle rejects the WATCH command
        """
        entry = self.registry.get(slot)
        watcher = Watcher(slot=slot, unit=unit, address=address, length=length, callback=callback)

        async with entry.lock:
            await self._unsubscribe(entry)
            entry.claim(callback)
            try:
                await self._send_command(OpCode.WATCH, build_watch_values([watcher.as_entry()]))
            except Exception:
                entry.release()
                raise

            entry.armed = True
            try:
                await self._subscribe(entry)
            except Exception:
                entry.release()
                raise

    async def set_watchers(self, watchers: Watcher | Iterable[Watcher]) -> None:
        """Apply several watchers with a single WATCH command.

        A slot whose unsubscribe fails is logged, released and left out of
        the WATCH command; a slot whose resubscribe fails is logged and
        released. A failed WATCH command releases every slot claimed by this
        call and is raised.
        """
        if isinstance(watchers, Watcher):
            watchers = [watchers]

        # Last watcher for a slot wins
        by_slot: dict[int, Watcher] = {}
        for watcher in watchers:
            by_slot[watcher.slot] = watcher
        if not by_slot:
            return

        entries = {index: self.registry.get(index) for index in by_slot}
        values = build_watch_values(w.as_entry() for w in by_slot.values())

        async with AsyncExitStack() as stack:
            for index in sorted(entries):
                await stack.enter_async_context(entries[index].lock)

            failed = await self._best_effort(self._unsubscribe, entries.values(), "unsubscribe")
            if failed:
                for entry in failed:
                    del entries[entry.index]
                if not entries:
                    return
                values = build_watch_values(by_slot[index].as_entry() for index in entries)

            for index, entry in entries.items():
                entry.claim(by_slot[index].callback)

            try:
                await self._send_command(OpCode.WATCH, values)
            except Exception:
                for entry in entries.values():
                    entry.release()
                raise

            for entry in entries.values():
                entry.armed = True

            await self._best_effort(self._subscribe, entries.values(), "subscribe")

    async def superwatch(
            self,
            unit: int,
            addresses: Sequence[int],
            callback: WatchCallback | None = None,
    ) -> None:
        """Aggregate several addresses onto the superwatch slot.

        An empty address list clears the superwatch.

        Raises:
            TooManyAddressesError: If addresses exceeds the hardware maximum (no I/O performed)
            SlotUnavailableError: If the device has no superwatch characteristic
        """
        if len(addresses) > self.max_superwatch_addresses:
            raise TooManyAddressesError(
                f"Superwatch supports at most {self.max_superwatch_addresses} addresses, "
                f"got {len(addresses)}"
            )
        if addresses and not callable(callback):
            raise ValueError("callback is required when addresses are given")

        values = build_superwatch_values(unit, addresses)
        entry = self.registry.superwatch
        if not entry.available:
            raise SlotUnavailableError("Superwatch is not supported by this device")

        async with entry.lock:
            await self._unsubscribe(entry)
            if addresses:
                entry.claim(callback)
            else:
                entry.release()

            try:
                await self._send_command(OpCode.SUPERWATCH, values)
            except Exception:
                entry.release()
                raise

            if addresses:
                entry.armed = True
                try:
                    await self._subscribe(entry)
                except Exception:
                    entry.release()
                    raise

    async def unwatch(self, slot: int) -> None:
        """Stop watching a slot.

        Raises:
            InvalidSlotError: If the slot does not exist
        """
        entry = self.registry.get(slot)

        async with entry.lock:
            entry.release()
            await self._unsubscribe(entry)
            await self._send_command(OpCode.UNWATCH, build_unwatch_values([slot]))

    async def clear_watchers(self, slots: Iterable[int]) -> None:
        """Stop watching several slots with a single UNWATCH command."""
        entries = {index: self.registry.get(index) for index in slots}
        if not entries:
            return

        async with AsyncExitStack() as stack:
            for index in sorted(entries):
                await stack.enter_async_context(entries[index].lock)

            for entry in entries.values():
                entry.release()
            await self._best_effort(self._unsubscribe, entries.values(), "unsubscribe")
            await self._send_command(OpCode.UNWATCH, build_unwatch_values(entries))

    async def unwatch_all(self) -> None:
        """Release every ordinary slot and send UNWATCH_ALL."""
        entries = [entry for entry in self.registry if entry.available]

        async with AsyncExitStack() as stack:
            for entry in entries:
                await stack.enter_async_context(entry.lock)

            for entry in entries:
                entry.release()
            await self._best_effort(self._unsubscribe, entries, "unsubscribe")
            await self._send_command(OpCode.UNWATCH_ALL, b"")

    async def _subscribe(self, entry: NotificationSlot) -> None:
        await self.connection.subscribe(
            entry.characteristic,
            partial(self._on_notification, entry),
        )
        entry.subscribed = True

    async def _unsubscribe(self, entry: NotificationSlot) -> None:
        await self.connection.unsubscribe(entry.characteristic)
        entry.subscribed = False

    async def _best_effort(
            self,
            action: Callable[[NotificationSlot], Awaitable[None]],
            entries: Iterable[NotificationSlot],
            description: str,
    ) -> list[NotificationSlot]:
        """Run action on all entries concurrently, logging and releasing failures.

        Returns:
            The entries whose action failed
        """
        entries = list(entries)
        results = await asyncio.gather(
            *(action(entry) for entry in entries),
            return_exceptions=True,
        )
        failed = []
        for entry, result in zip(entries, results):
            if isinstance(result, Exception):
                _LOGGER.warning("Failed to %s slot %d: %s", description, entry.index, result)
                entry.release()
                failed.append(entry)
        return failed

    def _on_notification(self, entry: NotificationSlot, data: bytes) -> None:
        _LOGGER.debug("Slot %d notification: %s", entry.index, data.hex())
        entry.dispatch(data)
        if self.on_status and entry is not self.registry.superwatch:
            self.on_status(entry.index, data)
