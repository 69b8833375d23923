"""In-memory views shared by the HTTP gateway and the MQTT listener.

The device mirror and the metrics snapshot are guarded by independent
reader/writer locks. Nothing ever holds both at once.
"""
from __future__ import annotations

import asyncio
import copy
from collections.abc import AsyncIterator, Mapping
from contextlib import asynccontextmanager
from dataclasses import dataclass, replace
from typing import Any


class ReadWriteLock:
    """Asyncio lock admitting any number of readers or a single writer.

    A waiting writer blocks new readers, so a steady stream of reads cannot
    starve a command.
    """

    def __init__(self) -> None:
        self._cond = asyncio.Condition()
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @asynccontextmanager
    async def read(self) -> AsyncIterator[None]:
        async with self._cond:
            await self._cond.wait_for(lambda: not self._writer and self._writers_waiting == 0)
            self._readers += 1
        try:
            yield
        finally:
            async with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @asynccontextmanager
    async def write(self) -> AsyncIterator[None]:
        async with self._cond:
            self._writers_waiting += 1
            try:
                await self._cond.wait_for(lambda: not self._writer and self._readers == 0)
            except BaseException:
                self._writers_waiting -= 1
                self._cond.notify_all()
                raise
            self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            async with self._cond:
                self._writer = False
                self._cond.notify_all()


@dataclass(slots=True, frozen=True)
class DeviceState:
    relay_commanded: bool = False
    led_state: bool = False
    manual_mode: bool = False


class DeviceStateMirror:
    """Last commanded relay/LED/manual-mode intent.

    This is a cache of what the operator asked for, not of what the device
    reports. ``get`` hands out the frozen state object, so callers always see
    a consistent point-in-time copy.
    """

    def __init__(self) -> None:
        self._state = DeviceState()
        self._lock = ReadWriteLock()

    async def get(self) -> DeviceState:
        async with self._lock.read():
            return self._state

    async def set_relay(self, value: bool) -> None:
        async with self._lock.write():
            self._state = replace(self._state, relay_commanded=value)

    async def set_led(self, value: bool) -> None:
        async with self._lock.write():
            self._state = replace(self._state, led_state=value)

    async def set_manual_mode(self, value: bool) -> None:
        async with self._lock.write():
            self._state = replace(self._state, manual_mode=value)


class MetricsSnapshot:
    """Latest value seen for every metric name; keys are never pruned."""

    def __init__(self) -> None:
        self._values: dict[str, Any] = {}
        self._lock = ReadWriteLock()

    async def merge(self, delta: Mapping[str, Any]) -> None:
        async with self._lock.write():
            for key, value in delta.items():
                self._values[key] = copy.deepcopy(value)

    async def snapshot(self) -> dict[str, Any]:
        async with self._lock.read():
            return copy.deepcopy(self._values)
