from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import pytest

from roomsync.context import ControllerContext
from roomsync.device_controller import DeviceController
from roomsync.gateway import CommandGateway

RELAY_TOPIC = "test/relay/set"
LED_TOPIC = "test/led/set"
MANUAL_TOPIC = "test/led/manual"


class FakePublisher:
    def __init__(self) -> None:
        self.published: list[tuple[str, bytes]] = []
        self.error: Exception | None = None

    async def publish(self, topic: str, payload: bytes) -> None:
        if self.error is not None:
            raise self.error
        self.published.append((topic, payload))

    def on(self, topic: str) -> list[bytes]:
        return [payload for published_topic, payload in self.published if published_topic == topic]


class FakeStore:
    def __init__(self) -> None:
        self.records: list[dict[str, Any]] = []
        self.put_error: Exception | None = None
        self.fetch_error: Exception | None = None

    async def put_record(self, record: Mapping[str, Any]) -> None:
        if self.put_error is not None:
            raise self.put_error
        self.records.append(dict(record))

    async def fetch_latest(self, state_id: int) -> dict[str, Any] | None:
        if self.fetch_error is not None:
            raise self.fetch_error
        matching = [r for r in self.records if r.get("state_id") == state_id]
        if not matching:
            return None
        return max(matching, key=lambda r: r["timestamps"])


@pytest.fixture
def context() -> ControllerContext:
    return ControllerContext()


@pytest.fixture
def publisher() -> FakePublisher:
    return FakePublisher()


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def controller(publisher: FakePublisher) -> DeviceController:
    return DeviceController(
        publisher,
        relay_topic=RELAY_TOPIC,
        led_topic=LED_TOPIC,
        manual_mode_topic=MANUAL_TOPIC,
    )


@pytest.fixture
def gateway(context: ControllerContext, controller: DeviceController) -> CommandGateway:
    return CommandGateway(context, controller)
