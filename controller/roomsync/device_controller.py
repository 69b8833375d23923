import asyncio
import logging
from typing import Protocol

from aiomqtt import MqttError

from .message_parser import command_payload

logger = logging.getLogger(__name__)


class Publisher(Protocol):
    async def publish(self, topic: str, payload: bytes) -> None: ...


class DeviceController:
    """Publishes ON/OFF commands for the relay, the LED and manual mode."""

    def __init__(self, publisher: Publisher, *, relay_topic: str, led_topic: str, manual_mode_topic: str):
        self._publisher = publisher
        self._relay_topic = relay_topic
        self._led_topic = led_topic
        self._manual_mode_topic = manual_mode_topic

    async def set_relay(self, on: bool) -> bool:
        return await self._publish(self._relay_topic, on)

    async def set_led(self, on: bool) -> bool:
        return await self._publish(self._led_topic, on)

    async def set_manual_mode(self, on: bool) -> bool:
        return await self._publish(self._manual_mode_topic, on)

    async def _publish(self, topic: str, on: bool) -> bool:
        payload = command_payload(on)
        try:
            await self._publisher.publish(topic, payload)
        except (MqttError, RuntimeError, asyncio.TimeoutError) as exc:
            logger.warning("Publish failed on %s: %s", topic, exc)
            return False
        logger.info("Published '%s' to topic '%s'", payload.decode(), topic)
        return True
