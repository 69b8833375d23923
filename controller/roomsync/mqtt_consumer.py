import asyncio
import contextlib
import logging
import ssl
import tempfile
from collections.abc import Awaitable, Callable
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from aiomqtt import Client, MqttError, Topic

logger = logging.getLogger(__name__)

MessageHandler = Callable[[bytes], Awaitable[Any]]


def _topic_to_str(topic: Any) -> str:
    if isinstance(topic, str):
        return topic
    value = getattr(topic, "value", None)
    if isinstance(value, str):
        return value
    return str(topic)


def _payload_to_bytes(payload: Any) -> bytes:
    if payload is None:
        return b""
    if isinstance(payload, (bytes, bytearray)):
        return bytes(payload)
    return str(payload).encode("utf-8")


def build_tls_context(
    ca_pem: str | None, cert_pem: str | None, key_pem: str | None
) -> ssl.SSLContext | None:
    """Build a mutual-TLS context from PEM text, or ``None`` for plain TCP."""

    provided = [value for value in (ca_pem, cert_pem, key_pem) if value]
    if not provided:
        return None
    if len(provided) != 3:
        raise ValueError("MQTT TLS needs the CA certificate, client certificate and private key PEM")

    context = ssl.create_default_context(cadata=ca_pem)
    # load_cert_chain only reads from files.
    with tempfile.TemporaryDirectory() as tmp:
        cert_path = Path(tmp) / "client.crt"
        key_path = Path(tmp) / "client.key"
        cert_path.write_text(cert_pem)
        key_path.write_text(key_pem)
        key_path.chmod(0o600)
        context.load_cert_chain(cert_path, key_path)
    return context


class MQTTConsumer:
    """Owns the broker connection: dispatches inbound topics and publishes commands."""

    def __init__(
        self,
        *,
        host: str,
        port: int,
        identifier: str | None = None,
        username: str | None = None,
        password: str | None = None,
        keepalive: int = 60,
        tls_context: ssl.SSLContext | None = None,
        qos: int = 0,
        publish_timeout: float = 10.0,
        reconnect_delay: float = 5.0,
    ):
        self._host = host
        self._port = port
        self._identifier = identifier
        self._username = username
        self._password = password
        self._keepalive = keepalive
        self._tls_context = tls_context
        self._qos = qos
        self._publish_timeout = publish_timeout
        self._reconnect_delay = reconnect_delay
        self._handlers: dict[str, MessageHandler] = {}
        self._client: Client | None = None
        self._task: asyncio.Task | None = None
        self._stop = asyncio.Event()

    @property
    def connected(self) -> bool:
        return self._client is not None

    def subscribe(self, topic: str, handler: MessageHandler) -> None:
        """Register a handler; subscriptions are (re)issued on every connect."""
        self._handlers[topic] = handler

    async def start(self) -> None:
        if self._task is None:
            logger.info(
                "Starting MQTT consumer task (host=%s port=%s topics=%s)",
                self._host,
                self._port,
                sorted(self._handlers),
            )
            self._stop.clear()
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        self._stop.set()
        if self._task:
            # The message iterator only notices the stop flag on the next message.
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None

    async def publish(self, topic: str, payload: bytes) -> None:
        client = self._client
        if client is None:
            raise RuntimeError("MQTT client not connected")
        await client.publish(topic, payload, qos=self._qos, retain=False, timeout=self._publish_timeout)

    async def _run(self) -> None:
        logger.info("MQTT consumer loop running")
        while not self._stop.is_set():
            try:
                logger.debug("Connecting to MQTT broker at %s:%s", self._host, self._port)
                async with self._connect() as client:
                    logger.info("Connected to MQTT broker")
                    for topic in self._handlers:
                        await client.subscribe(topic, qos=self._qos)
                        logger.info("Subscribed to %s", topic)
                    self._client = client
                    try:
                        async for message in client.messages:
                            if self._stop.is_set():
                                break
                            await self._handle_message(message.topic, message.payload)
                    finally:
                        self._client = None
            except MqttError as exc:
                logger.warning("MQTT connection lost: %s", exc)
                await asyncio.sleep(self._reconnect_delay)
            except Exception as exc:  # pragma: no cover - defensive logging
                logger.exception("Unexpected MQTT consumer error: %s", exc)
                await asyncio.sleep(self._reconnect_delay)

    @asynccontextmanager
    async def _connect(self):
        async with Client(
            hostname=self._host,
            port=self._port,
            identifier=self._identifier,
            username=self._username,
            password=self._password,
            keepalive=self._keepalive,
            tls_context=self._tls_context,
        ) as client:
            yield client

    async def _handle_message(self, topic: Any, payload: Any) -> None:
        topic_value = _topic_to_str(topic)
        logger.debug("MQTT message received topic=%r payload=%r", topic_value, payload)
        for pattern, handler in self._handlers.items():
            if Topic(topic_value).matches(pattern):
                try:
                    await handler(_payload_to_bytes(payload))
                except Exception:
                    logger.exception("Handler for %s failed on topic %r", pattern, topic_value)
                return
        logger.debug("No handler for MQTT topic %r", topic_value)
