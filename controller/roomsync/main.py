import logging
import time
from contextlib import asynccontextmanager

from .api import create_app
from .config import get_settings
from .context import ControllerContext
from .database import STORE_ERRORS, Database
from .device_controller import DeviceController
from .gateway import CommandGateway
from .ingest import TelemetryIngest
from .mqtt_consumer import MQTTConsumer, build_tls_context
from .persistence import PersistenceSync
from .reconciliation import ReconciliationReplayer

settings = get_settings()

logging.basicConfig(level=settings.log_level.upper())
logger = logging.getLogger(__name__)

context = ControllerContext()

db: Database | None = None
if settings.database_url:
    db = Database(settings.database_url)
else:
    logger.warning("DATABASE_URL not set. State persistence and reconciliation disabled.")

consumer = MQTTConsumer(
    host=settings.mqtt_broker_host,
    port=settings.mqtt_broker_port,
    identifier=f"{settings.mqtt_client_id_prefix}-{int(time.time())}",
    username=settings.mqtt_username,
    password=settings.mqtt_password,
    keepalive=settings.mqtt_keepalive,
    tls_context=build_tls_context(
        settings.mqtt_tls_ca_pem,
        settings.mqtt_tls_cert_pem,
        settings.mqtt_tls_key_pem,
    ),
    qos=settings.mqtt_qos,
    publish_timeout=settings.mqtt_publish_timeout,
    reconnect_delay=settings.mqtt_reconnect_delay,
)

device_controller = DeviceController(
    consumer,
    relay_topic=settings.relay_topic,
    led_topic=settings.led_topic,
    manual_mode_topic=settings.manual_mode_topic,
)

ingest = TelemetryIngest(context, PersistenceSync(db))
replayer = ReconciliationReplayer(
    context,
    db,
    device_controller,
    relay_field=settings.relay_field,
    manual_mode_field=settings.manual_mode_field,
    led_field=settings.led_field,
)
consumer.subscribe(settings.metrics_topic, ingest.handle)
consumer.subscribe(settings.fetch_topic, replayer.handle_fetch)

gateway = CommandGateway(context, device_controller)


@asynccontextmanager
async def lifespan(app):
    if db is not None:
        logger.info("Connecting to state store")
        try:
            await db.connect()
        except STORE_ERRORS as exc:
            logger.warning("State store unavailable at startup: %s", exc)
    logger.info("Starting MQTT consumer")
    await consumer.start()
    yield
    logger.info("Shutting down MQTT consumer")
    await consumer.stop()
    await context.tasks.drain(timeout=settings.mqtt_publish_timeout)
    if db is not None:
        await db.disconnect()


app = create_app(gateway, allowed_origins=settings.cors_origins, lifespan=lifespan)
